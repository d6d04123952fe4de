"""Extraction prompts for the signal processors.

Templates use ``string.Template`` placeholders (``$subject``) so the literal
JSON braces in the response schema need no escaping.
"""

from string import Template

INTERVIEW_ROUND_SYSTEM = """You are an expert at extracting interview scheduling details from confirmation emails.
Your goal is to accurately extract:
- When the interview is scheduled (date, time, timezone)
- How long it will last
- Who the interviewer is
- How to join (video link, phone, location)
- What type/stage of interview it is

Rules:
- Return ONLY valid JSON, no markdown or commentary
- Use null for missing information, never guess
- Always include timezone in scheduled_at datetime
- Be precise with video conference URLs
- Detect rescheduling and cancellation language"""

INTERVIEW_ROUND_PROMPT = Template("""Analyze the following interview scheduling/confirmation email and extract interview details.

FROM: $from_name <$from_email>
SUBJECT: $subject
COMPANY: $company_name

EMAIL CONTENT:
$body

Respond with a JSON object:

{
  "interview": {
    "scheduled_at": "ISO 8601 datetime with timezone offset (e.g. '2026-01-21T14:00:00-08:00')",
    "duration_minutes": 30,
    "timezone": "Timezone name if mentioned (e.g. 'PST')",
    "stage": "screening|technical|hiring_manager|culture_fit|other",
    "stage_name": "Custom stage name if mentioned (e.g. 'Technical Round 1')"
  },
  "interviewer": {
    "name": "Full name of the interviewer",
    "role": "Job title of the interviewer",
    "email": "Interviewer email if mentioned"
  },
  "logistics": {
    "video_link": "Full URL to the video conference",
    "phone_number": "Phone number for a phone interview",
    "location": "Physical location for an in-person interview",
    "meeting_id": "Meeting ID if given separately from the link",
    "passcode": "Meeting passcode"
  },
  "confirmation_source": "calendly|goodtime|greenhouse|lever|manual|other",
  "is_rescheduled": false,
  "is_cancelled": false,
  "additional_instructions": "Prep instructions, what to bring, who to ask for",
  "confidence_score": 0.0
}

Stage guidelines:
- "screening": recruiter call, HR screen, phone screen, intro call
- "technical": coding interview, system design, live coding, technical assessment
- "hiring_manager": meeting with the manager or team lead
- "culture_fit": values, behavioral, team fit
- "other": final round, panel, presentation, on-site

Only set scheduled_at when a concrete slot is confirmed. A link inviting the
candidate to pick a time is NOT a scheduled interview.

Use null for any field that is not clearly available.
Respond ONLY with the JSON object.""")

ROUND_FEEDBACK_SYSTEM = """You are an expert at analyzing interview feedback emails.
Your goal is to:
- Determine if the candidate passed, failed, or is waitlisted for this round
- Extract any specific feedback provided
- Identify what the next steps are
- Match the feedback to a specific interview round if possible

Rules:
- Return ONLY valid JSON, no markdown or commentary
- Use null for missing information, never guess
- Distinguish between per-round rejection and full application rejection
- "Passed" means moving to the next round, not necessarily getting the job"""

ROUND_FEEDBACK_PROMPT = Template("""Analyze the following email to extract interview round feedback/results.

FROM: $from_name <$from_email>
SUBJECT: $subject
COMPANY: $company_name

RECENT INTERVIEW ROUNDS (for context):
$recent_rounds

EMAIL CONTENT:
$body

Respond with a JSON object:

{
  "result": "passed|failed|waitlisted|unknown",
  "round_context": {
    "stage_mentioned": "Stage or round name mentioned (e.g. 'phone screen')",
    "interviewer_mentioned": "Name of the interviewer mentioned",
    "date_mentioned": "Date of the interview discussed, if mentioned"
  },
  "feedback": {
    "has_detailed_feedback": false,
    "summary": "Brief summary of the feedback",
    "strengths": ["Things that went well"],
    "improvements": ["Areas to improve"],
    "full_feedback_text": "Complete feedback text if provided"
  },
  "next_steps": {
    "has_next_round": false,
    "next_round_type": "Type of the next round",
    "next_round_hint": "What the next round involves",
    "timeline_hint": "Any timeline mentioned"
  },
  "sentiment": "positive|negative|neutral",
  "confidence_score": 0.0
}

Result guidelines:
- "passed": moving forward, next round, congratulations
- "failed": not moving forward, decided not to proceed
- "waitlisted": waitlist, keep you in mind, on hold
- "unknown": outcome cannot be determined

Use null for any field that is not clearly available.
Respond ONLY with the JSON object.""")

STATUS_SYSTEM = """You are an expert at analyzing job application emails to detect status changes.
Your goal is to:
- Determine if the email indicates a rejection, offer, or other status change
- Extract relevant details about the change
- Identify any feedback or next steps mentioned

Rules:
- Return ONLY valid JSON, no markdown or commentary
- Use null for missing information, never guess
- Be conservative: only mark as rejection/offer if clearly indicated
- "Congratulations on moving to the next round" is NOT an offer"""

STATUS_PROMPT = Template("""Analyze the following email to determine if it indicates a change in application status.

FROM: $from_name <$from_email>
SUBJECT: $subject
COMPANY: $company_name
CURRENT APPLICATION STAGE: $current_status

EMAIL CONTENT:
$body

Respond with a JSON object:

{
  "status_change": {
    "type": "rejection|offer|withdrawal|ghosted|on_hold|no_change",
    "is_final": false,
    "effective_date": "ISO 8601 date if mentioned"
  },
  "rejection_details": {
    "reason": "Stated reason for rejection",
    "stage_rejected_at": "Stage where the rejection occurred",
    "is_generic": false,
    "door_open": false
  },
  "offer_details": {
    "role_title": "Job title offered",
    "department": "Department/team",
    "start_date": "Proposed start date",
    "response_deadline": "Deadline to respond",
    "next_steps": "What they need from the candidate"
  },
  "feedback": {
    "has_feedback": false,
    "feedback_text": "Any feedback provided about the candidate"
  },
  "sentiment": "positive|negative|neutral|mixed",
  "confidence_score": 0.0
}

Type guidelines:
- "rejection": the process is ending negatively
- "offer": an explicit job offer is extended
- "withdrawal": the company withdraws the position or process
- "ghosted": the email points to extended silence
- "on_hold": the position or process is paused
- "no_change": no status change (follow-up, scheduling, ...)

is_generic is true for templated rejections; door_open is true when they
mention future opportunities or keeping the resume on file.

Use null for any field that is not clearly available.
Respond ONLY with the JSON object.""")


def render(template: Template, **values) -> str:
    return template.safe_substitute({k: ("" if v is None else v) for k, v in values.items()})
