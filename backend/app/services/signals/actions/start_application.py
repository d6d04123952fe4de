"""Create a new interview application from a signal's extracted company/job data."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ....config import settings
from ....models import Company, InterviewApplication, JobRole
from .base_action import BaseAction

logger = logging.getLogger(__name__)

_LEGAL_SUFFIX_RE = re.compile(r"[\s,]+(inc|llc|l\.l\.c|corp|ltd|co)\.?$", re.IGNORECASE)

SCHEDULING_PLATFORMS = (
    (re.compile(r"goodtime\.io", re.I), "GoodTime"),
    (re.compile(r"calendly\.com", re.I), "Calendly"),
    (re.compile(r"cal\.com", re.I), "Cal.com"),
    (re.compile(r"doodle\.com", re.I), "Doodle"),
    (re.compile(r"zoom\.us.*schedule", re.I), "Zoom"),
    (re.compile(r"meet\.google", re.I), "Google Meet"),
)


def normalize_company_name(name: str) -> str:
    """Strip legal suffixes (Inc/LLC/Corp/Ltd/Co) and title-case each word."""
    name = (name or "").strip()
    previous = None
    while name and name != previous:
        previous = name
        name = _LEGAL_SUFFIX_RE.sub("", name).strip()
    return " ".join(word[:1].upper() + word[1:] for word in name.split())


def scheduling_platform(url: str) -> str:
    for pattern, label in SCHEDULING_PLATFORMS:
        if pattern.search(url or ""):
            return label
    return "scheduling link"


class StartApplicationAction(BaseAction):
    def execute(self) -> dict:
        if not self.signal.company_name:
            return self.failure_result("No company name extracted")

        try:
            company = self.find_or_create_company()
            job_role = self.find_or_create_job_role()
            application = InterviewApplication(
                user_id=self.user.id,
                company=company,
                job_role=job_role,
                applied_at=self.signal.email_date or datetime.utcnow(),
                notes=self.build_notes(),
            )
            self.db.add(application)
            self.db.flush()

            self.signal.interview_application_id = application.id
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("[StartApplicationAction] Signal #%s: %s", self.signal.id, e)
            return self.failure_result(f"Failed to create application: {e}")

        logger.info(
            "[StartApplicationAction] Signal #%s -> application #%s (%s)",
            self.signal.id, application.id, company.name,
        )
        return self.success_result(
            f"Application started at {company.name}",
            application=application,
            company=company,
            redirect_path=f"{settings.app_base_path.rstrip('/')}/{application.id}",
        )

    def find_or_create_company(self) -> Company:
        name = normalize_company_name(self.signal.company_name)
        company = (
            self.db.query(Company)
            .filter(func.lower(Company.name) == name.lower())
            .first()
        )
        website = self.signal.company_website
        if company is not None:
            if website and not company.website:
                company.website = website
            return company
        company = Company(name=name, website=website)
        self.db.add(company)
        return company

    def find_or_create_job_role(self) -> JobRole:
        title = self.signal.job_title or f"Position via {self.signal.recruiter_name or 'Recruiter'}"
        role = (
            self.db.query(JobRole)
            .filter(func.lower(JobRole.title) == title.lower())
            .first()
        )
        if role is not None:
            return role
        role = JobRole(title=title)
        self.db.add(role)
        return role

    def build_notes(self) -> str:
        signal = self.signal
        lines = ["Created from email signal", ""]

        if signal.recruiter_name:
            lines.append("RECRUITER")
            lines.append(f"   {signal.recruiter_name}")
            if signal.recruiter_title:
                lines.append(f"   {signal.recruiter_title}")
            if signal.recruiter_email:
                lines.append(f"   {signal.recruiter_email}")
            lines.append("")

        details = [d for d in (signal.job_location, signal.job_department, signal.job_salary_hint) if d]
        job_url = signal.detected_job_url
        if job_url:
            details.append(job_url)
        if details:
            lines.append("DETAILS")
            lines.extend(f"   {d}" for d in details)
            lines.append("")

        if signal.scheduling_link:
            lines.append("NEXT STEP")
            lines.append(f"   Schedule via {scheduling_platform(signal.scheduling_link)}")

        return "\n".join(lines).strip()
