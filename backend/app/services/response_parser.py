"""Parse JSON extraction output from LLM providers."""

from __future__ import annotations

import json
import logging
import re
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


def parse_extraction_response(content: Optional[str], fields: Optional[Iterable[str]] = None) -> Optional[dict]:
    """
    Parse a provider response into a dict.

    Handles markdown code fences and leading/trailing chatter around the JSON
    object. Returns None (never raises) when there is no usable object. When
    ``fields`` is given, top-level keys outside that set are dropped.
    """
    if not content or not content.strip():
        return None

    text = re.sub(r"```json\s*", "", content)
    text = re.sub(r"```\s*", "", text)
    text = text.strip()

    data = None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"\{[\s\S]*\}", text)
        if match:
            try:
                data = json.loads(match.group())
            except json.JSONDecodeError:
                data = None

    if not isinstance(data, dict):
        logger.warning("[ResponseParser] Could not parse JSON object from response (%d chars)", len(content))
        return None

    data = {str(k): v for k, v in data.items()}
    if fields is not None:
        allowed = set(fields)
        data = {k: v for k, v in data.items() if k in allowed}

    if "confidence_score" in data:
        data["confidence_score"] = _coerce_confidence(data["confidence_score"])
    return data


def _coerce_confidence(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score:  # NaN
        return None
    return min(1.0, max(0.0, score))


def populated_fields(data: Optional[dict], prefix: str = "") -> list[str]:
    """Dotted paths of non-empty leaf values, for the audit log."""
    if not data:
        return []
    paths: list[str] = []
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict):
            paths.extend(populated_fields(value, prefix=f"{path}."))
        elif value not in (None, "", [], {}):
            paths.append(path)
    return paths


def section(data: Optional[dict], key: str) -> dict:
    """Nested object from a parsed response, or {} when missing/mistyped."""
    value = (data or {}).get(key)
    return value if isinstance(value, dict) else {}


def text_value(value) -> Optional[str]:
    """Stripped string or None."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None
