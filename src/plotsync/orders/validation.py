"""Applicant field validators.

Each validator returns an error message on failure and ``None`` on
success.
"""

from __future__ import annotations

import re
from typing import Any, Callable

from plotsync.core.errors import ApplicantValidationError
from plotsync.plots.models import Applicant

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

Validator = Callable[[Any], str | None]


def validate_required(value: Any) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return "This field is required."
    return None


def validate_email(value: Any) -> str | None:
    missing = validate_required(value)
    if missing:
        return missing
    if not isinstance(value, str) or not EMAIL_PATTERN.fullmatch(value.strip()):
        return "Please enter a valid email address."
    return None


APPLICANT_RULES: dict[str, Validator] = {
    "first_name": validate_required,
    "last_name": validate_required,
    "customer_phone": validate_required,
    "customer_email": validate_email,
}


def applicant_errors(applicant: Applicant) -> dict[str, str]:
    """Collect every field error, keyed by field name."""
    errors: dict[str, str] = {}
    for field_name, rule in APPLICANT_RULES.items():
        message = rule(getattr(applicant, field_name))
        if message:
            errors[field_name] = message
    return errors


def validate_applicant(applicant: Applicant) -> None:
    errors = applicant_errors(applicant)
    if errors:
        raise ApplicantValidationError(errors)
