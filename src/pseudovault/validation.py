"""
Input sanitization and validation for user data.

Runs before anything is encrypted, so only well-formed values reach the
stores and the shadow indexes see one normalized form per value.
"""

from __future__ import annotations

import re
from dataclasses import replace

from .errors import ValidationError
from .models import Role, UserInput
from .passwords import MAX_PASSWORD_BYTES

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50
MIN_ADDRESS_LENGTH = 5
MAX_ADDRESS_LENGTH = 255
NATIONAL_ID_MIN = 100000000
NATIONAL_ID_MAX = 999999999

_NAME_RE = re.compile(r"^[A-Za-z\s'-]+$")
_PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def normalize_email(email: str) -> str:
    """Canonical form used for storage and for the uniqueness index."""
    return email.strip().lower()


def sanitize_user(user: UserInput) -> UserInput:
    """Trim every string field and lowercase the email."""
    return replace(
        user,
        username=_strip(user.username),
        password=_strip(user.password),
        email=normalize_email(user.email) if isinstance(user.email, str) else user.email,
        name=_strip(user.name),
        address=_strip(user.address),
        phone=_strip(user.phone),
        organization_id=_strip(user.organization_id),
    )


def validate_user(user: UserInput) -> None:
    """
    Check a sanitized UserInput.

    Raises:
        ValidationError: Describing the first invalid field
    """
    if (
        not isinstance(user.name, str)
        or not _NAME_RE.match(user.name)
        or not MIN_NAME_LENGTH <= len(user.name) <= MAX_NAME_LENGTH
    ):
        raise ValidationError(
            "Invalid name format. It should only contain letters, hyphens, and "
            f"apostrophes and be {MIN_NAME_LENGTH} to {MAX_NAME_LENGTH} characters long."
        )

    if (
        not isinstance(user.address, str)
        or not MIN_ADDRESS_LENGTH <= len(user.address) <= MAX_ADDRESS_LENGTH
    ):
        raise ValidationError(
            f"Invalid address format. It should be {MIN_ADDRESS_LENGTH} to "
            f"{MAX_ADDRESS_LENGTH} characters long."
        )

    # bool is an int subclass; reject it explicitly
    if (
        not isinstance(user.national_id, int)
        or isinstance(user.national_id, bool)
        or not NATIONAL_ID_MIN <= user.national_id <= NATIONAL_ID_MAX
    ):
        raise ValidationError("Invalid national id format. It should be a 9-digit number.")

    if not isinstance(user.phone, str) or not _PHONE_RE.match(user.phone):
        raise ValidationError("Invalid phone number format.")

    if not isinstance(user.email, str) or not _EMAIL_RE.match(user.email):
        raise ValidationError("Invalid email format.")

    if not isinstance(user.role, Role):
        raise ValidationError("Invalid role.")

    for field_name in ("username", "password", "organization_id"):
        value = getattr(user, field_name)
        if not isinstance(value, str) or not value:
            raise ValidationError(f"Invalid {field_name}. It must not be empty.")

    if len(user.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Invalid password. It must be at most {MAX_PASSWORD_BYTES} bytes long."
        )
