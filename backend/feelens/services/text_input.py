"""
Free-text inputs from the presentation layer.

Reasons, notes, claims and platform responses are stripped, checked for
non-emptiness where required, and bounded in length.
"""
from typing import Optional

from ..errors import ValidationFailedError

REASON_MAX_LENGTH = 1000
NOTE_MAX_LENGTH = 2000
RESPONSE_MAX_LENGTH = 2000
CLAIM_MAX_LENGTH = 4000


def require_text(field: str, value: Optional[str], max_length: int) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailedError({field: "This field is required."})
    if len(cleaned) > max_length:
        raise ValidationFailedError({field: f"Must be at most {max_length} characters."})
    return cleaned


def optional_text(field: str, value: Optional[str], max_length: int) -> Optional[str]:
    cleaned = (value or "").strip()
    if not cleaned:
        return None
    if len(cleaned) > max_length:
        raise ValidationFailedError({field: f"Must be at most {max_length} characters."})
    return cleaned
