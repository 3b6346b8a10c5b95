"""
Input validation utilities
"""
from datetime import date
from typing import Optional

from hotelops.exceptions import ValidationError


def require_text(value: Optional[str], field: str) -> str:
    """Non-empty after stripping; returns the stripped text"""
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def validate_stay_range(stay_from: Optional[date], stay_to: Optional[date]) -> tuple[date, date]:
    """Both stay dates present and in order"""
    if stay_from is None or stay_to is None:
        raise ValidationError("stay_from and stay_to are required")
    if stay_to < stay_from:
        raise ValidationError("stay_to must not be before stay_from")
    return stay_from, stay_to
