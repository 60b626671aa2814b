"""
Certificate date arithmetic and presentation.

Pure helpers shared by certificate issuance, legacy onboarding and public
verification.
"""

from __future__ import annotations

from datetime import date
from enum import Enum, unique


@unique
class CertificateState(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    SUPERSEDED = "superseded"
    CANCELLED = "cancelled"


def add_years(start: date, years: int) -> date:
    """``start`` plus whole years; 29 Feb maps to 28 Feb in non-leap years."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def expiry_for(issued: date, validity_years: int) -> date:
    return add_years(issued, validity_years)


def format_display_date(value: date) -> str:
    """``05 Mar 2025`` style used in officer-facing feedback."""
    return value.strftime("%d %b %Y")


def issued_feedback(certificate_number: str, issued: date, expiry: date) -> str:
    return (
        f"Certificate {certificate_number} issued on {format_display_date(issued)} "
        f"(valid till {format_display_date(expiry)})"
    )


def format_certificate_number(prefix: str, year: int, suffix: int) -> str:
    return f"{prefix}-{year}-{suffix:05d}"
