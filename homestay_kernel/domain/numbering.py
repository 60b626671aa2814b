"""
Application number formats.

Primary applications:  ``HP-HS-<year>-<district code>-<serial:06>``
Legacy onboarding:     ``LG-HS-<year>-<district code>-<serial:06>``

District codes come from the policy table; unknown districts fall back to
the first three letters of the name, and an empty district to ``GEN``.
"""

from __future__ import annotations

from collections.abc import Mapping

FALLBACK_DISTRICT_CODE = "GEN"


def district_code(district: str | None, codes: Mapping[str, str]) -> str:
    """Three-letter code for a district name (case and whitespace insensitive)."""
    name = (district or "").strip()
    if not name:
        return FALLBACK_DISTRICT_CODE
    lowered = {k.strip().lower(): v for k, v in codes.items()}
    code = lowered.get(name.lower())
    if code:
        return code
    letters = "".join(ch for ch in name if ch.isalpha())
    return letters[:3].upper() or FALLBACK_DISTRICT_CODE


def format_application_number(prefix: str, year: int, code: str, serial: int) -> str:
    return f"{prefix}-{year}-{code}-{serial:06d}"


def sequence_name(prefix: str, year: int, code: str) -> str:
    """Counter name backing one ``(prefix, district, year)`` serial stream."""
    return f"application_number:{prefix}:{year}:{code}"
