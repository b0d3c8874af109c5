"""
Cascade Connect - Phone Numbers
================================

Normalization to E.164 for Twilio and homeowner matching.
"""

import re
from typing import Iterable, Optional

DEFAULT_COUNTRY_CODE = "1"

_E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164.

    10 digits get the default country code, 11 or more digits are kept
    as-is, anything shorter is not a usable number.

    Examples:
        "(555) 123-4567"  -> "+15551234567"
        "1-555-123-4567"  -> "+15551234567"
        "555-1234"        -> None
    """
    if not phone:
        return None

    digits = _NON_DIGITS.sub("", phone)

    if len(digits) < 10:
        return None
    if len(digits) == 10:
        digits = DEFAULT_COUNTRY_CODE + digits

    return f"+{digits}"


def is_e164(phone: Optional[str]) -> bool:
    return bool(phone) and bool(_E164_PATTERN.match(phone))


def format_phone_for_display(phone: Optional[str]) -> str:
    """
    Render +1XXXXXXXXXX or a bare 10-digit number as (XXX) XXX-XXXX.

    Anything else, including 1XXXXXXXXXX without the plus, is returned as is.
    """
    if not phone:
        return ""
    d = phone[2:] if phone.startswith("+1") else phone
    if len(d) == 10 and d.isdigit():
        return f"({d[:3]}) {d[3:6]}-{d[6:]}"
    return phone


def phones_match(a: Optional[str], b: Optional[str]) -> bool:
    na, nb = normalize_phone_number(a), normalize_phone_number(b)
    return na is not None and na == nb


def batch_normalize(phones: Iterable[Optional[str]]) -> list[str]:
    """Normalize many numbers, dropping the unusable ones."""
    return [n for n in (normalize_phone_number(p) for p in phones) if n]
