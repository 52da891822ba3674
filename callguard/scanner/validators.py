"""Structural validators for regex-matched PII candidates.

Each validator is a total predicate: it returns False for anything it cannot
confirm and never raises. A False result rejects the candidate match.

IMPORT RULES: import re2 ONLY. Never import re (stdlib).
"""

from __future__ import annotations

import phonenumbers
import re2

# ─── Compiled helpers ────────────────────────────────────────────────────────

_CARD_SEPARATORS = re2.compile(r"[\s-]")
_CARD_DIGITS = re2.compile(r"^[0-9]{13,19}$")
_SSN_DASHED = re2.compile(r"^(\d{3})-(\d{2})-(\d{4})$")
_NON_DIGITS = re2.compile(r"\D")
_EMAIL_SHAPE = re2.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")


# ─── Credit card ─────────────────────────────────────────────────────────────


def is_valid_credit_card(candidate: str) -> bool:
    """Luhn check over a 13–19 digit card number.

    Spaces and dashes are stripped first. All-identical-digit strings
    (``0000 0000 0000 0000``) are rejected even though they pass Luhn.
    """
    digits = _CARD_SEPARATORS.sub("", candidate)
    if not _CARD_DIGITS.search(digits):
        return False
    if len(set(digits)) == 1:
        return False

    total = 0
    double = False
    for char in reversed(digits):
        value = int(char)
        if double:
            value *= 2
            if value > 9:
                value -= 9
        total += value
        double = not double
    return total % 10 == 0


# ─── SSN ─────────────────────────────────────────────────────────────────────


def is_valid_ssn(candidate: str) -> bool:
    """Field-range check for ``AAA-GG-SSSS``.

    Area must not be 000, 666 or 900–999; group must not be 00; serial must
    not be 0000.
    """
    match = _SSN_DASHED.search(candidate)
    if match is None:
        return False
    return _ssn_fields_valid(match.group(1), match.group(2), match.group(3))


def is_valid_ssn_digits(candidate: str) -> bool:
    """SSN check for an undashed 9-digit run embedded in a labelled match.

    Used by the ``ssn: 123456789`` pattern, whose match also contains the
    label text, so exactly nine digits must remain once non-digits are
    stripped.
    """
    digits = _NON_DIGITS.sub("", candidate)
    if len(digits) != 9:
        return False
    return _ssn_fields_valid(digits[:3], digits[3:5], digits[5:])


def _ssn_fields_valid(area: str, group: str, serial: str) -> bool:
    if area == "000" or area == "666" or area.startswith("9"):
        return False
    if group == "00":
        return False
    if serial == "0000":
        return False
    return True


# ─── Email ───────────────────────────────────────────────────────────────────


def is_valid_email(candidate: str) -> bool:
    """Structural ``local@domain.tld`` check.

    Rejects leading, trailing or doubled dots in the local part and a leading
    or trailing dot or hyphen in the domain.
    """
    if not _EMAIL_SHAPE.search(candidate):
        return False
    local, _, domain = candidate.rpartition("@")
    if local.startswith(".") or local.endswith(".") or ".." in local:
        return False
    if domain[0] in ".-" or domain[-1] in ".-":
        return False
    return True


# ─── Phone ───────────────────────────────────────────────────────────────────


def is_valid_phone(candidate: str, default_region: str = "US") -> bool:
    """Validate a phone number with libphonenumber.

    The candidate is parsed for ``default_region`` first; if that does not
    yield a valid number it is parsed again as an international number.
    Parse errors count as invalid.

    NEVER raises.
    """
    for region in (default_region, None):
        try:
            number = phonenumbers.parse(candidate, region)
        except phonenumbers.NumberParseException:
            continue
        except Exception:  # noqa: BLE001
            return False
        if phonenumbers.is_valid_number(number):
            return True
    return False
