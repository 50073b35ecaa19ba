"""Phone number and identifier normalization.

Signup accepts "+<country>-<number>" (e.g. "+1-5551234567"); SMS delivery
and lookups use E.164 ("+15551234567"). Identifiers passed to the
verification endpoints are either an email address or a phone number.
"""

import re

# Signup form format: country code, dash, subscriber number
SIGNUP_PHONE_PATTERN = re.compile(r"^\+\d{1,4}-\d{7,15}$", re.ASCII)

# E.164: "+" then up to 15 digits, first digit non-zero
_E164_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$", re.ASCII)

_NON_DIGITS = re.compile(r"\D", re.ASCII)


def to_e164(phone: str) -> str:
    """Normalize a phone number to E.164.

    All non-digit characters are dropped. A number written with a leading
    "+" already carries its country code and keeps its digits unchanged.
    Without one, a 10-digit number is treated as North American and gets
    a "+1" prefix.

    Args:
        phone: Phone number in any common notation.

    Returns:
        "+" followed by digits. Not validated; see is_valid_e164().
    """
    digits = _NON_DIGITS.sub("", phone)
    if phone.strip().startswith("+"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def is_valid_e164(phone: str) -> bool:
    """Whether a normalized number looks like a dialable E.164 number."""
    return bool(_E164_PATTERN.match(phone))


def is_email_identifier(identifier: str) -> bool:
    """Identifiers containing "@" are email addresses; the rest are phones."""
    return "@" in identifier


def normalize_identifier(identifier: str) -> str:
    """Lower-case an email identifier or convert a phone one to E.164."""
    identifier = identifier.strip()
    if is_email_identifier(identifier):
        return identifier.lower()
    return to_e164(identifier)
