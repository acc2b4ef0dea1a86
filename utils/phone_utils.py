"""
Phone number helpers.

Contacts store phone numbers as bare digits so that lead-source formats
("(908) 244-8429", "908-244-8429") and SMS-provider formats ("+19082448429")
resolve to the same row.
"""

from typing import Optional


def normalize_phone_number(phone: Optional[str]) -> str:
    """Digits only; an 11-digit number with a leading 1 loses the country code."""
    if not phone:
        return ''

    digits = ''.join(filter(str.isdigit, str(phone)))

    if len(digits) == 11 and digits[0] == '1':
        return digits[1:]

    # 10-digit US numbers are already canonical; anything else is kept as-is
    return digits


def to_e164(phone: Optional[str]) -> Optional[str]:
    """Format a stored phone number for outbound SMS."""
    digits = normalize_phone_number(phone)
    if not digits:
        return None
    if len(digits) == 10:
        return '+1' + digits
    return '+' + digits
