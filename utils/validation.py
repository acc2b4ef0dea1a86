"""
Input validation helpers shared by the JSON routes and services.
"""

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$')


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def partition_emails(emails: Iterable[Any]) -> Tuple[List[str], List[str]]:
    """
    Normalize a list of submitted addresses.

    Returns:
        (valid, invalid) - valid addresses are lowercased and de-duplicated
        in submission order; invalid ones are returned as submitted.
    """
    valid: List[str] = []
    invalid: List[str] = []
    for raw in emails:
        email = normalize_email(raw if isinstance(raw, str) else None)
        if not is_valid_email(email):
            invalid.append(raw)
        elif email not in valid:
            valid.append(email)
    return valid, invalid


def split_full_name(name: Optional[str]) -> Tuple[str, str]:
    """Split on the first space: 'Jo Anne Lee' -> ('Jo', 'Anne Lee')."""
    name = (name or '').strip()
    if not name:
        return '', ''
    first, _, last = name.partition(' ')
    return first, last.strip()


def safe_json_loads(value: Any, field_name: str = 'field') -> Optional[Any]:
    """
    Parse an optional JSON-encoded value.

    Dicts and lists are passed through. Anything that fails to parse comes
    back as None so the caller treats the field as absent.
    """
    if value is None or value == '':
        return None
    if isinstance(value, (dict, list)):
        return value
    if not isinstance(value, str):
        return None
    try:
        return json.loads(value)
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring unparseable {field_name}: {e}")
        return None


def parse_int(value: Any) -> Optional[int]:
    """Lenient integer parse for optional numeric lead fields ('$4,500' -> 4500)."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    digits = re.sub(r'[^\d.\-]', '', str(value))
    try:
        return int(float(digits))
    except ValueError:
        return None


def missing_fields(payload: dict, required: Iterable[str]) -> List[str]:
    """Names of required keys that are absent or blank."""
    missing = []
    for key in required:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(key)
    return missing


def optional_text(value: Any) -> Optional[str]:
    """str() of a scalar payload value, None for missing or structured values."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)
