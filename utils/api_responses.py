"""
Helpers for turning service Results into JSON responses
"""

from typing import Dict, Optional
from flask import jsonify
from services.common.result import Result

# Codes shared by every blueprint
DEFAULT_STATUS_CODES: Dict[str, int] = {
    'VALIDATION_ERROR': 400,
    'DATABASE_ERROR': 500,
}


def status_for(result: Result, status_map: Dict[str, int]) -> int:
    code = result.error_code or ''
    if code in status_map:
        return status_map[code]
    return DEFAULT_STATUS_CODES.get(code, 400)


def error_response(result: Result, status_map: Dict[str, int], extra: Optional[Dict] = None):
    """JSON error body {error, code, ...metadata} with the mapped status."""
    body = {'error': result.error, 'code': result.error_code}
    if result.metadata:
        body.update(result.metadata)
    if extra:
        body.update(extra)
    return jsonify(body), status_for(result, status_map)


def side_effects_payload(result: Result):
    return [effect.to_dict() for effect in result.side_effects]
