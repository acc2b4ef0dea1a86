# auth_utils.py
"""
Authentication decorators for the JSON API
"""

from functools import wraps
from flask import current_app, g, jsonify, request
from flask_login import current_user
from services.enums import RoleName
from logging_config import SecurityLogger

security_logger = SecurityLogger()


def api_login_required(f):
    """Reject anonymous callers with a JSON 401"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Unauthorized'}), 401
        g.user_id = current_user.id
        return f(*args, **kwargs)
    return decorated_function


def is_admin(profile) -> bool:
    user_roles = current_app.services.get('user_role_repository')
    return user_roles.get_role_name(profile.id, profile.organization_id) == RoleName.ADMIN.value


def admin_required(f):
    """Require the caller to hold the admin role in its organization"""
    @wraps(f)
    @api_login_required
    def decorated_function(*args, **kwargs):
        if not is_admin(current_user):
            security_logger.log_access_denied(current_user.id, request.path, 'admin role required')
            return jsonify({'error': 'Forbidden: Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated_function
