"""
Session authentication routes
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
from auth_utils import api_login_required
from utils.api_responses import error_response

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

AUTH_STATUS_CODES = {
    'INVALID_CREDENTIALS': 401,
    'PROFILE_NOT_FOUND': 401,
    'ACCOUNT_DEACTIVATED': 403,
    'SIGN_IN_FAILED': 500,
}


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    identity_service = current_app.services.get('identity')

    auth_result = identity_service.authenticate(
        data.get('email', '').strip(),
        data.get('password', ''),
        ip_address=request.remote_addr
    )
    if auth_result.is_failure:
        return error_response(auth_result, AUTH_STATUS_CODES)

    profile = auth_result.data
    sign_in = identity_service.sign_in(profile, remember=bool(data.get('remember')))
    if sign_in.is_failure:
        return error_response(sign_in, AUTH_STATUS_CODES)

    return jsonify({'success': True, 'user': profile.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@api_login_required
def logout():
    current_app.services.get('identity').sign_out()
    return jsonify({'success': True})


@auth_bp.route('/me', methods=['GET'])
@api_login_required
def me():
    """Current user with role and organization"""
    user_roles = current_app.services.get('user_role_repository')
    user = current_user.to_dict()
    user['role'] = user_roles.get_role_name(current_user.id, current_user.organization_id)
    user['organization'] = current_user.organization.to_dict() if current_user.organization else None
    return jsonify({'user': user})
