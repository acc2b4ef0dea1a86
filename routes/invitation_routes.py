"""
Invitation routes: admin management under /api/settings/invitations and the
public token endpoints used by the signup page
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
from auth_utils import admin_required
from utils.api_responses import error_response
from logging_config import get_logger

logger = get_logger(__name__)

invitation_bp = Blueprint('invitations', __name__, url_prefix='/api')

INVITATION_STATUS_CODES = {
    'VALIDATION_ERROR': 400,
    'INVALID_EMAILS': 400,
    'INVALID_ROLE': 400,
    'INVALID_PROPERTIES': 400,
    'PASSWORD_TOO_SHORT': 400,
    'INVALID_STATUS': 400,
    'ACTIVE_USERS_EXIST': 409,
    'PENDING_INVITATION_EXISTS': 409,
    'ACCOUNT_EXISTS': 409,
    'ACCOUNT_IN_OTHER_ORGANIZATION': 409,
    'INVITATION_NOT_FOUND': 404,
    'INVITATION_EXPIRED': 410,
    'INVITATION_INVALID': 410,
    'PROFILE_CREATION_FAILED': 500,
    'DATABASE_ERROR': 500,
}


@invitation_bp.route('/settings/invitations', methods=['POST'])
@admin_required
def create_invitations():
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('invitation').create_invitations(
        current_user,
        data.get('emails'),
        data.get('roleId'),
        property_ids=data.get('propertyIds') or [],
        reactivate_deactivated=bool(data.get('reactivateDeactivated'))
    )
    if result.is_failure:
        return error_response(result, INVITATION_STATUS_CODES)

    outcome = result.data
    if outcome['requires_confirmation']:
        return jsonify({
            'success': False,
            'requiresConfirmation': True,
            'deactivatedUsers': outcome['deactivated_users'],
            'message': outcome['message'],
        }), 200

    return jsonify({
        'success': True,
        'invitations': outcome['invitations'],
        'reactivatedUsers': outcome['reactivated_users'],
        'emailStats': outcome['email_stats'],
        'message': outcome['message'],
    }), 201


@invitation_bp.route('/settings/invitations', methods=['GET'])
@admin_required
def list_invitations():
    result = current_app.services.get('invitation').list_pending_invitations(
        current_user.organization_id, actor_id=current_user.id
    )
    if result.is_failure:
        return error_response(result, INVITATION_STATUS_CODES)
    return jsonify({'invitations': result.data})


@invitation_bp.route('/settings/invitations/<int:invitation_id>/resend', methods=['POST'])
@admin_required
def resend_invitation(invitation_id):
    result = current_app.services.get('invitation').resend_invitation(invitation_id, current_user)
    if result.is_failure:
        return error_response(result, INVITATION_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@invitation_bp.route('/settings/invitations/<int:invitation_id>', methods=['DELETE'])
@admin_required
def cancel_invitation(invitation_id):
    result = current_app.services.get('invitation').cancel_invitation(invitation_id, current_user)
    if result.is_failure:
        return error_response(result, INVITATION_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@invitation_bp.route('/invitations/validate/<token>', methods=['GET'])
def validate_invitation(token):
    """Public: check a token before the signup form is shown"""
    result = current_app.services.get('invitation').validate_invitation(token)
    if result.is_failure:
        return error_response(result, INVITATION_STATUS_CODES)
    return jsonify({'invitation': result.data})


@invitation_bp.route('/invitations/accept/<token>', methods=['POST'])
def accept_invitation(token):
    """Public: create or reactivate the account behind an invitation"""
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('invitation').accept_invitation(
        token,
        data.get('firstName'),
        data.get('lastName'),
        data.get('password')
    )
    if result.is_failure:
        return error_response(result, INVITATION_STATUS_CODES)
    return jsonify(dict(result.data, success=True))
