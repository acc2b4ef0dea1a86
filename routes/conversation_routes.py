"""
Conversation status and automation routes
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
from auth_utils import api_login_required
from utils.api_responses import error_response

conversation_bp = Blueprint('conversations', __name__, url_prefix='/api')

CONVERSATION_STATUS_CODES = {
    'CONTACT_NOT_FOUND': 404,
    'CONVERSATION_NOT_FOUND': 404,
    'INVALID_TRANSITION': 400,
    'INVALID_STATUS': 400,
}


def _actor_id():
    return current_user.id if current_user.is_authenticated else None


@conversation_bp.route('/botpress/pause-conversation', methods=['POST'])
def pause_conversation():
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('conversation').pause_conversation(
        data.get('contactId'), reason=data.get('reason'), actor_id=_actor_id()
    )
    if result.is_failure:
        return error_response(result, CONVERSATION_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@conversation_bp.route('/botpress/resume-conversation', methods=['POST'])
def resume_conversation():
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('conversation').resume_conversation(
        data.get('contactId'), actor_id=_actor_id()
    )
    if result.is_failure:
        return error_response(result, CONVERSATION_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@conversation_bp.route('/contacts/<int:contact_id>/conversation/end', methods=['POST'])
@api_login_required
def end_conversation(contact_id):
    result = current_app.services.get('conversation').end_conversation(contact_id)
    if result.is_failure:
        return error_response(result, CONVERSATION_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@conversation_bp.route('/contacts/<int:contact_id>/automation', methods=['GET'])
@api_login_required
def get_automation(contact_id):
    result = current_app.services.get('conversation').get_automation(contact_id)
    if result.is_failure:
        return error_response(result, CONVERSATION_STATUS_CODES)
    return jsonify(result.data)


@conversation_bp.route('/contacts/<int:contact_id>/automation', methods=['POST'])
@api_login_required
def set_automation(contact_id):
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('conversation').set_automation(
        contact_id,
        data.get('automation_enabled'),
        reason=data.get('reason'),
        actor_id=current_user.id
    )
    if result.is_failure:
        return error_response(result, CONVERSATION_STATUS_CODES)
    return jsonify(dict(result.data, success=True))


@conversation_bp.route('/contacts/<int:contact_id>/conversation-status', methods=['GET'])
@api_login_required
def conversation_status(contact_id):
    result = current_app.services.get('conversation').get_conversation_status(contact_id)
    if result.is_failure:
        return error_response(result, CONVERSATION_STATUS_CODES)
    return jsonify(result.data)
