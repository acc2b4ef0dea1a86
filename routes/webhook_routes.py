"""
Inbound webhooks: listing leads, Twilio SMS and chat-platform replies
"""

from flask import Blueprint, request, jsonify, current_app, Response
from utils.api_responses import error_response, side_effects_payload
from logging_config import get_logger, SecurityLogger

logger = get_logger(__name__)
security_logger = SecurityLogger()

webhook_bp = Blueprint('webhooks', __name__, url_prefix='/api')

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'

WEBHOOK_STATUS_CODES = {
    'PROFILE_NOT_FOUND': 404,
    'CONTACT_NOT_FOUND': 404,
    'CONVERSATION_NOT_FOUND': 404,
    'AUTOMATION_DISABLED': 400,
    'CONVERSATION_ENDED': 409,
    'CONVERSATION_NOT_BOOTSTRAPPED': 409,
    'CHAT_PLATFORM_ERROR': 502,
    'SMS_SEND_FAILED': 502,
    'SMS_NOT_CONFIGURED': 503,
}


@webhook_bp.route('/zillowcontact', methods=['POST'])
def zillow_contact():
    """Lead webhook from the listing site"""
    payload = request.get_json(silent=True)
    if payload is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400

    result = current_app.services.get('lead_intake').process_lead(payload)
    if result.is_failure:
        return error_response(result, WEBHOOK_STATUS_CODES)

    return jsonify({
        'success': True,
        'message': 'Contact created successfully',
        'data': result.data,
        'sideEffects': side_effects_payload(result),
    })


@webhook_bp.route('/botpress/initiate-outreach', methods=['POST'])
def initiate_outreach():
    data = request.get_json(silent=True) or {}
    contact_id = data.get('contactId')
    if not contact_id:
        return jsonify({'error': 'Contact ID is required'}), 400

    result = current_app.services.get('conversation_bootstrap').initiate_outreach(contact_id)
    if result.is_failure:
        return error_response(result, WEBHOOK_STATUS_CODES)

    outcome = result.data
    return jsonify({
        'success': True,
        'alreadyExists': outcome['already_exists'],
        'conversationId': outcome['conversation_id'],
        'botpressConversationId': outcome['botpress_conversation_id'],
        'botpressUserId': outcome['botpress_user_id'],
        'message': 'Conversation already exists' if outcome['already_exists'] else 'Outreach initiated',
    })


@webhook_bp.route('/botpress/webhook', methods=['POST'])
def botpress_webhook():
    """Bot reply to be delivered to the contact by SMS"""
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('outbound_message').send_reply(
        data.get('conversationId'),
        data.get('text'),
        metadata=data.get('metadata')
    )
    if result.is_failure:
        return error_response(result, WEBHOOK_STATUS_CODES)

    return jsonify({
        'success': True,
        'messageId': result.data['message_id'],
        'conversationId': result.data['conversation_id'],
    })


@webhook_bp.route('/twilio/webhook', methods=['POST'])
def twilio_webhook():
    """Inbound SMS from Twilio (form encoded)"""
    params = request.form.to_dict()

    signature = request.headers.get('X-Twilio-Signature')
    if signature:
        url = _public_webhook_url()
        if not current_app.services.get('twilio').validate_signature(url, params, signature):
            security_logger.log_webhook_signature_failure('twilio', url, request.remote_addr)
            return jsonify({'error': 'Invalid signature'}), 401

    result = current_app.services.get('inbound_message').handle_inbound_sms(params)
    if result.is_failure:
        return error_response(result, WEBHOOK_STATUS_CODES)

    return Response(EMPTY_TWIML, status=200, mimetype='application/xml')


def _public_webhook_url() -> str:
    """URL Twilio signed, rebuilt from the forwarded scheme and host."""
    proto = request.headers.get('X-Forwarded-Proto', request.scheme).split(',')[0].strip()
    host = request.headers.get('X-Forwarded-Host', request.host).split(',')[0].strip()
    return f"{proto}://{host}{current_app.config['TWILIO_WEBHOOK_PATH']}"
