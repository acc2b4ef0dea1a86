"""
InboundMessageService - The conversation status gate for inbound SMS

Every inbound SMS is stored. It is forwarded to the chat platform only
when its conversation is bootstrapped and active; paused, ended and
not-started conversations keep the message locally and stop there.
"""

from typing import Optional, Dict, Any, Mapping
from repositories.contact_repository import ContactRepository
from repositories.conversation_repository import ConversationRepository
from repositories.message_repository import MessageRepository
from services.botpress_client import BotpressClient
from services.common.result import Result, run_side_effect
from services.enums import ConversationStatus, MessageDirection, DeliveryStatus
from utils.phone_utils import normalize_phone_number
from logging_config import get_logger

logger = get_logger(__name__)

REQUIRED_PARAMS = ('MessageSid', 'From', 'Body')


class InboundMessageService:
    """Stores inbound SMS and relays them to the chat platform"""

    def __init__(self,
                 contact_repository: Optional[ContactRepository] = None,
                 conversation_repository: Optional[ConversationRepository] = None,
                 message_repository: Optional[MessageRepository] = None,
                 botpress_client: Optional[BotpressClient] = None):
        self.contact_repository = contact_repository
        self.conversation_repository = conversation_repository
        self.message_repository = message_repository
        self.botpress_client = botpress_client

        if not all([contact_repository, conversation_repository, message_repository, botpress_client]):
            raise ValueError("InboundMessageService dependencies must be provided via dependency injection")

    def handle_inbound_sms(self, params: Mapping[str, Any]) -> Result[Dict[str, Any]]:
        """
        Process one inbound SMS webhook.

        Args:
            params: Form parameters posted by Twilio

        Returns:
            Result with {'message_id', 'conversation_id', 'relayed', 'status'}.
            CONVERSATION_NOT_BOOTSTRAPPED is returned after the message has
            been stored when the conversation has no remote id.
        """
        missing = [name for name in REQUIRED_PARAMS if not params.get(name)]
        if missing:
            return Result.failure(
                f"Missing required parameters: {', '.join(missing)}",
                code="VALIDATION_ERROR"
            )

        phone = normalize_phone_number(params.get('From'))
        contacts = self.contact_repository.find_by_phone(phone)
        if not contacts:
            logger.warning("Inbound SMS from unknown number", phone=phone)
            return Result.failure("Contact not found", code="CONTACT_NOT_FOUND")

        conversation = self.conversation_repository.find_for_phone_and_contacts(
            phone, [contact.id for contact in contacts]
        )
        if not conversation:
            logger.warning("Inbound SMS without conversation", phone=phone,
                           contact_ids=[contact.id for contact in contacts])
            return Result.failure("Conversation not found", code="CONVERSATION_NOT_FOUND")

        body = params.get('Body')
        try:
            message = self.message_repository.create(
                conversation_id=conversation.id,
                direction=MessageDirection.INBOUND.value,
                source='twilio',
                message_type='text',
                content=body,
                twilio_message_sid=params.get('MessageSid'),
                delivery_status=(params.get('MessageStatus') or DeliveryStatus.DELIVERED.value).lower(),
                is_read=False,
                message_metadata={
                    'from': params.get('From'),
                    'to': params.get('To'),
                    'numSegments': params.get('NumSegments'),
                }
            )
            self.message_repository.commit()
        except Exception as e:
            self.message_repository.rollback()
            logger.error("Failed to store inbound SMS", conversation_id=conversation.id, error=str(e))
            return Result.failure("Failed to store message", code="DATABASE_ERROR")

        data = {
            'message_id': message.id,
            'conversation_id': conversation.id,
            'relayed': False,
            'status': ConversationStatus.coerce(conversation.conversation_status).value,
        }

        if not conversation.botpress_conversation_id:
            logger.error("Inbound SMS for conversation without remote id", conversation_id=conversation.id)
            return Result.failure(
                "Conversation has not been started on the chat platform",
                code="CONVERSATION_NOT_BOOTSTRAPPED",
                metadata=data
            )

        status = ConversationStatus.coerce(conversation.conversation_status)
        if status != ConversationStatus.ACTIVE:
            logger.info("Inbound SMS stored without relay", conversation_id=conversation.id, status=status.value)
            return Result.success(data)

        relay = run_side_effect(
            'botpress_relay', self.botpress_client.relay_inbound_message,
            conversation.botpress_user_id,
            conversation.botpress_conversation_id,
            body,
            message_id=params.get('MessageSid')
        )
        data['relayed'] = relay.ok
        logger.info("Inbound SMS processed", conversation_id=conversation.id, relayed=relay.ok)
        return Result.success(data, side_effects=[relay])
