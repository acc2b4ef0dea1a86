"""
OutboundMessageService - Delivers chat-platform replies as SMS
"""

from typing import Optional, Dict, Any
from repositories.conversation_repository import ConversationRepository
from repositories.message_repository import MessageRepository
from services.common.result import Result
from services.enums import ConversationStatus, MessageDirection, DeliveryStatus
from services.twilio_service import TwilioService
from logging_config import get_logger

logger = get_logger(__name__)


class OutboundMessageService:
    """Stores a bot reply, sends it through Twilio and records the delivery outcome"""

    def __init__(self,
                 conversation_repository: Optional[ConversationRepository] = None,
                 message_repository: Optional[MessageRepository] = None,
                 twilio_service: Optional[TwilioService] = None):
        self.conversation_repository = conversation_repository
        self.message_repository = message_repository
        self.twilio_service = twilio_service

        if not all([conversation_repository, message_repository, twilio_service]):
            raise ValueError("OutboundMessageService dependencies must be provided via dependency injection")

    def send_reply(self, conversation_id: Any, text: Optional[str],
                   metadata: Optional[Dict[str, Any]] = None) -> Result[Dict[str, Any]]:
        """
        Send a bot reply to the contact of a local conversation.

        Args:
            conversation_id: Local conversation id
            text: Reply text
            metadata: Extra data sent along by the chat platform

        Returns:
            Result with {'message_id', 'conversation_id', 'sid'}; SMS_SEND_FAILED
            after the message row has been marked failed
        """
        if not conversation_id or not text:
            return Result.failure("Missing required fields: conversationId and text", code="VALIDATION_ERROR")

        try:
            conversation = self.conversation_repository.get_by_id(int(conversation_id))
        except (TypeError, ValueError):
            conversation = None
        if not conversation:
            return Result.failure("Conversation not found", code="CONVERSATION_NOT_FOUND")

        if ConversationStatus.coerce(conversation.conversation_status) == ConversationStatus.ENDED:
            return Result.failure("Conversation has ended", code="CONVERSATION_ENDED")

        if not conversation.phone_number:
            return Result.failure("Conversation has no phone number", code="VALIDATION_ERROR")

        metadata = dict(metadata) if isinstance(metadata, dict) else {}
        try:
            message = self.message_repository.create(
                conversation_id=conversation.id,
                direction=MessageDirection.OUTBOUND.value,
                source='botpress',
                message_type='text',
                content=text,
                botpress_message_id=metadata.get('messageId'),
                delivery_status=DeliveryStatus.PENDING.value,
                message_metadata=metadata
            )
            self.message_repository.commit()
        except Exception as e:
            self.message_repository.rollback()
            logger.error("Failed to store outbound message", conversation_id=conversation.id, error=str(e))
            return Result.failure("Failed to store message", code="DATABASE_ERROR")

        sent = self.twilio_service.send_sms(conversation.phone_number, text)

        try:
            if sent.is_success:
                self.message_repository.update(
                    message,
                    delivery_status=DeliveryStatus.SENT.value,
                    twilio_message_sid=sent.data['sid']
                )
            else:
                self.message_repository.update(
                    message,
                    delivery_status=DeliveryStatus.FAILED.value,
                    message_metadata=dict(metadata, twilio_error=sent.error)
                )
            self.message_repository.commit()
        except Exception as e:
            self.message_repository.rollback()
            logger.error("Failed to record delivery status", message_id=message.id, error=str(e))

        if sent.is_failure:
            logger.error("Bot reply not delivered", conversation_id=conversation.id, error=sent.error)
            return Result.failure(sent.error, code="SMS_SEND_FAILED",
                                  metadata={'message_id': message.id})

        logger.info("Bot reply delivered", conversation_id=conversation.id, sid=sent.data['sid'])
        return Result.success({
            'message_id': message.id,
            'conversation_id': conversation.id,
            'sid': sent.data['sid'],
        })
