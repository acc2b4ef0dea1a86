"""
ConversationBootstrapService - Starts the automated SMS conversation for a lead

Creates the chat-platform user and conversation, pushes the contact's details
into the conversation state, sends the greeting and stores the remote ids on
the local conversation row. A conversation that already carries remote ids is
left alone, so repeated calls never send a second greeting.
"""

from typing import Optional, Dict, Any
from repositories.contact_repository import ContactRepository
from repositories.conversation_repository import ConversationRepository
from repositories.qualification_status_repository import QualificationStatusRepository
from services.botpress_client import BotpressClient, BotpressAPIError
from services.common.result import Result
from services.enums import ConversationStatus
from utils.datetime_utils import utc_now
from logging_config import get_logger

logger = get_logger(__name__)

GREETING_TEMPLATE = (
    "Hi, is this {first_name}? I'm {assistant_name}, a virtual assistant for {property_label}. "
    "I saw you were interested in the property. Would you like to schedule a tour?"
)


class ConversationBootstrapService:
    """Outbound handshake with the chat platform"""

    def __init__(self,
                 contact_repository: Optional[ContactRepository] = None,
                 conversation_repository: Optional[ConversationRepository] = None,
                 qualification_status_repository: Optional[QualificationStatusRepository] = None,
                 botpress_client: Optional[BotpressClient] = None,
                 assistant_name: str = 'Alex'):
        self.contact_repository = contact_repository
        self.conversation_repository = conversation_repository
        self.qualification_status_repository = qualification_status_repository
        self.botpress_client = botpress_client
        self.assistant_name = assistant_name

        if not all([contact_repository, conversation_repository, qualification_status_repository, botpress_client]):
            raise ValueError("ConversationBootstrapService dependencies must be provided via dependency injection")

    def initiate_outreach(self, contact_id: Any, timeout: Optional[float] = None) -> Result[Dict[str, Any]]:
        """
        Bootstrap the remote conversation for a contact.

        Args:
            contact_id: Local contact id
            timeout: Per-request timeout for chat-platform calls

        Returns:
            Result with the local and remote ids. On a chat-platform failure
            automation is switched off for the contact and CHAT_PLATFORM_ERROR
            is returned.
        """
        try:
            contact = self.contact_repository.get_by_id(int(contact_id))
        except (TypeError, ValueError):
            return Result.failure("Contact ID is required", code="VALIDATION_ERROR")

        if not contact:
            return Result.failure("Contact not found", code="CONTACT_NOT_FOUND")

        qualification = self.qualification_status_repository.find_by_contact(contact.id)
        if not qualification or not qualification.automation_enabled:
            return Result.failure("Automation is not enabled for this contact", code="AUTOMATION_DISABLED")

        try:
            conversation = self.conversation_repository.find_latest_for_contact(contact.id, contact.phone)
            if not conversation:
                conversation = self.conversation_repository.create(
                    contact_id=contact.id,
                    organization_id=contact.organization_id,
                    user_id=contact.user_id,
                    phone_number=contact.phone,
                    conversation_status=ConversationStatus.NOT_STARTED.value
                )
                self.conversation_repository.commit()
        except Exception as e:
            self.conversation_repository.rollback()
            logger.error("Failed to prepare conversation", contact_id=contact.id, error=str(e))
            return Result.failure("Failed to create conversation", code="DATABASE_ERROR")

        if conversation.botpress_conversation_id and conversation.botpress_user_id:
            logger.info("Conversation already bootstrapped", conversation_id=conversation.id)
            return Result.success({
                'already_exists': True,
                'conversation_id': conversation.id,
                'botpress_conversation_id': conversation.botpress_conversation_id,
                'botpress_user_id': conversation.botpress_user_id,
            })

        current = ConversationStatus.coerce(conversation.conversation_status)
        if current == ConversationStatus.ENDED:
            return Result.failure("Conversation has ended", code="CONVERSATION_ENDED")

        try:
            remote_user_id, remote_conversation_id = self._run_handshake(contact, conversation, timeout)
        except BotpressAPIError as e:
            logger.error("Botpress outreach failed", contact_id=contact.id, error=str(e))
            self._disable_automation(contact.id)
            return Result.failure(f"Failed to initiate Botpress conversation: {e}", code="CHAT_PLATFORM_ERROR")

        try:
            updates = {
                'botpress_conversation_id': remote_conversation_id,
                'botpress_user_id': remote_user_id,
                'last_outreach_attempt': utc_now(),
            }
            if current == ConversationStatus.NOT_STARTED:
                updates['conversation_status'] = current.assert_transition(ConversationStatus.ACTIVE).value
            self.conversation_repository.update(conversation, **updates)
            self.conversation_repository.commit()
        except Exception as e:
            self.conversation_repository.rollback()
            logger.error("Failed to store Botpress ids", conversation_id=conversation.id, error=str(e))
            self._disable_automation(contact.id)
            return Result.failure("Failed to update conversation with Botpress IDs", code="DATABASE_ERROR")

        logger.info("Botpress outreach initiated", conversation_id=conversation.id,
                    botpress_conversation_id=remote_conversation_id)
        return Result.success({
            'already_exists': False,
            'conversation_id': conversation.id,
            'botpress_conversation_id': remote_conversation_id,
            'botpress_user_id': remote_user_id,
        })

    def greeting_for(self, contact) -> str:
        first_name = contact.first_name or contact.name or 'there'
        property_label = 'the property'
        if contact.property is not None and contact.property.address:
            property_label = contact.property.address
        return GREETING_TEMPLATE.format(
            first_name=first_name,
            assistant_name=self.assistant_name,
            property_label=property_label
        )

    def _run_handshake(self, contact, conversation, timeout: Optional[float]):
        client = self.botpress_client
        remote_user_id = client.get_or_create_user(tags={"contactId": str(contact.id)}, timeout=timeout)
        remote_conversation_id = client.create_conversation(
            channel="webhook",
            tags={"id": str(conversation.id)},
            timeout=timeout
        )
        client.add_participant(remote_conversation_id, remote_user_id, timeout=timeout)
        client.set_state("conversation", remote_conversation_id, "contactContext", {
            "firstName": contact.first_name,
            "lastName": contact.last_name,
            "fullName": contact.name,
            "phone": contact.phone,
            "email": contact.email,
            "contactId": contact.id,
        }, timeout=timeout)
        client.create_message(remote_conversation_id, remote_user_id, self.greeting_for(contact), timeout=timeout)
        return remote_user_id, remote_conversation_id

    def _disable_automation(self, contact_id: int) -> None:
        try:
            self.qualification_status_repository.upsert(contact_id, automation_enabled=False)
            self.qualification_status_repository.commit()
            logger.warning("Automation disabled after Botpress failure", contact_id=contact_id)
        except Exception as e:
            self.qualification_status_repository.rollback()
            logger.error("Failed to disable automation", contact_id=contact_id, error=str(e))
