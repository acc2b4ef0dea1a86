"""
ConversationService - Conversation status changes and the automation toggle

Every status change goes through ConversationStatus.assert_transition; the
per-contact automation flag lives on the qualification status row.
"""

from typing import Optional, Dict, Any
from repositories.contact_repository import ContactRepository
from repositories.conversation_repository import ConversationRepository
from repositories.qualification_status_repository import QualificationStatusRepository
from services.common.result import Result
from services.enums import ConversationStatus, QualificationState, StatusTransitionError
from utils.datetime_utils import utc_now
from logging_config import get_logger

logger = get_logger(__name__)

USER_PAUSED = 'user_paused'
AUTOMATION_DISABLED = 'automation_disabled'


class ConversationService:
    """Pause, resume and end conversations; read and set automation"""

    def __init__(self,
                 contact_repository: Optional[ContactRepository] = None,
                 conversation_repository: Optional[ConversationRepository] = None,
                 qualification_status_repository: Optional[QualificationStatusRepository] = None):
        self.contact_repository = contact_repository
        self.conversation_repository = conversation_repository
        self.qualification_status_repository = qualification_status_repository

        if not all([contact_repository, conversation_repository, qualification_status_repository]):
            raise ValueError("ConversationService dependencies must be provided via dependency injection")

    def pause_conversation(self, contact_id: Any, reason: Optional[str] = None,
                           actor_id: Optional[int] = None) -> Result[Dict[str, Any]]:
        """
        Pause the latest conversation of a contact and switch automation off.

        Pausing an already paused conversation succeeds without changes.
        """
        found = self._latest_conversation(contact_id)
        if found.is_failure:
            return found
        conversation = found.data

        current = ConversationStatus.coerce(conversation.conversation_status)
        if current == ConversationStatus.PAUSED:
            return Result.success({
                'conversation': conversation.to_dict(),
                'message': 'Conversation is already paused'
            })

        try:
            target = current.assert_transition(ConversationStatus.PAUSED)
        except StatusTransitionError as e:
            return Result.failure(str(e), code="INVALID_TRANSITION")

        try:
            self.conversation_repository.update(
                conversation,
                conversation_status=target.value,
                automation_pause_reason=reason or USER_PAUSED
            )
            self.qualification_status_repository.upsert(
                conversation.contact_id, automation_enabled=False, updated_by=actor_id
            )
            self.conversation_repository.commit()
        except Exception as e:
            self.conversation_repository.rollback()
            logger.error("Failed to pause conversation", conversation_id=conversation.id, error=str(e))
            return Result.failure("Failed to pause conversation", code="DATABASE_ERROR")

        logger.info("Conversation paused", conversation_id=conversation.id, reason=reason or USER_PAUSED)
        return Result.success({'conversation': conversation.to_dict(), 'message': 'Conversation paused'})

    def resume_conversation(self, contact_id: Any, actor_id: Optional[int] = None) -> Result[Dict[str, Any]]:
        """Resume a paused conversation and switch automation back on."""
        found = self._latest_conversation(contact_id)
        if found.is_failure:
            return found
        conversation = found.data

        current = ConversationStatus.coerce(conversation.conversation_status)
        if current != ConversationStatus.PAUSED:
            return Result.failure(
                f"Conversation is not paused (status: {current.value})", code="INVALID_STATUS"
            )

        target = current.assert_transition(ConversationStatus.ACTIVE)
        try:
            self.conversation_repository.update(
                conversation,
                conversation_status=target.value,
                automation_pause_reason=None
            )
            self.qualification_status_repository.upsert(
                conversation.contact_id, automation_enabled=True, updated_by=actor_id
            )
            self.conversation_repository.commit()
        except Exception as e:
            self.conversation_repository.rollback()
            logger.error("Failed to resume conversation", conversation_id=conversation.id, error=str(e))
            return Result.failure("Failed to resume conversation", code="DATABASE_ERROR")

        logger.info("Conversation resumed", conversation_id=conversation.id)
        return Result.success({'conversation': conversation.to_dict(), 'message': 'Conversation resumed'})

    def end_conversation(self, contact_id: Any) -> Result[Dict[str, Any]]:
        found = self._latest_conversation(contact_id)
        if found.is_failure:
            return found
        conversation = found.data

        current = ConversationStatus.coerce(conversation.conversation_status)
        try:
            target = current.assert_transition(ConversationStatus.ENDED)
        except StatusTransitionError as e:
            return Result.failure(str(e), code="INVALID_TRANSITION")

        try:
            self.conversation_repository.update(conversation, conversation_status=target.value, ended_at=utc_now())
            self.conversation_repository.commit()
        except Exception as e:
            self.conversation_repository.rollback()
            logger.error("Failed to end conversation", conversation_id=conversation.id, error=str(e))
            return Result.failure("Failed to end conversation", code="DATABASE_ERROR")

        logger.info("Conversation ended", conversation_id=conversation.id)
        return Result.success({'conversation': conversation.to_dict(), 'message': 'Conversation ended'})

    def get_conversation_status(self, contact_id: Any) -> Result[Dict[str, Any]]:
        contact = self._get_contact(contact_id)
        if contact is None:
            return Result.failure("Contact not found", code="CONTACT_NOT_FOUND")

        conversation = self.conversation_repository.find_latest_for_contact(contact.id)
        if not conversation:
            return Result.success({'status': ConversationStatus.NOT_STARTED.value})

        return Result.success({
            'status': ConversationStatus.coerce(conversation.conversation_status).value,
            'conversation_id': conversation.id,
            'automation_pause_reason': conversation.automation_pause_reason,
            'has_remote': conversation.is_bootstrapped,
        })

    def get_automation(self, contact_id: Any) -> Result[Dict[str, Any]]:
        contact = self._get_contact(contact_id)
        if contact is None:
            return Result.failure("Contact not found", code="CONTACT_NOT_FOUND")

        status = self.qualification_status_repository.find_by_contact(contact.id)
        if not status:
            return Result.success({
                'automation_enabled': True,
                'qualification_status': QualificationState.NOT_STARTED.value,
            })
        return Result.success({
            'automation_enabled': bool(status.automation_enabled),
            'qualification_status': status.qualification_status,
        })

    def set_automation(self, contact_id: Any, enabled: Any, reason: Optional[str] = None,
                       actor_id: Optional[int] = None) -> Result[Dict[str, Any]]:
        """
        Turn automation on or off for a contact.

        Disabling automation also pauses an active conversation with the
        reason 'automation_disabled'. Enabling never resumes a paused one.
        """
        if not isinstance(enabled, bool):
            return Result.failure("automation_enabled must be a boolean", code="VALIDATION_ERROR")

        contact = self._get_contact(contact_id)
        if contact is None:
            return Result.failure("Contact not found", code="CONTACT_NOT_FOUND")

        paused_conversation_id = None
        try:
            self.qualification_status_repository.upsert(
                contact.id, automation_enabled=enabled, updated_by=actor_id
            )
            if not enabled:
                conversation = self.conversation_repository.find_latest_for_contact(contact.id)
                if conversation and ConversationStatus.coerce(conversation.conversation_status) == ConversationStatus.ACTIVE:
                    target = ConversationStatus.ACTIVE.assert_transition(ConversationStatus.PAUSED)
                    self.conversation_repository.update(
                        conversation,
                        conversation_status=target.value,
                        automation_pause_reason=reason or AUTOMATION_DISABLED
                    )
                    paused_conversation_id = conversation.id
            self.qualification_status_repository.commit()
        except Exception as e:
            self.qualification_status_repository.rollback()
            logger.error("Failed to update automation", contact_id=contact.id, error=str(e))
            return Result.failure("Failed to update automation", code="DATABASE_ERROR")

        logger.info("Automation updated", contact_id=contact.id, automation_enabled=enabled,
                    paused_conversation_id=paused_conversation_id)
        return Result.success({
            'automation_enabled': enabled,
            'paused_conversation_id': paused_conversation_id,
        })

    def _get_contact(self, contact_id: Any):
        try:
            return self.contact_repository.get_by_id(int(contact_id))
        except (TypeError, ValueError):
            return None

    def _latest_conversation(self, contact_id: Any) -> Result:
        if contact_id in (None, ''):
            return Result.failure("Contact ID is required", code="VALIDATION_ERROR")
        contact = self._get_contact(contact_id)
        if contact is None:
            return Result.failure("Contact not found", code="CONTACT_NOT_FOUND")
        conversation = self.conversation_repository.find_latest_for_contact(contact.id)
        if not conversation:
            return Result.failure("No conversation found for contact", code="CONVERSATION_NOT_FOUND")
        return Result.success(conversation)
