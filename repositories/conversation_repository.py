"""
ConversationRepository - Data access layer for Conversation entities
"""

from typing import Optional, Iterable
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import Conversation
import logging

logger = logging.getLogger(__name__)


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, Conversation)

    def find_latest_for_contact(self, contact_id: int, phone_number: Optional[str] = None) -> Optional[Conversation]:
        """
        Most recent conversation for a contact.

        Args:
            contact_id: Contact the conversation belongs to
            phone_number: Restrict to conversations on this number when given
        """
        try:
            query = self.session.query(Conversation).filter(Conversation.contact_id == contact_id)
            if phone_number is not None:
                query = query.filter(Conversation.phone_number == phone_number)
            return query.order_by(desc(Conversation.created_at), desc(Conversation.id)).first()
        except SQLAlchemyError as e:
            logger.error(f"Error finding conversation for contact {contact_id}: {e}")
            raise

    def find_for_phone_and_contacts(self, phone_number: str, contact_ids: Iterable[int]) -> Optional[Conversation]:
        """
        Latest conversation on a phone number owned by any of the given contacts.

        Contacts are expected newest first; the first one that has a
        conversation wins.
        """
        for contact_id in contact_ids:
            conversation = self.find_latest_for_contact(contact_id, phone_number)
            if conversation:
                return conversation
        return None
