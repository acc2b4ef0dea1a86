"""
MessageRepository - Data access layer for SMS message rows
"""

from typing import List
from sqlalchemy import asc
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import Message
import logging

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository[Message]):
    """Repository for Message data access"""

    def __init__(self, session):
        super().__init__(session, Message)

    def list_for_conversation(self, conversation_id: int) -> List[Message]:
        try:
            return self.session.query(Message).filter(
                Message.conversation_id == conversation_id
            ).order_by(asc(Message.created_at), asc(Message.id)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing messages for conversation {conversation_id}: {e}")
            raise
