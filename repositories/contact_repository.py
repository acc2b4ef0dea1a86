"""
ContactRepository - Data access layer for Contact (lead) entities
"""

from typing import List
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import Contact
import logging

logger = logging.getLogger(__name__)


class ContactRepository(BaseRepository[Contact]):
    """Repository for Contact data access"""

    def __init__(self, session):
        super().__init__(session, Contact)

    def find_by_phone(self, phone: str) -> List[Contact]:
        """
        All contacts with a normalized phone number, newest first.

        Leads are never de-duplicated, so the same person may own several rows.
        """
        try:
            return self.session.query(Contact).filter(
                Contact.phone == phone
            ).order_by(desc(Contact.created_at), desc(Contact.id)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error finding contacts by phone: {e}")
            raise
