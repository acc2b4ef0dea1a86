"""
AuthIdentityRepository - Data access layer for login credentials
"""

from typing import Optional
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import AuthIdentity
import logging

logger = logging.getLogger(__name__)


class AuthIdentityRepository(BaseRepository[AuthIdentity]):
    """Repository for AuthIdentity data access"""

    def __init__(self, session):
        super().__init__(session, AuthIdentity)

    def find_by_email(self, email: str) -> Optional[AuthIdentity]:
        """Case-insensitive lookup of the identity registered for an email."""
        try:
            return self.session.query(AuthIdentity).filter(
                func.lower(AuthIdentity.email) == email.strip().lower()
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error finding identity by email: {e}")
            raise
