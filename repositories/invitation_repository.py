"""
InvitationRepository - Data access layer for Invitation entities
Isolates all database queries related to organization invitations
"""

from typing import List, Optional, Iterable
from sqlalchemy import func, desc
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import Invitation
import logging

logger = logging.getLogger(__name__)


class InvitationRepository(BaseRepository[Invitation]):
    """Repository for Invitation data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, Invitation)

    def find_by_token(self, token: str) -> Optional[Invitation]:
        """
        Find invitation by token string.

        Args:
            token: Token string to search for

        Returns:
            Invitation or None
        """
        return self.find_one_by(token=token)

    def find_pending_for_emails(self, organization_id: int, emails: Iterable[str]) -> List[Invitation]:
        """Pending invitations in an organization addressed to any of the emails."""
        lowered = [email.lower() for email in emails]
        if not lowered:
            return []
        try:
            return self.session.query(Invitation).filter(
                Invitation.organization_id == organization_id,
                Invitation.status == 'pending',
                func.lower(Invitation.email).in_(lowered)
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error finding pending invitations: {e}")
            raise

    def find_pending_for_organization(self, organization_id: int) -> List[Invitation]:
        """Pending invitations of an organization, newest first."""
        try:
            return self.session.query(Invitation).filter(
                Invitation.organization_id == organization_id,
                Invitation.status == 'pending'
            ).order_by(desc(Invitation.created_at), desc(Invitation.id)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing pending invitations: {e}")
            raise

    def find_in_organization(self, invitation_id: int, organization_id: int) -> Optional[Invitation]:
        return self.find_one_by(id=invitation_id, organization_id=organization_id)
