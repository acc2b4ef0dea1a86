"""
ProfileRepository - Data access layer for user profiles
Isolates all database queries related to organization members
"""

from typing import List, Optional, Iterable
from sqlalchemy import func, asc, desc
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import Profile
import logging

logger = logging.getLogger(__name__)


class ProfileRepository(BaseRepository[Profile]):
    """Repository for Profile data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, Profile)

    def find_by_email_in_organization(self, email: str, organization_id: int) -> Optional[Profile]:
        """
        Find the profile for an email within one organization.

        Args:
            email: Email address (matched case-insensitively)
            organization_id: Tenant to search in

        Returns:
            Profile or None
        """
        try:
            return self.session.query(Profile).filter(
                func.lower(Profile.email) == email.strip().lower(),
                Profile.organization_id == organization_id
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error finding profile by email in organization: {e}")
            raise

    def find_by_emails_in_organization(self, emails: Iterable[str], organization_id: int) -> List[Profile]:
        """Find every profile in the organization whose email is in the list."""
        lowered = [email.strip().lower() for email in emails]
        if not lowered:
            return []
        try:
            return self.session.query(Profile).filter(
                func.lower(Profile.email).in_(lowered),
                Profile.organization_id == organization_id
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error finding profiles by emails: {e}")
            raise

    def find_by_email(self, email: str) -> Optional[Profile]:
        """
        Find a profile by email across all organizations.

        Active profiles win over inactive ones, then the oldest account.
        Used to route inbound lead webhooks to the owning agent.
        """
        try:
            return self.session.query(Profile).filter(
                func.lower(Profile.email) == email.strip().lower()
            ).order_by(
                desc(Profile.status == 'active'),
                asc(Profile.created_at)
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error finding profile by email: {e}")
            raise

    def list_by_organization(self, organization_id: int) -> List[Profile]:
        """All profiles of an organization ordered by email."""
        try:
            return self.session.query(Profile).filter(
                Profile.organization_id == organization_id
            ).order_by(asc(Profile.email)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing profiles for organization {organization_id}: {e}")
            raise
