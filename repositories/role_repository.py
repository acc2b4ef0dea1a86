"""
RoleRepository and UserRoleRepository - Data access for roles and role assignments
"""

from typing import List, Optional
from sqlalchemy import asc
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import Role, UserRole, Profile
import logging

logger = logging.getLogger(__name__)


class RoleRepository(BaseRepository[Role]):
    """Repository for Role data access"""

    def __init__(self, session):
        super().__init__(session, Role)

    def find_by_name(self, name: str) -> Optional[Role]:
        return self.find_one_by(name=name)

    def list_ordered(self) -> List[Role]:
        try:
            return self.session.query(Role).order_by(asc(Role.name)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing roles: {e}")
            raise


class UserRoleRepository(BaseRepository[UserRole]):
    """Repository for the (user, organization) -> role mapping"""

    def __init__(self, session):
        super().__init__(session, UserRole)

    def find_for_user(self, user_id: int, organization_id: int) -> Optional[UserRole]:
        return self.find_one_by(user_id=user_id, organization_id=organization_id)

    def get_role_name(self, user_id: int, organization_id: int) -> Optional[str]:
        """Name of the role a user holds in an organization, or None."""
        user_role = self.find_for_user(user_id, organization_id)
        if user_role and user_role.role:
            return user_role.role.name
        return None

    def upsert_role(self, user_id: int, organization_id: int, role_id: int) -> UserRole:
        """
        Set the user's role in an organization.

        Repeated calls for the same pair update the single existing row.
        """
        existing = self.find_for_user(user_id, organization_id)
        if existing:
            return self.update(existing, role_id=role_id)
        return self.create(user_id=user_id, organization_id=organization_id, role_id=role_id)

    def count_active_with_role(self, organization_id: int, role_name: str) -> int:
        """Number of active profiles holding a role in an organization."""
        try:
            return self.session.query(UserRole).join(
                Role, UserRole.role_id == Role.id
            ).join(
                Profile, UserRole.user_id == Profile.id
            ).filter(
                UserRole.organization_id == organization_id,
                Role.name == role_name,
                Profile.status == 'active'
            ).count()
        except SQLAlchemyError as e:
            logger.error(f"Error counting {role_name} users for organization {organization_id}: {e}")
            raise
