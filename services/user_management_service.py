"""
UserManagementService - Organization user administration

Covers the settings screens: user listing, deactivation, role changes,
property assignments, and the role and property pick lists.
"""

from typing import Optional, Dict, Any, List
from repositories.profile_repository import ProfileRepository
from repositories.role_repository import RoleRepository, UserRoleRepository
from repositories.property_repository import PropertyRepository
from repositories.property_assignment_repository import PropertyAssignmentRepository
from services.audit_service import AuditService
from services.common.result import Result, run_side_effect
from services.enums import AuditAction, ProfileStatus, RoleName
from utils.datetime_utils import format_utc_iso
from logging_config import get_logger

logger = get_logger(__name__)


class UserManagementService:
    """Admin operations on the users of an organization"""

    def __init__(self,
                 profile_repository: Optional[ProfileRepository] = None,
                 role_repository: Optional[RoleRepository] = None,
                 user_role_repository: Optional[UserRoleRepository] = None,
                 property_repository: Optional[PropertyRepository] = None,
                 property_assignment_repository: Optional[PropertyAssignmentRepository] = None,
                 audit_service: Optional[AuditService] = None):
        self.profile_repository = profile_repository
        self.role_repository = role_repository
        self.user_role_repository = user_role_repository
        self.property_repository = property_repository
        self.property_assignment_repository = property_assignment_repository
        self.audit_service = audit_service

        if not all([profile_repository, role_repository, user_role_repository,
                    property_repository, property_assignment_repository, audit_service]):
            raise ValueError("UserManagementService dependencies must be provided via dependency injection")

    def list_users(self, organization_id: int) -> Result[List[Dict[str, Any]]]:
        users = []
        for profile in self.profile_repository.list_by_organization(organization_id):
            user_role = self.user_role_repository.find_for_user(profile.id, organization_id)
            role = user_role.role if user_role else None
            users.append({
                'id': profile.id,
                'email': profile.email,
                'name': profile.display_name,
                'role': role.name if role else RoleName.USER.value,
                'roleId': role.id if role else None,
                'status': profile.status,
                'properties': [self._property_summary(p) for p in self._assigned_properties(profile.id)],
                'createdAt': format_utc_iso(profile.created_at),
            })
        return Result.success(users)

    def deactivate_user(self, actor, user_id: int) -> Result[Dict[str, Any]]:
        """
        Mark a user inactive; the account and its history stay in place.

        The acting admin cannot deactivate themselves, and the last active
        admin of an organization cannot be deactivated.
        """
        if user_id == actor.id:
            return Result.failure("Cannot remove your own account", code="CANNOT_MODIFY_SELF")

        target = self._get_member(user_id, actor.organization_id)
        if not target:
            return Result.failure("User not found in your organization", code="USER_NOT_FOUND")

        if target.status == ProfileStatus.INACTIVE.value:
            return Result.failure("User is already deactivated", code="INVALID_STATUS")

        if self._is_last_admin(target.id, actor.organization_id):
            return Result.failure("Cannot remove the last admin from organization", code="LAST_ADMIN")

        previous_status = target.status
        try:
            self.profile_repository.update(target, status=ProfileStatus.INACTIVE.value)
            self.profile_repository.commit()
        except Exception as e:
            self.profile_repository.rollback()
            logger.error("Failed to deactivate user", user_id=user_id, error=str(e))
            return Result.failure("Failed to deactivate user", code="DATABASE_ERROR")

        audit = run_side_effect(
            'audit', self.audit_service.record,
            AuditAction.USER_DEACTIVATED, actor.organization_id, actor.id,
            entity_type='profile', entity_id=target.id,
            details={
                'target_user_id': target.id,
                'target_user_email': target.email,
                'target_user_name': target.display_name,
                'previous_status': previous_status,
                'new_status': ProfileStatus.INACTIVE.value,
            }
        )
        logger.info("User deactivated", user_id=target.id, actor_id=actor.id)
        return Result.success({
            'message': 'User deactivated successfully. Historical data has been preserved.'
        }, side_effects=[audit])

    def change_role(self, actor, user_id: int, role_id: Any) -> Result[Dict[str, Any]]:
        if user_id == actor.id:
            return Result.failure("Cannot change your own role", code="CANNOT_MODIFY_SELF")

        if not role_id:
            return Result.failure("roleId is required", code="VALIDATION_ERROR")

        try:
            role = self.role_repository.get_by_id(int(role_id))
        except (TypeError, ValueError):
            role = None
        if not role:
            return Result.failure("Invalid role", code="INVALID_ROLE")

        target = self._get_member(user_id, actor.organization_id)
        if not target:
            return Result.failure("User not found in your organization", code="USER_NOT_FOUND")

        current = self.user_role_repository.find_for_user(target.id, actor.organization_id)
        old_role_id = current.role_id if current else None
        if role.name != RoleName.ADMIN.value and self._is_last_admin(target.id, actor.organization_id):
            return Result.failure("Cannot remove the last admin from organization", code="LAST_ADMIN")

        try:
            self.user_role_repository.upsert_role(target.id, actor.organization_id, role.id)
            self.user_role_repository.commit()
        except Exception as e:
            self.user_role_repository.rollback()
            logger.error("Failed to change role", user_id=user_id, error=str(e))
            return Result.failure("Failed to update user role", code="DATABASE_ERROR")

        audit = run_side_effect(
            'audit', self.audit_service.record,
            AuditAction.USER_ROLE_CHANGED, actor.organization_id, actor.id,
            entity_type='profile', entity_id=target.id,
            details={'target_user_id': target.id, 'old_role_id': old_role_id, 'new_role_id': role.id}
        )
        logger.info("User role changed", user_id=target.id, role=role.name)
        return Result.success({'message': 'User role updated', 'role': role.to_dict()}, side_effects=[audit])

    def get_user_properties(self, actor, user_id: int) -> Result[List[Dict[str, Any]]]:
        target = self._get_member(user_id, actor.organization_id)
        if not target:
            return Result.failure("User not found in your organization", code="USER_NOT_FOUND")
        return Result.success([p.to_dict() for p in self._assigned_properties(target.id)])

    def update_user_properties(self, actor, user_id: int, property_ids: Any) -> Result[Dict[str, Any]]:
        """
        Replace a user's property assignments.

        Only the difference is written: new ids are inserted, dropped ids are
        deleted and untouched assignments keep their rows. One audit row is
        written per added or removed property.
        """
        if not isinstance(property_ids, list):
            return Result.failure("propertyIds must be an array", code="VALIDATION_ERROR")

        target = self._get_member(user_id, actor.organization_id)
        if not target:
            return Result.failure("User not found in your organization", code="USER_NOT_FOUND")

        try:
            requested = list(dict.fromkeys(int(pid) for pid in property_ids))
        except (TypeError, ValueError):
            return Result.failure("propertyIds must contain property ids", code="VALIDATION_ERROR")

        known = set(self.property_repository.find_ids_in_organization(requested, actor.organization_id))
        unknown = [pid for pid in requested if pid not in known]
        if unknown:
            return Result.failure(
                "Some properties do not belong to your organization",
                code="INVALID_PROPERTIES",
                metadata={'invalidPropertyIds': unknown}
            )

        current = self.property_assignment_repository.list_property_ids(target.id)
        to_add = [pid for pid in requested if pid not in current]
        to_remove = [pid for pid in current if pid not in requested]

        try:
            if to_remove:
                self.property_assignment_repository.remove_for_user(target.id, to_remove)
            if to_add:
                self.property_assignment_repository.assign_many(
                    target.id, to_add, actor.organization_id, actor.id
                )
            self.property_assignment_repository.commit()
        except Exception as e:
            self.property_assignment_repository.rollback()
            logger.error("Failed to update property assignments", user_id=user_id, error=str(e))
            return Result.failure("Failed to update property assignments", code="DATABASE_ERROR")

        side_effects = []
        for action, ids in ((AuditAction.PROPERTY_UNASSIGNED, to_remove), (AuditAction.PROPERTY_ASSIGNED, to_add)):
            for property_id in ids:
                side_effects.append(run_side_effect(
                    'audit', self.audit_service.record,
                    action, actor.organization_id, actor.id,
                    entity_type='property_assignment', entity_id=target.id,
                    details={'target_user_id': target.id, 'property_id': property_id}
                ))

        logger.info("Property assignments updated", user_id=target.id,
                    added=len(to_add), removed=len(to_remove))
        return Result.success({
            'message': 'Property assignments updated',
            'added': len(to_add),
            'removed': len(to_remove),
        }, side_effects=side_effects)

    def list_roles(self) -> Result[List[Dict[str, Any]]]:
        return Result.success([role.to_dict() for role in self.role_repository.list_ordered()])

    def list_properties(self, organization_id: int) -> Result[List[Dict[str, Any]]]:
        properties = self.property_repository.list_active_for_organization(organization_id)
        return Result.success([p.to_dict() for p in properties])

    def _get_member(self, user_id: Any, organization_id: int):
        try:
            profile = self.profile_repository.get_by_id(int(user_id))
        except (TypeError, ValueError):
            return None
        if not profile or profile.organization_id != organization_id:
            return None
        return profile

    def _is_last_admin(self, user_id: int, organization_id: int) -> bool:
        if self.user_role_repository.get_role_name(user_id, organization_id) != RoleName.ADMIN.value:
            return False
        return self.user_role_repository.count_active_with_role(organization_id, RoleName.ADMIN.value) <= 1

    def _assigned_properties(self, user_id: int):
        assignments = self.property_assignment_repository.find_by(user_id=user_id)
        return [a.property for a in assignments if a.property is not None]

    @staticmethod
    def _property_summary(prop) -> Dict[str, Any]:
        return {'id': prop.id, 'address': prop.address, 'city': prop.city, 'state': prop.state}
