"""
PropertyAssignmentRepository - Data access for user <-> property access rows
"""

from typing import List, Iterable, Optional
from repositories.base_repository import BaseRepository
from crm_database import PropertyAssignment


class PropertyAssignmentRepository(BaseRepository[PropertyAssignment]):
    """Repository for PropertyAssignment data access"""

    def __init__(self, session):
        super().__init__(session, PropertyAssignment)

    def list_property_ids(self, user_id: int) -> List[int]:
        return [assignment.property_id for assignment in self.find_by(user_id=user_id)]

    def assign_many(self, user_id: int, property_ids: Iterable[int], organization_id: int,
                    assigned_by: Optional[int]) -> List[PropertyAssignment]:
        return self.create_many([
            {
                'user_id': user_id,
                'property_id': property_id,
                'organization_id': organization_id,
                'assigned_by': assigned_by,
            }
            for property_id in property_ids
        ])

    def remove_for_user(self, user_id: int, property_ids: Optional[Iterable[int]] = None) -> int:
        """Delete a user's assignments; all of them when property_ids is None."""
        filters = {'user_id': user_id}
        if property_ids is not None:
            ids = list(property_ids)
            if not ids:
                return 0
            filters['property_id'] = ids
        return self.delete_many(filters)
