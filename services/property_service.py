"""
PropertyService - Resolves listing addresses to property rows
"""

from typing import Optional, Dict, Any
from repositories.property_repository import PropertyRepository
from repositories.property_assignment_repository import PropertyAssignmentRepository
from services.common.result import Result
from logging_config import get_logger

logger = get_logger(__name__)


def clean_address(address: Optional[str]) -> str:
    """Collapse whitespace in a street address."""
    return ' '.join((address or '').split())


class PropertyService:
    """Property matching and ownership"""

    def __init__(self,
                 property_repository: Optional[PropertyRepository] = None,
                 property_assignment_repository: Optional[PropertyAssignmentRepository] = None):
        self.property_repository = property_repository
        self.property_assignment_repository = property_assignment_repository

        if not self.property_repository or not self.property_assignment_repository:
            raise ValueError("Property repositories must be provided via dependency injection")

    def resolve_property(self,
                         organization_id: int,
                         address: str,
                         zip_code: str,
                         unit: Optional[str] = None,
                         city: Optional[str] = None,
                         state: Optional[str] = None,
                         created_by: Optional[int] = None,
                         listing_id: Optional[str] = None) -> Result[Dict[str, Any]]:
        """
        Find or create the property a lead is asking about.

        Priority: exact (address, zip, unit) -> address substring within the
        same zip -> new row. Nothing is committed here.

        Returns:
            Result with {'property': Property, 'match': 'exact' | 'fuzzy' | 'created'}
        """
        address = clean_address(address)
        zip_code = (zip_code or '').strip()
        unit = (unit or '').strip() or None

        if not address or not zip_code:
            return Result.failure("Address and zip code are required", code="VALIDATION_ERROR")

        exact = self.property_repository.find_exact(address, zip_code, unit, organization_id)
        if exact:
            logger.info("Matched property exactly", property_id=exact.id)
            return Result.success({'property': exact, 'match': 'exact'})

        fuzzy = self.property_repository.find_fuzzy(address, zip_code, organization_id)
        if fuzzy:
            logger.info("Matched property by address substring", property_id=fuzzy.id)
            return Result.success({'property': fuzzy, 'match': 'fuzzy'})

        created = self.property_repository.create(
            organization_id=organization_id,
            address=address,
            unit=unit,
            city=(city or '').strip() or None,
            state=(state or '').strip() or None,
            zip_code=zip_code,
            status='active',
            created_by=created_by,
            listing_id=listing_id
        )
        logger.info("Created property for lead", property_id=created.id)
        return Result.success({'property': created, 'match': 'created'})

    def assign_to_user(self, user_id: int, property_id: int, organization_id: int,
                       assigned_by: Optional[int] = None):
        """
        Give a user access to a property and commit.

        Existing assignments are left as they are.
        """
        existing = self.property_assignment_repository.find_one_by(user_id=user_id, property_id=property_id)
        if existing:
            return existing
        try:
            assignment = self.property_assignment_repository.create(
                user_id=user_id,
                property_id=property_id,
                organization_id=organization_id,
                assigned_by=assigned_by
            )
            self.property_assignment_repository.commit()
            return assignment
        except Exception:
            self.property_assignment_repository.rollback()
            raise
