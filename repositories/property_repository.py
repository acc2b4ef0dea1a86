"""
PropertyRepository - Data access layer for Property entities
"""

from typing import List, Optional, Iterable
from sqlalchemy import func, asc
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import Property
import logging

logger = logging.getLogger(__name__)


class PropertyRepository(BaseRepository[Property]):
    """Repository for Property data access"""

    def __init__(self, session):
        super().__init__(session, Property)

    def find_exact(self, address: str, zip_code: str, unit: Optional[str],
                   organization_id: int) -> Optional[Property]:
        """
        Match on address, zip, unit and organization.

        Address comparison ignores case; a missing unit only matches rows without one.
        """
        try:
            query = self.session.query(Property).filter(
                func.lower(Property.address) == address.strip().lower(),
                Property.zip_code == zip_code,
                Property.organization_id == organization_id
            )
            if unit:
                query = query.filter(func.lower(Property.unit) == unit.strip().lower())
            else:
                query = query.filter(Property.unit.is_(None))
            return query.first()
        except SQLAlchemyError as e:
            logger.error(f"Error finding property by exact address: {e}")
            raise

    def find_fuzzy(self, address: str, zip_code: str, organization_id: int) -> Optional[Property]:
        """Match on an address substring within the same zip and organization."""
        pattern = f"%{address.strip()}%"
        try:
            return self.session.query(Property).filter(
                Property.address.ilike(pattern),
                Property.zip_code == zip_code,
                Property.organization_id == organization_id
            ).order_by(asc(Property.id)).first()
        except SQLAlchemyError as e:
            logger.error(f"Error finding property by fuzzy address: {e}")
            raise

    def list_active_for_organization(self, organization_id: int) -> List[Property]:
        try:
            return self.session.query(Property).filter(
                Property.organization_id == organization_id,
                Property.status == 'active'
            ).order_by(asc(Property.address)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing properties for organization {organization_id}: {e}")
            raise

    def find_ids_in_organization(self, property_ids: Iterable[int], organization_id: int) -> List[int]:
        """Subset of the given ids that belong to the organization."""
        ids = list(property_ids)
        if not ids:
            return []
        try:
            rows = self.session.query(Property.id).filter(
                Property.id.in_(ids),
                Property.organization_id == organization_id
            ).all()
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error checking property ownership: {e}")
            raise
