"""
OrganizationRepository - Data access layer for Organization entities
"""

from repositories.base_repository import BaseRepository
from crm_database import Organization


class OrganizationRepository(BaseRepository[Organization]):
    """Repository for Organization data access"""

    def __init__(self, session):
        super().__init__(session, Organization)
