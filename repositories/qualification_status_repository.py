"""
QualificationStatusRepository - Data access for per-contact qualification and automation flags
"""

from typing import Optional
from repositories.base_repository import BaseRepository
from crm_database import QualificationStatus


class QualificationStatusRepository(BaseRepository[QualificationStatus]):
    """Repository for QualificationStatus data access"""

    def __init__(self, session):
        super().__init__(session, QualificationStatus)

    def find_by_contact(self, contact_id: int) -> Optional[QualificationStatus]:
        return self.find_one_by(contact_id=contact_id)

    def upsert(self, contact_id: int, **values) -> QualificationStatus:
        """Create or update the single row keyed on contact_id."""
        existing = self.find_by_contact(contact_id)
        if existing:
            return self.update(existing, **values)
        return self.create(contact_id=contact_id, **values)

    def is_automation_enabled(self, contact_id: int) -> bool:
        status = self.find_by_contact(contact_id)
        return bool(status and status.automation_enabled)
