"""
AuditLogRepository - Data access layer for the audit trail
"""

from typing import List
from sqlalchemy import asc
from sqlalchemy.exc import SQLAlchemyError
from repositories.base_repository import BaseRepository
from crm_database import AuditLog
import logging

logger = logging.getLogger(__name__)


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for AuditLog data access"""

    def __init__(self, session):
        super().__init__(session, AuditLog)

    def list_for_entity(self, entity_type: str, entity_id: int) -> List[AuditLog]:
        try:
            return self.session.query(AuditLog).filter(
                AuditLog.entity_type == entity_type,
                AuditLog.entity_id == entity_id
            ).order_by(asc(AuditLog.id)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing audit logs for {entity_type} {entity_id}: {e}")
            raise
