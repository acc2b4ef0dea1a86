"""
AuditService - Writes rows to the audit trail

Audit rows are written after the primary change has been committed and are
committed on their own, so a failed audit write never undoes business data.
Callers run them through run_side_effect().
"""

from typing import Optional, Dict, Any, Union
from flask import has_request_context, request
from repositories.audit_log_repository import AuditLogRepository
from services.enums import AuditAction
from logging_config import get_logger

logger = get_logger(__name__)


class AuditService:
    """Service for recording audit events"""

    def __init__(self, audit_log_repository: Optional[AuditLogRepository] = None):
        self.audit_log_repository = audit_log_repository

        if not self.audit_log_repository:
            raise ValueError("Audit log repository must be provided via dependency injection")

    def record(self,
               action: Union[AuditAction, str],
               organization_id: Optional[int],
               user_id: Optional[int],
               entity_type: Optional[str] = None,
               entity_id: Optional[int] = None,
               details: Optional[Dict[str, Any]] = None):
        """
        Write and commit one audit row.

        The caller's IP address and user agent are captured when called
        inside a request.

        Raises:
            SQLAlchemyError: If the row cannot be written
        """
        action_value = action.value if isinstance(action, AuditAction) else action
        ip_address = None
        user_agent = None
        if has_request_context():
            ip_address = request.remote_addr
            user_agent = request.headers.get('User-Agent', '')[:255] or None

        try:
            entry = self.audit_log_repository.create(
                organization_id=organization_id,
                user_id=user_id,
                action=action_value,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details or {},
                ip_address=ip_address,
                user_agent=user_agent
            )
            self.audit_log_repository.commit()
        except Exception:
            self.audit_log_repository.rollback()
            raise

        logger.info("Audit event recorded", action=action_value,
                    entity_type=entity_type, entity_id=entity_id)
        return entry
