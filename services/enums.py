"""
Service layer enums
These enums mirror the string status columns in crm_database so services
can reason about status values without importing database models
"""

from enum import Enum
from typing import Dict, FrozenSet, Union


class StatusTransitionError(ValueError):
    """Raised when a status change is not allowed by the transition table"""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change conversation status from '{current}' to '{target}'")


class ConversationStatus(str, Enum):
    """Lifecycle of an automated SMS conversation"""
    NOT_STARTED = 'not_started'
    ACTIVE = 'active'
    PAUSED = 'paused'
    ENDED = 'ended'

    @classmethod
    def coerce(cls, value: Union[str, 'ConversationStatus', None]) -> 'ConversationStatus':
        """Parse a stored value; a missing status means the conversation never started."""
        if value is None:
            return cls.NOT_STARTED
        return cls(value)

    def can_transition_to(self, target: 'ConversationStatus') -> bool:
        return target in _CONVERSATION_TRANSITIONS[self]

    def assert_transition(self, target: 'ConversationStatus') -> 'ConversationStatus':
        """
        Validate a status change.

        Returns:
            The target status when the move is legal

        Raises:
            StatusTransitionError: If the transition table does not allow it
        """
        target = ConversationStatus.coerce(target)
        if not self.can_transition_to(target):
            raise StatusTransitionError(self.value, target.value)
        return target


# not_started -> active, active <-> paused, anything not yet ended -> ended
_CONVERSATION_TRANSITIONS: Dict[ConversationStatus, FrozenSet[ConversationStatus]] = {
    ConversationStatus.NOT_STARTED: frozenset({ConversationStatus.ACTIVE, ConversationStatus.ENDED}),
    ConversationStatus.ACTIVE: frozenset({ConversationStatus.PAUSED, ConversationStatus.ENDED}),
    ConversationStatus.PAUSED: frozenset({ConversationStatus.ACTIVE, ConversationStatus.ENDED}),
    ConversationStatus.ENDED: frozenset(),
}


class InvitationStatus(str, Enum):
    """Status options for organization invitations"""
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'


class ProfileStatus(str, Enum):
    """Account status for user profiles"""
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class RoleName(str, Enum):
    """Roles a user can hold within an organization"""
    ADMIN = 'admin'
    USER = 'user'


class QualificationState(str, Enum):
    """Lead qualification progress"""
    NOT_STARTED = 'not_started'
    IN_PROGRESS = 'in_progress'
    QUALIFIED = 'qualified'
    NOT_QUALIFIED = 'not_qualified'


class MessageDirection(str, Enum):
    INBOUND = 'inbound'
    OUTBOUND = 'outbound'


class DeliveryStatus(str, Enum):
    """Delivery states recorded on message rows"""
    PENDING = 'pending'
    SENT = 'sent'
    DELIVERED = 'delivered'
    FAILED = 'failed'


class AuditAction(str, Enum):
    """Actions written to the audit log"""
    INVITATION_SENT = 'invitation_sent'
    INVITATION_RESENT = 'invitation_resent'
    INVITATION_CANCELLED = 'invitation_cancelled'
    INVITATION_EXPIRED = 'invitation_expired'
    INVITATION_ACCEPTED = 'invitation_accepted'
    USER_REACTIVATED = 'user_reactivated'
    USER_DEACTIVATED = 'user_deactivated'
    USER_ROLE_CHANGED = 'user_role_changed'
    PROPERTY_ASSIGNED = 'property_assigned'
    PROPERTY_UNASSIGNED = 'property_unassigned'
