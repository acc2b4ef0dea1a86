"""
Service results and side effects

Services return a Result instead of raising. Best-effort work that runs
alongside the primary write (audit rows, emails, chat bootstrap) is
recorded as SideEffect entries on the Result.
"""

from typing import TypeVar, Generic, Optional, Any, Dict, List, Callable
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class SideEffect:
    """
    Outcome of a best-effort operation (email, audit row, chat bootstrap, ...).

    A failed SideEffect never turns the owning Result into a failure.
    """

    name: str
    ok: bool
    error: Optional[str] = None
    data: Any = None

    @classmethod
    def succeeded(cls, name: str, data: Any = None) -> 'SideEffect':
        return cls(name=name, ok=True, data=data)

    @classmethod
    def failed(cls, name: str, error: str) -> 'SideEffect':
        return cls(name=name, ok=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'ok': self.ok, 'error': self.error}


def run_side_effect(name: str, func: Callable, *args, **kwargs) -> SideEffect:
    """
    Run a non-critical operation and capture its outcome.

    Exceptions are logged and recorded on the returned SideEffect. A callable
    returning a Result is unwrapped so service failures are recorded too.
    """
    try:
        outcome = func(*args, **kwargs)
    except Exception as e:
        logger.warning(f"Side effect '{name}' failed: {e}")
        return SideEffect.failed(name, str(e))

    if isinstance(outcome, Result):
        if outcome.is_failure:
            logger.warning(f"Side effect '{name}' failed: {outcome.error}")
            return SideEffect.failed(name, outcome.error or 'unknown error')
        return SideEffect.succeeded(name, outcome.data)
    return SideEffect.succeeded(name, outcome)


@dataclass
class Result(Generic[T]):
    """
    Return value of every service method.

    Either success with data or failure with an error message and a code the
    routes map to an HTTP status. Side effects are carried on both.

        result = service.cancel_invitation(invitation_id, current_user)
        if result.is_failure:
            return error_response(result, INVITATION_STATUS_CODES)
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    side_effects: List[SideEffect] = field(default_factory=list)

    @classmethod
    def success(cls, data: T, metadata: Optional[Dict[str, Any]] = None,
                side_effects: Optional[List[SideEffect]] = None) -> 'Result[T]':
        return cls(success=True, data=data, metadata=metadata,
                   side_effects=list(side_effects or []))

    @classmethod
    def failure(cls, error: str, code: Optional[str] = None,
                metadata: Optional[Dict[str, Any]] = None,
                side_effects: Optional[List[SideEffect]] = None) -> 'Result[T]':
        """
        Args:
            error: Human readable message
            code: Machine readable code, e.g. INVITATION_EXPIRED
            metadata: Extra fields merged into the JSON error body
            side_effects: Best-effort operations that ran before the failure
        """
        return cls(success=False, error=error, error_code=code, metadata=metadata,
                   side_effects=list(side_effects or []))

    @property
    def is_success(self) -> bool:
        return self.success

    @property
    def is_failure(self) -> bool:
        return not self.success

    @property
    def failed_side_effects(self) -> List[SideEffect]:
        return [effect for effect in self.side_effects if not effect.ok]

    def side_effect(self, name: str) -> Optional[SideEffect]:
        """Most recent side effect recorded under name."""
        for effect in reversed(self.side_effects):
            if effect.name == name:
                return effect
        return None

    def add_side_effect(self, effect: SideEffect) -> 'Result[T]':
        self.side_effects.append(effect)
        return self

    def unwrap(self) -> T:
        """Data of a success; ValueError on a failure."""
        if self.is_failure:
            raise ValueError(f"Cannot unwrap a failure result: {self.error}")
        return self.data

    def unwrap_or(self, default: T) -> T:
        return self.data if self.is_success else default

    def __bool__(self) -> bool:
        return self.is_success

    def __repr__(self) -> str:
        if self.is_success:
            return f"Result.success(data={self.data!r})"
        return f"Result.failure(error={self.error!r}, code={self.error_code!r})"
