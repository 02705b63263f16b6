"""
Backtest session status enumeration.

This module defines the session lifecycle and its allowed transitions.
"""

from enum import StrEnum


class SessionStatus(StrEnum):
    """
    Lifecycle status of a backtest session.

    pending -> queued | running
    queued -> running | stopped
    running -> completed | failed | stopped
    """

    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in [self.COMPLETED, self.FAILED, self.STOPPED]

    @property
    def is_active(self) -> bool:
        """Check if the session is waiting for or holding a slot."""
        return self in [self.PENDING, self.QUEUED, self.RUNNING]

    def can_transition_to(self, target: "SessionStatus") -> bool:
        """Check whether moving to the target status is allowed."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.QUEUED, SessionStatus.RUNNING}),
    SessionStatus.QUEUED: frozenset({SessionStatus.RUNNING, SessionStatus.STOPPED}),
    SessionStatus.RUNNING: frozenset(
        {SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.STOPPED}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
    SessionStatus.STOPPED: frozenset(),
}
