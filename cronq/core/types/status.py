# cronq/core/types/status.py
"""
Core enums used throughout the engine.
This module should not import from other application modules.
"""

from enum import Enum
from typing import Optional


class TaskStatus(str, Enum):
    """Task lifecycle status"""

    QUEUED = 'queued'  # Waiting for scheduled_for to pass and a claim.
    # Default status for newly enqueued tasks and for tasks awaiting retry.

    PROCESSING = 'processing'  # Claimed by a run; handler has not resolved yet.

    COMPLETED = 'completed'  # Handler reported success.

    FAILED = 'failed'  # Last attempt failed and attempts are exhausted.
    CANCELLED = 'cancelled'  # Withdrawn by an operator before it was claimed.

    @property
    def is_terminal(self) -> bool:
        """Whether this status represents a final state (no further transitions)."""
        return self in TASK_TERMINAL_STATES


TASK_TERMINAL_STATES: frozenset[TaskStatus] = frozenset({
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
    TaskStatus.CANCELLED,
})


class TaskType(str, Enum):
    """Closed set of task types the engine knows how to dispatch."""

    CONTENT_GENERATION = 'content_generation'
    KNOWLEDGE_CREATION = 'knowledge_creation'
    INVESTIGATION = 'investigation'
    NOTIFICATION = 'notification'
    MAINTENANCE = 'maintenance'
    ANALYSIS = 'analysis'

    @classmethod
    def parse(cls, value: str) -> Optional['TaskType']:
        """Return the member for value, or None when value names no known type."""
        try:
            return cls(value)
        except ValueError:
            return None
