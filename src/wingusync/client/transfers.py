"""Transfer state machine.

States:
    IDLE -> LINK_RESOLVED -> SKIPPED   -> COMPLETED
                          -> STREAMING -> COMPLETED
                                       -> CANCELLED
                                       -> FAILED

Any non-terminal state may also move to FAILED. All state transitions are
validated; a Transfer is never reused.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum, auto

logger = logging.getLogger(__name__)


class TransferType(IntEnum):
    """Type of transfer operation."""

    DOWNLOAD = auto()
    UPLOAD = auto()


class TransferState(IntEnum):
    """State of a single transfer."""

    IDLE = auto()
    LINK_RESOLVED = auto()
    SKIPPED = auto()
    STREAMING = auto()
    COMPLETED = auto()
    CANCELLED = auto()
    FAILED = auto()


# Valid state transitions
VALID_TRANSITIONS: dict[TransferState, set[TransferState]] = {
    TransferState.IDLE: {TransferState.LINK_RESOLVED, TransferState.FAILED},
    TransferState.LINK_RESOLVED: {
        TransferState.SKIPPED,
        TransferState.STREAMING,
        TransferState.FAILED,
    },
    TransferState.SKIPPED: {TransferState.COMPLETED, TransferState.FAILED},
    TransferState.STREAMING: {
        TransferState.COMPLETED,
        TransferState.CANCELLED,
        TransferState.FAILED,
    },
    TransferState.COMPLETED: set(),  # Terminal
    TransferState.CANCELLED: set(),  # Terminal
    TransferState.FAILED: set(),  # Terminal
}


class InvalidTransitionError(Exception):
    """Raised when attempting invalid state transition."""


@dataclass
class Transfer:
    """One upload or download, from link resolution to its outcome.

    Attributes:
        repo_id: Repository of the remote file.
        path: Remote path.
        transfer_type: Download or upload.
        state: Current state.
        started_at: Creation time.
        error: Error message if failed or cancelled.
        history: States visited, in order.
    """

    repo_id: str
    path: str
    transfer_type: TransferType
    state: TransferState = TransferState.IDLE
    started_at: float = field(default_factory=time.time)
    error: str | None = None
    history: list[TransferState] = field(default_factory=lambda: [TransferState.IDLE])

    _on_change: Callable[[Transfer], None] | None = field(default=None, repr=False)

    def transition_to(self, new_state: TransferState) -> None:
        """Transition to a new state with validation."""
        if new_state not in VALID_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Cannot transition from {self.state.name} to {new_state.name}"
            )
        logger.debug(
            f"{self.transfer_type.name.lower()} {self.path}: "
            f"{self.state.name} -> {new_state.name}"
        )
        self.state = new_state
        self.history.append(new_state)
        if self._on_change:
            self._on_change(self)

    def link_resolved(self) -> None:
        self.transition_to(TransferState.LINK_RESOLVED)

    def skip(self) -> None:
        """Content is already current: no bytes will move."""
        self.transition_to(TransferState.SKIPPED)

    def start_streaming(self) -> None:
        self.transition_to(TransferState.STREAMING)

    def complete(self) -> None:
        self.transition_to(TransferState.COMPLETED)

    def cancel(self) -> None:
        self.error = "cancelled"
        self.transition_to(TransferState.CANCELLED)

    def fail(self, error: Exception) -> None:
        """Mark transfer as failed unless it already ended."""
        if self.is_terminal:
            return
        self.error = str(error)
        self.transition_to(TransferState.FAILED)

    @property
    def is_terminal(self) -> bool:
        """Check if transfer is in a terminal state."""
        return self.state in (
            TransferState.COMPLETED,
            TransferState.CANCELLED,
            TransferState.FAILED,
        )

    @property
    def elapsed(self) -> float:
        return time.time() - self.started_at
