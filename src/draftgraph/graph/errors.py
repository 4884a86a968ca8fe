"""Error types for the staging engine.

Input validation errors, rejected step transitions and non-fatal commit
failures are raised before any state is written. Storage failures are not
wrapped here: the backend's own exception propagates unchanged.

Each error can format itself as a short, human-readable message for the
caller to show the founder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - dataclass field type


class StagingError(Exception):
    """Base class for staging engine errors."""

    def to_user_message(self) -> str:
        """Format the error for display."""
        return str(self)


@dataclass
class InputValidationError(StagingError):
    """Raised when caller input is missing or malformed.

    Attributes:
        field: Name of the offending input.
        message: What is wrong with it.
    """

    field: str
    message: str

    def __post_init__(self) -> None:
        super().__init__(f"Invalid {self.field}: {self.message}")

    def to_user_message(self) -> str:
        return self.message


@dataclass
class ConfirmationError(InputValidationError):
    """Raised when the commit confirmation literal does not match exactly."""

    field: str = "confirmation"
    message: str = ""
    expected: str = "CONFIRMED"

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Type {self.expected} exactly to commit proposed requirements."
        super().__post_init__()


@dataclass
class StepGateError(StagingError):
    """Raised when a wizard step transition is rejected.

    Attributes:
        step: Step the run was on.
        reason: Why the transition was refused.
    """

    step: int
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Cannot leave step {self.step}: {self.reason}")


@dataclass
class NoProposedRequirementsError(StagingError):
    """Raised when a commit finds nothing eligible. Nothing is written."""

    draft_node_count: int = 0

    def __post_init__(self) -> None:
        super().__init__("No proposed requirements found to commit.")


@dataclass
class SnapshotError(StagingError):
    """Raised when a draft snapshot file cannot be read or parsed."""

    path: Path
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Invalid snapshot {self.path}: {self.reason}")

    def to_user_message(self) -> str:
        return "Invalid snapshot JSON."


@dataclass
class WizardStateError(StagingError):
    """Raised when an action does not apply to the run's current state.

    Attributes:
        action: The attempted action.
        message: What is missing.
        details: Optional extra context.
    """

    action: str
    message: str
    details: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(f"{self.action}: {self.message}")

    def to_user_message(self) -> str:
        return self.message
