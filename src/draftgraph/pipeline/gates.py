"""Gate hooks for wizard step transitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from draftgraph.models.wizard import WizardRun


class StepGate(Protocol):
    """Protocol for gates that approve/reject leaving a wizard step."""

    def on_step_advance(self, run: WizardRun, step: int) -> Literal["approve", "reject"]:
        """Called when the run asks to move past *step*.

        Args:
            run: The run being advanced.
            step: The step being left.

        Returns:
            "approve" to advance or "reject" to stay on the step.
        """
        ...


class RequireSavedGate:
    """Gate that only approves steps whose content was saved to the graph.

    This is the default gate: every step must be explicitly saved before
    the run can progress.
    """

    def on_step_advance(self, run: WizardRun, step: int) -> Literal["approve", "reject"]:
        if run.is_step_saved(step):
            return "approve"
        return "reject"


class AutoApproveGate:
    """Gate that approves every transition. Useful for scripted walkthroughs."""

    def on_step_advance(self, _run: WizardRun, _step: int) -> Literal["approve", "reject"]:
        return "approve"
