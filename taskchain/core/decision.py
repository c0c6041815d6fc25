"""
Decision Point — What to do after a checkpoint

After a step completes, the executor gets a structured briefing instead
of an implicit "go to the next step":
- the step just closed, with its summary
- the next todo step, if any
- three suggested actions: continue (or finish), insert, delete remaining
- previews of completed work and of the work still planned

compose_decision_point() is pure. It reads the chain in hand and touches
nothing else.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .chain import Chain
from .step import Step, format_step_number


DEFAULT_PREVIEW_LENGTH = 100


class ActionKind(Enum):
    """Suggested next moves offered at a decision point."""
    CONTINUE = "continue"
    FINISH = "finish"
    INSERT = "insert"
    DELETE_REMAINING = "delete_remaining"


@dataclass(frozen=True)
class StepPreview:
    """Compact view of a step for briefings."""
    number: Decimal
    name: str
    status: str
    summary: str = ""
    input: str = ""
    truncated: bool = False

    @property
    def label(self) -> str:
        return format_step_number(self.number)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "number": float(self.number),
            "label": self.label,
            "name": self.name,
            "status": self.status,
        }
        if self.summary:
            result["summary"] = self.summary
            result["truncated"] = self.truncated
        if self.input:
            result["input"] = self.input
        return result


@dataclass(frozen=True)
class SuggestedAction:
    """One option at a decision point, with the command that performs it."""
    kind: ActionKind
    command: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "command": dict(self.command)}


@dataclass
class DecisionBriefing:
    """Structured choice set produced after each checkpoint."""
    task_id: str
    completed: StepPreview
    next_step: Optional[StepPreview] = None
    actions: List[SuggestedAction] = field(default_factory=list)
    completed_preview: List[StepPreview] = field(default_factory=list)
    remaining_preview: List[StepPreview] = field(default_factory=list)

    @property
    def suggest_finish(self) -> bool:
        """True when no todo step remains anywhere in the chain."""
        return not self.remaining_preview

    @property
    def recommended(self) -> SuggestedAction:
        return self.actions[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "completed": self.completed.to_dict(),
            "next_step": self.next_step.to_dict() if self.next_step else None,
            "actions": [a.to_dict() for a in self.actions],
            "completed_preview": [p.to_dict() for p in self.completed_preview],
            "remaining_preview": [p.to_dict() for p in self.remaining_preview],
            "suggest_finish": self.suggest_finish,
        }


def truncate_summary(summary: str, limit: int = DEFAULT_PREVIEW_LENGTH) -> str:
    """Cut a summary to `limit` characters, marking the cut with '...'."""
    if len(summary) <= limit:
        return summary
    return summary[:limit] + "..."


def _preview(step: Step, preview_length: Optional[int] = None) -> StepPreview:
    summary = step.summary
    truncated = False
    if preview_length is not None and len(summary) > preview_length:
        summary = truncate_summary(summary, preview_length)
        truncated = True
    return StepPreview(
        number=step.number,
        name=step.name,
        status=step.status.value,
        summary=summary,
        input=step.input,
        truncated=truncated,
    )


def _number_param(number: Decimal) -> float:
    return float(number)


def compose_decision_point(
    chain: Chain,
    completed: Step,
    preview_length: int = DEFAULT_PREVIEW_LENGTH
) -> DecisionBriefing:
    """
    Build the briefing for a step that just completed.

    Args:
        chain: Chain the step belongs to
        completed: The step just closed
        preview_length: Max characters of each summary in completed_preview

    Returns:
        DecisionBriefing whose first action is the recommended one
    """
    task_id = chain.task_id
    next_step = chain.next_todo_after(completed.number)
    anchor = _number_param(completed.number)

    if next_step is not None:
        first = SuggestedAction(
            kind=ActionKind.CONTINUE,
            command={
                "mode": "start",
                "task_id": task_id,
                "step_number": _number_param(next_step.number),
            },
        )
    else:
        first = SuggestedAction(
            kind=ActionKind.FINISH,
            command={"mode": "finish", "task_id": task_id},
        )

    actions = [
        first,
        SuggestedAction(
            kind=ActionKind.INSERT,
            command={
                "mode": "insert",
                "task_id": task_id,
                "after": anchor,
                "insert_plan": [],
            },
        ),
        SuggestedAction(
            kind=ActionKind.DELETE_REMAINING,
            command={
                "mode": "delete",
                "task_id": task_id,
                "delete_scope": "remaining",
            },
        ),
    ]

    return DecisionBriefing(
        task_id=task_id,
        completed=_preview(completed),
        next_step=_preview(next_step) if next_step else None,
        actions=actions,
        completed_preview=[
            _preview(s, preview_length) for s in chain.completed_steps()
        ],
        remaining_preview=[_preview(s) for s in chain.todo_steps()],
    )
