"""
Step — Atomic unit of plan execution

Defines the leaf records of a task chain:
- StepStatus: todo → in_progress → complete lifecycle
- Step: one named unit of work with its checkpoint summary
- PlanEntry: a step as proposed by the caller (name + optional input hint)

Step numbers are exact decimals. They double as identity and sort key
within a chain, so 1 + 1/10 must equal 1.1 exactly; floats cannot promise
that. Every boundary value goes through as_step_number().
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional
import xxhash


# Largest decimal exponent a step number may carry, in either direction
MAX_STEP_EXPONENT = 18


class StepStatus(Enum):
    """Step lifecycle states. Only moves forward."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


# Allowed forward moves; complete is terminal
_TRANSITIONS = {
    StepStatus.TODO: StepStatus.IN_PROGRESS,
    StepStatus.IN_PROGRESS: StepStatus.COMPLETE,
}


def can_transition(current: StepStatus, target: StepStatus) -> bool:
    """Check whether a step may move from current to target."""
    return _TRANSITIONS.get(current) == target


def as_step_number(value: Any) -> Decimal:
    """
    Convert a boundary value to an exact step number.

    Floats are converted through their shortest repr, so 1.1 becomes
    Decimal('1.1') and not the binary approximation.

    Raises:
        ValueError: If value is not a finite number, or its magnitude is
            beyond MAX_STEP_EXPONENT decimal places either way
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a step number: {value!r}")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a step number: {value!r}")
    else:
        raise ValueError(f"Not a step number: {value!r}")

    if not number.is_finite():
        raise ValueError(f"Not a step number: {value!r}")
    if _out_of_range(number):
        raise ValueError(f"Step number out of range: {value!r}")
    return number


def _out_of_range(number: Decimal) -> bool:
    return bool(number) and abs(number.adjusted()) > MAX_STEP_EXPONENT


def format_step_number(number: Decimal) -> str:
    """
    Render a step number for display.

    Integral numbers keep one decimal ("2.0"); others keep their
    significant digits ("1.1", "1.15"). Numbers outside the accepted
    range are shown as-is in scientific form.
    """
    if not number.is_finite() or _out_of_range(number):
        return str(number)
    text = format(number.normalize(), "f")
    if "." not in text:
        text += ".0"
    return text


def generate_step_key(task_id: str, sequence: int) -> str:
    """Opaque stable handle for a step (numbers move, keys don't)."""
    return xxhash.xxh64(f"{task_id}:{sequence}".encode()).hexdigest()[:12]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class PlanEntry:
    """A step as proposed by the caller."""
    name: str
    input: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result = {"name": self.name}
        if self.input:
            result["input"] = self.input
        return result


@dataclass
class Step:
    """
    One unit of work inside a chain.

    The summary is the checkpoint: it is written exactly once, when the
    step completes, and never changes afterwards.
    """
    number: Decimal
    name: str
    input: str = ""
    status: StepStatus = StepStatus.TODO
    summary: str = ""
    key: str = ""

    # Tracking
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def label(self) -> str:
        return format_step_number(self.number)

    @property
    def is_todo(self) -> bool:
        return self.status == StepStatus.TODO

    @property
    def is_active(self) -> bool:
        return self.status == StepStatus.IN_PROGRESS

    @property
    def is_complete(self) -> bool:
        return self.status == StepStatus.COMPLETE

    def start(self) -> None:
        """Mark step as in progress. Caller has checked the transition."""
        self.status = StepStatus.IN_PROGRESS
        self.started_at = _now()

    def complete(self, summary: str) -> None:
        """Record the checkpoint summary and close the step."""
        self.summary = summary
        self.status = StepStatus.COMPLETE
        self.completed_at = _now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result = {
            "number": float(self.number),
            "label": self.label,
            "key": self.key,
            "name": self.name,
            "status": self.status.value,
        }
        if self.input:
            result["input"] = self.input
        if self.summary:
            result["summary"] = self.summary
        if self.started_at:
            result["started_at"] = self.started_at
        if self.completed_at:
            result["completed_at"] = self.completed_at
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Step':
        """Create Step from dictionary. Prefers the exact label over the float."""
        return cls(
            number=as_step_number(data.get("label", data["number"])),
            name=data["name"],
            input=data.get("input", ""),
            status=StepStatus(data.get("status", "todo")),
            summary=data.get("summary", ""),
            key=data.get("key", ""),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
        )
