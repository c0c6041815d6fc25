"""
Chain — Ordered steps for one task

The aggregate every operation works on. Holds the steps in ascending
number order, the chain-level status and the number of the most
recently started step.

The chain only answers questions about itself (find, next, counts) and
keeps its ordering invariant. Which mutations are legal is decided in
transitions.py.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import orjson

from .step import Step, StepStatus, as_step_number, format_step_number, generate_step_key


class ChainStatus(Enum):
    """Chain lifecycle states."""
    RUNNING = "running"
    FINISHED = "finished"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Chain:
    """
    Steps belonging to one task, identified by task_id.

    Invariant: step numbers are distinct and `steps` is sorted by number.
    """
    task_id: str
    description: str = ""
    steps: List[Step] = field(default_factory=list)
    current_step: Decimal = Decimal(1)
    status: ChainStatus = ChainStatus.RUNNING

    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    finished_at: Optional[str] = None

    # Next sequence for step keys; never reused within a chain
    key_sequence: int = 0

    @property
    def is_finished(self) -> bool:
        return self.status == ChainStatus.FINISHED

    @property
    def numbers(self) -> List[Decimal]:
        return [s.number for s in self.steps]

    # -------------------- lookup --------------------

    def index_of(self, number: Decimal) -> Optional[int]:
        """Storage index of the step with this exact number."""
        for i, step in enumerate(self.steps):
            if step.number == number:
                return i
        return None

    def find(self, number: Decimal) -> Optional[Step]:
        idx = self.index_of(number)
        return self.steps[idx] if idx is not None else None

    def active_steps(self) -> List[Step]:
        return [s for s in self.steps if s.is_active]

    def todo_steps(self) -> List[Step]:
        return [s for s in self.steps if s.is_todo]

    def completed_steps(self) -> List[Step]:
        return [s for s in self.steps if s.is_complete]

    def next_todo_after(self, number: Decimal) -> Optional[Step]:
        """First todo step numbered above `number`."""
        for step in self.steps:
            if step.number > number and step.is_todo:
                return step
        return None

    def count_by_status(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in StepStatus}
        for step in self.steps:
            counts[step.status.value] += 1
        return counts

    # -------------------- mutation helpers --------------------

    def new_step(self, number: Decimal, name: str, input: str = "") -> Step:
        """
        Create a todo step with a fresh key. Does not attach it.

        Sequences whose key is already held by a step are skipped, so a
        chain restored without its key_sequence never reissues a key.
        """
        taken = {s.key for s in self.steps}
        while True:
            key = generate_step_key(self.task_id, self.key_sequence)
            self.key_sequence += 1
            if key not in taken:
                return Step(number=number, name=name, input=input, key=key)

    def reorder(self) -> None:
        """Re-establish ascending number order after insertion or removal."""
        self.steps.sort(key=lambda s: s.number)

    def touch(self) -> None:
        self.updated_at = _now()

    def finish(self) -> None:
        self.status = ChainStatus.FINISHED
        self.finished_at = _now()
        self.touch()

    def snapshot(self) -> 'Chain':
        """Deep copy safe to hand out without the chain's lock."""
        return copy.deepcopy(self)

    # -------------------- serialization --------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "task_id": self.task_id,
            "description": self.description,
            "status": self.status.value,
            "current_step": float(self.current_step),
            "current_label": format_step_number(self.current_step),
            "steps": [s.to_dict() for s in self.steps],
            "counts": self.count_by_status(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "finished_at": self.finished_at,
            "key_sequence": self.key_sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Chain':
        """Create Chain from dictionary (snapshot restore)."""
        chain = cls(
            task_id=data["task_id"],
            description=data.get("description", ""),
            steps=[Step.from_dict(s) for s in data.get("steps", [])],
            current_step=as_step_number(
                data.get("current_label", data.get("current_step", 1))
            ),
            status=ChainStatus(data.get("status", "running")),
            created_at=data.get("created_at") or _now(),
            updated_at=data.get("updated_at") or _now(),
            finished_at=data.get("finished_at"),
            key_sequence=data.get("key_sequence", len(data.get("steps", []))),
        )
        chain.reorder()
        return chain

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: bytes) -> 'Chain':
        return cls.from_dict(orjson.loads(payload))


def build_chain(
    task_id: str,
    description: str,
    entries: Iterable,
    numbers: List[Decimal]
) -> Chain:
    """Create a running chain with one todo step per plan entry."""
    chain = Chain(task_id=task_id, description=description)
    for number, entry in zip(numbers, entries):
        chain.steps.append(chain.new_step(number, entry.name, entry.input))
    chain.current_step = numbers[0] if numbers else Decimal(1)
    return chain
