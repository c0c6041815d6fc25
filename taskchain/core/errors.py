"""
Errors and Results — Outcomes of chain operations as plain data

Operations never raise for bad input. They return an OperationResult
that carries either a ChainError or the data produced by the transition:
- ErrorKind: what went wrong
- ChainError: kind plus the offending identifiers
- OperationResult: outcome of one operation, serializable for the
  presentation layer
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import orjson

from .step import format_step_number

if TYPE_CHECKING:
    from .chain import Chain
    from .decision import DecisionBriefing
    from .step import Step


class ErrorKind(Enum):
    """Failure categories. All are recoverable by the caller."""
    CHAIN_NOT_FOUND = "chain_not_found"
    DUPLICATE_CHAIN = "duplicate_chain"
    EMPTY_PLAN = "empty_plan"
    STEP_NOT_FOUND = "step_not_found"
    ANCHOR_NOT_FOUND = "anchor_not_found"
    INVALID_TRANSITION = "invalid_transition"
    MISSING_SUMMARY = "missing_summary"
    CANNOT_DELETE_ACTIVE = "cannot_delete_active"
    CHAIN_FINISHED = "chain_finished"
    NUMBER_COLLISION = "number_collision"
    INVALID_COMMAND = "invalid_command"


@dataclass(frozen=True)
class ChainError:
    """A rejected operation: kind plus the identifiers involved."""
    kind: ErrorKind
    task_id: str = ""
    step_number: Optional[Decimal] = None
    detail: str = ""

    @property
    def message(self) -> str:
        parts = [self.kind.value]
        if self.task_id:
            parts.append(f"task={self.task_id}")
        if self.step_number is not None:
            parts.append(f"step={format_step_number(self.step_number)}")
        text = " ".join(parts)
        if self.detail:
            text += f": {self.detail}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "task_id": self.task_id,
            "step_number": (
                float(self.step_number) if self.step_number is not None else None
            ),
            "detail": self.detail,
        }


@dataclass
class OperationResult:
    """
    Outcome of one chain operation.

    Exactly one of `error` or the data fields is meaningful. Step and
    chain objects are snapshots taken after the operation, so callers
    may read them without holding the chain's lock.
    """
    mode: str
    task_id: str
    error: Optional[ChainError] = None

    # Data (depends on mode)
    step: Optional['Step'] = None
    next_step: Optional['Step'] = None
    added: List['Step'] = field(default_factory=list)
    removed: List['Step'] = field(default_factory=list)
    briefing: Optional['DecisionBriefing'] = None
    chain: Optional['Chain'] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(
        cls,
        mode: str,
        kind: ErrorKind,
        task_id: str = "",
        step_number: Optional[Decimal] = None,
        detail: str = ""
    ) -> 'OperationResult':
        """Build a failed result in one call."""
        return cls(
            mode=mode,
            task_id=task_id,
            error=ChainError(kind, task_id, step_number, detail),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the presentation layer."""
        result: Dict[str, Any] = {
            "mode": self.mode,
            "task_id": self.task_id,
            "ok": self.ok,
        }
        if self.error:
            result["error"] = self.error.to_dict()
            return result
        if self.step is not None:
            result["step"] = self.step.to_dict()
        if self.next_step is not None:
            result["next_step"] = self.next_step.to_dict()
        if self.added:
            result["added"] = [s.to_dict() for s in self.added]
        if self.removed:
            result["removed"] = [s.to_dict() for s in self.removed]
        if self.briefing is not None:
            result["briefing"] = self.briefing.to_dict()
        if self.chain is not None:
            result["chain"] = self.chain.to_dict()
        return result

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())
