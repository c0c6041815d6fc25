"""
Commands — Validated tagged union of chain requests

Each mode is its own frozen dataclass carrying exactly the fields it
needs. parse_command() turns a raw mapping (as bound by the transport)
into one of them, or raises CommandError. Malformed input stops here
and never reaches the state machine.

Two conditions deliberately pass the boundary so the core can answer
them with its own error kinds: an empty plan (EmptyPlan) and an empty
summary (MissingSummary).

Mode aliases accepted for older callers:
    step   -> initialize
    resume -> status
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .core.step import PlanEntry, as_step_number
from .core.transitions import DELETE_SCOPE_REMAINING


class CommandError(ValueError):
    """A request that cannot be turned into a command."""

    def __init__(self, message: str, mode: str = "", task_id: str = ""):
        super().__init__(message)
        self.mode = mode
        self.task_id = task_id


@dataclass(frozen=True)
class InitializeCommand:
    task_id: str
    description: str
    plan: Tuple[PlanEntry, ...]
    mode = "initialize"


@dataclass(frozen=True)
class StartCommand:
    task_id: str
    step_number: Decimal
    mode = "start"


@dataclass(frozen=True)
class CompleteCommand:
    task_id: str
    step_number: Decimal
    summary: str
    mode = "complete"


@dataclass(frozen=True)
class InsertCommand:
    task_id: str
    after: Decimal
    steps: Tuple[PlanEntry, ...]
    mode = "insert"


@dataclass(frozen=True)
class UpdateCommand:
    task_id: str
    from_step: Decimal
    steps: Tuple[PlanEntry, ...]
    mode = "update"


@dataclass(frozen=True)
class DeleteCommand:
    """Delete one step (step_number) or the todo tail (scope='remaining')."""
    task_id: str
    step_number: Optional[Decimal] = None
    scope: Optional[str] = None
    mode = "delete"


@dataclass(frozen=True)
class FinishCommand:
    task_id: str
    mode = "finish"


@dataclass(frozen=True)
class StatusCommand:
    task_id: str
    mode = "status"


Command = Union[
    InitializeCommand, StartCommand, CompleteCommand, InsertCommand,
    UpdateCommand, DeleteCommand, FinishCommand, StatusCommand,
]

MODE_ALIASES = {
    "step": "initialize",
    "resume": "status",
}


# =============================================================================
# Field parsing
# =============================================================================

def _task_id(data: Mapping[str, Any], mode: str) -> str:
    value = data.get("task_id")
    if not isinstance(value, str) or not value.strip():
        raise CommandError(f"{mode} requires a non-empty task_id", mode)
    return value.strip()


def _number(data: Mapping[str, Any], key: str, mode: str, task_id: str,
            required: bool = True) -> Optional[Decimal]:
    value = data.get(key)
    if value is None:
        if required:
            raise CommandError(f"{mode} requires {key}", mode, task_id)
        return None
    try:
        return as_step_number(value)
    except ValueError as e:
        raise CommandError(f"{key}: {e}", mode, task_id)


def parse_plan(raw: Any, key: str = "plan", mode: str = "",
               task_id: str = "") -> Tuple[PlanEntry, ...]:
    """
    Validate plan entries: PlanEntry instances or {name, input?} objects.

    Raises:
        CommandError: If an entry has no name or a non-string input
    """
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise CommandError(f"{key} must be a list of steps", mode, task_id)

    entries = []
    for i, item in enumerate(raw):
        if isinstance(item, PlanEntry):
            entries.append(item)
            continue
        if not isinstance(item, Mapping):
            raise CommandError(f"{key}[{i}] must be an object with a name", mode, task_id)
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise CommandError(f"{key}[{i}] requires a non-empty name", mode, task_id)
        hint = item.get("input")
        if hint is not None and not isinstance(hint, str):
            raise CommandError(f"{key}[{i}].input must be a string", mode, task_id)
        entries.append(PlanEntry(name=name.strip(), input=(hint or "").strip()))
    return tuple(entries)


def _text(data: Mapping[str, Any], key: str, mode: str, task_id: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise CommandError(f"{key} must be a string", mode, task_id)
    return value


# =============================================================================
# Per-mode parsers
# =============================================================================

def _parse_initialize(data, task_id):
    mode = "initialize"
    return InitializeCommand(
        task_id=task_id,
        description=_text(data, "description", mode, task_id),
        plan=parse_plan(data.get("plan"), "plan", mode, task_id),
    )


def _parse_start(data, task_id):
    return StartCommand(task_id, _number(data, "step_number", "start", task_id))


def _parse_complete(data, task_id):
    mode = "complete"
    return CompleteCommand(
        task_id=task_id,
        step_number=_number(data, "step_number", mode, task_id),
        summary=_text(data, "summary", mode, task_id),
    )


def _parse_insert(data, task_id):
    mode = "insert"
    return InsertCommand(
        task_id=task_id,
        after=_number(data, "after", mode, task_id),
        steps=parse_plan(data.get("insert_plan"), "insert_plan", mode, task_id),
    )


def _parse_update(data, task_id):
    mode = "update"
    key = "from_step" if "from_step" in data and "from" not in data else "from"
    return UpdateCommand(
        task_id=task_id,
        from_step=_number(data, key, mode, task_id),
        steps=parse_plan(data.get("update_plan"), "update_plan", mode, task_id),
    )


def _parse_delete(data, task_id):
    mode = "delete"
    scope = data.get("delete_scope") or None
    if scope is not None and scope != DELETE_SCOPE_REMAINING:
        raise CommandError(
            f"unknown delete_scope {scope!r}; only {DELETE_SCOPE_REMAINING!r} is supported",
            mode, task_id,
        )
    number = None
    if scope is None:
        number = _number(data, "step_number", mode, task_id, required=False)
        if number is None:
            raise CommandError(
                "delete requires step_number or delete_scope='remaining'", mode, task_id
            )
    return DeleteCommand(task_id=task_id, step_number=number, scope=scope)


def _parse_finish(data, task_id):
    return FinishCommand(task_id)


def _parse_status(data, task_id):
    return StatusCommand(task_id)


_PARSERS: Dict[str, Callable[[Mapping[str, Any], str], Command]] = {
    "initialize": _parse_initialize,
    "start": _parse_start,
    "complete": _parse_complete,
    "insert": _parse_insert,
    "update": _parse_update,
    "delete": _parse_delete,
    "finish": _parse_finish,
    "status": _parse_status,
}

MODES = tuple(_PARSERS)


def parse_command(data: Mapping[str, Any]) -> Command:
    """
    Turn a raw request into a typed command.

    Parameters beyond the mode's required set are ignored.

    Raises:
        CommandError: If the mode is unknown or a field is malformed
    """
    if not isinstance(data, Mapping):
        raise CommandError("command must be an object")

    raw_mode = data.get("mode")
    if not isinstance(raw_mode, str):
        raise CommandError("command requires a mode")
    mode = MODE_ALIASES.get(raw_mode, raw_mode)

    parser = _PARSERS.get(mode)
    if parser is None:
        raise CommandError(
            f"unknown mode {raw_mode!r}; valid: {', '.join(MODES)}", raw_mode
        )

    task_id = _task_id(data, mode)
    return parser(data, task_id)
