"""
Transitions — The step lifecycle state machine

Pure functions over one chain: initialize, start, complete, insert,
update, delete, finish, status. Each returns an OperationResult.

Rules enforced here:
- Steps move todo → in_progress → complete, never back
- complete needs a non-empty summary and an in_progress step
- at most one step in progress (when single_active is on)
- a finished chain accepts no step mutation
- step numbers stay distinct and ascending
- completed history is never discarded

Every function validates fully before it mutates, so a rejected
operation leaves the chain exactly as it was.

These functions do no locking; the engine holds the chain's lock
around each call.
"""

from decimal import Decimal
from typing import Optional, Sequence

from .chain import Chain, build_chain
from .decision import DEFAULT_PREVIEW_LENGTH, compose_decision_point
from .errors import ChainError, ErrorKind, OperationResult
from .numbering import NumberingPolicy
from .step import PlanEntry, StepStatus, can_transition, format_step_number


DELETE_SCOPE_REMAINING = "remaining"


def _fail(
    mode: str,
    kind: ErrorKind,
    chain: Optional[Chain] = None,
    number: Optional[Decimal] = None,
    detail: str = "",
    task_id: str = ""
) -> OperationResult:
    return OperationResult.failure(
        mode, kind, chain.task_id if chain else task_id, number, detail
    )


def _check_running(mode: str, chain: Chain) -> Optional[OperationResult]:
    if chain.is_finished:
        return _fail(mode, ErrorKind.CHAIN_FINISHED, chain,
                     detail="chain is finished; no further step changes")
    return None


def check_summary(summary: Optional[str], task_id: str = "",
                  number: Optional[Decimal] = None) -> Optional[ChainError]:
    """The checkpoint rule: a summary must say something."""
    if not summary or not summary.strip():
        return ChainError(ErrorKind.MISSING_SUMMARY, task_id, number,
                          "a summary is required to complete a step")
    return None


def initialize_chain(
    task_id: str,
    description: str,
    plan: Sequence[PlanEntry],
    numbering: NumberingPolicy,
    single_active: bool = True
) -> OperationResult:
    """
    Create a chain from a plan and start its first step.

    Duplicate detection belongs to the store; this only builds the chain.
    """
    mode = "initialize"
    if not plan:
        return _fail(mode, ErrorKind.EMPTY_PLAN, task_id=task_id,
                     detail="plan must contain at least one step")

    numbers = numbering.initial(len(plan))
    chain = build_chain(task_id, description, plan, numbers)

    started = start_step(chain, numbers[0], single_active)
    if not started.ok:
        return started

    return OperationResult(
        mode=mode,
        task_id=task_id,
        step=started.step,
        added=list(chain.steps),
        chain=chain,
    )


def start_step(
    chain: Chain,
    number: Decimal,
    single_active: bool = True
) -> OperationResult:
    """Move a todo step to in_progress and make it the current step."""
    mode = "start"
    rejected = _check_running(mode, chain)
    if rejected:
        return rejected

    step = chain.find(number)
    if step is None:
        return _fail(mode, ErrorKind.STEP_NOT_FOUND, chain, number)

    if not can_transition(step.status, StepStatus.IN_PROGRESS):
        return _fail(mode, ErrorKind.INVALID_TRANSITION, chain, number,
                     f"step is {step.status.value}, only todo steps can start")

    if single_active:
        active = [s for s in chain.active_steps() if s is not step]
        if active:
            return _fail(mode, ErrorKind.INVALID_TRANSITION, chain, number,
                         f"step {active[0].label} is still in progress; "
                         "complete it first")

    step.start()
    chain.current_step = number
    chain.touch()
    return OperationResult(mode=mode, task_id=chain.task_id, step=step, chain=chain)


def complete_step(
    chain: Chain,
    number: Decimal,
    summary: str,
    preview_length: int = DEFAULT_PREVIEW_LENGTH
) -> OperationResult:
    """Close an in_progress step with its summary and brief the executor."""
    mode = "complete"
    missing = check_summary(summary, chain.task_id, number)
    if missing:
        return OperationResult(mode=mode, task_id=chain.task_id, error=missing)

    rejected = _check_running(mode, chain)
    if rejected:
        return rejected

    step = chain.find(number)
    if step is None:
        return _fail(mode, ErrorKind.STEP_NOT_FOUND, chain, number)

    if not can_transition(step.status, StepStatus.COMPLETE):
        return _fail(mode, ErrorKind.INVALID_TRANSITION, chain, number,
                     f"step is {step.status.value}, only in_progress steps can complete")

    step.complete(summary)
    chain.touch()
    briefing = compose_decision_point(chain, step, preview_length)
    return OperationResult(
        mode=mode,
        task_id=chain.task_id,
        step=step,
        briefing=briefing,
        chain=chain,
    )


def insert_steps(
    chain: Chain,
    after: Decimal,
    entries: Sequence[PlanEntry],
    numbering: NumberingPolicy
) -> OperationResult:
    """Add todo steps right after the anchor, numbered anchor + k/10."""
    mode = "insert"
    rejected = _check_running(mode, chain)
    if rejected:
        return rejected

    if not entries:
        return _fail(mode, ErrorKind.EMPTY_PLAN, chain, after,
                     "insert_plan must contain at least one step")

    idx = chain.index_of(after)
    if idx is None:
        return _fail(mode, ErrorKind.ANCHOR_NOT_FOUND, chain, after)

    upper = chain.steps[idx + 1].number if idx + 1 < len(chain.steps) else None
    numbers = numbering.insert(after, len(entries), upper)
    if numbers is None:
        return _fail(mode, ErrorKind.NUMBER_COLLISION, chain, after,
                     f"no room for {len(entries)} step(s) between "
                     f"{format_step_number(after)} and {format_step_number(upper)}")

    taken = set(chain.numbers)
    clashes = [n for n in numbers if n in taken]
    if clashes:
        return _fail(mode, ErrorKind.NUMBER_COLLISION, chain, clashes[0],
                     "generated number already in use")

    new_steps = [
        chain.new_step(number, entry.name, entry.input)
        for number, entry in zip(numbers, entries)
    ]
    chain.steps[idx + 1:idx + 1] = new_steps
    chain.reorder()
    chain.touch()
    return OperationResult(mode=mode, task_id=chain.task_id, added=new_steps, chain=chain)


def update_steps(
    chain: Chain,
    from_number: Decimal,
    entries: Sequence[PlanEntry],
    numbering: NumberingPolicy
) -> OperationResult:
    """
    Replace everything after the anchor with a new todo tail.

    The anchor and everything before it is kept. Steps after the anchor
    must all be todo; started or completed work is never dropped.
    """
    mode = "update"
    rejected = _check_running(mode, chain)
    if rejected:
        return rejected

    if not entries:
        return _fail(mode, ErrorKind.EMPTY_PLAN, chain, from_number,
                     "update_plan must contain at least one step")

    idx = chain.index_of(from_number)
    if idx is None:
        return _fail(mode, ErrorKind.ANCHOR_NOT_FOUND, chain, from_number)

    tail = chain.steps[idx + 1:]
    started = [s for s in tail if not s.is_todo]
    if started:
        return _fail(mode, ErrorKind.INVALID_TRANSITION, chain, started[0].number,
                     f"step {started[0].label} after the anchor is "
                     f"{started[0].status.value} and cannot be replaced")

    numbers = numbering.tail(from_number, len(entries))
    new_steps = [
        chain.new_step(number, entry.name, entry.input)
        for number, entry in zip(numbers, entries)
    ]
    chain.steps = chain.steps[:idx + 1] + new_steps
    chain.reorder()
    chain.touch()
    return OperationResult(
        mode=mode,
        task_id=chain.task_id,
        added=new_steps,
        removed=tail,
        chain=chain,
    )


def delete_steps(
    chain: Chain,
    target: Optional[Decimal] = None,
    scope: Optional[str] = None
) -> OperationResult:
    """Remove one todo step, or with scope 'remaining' every todo step."""
    mode = "delete"
    rejected = _check_running(mode, chain)
    if rejected:
        return rejected

    if scope == DELETE_SCOPE_REMAINING:
        removed = chain.todo_steps()
        chain.steps = [s for s in chain.steps if not s.is_todo]
        chain.touch()
        return OperationResult(mode=mode, task_id=chain.task_id, removed=removed, chain=chain)

    if target is None:
        return _fail(mode, ErrorKind.STEP_NOT_FOUND, chain,
                     detail="no step number or delete scope given")

    idx = chain.index_of(target)
    if idx is None:
        return _fail(mode, ErrorKind.STEP_NOT_FOUND, chain, target)

    step = chain.steps[idx]
    if step.is_active:
        return _fail(mode, ErrorKind.CANNOT_DELETE_ACTIVE, chain, target,
                     "complete the step before deleting it")
    if step.is_complete:
        return _fail(mode, ErrorKind.INVALID_TRANSITION, chain, target,
                     "completed steps are kept as history")

    del chain.steps[idx]
    chain.touch()
    return OperationResult(mode=mode, task_id=chain.task_id, step=step,
                           removed=[step], chain=chain)


def finish_chain(chain: Chain) -> OperationResult:
    """Mark the chain finished. Unfinished steps are allowed and reported."""
    if not chain.is_finished:
        chain.finish()
    return OperationResult(mode="finish", task_id=chain.task_id, chain=chain)


def chain_status(chain: Chain) -> OperationResult:
    """
    Read-only view: the chain, its active step and the next todo step.

    The next todo is searched above the active step (or the most recently
    started one); a todo left behind earlier in the chain is reported
    when nothing follows.
    """
    active = chain.active_steps()
    anchor = active[0].number if active else chain.current_step
    pending = chain.todo_steps()
    next_step = chain.next_todo_after(anchor) or (pending[0] if pending else None)
    return OperationResult(
        mode="status",
        task_id=chain.task_id,
        step=active[0] if active else None,
        next_step=next_step,
        chain=chain,
    )
