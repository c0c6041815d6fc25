"""
TaskChainEngine — Entry point for chain operations

Resolves each request to exactly one state-machine operation against one
chain, while holding that chain's lock.

Usage:
    from taskchain import TaskChainEngine

    engine = TaskChainEngine()
    engine.initialize("TASK_001", "Analyze code and write tests", [
        {"name": "search", "input": "code_search(query='parser')"},
        {"name": "analyze"},
        {"name": "write"},
    ])
    result = engine.complete("TASK_001", 1, "found the parser in core/")
    result.briefing.recommended.command
    # {'mode': 'start', 'task_id': 'TASK_001', 'step_number': 2.0}

    # Raw requests from a transport
    result = engine.dispatch({"mode": "insert", "task_id": "TASK_001",
                              "after": 1, "insert_plan": [{"name": "read file"}]})

Every call returns an OperationResult; rejected requests carry a
ChainError instead of raising.

Thread Safety:
- Operations on the same task_id are serialized by the store's entry lock
- Operations on different task_ids run independently
- Results are snapshots, safe to read after the lock is released
"""

import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from .commands import (
    Command, CommandError,
    InitializeCommand, StartCommand, CompleteCommand, InsertCommand,
    UpdateCommand, DeleteCommand, FinishCommand, StatusCommand,
    parse_command, parse_plan,
)
from .config import ChainConfig, get_config
from .core import transitions
from .core.chain import Chain
from .core.errors import ErrorKind, OperationResult
from .core.step import as_step_number
from .core.store import ChainStore
from .metrics import MetricsCollector


logger = logging.getLogger(__name__)


def _detach(result: OperationResult) -> OperationResult:
    """Copy a result so it no longer shares state with the live chain."""
    return copy.deepcopy(result)


class TaskChainEngine:
    """
    Central coordinator for task chains.

    Owns:
    - the ChainStore (task_id → chain, per-entry locks, retention)
    - the NumberingPolicy built from config
    - the MetricsCollector (optional)
    """

    def __init__(
        self,
        config: Optional[ChainConfig] = None,
        store: Optional[ChainStore] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """
        Initialize the engine.

        Args:
            config: Configuration. If None, loads the project and user
                YAML files under environment overrides (see get_config).
            store: Chain store. If None, one is built from config.
            metrics: Metrics collector. If None and metrics are enabled,
                one is created.
        """
        self._config = config or get_config()
        self._config.validate()

        self._numbering = self._config.numbering()
        self._store = store or ChainStore(
            max_chains=self._config.max_chains,
            ttl_seconds=self._config.chain_ttl_seconds,
        )
        if metrics is None and self._config.metrics_enabled:
            metrics = MetricsCollector()
        self._metrics = metrics

    @property
    def config(self) -> ChainConfig:
        return self._config

    @property
    def store(self) -> ChainStore:
        return self._store

    # =========================================================================
    # Operations
    # =========================================================================

    def initialize(
        self,
        task_id: str,
        description: str,
        plan: Sequence[Any]
    ) -> OperationResult:
        """
        Create a chain and start its first step.

        Args:
            task_id: Unique key for the chain
            description: What the whole task is about
            plan: PlanEntry objects or {name, input?} mappings
        """
        mode = "initialize"

        def operation() -> OperationResult:
            entries = parse_plan(plan, "plan", mode, task_id)
            self._store.evict_expired()
            result = transitions.initialize_chain(
                task_id, description or "", entries,
                self._numbering, self._config.single_active_step,
            )
            if not result.ok:
                return result
            snapshot = _detach(result)
            if not self._store.add(result.chain):
                return OperationResult.failure(
                    mode, ErrorKind.DUPLICATE_CHAIN, task_id,
                    detail="a chain with this task_id already exists",
                )
            return snapshot

        return self._run(mode, task_id, operation)

    def start(self, task_id: str, step_number: Any) -> OperationResult:
        """Begin a todo step."""
        mode = "start"
        return self._run(mode, task_id, lambda: self._on_chain(
            mode, task_id,
            lambda chain: transitions.start_step(
                chain, self._number(step_number, mode, task_id),
                self._config.single_active_step,
            ),
        ))

    def complete(self, task_id: str, step_number: Any, summary: str) -> OperationResult:
        """Close an in_progress step; the result carries the decision briefing."""
        mode = "complete"

        def operation() -> OperationResult:
            number = self._number(step_number, mode, task_id)
            missing = transitions.check_summary(summary, task_id, number)
            if missing:
                return OperationResult(mode=mode, task_id=task_id, error=missing)
            return self._on_chain(
                mode, task_id,
                lambda chain: transitions.complete_step(
                    chain, number, summary, self._config.preview_length,
                ),
            )

        return self._run(mode, task_id, operation)

    def insert(self, task_id: str, after: Any, steps: Sequence[Any]) -> OperationResult:
        """Add todo steps right after the anchor step."""
        mode = "insert"

        def operation() -> OperationResult:
            anchor = self._number(after, mode, task_id)
            entries = parse_plan(steps, "insert_plan", mode, task_id)
            return self._on_chain(
                mode, task_id,
                lambda chain: transitions.insert_steps(chain, anchor, entries, self._numbering),
            )

        return self._run(mode, task_id, operation)

    def update(self, task_id: str, from_step: Any, steps: Sequence[Any]) -> OperationResult:
        """Replace the todo tail after the anchor step."""
        mode = "update"

        def operation() -> OperationResult:
            anchor = self._number(from_step, mode, task_id)
            entries = parse_plan(steps, "update_plan", mode, task_id)
            return self._on_chain(
                mode, task_id,
                lambda chain: transitions.update_steps(chain, anchor, entries, self._numbering),
            )

        return self._run(mode, task_id, operation)

    def delete(
        self,
        task_id: str,
        step_number: Any = None,
        scope: Optional[str] = None
    ) -> OperationResult:
        """Remove one todo step, or every todo step with scope='remaining'."""
        mode = "delete"

        def operation() -> OperationResult:
            if scope is not None and scope != transitions.DELETE_SCOPE_REMAINING:
                raise CommandError(f"unknown delete scope {scope!r}", mode, task_id)
            target = None
            if step_number is not None:
                target = self._number(step_number, mode, task_id)
            return self._on_chain(
                mode, task_id,
                lambda chain: transitions.delete_steps(chain, target, scope),
            )

        return self._run(mode, task_id, operation)

    def finish(self, task_id: str) -> OperationResult:
        """Mark the chain finished."""
        mode = "finish"
        return self._run(mode, task_id, lambda: self._on_chain(
            mode, task_id, transitions.finish_chain,
        ))

    def status(self, task_id: str) -> OperationResult:
        """Snapshot of a chain and its active step."""
        mode = "status"
        return self._run(mode, task_id, lambda: self._on_chain(
            mode, task_id, transitions.chain_status,
        ))

    # =========================================================================
    # Command dispatch
    # =========================================================================

    def execute(self, command: Command) -> OperationResult:
        """Run a parsed command."""
        handler = self._handlers().get(type(command))
        if handler is None:
            raise TypeError(f"Not a chain command: {command!r}")
        return handler(command)

    def dispatch(self, data: Mapping[str, Any]) -> OperationResult:
        """
        Parse and run a raw request.

        Malformed requests come back as an invalid_command error result.
        """
        try:
            command = parse_command(data)
        except CommandError as e:
            result = OperationResult.failure(
                e.mode or "unknown", ErrorKind.INVALID_COMMAND, e.task_id, detail=str(e),
            )
            logger.info("Rejected command: %s", result.error.message)
            self._record(result, 0.0)
            return result
        return self.execute(command)

    def _handlers(self) -> Dict[type, Callable[[Any], OperationResult]]:
        return {
            InitializeCommand: lambda c: self.initialize(c.task_id, c.description, c.plan),
            StartCommand: lambda c: self.start(c.task_id, c.step_number),
            CompleteCommand: lambda c: self.complete(c.task_id, c.step_number, c.summary),
            InsertCommand: lambda c: self.insert(c.task_id, c.after, c.steps),
            UpdateCommand: lambda c: self.update(c.task_id, c.from_step, c.steps),
            DeleteCommand: lambda c: self.delete(c.task_id, c.step_number, c.scope),
            FinishCommand: lambda c: self.finish(c.task_id),
            StatusCommand: lambda c: self.status(c.task_id),
        }

    # =========================================================================
    # Observability
    # =========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        """Get engine metrics summary."""
        if self._metrics is None:
            return {"enabled": False}

        running = finished = 0
        for task_id in self._store.task_ids():
            chain = self._store.get(task_id)
            if chain is None:
                continue
            if chain.is_finished:
                finished += 1
            else:
                running += 1
        self._metrics.set_chain_counts(running, finished)

        summary = self._metrics.get_summary()
        summary["enabled"] = True
        summary["config"] = self._config.to_dict()
        return summary

    # =========================================================================
    # Internals
    # =========================================================================

    def _run(self, mode: str, task_id: str,
             operation: Callable[[], OperationResult]) -> OperationResult:
        """Time one operation, turn boundary errors into results, record it."""
        started = time.perf_counter()
        if not isinstance(task_id, str) or not task_id.strip():
            result = OperationResult.failure(
                mode, ErrorKind.INVALID_COMMAND, detail="task_id must be a non-empty string",
            )
        else:
            try:
                result = operation()
            except CommandError as e:
                result = OperationResult.failure(
                    mode, ErrorKind.INVALID_COMMAND, task_id, detail=str(e),
                )
        duration_ms = (time.perf_counter() - started) * 1000

        if result.ok:
            logger.debug("%s %s ok (%.3f ms)", mode, task_id, duration_ms)
        else:
            logger.info("%s rejected: %s", mode, result.error.message)

        self._record(result, duration_ms)
        return result

    def _on_chain(self, mode: str, task_id: str,
                  transition: Callable[[Chain], OperationResult]) -> OperationResult:
        """Apply a transition to one chain under its lock."""
        self._store.evict_expired()
        with self._store.locked(task_id) as chain:
            if chain is None:
                return OperationResult.failure(
                    mode, ErrorKind.CHAIN_NOT_FOUND, task_id,
                    detail="initialize the chain first",
                )
            return _detach(transition(chain))

    def _record(self, result: OperationResult, duration_ms: float) -> None:
        if self._metrics is not None:
            self._metrics.record_operation(result, duration_ms)

    @staticmethod
    def _number(value: Any, mode: str, task_id: str):
        try:
            return as_step_number(value)
        except ValueError as e:
            raise CommandError(str(e), mode, task_id)


# Global engine instance (singleton pattern)
_engine: Optional[TaskChainEngine] = None
_engine_lock = threading.Lock()


def get_engine() -> TaskChainEngine:
    """
    Get the global engine instance.

    Creates one if it doesn't exist, using the current project's configuration.
    Hosting layers may use this; the core never does.
    """
    global _engine

    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = TaskChainEngine()

    return _engine


def reset_engine() -> None:
    """
    Reset the global engine, dropping every chain.

    Useful for testing or reconfiguration.
    """
    global _engine

    with _engine_lock:
        _engine = None
