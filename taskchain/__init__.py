"""
taskchain — Adaptive, checkpointed multi-step task execution

Tracks a long-running workflow whose steps are carried out by an outside
actor, one at a time. Every step must be closed with a summary before the
next decision is made, and the plan may be changed mid-flight (steps
inserted, the tail replaced, remaining steps cancelled) without losing the
history of completed work.

Usage:
    from taskchain import TaskChainEngine

    engine = TaskChainEngine()
    engine.dispatch({"mode": "initialize", "task_id": "T1",
                     "description": "Fix the parser",
                     "plan": [{"name": "search"}, {"name": "fix"}]})
    engine.dispatch({"mode": "complete", "task_id": "T1",
                     "step_number": 1, "summary": "bug is in tokenizer"})
"""

__version__ = "0.1.0"

# Core layer (data + state machine)
from .core.step import Step, StepStatus, PlanEntry, as_step_number, format_step_number
from .core.numbering import NumberingPolicy
from .core.chain import Chain, ChainStatus
from .core.errors import ErrorKind, ChainError, OperationResult
from .core.decision import (
    ActionKind, DecisionBriefing, StepPreview, SuggestedAction, compose_decision_point,
)
from .core.store import ChainStore

# Boundary
from .commands import (
    Command, CommandError, parse_command, parse_plan,
    InitializeCommand, StartCommand, CompleteCommand, InsertCommand,
    UpdateCommand, DeleteCommand, FinishCommand, StatusCommand,
)

# Engine
from .config import ChainConfig, ConfigManager, get_config
from .metrics import MetricsCollector
from .engine import TaskChainEngine, get_engine, reset_engine

__all__ = [
    # Core
    'Step', 'StepStatus', 'PlanEntry', 'as_step_number', 'format_step_number',
    'NumberingPolicy',
    'Chain', 'ChainStatus',
    'ErrorKind', 'ChainError', 'OperationResult',
    'ActionKind', 'DecisionBriefing', 'StepPreview', 'SuggestedAction',
    'compose_decision_point',
    'ChainStore',
    # Commands
    'Command', 'CommandError', 'parse_command', 'parse_plan',
    'InitializeCommand', 'StartCommand', 'CompleteCommand', 'InsertCommand',
    'UpdateCommand', 'DeleteCommand', 'FinishCommand', 'StatusCommand',
    # Engine
    'ChainConfig', 'ConfigManager', 'get_config',
    'MetricsCollector',
    'TaskChainEngine', 'get_engine', 'reset_engine',
]
