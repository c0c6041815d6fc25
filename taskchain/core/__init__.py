"""
Core — Steps, chains and the state machine that moves them

Leaf-first:
- step: Step, StepStatus, PlanEntry, step numbers
- numbering: NumberingPolicy
- chain: Chain, ChainStatus
- errors: ErrorKind, ChainError, OperationResult
- decision: DecisionBriefing and its composer
- transitions: the lifecycle operations
- store: ChainStore
"""

from .step import (
    Step, StepStatus, PlanEntry,
    as_step_number, format_step_number, can_transition,
)
from .numbering import NumberingPolicy
from .chain import Chain, ChainStatus
from .errors import ErrorKind, ChainError, OperationResult
from .decision import (
    ActionKind, DecisionBriefing, StepPreview, SuggestedAction,
    compose_decision_point, truncate_summary,
)
from .transitions import (
    DELETE_SCOPE_REMAINING,
    initialize_chain, start_step, complete_step, insert_steps,
    update_steps, delete_steps, finish_chain, chain_status,
)
from .store import ChainStore

__all__ = [
    # Step
    'Step', 'StepStatus', 'PlanEntry',
    'as_step_number', 'format_step_number', 'can_transition',
    'NumberingPolicy',
    # Chain
    'Chain', 'ChainStatus',
    # Outcomes
    'ErrorKind', 'ChainError', 'OperationResult',
    # Decision point
    'ActionKind', 'DecisionBriefing', 'StepPreview', 'SuggestedAction',
    'compose_decision_point', 'truncate_summary',
    # Transitions
    'DELETE_SCOPE_REMAINING',
    'initialize_chain', 'start_step', 'complete_step', 'insert_steps',
    'update_steps', 'delete_steps', 'finish_chain', 'chain_status',
    # Store
    'ChainStore',
]
