"""
Recruiting workflow package.

Round configuration and the pure advancement state machine.
"""

from core.workflow.rounds import (
    DEFAULT_ROUND_CONFIGURATION,
    PIPELINE_ROUNDS,
    NotificationKind,
    Outcome,
    Round,
    RoundConfiguration,
    Verdict,
    VerdictPolicy,
)

from core.workflow.state_machine import (
    ApplicationState,
    DecisionView,
    TransitionKind,
    TransitionResult,
    compute_transition,
    resolve_verdict,
)

__all__ = [
    # Rounds
    "DEFAULT_ROUND_CONFIGURATION",
    "PIPELINE_ROUNDS",
    "NotificationKind",
    "Outcome",
    "Round",
    "RoundConfiguration",
    "Verdict",
    "VerdictPolicy",
    # State machine
    "ApplicationState",
    "DecisionView",
    "TransitionKind",
    "TransitionResult",
    "compute_transition",
    "resolve_verdict",
]
