"""
Candidate advancement state machine.

A pure function over an application's current state, the decisions recorded
for its current round and the cycle's round configuration. It performs no
I/O; persistence and notification are the orchestrator's job.

    RESUME_REVIEW -> COFFEE_CHAT -> FIRST_ROUND -> FINAL_ROUND -> {ACCEPTED, REJECTED}

Each intermediate round listed in ``RoundConfiguration.reconsider_on_no``
loops back onto itself on a NO verdict.
"""

from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Any, Optional, Sequence

from core.errors import InvalidTransitionInput
from core.workflow.rounds import (
    NotificationKind,
    Outcome,
    Round,
    RoundConfiguration,
    Verdict,
    VerdictPolicy,
)


class TransitionKind(str, PyEnum):
    """Result categories of a single state machine evaluation."""

    ADVANCED = "ADVANCED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    RECONSIDERATION = "RECONSIDERATION"
    NO_DECISION = "NO_DECISION"
    INDETERMINATE = "INDETERMINATE"


# Kinds that produce a transition record
RECORDED_KINDS = frozenset(
    {
        TransitionKind.ADVANCED,
        TransitionKind.ACCEPTED,
        TransitionKind.REJECTED,
        TransitionKind.RECONSIDERATION,
    }
)


@dataclass(frozen=True)
class ApplicationState:
    """The parts of an application the state machine reads."""

    application_id: int
    current_round: Round
    outcome: Outcome = Outcome.PENDING

    @classmethod
    def of(cls, application: Any) -> "ApplicationState":
        return cls(
            application_id=application.id,
            current_round=Round(application.current_round),
            outcome=Outcome(application.outcome),
        )


@dataclass(frozen=True)
class DecisionView:
    """A decision as seen by the state machine.

    ORM ``Decision`` rows expose the same attributes and can be passed
    directly.
    """

    id: int
    round: Round
    verdict: Verdict
    is_override: bool = False


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of evaluating one application."""

    kind: TransitionKind
    application_id: int
    from_round: Round
    to_round: Round
    outcome: Outcome
    verdict: Optional[Verdict] = None
    notification: Optional[NotificationKind] = None
    decision_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_recorded(self) -> bool:
        """Whether this result must be persisted as a transition record."""
        return self.kind in RECORDED_KINDS

    @property
    def is_terminal(self) -> bool:
        return self.outcome != Outcome.PENDING

    @property
    def last_decision_id(self) -> Optional[int]:
        return max(self.decision_ids) if self.decision_ids else None


def resolve_verdict(decisions: Sequence[Any], policy: VerdictPolicy) -> Optional[Any]:
    """
    Collapse the decisions of one application/round into the deciding one.

    Args:
        decisions: Decisions for a single application and round
        policy: Resolution policy from the round configuration

    Returns:
        The deciding decision, or None when there are no decisions
    """
    if not decisions:
        return None

    ordered = sorted(decisions, key=lambda d: d.id)

    if policy == VerdictPolicy.ADMIN_OVERRIDE:
        overrides = [d for d in ordered if getattr(d, "is_override", False)]
        if overrides:
            return overrides[-1]

    return ordered[-1]


def compute_transition(
    application: Any,
    decisions: Sequence[Any],
    config: Optional[RoundConfiguration],
) -> TransitionResult:
    """
    Compute the next state of an application from its current-round decisions.

    Args:
        application: ApplicationState or any object with id/current_round/outcome
        decisions: Decisions recorded for the application; other rounds are ignored
        config: Round configuration of the application's cycle

    Returns:
        TransitionResult describing the move (or non-move)

    Raises:
        InvalidTransitionInput: For a missing configuration, an unknown or DONE
            round, or an application that already has a terminal outcome
    """
    if config is None:
        raise InvalidTransitionInput("Round configuration is required")

    state = application if isinstance(application, ApplicationState) else ApplicationState.of(application)

    if state.outcome != Outcome.PENDING:
        raise InvalidTransitionInput(
            f"Application {state.application_id} is already {state.outcome.value}"
        )
    if state.current_round == Round.DONE or not config.contains(state.current_round):
        raise InvalidTransitionInput(
            f"Round {state.current_round.value} is not part of this cycle's configuration"
        )

    current = state.current_round
    relevant = [d for d in decisions if Round(d.round) == current]
    considered = tuple(sorted(d.id for d in relevant))

    def result(kind, to_round=current, outcome=Outcome.PENDING, verdict=None, notification=None):
        return TransitionResult(
            kind=kind,
            application_id=state.application_id,
            from_round=current,
            to_round=to_round,
            outcome=outcome,
            verdict=verdict,
            notification=notification,
            decision_ids=considered,
        )

    deciding = resolve_verdict(relevant, config.verdict_policy)
    if deciding is None:
        return result(TransitionKind.NO_DECISION)

    verdict = Verdict(deciding.verdict)
    if not verdict.is_clear:
        return result(TransitionKind.INDETERMINATE, verdict=verdict)

    if verdict == Verdict.YES:
        if config.is_final(current):
            return result(
                TransitionKind.ACCEPTED,
                to_round=Round.DONE,
                outcome=Outcome.ACCEPTED,
                verdict=verdict,
                notification=NotificationKind.ACCEPTED,
            )
        target = config.next_round(current)
        return result(
            TransitionKind.ADVANCED,
            to_round=target,
            verdict=verdict,
            notification=NotificationKind.advanced_to(target),
        )

    # NO
    if config.rejects_on_no(current):
        return result(
            TransitionKind.REJECTED,
            to_round=Round.DONE,
            outcome=Outcome.REJECTED,
            verdict=verdict,
            notification=NotificationKind.REJECTED,
        )
    return result(TransitionKind.RECONSIDERATION, verdict=verdict)
