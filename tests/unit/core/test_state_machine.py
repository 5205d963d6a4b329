"""
Tests for the advancement state machine.

Covers every transition rule, both verdict policies and the inputs the
state machine refuses to evaluate.
"""

import pytest

from core.errors import InvalidTransitionInput
from core.workflow.rounds import (
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
    compute_transition,
    resolve_verdict,
)

DEFAULT = RoundConfiguration()
ADMIN_OVERRIDE = RoundConfiguration(verdict_policy=VerdictPolicy.ADMIN_OVERRIDE)


def app_at(round_, outcome=Outcome.PENDING, application_id=1):
    return ApplicationState(application_id=application_id, current_round=round_, outcome=outcome)


def decision(id_, round_, verdict, is_override=False):
    return DecisionView(id=id_, round=round_, verdict=verdict, is_override=is_override)


class TestResolveVerdict:
    """Test collapsing several decisions into the deciding one."""

    def test_no_decisions(self):
        assert resolve_verdict([], VerdictPolicy.LAST_WRITER_WINS) is None

    def test_last_writer_wins_uses_highest_id(self):
        decisions = [
            decision(5, Round.COFFEE_CHAT, Verdict.NO),
            decision(9, Round.COFFEE_CHAT, Verdict.YES),
            decision(7, Round.COFFEE_CHAT, Verdict.MAYBE_NO),
        ]

        assert resolve_verdict(decisions, VerdictPolicy.LAST_WRITER_WINS).id == 9

    def test_last_writer_wins_ignores_override_flag(self):
        decisions = [
            decision(1, Round.COFFEE_CHAT, Verdict.YES, is_override=True),
            decision(2, Round.COFFEE_CHAT, Verdict.NO),
        ]

        assert resolve_verdict(decisions, VerdictPolicy.LAST_WRITER_WINS).verdict == Verdict.NO

    def test_admin_override_prefers_latest_override(self):
        decisions = [
            decision(1, Round.COFFEE_CHAT, Verdict.YES, is_override=True),
            decision(2, Round.COFFEE_CHAT, Verdict.NO, is_override=True),
            decision(3, Round.COFFEE_CHAT, Verdict.YES),
        ]

        assert resolve_verdict(decisions, VerdictPolicy.ADMIN_OVERRIDE).id == 2

    def test_admin_override_without_overrides_falls_back_to_latest(self):
        decisions = [
            decision(1, Round.COFFEE_CHAT, Verdict.YES),
            decision(2, Round.COFFEE_CHAT, Verdict.MAYBE_YES),
        ]

        assert resolve_verdict(decisions, VerdictPolicy.ADMIN_OVERRIDE).id == 2


class TestYesVerdict:
    @pytest.mark.parametrize("current,target,notification", [
        (Round.RESUME_REVIEW, Round.COFFEE_CHAT, NotificationKind.ADVANCED_COFFEE_CHAT),
        (Round.COFFEE_CHAT, Round.FIRST_ROUND, NotificationKind.ADVANCED_FIRST_ROUND),
        (Round.FIRST_ROUND, Round.FINAL_ROUND, NotificationKind.ADVANCED_FINAL_ROUND),
    ])
    def test_yes_advances_to_next_round(self, current, target, notification):
        result = compute_transition(app_at(current), [decision(1, current, Verdict.YES)], DEFAULT)

        assert result.kind == TransitionKind.ADVANCED
        assert result.from_round == current
        assert result.to_round == target
        assert result.outcome == Outcome.PENDING
        assert result.verdict == Verdict.YES
        assert result.notification == notification
        assert result.decision_ids == (1,)
        assert result.is_recorded
        assert not result.is_terminal

    def test_yes_in_final_round_accepts(self):
        result = compute_transition(
            app_at(Round.FINAL_ROUND), [decision(4, Round.FINAL_ROUND, Verdict.YES)], DEFAULT
        )

        assert result.kind == TransitionKind.ACCEPTED
        assert result.to_round == Round.DONE
        assert result.outcome == Outcome.ACCEPTED
        assert result.notification == NotificationKind.ACCEPTED
        assert result.is_terminal

    def test_yes_follows_custom_round_order(self):
        config = RoundConfiguration(
            rounds=(Round.RESUME_REVIEW, Round.FINAL_ROUND),
            reconsider_on_no=frozenset(),
        )

        result = compute_transition(
            app_at(Round.RESUME_REVIEW), [decision(1, Round.RESUME_REVIEW, Verdict.YES)], config
        )

        assert result.to_round == Round.FINAL_ROUND
        assert result.notification == NotificationKind.ADVANCED_FINAL_ROUND


class TestNoVerdict:
    @pytest.mark.parametrize("current", [Round.RESUME_REVIEW, Round.FINAL_ROUND])
    def test_no_rejects_in_first_and_final_round(self, current):
        result = compute_transition(app_at(current), [decision(1, current, Verdict.NO)], DEFAULT)

        assert result.kind == TransitionKind.REJECTED
        assert result.to_round == Round.DONE
        assert result.outcome == Outcome.REJECTED
        assert result.notification == NotificationKind.REJECTED
        assert result.is_recorded

    @pytest.mark.parametrize("current", [Round.COFFEE_CHAT, Round.FIRST_ROUND])
    def test_no_in_intermediate_round_keeps_candidate(self, current):
        result = compute_transition(app_at(current), [decision(1, current, Verdict.NO)], DEFAULT)

        assert result.kind == TransitionKind.RECONSIDERATION
        assert result.to_round == current
        assert result.outcome == Outcome.PENDING
        assert result.notification is None
        assert result.is_recorded
        assert result.last_decision_id == 1

    def test_no_rejects_when_round_not_reconsidered(self):
        config = RoundConfiguration(reconsider_on_no=frozenset({Round.FIRST_ROUND}))

        result = compute_transition(
            app_at(Round.COFFEE_CHAT), [decision(1, Round.COFFEE_CHAT, Verdict.NO)], config
        )

        assert result.kind == TransitionKind.REJECTED


class TestUnclearAndMissingVerdicts:
    @pytest.mark.parametrize("verdict", [Verdict.MAYBE_YES, Verdict.MAYBE_NO])
    @pytest.mark.parametrize("current", [Round.RESUME_REVIEW, Round.COFFEE_CHAT, Round.FINAL_ROUND])
    def test_maybe_is_indeterminate(self, current, verdict):
        result = compute_transition(app_at(current), [decision(1, current, verdict)], DEFAULT)

        assert result.kind == TransitionKind.INDETERMINATE
        assert result.to_round == current
        assert result.outcome == Outcome.PENDING
        assert result.verdict == verdict
        assert result.notification is None
        assert not result.is_recorded

    def test_no_decisions(self):
        result = compute_transition(app_at(Round.COFFEE_CHAT), [], DEFAULT)

        assert result.kind == TransitionKind.NO_DECISION
        assert result.verdict is None
        assert result.decision_ids == ()
        assert result.last_decision_id is None
        assert not result.is_recorded

    def test_decisions_for_other_rounds_are_ignored(self):
        decisions = [
            decision(1, Round.RESUME_REVIEW, Verdict.YES),
            decision(2, Round.FIRST_ROUND, Verdict.NO),
        ]

        result = compute_transition(app_at(Round.COFFEE_CHAT), decisions, DEFAULT)

        assert result.kind == TransitionKind.NO_DECISION

    def test_later_clear_verdict_beats_earlier_maybe(self):
        decisions = [
            decision(1, Round.COFFEE_CHAT, Verdict.MAYBE_YES),
            decision(2, Round.COFFEE_CHAT, Verdict.YES),
        ]

        result = compute_transition(app_at(Round.COFFEE_CHAT), decisions, DEFAULT)

        assert result.kind == TransitionKind.ADVANCED
        assert result.decision_ids == (1, 2)
        assert result.last_decision_id == 2


class TestVerdictPolicies:
    def test_last_writer_wins(self):
        decisions = [
            decision(1, Round.FIRST_ROUND, Verdict.YES, is_override=True),
            decision(2, Round.FIRST_ROUND, Verdict.NO),
        ]

        result = compute_transition(app_at(Round.FIRST_ROUND), decisions, DEFAULT)

        assert result.kind == TransitionKind.RECONSIDERATION

    def test_admin_override(self):
        decisions = [
            decision(1, Round.FIRST_ROUND, Verdict.YES, is_override=True),
            decision(2, Round.FIRST_ROUND, Verdict.NO),
        ]

        result = compute_transition(app_at(Round.FIRST_ROUND), decisions, ADMIN_OVERRIDE)

        assert result.kind == TransitionKind.ADVANCED
        assert result.verdict == Verdict.YES


class TestInvalidInput:
    def test_missing_configuration(self):
        with pytest.raises(InvalidTransitionInput, match="configuration is required"):
            compute_transition(app_at(Round.COFFEE_CHAT), [], None)

    @pytest.mark.parametrize("outcome", [Outcome.ACCEPTED, Outcome.REJECTED])
    def test_terminal_application(self, outcome):
        with pytest.raises(InvalidTransitionInput, match="already"):
            compute_transition(app_at(Round.DONE, outcome=outcome), [], DEFAULT)

    def test_done_round(self):
        with pytest.raises(InvalidTransitionInput):
            compute_transition(app_at(Round.DONE), [], DEFAULT)

    def test_round_outside_configuration(self):
        config = RoundConfiguration(
            rounds=(Round.RESUME_REVIEW, Round.FINAL_ROUND),
            reconsider_on_no=frozenset(),
        )

        with pytest.raises(InvalidTransitionInput, match="not part of"):
            compute_transition(app_at(Round.COFFEE_CHAT), [], config)


class TestApplicationState:
    def test_of_reads_orm_like_objects(self):
        class Row:
            id = 12
            current_round = "FIRST_ROUND"
            outcome = "PENDING"

        state = ApplicationState.of(Row())

        assert state == ApplicationState(12, Round.FIRST_ROUND, Outcome.PENDING)

    def test_compute_accepts_orm_like_objects(self):
        class Row:
            id = 3
            current_round = Round.RESUME_REVIEW
            outcome = Outcome.PENDING

        result = compute_transition(Row(), [decision(1, Round.RESUME_REVIEW, Verdict.YES)], DEFAULT)

        assert result.application_id == 3
        assert result.kind == TransitionKind.ADVANCED

    def test_pure_function_is_deterministic(self):
        decisions = [decision(2, Round.COFFEE_CHAT, Verdict.NO), decision(1, Round.COFFEE_CHAT, Verdict.YES)]

        first = compute_transition(app_at(Round.COFFEE_CHAT), decisions, DEFAULT)
        second = compute_transition(app_at(Round.COFFEE_CHAT), list(reversed(decisions)), DEFAULT)

        assert first == second
