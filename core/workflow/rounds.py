"""
Recruiting rounds, verdicts and the per-cycle round configuration.
"""

from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Any, Iterable, Optional

from core.errors import InvalidTransitionInput, ValidationError


# ==================== Enums ===================== #
class Round(str, PyEnum):
    """Pipeline rounds, in canonical order."""

    RESUME_REVIEW = "RESUME_REVIEW"
    COFFEE_CHAT = "COFFEE_CHAT"
    FIRST_ROUND = "FIRST_ROUND"
    FINAL_ROUND = "FINAL_ROUND"
    DONE = "DONE"

    @classmethod
    def parse(cls, value: str) -> "Round":
        """Parse a round name case-insensitively, accepting dashes."""
        normalized = str(value).strip().upper().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(r.value for r in cls if r is not cls.DONE)
            raise ValidationError(f"Unknown round '{value}'. Expected one of: {valid}")

    @property
    def position(self) -> int:
        return list(Round).index(self)


class Outcome(str, PyEnum):
    """Terminal outcome of an application."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Verdict(str, PyEnum):
    """A reviewer's vote on an application within one round."""

    YES = "YES"
    NO = "NO"
    MAYBE_YES = "MAYBE_YES"
    MAYBE_NO = "MAYBE_NO"

    @property
    def is_clear(self) -> bool:
        return self in (Verdict.YES, Verdict.NO)

    @classmethod
    def parse(cls, value: str) -> "Verdict":
        normalized = str(value).strip().upper().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(v.value for v in cls)
            raise ValidationError(f"Invalid verdict '{value}'. Expected one of: {valid}")


class VerdictPolicy(str, PyEnum):
    """How multiple decisions for one application/round collapse into one verdict."""

    LAST_WRITER_WINS = "last_writer_wins"  # Most recent decision
    ADMIN_OVERRIDE = "admin_override"  # Most recent override, else most recent


class NotificationKind(str, PyEnum):
    """Candidate notifications emitted by round transitions."""

    ADVANCED_COFFEE_CHAT = "ADVANCED_COFFEE_CHAT"
    ADVANCED_FIRST_ROUND = "ADVANCED_FIRST_ROUND"
    ADVANCED_FINAL_ROUND = "ADVANCED_FINAL_ROUND"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"

    @classmethod
    def advanced_to(cls, target: Round) -> "NotificationKind":
        try:
            return cls(f"ADVANCED_{target.value}")
        except ValueError:
            raise InvalidTransitionInput(f"No advancement notification for round {target.value}")


PIPELINE_ROUNDS: tuple[Round, ...] = (
    Round.RESUME_REVIEW,
    Round.COFFEE_CHAT,
    Round.FIRST_ROUND,
    Round.FINAL_ROUND,
)


# ==================== Round Configuration ===================== #
@dataclass(frozen=True)
class RoundConfiguration:
    """
    Ordered rounds of a recruiting cycle and how a NO verdict is treated.

    The final round always accepts on YES and rejects on NO. The first round
    and every round outside ``reconsider_on_no`` reject on NO; rounds inside
    it keep the candidate in place for a re-vote.
    """

    rounds: tuple[Round, ...] = PIPELINE_ROUNDS
    reconsider_on_no: frozenset[Round] = field(
        default_factory=lambda: frozenset({Round.COFFEE_CHAT, Round.FIRST_ROUND})
    )
    verdict_policy: VerdictPolicy = VerdictPolicy.LAST_WRITER_WINS

    def __post_init__(self):
        if not self.rounds:
            raise ValidationError("Round configuration needs at least one round")
        if Round.DONE in self.rounds:
            raise ValidationError("DONE is not a reviewable round")
        if len(set(self.rounds)) != len(self.rounds):
            raise ValidationError("Round configuration contains duplicate rounds")
        positions = [r.position for r in self.rounds]
        if positions != sorted(positions):
            raise ValidationError("Rounds must follow the pipeline order")
        unknown = self.reconsider_on_no - set(self.rounds)
        if unknown:
            names = ", ".join(sorted(r.value for r in unknown))
            raise ValidationError(f"Reconsideration rounds not in configuration: {names}")
        if self.first_round in self.reconsider_on_no or self.final_round in self.reconsider_on_no:
            raise ValidationError("Only intermediate rounds can be reconsidered")

    @property
    def first_round(self) -> Round:
        return self.rounds[0]

    @property
    def final_round(self) -> Round:
        return self.rounds[-1]

    def contains(self, round_: Round) -> bool:
        return round_ in self.rounds

    def is_final(self, round_: Round) -> bool:
        return round_ == self.final_round

    def next_round(self, round_: Round) -> Round:
        """Return the round after ``round_``; DONE after the final round."""
        if round_ not in self.rounds:
            raise InvalidTransitionInput(f"Round {round_.value} is not part of this cycle")
        index = self.rounds.index(round_)
        if index + 1 >= len(self.rounds):
            return Round.DONE
        return self.rounds[index + 1]

    def rejects_on_no(self, round_: Round) -> bool:
        return round_ not in self.reconsider_on_no

    def order_of(self, round_: Round) -> int:
        """Position in this cycle's ordering; DONE sorts after every round."""
        if round_ == Round.DONE:
            return len(self.rounds)
        return self.rounds.index(round_)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rounds": [r.value for r in self.rounds],
            "reconsider_on_no": sorted(
                (r.value for r in self.reconsider_on_no),
                key=lambda name: Round(name).position,
            ),
            "verdict_policy": self.verdict_policy.value,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "RoundConfiguration":
        if not data:
            return cls()
        rounds = tuple(Round.parse(r) for r in data.get("rounds") or [r.value for r in PIPELINE_ROUNDS])
        if "reconsider_on_no" in data and data["reconsider_on_no"] is not None:
            reconsider = frozenset(Round.parse(r) for r in data["reconsider_on_no"])
        else:
            reconsider = frozenset({Round.COFFEE_CHAT, Round.FIRST_ROUND}) & set(rounds[1:-1])
        try:
            policy = VerdictPolicy(data.get("verdict_policy") or VerdictPolicy.LAST_WRITER_WINS.value)
        except ValueError:
            raise ValidationError(f"Unknown verdict policy '{data.get('verdict_policy')}'")
        return cls(rounds=rounds, reconsider_on_no=reconsider, verdict_policy=policy)

    @classmethod
    def build(
        cls,
        rounds: Optional[Iterable[str]] = None,
        reconsider_on_no: Optional[Iterable[str]] = None,
        verdict_policy: Optional[str] = None,
    ) -> "RoundConfiguration":
        """Build a configuration from loosely-typed request values."""
        return cls.from_dict(
            {
                "rounds": list(rounds) if rounds is not None else None,
                "reconsider_on_no": list(reconsider_on_no) if reconsider_on_no is not None else None,
                "verdict_policy": verdict_policy,
            }
        )


DEFAULT_ROUND_CONFIGURATION = RoundConfiguration()
