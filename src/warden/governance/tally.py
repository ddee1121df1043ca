"""Counting rules for ballots.

Missing votes are folded in according to the ballot's missing-vote policy
before the resolution rule is applied. ``certain_outcome`` is used for early
resolution: every rule is monotone in each voter's choice (no < abstain <
yes), so if the best case and the worst case for the remaining voters agree,
no future choice can change the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import Ballot, BallotPolicy, Choice, MissingVotePolicy, Outcome, ResolutionRule


@dataclass(frozen=True)
class Tally:
    yes: int
    no: int
    missing: int

    @property
    def eligible(self) -> int:
        return self.yes + self.no + self.missing

    @property
    def cast(self) -> int:
        return self.yes + self.no


def tally(ballot: Ballot) -> Tally:
    yes = ballot.count(Choice.YES)
    no = ballot.count(Choice.NO)
    return Tally(yes=yes, no=no, missing=max(0, len(ballot.eligible) - yes - no))


def approves(rule: ResolutionRule, yes: int, no: int, eligible: int) -> bool:
    if rule is ResolutionRule.UNANIMOUS:
        return no == 0 and yes > 0
    if rule is ResolutionRule.SIMPLE_MAJORITY:
        return yes * 2 > yes + no
    if rule is ResolutionRule.ABSOLUTE_MAJORITY:
        return yes * 2 > eligible
    raise ValueError(f"unknown resolution rule: {rule!r}")


def _decide(policy: BallotPolicy, t: Tally) -> Outcome:
    yes, no = t.yes, t.no
    if policy.missing is MissingVotePolicy.COUNT_AS_YES:
        yes += t.missing
    elif policy.missing is MissingVotePolicy.COUNT_AS_NO:
        no += t.missing
    approved = approves(policy.rule, yes, no, t.eligible)
    return Outcome.APPROVED if approved else Outcome.REJECTED


def final_outcome(policy: BallotPolicy, t: Tally) -> Outcome:
    """Outcome at the deadline, with missing votes handled per policy."""
    return _decide(policy, t)


def certain_outcome(policy: BallotPolicy, t: Tally) -> Optional[Outcome]:
    """The outcome if no remaining choice can change it, else None."""
    best = _decide(policy, Tally(yes=t.yes + t.missing, no=t.no, missing=0))
    worst = _decide(policy, Tally(yes=t.yes, no=t.no + t.missing, missing=0))
    return best if best is worst else None
