import pytest

from warden.config import ADMISSION_POLICY, MANUAL_SANCTION_POLICY, SEVERE_SANCTION_POLICY
from warden.governance.models import BallotPolicy, MissingVotePolicy, Outcome, ResolutionRule, Visibility
from warden.governance.tally import Tally, approves, certain_outcome, final_outcome


def policy(rule, missing):
    return BallotPolicy(duration_seconds=60, visibility=Visibility.PUBLIC, rule=rule, missing=missing)


class TestApproves:
    def test_simple_majority_counts_only_cast_votes(self):
        assert approves(ResolutionRule.SIMPLE_MAJORITY, yes=3, no=1, eligible=5)
        assert not approves(ResolutionRule.SIMPLE_MAJORITY, yes=1, no=1, eligible=5)

    def test_absolute_majority_uses_the_whole_pool(self):
        assert not approves(ResolutionRule.ABSOLUTE_MAJORITY, yes=5, no=0, eligible=10)
        assert approves(ResolutionRule.ABSOLUTE_MAJORITY, yes=6, no=0, eligible=10)

    def test_unanimous_needs_at_least_one_yes_and_no_objection(self):
        assert approves(ResolutionRule.UNANIMOUS, yes=3, no=0, eligible=5)
        assert not approves(ResolutionRule.UNANIMOUS, yes=3, no=1, eligible=5)
        assert not approves(ResolutionRule.UNANIMOUS, yes=0, no=0, eligible=5)


class TestFinalOutcome:
    def test_admission_three_yes_one_no_of_five(self):
        assert final_outcome(ADMISSION_POLICY, Tally(yes=3, no=1, missing=1)) is Outcome.APPROVED

    def test_manual_sanction_two_yes_one_no_one_missing(self):
        assert final_outcome(MANUAL_SANCTION_POLICY, Tally(yes=2, no=1, missing=1)) is Outcome.APPROVED

    def test_severe_sanction_four_yes_six_missing_is_rejected(self):
        assert final_outcome(SEVERE_SANCTION_POLICY, Tally(yes=4, no=0, missing=6)) is Outcome.REJECTED

    def test_missing_counted_as_yes(self):
        p = policy(ResolutionRule.SIMPLE_MAJORITY, MissingVotePolicy.COUNT_AS_YES)
        assert final_outcome(p, Tally(yes=1, no=2, missing=2)) is Outcome.APPROVED

    def test_missing_counted_as_no_breaks_unanimity(self):
        p = policy(ResolutionRule.UNANIMOUS, MissingVotePolicy.COUNT_AS_NO)
        assert final_outcome(p, Tally(yes=4, no=0, missing=1)) is Outcome.REJECTED

    def test_no_votes_at_all_is_rejected(self):
        assert final_outcome(ADMISSION_POLICY, Tally(yes=0, no=0, missing=5)) is Outcome.REJECTED


class TestCertainOutcome:
    def test_majority_already_secured(self):
        assert certain_outcome(ADMISSION_POLICY, Tally(yes=3, no=0, missing=2)) is Outcome.APPROVED

    def test_open_race_is_not_certain(self):
        assert certain_outcome(ADMISSION_POLICY, Tally(yes=2, no=0, missing=3)) is None

    def test_absolute_majority_unreachable(self):
        assert certain_outcome(SEVERE_SANCTION_POLICY, Tally(yes=0, no=5, missing=5)) is Outcome.REJECTED

    def test_absolute_majority_reached(self):
        assert certain_outcome(SEVERE_SANCTION_POLICY, Tally(yes=6, no=0, missing=4)) is Outcome.APPROVED

    def test_everyone_voted(self):
        assert certain_outcome(MANUAL_SANCTION_POLICY, Tally(yes=1, no=1, missing=0)) is Outcome.REJECTED

    @pytest.mark.parametrize("missing", list(MissingVotePolicy))
    def test_unanimous_single_no_is_decisive(self, missing):
        p = policy(ResolutionRule.UNANIMOUS, missing)
        assert certain_outcome(p, Tally(yes=2, no=1, missing=3)) is Outcome.REJECTED
