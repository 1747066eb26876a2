"""Unit tests for milestone review, voting, release, deadlines and refunds"""
from dataclasses import replace

import pytest
from solders.pubkey import Pubkey

from raise_client.errors import ErrorCode, LocalErrorCode, RaiseError
from raise_client.models import (
    MilestoneState,
    ProjectState,
    TokenVault,
    Vote,
    VoteChoice,
)
from raise_client.services import milestones
from raise_client.services.tiers import USDC_UNIT

RAISED = 100_000 * USDC_UNIT


@pytest.fixture
def running(make_project):
    return make_project(state=ProjectState.IN_PROGRESS, amount_raised=RAISED)


@pytest.fixture
def under_review(make_milestone, now):
    return make_milestone(0, state=MilestoneState.UNDER_REVIEW, voting_ends_at=now + 1000)


class TestIsPassing:
    def test_strict_majority(self):
        assert milestones.is_passing(51, 100)
        assert not milestones.is_passing(50, 100)

    def test_empty_vote_fails(self):
        assert not milestones.is_passing(0, 0)


class TestSubmitMilestone:
    def test_first_submission_starts_project(self, make_project, make_milestone, founder, now, timing):
        funded = make_project(state=ProjectState.FUNDED, amount_raised=RAISED)
        project, milestone = milestones.submit_milestone(
            funded, make_milestone(0, state=MilestoneState.IN_PROGRESS), founder.pubkey(), now, timing
        )
        assert project.state == ProjectState.IN_PROGRESS
        assert milestone.state == MilestoneState.UNDER_REVIEW
        assert milestone.voting_ends_at == now + timing.voting_period

    def test_not_current(self, running, make_milestone, founder, now, timing):
        with pytest.raises(RaiseError) as exc:
            milestones.submit_milestone(
                running, make_milestone(1, state=MilestoneState.IN_PROGRESS), founder.pubkey(), now, timing
            )
        assert exc.value.code == ErrorCode.INVALID_MILESTONE_INDEX

    def test_not_in_progress(self, running, make_milestone, founder, now, timing):
        with pytest.raises(RaiseError) as exc:
            milestones.submit_milestone(running, make_milestone(0), founder.pubkey(), now, timing)
        assert exc.value.code == ErrorCode.MILESTONE_NOT_IN_PROGRESS

    def test_not_founder(self, running, make_milestone, now, timing):
        with pytest.raises(RaiseError) as exc:
            milestones.submit_milestone(
                running, make_milestone(0, state=MilestoneState.IN_PROGRESS), Pubkey.new_unique(), now, timing
            )
        assert exc.value.code == ErrorCode.UNAUTHORIZED_FOUNDER


class TestCastVote:
    def test_weighted_tally(self, running, under_review, make_investment, investor, now, project_address):
        investment = make_investment()
        outcome = milestones.cast_vote(
            running, under_review, investment, investor.pubkey(), VoteChoice.GOOD, now, project_address
        )
        assert outcome.milestone.yes_votes == investment.vote_weight
        assert outcome.milestone.total_weight == investment.vote_weight
        assert outcome.milestone.voter_count == 1
        assert outcome.vote.weight == investment.vote_weight
        assert outcome.vote.voting_round == 0

    def test_bad_vote(self, running, under_review, make_investment, investor, now, project_address):
        outcome = milestones.cast_vote(
            running, under_review, make_investment(), investor.pubkey(), VoteChoice.BAD, now, project_address
        )
        assert outcome.milestone.no_votes > 0
        assert outcome.milestone.yes_votes == 0

    def test_window_closed(self, running, under_review, make_investment, investor, now, project_address):
        with pytest.raises(RaiseError) as exc:
            milestones.cast_vote(
                running, under_review, make_investment(), investor.pubkey(), VoteChoice.GOOD, now + 1000,
                project_address,
            )
        assert exc.value.code == ErrorCode.VOTING_PERIOD_ENDED

    def test_double_vote_same_round(self, running, under_review, make_investment, investor, now, project_address):
        previous = Vote(
            milestone=project_address, voter=investor.pubkey(), choice=VoteChoice.GOOD,
            weight=1, voting_round=0, voted_at=now,
        )
        with pytest.raises(RaiseError) as exc:
            milestones.cast_vote(
                running, under_review, make_investment(), investor.pubkey(), VoteChoice.GOOD, now,
                project_address, previous,
            )
        assert exc.value.code == ErrorCode.ALREADY_VOTED

    def test_withdrawn_investment_cannot_vote(self, running, under_review, make_investment, investor, now, project_address):
        with pytest.raises(RaiseError) as exc:
            milestones.cast_vote(
                running, under_review, make_investment(withdrawn_from_pivot=True), investor.pubkey(),
                VoteChoice.GOOD, now, project_address,
            )
        assert exc.value.code == ErrorCode.NOT_INVESTOR

    def test_not_under_review(self, running, make_milestone, make_investment, investor, now, project_address):
        with pytest.raises(RaiseError) as exc:
            milestones.cast_vote(
                running, make_milestone(0, state=MilestoneState.IN_PROGRESS), make_investment(),
                investor.pubkey(), VoteChoice.GOOD, now, project_address,
            )
        assert exc.value.code == ErrorCode.MILESTONE_NOT_UNDER_REVIEW


class TestFinalizeVoting:
    def test_too_early(self, running, under_review, now, timing):
        with pytest.raises(RaiseError) as exc:
            milestones.finalize_voting(running, under_review, now, timing=timing)
        assert exc.value.code == ErrorCode.VOTING_PERIOD_NOT_ENDED

    def test_pass_opens_distribution(self, running, under_review, project_address, now, timing):
        tallied = replace(under_review, yes_votes=60, no_votes=40, total_weight=100)
        vault = TokenVault(project=project_address, mint=Pubkey.new_unique())
        outcome = milestones.finalize_voting(
            replace(running, consecutive_failures=2), tallied, now + 1000, vault, timing
        )
        assert outcome.passed
        assert outcome.milestone.state == MilestoneState.PASSED
        assert outcome.project.consecutive_failures == 0
        assert outcome.token_vault.distribution_pending
        assert outcome.token_vault.pending_milestone == 0
        assert outcome.token_vault.distribution_started_at == now + 1000

    def test_pending_distribution_blocks_pass(self, running, under_review, project_address, now, timing):
        tallied = replace(under_review, yes_votes=60, total_weight=100)
        vault = TokenVault(project=project_address, mint=Pubkey.new_unique(), distribution_pending=True)
        with pytest.raises(RaiseError) as exc:
            milestones.finalize_voting(running, tallied, now + 1000, vault, timing)
        assert exc.value.code == LocalErrorCode.DISTRIBUTION_ALREADY_PENDING

    def test_tie_fails(self, running, under_review, now, timing):
        tallied = replace(under_review, yes_votes=50, no_votes=50, total_weight=100)
        outcome = milestones.finalize_voting(running, tallied, now + 1000, timing=timing)
        assert not outcome.passed
        assert outcome.milestone.state == MilestoneState.FAILED
        assert outcome.project.consecutive_failures == 1
        assert not outcome.exit_window_open

    def test_third_failure_opens_exit_window(self, running, under_review, now, timing):
        outcome = milestones.finalize_voting(
            replace(running, consecutive_failures=2), under_review, now + 1000, timing=timing
        )
        assert outcome.project.consecutive_failures == 3
        assert outcome.project.exit_window_ends_at == now + 1000 + timing.exit_window
        assert outcome.exit_window_open


class TestResubmit:
    def test_fresh_round(self, running, make_milestone, founder):
        failed = make_milestone(0, state=MilestoneState.FAILED, yes_votes=10, total_weight=30, voter_count=2)
        reworked = milestones.resubmit_milestone(running, failed, founder.pubkey())
        assert reworked.state == MilestoneState.IN_PROGRESS
        assert reworked.voting_round == 1
        assert reworked.total_weight == 0
        assert reworked.voter_count == 0

    def test_only_failed(self, running, make_milestone, founder):
        with pytest.raises(RaiseError) as exc:
            milestones.resubmit_milestone(running, make_milestone(0, state=MilestoneState.PASSED), founder.pubkey())
        assert exc.value.code == LocalErrorCode.MILESTONE_NOT_FAILED

    def test_round_limit(self, running, make_milestone, founder):
        exhausted = make_milestone(0, state=MilestoneState.FAILED, voting_round=255)
        with pytest.raises(RaiseError) as exc:
            milestones.resubmit_milestone(running, exhausted, founder.pubkey())
        assert exc.value.code == ErrorCode.INVALID_STATE_TRANSITION


class TestClaimMilestoneFunds:
    def test_release_and_start_next(self, running, make_milestone, founder, now, timing):
        passed = make_milestone(0, state=MilestoneState.PASSED)
        deadline = now + 30 * 86_400
        outcome = milestones.claim_milestone_funds(
            running, passed, founder.pubkey(), now,
            next_milestone=make_milestone(1), next_milestone_deadline=deadline, timing=timing,
        )
        assert outcome.amount == 40_000 * USDC_UNIT
        assert outcome.milestone.state == MilestoneState.UNLOCKED
        assert outcome.next_milestone.state == MilestoneState.IN_PROGRESS
        assert outcome.next_milestone.deadline == deadline
        assert outcome.project.current_milestone == 1

    def test_next_deadline_required(self, running, make_milestone, founder, now, timing):
        with pytest.raises(RaiseError) as exc:
            milestones.claim_milestone_funds(
                running, make_milestone(0, state=MilestoneState.PASSED), founder.pubkey(), now,
                next_milestone=make_milestone(1), timing=timing,
            )
        assert exc.value.code == LocalErrorCode.DEADLINE_NOT_SET

    def test_final_reserves_lp_share(self, running, make_milestone, founder, now, tokenomics):
        final = make_milestone(1, state=MilestoneState.PASSED)
        outcome = milestones.claim_milestone_funds(
            replace(running, current_milestone=1), final, founder.pubkey(), now, tokenomics=tokenomics
        )
        assert outcome.lp_reserved == 10_000 * USDC_UNIT
        assert outcome.amount == 50_000 * USDC_UNIT
        assert outcome.project.state == ProjectState.COMPLETED
        assert outcome.next_milestone is None

    def test_double_claim(self, running, make_milestone, founder, now):
        with pytest.raises(RaiseError) as exc:
            milestones.claim_milestone_funds(
                running, make_milestone(0, state=MilestoneState.UNLOCKED), founder.pubkey(), now
            )
        assert exc.value.code == ErrorCode.MILESTONE_ALREADY_UNLOCKED

    def test_not_passed(self, running, make_milestone, founder, now):
        with pytest.raises(RaiseError) as exc:
            milestones.claim_milestone_funds(
                running, make_milestone(0, state=MilestoneState.FAILED), founder.pubkey(), now
            )
        assert exc.value.code == ErrorCode.MILESTONE_NOT_PASSED


class TestDeadlines:
    def test_set_deadline(self, running, make_milestone, founder, now, timing):
        updated = milestones.set_milestone_deadline(
            running, make_milestone(1), founder.pubkey(), now + 10 * 86_400, now, timing
        )
        assert updated.deadline == now + 10 * 86_400

    def test_set_deadline_state(self, running, make_milestone, founder, now, timing):
        with pytest.raises(RaiseError) as exc:
            milestones.set_milestone_deadline(
                running, make_milestone(0, state=MilestoneState.UNDER_REVIEW), founder.pubkey(),
                now + 10 * 86_400, now, timing,
            )
        assert exc.value.code == LocalErrorCode.DEADLINE_STATE_INVALID

    def test_extend(self, running, make_milestone, founder, now, timing):
        current = make_milestone(0, state=MilestoneState.IN_PROGRESS, deadline=now + 86_400)
        extended = milestones.extend_milestone_deadline(
            running, current, founder.pubkey(), now + 2 * 86_400, now, timing
        )
        assert extended.deadline == now + 2 * 86_400
        assert extended.extension_count == 1

    def test_extend_limit(self, running, make_milestone, founder, now, timing):
        current = make_milestone(0, state=MilestoneState.IN_PROGRESS, deadline=now + 86_400, extension_count=3)
        with pytest.raises(RaiseError) as exc:
            milestones.extend_milestone_deadline(running, current, founder.pubkey(), now + 2 * 86_400, now, timing)
        assert exc.value.code == LocalErrorCode.DEADLINE_EXTENSIONS_EXHAUSTED

    def test_extend_after_deadline(self, running, make_milestone, founder, now, timing):
        current = make_milestone(0, state=MilestoneState.IN_PROGRESS, deadline=now - 1)
        with pytest.raises(RaiseError) as exc:
            milestones.extend_milestone_deadline(running, current, founder.pubkey(), now + 86_400, now, timing)
        assert exc.value.code == LocalErrorCode.DEADLINE_PASSED

    def test_extend_must_move_later(self, running, make_milestone, founder, now, timing):
        current = make_milestone(0, state=MilestoneState.IN_PROGRESS, deadline=now + 86_400)
        with pytest.raises(RaiseError) as exc:
            milestones.extend_milestone_deadline(running, current, founder.pubkey(), now + 86_400, now, timing)
        assert exc.value.code == LocalErrorCode.DEADLINE_NOT_EXTENDED

    def test_extend_without_deadline(self, running, make_milestone, founder, now, timing):
        with pytest.raises(RaiseError) as exc:
            milestones.extend_milestone_deadline(
                running, make_milestone(0, state=MilestoneState.IN_PROGRESS), founder.pubkey(), now + 86_400, now,
                timing,
            )
        assert exc.value.code == LocalErrorCode.DEADLINE_NOT_SET


class TestAbandonment:
    def test_abandoned_after_inactivity(self, running, make_milestone, now, timing):
        current = make_milestone(0, state=MilestoneState.IN_PROGRESS, deadline=now)
        later = now + timing.inactivity_timeout + 1
        assert milestones.check_abandonment(running, current, later, timing).state == ProjectState.ABANDONED

    def test_not_yet(self, running, make_milestone, now, timing):
        current = make_milestone(0, state=MilestoneState.IN_PROGRESS, deadline=now)
        with pytest.raises(RaiseError) as exc:
            milestones.check_abandonment(running, current, now + timing.inactivity_timeout, timing)
        assert exc.value.code == LocalErrorCode.ABANDONMENT_NOT_REACHED


class TestRefunds:
    def test_abandoned_refund_is_pro_rata(self, make_project, make_milestone, make_investment):
        abandoned = make_project(state=ProjectState.ABANDONED)
        plan = [make_milestone(0, state=MilestoneState.UNLOCKED), make_milestone(1, state=MilestoneState.IN_PROGRESS)]
        outcome = milestones.claim_refund(abandoned, make_investment(), plan)
        assert outcome.amount == 600 * USDC_UNIT
        assert outcome.unreleased_percentage == 60
        assert outcome.investment.refund_claimed

    def test_refund_requires_abandonment(self, running, make_milestone, make_investment):
        with pytest.raises(RaiseError) as exc:
            milestones.claim_refund(running, make_investment(), [make_milestone(0)])
        assert exc.value.code == ErrorCode.PROJECT_NOT_ABANDONED

    def test_refund_once(self, make_project, make_milestone, make_investment):
        abandoned = make_project(state=ProjectState.ABANDONED)
        with pytest.raises(RaiseError) as exc:
            milestones.claim_refund(abandoned, make_investment(refund_claimed=True), [make_milestone(0)])
        assert exc.value.code == ErrorCode.REFUND_ALREADY_CLAIMED

    def test_exit_window_refund(self, running, make_milestone, make_investment, now):
        project = replace(running, exit_window_ends_at=now + 100)
        outcome = milestones.claim_exit_window_refund(
            project, make_investment(), [make_milestone(0), make_milestone(1)], now
        )
        assert outcome.amount == 1000 * USDC_UNIT

    def test_exit_window_not_open(self, running, make_milestone, make_investment, now):
        with pytest.raises(RaiseError) as exc:
            milestones.claim_exit_window_refund(running, make_investment(), [make_milestone(0)], now)
        assert exc.value.code == LocalErrorCode.EXIT_WINDOW_NOT_OPEN

    def test_exit_window_closed(self, running, make_milestone, make_investment, now):
        project = replace(running, exit_window_ends_at=now)
        with pytest.raises(RaiseError) as exc:
            milestones.claim_exit_window_refund(project, make_investment(), [make_milestone(0)], now)
        assert exc.value.code == LocalErrorCode.EXIT_WINDOW_CLOSED
