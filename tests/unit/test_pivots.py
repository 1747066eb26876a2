"""Unit tests for pivot proposals"""
from dataclasses import replace

import pytest
from solders.pubkey import Pubkey

from raise_client.errors import ErrorCode, LocalErrorCode, RaiseError
from raise_client.models import MilestoneState, PivotMilestone, PivotState, ProjectState
from raise_client.services import pivots
from raise_client.services.tiers import USDC_UNIT


@pytest.fixture
def running(make_project):
    return make_project(state=ProjectState.IN_PROGRESS, amount_raised=100_000 * USDC_UNIT)


@pytest.fixture
def new_plan():
    return [
        PivotMilestone(percentage=30, description="Rebuild"),
        PivotMilestone(percentage=30, description="Beta"),
        PivotMilestone(percentage=40, description="Launch"),
    ]


@pytest.fixture
def proposed(running, founder, new_plan, now, project_address):
    proposal_address = Pubkey.new_unique()
    project, proposal = pivots.propose_pivot(
        running, founder.pubkey(), "https://raise.example/pivot.json", new_plan, now,
        proposal_address, project_address,
    )
    return project, proposal


@pytest.fixture
def approved(proposed, admin_config, admin, now, timing):
    _, proposal = proposed
    return pivots.approve_pivot(proposal, admin_config, admin.pubkey(), now, timing)


class TestProposePivot:
    def test_records_active_pivot(self, proposed, now):
        project, proposal = proposed
        assert project.active_pivot is not None
        assert proposal.state == PivotState.PENDING_MODERATOR_APPROVAL
        assert proposal.proposed_at == now
        assert len(proposal.new_milestones) == 3

    def test_one_at_a_time(self, proposed, founder, new_plan, now, project_address):
        project, _ = proposed
        with pytest.raises(RaiseError) as exc:
            pivots.propose_pivot(
                project, founder.pubkey(), "https://x", new_plan, now, Pubkey.new_unique(), project_address
            )
        assert exc.value.code == ErrorCode.PIVOT_ALREADY_PROPOSED

    def test_plan_must_sum_to_100(self, running, founder, now, project_address):
        plan = [PivotMilestone(50, "a"), PivotMilestone(40, "b")]
        with pytest.raises(RaiseError) as exc:
            pivots.propose_pivot(running, founder.pubkey(), "https://x", plan, now, Pubkey.new_unique(), project_address)
        assert exc.value.code == LocalErrorCode.MILESTONE_PERCENTAGE_SUM_INVALID

    def test_plan_size(self, running, founder, now, project_address):
        with pytest.raises(RaiseError) as exc:
            pivots.propose_pivot(
                running, founder.pubkey(), "https://x", [PivotMilestone(100, "all")], now,
                Pubkey.new_unique(), project_address,
            )
        assert exc.value.code == LocalErrorCode.INVALID_MILESTONE_COUNT

    def test_only_founder(self, running, new_plan, now, project_address):
        with pytest.raises(RaiseError) as exc:
            pivots.propose_pivot(
                running, Pubkey.new_unique(), "https://x", new_plan, now, Pubkey.new_unique(), project_address
            )
        assert exc.value.code == ErrorCode.UNAUTHORIZED_FOUNDER


class TestApprovePivot:
    def test_opens_window(self, approved, now, timing):
        assert approved.state == PivotState.APPROVED_AWAITING_INVESTOR_WINDOW
        assert approved.withdrawal_window_ends_at == now + timing.pivot_withdrawal_window

    def test_requires_admin(self, proposed, admin_config, founder, now, timing):
        _, proposal = proposed
        with pytest.raises(RaiseError) as exc:
            pivots.approve_pivot(proposal, admin_config, founder.pubkey(), now, timing)
        assert exc.value.code == ErrorCode.UNAUTHORIZED_ADMIN

    def test_only_once(self, approved, admin_config, admin, now, timing):
        with pytest.raises(RaiseError) as exc:
            pivots.approve_pivot(approved, admin_config, admin.pubkey(), now, timing)
        assert exc.value.code == LocalErrorCode.PIVOT_NOT_PENDING


class TestWithdrawFromPivot:
    def test_pro_rata_exit(self, approved, make_investment, make_milestone, now):
        plan = [make_milestone(0, state=MilestoneState.UNLOCKED), make_milestone(1, state=MilestoneState.IN_PROGRESS)]
        result = pivots.withdraw_from_pivot(approved, make_investment(), plan, now + 10)
        assert result.amount == 600 * USDC_UNIT
        assert result.investment.withdrawn_from_pivot
        assert result.proposal.withdrawn_count == 1
        assert result.proposal.withdrawn_amount == 600 * USDC_UNIT

    def test_not_approved(self, proposed, make_investment, make_milestone, now):
        _, proposal = proposed
        with pytest.raises(RaiseError) as exc:
            pivots.withdraw_from_pivot(proposal, make_investment(), [make_milestone(0)], now)
        assert exc.value.code == ErrorCode.PIVOT_NOT_APPROVED

    def test_window_ended(self, approved, make_investment, make_milestone):
        with pytest.raises(RaiseError) as exc:
            pivots.withdraw_from_pivot(
                approved, make_investment(), [make_milestone(0)], approved.withdrawal_window_ends_at
            )
        assert exc.value.code == ErrorCode.PIVOT_WINDOW_ENDED

    def test_only_once(self, approved, make_investment, make_milestone, now):
        with pytest.raises(RaiseError) as exc:
            pivots.withdraw_from_pivot(approved, make_investment(withdrawn_from_pivot=True), [make_milestone(0)], now)
        assert exc.value.code == ErrorCode.ALREADY_WITHDRAWN_FROM_PIVOT


class TestFinalizePivot:
    def test_replaces_plan(self, proposed, approved, project_address):
        project, _ = proposed
        project = replace(project, consecutive_failures=2, current_milestone=1)
        result = pivots.finalize_pivot(
            project, approved, project.total_milestones, approved.withdrawal_window_ends_at, project_address
        )
        assert result.project.metadata_uri == "https://raise.example/pivot.json"
        assert result.project.total_milestones == 3
        assert result.project.current_milestone == 0
        assert result.project.consecutive_failures == 0
        assert result.project.pivot_count == 1
        assert result.project.active_pivot is None
        assert result.proposal.state == PivotState.FINALIZED
        assert [m.state for m in result.milestones] == [
            MilestoneState.IN_PROGRESS, MilestoneState.APPROVED, MilestoneState.APPROVED,
        ]
        assert not result.reuses_milestone_accounts

    def test_same_count_reuses_accounts(self, proposed, approved, project_address):
        project, _ = proposed
        result = pivots.finalize_pivot(project, approved, 3, approved.withdrawal_window_ends_at, project_address)
        assert result.reuses_milestone_accounts

    def test_window_still_open(self, proposed, approved, now, project_address):
        project, _ = proposed
        with pytest.raises(RaiseError) as exc:
            pivots.finalize_pivot(project, approved, 2, now, project_address)
        assert exc.value.code == ErrorCode.PIVOT_WINDOW_NOT_ENDED
