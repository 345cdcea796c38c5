"""Tests for the eligibility checker's priority-ordered policy checks."""

from datetime import date

import pytest

from lending_ledger.circulation.eligibility import EligibilityChecker
from lending_ledger.circulation.errors import (
    IneligibilityReason,
    LoanCapExceededError,
    MemberIneligibleError,
    MemberNotFoundError,
)
from lending_ledger.config import LendingPolicy
from lending_ledger.database.schema import LoanStatusEnum, MembershipStatusEnum

TODAY = date(2025, 1, 20)


class TestEvaluate:
    """Checks run in order and the first failure wins."""

    def test_active_member_without_loans_is_eligible(self, session, policy, make_member):
        member_id = make_member()
        assert EligibilityChecker(session, policy).evaluate(member_id, TODAY) is None

    def test_unknown_member(self, session, policy):
        reason = EligibilityChecker(session, policy).evaluate(404, TODAY)
        assert reason is IneligibilityReason.MEMBER_NOT_FOUND

    @pytest.mark.parametrize(
        "status", [MembershipStatusEnum.EXPIRED, MembershipStatusEnum.SUSPENDED]
    )
    def test_inactive_membership(self, session, policy, make_member, status):
        member_id = make_member(status=status)
        reason = EligibilityChecker(session, policy).evaluate(member_id, TODAY)
        assert reason is IneligibilityReason.MEMBERSHIP_INACTIVE

    def test_unresolved_loan_past_due_blocks(
        self, session, policy, make_member, make_item, make_loan
    ):
        member_id = make_member()
        make_loan(make_item(), member_id, loan_date=date(2025, 1, 1), due_date=date(2025, 1, 15))

        reason = EligibilityChecker(session, policy).evaluate(member_id, TODAY)

        assert reason is IneligibilityReason.HAS_OVERDUE_LOANS

    def test_loan_due_today_is_not_overdue(
        self, session, policy, make_member, make_item, make_loan
    ):
        member_id = make_member()
        make_loan(make_item(), member_id, loan_date=date(2025, 1, 6), due_date=TODAY)

        assert EligibilityChecker(session, policy).evaluate(member_id, TODAY) is None

    def test_late_return_in_history_does_not_block(
        self, session, policy, make_member, make_item, make_loan
    ):
        member_id = make_member()
        make_loan(
            make_item(),
            member_id,
            loan_date=date(2024, 12, 1),
            due_date=date(2024, 12, 15),
            return_date=date(2024, 12, 20),
            status=LoanStatusEnum.OVERDUE,
        )

        assert EligibilityChecker(session, policy).evaluate(member_id, TODAY) is None

    def test_loan_cap(self, session, make_member, make_item, make_loan):
        policy = LendingPolicy(max_active_loans=2)
        member_id = make_member()
        for _ in range(2):
            make_loan(make_item(), member_id, loan_date=TODAY, due_date=date(2025, 2, 3))

        reason = EligibilityChecker(session, policy).evaluate(member_id, TODAY)

        assert reason is IneligibilityReason.LOAN_CAP_REACHED

    def test_overdue_outranks_cap(self, session, make_member, make_item, make_loan):
        policy = LendingPolicy(max_active_loans=1)
        member_id = make_member()
        make_loan(make_item(), member_id, loan_date=date(2025, 1, 1), due_date=date(2025, 1, 15))

        reason = EligibilityChecker(session, policy).evaluate(member_id, TODAY)

        assert reason is IneligibilityReason.HAS_OVERDUE_LOANS

    def test_lost_loans_free_a_slot(self, session, make_member, make_item, make_loan):
        policy = LendingPolicy(max_active_loans=1)
        member_id = make_member()
        make_loan(
            make_item(),
            member_id,
            loan_date=date(2025, 1, 1),
            due_date=date(2025, 1, 15),
            return_date=date(2025, 1, 10),
            status=LoanStatusEnum.LOST,
        )

        assert EligibilityChecker(session, policy).evaluate(member_id, TODAY) is None


class TestCheck:
    """``check`` turns a failing reason into the matching exception."""

    def test_check_passes_silently(self, session, policy, make_member):
        EligibilityChecker(session, policy).check(make_member(), TODAY)

    def test_check_unknown_member(self, session, policy):
        with pytest.raises(MemberNotFoundError) as exc_info:
            EligibilityChecker(session, policy).check(404, TODAY)
        assert exc_info.value.reason is IneligibilityReason.MEMBER_NOT_FOUND

    def test_check_inactive(self, session, policy, make_member):
        member_id = make_member(status=MembershipStatusEnum.SUSPENDED)
        with pytest.raises(MemberIneligibleError, match="active membership") as exc_info:
            EligibilityChecker(session, policy).check(member_id, TODAY)
        assert exc_info.value.reason is IneligibilityReason.MEMBERSHIP_INACTIVE

    def test_check_cap(self, session, make_member, make_item, make_loan):
        policy = LendingPolicy(max_active_loans=1)
        member_id = make_member()
        make_loan(make_item(), member_id, loan_date=TODAY, due_date=date(2025, 2, 3))

        with pytest.raises(LoanCapExceededError) as exc_info:
            EligibilityChecker(session, policy).check(member_id, TODAY)

        assert exc_info.value.limit == 1
        assert isinstance(exc_info.value, MemberIneligibleError)
