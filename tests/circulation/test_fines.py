"""Tests for late-return fines."""

from datetime import date
from decimal import Decimal

import pytest

from lending_ledger.circulation.fines import FineCalculator, days_late
from lending_ledger.config import LendingPolicy
from lending_ledger.database.schema import FineStatusEnum

DUE = date(2025, 1, 24)


class TestDaysLate:
    @pytest.mark.parametrize(
        ("returned", "expected"),
        [
            (date(2025, 1, 20), 0),
            (DUE, 0),
            (date(2025, 1, 25), 1),
            (date(2025, 1, 30), 6),
            (date(2025, 3, 1), 36),
        ],
    )
    def test_days_late(self, returned, expected):
        assert days_late(DUE, returned) == expected


class TestCalculate:
    def test_worked_example(self, policy):
        """Six days late at 0.50 a day."""
        assert FineCalculator(policy).calculate(DUE, date(2025, 1, 30)) == Decimal("3.00")

    def test_on_time_is_free(self, policy):
        assert FineCalculator(policy).calculate(DUE, DUE) == Decimal("0.00")

    def test_early_return_is_never_negative(self, policy):
        assert FineCalculator(policy).calculate(DUE, date(2025, 1, 1)) == Decimal("0.00")

    def test_rate_comes_from_policy(self):
        policy = LendingPolicy(daily_fine_rate=Decimal("1.25"))
        assert FineCalculator(policy).calculate(DUE, date(2025, 1, 27)) == Decimal("3.75")

    def test_amount_has_two_decimal_places(self, policy):
        amount = FineCalculator(policy).calculate(DUE, date(2025, 1, 25))
        assert amount.as_tuple().exponent == -2


class TestIssue:
    def test_issue_records_outstanding_fine(
        self, session, policy, make_member, make_item, make_loan
    ):
        loan_id = make_loan(make_item(), make_member())

        fine = FineCalculator(policy, session).issue(loan_id, DUE, date(2025, 1, 30))

        assert fine is not None
        assert fine.id is not None
        assert fine.loan_id == loan_id
        assert fine.amount == Decimal("3.00")
        assert fine.issue_date == date(2025, 1, 30)
        assert fine.status is FineStatusEnum.OUTSTANDING
        assert fine.payment_date is None

    def test_no_fine_for_timely_return(self, session, policy, make_member, make_item, make_loan):
        loan_id = make_loan(make_item(), make_member())
        assert FineCalculator(policy, session).issue(loan_id, DUE, DUE) is None

    def test_issue_needs_a_session(self, policy):
        with pytest.raises(RuntimeError):
            FineCalculator(policy).issue(1, DUE, date(2025, 1, 30))
