"""Tests for the loan state machine and the ledger effects of each transition."""

from datetime import date
from decimal import Decimal

import pytest

from lending_ledger.circulation.errors import (
    AlreadyReturnedError,
    InvariantViolationError,
    LoanNotFoundError,
    OutOfStockError,
)
from lending_ledger.circulation.state_machine import (
    LoanStateMachine,
    can_transition,
    return_status,
)
from lending_ledger.config import LendingPolicy, LostItemPolicy
from lending_ledger.database.schema import Item as ItemDB
from lending_ledger.database.schema import Loan as LoanDB
from lending_ledger.database.schema import LoanStatusEnum

LOAN_DATE = date(2025, 1, 10)
DUE_DATE = date(2025, 1, 24)


def _item(session, item_id):
    item = session.get(ItemDB, item_id)
    session.refresh(item)
    return item


class TestTransitions:
    def test_only_on_loan_has_exits(self):
        for target in (LoanStatusEnum.RETURNED, LoanStatusEnum.OVERDUE, LoanStatusEnum.LOST):
            assert can_transition(LoanStatusEnum.ON_LOAN, target)

        for terminal in (LoanStatusEnum.RETURNED, LoanStatusEnum.OVERDUE, LoanStatusEnum.LOST):
            for target in LoanStatusEnum:
                assert not can_transition(terminal, target)

    def test_return_status(self):
        assert return_status(DUE_DATE, date(2025, 1, 20)) is LoanStatusEnum.RETURNED
        assert return_status(DUE_DATE, DUE_DATE) is LoanStatusEnum.RETURNED
        assert return_status(DUE_DATE, date(2025, 1, 25)) is LoanStatusEnum.OVERDUE


class TestOpen:
    def test_open_reserves_and_creates_loan(self, session, policy, make_member, make_item):
        item_id = make_item(copies=2)
        member_id = make_member()

        loan = LoanStateMachine(session, policy).open(item_id, member_id, LOAN_DATE)

        assert loan.id is not None
        assert loan.status is LoanStatusEnum.ON_LOAN
        assert loan.loan_date == LOAN_DATE
        assert loan.due_date == DUE_DATE
        assert loan.return_date is None
        assert _item(session, item_id).available_copies == 1

    def test_loan_period_comes_from_policy(self, session, make_member, make_item):
        policy = LendingPolicy(loan_period_days=21)
        loan = LoanStateMachine(session, policy).open(make_item(), make_member(), LOAN_DATE)
        assert loan.due_date == date(2025, 1, 31)

    def test_open_without_stock_creates_nothing(self, session, policy, make_member, make_item):
        item_id = make_item(copies=1, available=0)

        with pytest.raises(OutOfStockError):
            LoanStateMachine(session, policy).open(item_id, make_member(), LOAN_DATE)

        assert session.query(LoanDB).count() == 0


class TestClose:
    def test_on_time_return(self, session, policy, make_member, make_item):
        item_id = make_item(copies=1)
        machine = LoanStateMachine(session, policy)
        loan = machine.open(item_id, make_member(), LOAN_DATE)

        closed, fine = machine.close(loan.id, date(2025, 1, 20))

        assert closed.status is LoanStatusEnum.RETURNED
        assert closed.return_date == date(2025, 1, 20)
        assert fine is None
        assert _item(session, item_id).available_copies == 1

    def test_late_return_is_overdue_and_fined(self, session, policy, make_member, make_item):
        item_id = make_item(copies=1)
        machine = LoanStateMachine(session, policy)
        loan = machine.open(item_id, make_member(), LOAN_DATE)

        closed, fine = machine.close(loan.id, date(2025, 1, 30))

        assert closed.status is LoanStatusEnum.OVERDUE
        assert fine.amount == Decimal("3.00")
        assert _item(session, item_id).available_copies == 1

    def test_second_close_is_rejected(self, session, policy, make_member, make_item):
        item_id = make_item(copies=2)
        machine = LoanStateMachine(session, policy)
        loan = machine.open(item_id, make_member(), LOAN_DATE)
        machine.close(loan.id, date(2025, 1, 30))

        with pytest.raises(AlreadyReturnedError) as exc_info:
            machine.close(loan.id, date(2025, 1, 31))

        assert exc_info.value.status == "overdue"
        assert _item(session, item_id).available_copies == 2

    def test_close_unknown_loan(self, session, policy):
        with pytest.raises(LoanNotFoundError):
            LoanStateMachine(session, policy).close(12345, LOAN_DATE)

    def test_return_before_loan_date(self, session, policy, make_member, make_item):
        machine = LoanStateMachine(session, policy)
        loan = machine.open(make_item(), make_member(), LOAN_DATE)

        with pytest.raises(ValueError, match="before its loan date"):
            machine.close(loan.id, date(2025, 1, 9))

    def test_unresolved_loan_without_item(self, session, policy, make_member, make_loan):
        loan_id = make_loan(None, make_member())

        with pytest.raises(InvariantViolationError):
            LoanStateMachine(session, policy).close(loan_id, date(2025, 1, 20))


class TestMarkLost:
    def test_write_off_policy_shrinks_collection(self, session, policy, make_member, make_item):
        item_id = make_item(copies=2)
        machine = LoanStateMachine(session, policy)
        loan = machine.open(item_id, make_member(), LOAN_DATE)

        lost = machine.mark_lost(loan.id, date(2025, 2, 15))

        assert lost.status is LoanStatusEnum.LOST
        assert lost.return_date == date(2025, 2, 15)
        item = _item(session, item_id)
        assert (item.total_copies, item.available_copies) == (1, 1)

    def test_release_policy_restores_slot(self, session, make_member, make_item):
        policy = LendingPolicy(lost_item_policy=LostItemPolicy.RELEASE)
        item_id = make_item(copies=2)
        machine = LoanStateMachine(session, policy)
        loan = machine.open(item_id, make_member(), LOAN_DATE)

        machine.mark_lost(loan.id, date(2025, 2, 15))

        item = _item(session, item_id)
        assert (item.total_copies, item.available_copies) == (2, 2)

    def test_lost_loan_cannot_be_returned(self, session, policy, make_member, make_item):
        machine = LoanStateMachine(session, policy)
        loan = machine.open(make_item(copies=2), make_member(), LOAN_DATE)
        machine.mark_lost(loan.id, date(2025, 2, 15))

        with pytest.raises(AlreadyReturnedError):
            machine.close(loan.id, date(2025, 2, 20))

    def test_lost_loan_is_not_fined(self, session, policy, make_member, make_item):
        machine = LoanStateMachine(session, policy)
        loan = machine.open(make_item(), make_member(), LOAN_DATE)

        lost = machine.mark_lost(loan.id, date(2025, 3, 1))

        assert lost.fine is None
