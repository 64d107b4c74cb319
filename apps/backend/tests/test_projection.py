from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from contractflow import models
from contractflow.services.projection_service import ProjectionCalculator


S = models.TransactionStatus
T = models.TxnType


def _account(id, balance, type=models.BankAccountType.CHECKING, **kw):
    return models.BankAccount(id=id, company_id=1, name=f"acc{id}", type=type, current_balance=balance, **kw)


def _txn(id, type, amount, *, status=S.PENDING, bank=None, src=None, dst=None, deleted_at=None):
    return SimpleNamespace(
        id=id,
        type=type,
        amount=amount,
        status=status,
        due_date=date(2025, 3, 20),
        bank_account_id=bank,
        account_from_id=src,
        account_to_id=dst,
        deleted_at=deleted_at,
    )


def test_projected_balance_adds_revenue_and_subtracts_expense():
    account = _account(1, 1000)
    rows = [_txn(1, T.REVENUE, 200, bank=1, dst=1), _txn(2, T.EXPENSE, 50, bank=1, src=1)]

    balance = ProjectionCalculator().pending_balances([account], rows)[1]

    assert balance.pending_revenue == 200
    assert balance.pending_expense == 50
    assert balance.projected_balance == 1150


def test_no_pending_rows_means_no_projection():
    account = _account(1, 1000)
    rows = [_txn(1, T.EXPENSE, 50, bank=1, src=1, status=S.PAID)]
    assert ProjectionCalculator().project(account, rows) is None


def test_settled_and_cancelled_rows_are_ignored():
    account = _account(1, 500)
    rows = [
        _txn(1, T.EXPENSE, 50, bank=1, src=1, status=S.CANCELLED),
        _txn(2, T.EXPENSE, 20, bank=1, src=1, status=S.OVERDUE),
    ]
    assert ProjectionCalculator().project(account, rows) == 480


def test_transfer_moves_money_between_legs():
    checking, savings = _account(1, 1000), _account(2, 300)
    rows = [_txn(1, T.TRANSFER, 250, bank=1, src=1, dst=2)]

    balances = ProjectionCalculator().pending_balances([checking, savings], rows)

    assert balances[1].projected_balance == 750
    assert balances[2].projected_balance == 550


def test_transfer_to_the_same_account_nets_to_zero():
    account = _account(1, 1000)
    rows = [_txn(1, T.TRANSFER, 250, src=1, dst=1)]
    balance = ProjectionCalculator().pending_balances([account], rows)[1]
    assert balance.pending_count == 1
    assert balance.projected_balance == 1000


def test_duplicate_transaction_ids_contribute_once():
    account = _account(1, 100)
    row = _txn(1, T.EXPENSE, 40, bank=1, src=1)
    assert ProjectionCalculator().project(account, [row, row]) == 60


def test_credit_card_projects_from_available_credit():
    card = _account(
        1,
        0,
        type=models.BankAccountType.CREDIT_CARD,
        credit_limit=5000,
        available_credit=3000,
    )
    rows = [_txn(1, T.EXPENSE, 400, bank=1, src=1)]
    assert ProjectionCalculator().project(card, rows) == 2600


def test_malformed_amount_is_left_out():
    account = _account(1, 100)
    rows = [_txn(1, T.EXPENSE, float("inf"), bank=1, src=1), _txn(2, T.EXPENSE, 10, bank=1, src=1)]
    assert ProjectionCalculator().project(account, rows) == pytest.approx(90)


def test_soft_deleted_rows_do_not_move_the_projection():
    account = _account(1, 1000)
    rows = [
        _txn(1, T.EXPENSE, 300, bank=1, src=1, deleted_at=datetime(2025, 3, 1, 9, 0)),
        _txn(2, T.REVENUE, 50, bank=1, dst=1),
    ]
    assert ProjectionCalculator().project(account, rows) == 1050
    assert ProjectionCalculator().project(account, rows[:1]) is None
