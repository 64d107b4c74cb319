from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from contractflow import models
from contractflow.core.logging_setup import get_logger
from contractflow.errors import AggregationInputError
from contractflow.services.aggregation_service import coerce_enum, read_amount


logger = get_logger(__name__)


@dataclass
class PendingBalance:
    account_id: int
    settled_balance: float
    pending_revenue: float = 0.0
    pending_expense: float = 0.0
    pending_count: int = 0

    @property
    def projected_balance(self) -> Optional[float]:
        """``None`` when nothing is pending, so callers show only the settled balance."""
        if self.pending_count == 0:
            return None
        return round(self.settled_balance + self.pending_revenue - self.pending_expense, 2)


def _legs(txn: Any) -> tuple[Optional[int], Optional[int]]:
    """(outgoing account, incoming account) of an unsettled row."""
    txn_type = coerce_enum(models.TxnType, txn.type)
    if txn_type == models.TxnType.REVENUE:
        return None, getattr(txn, "account_to_id", None) or getattr(txn, "bank_account_id", None)
    if txn_type == models.TxnType.EXPENSE:
        return getattr(txn, "account_from_id", None) or getattr(txn, "bank_account_id", None), None
    return getattr(txn, "account_from_id", None), getattr(txn, "account_to_id", None)


class ProjectionCalculator:
    """Settled balance adjusted by unsettled inflows and outflows.

    Revenue adds to its account, expense subtracts from its account, a
    transfer subtracts on the ``from`` leg and adds on the ``to`` leg. Every
    transaction id contributes once; a transfer between the same account
    nets to zero.
    """

    def pending_balances(
        self,
        accounts: Iterable[models.BankAccount],
        transactions: Iterable[Any],
    ) -> dict[int, PendingBalance]:
        balances = {
            account.id: PendingBalance(account_id=account.id, settled_balance=account.settled_balance)
            for account in accounts
        }
        seen: set[Any] = set()
        for txn in transactions:
            txn_id = getattr(txn, "id", None)
            if txn_id is not None:
                if txn_id in seen:
                    continue
                seen.add(txn_id)
            if getattr(txn, "deleted_at", None) is not None:
                continue
            try:
                status = coerce_enum(models.TransactionStatus, txn.status)
            except (KeyError, ValueError):
                continue
            if status not in models.UNSETTLED_STATUSES:
                continue
            try:
                amount = read_amount(txn)
                outgoing, incoming = _legs(txn)
            except (AggregationInputError, KeyError, ValueError) as exc:
                logger.warning("excluding transaction %s from projection: %s", txn_id, exc)
                continue
            if outgoing is not None and outgoing == incoming:
                if outgoing in balances:
                    balances[outgoing].pending_count += 1
                continue
            if outgoing in balances:
                balances[outgoing].pending_expense += amount
                balances[outgoing].pending_count += 1
            if incoming in balances:
                balances[incoming].pending_revenue += amount
                balances[incoming].pending_count += 1
        for balance in balances.values():
            balance.pending_revenue = round(balance.pending_revenue, 2)
            balance.pending_expense = round(balance.pending_expense, 2)
        return balances

    def project(self, account: models.BankAccount, pending_transactions: Iterable[Any]) -> Optional[float]:
        return self.pending_balances([account], pending_transactions)[account.id].projected_balance
