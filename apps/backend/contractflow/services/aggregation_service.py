"""
Pending / overdue aggregation

Rows are split into revenues and expenses and summarized per direction.
Two views exist:

- ``overdue``: rows with status ``overdue``, plus ``pending`` rows whose due
  date is already behind ``today``.
- ``pending``: every unsettled row (``pending`` or ``overdue``), with the
  overdue ones counted separately.

Transfers, paid, cancelled and soft-deleted rows never enter a bucket. A row with an
unusable due date or amount is left out of every sum and reported in
``flagged`` instead of failing the whole summary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Literal, Optional

from contractflow import models
from contractflow.core.logging_setup import get_logger
from contractflow.errors import AggregationInputError
from contractflow.services.severity import Severity, classify_severity
from contractflow.utils.dates import days_between


logger = get_logger(__name__)

AggregationView = Literal["overdue", "pending"]
AggregationOrder = Literal["due_date", "-due_date", "amount", "-amount", "days_overdue"]


@dataclass(frozen=True)
class AggregatedItem:
    transaction: Any
    amount: float
    due_date: date
    days_overdue: int
    severity: Optional[Severity]

    @property
    def is_overdue(self) -> bool:
        return self.severity is not None


@dataclass(frozen=True)
class FlaggedRow:
    transaction_id: Any
    reason: str


@dataclass
class Bucket:
    total: float = 0.0
    count: int = 0
    count_overdue: int = 0
    count_on_time: int = 0
    average_days_overdue: int = 0
    oldest_date: Optional[date] = None
    items: list[AggregatedItem] = field(default_factory=list)


@dataclass
class AggregateSummary:
    view: str
    today: date
    revenues: Bucket = field(default_factory=Bucket)
    expenses: Bucket = field(default_factory=Bucket)
    flagged: list[FlaggedRow] = field(default_factory=list)


def coerce_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return enum_cls[str(value).upper()]


def read_due_date(txn: Any) -> date:
    value = getattr(txn, "due_date", None)
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise AggregationInputError(getattr(txn, "id", None), f"malformed due date {value!r}")


def read_amount(txn: Any) -> float:
    value = getattr(txn, "amount", None)
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise AggregationInputError(getattr(txn, "id", None), f"malformed amount {value!r}") from None
    if not math.isfinite(amount) or amount < 0:
        raise AggregationInputError(getattr(txn, "id", None), f"malformed amount {value!r}")
    return amount


def days_overdue(due_date: date, today: date) -> int:
    return max(0, days_between(due_date, today))


def is_overdue(status: models.TransactionStatus, due_date: date, today: date) -> bool:
    if status == models.TransactionStatus.OVERDUE:
        return True
    return status == models.TransactionStatus.PENDING and due_date < today


def severity_for(txn: Any, today: date) -> Optional[Severity]:
    """Severity of an unsettled row, ``None`` when it is not overdue."""
    status = coerce_enum(models.TransactionStatus, txn.status)
    due = read_due_date(txn)
    if not is_overdue(status, due, today):
        return None
    return classify_severity(days_overdue(due, today))


def touches_account(txn: Any, account_id: int) -> bool:
    return account_id in (
        getattr(txn, "bank_account_id", None),
        getattr(txn, "account_from_id", None),
        getattr(txn, "account_to_id", None),
    )


def _sort_items(items: list[AggregatedItem], order: str) -> list[AggregatedItem]:
    def _txn_id(item: AggregatedItem):
        return getattr(item.transaction, "id", 0) or 0

    if order == "due_date":
        return sorted(items, key=lambda i: (i.due_date, _txn_id(i)))
    if order == "-due_date":
        return sorted(items, key=lambda i: (i.due_date, _txn_id(i)), reverse=True)
    if order == "amount":
        return sorted(items, key=lambda i: (i.amount, i.due_date))
    if order == "-amount":
        return sorted(items, key=lambda i: (-i.amount, i.due_date))
    if order == "days_overdue":
        # most overdue first
        return sorted(items, key=lambda i: (-i.days_overdue, i.due_date, _txn_id(i)))
    raise ValueError(f"unknown order {order!r}")


def _summarize(items: list[AggregatedItem], order: str) -> Bucket:
    overdue = [i for i in items if i.is_overdue]
    bucket = Bucket(
        total=round(sum(i.amount for i in items), 2),
        count=len(items),
        count_overdue=len(overdue),
        count_on_time=len(items) - len(overdue),
        items=_sort_items(items, order),
    )
    if overdue:
        mean = sum(i.days_overdue for i in overdue) / len(overdue)
        bucket.average_days_overdue = math.floor(mean + 0.5)
        bucket.oldest_date = min(i.due_date for i in overdue)
    return bucket


def aggregate(
    transactions: Iterable[Any],
    *,
    today: date,
    view: AggregationView = "overdue",
    account_id: Optional[int] = None,
    order: AggregationOrder = "due_date",
) -> AggregateSummary:
    """Bucket transactions into revenue and expense summaries.

    ``today`` must be the local calendar date of the configured zone; it is
    the only clock input, so the result is deterministic.
    """
    if view not in ("overdue", "pending"):
        raise ValueError(f"unknown view {view!r}")

    summary = AggregateSummary(view=view, today=today)
    revenues: list[AggregatedItem] = []
    expenses: list[AggregatedItem] = []
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
            txn_type = coerce_enum(models.TxnType, txn.type)
        except (KeyError, ValueError):
            summary.flagged.append(FlaggedRow(transaction_id=txn_id, reason="unknown status or type"))
            continue
        if status not in models.UNSETTLED_STATUSES or txn_type == models.TxnType.TRANSFER:
            continue
        if account_id is not None and not touches_account(txn, account_id):
            continue
        try:
            due = read_due_date(txn)
            amount = read_amount(txn)
        except AggregationInputError as exc:
            logger.warning("excluding transaction from aggregation: %s", exc)
            summary.flagged.append(FlaggedRow(transaction_id=exc.transaction_id, reason=exc.reason))
            continue

        overdue = is_overdue(status, due, today)
        if view == "overdue" and not overdue:
            continue
        age = days_overdue(due, today) if overdue else 0
        item = AggregatedItem(
            transaction=txn,
            amount=amount,
            due_date=due,
            days_overdue=age,
            severity=classify_severity(age) if overdue else None,
        )
        (revenues if txn_type == models.TxnType.REVENUE else expenses).append(item)

    summary.revenues = _summarize(revenues, order)
    summary.expenses = _summarize(expenses, order)
    return summary


def empty_summary(view: AggregationView, today: date) -> AggregateSummary:
    return AggregateSummary(view=view, today=today)
