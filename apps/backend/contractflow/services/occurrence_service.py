"""
Occurrence calculation for contracts

Occurrence k of a contract is ``start_date + k * period``. Month based
periods are computed from the start date every time and clamped to the
last day of the target month, so a contract starting on the 31st lands on
31 Jan, 28 Feb, 31 Mar, 30 Apr and never drifts to the 28th.

Everything in this module is pure: no session, no clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Iterator, Optional

from contractflow import models
from contractflow.errors import RuleConfigurationError
from contractflow.utils.dates import add_months


_DAY_STEPS: dict[models.ContractFrequency, int] = {
    models.ContractFrequency.DAILY: 1,
    models.ContractFrequency.WEEKLY: 7,
}

_MONTH_STEPS: dict[models.ContractFrequency, int] = {
    models.ContractFrequency.MONTHLY: 1,
    models.ContractFrequency.QUARTERLY: 3,
    models.ContractFrequency.SEMIANNUAL: 6,
    models.ContractFrequency.YEARLY: 12,
}

# occurrences per month, used for recurring revenue/expense figures
_MONTHLY_MULTIPLIERS: dict[models.ContractFrequency, float] = {
    models.ContractFrequency.DAILY: 365 / 12,
    models.ContractFrequency.WEEKLY: 52 / 12,
    models.ContractFrequency.MONTHLY: 1.0,
    models.ContractFrequency.QUARTERLY: 1 / 3,
    models.ContractFrequency.SEMIANNUAL: 1 / 6,
    models.ContractFrequency.YEARLY: 1 / 12,
}


@dataclass(frozen=True)
class ScheduledOccurrence:
    installment: int
    due_date: date


@dataclass(frozen=True)
class RecurringTotals:
    monthly_revenue: float
    monthly_expense: float
    active_contracts: int

    @property
    def monthly_net(self) -> float:
        return self.monthly_revenue - self.monthly_expense


def coerce_frequency(value: Any, contract_id: int | None = None) -> models.ContractFrequency:
    if isinstance(value, models.ContractFrequency):
        return value
    try:
        return models.ContractFrequency(str(value).lower())
    except ValueError:
        raise RuleConfigurationError(contract_id, f"unknown frequency {value!r}") from None


def validate_rule(rule: Any) -> models.ContractFrequency:
    """Check a contract can be expanded and return its frequency.

    Raises ``RuleConfigurationError`` for an unknown frequency, a missing or
    non-date start, a start after the end date or a non-positive cap.
    """
    contract_id = getattr(rule, "id", None)
    frequency = coerce_frequency(getattr(rule, "frequency", None), contract_id)
    start = getattr(rule, "start_date", None)
    if not isinstance(start, date):
        raise RuleConfigurationError(contract_id, "start_date is missing or not a date")
    end = getattr(rule, "end_date", None)
    if end is not None and end < start:
        raise RuleConfigurationError(contract_id, f"start_date {start} is after end_date {end}")
    cap = getattr(rule, "total_installments", None)
    if cap is not None and cap <= 0:
        raise RuleConfigurationError(contract_id, "total_installments must be positive")
    return frequency


def occurrence_at(start: date, frequency: models.ContractFrequency, index: int) -> date:
    """Due date of the ``index``-th occurrence (0 is the start date)."""
    if frequency in _DAY_STEPS:
        return start + timedelta(days=_DAY_STEPS[frequency] * index)
    return add_months(start, _MONTH_STEPS[frequency] * index, anchor_day=start.day)


def _first_index_after(start: date, frequency: models.ContractFrequency, boundary: date) -> int:
    """Smallest index whose occurrence falls strictly after ``boundary``."""
    if boundary < start:
        return 0
    if frequency in _DAY_STEPS:
        index = (boundary - start).days // _DAY_STEPS[frequency]
    else:
        months = (boundary.year - start.year) * 12 + (boundary.month - start.month)
        index = max(0, months // _MONTH_STEPS[frequency])
    while occurrence_at(start, frequency, index) <= boundary:
        index += 1
    return index


def iter_schedule(rule: Any, *, first_index: int = 0) -> Iterator[ScheduledOccurrence]:
    """Yield the contract's scheduled occurrences up to its end date and cap."""
    frequency = validate_rule(rule)
    start: date = rule.start_date
    end: Optional[date] = getattr(rule, "end_date", None)
    cap: Optional[int] = getattr(rule, "total_installments", None)
    index = first_index
    while True:
        if cap is not None and index >= cap:
            return
        candidate = occurrence_at(start, frequency, index)
        if end is not None and candidate > end:
            return
        yield ScheduledOccurrence(installment=index + 1, due_date=candidate)
        index += 1


def compute_occurrences(
    rule: Any,
    as_of: date,
    *,
    materialized_count: int = 0,
    existing: Optional[Iterable[date]] = None,
    limit: Optional[int] = None,
) -> list[date]:
    """Scheduled dates up to ``as_of`` that still need a transaction.

    The schedule is walked from the first installment and every date in
    ``existing`` (dates that already have a row, cancelled or deleted ones
    included) is skipped, so an occurrence that failed to persist earlier is
    picked up again by the next call. Per candidate, in order: past the end
    date (inclusive boundary) stops, an installment number above
    ``total_installments`` stops, later than ``as_of`` stops. The live
    ``materialized_count`` plus the emitted dates never exceeds the cap.
    ``limit`` caps the size of one batch.
    """
    validate_rule(rule)
    cap: Optional[int] = getattr(rule, "total_installments", None)
    if cap is not None and materialized_count >= cap:
        return []

    handled = set(existing or ())
    dates: list[date] = []
    for item in iter_schedule(rule):
        if item.due_date > as_of:
            break
        if item.due_date in handled:
            continue
        if cap is not None and materialized_count + len(dates) >= cap:
            break
        if limit is not None and len(dates) >= limit:
            break
        dates.append(item.due_date)
    return dates


def preview_occurrences(rule: Any, start: date, end: date, *, max_items: int = 366) -> list[ScheduledOccurrence]:
    """Scheduled occurrences inside [start, end] regardless of today's date."""
    if end < start:
        return []
    frequency = validate_rule(rule)
    first_index = _first_index_after(rule.start_date, frequency, start - timedelta(days=1))
    items: list[ScheduledOccurrence] = []
    for item in iter_schedule(rule, first_index=first_index):
        if item.due_date > end or len(items) >= max_items:
            break
        items.append(item)
    return items


def monthly_equivalent(amount: float, frequency: Any) -> float:
    return float(amount) * _MONTHLY_MULTIPLIERS[coerce_frequency(frequency)]


def recurring_totals(contracts: Iterable[Any]) -> RecurringTotals:
    """Monthly recurring revenue and expense of the active contracts."""
    revenue = 0.0
    expense = 0.0
    active = 0
    for contract in contracts:
        if not contract.is_active or getattr(contract, "deleted_at", None) is not None:
            continue
        try:
            value = monthly_equivalent(contract.amount, contract.frequency)
        except RuleConfigurationError:
            continue
        active += 1
        if contract.type == models.TxnType.REVENUE:
            revenue += value
        elif contract.type == models.TxnType.EXPENSE:
            expense += value
    return RecurringTotals(monthly_revenue=round(revenue, 2), monthly_expense=round(expense, 2), active_contracts=active)
