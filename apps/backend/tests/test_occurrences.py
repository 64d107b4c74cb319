from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from contractflow import models
from contractflow.errors import RuleConfigurationError
from contractflow.services.occurrence_service import (
    compute_occurrences,
    monthly_equivalent,
    occurrence_at,
    preview_occurrences,
    recurring_totals,
    validate_rule,
)
from contractflow.utils.dates import add_months


F = models.ContractFrequency


def _rule(**kw):
    data = dict(
        id=1,
        frequency=F.MONTHLY,
        start_date=date(2025, 1, 31),
        end_date=None,
        total_installments=None,
    )
    data.update(kw)
    return SimpleNamespace(**data)


def test_monthly_end_of_month_clamps_without_drift():
    dates = compute_occurrences(_rule(), date(2025, 5, 31))
    assert dates == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
        date(2025, 4, 30),
        date(2025, 5, 31),
    ]


def test_monthly_leap_year_february():
    dates = compute_occurrences(_rule(start_date=date(2024, 1, 31)), date(2024, 3, 31))
    assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]


def test_end_date_is_inclusive():
    rule = _rule(start_date=date(2025, 1, 10), end_date=date(2025, 3, 10))
    assert compute_occurrences(rule, date(2025, 12, 31)) == [
        date(2025, 1, 10),
        date(2025, 2, 10),
        date(2025, 3, 10),
    ]


def test_as_of_is_inclusive_and_future_start_yields_nothing():
    rule = _rule(start_date=date(2025, 3, 15))
    assert compute_occurrences(rule, date(2025, 3, 15)) == [date(2025, 3, 15)]
    assert compute_occurrences(_rule(start_date=date(2025, 6, 1)), date(2025, 3, 15)) == []


def test_installment_cap_counts_materialized_rows():
    rule = _rule(start_date=date(2025, 1, 10), total_installments=3)
    assert compute_occurrences(rule, date(2026, 1, 1)) == [
        date(2025, 1, 10),
        date(2025, 2, 10),
        date(2025, 3, 10),
    ]
    existing = [date(2025, 1, 10), date(2025, 2, 10)]
    assert compute_occurrences(rule, date(2026, 1, 1), materialized_count=2, existing=existing) == [date(2025, 3, 10)]
    assert compute_occurrences(rule, date(2026, 1, 1), materialized_count=3, existing=existing) == []


def test_cap_holds_by_installment_number():
    rule = _rule(start_date=date(2025, 1, 10), total_installments=3)
    # installment 2 was cancelled: its slot is used up, nothing past installment 3 appears
    existing = [date(2025, 1, 10), date(2025, 2, 10), date(2025, 3, 10)]
    assert compute_occurrences(rule, date(2026, 1, 1), materialized_count=2, existing=existing) == []


def test_resume_skips_existing_dates():
    rule = _rule()
    existing = [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)]
    assert compute_occurrences(rule, date(2025, 5, 31), materialized_count=3, existing=existing) == [
        date(2025, 4, 30),
        date(2025, 5, 31),
    ]
    # a clamped date does not shift the anchor day
    assert compute_occurrences(rule, date(2025, 3, 31), materialized_count=2, existing=existing[:2]) == [
        date(2025, 3, 31),
    ]


def test_missing_earlier_occurrence_is_filled_before_later_ones():
    rule = _rule(total_installments=3)
    existing = [date(2025, 1, 31), date(2025, 3, 31)]
    assert compute_occurrences(rule, date(2025, 6, 30), materialized_count=2, existing=existing) == [
        date(2025, 2, 28),
    ]


def test_weekly_and_daily_steps():
    weekly = _rule(frequency=F.WEEKLY, start_date=date(2025, 3, 1))
    assert compute_occurrences(weekly, date(2025, 3, 15)) == [date(2025, 3, 1), date(2025, 3, 8), date(2025, 3, 15)]

    daily = _rule(frequency=F.DAILY, start_date=date(2025, 1, 1))
    first = compute_occurrences(daily, date(2025, 1, 10), limit=4)
    assert first == [date(2025, 1, d) for d in range(1, 5)]
    rest = compute_occurrences(daily, date(2025, 1, 10), materialized_count=4, existing=first)
    assert rest == [date(2025, 1, d) for d in range(5, 11)]


@pytest.mark.parametrize(
    "frequency,start,expected",
    [
        (F.QUARTERLY, date(2024, 11, 30), [date(2024, 11, 30), date(2025, 2, 28), date(2025, 5, 30)]),
        (F.SEMIANNUAL, date(2024, 8, 31), [date(2024, 8, 31), date(2025, 2, 28)]),
        (F.YEARLY, date(2024, 2, 29), [date(2024, 2, 29), date(2025, 2, 28)]),
    ],
)
def test_multi_month_frequencies(frequency, start, expected):
    assert compute_occurrences(_rule(frequency=frequency, start_date=start), date(2025, 6, 1)) == expected


def test_yearly_returns_to_leap_day():
    assert occurrence_at(date(2024, 2, 29), F.YEARLY, 4) == date(2028, 2, 29)


def test_add_months_clamps_and_crosses_years():
    assert add_months(date(2025, 12, 31), 2) == date(2026, 2, 28)
    assert add_months(date(2025, 3, 31), -1) == date(2025, 2, 28)
    assert add_months(date(2025, 2, 28), 1, anchor_day=31) == date(2025, 3, 31)


def test_string_frequency_is_accepted():
    assert validate_rule(_rule(frequency="MONTHLY")) == F.MONTHLY
    assert validate_rule(_rule(frequency="weekly")) == F.WEEKLY


@pytest.mark.parametrize(
    "overrides",
    [
        {"frequency": "fortnightly"},
        {"start_date": None},
        {"start_date": "2025-01-01"},
        {"start_date": date(2025, 5, 1), "end_date": date(2025, 4, 1)},
        {"total_installments": 0},
    ],
)
def test_invalid_rules_raise_configuration_error(overrides):
    with pytest.raises(RuleConfigurationError) as excinfo:
        compute_occurrences(_rule(**overrides), date(2025, 12, 31))
    assert excinfo.value.contract_id == 1


def test_preview_numbers_installments_from_the_start():
    items = preview_occurrences(_rule(), date(2025, 3, 1), date(2025, 6, 30))
    assert [(i.installment, i.due_date) for i in items] == [
        (3, date(2025, 3, 31)),
        (4, date(2025, 4, 30)),
        (5, date(2025, 5, 31)),
        (6, date(2025, 6, 30)),
    ]


def test_preview_honours_cap_and_empty_window():
    items = preview_occurrences(_rule(total_installments=4), date(2025, 3, 1), date(2025, 12, 31))
    assert [i.installment for i in items] == [3, 4]
    assert preview_occurrences(_rule(), date(2025, 6, 1), date(2025, 5, 1)) == []


def test_monthly_equivalent():
    assert monthly_equivalent(1200, F.YEARLY) == pytest.approx(100)
    assert monthly_equivalent(12, F.WEEKLY) == pytest.approx(52)
    assert monthly_equivalent(300, F.QUARTERLY) == pytest.approx(100)


def test_recurring_totals_skip_inactive_contracts():
    contracts = [
        SimpleNamespace(is_active=True, type=models.TxnType.REVENUE, amount=1000, frequency=F.MONTHLY),
        SimpleNamespace(is_active=True, type=models.TxnType.EXPENSE, amount=1200, frequency=F.YEARLY),
        SimpleNamespace(is_active=False, type=models.TxnType.EXPENSE, amount=999, frequency=F.MONTHLY),
    ]
    totals = recurring_totals(contracts)
    assert totals.monthly_revenue == 1000
    assert totals.monthly_expense == 100
    assert totals.active_contracts == 2
    assert totals.monthly_net == 900
