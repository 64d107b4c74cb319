from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from contractflow import jobs, models, seed
from contractflow.utils.dates import local_today


@pytest.fixture()
def job_sessions(engine, monkeypatch):
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    monkeypatch.setattr(jobs, "SessionLocal", factory)
    monkeypatch.setattr(seed, "SessionLocal", factory)
    return factory


def test_job_generates_and_exits_cleanly(db_session, make_contract, job_sessions):
    contract = make_contract()

    assert jobs.main(["--as-of", "2025-03-15"]) == 0

    db_session.expire_all()
    assert db_session.query(models.Transaction).filter_by(contract_id=contract.id).count() == 2


def test_job_exit_status_reflects_skipped_contracts(db_session, make_contract, job_sessions):
    make_contract(bank_account_id=None)
    assert jobs.main(["--as-of", "2025-03-15"]) == 1


def test_job_respects_contract_filter(db_session, make_contract, job_sessions):
    first = make_contract()
    second = make_contract(name="Second")

    assert jobs.main(["--as-of", "2025-01-31", "--contract-id", str(second.id)]) == 0

    db_session.expire_all()
    assert db_session.query(models.Transaction).filter_by(contract_id=first.id).count() == 0
    assert db_session.query(models.Transaction).filter_by(contract_id=second.id).count() == 1


def test_seed_is_idempotent(db_session, job_sessions):
    seed.seed()
    seed.seed()

    db_session.expire_all()
    assert db_session.query(models.Company).filter_by(name="Demo Company").count() == 1
    company = db_session.query(models.Company).filter_by(name="Demo Company").one()
    assert db_session.query(models.BankAccount).filter_by(company_id=company.id).count() == 1


def test_local_today_uses_configured_zone():
    # 02:00 UTC on the 16th is still the evening of the 15th in Sao Paulo
    assert local_today(datetime(2025, 3, 16, 2, 0, tzinfo=timezone.utc)) == date(2025, 3, 15)
    assert local_today(datetime(2025, 3, 16, 2, 0)) == date(2025, 3, 15)
    assert local_today(datetime(2025, 3, 16, 4, 0, tzinfo=timezone.utc)) == date(2025, 3, 16)
