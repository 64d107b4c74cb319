from __future__ import annotations

import os
import tempfile
from datetime import date
from typing import Generator, Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from contractflow.core.database import Base, get_db
from contractflow.core.deps import get_today
from contractflow.main import app
from contractflow import models


# every API test runs "on" this local date
TODAY = date(2025, 3, 15)


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # temp-file SQLite so the developer database is never touched
    fd, path = tempfile.mkstemp(prefix="contractflow_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    eng = create_engine(test_db_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    # seed: one company (id 1) with a checking account (id 1)
    company = models.Company(name="Acme", is_active=True)
    session.add(company)
    session.flush()
    session.add(
        models.BankAccount(
            company_id=company.id,
            name="Main",
            type=models.BankAccountType.CHECKING,
            current_balance=1000,
        )
    )
    session.commit()

    try:
        yield session
    finally:
        session.close()
        from sqlalchemy import text
        with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=ON")


@pytest.fixture()
def company(db_session) -> models.Company:
    return db_session.query(models.Company).filter_by(name="Acme").one()


@pytest.fixture()
def account(db_session, company) -> models.BankAccount:
    return db_session.query(models.BankAccount).filter_by(company_id=company.id, name="Main").one()


@pytest.fixture()
def make_contract(db_session, company, account):
    def _make(**overrides) -> models.Contract:
        data = dict(
            company_id=company.id,
            name="Office rent",
            type=models.TxnType.EXPENSE,
            amount=100,
            frequency=models.ContractFrequency.MONTHLY,
            start_date=date(2025, 1, 31),
            bank_account_id=account.id,
        )
        data.update(overrides)
        contract = models.Contract(**data)
        db_session.add(contract)
        db_session.commit()
        return contract

    return _make


@pytest.fixture()
def make_transaction(db_session, company, account):
    def _make(**overrides) -> models.Transaction:
        txn_type = overrides.get("type", models.TxnType.EXPENSE)
        data = dict(
            company_id=company.id,
            type=txn_type,
            amount=100,
            description="Manual entry",
            due_date=TODAY,
            status=models.TransactionStatus.PENDING,
            bank_account_id=account.id,
        )
        if txn_type == models.TxnType.EXPENSE:
            data["account_from_id"] = account.id
        elif txn_type == models.TxnType.REVENUE:
            data["account_to_id"] = account.id
        data.update(overrides)
        txn = models.Transaction(**data)
        db_session.add(txn)
        db_session.commit()
        return txn

    return _make


@pytest.fixture(autouse=True)
def override_dependency(db_session):
    # FastAPI DI override
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    app.dependency_overrides[get_today] = lambda: TODAY
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
