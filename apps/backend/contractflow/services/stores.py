from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from contractflow import models
from contractflow.errors import DuplicateOccurrenceConflict, PersistenceError


@dataclass(frozen=True)
class OccurrenceState:
    """What has already been materialized for one contract."""

    count: int
    due_dates: frozenset[date]


class ContractStore:
    """Read access to recurrence rules."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_active(self, company_id: Optional[int] = None, contract_id: Optional[int] = None) -> list[models.Contract]:
        """Active, auto-generating, non-deleted contracts ordered by id."""
        query = self.db.query(models.Contract).filter(
            models.Contract.is_active.is_(True),
            models.Contract.auto_generate.is_(True),
            models.Contract.deleted_at.is_(None),
        )
        if company_id is not None:
            query = query.filter(models.Contract.company_id == company_id)
        if contract_id is not None:
            query = query.filter(models.Contract.id == contract_id)
        return query.order_by(models.Contract.id).all()

    def get(self, contract_id: int, company_id: Optional[int] = None) -> Optional[models.Contract]:
        query = self.db.query(models.Contract).filter(
            models.Contract.id == contract_id,
            models.Contract.deleted_at.is_(None),
        )
        if company_id is not None:
            query = query.filter(models.Contract.company_id == company_id)
        return query.first()


class TransactionStore:
    """Transaction table access used by the materializer and the reports.

    Soft-deleted rows never come back from the listing queries.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _visible(self):
        return self.db.query(models.Transaction).filter(models.Transaction.deleted_at.is_(None))

    def exists_for_occurrence(self, contract_id: int, due_date: date) -> bool:
        """True when a live (not cancelled, not deleted) row holds this occurrence."""
        row = (
            self.db.query(models.Transaction.id)
            .filter(
                models.Transaction.contract_id == contract_id,
                models.Transaction.due_date == due_date,
                models.Transaction.status != models.TransactionStatus.CANCELLED,
                models.Transaction.deleted_at.is_(None),
            )
            .first()
        )
        return row is not None

    def occurrence_state(self, contract_id: int) -> OccurrenceState:
        """Live occurrence count plus every due date that already has a row.

        The count ignores cancelled and deleted rows. The date set does not:
        an occurrence the user cancelled or removed is never generated again.
        """
        rows = (
            self.db.query(models.Transaction.due_date, models.Transaction.status, models.Transaction.deleted_at)
            .filter(models.Transaction.contract_id == contract_id)
            .all()
        )
        live = sum(
            1
            for _, status, deleted_at in rows
            if status != models.TransactionStatus.CANCELLED and deleted_at is None
        )
        return OccurrenceState(count=live, due_dates=frozenset(due for due, _, _ in rows))

    def insert(self, transaction: models.Transaction) -> int:
        """Insert one row inside a SAVEPOINT and return its id.

        Raises ``DuplicateOccurrenceConflict`` when the (contract, due date)
        index rejects the row and ``PersistenceError`` for any other failure.
        The surrounding transaction stays usable in both cases.
        """
        try:
            with self.db.begin_nested():
                self.db.add(transaction)
                self.db.flush()
        except IntegrityError as exc:
            contract_id = transaction.contract_id
            if contract_id is not None and self.exists_for_occurrence(contract_id, transaction.due_date):
                raise DuplicateOccurrenceConflict(contract_id, transaction.due_date) from exc
            raise PersistenceError(
                f"insert rejected: {exc.orig}",
                contract_id=contract_id,
                due_date=transaction.due_date,
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"insert failed: {exc}",
                contract_id=transaction.contract_id,
                due_date=transaction.due_date,
            ) from exc
        return transaction.id

    def query_by_company_and_status(
        self,
        company_id: int,
        statuses: Iterable[models.TransactionStatus],
        date_range: Optional[tuple[Optional[date], Optional[date]]] = None,
    ) -> list[models.Transaction]:
        """Rows of one company in the given statuses, oldest due date first."""
        query = self._visible().filter(
            models.Transaction.company_id == company_id,
            models.Transaction.status.in_(list(statuses)),
        )
        if date_range is not None:
            start, end = date_range
            if start is not None:
                query = query.filter(models.Transaction.due_date >= start)
            if end is not None:
                query = query.filter(models.Transaction.due_date <= end)
        return query.order_by(models.Transaction.due_date, models.Transaction.id).all()

    def list_for_contract(self, contract_id: int) -> list[models.Transaction]:
        return (
            self._visible()
            .filter(models.Transaction.contract_id == contract_id)
            .order_by(models.Transaction.due_date, models.Transaction.id)
            .all()
        )

    def get(self, transaction_id: int, company_id: Optional[int] = None) -> Optional[models.Transaction]:
        query = self._visible().filter(models.Transaction.id == transaction_id)
        if company_id is not None:
            query = query.filter(models.Transaction.company_id == company_id)
        return query.first()


class AccountStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, account_id: int, company_id: Optional[int] = None) -> Optional[models.BankAccount]:
        query = self.db.query(models.BankAccount).filter(
            models.BankAccount.id == account_id,
            models.BankAccount.deleted_at.is_(None),
        )
        if company_id is not None:
            query = query.filter(models.BankAccount.company_id == company_id)
        return query.first()

    def list_for_company(self, company_id: int, *, active_only: bool = True) -> list[models.BankAccount]:
        query = self.db.query(models.BankAccount).filter(
            models.BankAccount.company_id == company_id,
            models.BankAccount.deleted_at.is_(None),
        )
        if active_only:
            query = query.filter(models.BankAccount.is_active.is_(True))
        return query.order_by(models.BankAccount.id).all()
