from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from contractflow import models
from contractflow.core.logging_setup import get_logger
from contractflow.errors import DuplicateOccurrenceConflict, PersistenceError
from contractflow.services.stores import TransactionStore


logger = get_logger(__name__)


@dataclass(frozen=True)
class OccurrenceFailure:
    contract_id: int
    due_date: date
    error: str


@dataclass
class MaterializationResult:
    inserted: int = 0
    skipped: int = 0
    failures: list[OccurrenceFailure] = field(default_factory=list)
    inserted_ids: list[int] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


class TransactionMaterializer:
    """Persist one transaction per (contract, due date), at most once.

    Each date is checked against the store before inserting and the insert
    itself runs inside a SAVEPOINT guarded by the partial unique index, so a
    retried or concurrent run converges on the same rows. A failed insert is
    logged and recorded; the remaining dates are still attempted.
    """

    def __init__(self, store: TransactionStore) -> None:
        self.store = store

    def build_transaction(self, contract: models.Contract, due_date: date) -> models.Transaction:
        account_id = contract.bank_account_id
        return models.Transaction(
            company_id=contract.company_id,
            type=contract.type,
            amount=contract.amount,
            description=f"{contract.name or contract.description or 'Contract'} - Installment",
            due_date=due_date,
            status=models.TransactionStatus.PENDING,
            contract_id=contract.id,
            bank_account_id=account_id,
            account_from_id=account_id if contract.type == models.TxnType.EXPENSE else None,
            account_to_id=account_id if contract.type == models.TxnType.REVENUE else None,
            category_id=contract.category_id,
            contact_id=contract.contact_id,
            payment_method=contract.payment_method,
        )

    def materialize(self, contract: models.Contract, dates: Iterable[date]) -> MaterializationResult:
        result = MaterializationResult()
        for due_date in sorted(set(dates)):
            if self.store.exists_for_occurrence(contract.id, due_date):
                result.skipped += 1
                continue
            try:
                txn_id = self.store.insert(self.build_transaction(contract, due_date))
            except DuplicateOccurrenceConflict:
                logger.info("contract %s: occurrence %s written concurrently, skipping", contract.id, due_date)
                result.skipped += 1
                continue
            except PersistenceError as exc:
                logger.error("contract %s: failed to materialize %s: %s", contract.id, due_date, exc)
                result.failures.append(OccurrenceFailure(contract_id=contract.id, due_date=due_date, error=str(exc)))
                continue
            result.inserted += 1
            result.inserted_ids.append(txn_id)
        if result.inserted or result.failures:
            logger.info(
                "contract %s: inserted=%d skipped=%d failed=%d",
                contract.id,
                result.inserted,
                result.skipped,
                result.failed,
            )
        return result
