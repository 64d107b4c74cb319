from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from contractflow import models
from contractflow.core.config import settings
from contractflow.core.logging_setup import get_logger
from contractflow.errors import RuleConfigurationError
from contractflow.services.materialization_service import OccurrenceFailure, TransactionMaterializer
from contractflow.services.occurrence_service import compute_occurrences, validate_rule
from contractflow.services.stores import ContractStore, TransactionStore


logger = get_logger(__name__)


@dataclass(frozen=True)
class SkippedContract:
    contract_id: int
    contract_name: str
    reason: str


@dataclass
class ContractGenerationDetail:
    contract_id: int
    contract_name: str
    generated: int = 0
    skipped: int = 0
    failed: int = 0
    first_due_date: Optional[date] = None
    last_due_date: Optional[date] = None


@dataclass
class GenerationReport:
    as_of: date
    contracts_processed: int = 0
    transactions_generated: int = 0
    skipped_contracts: list[SkippedContract] = field(default_factory=list)
    failures: list[OccurrenceFailure] = field(default_factory=list)
    details: list[ContractGenerationDetail] = field(default_factory=list)

    @property
    def warning(self) -> Optional[str]:
        parts = []
        if self.skipped_contracts:
            parts.append(f"{len(self.skipped_contracts)} contract(s) skipped due to configuration errors")
        if self.failures:
            parts.append(f"{len(self.failures)} occurrence(s) could not be saved")
        return "; ".join(parts) or None


class RecurringGenerationService:
    """Batch entry point that expands every active contract up to a date.

    Contracts are independent of each other: each one is validated, expanded
    and committed on its own, so a run interrupted between contracts leaves
    valid partial progress and a misconfigured contract never blocks the rest.
    """

    def __init__(self, db: Session, *, max_occurrences_per_run: Optional[int] = None) -> None:
        self.db = db
        self.contracts = ContractStore(db)
        self.transactions = TransactionStore(db)
        self.materializer = TransactionMaterializer(self.transactions)
        if max_occurrences_per_run is None:
            max_occurrences_per_run = settings.GENERATION_MAX_OCCURRENCES_PER_RUN
        self.max_occurrences_per_run = max_occurrences_per_run

    def check_contract(self, contract: models.Contract) -> None:
        validate_rule(contract)
        if contract.bank_account_id is None:
            raise RuleConfigurationError(contract.id, "no bank account linked")

    def generate_for_contract(self, contract: models.Contract, as_of: date) -> tuple[ContractGenerationDetail, list[OccurrenceFailure]]:
        """Materialize the contract's due occurrences; the caller commits."""
        self.check_contract(contract)
        state = self.transactions.occurrence_state(contract.id)
        dates = compute_occurrences(
            contract,
            as_of,
            materialized_count=state.count,
            existing=state.due_dates,
            limit=self.max_occurrences_per_run,
        )
        detail = ContractGenerationDetail(contract_id=contract.id, contract_name=contract.name)
        if not dates:
            return detail, []
        logger.debug(
            "contract %s: %d candidate(s) %s..%s (existing=%d)",
            contract.id,
            len(dates),
            dates[0],
            dates[-1],
            state.count,
        )
        result = self.materializer.materialize(contract, dates)
        detail.generated = result.inserted
        detail.skipped = result.skipped
        detail.failed = result.failed
        detail.first_due_date = dates[0]
        detail.last_due_date = dates[-1]
        return detail, result.failures

    def run_generation(
        self,
        as_of: date,
        *,
        company_id: Optional[int] = None,
        contract_id: Optional[int] = None,
    ) -> GenerationReport:
        report = GenerationReport(as_of=as_of)
        contracts = self.contracts.list_active(company_id=company_id, contract_id=contract_id)
        logger.info("generation as of %s: %d active contract(s)", as_of, len(contracts))

        for contract in contracts:
            contract_ref, contract_name = contract.id, contract.name
            try:
                detail, failures = self.generate_for_contract(contract, as_of)
                self.db.commit()
            except RuleConfigurationError as exc:
                self.db.rollback()
                logger.warning("skipping contract %s (%s): %s", contract_ref, contract_name, exc.reason)
                report.skipped_contracts.append(
                    SkippedContract(contract_id=contract_ref, contract_name=contract_name, reason=exc.reason)
                )
                continue
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.exception("contract %s: commit failed", contract_ref)
                report.failures.append(
                    OccurrenceFailure(contract_id=contract_ref, due_date=as_of, error=f"commit failed: {exc}")
                )
                continue

            report.contracts_processed += 1
            report.transactions_generated += detail.generated
            report.failures.extend(failures)
            report.details.append(detail)

        logger.info(
            "generation as of %s done: processed=%d generated=%d skipped=%d failures=%d",
            as_of,
            report.contracts_processed,
            report.transactions_generated,
            len(report.skipped_contracts),
            len(report.failures),
        )
        return report
