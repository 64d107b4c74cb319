"""Domain errors raised by the generation and aggregation services."""

from __future__ import annotations

from datetime import date
from typing import Any


class ContractflowError(Exception):
    """Base class for domain errors."""


class RuleConfigurationError(ContractflowError):
    """A contract cannot be expanded (bad frequency, start after end, ...)."""

    def __init__(self, contract_id: int | None, reason: str) -> None:
        self.contract_id = contract_id
        self.reason = reason
        super().__init__(f"contract {contract_id}: {reason}")


class DuplicateOccurrenceConflict(ContractflowError):
    """Another writer already materialized this (contract, due date)."""

    def __init__(self, contract_id: int, due_date: date) -> None:
        self.contract_id = contract_id
        self.due_date = due_date
        super().__init__(f"contract {contract_id} already has an occurrence on {due_date.isoformat()}")


class PersistenceError(ContractflowError):
    """The store rejected a write."""

    def __init__(self, message: str, *, contract_id: int | None = None, due_date: date | None = None) -> None:
        self.contract_id = contract_id
        self.due_date = due_date
        super().__init__(message)


class AggregationInputError(ContractflowError):
    """A transaction row cannot be aggregated (bad due date or amount)."""

    def __init__(self, transaction_id: Any, reason: str) -> None:
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(f"transaction {transaction_id}: {reason}")
