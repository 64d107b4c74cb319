"""
Services package

Recurring expansion, materialization, aggregation and projection services.
"""

from .aggregation_service import aggregate, empty_summary
from .generation_service import GenerationReport, RecurringGenerationService
from .materialization_service import MaterializationResult, TransactionMaterializer
from .occurrence_service import compute_occurrences, preview_occurrences, recurring_totals, validate_rule
from .projection_service import PendingBalance, ProjectionCalculator
from .severity import Severity, classify_severity

__all__ = [
    "aggregate",
    "empty_summary",
    "GenerationReport",
    "RecurringGenerationService",
    "MaterializationResult",
    "TransactionMaterializer",
    "compute_occurrences",
    "preview_occurrences",
    "recurring_totals",
    "validate_rule",
    "PendingBalance",
    "ProjectionCalculator",
    "Severity",
    "classify_severity",
]
