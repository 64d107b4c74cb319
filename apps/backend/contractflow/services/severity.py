from __future__ import annotations

from enum import Enum


WARNING_MAX_DAYS = 7
DANGER_MAX_DAYS = 30


class Severity(str, Enum):
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"


def classify_severity(days_overdue: int) -> Severity:
    """Urgency tier for an overdue item: up to 7 days warning, up to 30 danger, then critical."""
    if days_overdue <= WARNING_MAX_DAYS:
        return Severity.WARNING
    if days_overdue <= DANGER_MAX_DAYS:
        return Severity.DANGER
    return Severity.CRITICAL
