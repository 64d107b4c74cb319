"""
Utils package
"""

from .dates import add_months, days_between, local_today, now_local_naive

__all__ = [
    "add_months",
    "days_between",
    "local_today",
    "now_local_naive",
]
