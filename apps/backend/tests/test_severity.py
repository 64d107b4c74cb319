from __future__ import annotations

import pytest

from contractflow.services.severity import Severity, classify_severity


@pytest.mark.parametrize(
    "days,expected",
    [
        (0, Severity.WARNING),
        (1, Severity.WARNING),
        (7, Severity.WARNING),
        (8, Severity.DANGER),
        (30, Severity.DANGER),
        (31, Severity.CRITICAL),
        (400, Severity.CRITICAL),
    ],
)
def test_classify_severity_boundaries(days, expected):
    assert classify_severity(days) is expected
