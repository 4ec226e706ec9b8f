"""
Shared helpers for the group validators: status ordering, tolerance bands
and completeness bookkeeping.
"""

from __future__ import annotations

from sleep_diagnostic.models import (
    CriterionResult,
    DataCompleteness,
    SourceType,
    StatusLevel,
)


def worst_status(statuses) -> StatusLevel:
    """Most severe status in the iterable; ok when empty."""
    worst = StatusLevel.OK
    for status in statuses:
        if status.rank > worst.rank:
            worst = status
    return worst


def tolerance_status(deviation: float, ok_max: float, warning_max: float) -> StatusLevel:
    """ok within ok_max, warning within warning_max, alert beyond (all inclusive)."""
    if deviation <= ok_max:
        return StatusLevel.OK
    if deviation <= warning_max:
        return StatusLevel.WARNING
    return StatusLevel.ALERT


def count_status(count: int, required: int) -> StatusLevel:
    """At or above the requirement ok, one short warning, further short alert."""
    if required <= 0 or count >= required:
        return StatusLevel.OK
    if count == required - 1:
        return StatusLevel.WARNING
    return StatusLevel.ALERT


def unavailable(
    criterion_id: str,
    name: str,
    message: str,
    source_type: SourceType,
    expected=None,
    source_field: str | None = None,
) -> CriterionResult:
    """Criterion with no underlying data. Always a warning."""
    return CriterionResult(
        id=criterion_id,
        name=name,
        status=StatusLevel.WARNING,
        value=None,
        expected=expected,
        message=message,
        source_type=source_type,
        source_field=source_field,
        data_available=False,
    )


def completeness_from_criteria(criteria: list[CriterionResult]) -> DataCompleteness:
    pending = [c.name for c in criteria if not c.data_available]
    return DataCompleteness(
        available=len(criteria) - len(pending),
        total=len(criteria),
        pending=pending,
    )

