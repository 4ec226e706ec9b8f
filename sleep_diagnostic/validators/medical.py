"""
G2 - Medical indicator validator.

Each condition's catalog is scored independently: an indicator counts as
available when its survey answer (or, for event-derived indicators, any event)
exists, and as detected when that answer is affirmative or the event predicate
fires. A single detected indicator is enough to alert; a condition where less
than half the catalog could be checked is a warning.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sleep_diagnostic.events import Event, events_in_window
from sleep_diagnostic.models import (
    CriterionResult,
    DataCompleteness,
    GroupId,
    MedicalCondition,
    MedicalGroupValidation,
    MedicalIndicator,
    MedicalIndicatorConfig,
    SourceType,
    StatusLevel,
)
from sleep_diagnostic.rules.age_schedules import STATS_WINDOW_DAYS
from sleep_diagnostic.rules.medical_indicators import CONDITION_NAMES, indicators_for_condition
from sleep_diagnostic.survey import get_field, has_value, is_affirmative, is_explicit_no
from sleep_diagnostic.validators.status import worst_status

logger = logging.getLogger(__name__)

ALERT_THRESHOLD = 1


def _evaluate_indicator(
    config: MedicalIndicatorConfig,
    survey: dict[str, Any],
    events: list[Event],
) -> MedicalIndicator:
    available = False
    detected = False

    if config.survey_field:
        value = get_field(survey, config.survey_field)
        if has_value(value):
            available = True
            detected = is_affirmative(value)

    if config.event_check is not None and events:
        available = True
        detected = detected or bool(config.event_check(events))

    return MedicalIndicator(
        id=config.id,
        name=config.name,
        description=config.description,
        condition=config.condition,
        survey_field=config.survey_field,
        event_derived=config.event_check is not None,
        available=available,
        detected=detected,
    )

def _reflux_ruled_out(survey: dict[str, Any]) -> bool:
    """Parent explicitly answered no to reflux/colic and gave no positive detail."""
    if not is_explicit_no(get_field(survey, "reflujoColicos")):
        return False
    details = get_field(survey, "reflujoDetails")
    if isinstance(details, dict):
        return not any(v is True for v in details.values())
    return True

def condition_status(detected: int, available: int, catalog_size: int) -> StatusLevel:
    pending = catalog_size - available
    if detected >= ALERT_THRESHOLD:
        return StatusLevel.ALERT
    if pending > 0 and available < catalog_size / 2:
        return StatusLevel.WARNING
    return StatusLevel.OK


def _criterion(condition: MedicalCondition, indicators: list[MedicalIndicator],
               status: StatusLevel, ruled_out: bool) -> CriterionResult:
    detected = [i for i in indicators if i.detected]
    pending = sum(1 for i in indicators if not i.available)
    available = len(indicators) - pending

    if ruled_out:
        message = "Reflux/colic explicitly ruled out in the survey"
    elif detected:
        message = f"{len(detected)} indicator(s) detected: " + ", ".join(i.name for i in detected)
    else:
        message = "No indicators detected"
        if pending:
            message += f" ({pending} pending)"

    return CriterionResult(
        id=f"g2_{condition.value}",
        name=f"{CONDITION_NAMES[condition]} indicators",
        status=status,
        value=len(detected),
        expected=0,
        message=message,
        source_type=SourceType.SURVEY,
        source_field="reflujoColicos" if ruled_out else None,
        data_available=ruled_out or available > 0,
    )


def validate_medical(
    survey: dict[str, Any],
    events: list[Event],
    reference_time: datetime,
) -> MedicalGroupValidation:
    """Score the reflux, apnea and restless-leg catalogs."""
    window = events_in_window(events, reference_time, STATS_WINDOW_DAYS)

    criteria = []
    indicators: dict[MedicalCondition, list[MedicalIndicator]] = {}
    detected_count: dict[MedicalCondition, int] = {}
    pending_count: dict[MedicalCondition, int] = {}
    available_total = 0
    pending_names: list[str] = []

    for condition in MedicalCondition:
        ruled_out = condition == MedicalCondition.REFLUX and _reflux_ruled_out(survey)
        if ruled_out:
            evaluated = []
            status = StatusLevel.OK
        else:
            catalog = indicators_for_condition(condition)
            evaluated = [_evaluate_indicator(config, survey, window) for config in catalog]
            available = sum(1 for i in evaluated if i.available)
            detected = sum(1 for i in evaluated if i.detected)
            status = condition_status(detected, available, len(catalog))

        indicators[condition] = evaluated
        detected_count[condition] = sum(1 for i in evaluated if i.detected)
        pending_count[condition] = sum(1 for i in evaluated if not i.available)
        available_total += sum(1 for i in evaluated if i.available)
        label = CONDITION_NAMES[condition]
        pending_names.extend(f"{label}: {i.name}" for i in evaluated if not i.available)

        criteria.append(_criterion(condition, evaluated, status, ruled_out))

    status = worst_status(c.status for c in criteria)
    completeness = DataCompleteness(
        available=available_total,
        total=available_total + len(pending_names),
        pending=pending_names,
    )

    total_detected = sum(detected_count.values())
    if total_detected:
        flagged = [CONDITION_NAMES[c].lower() for c, n in detected_count.items() if n]
        summary = f"{total_detected} indicator(s) detected for: {', '.join(flagged)}."
    elif pending_names:
        summary = f"No indicators detected. {len(pending_names)} data point(s) still pending."
    else:
        summary = "No medical indicators detected."

    if total_detected:
        logger.debug(f"Medical indicators detected: {detected_count}")

    return MedicalGroupValidation(
        group_id=GroupId.G2,
        group_name="Medical",
        status=status,
        criteria=criteria,
        data_completeness=completeness,
        summary=summary,
        indicators=indicators,
        detected_count=detected_count,
        pending_count=pending_count,
    )
