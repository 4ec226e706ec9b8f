"""
G4 - Environmental / emotional validator.

Table-driven survey factors plus life-change detection over free text
(survey, recent event notes and chat messages).
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from sleep_diagnostic.events import Event, events_in_window
from sleep_diagnostic.models import (
    CriterionResult,
    EnvironmentalFactor,
    EnvironmentalGroupValidation,
    GroupId,
    KeywordMatch,
    SourceType,
    StatusLevel,
)
from sleep_diagnostic.rules.age_schedules import RECENT_TEXT_WINDOW_DAYS
from sleep_diagnostic.rules.environmental_factors import (
    CHANGE_CATEGORY_NAMES,
    COSLEEPING_PATTERNS,
    ENVIRONMENTAL_FACTORS,
    POSITIVE_ANSWERS,
    detect_change_keywords,
)
from sleep_diagnostic.survey import get_field, has_value, parse_number
from sleep_diagnostic.validators.status import (
    completeness_from_criteria,
    unavailable,
    worst_status,
)


def _is_positive(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0
    if isinstance(value, str):
        # "sí, con su hermano" is a yes; "siempre" is not
        words = re.split(r"[\s,.;:!]+", value.strip().lower(), maxsplit=1)
        return words[0] in POSITIVE_ANSWERS
    return False

def _matches_cosleeping(value: Any) -> bool:
    text = ", ".join(map(str, value)) if isinstance(value, list) else str(value)
    text = text.lower()
    return any(all(word in text for word in pattern) for pattern in COSLEEPING_PATTERNS)


def evaluate_factor(factor: EnvironmentalFactor, survey: dict[str, Any]) -> CriterionResult:
    """Judge one survey factor; missing or unreadable answers are unavailable."""
    raw = get_field(survey, factor.survey_field)
    if not has_value(raw):
        return unavailable(factor.criterion_id, factor.name, f"No {factor.name.lower()} data",
                           SourceType.SURVEY, expected=factor.expected,
                           source_field=factor.survey_field)

    if factor.kind in ("max", "range"):
        number = parse_number(raw)
        if number is None:
            return unavailable(factor.criterion_id, factor.name,
                               f"Unreadable {factor.name.lower()} value: {raw!r}",
                               SourceType.SURVEY, expected=factor.expected,
                               source_field=factor.survey_field)
        if factor.kind == "max":
            failed = number > factor.maximum
        else:
            failed = not (factor.minimum <= number <= factor.maximum)
        value = f"{number:g} {factor.unit}".strip()
        message = (
            f"{factor.name} {value} outside the recommended {factor.expected}"
            if failed else f"{factor.name} within the recommended range"
        )
    elif factor.kind == "affirmative":
        failed = _is_positive(raw)
        value = "Yes" if failed else "No"
        message = f"{factor.description} reported" if failed else f"No {factor.name.lower()} reported"
    else:
        failed = _matches_cosleeping(raw)
        value = str(raw)
        message = (
            "Co-sleeping detected; share safe-sleep guidance" if failed
            else "Sleeps in their own space"
        )

    return CriterionResult(
        id=factor.criterion_id,
        name=factor.name,
        status=factor.failure_status if failed else StatusLevel.OK,
        value=value,
        expected=factor.expected,
        message=message,
        source_type=SourceType.SURVEY,
        source_field=factor.survey_field,
        data_available=True,
    )


def _recent_changes(texts: list[str], matches: list[KeywordMatch]) -> CriterionResult:
    name = "Recent major changes"
    if not texts:
        return unavailable("g4_recent_changes", name, "No free text to scan for recent changes",
                           SourceType.CALCULATED, expected="Monitor changes")
    if not matches:
        return CriterionResult(
            id="g4_recent_changes", name=name, status=StatusLevel.OK,
            value="No changes detected", expected="Monitor changes",
            message="No recent major changes detected",
            source_type=SourceType.CALCULATED, data_available=True,
        )

    categories = list(dict.fromkeys(m.category for m in matches))
    return CriterionResult(
        id="g4_recent_changes",
        name=name,
        status=StatusLevel.ALERT,
        value=", ".join(m.keyword for m in matches),
        expected="Monitor changes",
        message="Changes detected: " + ", ".join(CHANGE_CATEGORY_NAMES.get(c, c) for c in categories),
        source_type=SourceType.CALCULATED,
        source_field="recentChanges",
        data_available=True,
    )


def collect_free_text(
    survey: dict[str, Any],
    events: list[Event],
    chat_messages: list[str],
    reference_time: datetime,
) -> list[str]:
    """Survey recentChanges, notes from the last 14 days of events, and chat messages."""
    texts = []
    survey_text = get_field(survey, "recentChanges")
    if isinstance(survey_text, str) and survey_text.strip():
        texts.append(survey_text)
    for event in events_in_window(events, reference_time, RECENT_TEXT_WINDOW_DAYS):
        if event.notes and event.notes.strip():
            texts.append(event.notes)
    texts.extend(m for m in chat_messages if isinstance(m, str) and m.strip())
    return texts


def validate_environmental(
    survey: dict[str, Any],
    events: list[Event],
    chat_messages: list[str],
    reference_time: datetime,
) -> EnvironmentalGroupValidation:
    """Evaluate the survey factors and scan recent free text for life changes."""
    factors = {factor.id: evaluate_factor(factor, survey) for factor in ENVIRONMENTAL_FACTORS}

    texts = collect_free_text(survey, events, chat_messages, reference_time)
    matches = detect_change_keywords(texts)
    factors["recentChanges"] = _recent_changes(texts, matches)

    criteria = list(factors.values())
    status = worst_status(c.status for c in criteria)

    alerts = sum(1 for c in criteria if c.status == StatusLevel.ALERT)
    warnings = sum(1 for c in criteria if c.status == StatusLevel.WARNING)
    if not alerts and not warnings:
        summary = "Environment suitable for sleep."
    else:
        parts = []
        if alerts:
            parts.append(f"{alerts} factor(s) with alerts")
        if warnings:
            parts.append(f"{warnings} factor(s) with warnings")
        if matches:
            parts.append(f"{len(matches)} recent change keyword(s) detected")
        summary = ". ".join(parts) + "."

    return EnvironmentalGroupValidation(
        group_id=GroupId.G4,
        group_name="Environment",
        status=status,
        criteria=criteria,
        data_completeness=completeness_from_criteria(criteria),
        summary=summary,
        detected_keywords=list(dict.fromkeys(m.keyword for m in matches)),
        keyword_matches=matches,
        factors=factors,
    )
