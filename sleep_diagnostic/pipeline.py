"""
Diagnostic aggregator.

Ties together all layers for one child:
1. Parse events and flatten the survey
2. Classify today's feeding notes (only when not precomputed)
3. Run the four group validators (G1 schedule, G2 medical, G3 nutrition,
   G4 environment)
4. Roll up the overall status and flatten failing criteria into alerts

Validators are pure and independent, so they can run on a small thread
pool; the result is identical either way. Evaluation never raises for a
well-shaped input: missing data shows up as unavailable criteria.
"""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from sleep_diagnostic.events import feeding_note_text, feedings_on_day, parse_events
from sleep_diagnostic.food_classifier.classifier import FoodClassifier, unclassified
from sleep_diagnostic.models import (
    Alert,
    BatchSummary,
    DiagnosticGroups,
    DiagnosticResult,
    GroupValidation,
    NutritionClassification,
    StatusLevel,
    ValidationInput,
)
from sleep_diagnostic.survey import flatten_survey_data
from sleep_diagnostic.validators.environmental import validate_environmental
from sleep_diagnostic.validators.medical import validate_medical
from sleep_diagnostic.validators.nutrition import validate_nutrition
from sleep_diagnostic.validators.schedule import validate_schedule
from sleep_diagnostic.validators.status import worst_status

logger = logging.getLogger(__name__)

GROUP_ORDER = ("G1", "G2", "G3", "G4")

MISSING_SURVEY = "Child intake survey"
MISSING_EVENTS = "Logged events (last 7 days)"
MISSING_PLAN = "Active sleep plan"


def _classify_feedings(events, reference_time: datetime, classifier: FoodClassifier | None) -> list[NutritionClassification]:
    """Classify today's feeding notes. Classifier failures degrade to unclassified."""
    if classifier is None:
        return []
    notes = [feeding_note_text(e) for e in feedings_on_day(events, reference_time.date())]
    notes = [n for n in notes if n]
    if not notes:
        return []
    try:
        return classifier.classify_batch(notes)
    except Exception as e:
        logger.warning(f"Food classification batch failed, continuing unclassified: {e}")
        return [unclassified(n) for n in notes]


def _collect_alerts(groups: list[GroupValidation], timestamp: datetime) -> list[Alert]:
    """Every non-ok criterion as an alert: severity first, then group, then criterion order."""
    ranked = []
    for group_index, group in enumerate(groups):
        for criterion_index, criterion in enumerate(group.criteria):
            if criterion.status == StatusLevel.OK:
                continue
            alert = Alert(
                id=f"{group.group_id.value}-{criterion.id}",
                group_id=group.group_id,
                criterion_id=criterion.id,
                message=criterion.message,
                severity=criterion.status,
                source_type=criterion.source_type,
                source_field=criterion.source_field,
                source_id=criterion.source_id,
                timestamp=timestamp,
            )
            ranked.append((-criterion.status.rank, group_index, criterion_index, alert))
    ranked.sort(key=lambda item: item[:3])
    return [item[3] for item in ranked]


def _data_level(has_survey: bool, has_events: bool, has_plan: bool) -> tuple[str, list[str]]:
    missing = []
    if not has_survey:
        missing.append(MISSING_SURVEY)
    if not has_events:
        missing.append(MISSING_EVENTS)
    if not has_plan:
        missing.append(MISSING_PLAN)

    if not has_survey and not has_events and not has_plan:
        return "none", missing
    if has_plan:
        return "full", missing
    if has_events:
        return "survey_events", missing
    return "survey_only", missing


def evaluate(
    data: ValidationInput,
    classifier: FoodClassifier | None = None,
    parallel: bool = False,
) -> DiagnosticResult:
    """
    Produce the full four-group diagnostic for one child.

    Args:
        data: Materialized survey, events, plan and chat for the child
        classifier: Used for today's feeding notes unless classifications are precomputed
        parallel: Run the four validators on a thread pool

    Returns:
        DiagnosticResult with groups, prioritized alerts and overall status
    """
    reference_time = data.reference_time or datetime.now()
    reference_time = reference_time.replace(tzinfo=None)

    events = parse_events(data.events)
    survey = flatten_survey_data(data.survey_data)
    plan = data.plan or None

    if data.nutrition_classifications is not None:
        classifications = list(data.nutrition_classifications)
    else:
        classifications = _classify_feedings(events, reference_time, classifier)

    tasks = {
        "G1": lambda: validate_schedule(events, plan, data.child_age_months, survey, reference_time),
        "G2": lambda: validate_medical(survey, events, reference_time),
        "G3": lambda: validate_nutrition(events, data.child_age_months, survey, classifications, reference_time),
        "G4": lambda: validate_environmental(survey, events, data.chat_messages, reference_time),
    }

    if parallel:
        with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
            futures = {key: pool.submit(task) for key, task in tasks.items()}
            results = {key: future.result() for key, future in futures.items()}
    else:
        results = {key: task() for key, task in tasks.items()}

    groups = DiagnosticGroups(**results)
    group_list = groups.as_list()
    overall = worst_status(g.status for g in group_list)
    alerts = _collect_alerts(group_list, reference_time)
    data_level, missing_sources = _data_level(bool(survey), bool(events), plan is not None)

    logger.info(
        f"Diagnostic for {data.child_id}: {overall.value}, "
        f"{len(alerts)} alert(s), data level {data_level}"
    )

    return DiagnosticResult(
        child_id=data.child_id,
        child_name=data.child_name,
        child_age_months=data.child_age_months,
        plan_id=data.plan_id,
        plan_version=data.plan_version,
        evaluated_at=reference_time,
        groups=groups,
        alerts=alerts,
        overall_status=overall,
        data_level=data_level,
        missing_data_sources=missing_sources,
    )


def summarize_batch(results: list[DiagnosticResult]) -> BatchSummary:
    """Aggregate statistics across many children."""
    status_counts = Counter(r.overall_status.value for r in results)
    group_counts: Counter = Counter()
    criterion_counts: Counter = Counter()
    total_alerts = 0
    total_warnings = 0

    for result in results:
        for alert in result.alerts:
            if alert.severity == StatusLevel.ALERT:
                total_alerts += 1
                group_counts[alert.group_id.value] += 1
            else:
                total_warnings += 1
            criterion_counts[alert.criterion_id] += 1

    return BatchSummary(
        total_children=len(results),
        status_distribution={s.value: status_counts.get(s.value, 0) for s in StatusLevel},
        total_alerts=total_alerts,
        total_warnings=total_warnings,
        alerts_by_group={g: group_counts.get(g, 0) for g in GROUP_ORDER},
        most_common_failing_criteria=[
            {"criterion_id": criterion_id, "count": count}
            for criterion_id, count in criterion_counts.most_common(5)
        ],
    )
