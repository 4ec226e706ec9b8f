"""Tests for the diagnostic aggregator: end-to-end cases, alert ordering, batch summary."""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

from sleep_diagnostic.events import parse_events
from sleep_diagnostic.food_classifier.classifier import FoodClassifier
from sleep_diagnostic.meta_eval.scenarios import BENIGN_SURVEY
from sleep_diagnostic.models import (
    GroupId,
    NutritionClassification,
    NutritionGroup,
    StatusLevel,
    ValidationInput,
)
from sleep_diagnostic.pipeline import (
    MISSING_EVENTS,
    MISSING_PLAN,
    MISSING_SURVEY,
    evaluate,
    summarize_batch,
)

REFERENCE = datetime(2025, 1, 15, 20, 0)
GROUP_INDEX = {g: i for i, g in enumerate(GroupId)}


def _ev(kind, clock, days_ago=0, **fields):
    hours, minutes = map(int, clock.split(":"))
    start = (REFERENCE - timedelta(days=days_ago)).replace(hour=hours, minute=minutes)
    return {"eventType": kind, "startTime": start.isoformat(), **fields}


def _make_input(age=7, survey=None, events=None, plan=None, chat=None, **extra):
    return ValidationInput(
        child_id="child-1",
        child_name="Test",
        child_age_months=age,
        survey_data=survey or {},
        events=events or [],
        plan=plan,
        chat_messages=chat or [],
        reference_time=REFERENCE,
        **extra,
    )


def _seven_month_reflux_input(**extra):
    return _make_input(
        age=7,
        survey={"desarrolloSalud": {"reflujoColicos": "sí"}},
        events=[
            _ev("feeding", "07:00", feedingType="bottle", feedingAmount=6),
            _ev("feeding", "11:00", feedingType="breast"),
            _ev("feeding", "15:00", feedingType="bottle", feedingAmount=6),
        ],
        **extra,
    )


def _criterion(result, group_id, criterion_id):
    group = getattr(result.groups, group_id)
    return next(c for c in group.criteria if c.id == criterion_id)


# ── End-to-end cases ──

def test_seven_month_old_low_milk_no_solids_reflux():
    """Milk warning, solids alert, reflux alert and an overall alert."""
    result = evaluate(_seven_month_reflux_input())
    assert _criterion(result, "G3", "g3_milk_count").status == StatusLevel.WARNING
    assert _criterion(result, "G3", "g3_solid_count").status == StatusLevel.ALERT
    assert _criterion(result, "G2", "g2_reflux").status == StatusLevel.ALERT
    assert result.overall_status == StatusLevel.ALERT

    alert_ids = [a.id for a in result.alerts]
    assert "G3-g3_solid_count" in alert_ids
    assert "G2-g2_reflux" in alert_ids
    assert "G3-g3_milk_count" in alert_ids


def test_benign_survey_only_ten_month_old():
    """Event-sourced criteria are unavailable warnings; nothing alerts."""
    result = evaluate(_make_input(age=10, survey=BENIGN_SURVEY))
    assert result.overall_status == StatusLevel.WARNING
    assert all(a.severity == StatusLevel.WARNING for a in result.alerts)

    wake = _criterion(result, "G1", "g1_wake_minimum")
    assert wake.status == StatusLevel.WARNING
    assert wake.data_available is False
    assert _criterion(result, "G1", "g1_night_duration").status == StatusLevel.OK
    assert _criterion(result, "G3", "g3_milk_count").data_available is False
    assert result.groups.G2.status == StatusLevel.OK
    assert result.groups.G4.status == StatusLevel.OK
    assert result.data_level == "survey_only"


def test_overall_is_worst_group():
    """Overall status equals the most severe group status."""
    result = evaluate(_seven_month_reflux_input())
    ranks = [g.status.rank for g in result.groups.as_list()]
    assert result.overall_status.rank == max(ranks)
    for group in result.groups.as_list():
        assert group.status.rank == max([c.status.rank for c in group.criteria] or [0])


# ── Alerts ──

def test_alerts_sorted_severity_then_group_then_criterion():
    """Alerts before warnings; ties keep group and criterion order."""
    result = evaluate(_seven_month_reflux_input())
    positions = {}
    for group in result.groups.as_list():
        for i, criterion in enumerate(group.criteria):
            positions[(group.group_id, criterion.id)] = i

    keys = [
        (-a.severity.rank, GROUP_INDEX[a.group_id], positions[(a.group_id, a.criterion_id)])
        for a in result.alerts
    ]
    assert keys == sorted(keys)
    assert result.alerts[0].severity == StatusLevel.ALERT


def test_every_non_ok_criterion_becomes_an_alert():
    """Alert count equals the number of warning/alert criteria."""
    result = evaluate(_seven_month_reflux_input())
    non_ok = sum(
        1 for g in result.groups.as_list() for c in g.criteria if c.status != StatusLevel.OK
    )
    assert len(result.alerts) == non_ok
    assert all(a.timestamp == REFERENCE for a in result.alerts)


def test_feeding_gap_alert_carries_event_id():
    """The feeding-gap alert deep-links to the feeding that closed the gap."""
    data = _make_input(age=7, events=[
        _ev("feeding", "07:00", _id="f1", feedingType="bottle", feedingAmount=6),
        _ev("feeding", "14:00", _id="f2", feedingType="bottle", feedingAmount=6),
    ])
    result = evaluate(data)
    gap_alert = next(a for a in result.alerts if a.criterion_id == "g3_feeding_gap")
    assert gap_alert.source_id == "f2"


# ── Execution modes ──

def test_parallel_matches_sequential():
    """Running the validators on a thread pool gives the same result."""
    data = _seven_month_reflux_input()
    sequential = evaluate(data)
    parallel = evaluate(data, parallel=True)
    assert sequential.model_dump() == parallel.model_dump()


def test_precomputed_classifications_skip_classifier():
    """Classifications on the input are used as-is."""
    classifier = MagicMock(spec=FoodClassifier)
    precomputed = [NutritionClassification(groups=list(NutritionGroup), ai_classified=True)]
    result = evaluate(_make_input(age=10, nutrition_classifications=precomputed), classifier=classifier)
    classifier.classify_batch.assert_not_called()
    assert _criterion(result, "G3", "g3_nutrition_groups").status == StatusLevel.OK


def test_classifier_gets_todays_feeding_notes():
    """Only today's non-empty feeding notes are sent for classification."""
    classifier = MagicMock(spec=FoodClassifier)
    classifier.classify_batch.return_value = [
        NutritionClassification(groups=[NutritionGroup.PROTEIN], ai_classified=True),
        NutritionClassification(groups=[NutritionGroup.FIBER], ai_classified=True),
    ]
    data = _make_input(age=8, events=[
        _ev("feeding", "08:00", feedingType="solids", feedingNotes="pollo desmenuzado"),
        _ev("feeding", "10:00", feedingType="bottle", feedingAmount=6),
        _ev("feeding", "13:00", feedingType="solids", feedingNotes="puré de pera"),
        _ev("feeding", "13:00", days_ago=1, feedingType="solids", feedingNotes="ayer: arroz"),
    ])
    result = evaluate(data, classifier=classifier)

    classifier.classify_batch.assert_called_once_with(["pollo desmenuzado", "puré de pera"])
    groups = _criterion(result, "G3", "g3_nutrition_groups")
    assert groups.status == StatusLevel.WARNING
    assert result.groups.G3.nutrition_groups_covered == [NutritionGroup.PROTEIN, NutritionGroup.FIBER]


def test_classifier_failure_does_not_break_evaluation():
    """A batch-level failure leaves the notes unclassified."""
    classifier = MagicMock(spec=FoodClassifier)
    classifier.classify_batch.side_effect = RuntimeError("pool died")
    data = _make_input(age=8, events=[
        _ev("feeding", "08:00", feedingType="solids", feedingNotes="pollo"),
    ])
    result = evaluate(data, classifier=classifier)
    assert len(result.groups.G3.ai_classifications) == 1
    assert not result.groups.G3.ai_classifications[0].ai_classified
    assert _criterion(result, "G3", "g3_nutrition_groups").data_available is False


def test_malformed_events_are_skipped():
    """Records without a type or start time do not stop the evaluation."""
    data = _make_input(age=10, events=[
        {"eventType": "wake"},
        {"startTime": "2025-01-15T07:00:00"},
        _ev("wake", "07:00", days_ago=1),
    ])
    result = evaluate(data)
    assert _criterion(result, "G1", "g1_wake_minimum").value == "07:00"


def test_timezone_offsets_read_as_wall_clock():
    """A 07:00-05:00 timestamp is a 07:00 wake."""
    data = _make_input(age=10, events=[
        {"eventType": "wake", "startTime": "2025-01-14T07:00:00-05:00"},
    ])
    result = evaluate(data)
    assert _criterion(result, "G1", "g1_wake_minimum").value == "07:00"


# ── Data level ──

def test_data_level_none():
    """No survey, no events and no plan."""
    result = evaluate(_make_input(age=10))
    assert result.data_level == "none"
    assert result.missing_data_sources == [MISSING_SURVEY, MISSING_EVENTS, MISSING_PLAN]


def test_data_level_progression():
    """Survey only, then survey plus events, then full with a plan."""
    survey_only = evaluate(_make_input(age=10, survey={"screenTime": 0}))
    with_events = evaluate(_make_input(age=10, survey={"screenTime": 0}, events=[_ev("wake", "07:00")]))
    full = evaluate(_make_input(
        age=10, survey={"screenTime": 0}, events=[_ev("wake", "07:00")],
        plan={"schedule": {"wakeTime": "07:00", "bedtime": "19:30"}},
    ))
    assert survey_only.data_level == "survey_only"
    assert survey_only.missing_data_sources == [MISSING_EVENTS, MISSING_PLAN]
    assert with_events.data_level == "survey_events"
    assert full.data_level == "full"
    assert full.missing_data_sources == []


def test_result_carries_child_metadata():
    """Identity and plan metadata pass through untouched."""
    result = evaluate(_seven_month_reflux_input(plan_id="p-9", plan_version="3"))
    assert result.child_id == "child-1"
    assert result.child_age_months == 7
    assert result.plan_id == "p-9"
    assert result.plan_version == "3"
    assert result.evaluated_at == REFERENCE


# ── Batch summary ──

def test_summarize_batch():
    """Counts statuses, alert severities and the most frequent failing criteria."""
    results = [
        evaluate(_seven_month_reflux_input()),
        evaluate(_make_input(age=10, survey=BENIGN_SURVEY)),
    ]
    summary = summarize_batch(results)

    assert summary.total_children == 2
    assert summary.status_distribution == {"ok": 0, "warning": 1, "alert": 1}
    assert set(summary.alerts_by_group) == {"G1", "G2", "G3", "G4"}
    assert summary.alerts_by_group["G2"] == 1
    assert summary.total_alerts + summary.total_warnings == sum(len(r.alerts) for r in results)
    assert len(summary.most_common_failing_criteria) <= 5
    assert set(summary.most_common_failing_criteria[0]) == {"criterion_id", "count"}


def test_summarize_empty_batch():
    """An empty batch is all zeros."""
    summary = summarize_batch([])
    assert summary.total_children == 0
    assert summary.total_alerts == 0
    assert summary.most_common_failing_criteria == []


# ── Unreadable values ──

def test_non_finite_survey_nap_count_is_missing():
    """'nan' naps in the survey is no data, not a crash."""
    result = evaluate(_make_input(age=10, survey={"numeroSiestas": "nan"}))
    criterion = _criterion(result, "G1", "g1_nap_count")
    assert criterion.status == StatusLevel.WARNING
    assert criterion.data_available is False


def test_infinite_survey_nap_duration_is_missing():
    """'inf' minutes of naps is treated as unanswered."""
    result = evaluate(_make_input(age=10, survey={"duracionTotalSiestas": "inf"}))
    criterion = _criterion(result, "G1", "g1_nap_duration")
    assert criterion.status == StatusLevel.WARNING
    assert criterion.data_available is False


def test_nan_sleep_delay_ignored():
    """A NaN sleep delay counts as no delay; the night is still measured."""
    result = evaluate(_make_input(age=10, events=[
        _ev("bedtime", "20:00", days_ago=1, sleepDelay=float("nan")),
        _ev("wake", "07:00"),
    ]))
    night = _criterion(result, "G1", "g1_night_duration")
    assert night.data_available is True
    assert night.value == "11.0 hrs"
    assert night.status == StatusLevel.OK


def test_unreadable_feeding_amount_keeps_the_feeding():
    """'6 oz' as an amount drops the amount, not the feeding itself."""
    events = [
        _ev("feeding", "07:00", feedingType="bottle", feedingAmount=6),
        _ev("feeding", "10:00", feedingType="breast"),
        _ev("feeding", "13:00", feedingType="bottle", feedingAmount="6 oz"),
        _ev("feeding", "16:00", feedingType="bottle", feedingAmount=5),
    ]
    parsed = parse_events(events)
    assert len(parsed) == 4
    assert parsed[2].feeding_type == "bottle"
    assert parsed[2].feeding_amount is None

    milk = _criterion(evaluate(_make_input(age=7, events=events)), "G3", "g3_milk_count")
    assert milk.value == 4
    assert milk.status == StatusLevel.OK


def test_bad_start_time_still_skips_the_record():
    """Without a readable start time the record cannot be placed and is dropped."""
    parsed = parse_events([
        {"eventType": "feeding", "startTime": "yesterday-ish"},
        _ev("feeding", "07:00", feedingType="breast", endTime="not a time"),
    ])
    assert len(parsed) == 1
    assert parsed[0].end_time is None
