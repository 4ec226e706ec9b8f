"""
G1 - Schedule validator.

Compares the last seven days of sleep events against the active plan's wake
and bed times and the age-banded schedule rules. When the event log has
nothing for a criterion, answers from the intake survey are used instead
(and the criterion is marked as survey-sourced).

Criteria, in order:
    g1_wake_minimum    average morning wake not before 06:00
    g1_wake_deviation  wake time vs plan (+-15 min ok, +-30 warning)
    g1_night_duration  average night length vs age expectation
    g1_nap_count       naps per day vs age band
    g1_nap_duration    average nap length vs age maximum (warning only)
    g1_bedtime         bedtime vs plan, same tolerance as wake time
    g1_sleep_windows   awake windows vs the age band's windows
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sleep_diagnostic.events import (
    Event,
    averaged_windows,
    average_bedtime_minutes,
    clock_deviation_minutes,
    count_naps,
    days_with_sleep_data,
    events_in_window,
    format_clock,
    morning_wake_minutes,
    nap_durations_minutes,
    night_durations_minutes,
    parse_clock,
)
from sleep_diagnostic.models import (
    AgeScheduleRule,
    CriterionResult,
    GroupId,
    NapCountDetail,
    NightDurationDetail,
    ScheduleGroupValidation,
    SleepWindowsDetail,
    SourceType,
    StatusLevel,
    WakeTimeDetail,
)
from sleep_diagnostic.rules.age_schedules import (
    MIN_WAKE_TIME,
    NIGHT_WAKING_CUTOFF,
    STATS_WINDOW_DAYS,
    VARIABLE,
    WAKE_TOLERANCE_MINUTES,
    is_variable_schedule,
    night_duration_for_age,
    schedule_rule_for_age,
)
from sleep_diagnostic.survey import get_field, is_explicit_no, parse_number
from sleep_diagnostic.validators.status import (
    completeness_from_criteria,
    tolerance_status,
    unavailable,
    worst_status,
)

PLAN_WAKE_KEYS = ("schedule.wakeTime", "wakeTime", "morningWake", "despierta")
PLAN_BEDTIME_KEYS = ("schedule.bedtime", "bedtime", "acostarse")

NO_CLOCK = "--:--"


def _first_clock(source: dict[str, Any] | None, keys) -> str | None:
    for key in keys:
        value = get_field(source or {}, key)
        if parse_clock(value) is not None:
            return value.strip()
    return None

def _reference_clock(plan, survey, plan_keys, survey_key) -> tuple[str | None, str]:
    """Target clock time from the plan, else from the survey. Returns (time, label)."""
    planned = _first_clock(plan, plan_keys)
    if planned:
        return planned, "plan"
    surveyed = _first_clock(survey, (survey_key,))
    if surveyed:
        return surveyed, "survey"
    return None, "plan"

def _round_half_up(value: float) -> int:
    return int(value + 0.5)


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------

def _wake_minimum(actual_wake: int | None) -> CriterionResult:
    name = "Minimum wake time"
    if actual_wake is None:
        return unavailable("g1_wake_minimum", name, "No morning wake events recorded",
                           SourceType.CALCULATED, expected=MIN_WAKE_TIME)

    minimum = parse_clock(MIN_WAKE_TIME)
    too_early = parse_clock(NIGHT_WAKING_CUTOFF) <= actual_wake < minimum
    wake = format_clock(actual_wake)
    return CriterionResult(
        id="g1_wake_minimum",
        name=name,
        status=StatusLevel.ALERT if too_early else StatusLevel.OK,
        value=wake,
        expected=MIN_WAKE_TIME,
        message=(
            f"Average wake at {wake} is earlier than {MIN_WAKE_TIME}"
            if too_early else f"Average wake at {wake} meets the minimum"
        ),
        source_type=SourceType.CALCULATED,
        data_available=True,
    )

def _clock_deviation(criterion_id, name, what, actual, expected, label) -> tuple[CriterionResult, int]:
    """Shared wake/bedtime check against a reference clock time."""
    if expected is None:
        result = unavailable(criterion_id, name, f"No {what} defined in the plan or survey",
                             SourceType.PLAN)
        result.value = format_clock(actual) if actual is not None else None
        return result, 0
    if actual is None:
        return unavailable(criterion_id, name, f"No {what} events recorded",
                           SourceType.CALCULATED, expected=expected), 0

    deviation = clock_deviation_minutes(int(round(actual)), parse_clock(expected))
    status = tolerance_status(deviation, WAKE_TOLERANCE_MINUTES, WAKE_TOLERANCE_MINUTES * 2)
    if status == StatusLevel.OK:
        message = f"{what.capitalize()} within +-{WAKE_TOLERANCE_MINUTES} min of the {label}"
    else:
        message = f"{what.capitalize()} deviates {deviation} min from the {label} ({expected})"
    return CriterionResult(
        id=criterion_id,
        name=name,
        status=status,
        value=format_clock(actual),
        expected=expected,
        message=message,
        source_type=SourceType.CALCULATED,
        data_available=True,
    ), deviation

def _night_duration(events: list[Event], age_months: int, survey) -> tuple[CriterionResult, float]:
    name = "Night duration"
    expected = night_duration_for_age(age_months)
    expected_label = f"{expected:g} hrs"

    durations = night_durations_minutes(events)
    source_type = SourceType.CALCULATED
    if durations:
        actual = sum(durations) / len(durations) / 60
    else:
        bed = parse_clock(get_field(survey, "horaDormir"))
        wake = parse_clock(get_field(survey, "horaDespertar"))
        if bed is None or wake is None or bed == wake:
            return unavailable("g1_night_duration", name,
                               "Not enough data to compute night duration",
                               SourceType.CALCULATED, expected=expected_label), 0.0
        actual = ((wake - bed) % (24 * 60)) / 60
        source_type = SourceType.SURVEY

    deviation = abs(actual - expected)
    status = tolerance_status(deviation, 1, 2)
    message = (
        f"Night duration adequate ({actual:.1f} hrs)" if status == StatusLevel.OK
        else f"Night duration {actual:.1f} hrs vs {expected:g} hrs expected"
    )
    if source_type == SourceType.SURVEY:
        message += " (from the intake survey)"
    return CriterionResult(
        id="g1_night_duration",
        name=name,
        status=status,
        value=f"{actual:.1f} hrs",
        expected=expected_label,
        message=message,
        source_type=source_type,
        source_field="horaDormir" if source_type == SourceType.SURVEY else None,
        data_available=True,
    ), actual

def _survey_nap_count(survey) -> int | None:
    takes_naps = get_field(survey, "tomaSiestas")
    if is_explicit_no(takes_naps):
        return 0
    count = parse_number(get_field(survey, "numeroSiestas"))
    if count is None:
        return None
    return _round_half_up(count)

def _nap_count(events: list[Event], rule: AgeScheduleRule | None, survey) -> tuple[CriterionResult, int]:
    name = "Nap count"
    if is_variable_schedule(rule):
        return CriterionResult(
            id="g1_nap_count", name=name, status=StatusLevel.OK,
            value="Variable", expected="Variable",
            message=(
                "No schedule rules for this age" if rule is None
                else "Variable nap pattern is normal at this age"
            ),
            source_type=SourceType.CALCULATED, data_available=True,
        ), 0

    days = days_with_sleep_data(events)
    if days > 0:
        actual = _round_half_up(count_naps(events) / days)
        deviation = abs(actual - rule.nap_count)
        status = tolerance_status(deviation, 0, 1)
        if deviation == 0:
            message = f"{actual} naps per day on average (expected {rule.nap_count})"
        else:
            message = f"{actual} naps per day vs {rule.nap_count} expected for {rule.age_range}"
        return CriterionResult(
            id="g1_nap_count", name=name, status=status,
            value=actual, expected=rule.nap_count, message=message,
            source_type=SourceType.CALCULATED, data_available=True,
        ), actual

    reported = _survey_nap_count(survey)
    if reported is None:
        return unavailable("g1_nap_count", name, "No nap data recorded",
                           SourceType.CALCULATED, expected=rule.nap_count), 0

    # a self-reported count is never strong enough for an alert
    status = StatusLevel.OK if reported == rule.nap_count else StatusLevel.WARNING
    return CriterionResult(
        id="g1_nap_count", name=name, status=status,
        value=reported, expected=rule.nap_count,
        message=f"{reported} naps reported in the intake survey (expected {rule.nap_count})",
        source_type=SourceType.SURVEY, source_field="numeroSiestas", data_available=True,
    ), reported

def _nap_duration(events: list[Event], rule: AgeScheduleRule | None, survey) -> CriterionResult:
    name = "Nap duration"
    if rule is None or rule.nap_max_duration == VARIABLE:
        return CriterionResult(
            id="g1_nap_duration", name=name, status=StatusLevel.OK,
            value="Variable", expected="Variable",
            message="No nap duration limit at this age",
            source_type=SourceType.CALCULATED, data_available=True,
        )

    expected = f"max {rule.nap_max_duration} min"
    durations = nap_durations_minutes(events)
    source_type = SourceType.CALCULATED
    if durations:
        average = sum(durations) / len(durations)
    else:
        reported = parse_number(get_field(survey, "duracionTotalSiestas"))
        if reported is None or reported <= 0:
            return unavailable("g1_nap_duration", name, "No nap duration data",
                               SourceType.CALCULATED, expected=expected)
        average = reported
        source_type = SourceType.SURVEY

    minutes = int(round(average))
    exceeds = average > rule.nap_max_duration
    message = (
        f"Naps of {minutes} min exceed the {rule.nap_max_duration} min maximum"
        if exceeds else "Nap duration within the limit"
    )
    if source_type == SourceType.SURVEY:
        message += " (from the intake survey)"
    return CriterionResult(
        id="g1_nap_duration",
        name=name,
        status=StatusLevel.WARNING if exceeds else StatusLevel.OK,
        value=f"{minutes} min",
        expected=expected,
        message=message,
        source_type=source_type,
        source_field="duracionTotalSiestas" if source_type == SourceType.SURVEY else None,
        data_available=True,
    )

def _sleep_windows(events: list[Event], rule: AgeScheduleRule | None,
                   reference: datetime) -> tuple[CriterionResult, list[float]]:
    name = "Sleep windows"
    if rule is None or not rule.windows:
        return CriterionResult(
            id="g1_sleep_windows", name=name, status=StatusLevel.OK,
            value="Variable", expected="Variable",
            message="Variable awake windows are normal at this age",
            source_type=SourceType.CALCULATED, data_available=True,
        ), []

    expected_label = ", ".join(f"{w:g}h" for w in rule.windows)
    actual = averaged_windows(events, reference, STATS_WINDOW_DAYS)
    if not actual:
        return unavailable("g1_sleep_windows", name,
                           "Not enough data to compute awake windows",
                           SourceType.CALCULATED, expected=expected_label), []

    compared = min(len(actual), len(rule.windows))
    max_deviation = max(abs(actual[i] - rule.windows[i]) for i in range(compared))
    status = tolerance_status(max_deviation, 0.5, 1)
    actual_label = ", ".join(f"{w:.1f}h" for w in actual)

    if status == StatusLevel.OK:
        message = f"Awake windows as expected for {rule.age_range}"
    elif status == StatusLevel.WARNING:
        message = f"Awake windows slightly off ({actual_label} vs expected {expected_label})"
    else:
        message = f"Awake windows off by {max_deviation:.1f} hrs ({actual_label} vs {expected_label})"
    return CriterionResult(
        id="g1_sleep_windows",
        name=name,
        status=status,
        value=actual_label,
        expected=expected_label,
        message=message,
        source_type=SourceType.CALCULATED,
        data_available=True,
    ), actual


def _summary(status: StatusLevel, criteria: list[CriterionResult]) -> str:
    alerts = sum(1 for c in criteria if c.status == StatusLevel.ALERT)
    warnings = sum(1 for c in criteria if c.status == StatusLevel.WARNING)
    if status == StatusLevel.OK:
        return f"Schedule on track: {len(criteria)} criteria met."
    if status == StatusLevel.ALERT:
        return f"Schedule has {alerts} alert(s) and {warnings} warning(s) needing attention."
    return f"Schedule has {warnings} minor warning(s)."


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def validate_schedule(
    events: list[Event],
    plan: dict[str, Any] | None,
    age_months: int,
    survey: dict[str, Any],
    reference_time: datetime,
) -> ScheduleGroupValidation:
    """Run the seven G1 criteria over the last seven days of events."""
    window = events_in_window(events, reference_time, STATS_WINDOW_DAYS)
    rule = schedule_rule_for_age(age_months)

    wakes = morning_wake_minutes(window, parse_clock(NIGHT_WAKING_CUTOFF))
    actual_wake = sum(wakes) / len(wakes) if wakes else None
    actual_bedtime = average_bedtime_minutes(window)

    expected_wake, wake_label = _reference_clock(plan, survey, PLAN_WAKE_KEYS, "horaDespertar")
    expected_bed, bed_label = _reference_clock(plan, survey, PLAN_BEDTIME_KEYS, "horaDormir")

    wake_minimum = _wake_minimum(int(round(actual_wake)) if actual_wake is not None else None)
    wake_deviation, wake_dev_minutes = _clock_deviation(
        "g1_wake_deviation", "Wake time vs reference", "wake time",
        actual_wake, expected_wake, wake_label,
    )
    night, night_hours = _night_duration(window, age_months, survey)
    nap_count, naps = _nap_count(window, rule, survey)
    nap_duration = _nap_duration(window, rule, survey)
    bedtime, _ = _clock_deviation(
        "g1_bedtime", "Bedtime vs reference", "bedtime",
        actual_bedtime, expected_bed, bed_label,
    )
    windows, actual_windows = _sleep_windows(window, rule, reference_time)

    criteria = [wake_minimum, wake_deviation, night, nap_count, nap_duration, bedtime, windows]
    status = worst_status(c.status for c in criteria)
    expected_night = night_duration_for_age(age_months)

    return ScheduleGroupValidation(
        group_id=GroupId.G1,
        group_name="Schedule",
        status=status,
        criteria=criteria,
        data_completeness=completeness_from_criteria(criteria),
        summary=_summary(status, criteria),
        wake_time=WakeTimeDetail(
            actual=format_clock(actual_wake) if actual_wake is not None else NO_CLOCK,
            expected=expected_wake or NO_CLOCK,
            deviation_minutes=wake_dev_minutes,
            status=wake_deviation.status,
        ),
        night_duration=NightDurationDetail(
            actual=round(night_hours, 2),
            expected=expected_night,
            deviation_hours=round(abs(night_hours - expected_night), 2) if night_hours else 0.0,
            status=night.status,
        ),
        nap_count=NapCountDetail(
            actual=naps,
            expected=rule.nap_count if rule else VARIABLE,
            status=nap_count.status,
        ),
        sleep_windows=SleepWindowsDetail(
            actual=actual_windows,
            expected=list(rule.windows) if rule else [],
            status=windows.status,
        ),
    )
