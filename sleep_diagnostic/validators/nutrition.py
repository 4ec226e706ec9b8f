"""
G3 - Nutrition validator.

Works on the feedings logged on the reference date: milk and solid counts
against the age band, the daily milk ceiling, the longest gap between
feedings and food-group coverage from the classified feeding notes. When the
intake survey has data, three baseline criteria from it are appended.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sleep_diagnostic.events import (
    Event,
    count_milk_feedings,
    count_solid_feedings,
    feedings_on_day,
    largest_feeding_gap,
    total_bottle_ounces,
)
from sleep_diagnostic.models import (
    CriterionResult,
    FeedingCount,
    GroupId,
    NutritionClassification,
    NutritionGroup,
    NutritionGroupValidation,
    SourceType,
    StatusLevel,
)
from sleep_diagnostic.rules.age_schedules import MAX_FEEDING_GAP_HOURS, MILK_CEILING_MIN_AGE_MONTHS
from sleep_diagnostic.rules.nutrition_requirements import (
    SOLIDS_START_AGE_MONTHS,
    check_milk_limit,
    nutrition_rule_for_age,
    required_groups_for_age,
    validate_meal_groups,
)
from sleep_diagnostic.survey import get_field, has_value, is_affirmative, parse_number
from sleep_diagnostic.validators.status import (
    completeness_from_criteria,
    count_status,
    unavailable,
    worst_status,
)


def covered_groups(classifications: list[NutritionClassification]) -> list[NutritionGroup]:
    """Union of food groups over successful classifications, in canonical order."""
    found = set()
    for classification in classifications:
        if classification.ai_classified:
            found.update(classification.groups)
    return [g for g in NutritionGroup if g in found]


# ---------------------------------------------------------------------------
# Event criteria
# ---------------------------------------------------------------------------

def _feeding_count(criterion_id, name, what, count, required, feedings) -> CriterionResult:
    if not feedings:
        return unavailable(criterion_id, name, "No feedings logged today",
                           SourceType.EVENT, expected=required)
    status = count_status(count, required)
    return CriterionResult(
        id=criterion_id,
        name=name,
        status=status,
        value=count,
        expected=required,
        message=(
            f"{count} {what} (minimum {required})" if status == StatusLevel.OK
            else f"Only {count} of {required} required {what}"
        ),
        source_type=SourceType.EVENT,
        data_available=True,
    )

def _solid_count(feedings: list[Event], age_months: int, required: int) -> CriterionResult:
    if age_months < SOLIDS_START_AGE_MONTHS:
        return CriterionResult(
            id="g3_solid_count", name="Solid meals", status=StatusLevel.OK,
            value=0, expected=0, message="Solids not required before 6 months",
            source_type=SourceType.EVENT, data_available=True,
        )
    return _feeding_count("g3_solid_count", "Solid meals", "solid meals",
                          count_solid_feedings(feedings), required, feedings)

def _milk_limit(feedings: list[Event], age_months: int) -> CriterionResult:
    name = "Milk limit"
    total = total_bottle_ounces(feedings)
    if age_months < MILK_CEILING_MIN_AGE_MONTHS:
        return CriterionResult(
            id="g3_milk_limit", name=name, status=StatusLevel.OK,
            value=total, expected=None, message="No milk ceiling at this age",
            source_type=SourceType.CALCULATED, data_available=True,
        )
    if not feedings:
        return unavailable("g3_milk_limit", name, "No feedings logged today",
                           SourceType.CALCULATED)

    check = check_milk_limit(total, age_months)
    return CriterionResult(
        id="g3_milk_limit",
        name=name,
        status=StatusLevel.ALERT if check.exceeded else StatusLevel.OK,
        value=total,
        expected=check.max_oz,
        message=check.message,
        source_type=SourceType.CALCULATED,
        data_available=True,
    )

def _feeding_gap(feedings: list[Event]) -> CriterionResult:
    name = "Feeding interval"
    if len(feedings) < 2:
        return unavailable("g3_feeding_gap", name, "Not enough feedings to compute intervals",
                           SourceType.CALCULATED, expected=MAX_FEEDING_GAP_HOURS)

    gap, closing = largest_feeding_gap(feedings)
    too_long = gap > MAX_FEEDING_GAP_HOURS
    return CriterionResult(
        id="g3_feeding_gap",
        name=name,
        status=StatusLevel.ALERT if too_long else StatusLevel.OK,
        value=round(gap, 1),
        expected=MAX_FEEDING_GAP_HOURS,
        message=(
            f"{gap:.1f}h between feedings exceeds the {MAX_FEEDING_GAP_HOURS}h maximum"
            if too_long else f"Longest interval {gap:.1f}h between feedings"
        ),
        source_type=SourceType.CALCULATED,
        source_id=closing.id if closing is not None else None,
        data_available=True,
    )

def _nutrition_groups(age_months: int, classifications: list[NutritionClassification]) -> CriterionResult:
    name = "Food groups"
    required, one_of = required_groups_for_age(age_months)
    expected = len(required) + (1 if one_of else 0)

    if age_months < SOLIDS_START_AGE_MONTHS:
        return CriterionResult(
            id="g3_nutrition_groups", name=name, status=StatusLevel.OK,
            value=None, expected=None, message="Food groups not applicable before 6 months",
            source_type=SourceType.CALCULATED, data_available=True,
        )
    if not any(c.ai_classified for c in classifications):
        return unavailable("g3_nutrition_groups", name, "No classified feeding notes today",
                           SourceType.CALCULATED, expected=expected)

    covered = covered_groups(classifications)
    check = validate_meal_groups(covered, age_months)
    missing = check.missing_count
    if missing >= 2:
        status = StatusLevel.ALERT
    elif missing == 1:
        status = StatusLevel.WARNING
    else:
        status = StatusLevel.OK

    return CriterionResult(
        id="g3_nutrition_groups",
        name=name,
        status=status,
        value=len(covered),
        expected=expected,
        message=(
            "Groups covered: " + ", ".join(g.value for g in covered)
            if status == StatusLevel.OK else check.message
        ),
        source_type=SourceType.CALCULATED,
        data_available=True,
    )


# ---------------------------------------------------------------------------
# Survey baseline
# ---------------------------------------------------------------------------

def _feeding_type(survey: dict[str, Any]) -> CriterionResult:
    name = "Feeding type"
    value = get_field(survey, "alimentacion")
    if not has_value(value):
        return unavailable("g3_feeding_type", name, "No feeding type in the survey",
                           SourceType.SURVEY, source_field="alimentacion")
    label = ", ".join(map(str, value)) if isinstance(value, list) else str(value)
    return CriterionResult(
        id="g3_feeding_type", name=name, status=StatusLevel.OK,
        value=label, expected="Recorded", message=f"Feeding: {label}",
        source_type=SourceType.SURVEY, source_field="alimentacion", data_available=True,
    )

def _solids_survey(survey: dict[str, Any], age_months: int) -> CriterionResult:
    name = "Solids (survey)"
    if age_months < SOLIDS_START_AGE_MONTHS:
        return CriterionResult(
            id="g3_solids_survey", name=name, status=StatusLevel.OK,
            value="Not applicable", expected="Not applicable before 6 months",
            message="Solids not required before 6 months",
            source_type=SourceType.SURVEY, source_field="comeSolidos", data_available=True,
        )

    value = get_field(survey, "comeSolidos")
    if not has_value(value):
        return unavailable("g3_solids_survey", name, "No solids answer in the survey",
                           SourceType.SURVEY, expected="Yes (from 6 months)",
                           source_field="comeSolidos")

    eats_solids = is_affirmative(value)
    return CriterionResult(
        id="g3_solids_survey",
        name=name,
        status=StatusLevel.OK if eats_solids else StatusLevel.ALERT,
        value="Yes" if eats_solids else "No",
        expected="Yes",
        message=(
            "Eats solids according to the survey" if eats_solids
            else f"Child is {age_months} months old and does not eat solids according to the survey"
        ),
        source_type=SourceType.SURVEY,
        source_field="comeSolidos",
        data_available=True,
    )

def _weight_status(survey: dict[str, Any]) -> CriterionResult:
    name = "Weight status"
    weight = get_field(survey, "pesoHijo")
    percentile = parse_number(get_field(survey, "percentilPeso"))
    if not has_value(weight) and percentile is None:
        return unavailable("g3_weight_status", name, "No weight data in the survey",
                           SourceType.SURVEY, expected="Weight recorded", source_field="pesoHijo")

    status = StatusLevel.OK
    if percentile is None:
        value = f"{weight} kg"
        message = f"Weight recorded: {weight} kg"
    else:
        value = f"P{percentile:g}"
        if percentile < 3:
            status, note = StatusLevel.ALERT, "severely underweight"
        elif percentile < 10:
            status, note = StatusLevel.WARNING, "underweight"
        elif percentile > 97:
            status, note = StatusLevel.WARNING, "overweight"
        else:
            note = "normal"
        message = f"Weight percentile {percentile:g} ({note})"

    return CriterionResult(
        id="g3_weight_status", name=name, status=status,
        value=value, expected="P10-P97", message=message,
        source_type=SourceType.SURVEY, source_field="percentilPeso" if percentile is not None else "pesoHijo",
        data_available=True,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def validate_nutrition(
    events: list[Event],
    age_months: int,
    survey: dict[str, Any],
    classifications: list[NutritionClassification],
    reference_time: datetime,
) -> NutritionGroupValidation:
    """Run the G3 criteria over today's feedings plus the survey baseline."""
    rule = nutrition_rule_for_age(age_months)
    today = feedings_on_day(events, reference_time.date())
    milk = count_milk_feedings(today)
    solids = count_solid_feedings(today)

    milk_criterion = _feeding_count("g3_milk_count", "Milk feedings", "milk feedings",
                                    milk, rule.milk_min_count, today)
    solid_criterion = _solid_count(today, age_months, rule.solid_min_count)

    criteria = [
        milk_criterion,
        _milk_limit(today, age_months),
        solid_criterion,
        _feeding_gap(today),
        _nutrition_groups(age_months, classifications),
    ]
    if survey:
        criteria.extend([
            _feeding_type(survey),
            _solids_survey(survey, age_months),
            _weight_status(survey),
        ])

    status = worst_status(c.status for c in criteria)
    alerts = sum(1 for c in criteria if c.status == StatusLevel.ALERT)
    warnings = sum(1 for c in criteria if c.status == StatusLevel.WARNING)
    if alerts:
        summary = f"{alerts} feeding alert(s)"
    elif warnings:
        summary = f"{warnings} feeding warning(s)"
    else:
        summary = "Feeding within parameters"

    return NutritionGroupValidation(
        group_id=GroupId.G3,
        group_name="Nutrition",
        status=status,
        criteria=criteria,
        data_completeness=completeness_from_criteria(criteria),
        summary=summary,
        milk_feedings=FeedingCount(count=milk, required=rule.milk_min_count, status=milk_criterion.status),
        solid_feedings=FeedingCount(count=solids, required=rule.solid_min_count, status=solid_criterion.status),
        nutrition_groups_covered=covered_groups(classifications),
        nutrition_groups_required=list(rule.meal_required_groups),
        ai_classifications=classifications,
    )
