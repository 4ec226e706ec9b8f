"""Tests for the rule tables: age lookups, meal groups, milk ceiling, keywords."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sleep_diagnostic.models import MedicalCondition, NutritionGroup
from sleep_diagnostic.rules.age_schedules import (
    AGE_SCHEDULE_RULES,
    VARIABLE,
    is_variable_schedule,
    milk_interval_for_age,
    night_duration_for_age,
    schedule_rule_for_age,
)
from sleep_diagnostic.rules.environmental_factors import ENVIRONMENTAL_FACTORS, detect_change_keywords
from sleep_diagnostic.rules.medical_indicators import (
    MEDICAL_INDICATORS,
    has_disorganized_naps,
    indicators_for_condition,
)
from sleep_diagnostic.rules.nutrition_requirements import (
    NUTRITION_RULES,
    check_milk_limit,
    nutrition_rule_for_age,
    validate_meal_groups,
)
from sleep_diagnostic.events import parse_events


# ── Age lookups ──

def test_every_age_maps_to_exactly_one_schedule_band():
    """Ages 0-200 match exactly one band, or fall through to the last row."""
    top = AGE_SCHEDULE_RULES[-1]
    for age in range(0, 201):
        matching = [r for r in AGE_SCHEDULE_RULES if r.age_min_months <= age <= r.age_max_months]
        rule = schedule_rule_for_age(age)
        if matching:
            assert len(matching) == 1, f"age {age} in {len(matching)} bands"
            assert rule == matching[0]
        else:
            assert rule == top


def test_every_age_maps_to_exactly_one_nutrition_band():
    """Nutrition bands are contiguous and non-overlapping from 0 months."""
    for age in range(0, 201):
        matching = [r for r in NUTRITION_RULES if r.age_min_months <= age <= r.age_max_months]
        assert len(matching) <= 1
        rule = nutrition_rule_for_age(age)
        assert rule == (matching[0] if matching else NUTRITION_RULES[-1])


def test_negative_age_has_no_schedule_rule():
    """A negative age is outside every band."""
    assert schedule_rule_for_age(-1) is None


def test_young_infants_have_variable_naps():
    """Under 6 months nap count and duration are not fixed."""
    for age in range(0, 6):
        rule = schedule_rule_for_age(age)
        assert rule.nap_count == VARIABLE
        assert rule.nap_max_duration == VARIABLE


def test_variable_schedule_below_six_months_or_without_rule():
    """Young infants and ages with no band have no fixed nap pattern."""
    assert is_variable_schedule(schedule_rule_for_age(2)) is True
    assert is_variable_schedule(schedule_rule_for_age(10)) is False
    assert is_variable_schedule(None) is True


def test_night_duration_by_year():
    """Night duration is 11 h until three, then steps down."""
    assert night_duration_for_age(10) == 11.0
    assert night_duration_for_age(35) == 11.0
    assert night_duration_for_age(36) == 11.75
    assert night_duration_for_age(50) == 11.25
    assert night_duration_for_age(65) == 10.75
    assert night_duration_for_age(90) == 10.25


def test_milk_interval():
    """Fixed interval from 4 months, none for newborns or toddlers."""
    assert milk_interval_for_age(2) == 0.0
    assert milk_interval_for_age(7) == 4
    assert milk_interval_for_age(10) == 5
    assert milk_interval_for_age(20) == 0.0


# ── Meal groups ──

def test_eight_month_meal_missing_one_of():
    """At 8 months protein + fiber without fat/carbohydrate misses one requirement."""
    check = validate_meal_groups([NutritionGroup.PROTEIN, NutritionGroup.FIBER], 8)
    assert not check.valid
    assert check.one_of_missing
    assert check.missing_count == 1


def test_eight_month_meal_protein_only():
    """Protein alone misses fiber and the one-of pair."""
    check = validate_meal_groups([NutritionGroup.PROTEIN], 8)
    assert check.missing == [NutritionGroup.FIBER]
    assert check.missing_count == 2


def test_nine_month_meal_needs_all_groups():
    """From 9 months every group is required."""
    check = validate_meal_groups([NutritionGroup.PROTEIN, NutritionGroup.FIBER, NutritionGroup.FAT], 9)
    assert check.missing == [NutritionGroup.CARBOHYDRATE]
    assert validate_meal_groups(list(NutritionGroup), 9).valid


def test_snacks_before_eight_months_always_valid():
    """No snack requirements below 8 months."""
    assert validate_meal_groups([], 7, is_snack=True).valid
    assert not validate_meal_groups([], 8, is_snack=True).valid


# ── Milk ceiling ──

def test_milk_limit_only_from_twelve_months():
    """30 oz at 11 months is fine; 17 oz at 12 months exceeds 16 oz."""
    assert not check_milk_limit(30, 11).exceeded
    check = check_milk_limit(17, 12)
    assert check.exceeded
    assert check.max_oz == 16
    assert not check_milk_limit(16, 12).exceeded


# ── Medical catalogs ──

def test_catalog_sizes():
    """Reflux has 10 indicators, apnea 12, restless legs 6."""
    assert len(indicators_for_condition(MedicalCondition.REFLUX)) == 10
    assert len(indicators_for_condition(MedicalCondition.APNEA)) == 12
    assert len(indicators_for_condition(MedicalCondition.RESTLESS_LEG)) == 6
    assert set(MEDICAL_INDICATORS) == set(MedicalCondition)


def test_indicator_ids_unique_within_catalog():
    """Indicator ids are unique per condition."""
    for catalog in MEDICAL_INDICATORS.values():
        ids = [i.id for i in catalog]
        assert len(ids) == len(set(ids))


def test_disorganized_naps_from_scattered_start_times():
    """Three naps spread over more than two hours count as disorganized."""
    events = parse_events([
        {"eventType": "nap", "startTime": "2025-01-15T09:00:00"},
        {"eventType": "nap", "startTime": "2025-01-15T12:00:00"},
        {"eventType": "nap", "startTime": "2025-01-15T16:00:00"},
    ])
    assert has_disorganized_naps(events)
    assert not has_disorganized_naps(events[:2])


# ── Environment ──

def test_factor_criterion_ids_unique():
    """Each environmental factor has its own criterion id."""
    ids = [f.criterion_id for f in ENVIRONMENTAL_FACTORS]
    assert len(ids) == len(set(ids))


def test_change_keywords_case_insensitive_and_deduplicated():
    """Keywords match regardless of case and each is reported once."""
    matches = detect_change_keywords([
        "Nos MUDAMOS la semana pasada",
        "desde que nos mudamos duerme mal",
    ])
    keywords = [(m.keyword, m.category) for m in matches]
    assert ("mudamos", "moving") in keywords
    assert ("nos mudamos", "moving") in keywords
    assert len(keywords) == len(set(keywords))
    assert matches[0].found_in == "Nos MUDAMOS la semana pasada"


def test_change_keywords_found_in_truncated():
    """found_in keeps at most 100 characters of the source text."""
    text = "empezó la guardería " + "x" * 200
    matches = detect_change_keywords([text])
    assert matches
    assert all(len(m.found_in) == 100 for m in matches)


def test_no_keywords_in_plain_text():
    """Text without life-change vocabulary yields no matches."""
    assert detect_change_keywords(["duerme bien toda la noche", ""]) == []
