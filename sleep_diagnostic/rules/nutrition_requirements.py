"""
Age-banded nutrition requirements (G3) and meal food-group rules.

Meals before 9 months need protein + fiber plus one of fat/carbohydrate;
from 9 months all four groups. Snacks (from 8 months) need fiber plus one of
fat/carbohydrate.
"""

from __future__ import annotations

from sleep_diagnostic.models import MealGroupCheck, MilkLimitCheck, NutritionGroup, NutritionRule
from sleep_diagnostic.rules.age_schedules import MILK_CEILING_MIN_AGE_MONTHS, MILK_CEILING_OZ

ALL_NUTRITION_GROUPS = (
    NutritionGroup.PROTEIN,
    NutritionGroup.CARBOHYDRATE,
    NutritionGroup.FAT,
    NutritionGroup.FIBER,
)

EARLY_STAGE_REQUIRED = (NutritionGroup.PROTEIN, NutritionGroup.FIBER)
EARLY_STAGE_ONE_OF = (NutritionGroup.FAT, NutritionGroup.CARBOHYDRATE)
FULL_STAGE_AGE_MONTHS = 9

SNACK_REQUIRED = (NutritionGroup.FIBER,)
SNACK_ONE_OF = (NutritionGroup.FAT, NutritionGroup.CARBOHYDRATE)

SOLIDS_START_AGE_MONTHS = 6

NUTRITION_RULES: tuple[NutritionRule, ...] = (
    NutritionRule(
        age_range="0-5m", age_min_months=0, age_max_months=5,
        milk_min_count=0, milk_max_oz=None, solid_min_count=0,
        meal_required_groups=(), snack_required_groups=(),
    ),
    NutritionRule(
        age_range="6m", age_min_months=6, age_max_months=6,
        milk_min_count=5, milk_max_oz=24, solid_min_count=2,
        meal_required_groups=EARLY_STAGE_REQUIRED, snack_required_groups=(),
    ),
    NutritionRule(
        age_range="7m", age_min_months=7, age_max_months=7,
        milk_min_count=4, milk_max_oz=24, solid_min_count=3,
        meal_required_groups=EARLY_STAGE_REQUIRED, snack_required_groups=(),
    ),
    NutritionRule(
        age_range="8m", age_min_months=8, age_max_months=8,
        milk_min_count=3, milk_max_oz=24, solid_min_count=4,
        meal_required_groups=EARLY_STAGE_REQUIRED, snack_required_groups=SNACK_REQUIRED,
    ),
    NutritionRule(
        age_range="9-10m", age_min_months=9, age_max_months=10,
        milk_min_count=3, milk_max_oz=24, solid_min_count=4,
        meal_required_groups=ALL_NUTRITION_GROUPS, snack_required_groups=SNACK_REQUIRED,
    ),
    NutritionRule(
        age_range="11m", age_min_months=11, age_max_months=11,
        milk_min_count=2, milk_max_oz=16, solid_min_count=5,
        meal_required_groups=ALL_NUTRITION_GROUPS, snack_required_groups=SNACK_REQUIRED,
    ),
    NutritionRule(
        age_range="12m+", age_min_months=12, age_max_months=999,
        milk_min_count=0, milk_max_oz=MILK_CEILING_OZ, solid_min_count=5,
        meal_required_groups=ALL_NUTRITION_GROUPS, snack_required_groups=SNACK_REQUIRED,
    ),
)


def nutrition_rule_for_age(age_months: int) -> NutritionRule:
    """Nutrition rule for the age; the oldest row when no band contains it."""
    for rule in NUTRITION_RULES:
        if rule.age_min_months <= age_months <= rule.age_max_months:
            return rule
    return NUTRITION_RULES[-1]


def required_groups_for_age(age_months: int) -> tuple[tuple[NutritionGroup, ...], tuple[NutritionGroup, ...]]:
    """(required, one_of) food groups for a main meal at this age."""
    if age_months < FULL_STAGE_AGE_MONTHS:
        return EARLY_STAGE_REQUIRED, EARLY_STAGE_ONE_OF
    return ALL_NUTRITION_GROUPS, ()


def validate_meal_groups(groups, age_months: int, is_snack: bool = False) -> MealGroupCheck:
    """Check the food groups of a meal (or snack) against the age requirement."""
    present = set(groups)

    if is_snack:
        if age_months < 8:
            return MealGroupCheck(valid=True, message="No snack requirements at this age")
        required, one_of = SNACK_REQUIRED, SNACK_ONE_OF
    else:
        required, one_of = required_groups_for_age(age_months)

    missing = [g for g in required if g not in present]
    one_of_missing = bool(one_of) and not any(g in present for g in one_of)

    if not missing and not one_of_missing:
        return MealGroupCheck(valid=True, message="Meets food-group requirements")

    parts = []
    if missing:
        parts.append("missing " + ", ".join(g.value for g in missing))
    if one_of_missing:
        parts.append("needs one of " + " or ".join(g.value for g in one_of))
    return MealGroupCheck(
        valid=False,
        missing=missing,
        one_of_missing=one_of_missing,
        message="; ".join(parts).capitalize(),
    )


def check_milk_limit(total_oz: float, age_months: int) -> MilkLimitCheck:
    """Daily milk ceiling; only enforced from 12 months."""
    if age_months < MILK_CEILING_MIN_AGE_MONTHS:
        return MilkLimitCheck(exceeded=False, message="No milk ceiling before 12 months")
    ceiling = nutrition_rule_for_age(age_months).milk_max_oz
    if ceiling is None:
        return MilkLimitCheck(exceeded=False, message="No milk ceiling")
    if total_oz > ceiling:
        return MilkLimitCheck(
            exceeded=True, max_oz=ceiling,
            message=f"{total_oz:g} oz exceeds the {ceiling:g} oz daily maximum",
        )
    return MilkLimitCheck(
        exceeded=False, max_oz=ceiling,
        message=f"Within limit ({total_oz:g}/{ceiling:g} oz)",
    )
