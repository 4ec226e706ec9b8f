"""
Age-banded schedule rules (G1) and the fixed clinical constants.

Bands are contiguous over integer months and do not overlap, so a lookup is a
plain first-match scan. Ages above the top band fall through to the last row.
"""

from __future__ import annotations

from sleep_diagnostic.models import AgeScheduleRule

VARIABLE = -1  # nap count / nap duration not fixed for this age

WAKE_TOLERANCE_MINUTES = 15
MIN_WAKE_TIME = "06:00"
NIGHT_WAKING_CUTOFF = "04:00"  # wakes before this are night wakings
MILK_CEILING_OZ = 16
MILK_CEILING_MIN_AGE_MONTHS = 12
MAX_FEEDING_GAP_HOURS = 5
MAX_SCREEN_MINUTES = 60
ROOM_TEMPERATURE_RANGE = (22.0, 25.0)
ROOM_HUMIDITY_RANGE = (40.0, 60.0)
RECENT_TEXT_WINDOW_DAYS = 14
STATS_WINDOW_DAYS = 7


def _rule(age_range, lo, hi, naps, nap_max, windows, no_nap_before="00:00",
          hours_before_bed=0.0, night=11.0, milk=0, milk_interval=-1.0, solids=5):
    return AgeScheduleRule(
        age_range=age_range,
        age_min_months=lo,
        age_max_months=hi,
        nap_count=naps,
        nap_max_duration=nap_max,
        windows=tuple(windows),
        no_nap_before=no_nap_before,
        no_nap_hours_before_bedtime=hours_before_bed,
        night_duration_hours=night,
        milk_min_count=milk,
        milk_interval_hours=milk_interval,
        solid_min_count=solids,
    )


AGE_SCHEDULE_RULES: tuple[AgeScheduleRule, ...] = (
    _rule("0-3m", 0, 3, VARIABLE, VARIABLE, [0.75, 1.5], milk=VARIABLE, solids=0),
    _rule("4-5m", 4, 5, VARIABLE, VARIABLE, [1, 2], milk=VARIABLE, milk_interval=3, solids=0),
    _rule("6m", 6, 6, 3, 90, [1.5, 2, 2.5, 3], "08:00", 2.5, milk=5, milk_interval=3, solids=2),
    _rule("7m", 7, 7, 3, 90, [2, 2, 2.5, 3], "08:00", 2.5, milk=4, milk_interval=4, solids=3),
    _rule("8m", 8, 8, 2, 90, [3, 3, 3], "09:00", 3.5, milk=3, milk_interval=4, solids=4),
    _rule("9-10m", 9, 10, 2, 90, [3, 3, 3], "09:00", 3.5, milk=3, milk_interval=5, solids=4),
    _rule("11m", 11, 11, 2, 60, [3, 3.5, 3], "09:00", 3.5, milk=2),
    _rule("12-14m", 12, 14, 2, 60, [3, 3.5, 3], "09:00", 3.5, milk=2),
    _rule("15-17m", 15, 17, 1, 180, [6, 4.5], "12:00", 4),
    _rule("18-23m", 18, 23, 1, 180, [6, 4.5], "12:00", 4),
    _rule("2-2.4a", 24, 29, 1, 150, [6, 5], "12:00", 4),
    _rule("2.5a", 30, 32, 1, 120, [6, 5.5], "12:00", 4),
    _rule("2.9a", 33, 35, 1, 90, [6, 6], "12:00", 4, night=10.5),
    _rule("3-3.4a", 36, 41, 0, 0, [12.5], night=11.5),
    _rule("3.5a+", 42, 999, 0, 0, [12.5]),
)


def schedule_rule_for_age(age_months: int) -> AgeScheduleRule | None:
    """Schedule rule whose band contains the age; last row above the top band."""
    if age_months < AGE_SCHEDULE_RULES[0].age_min_months:
        return None
    for rule in AGE_SCHEDULE_RULES:
        if rule.age_min_months <= age_months <= rule.age_max_months:
            return rule
    return AGE_SCHEDULE_RULES[-1]


def night_duration_for_age(age_months: int) -> float:
    """Expected night sleep in hours, reduced yearly from age three."""
    years = age_months // 12
    if years < 3:
        return 11.0
    if years == 3:
        return 11.75
    if years == 4:
        return 11.25
    if years == 5:
        return 10.75
    return 10.25


def milk_interval_for_age(age_months: int) -> float:
    """Hours between milk feedings; 0 when the age has no fixed interval."""
    rule = schedule_rule_for_age(age_months)
    if rule is None or rule.milk_interval_hours <= 0 or rule.milk_min_count == VARIABLE:
        return 0.0
    return rule.milk_interval_hours


def is_variable_schedule(rule: AgeScheduleRule | None) -> bool:
    return rule is None or rule.nap_count == VARIABLE
