"""
Event-log parsing and sleep/feeding statistics.

Raw event records arrive as loosely-typed dicts (eventType, startTime and
whatever type-specific fields the logging form captured). They are parsed
into Event models once; records without a usable type or start time are
skipped rather than failing the evaluation.

Timestamps are read as wall-clock times in whatever offset they were recorded
with. The offset is dropped so that "07:10" means 07:10 for the family that
logged it, which is what every schedule rule is written against.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

logger = logging.getLogger(__name__)

NIGHT_SLEEP_TYPES = ("sleep", "bedtime")
FEEDING_TYPES = ("feeding", "night_feeding")
MILK_FEEDING_KINDS = ("breast", "bottle")

# A logical day runs 04:00 -> 03:59 next morning
LOGICAL_DAY_START_HOUR = 4

MAX_SLEEP_DELAY_MINUTES = 180
MIN_NIGHT_MINUTES = 120
MAX_NIGHT_MINUTES = 960


class Event(BaseModel):
    """A single parsed log entry."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    event_type: str = Field(validation_alias=AliasChoices("eventType", "event_type"))
    start_time: datetime = Field(validation_alias=AliasChoices("startTime", "start_time"))
    end_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("endTime", "end_time")
    )
    notes: str | None = None
    sleep_delay: float | None = Field(
        default=None, validation_alias=AliasChoices("sleepDelay", "sleep_delay")
    )
    awake_delay: float | None = Field(
        default=None, validation_alias=AliasChoices("awakeDelay", "awake_delay")
    )
    duration: float | None = None  # minutes, when the form captured it directly
    feeding_type: str | None = Field(
        default=None, validation_alias=AliasChoices("feedingType", "feeding_type")
    )
    feeding_amount: float | None = Field(
        default=None, validation_alias=AliasChoices("feedingAmount", "feeding_amount")
    )
    feeding_notes: str | None = Field(
        default=None, validation_alias=AliasChoices("feedingNotes", "feeding_notes")
    )

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("end_time", "notes", "feeding_type", "feeding_notes", mode="wrap")
    @classmethod
    def _drop_unreadable(cls, value: Any, handler, info: ValidationInfo) -> Any:
        """An unreadable optional field becomes None; the event itself is kept."""
        try:
            return handler(value)
        except ValidationError:
            logger.warning(f"Ignoring unreadable {info.field_name} value {value!r}")
            return None

    @field_validator("sleep_delay", "awake_delay", "duration", "feeding_amount", mode="wrap")
    @classmethod
    def _finite_or_none(cls, value: Any, handler, info: ValidationInfo) -> Any:
        """Numeric extras must be finite numbers; anything else is treated as missing."""
        try:
            number = handler(value)
        except ValidationError:
            logger.warning(f"Ignoring unreadable {info.field_name} value {value!r}")
            return None
        if number is not None and not math.isfinite(number):
            logger.warning(f"Ignoring non-finite {info.field_name} value {value!r}")
            return None
        return number

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def _wall_clock(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=None)

    @property
    def duration_minutes(self) -> float | None:
        if self.end_time is not None:
            minutes = (self.end_time - self.start_time).total_seconds() / 60
            if minutes >= 0:
                return minutes
        return self.duration


def parse_events(raw_events: list[dict[str, Any]]) -> list[Event]:
    """Parse raw event dicts, sorted by start time.

    Records without a usable type or start time are skipped; unreadable
    optional fields are dropped from an otherwise valid record.
    """
    parsed = []
    skipped = 0
    for raw in raw_events or []:
        if not isinstance(raw, dict):
            skipped += 1
            continue
        try:
            parsed.append(Event.model_validate(raw))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.warning(f"Skipped {skipped} malformed event record(s)")
    parsed.sort(key=lambda e: e.start_time)
    return parsed


# ---------------------------------------------------------------------------
# Clock-time helpers
# ---------------------------------------------------------------------------

def parse_clock(value: Any) -> int | None:
    """'HH:MM' (or 'H:MM', optional seconds) -> minutes since midnight."""
    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) < 2:
        return None
    try:
        hours, minutes = int(parts[0]), int(parts[1][:2])
    except ValueError:
        return None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes

def format_clock(minutes: float) -> str:
    total = int(round(minutes)) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"

def clock_deviation_minutes(actual: int, expected: int) -> int:
    """Absolute difference between two clock times, wrapping around midnight."""
    diff = abs(actual - expected) % (24 * 60)
    return min(diff, 24 * 60 - diff)

def minutes_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute

def logical_day(moment: datetime) -> date:
    if moment.hour < LOGICAL_DAY_START_HOUR:
        return (moment - timedelta(days=1)).date()
    return moment.date()

def is_nocturnal(moment: datetime) -> bool:
    return moment.hour >= 18 or moment.hour <= 6


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

def events_in_window(events: list[Event], reference: datetime, days: int) -> list[Event]:
    start = reference - timedelta(days=days)
    return [e for e in events if start <= e.start_time <= reference]

def events_on_day(events: list[Event], day: date) -> list[Event]:
    return [e for e in events if e.start_time.date() == day]


# ---------------------------------------------------------------------------
# Sleep statistics
# ---------------------------------------------------------------------------

def morning_wake_minutes(events: list[Event], night_waking_cutoff: int, latest: int = 12 * 60) -> list[int]:
    """Clock minutes of morning wake events.

    Wakes before the cutoff are night wakings, not the start of the day.
    """
    result = []
    for event in events:
        if event.event_type != "wake":
            continue
        minute = minutes_of_day(event.start_time)
        if night_waking_cutoff <= minute < latest:
            result.append(minute)
    return result

def average_bedtime_minutes(events: list[Event]) -> float | None:
    """Average clock time of nocturnal bedtime/sleep events.

    Early-morning times are shifted past midnight so 23:50 and 00:10 average
    to midnight instead of noon.
    """
    values = []
    for event in events:
        if event.event_type not in NIGHT_SLEEP_TYPES or not is_nocturnal(event.start_time):
            continue
        minute = minutes_of_day(event.start_time)
        if event.start_time.hour <= 6:
            minute += 24 * 60
        values.append(minute)
    if not values:
        return None
    return (sum(values) / len(values)) % (24 * 60)

def night_durations_minutes(events: list[Event]) -> list[float]:
    """Durations of each night's sleep, pairing bedtime/sleep with the next wake.

    Sleep events carrying their own end time are used directly. Sleep delay is
    subtracted (capped at 3 h). Implausible durations are dropped.
    """
    ordered = [e for e in events if e.event_type != "night_waking"]
    durations = []
    for i, event in enumerate(ordered):
        if event.event_type not in NIGHT_SLEEP_TYPES or not is_nocturnal(event.start_time):
            continue
        delay = min(event.sleep_delay or 0, MAX_SLEEP_DELAY_MINUTES)
        asleep_at = event.start_time + timedelta(minutes=delay)

        woke_at = event.end_time
        if woke_at is None:
            for following in ordered[i + 1:]:
                if following.start_time - event.start_time > timedelta(hours=24):
                    break
                if following.event_type == "wake":
                    woke_at = following.start_time
                    break
                if following.event_type in NIGHT_SLEEP_TYPES:
                    break
        if woke_at is None:
            continue

        minutes = (woke_at - asleep_at).total_seconds() / 60
        if MIN_NIGHT_MINUTES <= minutes <= MAX_NIGHT_MINUTES:
            durations.append(minutes)
    return durations

def nap_durations_minutes(events: list[Event]) -> list[float]:
    return [
        e.duration_minutes for e in events
        if e.event_type == "nap" and e.duration_minutes is not None and e.duration_minutes > 0
    ]

def days_with_sleep_data(events: list[Event]) -> int:
    sleep_types = {"sleep", "bedtime", "wake", "nap", "night_waking"}
    return len({logical_day(e.start_time) for e in events if e.event_type in sleep_types})

def count_naps(events: list[Event]) -> int:
    return sum(1 for e in events if e.event_type == "nap")

def day_windows_hours(day_events: list[Event]) -> list[float]:
    """Awake windows (hours) between consecutive wake/nap/sleep events of one day."""
    relevant = [e for e in day_events if e.event_type in ("wake", "nap", "sleep")]
    windows = []
    for current, following in zip(relevant, relevant[1:]):
        awake_from = current.end_time or current.start_time
        gap_hours = (following.start_time - awake_from).total_seconds() / 3600
        if 0.5 < gap_hours < 14:
            windows.append(gap_hours)
    return windows

def averaged_windows(events: list[Event], reference: datetime, days: int = 7) -> list[float]:
    """Awake windows averaged by position across the last `days` logical days."""
    per_day: dict[date, list[Event]] = {}
    for event in events:
        per_day.setdefault(logical_day(event.start_time), []).append(event)

    last_day = logical_day(reference)
    all_windows = []
    for offset in range(days):
        day_events = per_day.get(last_day - timedelta(days=offset), [])
        windows = day_windows_hours(day_events)
        if windows:
            all_windows.append(windows)
    if not all_windows:
        return []

    averaged = []
    for position in range(max(len(w) for w in all_windows)):
        at_position = [w[position] for w in all_windows if position < len(w)]
        averaged.append(round(sum(at_position) / len(at_position), 1))
    return averaged


# ---------------------------------------------------------------------------
# Feeding statistics
# ---------------------------------------------------------------------------

def feedings_on_day(events: list[Event], day: date) -> list[Event]:
    return [e for e in events_on_day(events, day) if e.event_type in FEEDING_TYPES]

def count_milk_feedings(feedings: list[Event]) -> int:
    return sum(1 for e in feedings if e.feeding_type in MILK_FEEDING_KINDS)

def count_solid_feedings(feedings: list[Event]) -> int:
    return sum(1 for e in feedings if e.feeding_type == "solids")

def total_bottle_ounces(feedings: list[Event]) -> float:
    return sum(e.feeding_amount or 0 for e in feedings if e.feeding_type == "bottle")

def largest_feeding_gap(feedings: list[Event]) -> tuple[float, Event | None]:
    """Largest gap in hours between consecutive feedings, and the feeding closing it."""
    ordered = sorted(feedings, key=lambda e: e.start_time)
    largest, closing = 0.0, None
    for previous, current in zip(ordered, ordered[1:]):
        gap = (current.start_time - previous.start_time).total_seconds() / 3600
        if gap > largest:
            largest, closing = gap, current
    return largest, closing

def feeding_note_text(event: Event) -> str:
    return (event.feeding_notes or event.notes or "").strip()
