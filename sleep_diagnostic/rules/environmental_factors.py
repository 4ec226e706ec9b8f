"""
Environmental / emotional factors (G4) and the life-change keyword lexicon.

Each factor maps a survey field to a judgment kind:
    max          numeric upper limit
    range        numeric inclusive range
    affirmative  yes/no style answer, "yes" fails
    pattern      free text, any listed pattern fails
"""

from __future__ import annotations

from sleep_diagnostic.models import EnvironmentalFactor, KeywordMatch, StatusLevel
from sleep_diagnostic.rules.age_schedules import (
    MAX_SCREEN_MINUTES,
    ROOM_HUMIDITY_RANGE,
    ROOM_TEMPERATURE_RANGE,
)

POSITIVE_ANSWERS = {"si", "sí", "yes", "true", "1"}

# every word of a pattern must appear
COSLEEPING_PATTERNS = (
    ("colecho",),
    ("cama", "padres"),
    ("misma cama",),
    ("co-sleep",),
    ("cosleep",),
)

ENVIRONMENTAL_FACTORS: tuple[EnvironmentalFactor, ...] = (
    EnvironmentalFactor(
        id="screenTime", criterion_id="g4_screen_time", name="Screen time",
        description="Daily screen exposure", survey_field="screenTime",
        kind="max", maximum=MAX_SCREEN_MINUTES, unit="min",
        expected=f"<= {MAX_SCREEN_MINUTES} min/day", failure_status=StatusLevel.ALERT,
    ),
    EnvironmentalFactor(
        id="temperature", criterion_id="g4_temperature", name="Room temperature",
        description="Temperature where the child sleeps", survey_field="roomTemperature",
        kind="range", minimum=ROOM_TEMPERATURE_RANGE[0], maximum=ROOM_TEMPERATURE_RANGE[1],
        unit="°C", expected="22-25 °C", failure_status=StatusLevel.ALERT,
    ),
    EnvironmentalFactor(
        id="humidity", criterion_id="g4_humidity", name="Room humidity",
        description="Relative humidity where the child sleeps", survey_field="roomHumidity",
        kind="range", minimum=ROOM_HUMIDITY_RANGE[0], maximum=ROOM_HUMIDITY_RANGE[1],
        unit="%", expected="40-60 %", failure_status=StatusLevel.WARNING,
    ),
    EnvironmentalFactor(
        id="postpartumDepression", criterion_id="g4_postpartum_depression", name="Postpartum depression",
        description="Signs of postpartum depression in a parent",
        survey_field="postpartumDepression", kind="affirmative",
        expected="No indicators", failure_status=StatusLevel.ALERT,
    ),
    EnvironmentalFactor(
        id="cosleeping", criterion_id="g4_cosleeping", name="Co-sleeping",
        description="Child sleeps in the parents' bed", survey_field="sleepingArrangement",
        kind="pattern", expected="Own sleep space", failure_status=StatusLevel.WARNING,
    ),
    EnvironmentalFactor(
        id="roomSharing", criterion_id="g4_room_sharing", name="Room sharing",
        description="Child shares the bedroom with someone else", survey_field="sharesRoom",
        kind="affirmative", expected="Own room", failure_status=StatusLevel.WARNING,
    ),
)

# Case-insensitive substring match against event notes, chat and survey text
CHANGE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "school": (
        "kinder", "kínder", "kindergarten", "guarderia", "guardería", "escuela",
        "preescolar", "daycare", "colegio", "maternal", "preschool", "school",
    ),
    "sibling": (
        "hermano", "hermanito", "hermana", "hermanita", "bebé nuevo", "bebe nuevo",
        "nacimiento", "embarazo", "embarazada", "nuevo bebé", "nuevo bebe",
        "new baby", "pregnant",
    ),
    "moving": (
        "mudanza", "mudarnos", "mudamos", "cambio de casa", "nueva casa",
        "nuevo departamento", "nuevo depto", "nueva ciudad", "nos movemos",
        "nos mudamos", "new house", "we moved",
    ),
    "family": (
        "separación", "separacion", "divorcio", "divorciando", "papá se fue",
        "papa se fue", "mamá se fue", "mama se fue", "abuelos", "viaje largo",
        "divorce",
    ),
    "travel": (
        "viaje", "viajamos", "vacaciones", "vuelo", "avión", "avion", "jet lag",
        "cambio de horario", "regresamos de", "vacation",
    ),
    "health": (
        "enfermedad", "enfermo", "enfermita", "enfermito", "hospital", "doctor",
        "pediatra", "fiebre", "gripa", "gripe", "catarro", "resfriado",
        "infección", "infeccion", "antibiótico", "antibiotico", "vacuna",
        "dientes", "dentición", "denticion", "fever", "teething",
    ),
}

CHANGE_CATEGORY_NAMES = {
    "school": "school/daycare",
    "sibling": "new sibling",
    "moving": "moving house",
    "family": "family change",
    "travel": "travel",
    "health": "illness",
}


def detect_change_keywords(texts: list[str]) -> list[KeywordMatch]:
    """Find life-change keywords in free text; each (keyword, category) reported once."""
    matches: list[KeywordMatch] = []
    seen: set[tuple[str, str]] = set()
    for text in texts:
        if not isinstance(text, str) or not text:
            continue
        lowered = text.lower()
        for category, keywords in CHANGE_KEYWORDS.items():
            for keyword in keywords:
                if keyword in lowered and (keyword, category) not in seen:
                    seen.add((keyword, category))
                    matches.append(KeywordMatch(keyword=keyword, category=category, found_in=text[:100]))
    return matches
