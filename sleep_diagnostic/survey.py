"""
Survey helpers: flattening the sectioned intake form and classifying answers.

The intake wizard stores answers nested per section
(survey["desarrolloSalud"]["reflujoColicos"]) while the validators read flat
field names. A handful of fields are also renamed into the English keys the
environmental checks use.
"""

from __future__ import annotations

import math
from typing import Any

SURVEY_SECTIONS = (
    "informacionFamiliar",
    "dinamicaFamiliar",
    "historial",
    "desarrolloSalud",
    "actividadFisica",
    "rutinaHabitos",
)

NEGATIVE_ANSWERS = {"no", "ninguno", "none", "nunca", "false", "0"}


def flatten_survey_data(raw: dict[str, Any] | None) -> dict[str, Any]:
    """Merge all survey sections into one flat dict and add derived aliases.

    Top-level keys that are not sections are kept as-is, so an already flat
    survey passes through unchanged.
    """
    if not raw:
        return {}

    flat: dict[str, Any] = {k: v for k, v in raw.items() if k not in SURVEY_SECTIONS}
    for section in SURVEY_SECTIONS:
        if isinstance(raw.get(section), dict):
            flat.update(raw[section])

    if "temperaturaCuarto" in flat:
        parsed = parse_number(flat["temperaturaCuarto"])
        if parsed is not None:
            flat["roomTemperature"] = parsed

    if "dondeDuerme" in flat:
        where = flat["dondeDuerme"]
        flat["sleepingArrangement"] = ", ".join(map(str, where)) if isinstance(where, list) else where

    if "comparteHabitacion" in flat:
        flat["sharesRoom"] = flat["comparteHabitacion"]

    if "principalPreocupacion" in flat:
        flat["recentChanges"] = flat["principalPreocupacion"]

    family = raw.get("informacionFamiliar") if isinstance(raw.get("informacionFamiliar"), dict) else {}
    mother = family.get("mama") if isinstance(family.get("mama"), dict) else {}
    father = family.get("papa") if isinstance(family.get("papa"), dict) else {}

    if "pensamientosNegativos" in mother:
        flat["postpartumDepression"] = mother["pensamientosNegativos"]
    if father.get("tieneAlergias") or mother.get("tieneAlergias"):
        flat["alergiasPadres"] = True
    if "puedeDormir" in mother:
        flat["maternalSleep"] = mother["puedeDormir"]

    if "quienAtiende" in flat:
        flat["nighttimeSupport"] = flat["quienAtiende"]
    if "otrosResidentes" in flat:
        flat["householdMembers"] = flat["otrosResidentes"]

    return flat


def get_field(survey: dict[str, Any], path: str | None) -> Any:
    """Look up a field, following dot-paths ("mama.tieneAlergias") into nested dicts."""
    if not path or not survey:
        return None
    if path in survey:
        return survey[path]
    current: Any = survey
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def has_value(value: Any) -> bool:
    """True when an answer was actually given (empty strings/lists count as missing)."""
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    if isinstance(value, (list, tuple, dict)) and not value:
        return False
    return True


def is_affirmative(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0
    if isinstance(value, str):
        text = value.strip().lower()
        return bool(text) and text not in NEGATIVE_ANSWERS
    return False


def is_explicit_no(value: Any) -> bool:
    if value is False:
        return True
    return isinstance(value, str) and value.strip().lower() in {"no", "ninguno", "false", "0"}


def parse_number(value: Any) -> float | None:
    """Numeric answer as float; None for missing, non-numeric or non-finite answers."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", ".")
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None
