"""
Scenario self-check: testing the engine against known clinical cases.

Approach: canned children with a known expected outcome - a specific
criterion status or overall status. If a rule table or validator change makes
the engine miss a case a clinician would flag (or flag a benign child), the
suite fails.

The suite includes:
- deficit cases (low milk/solids with reflux, early waking, screen time and
  room temperature, a life change mentioned in chat, a toddler over the milk
  ceiling)
- controls that must NOT alert (a benign survey-only child, reflux ruled out
  in the survey, a young infant on a variable schedule)

No network access: feeding notes are never classified here.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sleep_diagnostic.models import DiagnosticResult, ScenarioSuiteResult, StatusLevel, ValidationInput
from sleep_diagnostic.pipeline import evaluate

REFERENCE_TIME = datetime(2025, 3, 14, 20, 0)


def _at(days_ago: int, clock: str) -> str:
    hours, minutes = map(int, clock.split(":"))
    moment = (REFERENCE_TIME - timedelta(days=days_ago)).replace(hour=hours, minute=minutes)
    return moment.isoformat()

def _event(kind: str, days_ago: int, clock: str, **fields) -> dict:
    return {"_id": f"{kind}-{days_ago}-{clock}", "eventType": kind, "startTime": _at(days_ago, clock), **fields}


BENIGN_SURVEY = {
    "informacionFamiliar": {
        "mama": {"pensamientosNegativos": "no", "tieneAlergias": False, "puedeDormir": "si"},
        "papa": {"tieneAlergias": False},
    },
    "dinamicaFamiliar": {"comparteHabitacion": "no", "quienAtiende": "ambos"},
    "historial": {"alimentacion": "mixta", "comeSolidos": True, "pesoHijo": 9.1, "percentilPeso": 50},
    "desarrolloSalud": {
        "reflujoColicos": "no",
        "percentilBajo": "no",
        "congestionNasal": "no",
        "dermatitisEczema": "no",
        "infeccionesOido": "no",
        "ronca": "no",
        "respiraBoca": "no",
        "inquietoSegundaParte": "no",
        "sudoracionNocturna": "no",
        "muchaPipiNoche": "no",
        "despiertaAsustado": "no",
        "pesadillasFinNoche": "no",
        "inquietoPrimeraParte": "no",
        "terroresNocturnos": "no",
        "tardaDormirse": "no",
        "pataleaDormirse": "no",
        "actividadBedtime": "no",
    },
    "rutinaHabitos": {
        "horaDormir": "19:30",
        "horaDespertar": "06:30",
        "tomaSiestas": True,
        "numeroSiestas": "2",
        "duracionTotalSiestas": "75",
        "dondeDuerme": "cuna en su cuarto",
        "temperaturaCuarto": "23",
        "roomHumidity": 50,
        "screenTime": 0,
        "principalPreocupacion": "despertares nocturnos",
    },
}


SCENARIOS = [
    {
        "name": "low_milk_no_solids_with_reflux",
        "input": {
            "child_age_months": 7,
            "survey_data": {"reflujoColicos": "sí"},
            "events": [
                _event("feeding", 0, "07:00", feedingType="bottle", feedingAmount=6),
                _event("feeding", 0, "11:00", feedingType="bottle", feedingAmount=6),
                _event("feeding", 0, "15:00", feedingType="breast"),
            ],
        },
        "expected": {
            "G3.g3_milk_count": StatusLevel.WARNING,
            "G3.g3_solid_count": StatusLevel.ALERT,
            "G2.g2_reflux": StatusLevel.ALERT,
            "overall": StatusLevel.ALERT,
        },
        "description": "7-month-old with 3 of 4 milk feedings, no solids and reported reflux",
    },
    {
        "name": "benign_survey_only",
        "input": {"child_age_months": 10, "survey_data": BENIGN_SURVEY},
        "expected": {"overall": StatusLevel.WARNING, "no_alerts": True},
        "description": "10-month-old with a complete benign survey and no events - warnings only",
    },
    {
        "name": "early_waker",
        "input": {
            "child_age_months": 12,
            "events": [_event("wake", day, "05:15") for day in range(1, 6)],
        },
        "expected": {"G1.g1_wake_minimum": StatusLevel.ALERT},
        "description": "Toddler waking at 05:15 every day is below the 06:00 minimum",
    },
    {
        "name": "screens_and_hot_room",
        "input": {
            "child_age_months": 24,
            "survey_data": {"screenTime": 120, "roomTemperature": 28, "roomHumidity": 70},
        },
        "expected": {
            "G4.g4_screen_time": StatusLevel.ALERT,
            "G4.g4_temperature": StatusLevel.ALERT,
            "G4.g4_humidity": StatusLevel.WARNING,
        },
        "description": "Two hours of screens, a 28 °C room and 70 % humidity",
    },
    {
        "name": "daycare_in_chat",
        "input": {
            "child_age_months": 18,
            "chat_messages": ["Esta semana empezó la guardería y se despierta llorando"],
        },
        "expected": {"G4.g4_recent_changes": StatusLevel.ALERT},
        "description": "Starting daycare mentioned in chat is a recent major change",
    },
    {
        "name": "toddler_over_milk_ceiling",
        "input": {
            "child_age_months": 18,
            "events": [
                _event("feeding", 0, "07:00", feedingType="bottle", feedingAmount=8),
                _event("feeding", 0, "12:00", feedingType="bottle", feedingAmount=8),
                _event("feeding", 0, "16:00", feedingType="bottle", feedingAmount=8),
            ],
        },
        "expected": {"G3.g3_milk_limit": StatusLevel.ALERT},
        "description": "24 oz of milk at 18 months exceeds the 16 oz ceiling",
    },
    {
        "name": "reflux_ruled_out",
        "input": {"child_age_months": 9, "survey_data": {"reflujoColicos": "no", "irritable": "sí"}},
        "expected": {"G2.g2_reflux": StatusLevel.OK},
        "description": "Explicit no to reflux/colic overrides a single positive reflux indicator",
    },
    {
        "name": "young_infant_variable_schedule",
        "input": {
            "child_age_months": 2,
            "events": [_event("nap", 0, "09:00"), _event("nap", 0, "10:30"), _event("nap", 0, "12:00")],
        },
        "expected": {
            "G1.g1_nap_count": StatusLevel.OK,
            "G3.g3_solid_count": StatusLevel.OK,
            "G3.g3_nutrition_groups": StatusLevel.OK,
        },
        "description": "2-month-old: nap count and solids rules do not apply",
    },
]


def find_criterion_status(result: DiagnosticResult, group_id: str, criterion_id: str) -> StatusLevel | None:
    group = getattr(result.groups, group_id)
    for criterion in group.criteria:
        if criterion.id == criterion_id:
            return criterion.status
    return None


def _check(result: DiagnosticResult, expected: dict) -> list[str]:
    """Return the list of unmet expectations (empty when the scenario passes)."""
    failures = []
    for key, want in expected.items():
        if key == "overall":
            if result.overall_status != want:
                failures.append(f"overall {result.overall_status.value} != {want.value}")
        elif key == "no_alerts":
            alerts = [a.id for a in result.alerts if a.severity == StatusLevel.ALERT]
            if want and alerts:
                failures.append(f"unexpected alerts {alerts}")
        else:
            group_id, criterion_id = key.split(".", 1)
            got = find_criterion_status(result, group_id, criterion_id)
            if got != want:
                failures.append(f"{key} {got.value if got else None} != {want.value}")
    return failures


def run_scenario_suite() -> ScenarioSuiteResult:
    """
    Run every canned scenario through the engine.

    Returns:
        ScenarioSuiteResult with pass rate and per-scenario details
    """
    details = []
    passed = 0

    for scenario in SCENARIOS:
        data = ValidationInput(
            child_id=scenario["name"],
            reference_time=REFERENCE_TIME,
            **scenario["input"],
        )
        result = evaluate(data)
        failures = _check(result, scenario["expected"])

        if failures:
            details.append(f"  FAIL [{scenario['name']}]: {scenario['description']} ({'; '.join(failures)})")
        else:
            passed += 1
            details.append(f"  PASS [{scenario['name']}]: {scenario['description']}")

    total = len(SCENARIOS)
    return ScenarioSuiteResult(
        scenarios_total=total,
        scenarios_passed=passed,
        pass_rate=passed / total if total else 0.0,
        details=details,
    )
