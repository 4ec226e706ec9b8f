"""
Medical indicator catalogs (G2): reflux, obstructive apnea/allergy and
restless legs.

Each indicator is either backed by a survey answer (survey_field, dot-paths
allowed) or derived from the event log by one of the predicates below.
"""

from __future__ import annotations

from sleep_diagnostic.events import Event
from sleep_diagnostic.models import MedicalCondition, MedicalIndicatorConfig

PROLONGED_WAKING_MINUTES = 30
SHORT_NAP_MINUTES = 30
NAP_SPREAD_HOURS = 2


# ---------------------------------------------------------------------------
# Event-derived predicates
# ---------------------------------------------------------------------------

def has_prolonged_night_waking(events: list[Event]) -> bool:
    """Any night waking where the child stayed awake more than 30 minutes."""
    return any(
        e.event_type == "night_waking"
        and e.awake_delay is not None
        and e.awake_delay > PROLONGED_WAKING_MINUTES
        for e in events
    )

def has_second_half_fragmentation(events: list[Event]) -> bool:
    """Night wakings cluster in the 03:00-07:00 stretch rather than before 03:00."""
    wakings = [e for e in events if e.event_type == "night_waking"]
    if len(wakings) < 2:
        return False
    early = sum(1 for e in wakings if e.start_time.hour < 3)
    late = sum(1 for e in wakings if 3 <= e.start_time.hour < 7)
    return late > early

def has_disorganized_naps(events: list[Event]) -> bool:
    """Several short naps, or nap start times scattered over more than two hours."""
    naps = [e for e in events if e.event_type == "nap"]
    if len(naps) < 3:
        return False

    short = sum(
        1 for n in naps
        if n.duration_minutes is not None and n.duration_minutes < SHORT_NAP_MINUTES
    )
    if short >= 2:
        return True

    hours = [n.start_time.hour for n in naps]
    return max(hours) - min(hours) > NAP_SPREAD_HOURS


# ---------------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------------

def _survey(condition, indicator_id, name, description, field):
    return MedicalIndicatorConfig(
        id=indicator_id, name=name, description=description,
        condition=condition, survey_field=field,
    )

def _derived(condition, indicator_id, name, description, check):
    return MedicalIndicatorConfig(
        id=indicator_id, name=name, description=description,
        condition=condition, event_check=check,
    )


_R = MedicalCondition.REFLUX
REFLUX_INDICATORS: tuple[MedicalIndicatorConfig, ...] = (
    _survey(_R, "reflux_colicos", "Reflux/colic", "Frequent reflux or colic", "reflujoColicos"),
    _survey(_R, "reflux_percentil_bajo", "Low weight percentile", "Below the expected weight percentile", "percentilBajo"),
    _survey(_R, "reflux_congestion_nasal", "Nasal congestion", "Frequent nasal congestion", "congestionNasal"),
    _survey(_R, "reflux_dermatitis", "Dermatitis/eczema", "Dermatitis or eczema", "dermatitisEczema"),
    _survey(_R, "reflux_posicion_vertical", "Only tolerates upright", "Only calm when held upright", "posicionVertical"),
    _survey(_R, "reflux_llora_despertar", "Cries on waking", "Cries on waking and only the breast soothes", "lloraDespertar"),
    _survey(_R, "reflux_vomita_frecuente", "Frequent vomiting", "Vomits often after feeding", "vomitaFrecuente"),
    _survey(_R, "reflux_tomas_frecuentes", "Very frequent feeds", "Breastfeeds every 45-60 minutes", "tomasFrecuentes"),
    _survey(_R, "reflux_irritable", "Frequently irritable", "Often irritable", "irritable"),
    _survey(_R, "reflux_factor_hereditario", "Hereditary factor", "Parents have a history of allergies", "alergiasPadres"),
)

_A = MedicalCondition.APNEA
APNEA_INDICATORS: tuple[MedicalIndicatorConfig, ...] = (
    _survey(_A, "apnea_congestion_nasal", "Nasal congestion", "Frequent nasal congestion", "congestionNasal"),
    _survey(_A, "apnea_infecciones_oido", "Ear infections", "Frequent ear infections", "infeccionesOido"),
    _survey(_A, "apnea_ronca", "Snores", "Snores during sleep", "ronca"),
    _survey(_A, "apnea_dermatitis", "Dermatitis/eczema", "Dermatitis or eczema", "dermatitisEczema"),
    _survey(_A, "apnea_respira_boca", "Mouth breathing", "Breathes through the mouth", "respiraBoca"),
    _survey(_A, "apnea_inquieto_segunda_parte", "Restless late night", "Restless during the second half of the night", "inquietoSegundaParte"),
    _survey(_A, "apnea_sudoracion", "Night sweats", "Sweats heavily at night", "sudoracionNocturna"),
    _survey(_A, "apnea_mucha_pipi", "Frequent night urination", "Urinates often during the night", "muchaPipiNoche"),
    _derived(_A, "apnea_insomnio", "Insomnia", "Night wakings longer than 30 minutes", has_prolonged_night_waking),
    _derived(_A, "apnea_despertares_segunda_parte", "Late-night wakings", "Wakings increase in the second half of the night", has_second_half_fragmentation),
    _survey(_A, "apnea_despierta_asustado", "Wakes frightened", "Wakes up scared during the night", "despiertaAsustado"),
    _survey(_A, "apnea_pesadillas", "Late-night nightmares", "Nightmares toward the end of the night", "pesadillasFinNoche"),
)

_L = MedicalCondition.RESTLESS_LEG
RESTLESS_LEG_INDICATORS: tuple[MedicalIndicatorConfig, ...] = (
    _derived(_L, "restless_siestas_desorganizadas", "Disorganized naps", "Short naps or no predictable nap schedule", has_disorganized_naps),
    _survey(_L, "restless_inquieto_primera_parte", "Restless early night", "Restless during the first half of the night", "inquietoPrimeraParte"),
    _survey(_L, "restless_terrores_nocturnos", "Night terrors", "Night terrors early in the night", "terroresNocturnos"),
    _survey(_L, "restless_tarda_dormirse", "Slow to fall asleep", "Takes more than 30 minutes to fall asleep", "tardaDormirse"),
    _survey(_L, "restless_patalea", "Kicks when falling asleep", "Kicks while trying to fall asleep", "pataleaDormirse"),
    _survey(_L, "restless_actividad_bedtime", "Seeks activity at bedtime", "Wants to walk, crawl or stand at bedtime", "actividadBedtime"),
)

MEDICAL_INDICATORS: dict[MedicalCondition, tuple[MedicalIndicatorConfig, ...]] = {
    MedicalCondition.REFLUX: REFLUX_INDICATORS,
    MedicalCondition.APNEA: APNEA_INDICATORS,
    MedicalCondition.RESTLESS_LEG: RESTLESS_LEG_INDICATORS,
}

CONDITION_NAMES = {
    MedicalCondition.REFLUX: "Reflux",
    MedicalCondition.APNEA: "Obstructive apnea / allergy",
    MedicalCondition.RESTLESS_LEG: "Restless legs",
}


def indicators_for_condition(condition: MedicalCondition) -> tuple[MedicalIndicatorConfig, ...]:
    return MEDICAL_INDICATORS[condition]
