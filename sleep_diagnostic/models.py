"""
Pydantic data models for the diagnostic validation engine.

Every component (rule repositories, the four group validators, the food
classifier, the aggregator) produces typed output conforming to these models.
The final DiagnosticResult is what gets serialized and consumed by the
dashboard, the advisory assistant and the notification pipeline.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Shared enums
# ---------------------------------------------------------------------------

class StatusLevel(str, Enum):
    OK = "ok"            # criterion met
    WARNING = "warning"  # minor deviation or missing data
    ALERT = "alert"      # clinically relevant deviation

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

_STATUS_RANK = {StatusLevel.OK: 0, StatusLevel.WARNING: 1, StatusLevel.ALERT: 2}

class SourceType(str, Enum):
    SURVEY = "survey"
    EVENT = "event"
    PLAN = "plan"
    CHAT = "chat"
    CALCULATED = "calculated"

class GroupId(str, Enum):
    G1 = "G1"  # schedule
    G2 = "G2"  # medical
    G3 = "G3"  # nutrition
    G4 = "G4"  # environmental

class MedicalCondition(str, Enum):
    REFLUX = "reflux"
    APNEA = "apnea"
    RESTLESS_LEG = "restless_leg"

class NutritionGroup(str, Enum):
    PROTEIN = "protein"
    CARBOHYDRATE = "carbohydrate"
    FAT = "fat"
    FIBER = "fiber"


CriterionValue = Union[bool, int, float, str, None]


# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------

class NutritionClassification(BaseModel):
    """Food-group tags produced for a single feeding note."""
    groups: list[NutritionGroup] = []
    ai_classified: bool = False
    confidence: float | None = Field(default=None, ge=0, le=1)
    raw_text: str | None = None

class ValidationInput(BaseModel):
    """Everything the engine needs for one child, already materialized."""
    child_id: str
    child_age_months: int
    survey_data: dict[str, Any] = Field(default_factory=dict)
    events: list[dict[str, Any]] = Field(default_factory=list)
    plan: dict[str, Any] | None = None
    chat_messages: list[str] = Field(default_factory=list)

    child_name: str = ""
    plan_id: str | None = None
    plan_version: str | None = None
    reference_time: datetime | None = Field(
        default=None, description="Evaluation clock; defaults to now"
    )
    nutrition_classifications: list[NutritionClassification] | None = Field(
        default=None,
        description="Precomputed G3 enrichment; skips the classifier when set",
    )


# ---------------------------------------------------------------------------
# Criterion / group layer
# ---------------------------------------------------------------------------

class CriterionResult(BaseModel):
    """One evaluated clinical check."""
    id: str
    name: str
    status: StatusLevel
    value: CriterionValue = None
    expected: CriterionValue = None
    message: str
    source_type: SourceType
    source_field: str | None = None
    source_id: str | None = None  # originating event id for deep linking
    data_available: bool

class DataCompleteness(BaseModel):
    """How many of a group's checks had underlying data."""
    available: int
    total: int
    pending: list[str] = []

class GroupValidation(BaseModel):
    group_id: GroupId
    group_name: str
    status: StatusLevel
    criteria: list[CriterionResult]
    data_completeness: DataCompleteness
    summary: str


# G1 ----------------------------------------------------------------------

class WakeTimeDetail(BaseModel):
    actual: str
    expected: str
    deviation_minutes: int
    status: StatusLevel

class NightDurationDetail(BaseModel):
    actual: float
    expected: float
    deviation_hours: float
    status: StatusLevel

class NapCountDetail(BaseModel):
    actual: int
    expected: int = Field(description="-1 when the age band is variable")
    status: StatusLevel

class SleepWindowsDetail(BaseModel):
    actual: list[float] = []
    expected: list[float] = []
    status: StatusLevel

class ScheduleGroupValidation(GroupValidation):
    wake_time: WakeTimeDetail
    night_duration: NightDurationDetail
    nap_count: NapCountDetail
    sleep_windows: SleepWindowsDetail


# G2 ----------------------------------------------------------------------

class MedicalIndicator(BaseModel):
    """A single indicator after evaluation against this child's data."""
    id: str
    name: str
    description: str
    condition: MedicalCondition
    survey_field: str | None = None
    event_derived: bool = False
    available: bool
    detected: bool

class MedicalGroupValidation(GroupValidation):
    indicators: dict[MedicalCondition, list[MedicalIndicator]]
    detected_count: dict[MedicalCondition, int]
    pending_count: dict[MedicalCondition, int]


# G3 ----------------------------------------------------------------------

class FeedingCount(BaseModel):
    count: int
    required: int
    status: StatusLevel

class NutritionGroupValidation(GroupValidation):
    milk_feedings: FeedingCount
    solid_feedings: FeedingCount
    nutrition_groups_covered: list[NutritionGroup] = []
    nutrition_groups_required: list[NutritionGroup] = []
    ai_classifications: list[NutritionClassification] = []


# G4 ----------------------------------------------------------------------

class KeywordMatch(BaseModel):
    keyword: str
    category: str
    found_in: str = Field(description="First 100 characters of the matching text")

class EnvironmentalGroupValidation(GroupValidation):
    detected_keywords: list[str] = []
    keyword_matches: list[KeywordMatch] = []
    factors: dict[str, CriterionResult] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Rule rows (static configuration, never mutated)
# ---------------------------------------------------------------------------

class AgeScheduleRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    age_range: str
    age_min_months: int
    age_max_months: int
    nap_count: int = Field(description="-1 = variable")
    nap_max_duration: int = Field(description="Minutes; -1 = no limit")
    windows: tuple[float, ...] = Field(description="Expected awake windows in hours")
    no_nap_before: str
    no_nap_hours_before_bedtime: float
    night_duration_hours: float
    milk_min_count: int
    milk_interval_hours: float
    solid_min_count: int

class NutritionRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    age_range: str
    age_min_months: int
    age_max_months: int
    milk_min_count: int
    milk_max_oz: float | None = Field(description="None = no ceiling")
    solid_min_count: int
    meal_required_groups: tuple[NutritionGroup, ...]
    snack_required_groups: tuple[NutritionGroup, ...]

class MealGroupCheck(BaseModel):
    """Outcome of checking one meal's food groups against the age requirement."""
    valid: bool
    missing: list[NutritionGroup] = []
    one_of_missing: bool = False
    message: str

    @property
    def missing_count(self) -> int:
        return len(self.missing) + (1 if self.one_of_missing else 0)

class MilkLimitCheck(BaseModel):
    exceeded: bool
    max_oz: float | None = None
    message: str

class MedicalIndicatorConfig(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    name: str
    description: str
    condition: MedicalCondition
    survey_field: str | None = None
    event_check: Any = Field(
        default=None, description="Callable[[list[Event]], bool] over the event slice"
    )

class EnvironmentalFactor(BaseModel):
    """A single G4 factor: which survey field, how to judge it, how bad a miss is."""
    model_config = ConfigDict(frozen=True)

    id: str
    criterion_id: str
    name: str
    description: str
    survey_field: str
    kind: str = Field(description="max | range | affirmative | pattern")
    minimum: float | None = None
    maximum: float | None = None
    unit: str = ""
    expected: str
    failure_status: StatusLevel


# ---------------------------------------------------------------------------
# Diagnostic result (per child)
# ---------------------------------------------------------------------------

class Alert(BaseModel):
    """UI-ready projection of one failing criterion."""
    id: str
    group_id: GroupId
    criterion_id: str
    message: str
    severity: StatusLevel
    source_type: SourceType
    source_field: str | None = None
    source_id: str | None = None
    timestamp: datetime

class DiagnosticGroups(BaseModel):
    G1: ScheduleGroupValidation
    G2: MedicalGroupValidation
    G3: NutritionGroupValidation
    G4: EnvironmentalGroupValidation

    def as_list(self) -> list[GroupValidation]:
        return [self.G1, self.G2, self.G3, self.G4]

class DiagnosticResult(BaseModel):
    """Complete diagnostic for a single child. This is the core output."""
    child_id: str
    child_name: str = ""
    child_age_months: int
    plan_id: str | None = None
    plan_version: str | None = None
    evaluated_at: datetime
    groups: DiagnosticGroups
    alerts: list[Alert] = []
    overall_status: StatusLevel
    data_level: str = Field(description="full | survey_events | survey_only | none")
    missing_data_sources: list[str] = []


# ---------------------------------------------------------------------------
# Batch / self-check reports
# ---------------------------------------------------------------------------

class BatchSummary(BaseModel):
    """Aggregate view across many evaluated children."""
    total_children: int
    status_distribution: dict[str, int] = Field(default_factory=dict)
    total_alerts: int = 0
    total_warnings: int = 0
    alerts_by_group: dict[str, int] = Field(default_factory=dict)
    most_common_failing_criteria: list[dict] = Field(default_factory=list)

class ScenarioSuiteResult(BaseModel):
    """Results from running the engine over canned clinical scenarios."""
    scenarios_total: int
    scenarios_passed: int
    pass_rate: float = Field(ge=0, le=1)
    details: list[str] = Field(description="Per-scenario details for transparency")
