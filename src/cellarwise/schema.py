"""Pydantic schemas for Cellarwise data validation."""

import math
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from cellarwise.constants import (
    BackfillMode,
    Confidence,
    JobStatus,
    Level,
    ProfileOrigin,
    Protein,
    ReadinessStatus,
    Sauce,
    WineColor,
    normalize_food_value,
)
from cellarwise.power_formula import calculate_power, calculate_structure_score
from cellarwise.utils import logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_id(value):
    if value is None:
        return value
    return str(value)


class StructuralProfile(BaseModel):
    """Numeric structure of a wine, AI-derived or heuristically estimated.

    `power` is computed from the five base axes and cannot be set directly;
    a supplied `power` key is ignored. Profiles that do not state a source
    are treated as externally supplied; the heuristic estimator always marks
    its own.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    body: int = Field(..., ge=0, le=5, description="Body weight (0=watery, 5=very full)")
    tannin: int = Field(..., ge=0, le=5, description="Tannin grip (0=none, 5=very high)")
    acidity: int = Field(..., ge=0, le=5, description="Acidity (0=flat, 5=searing)")
    oak: int = Field(..., ge=0, le=5, description="Oak influence (0=unoaked, 5=heavy)")
    sweetness: int = Field(0, ge=0, le=5, description="Residual sugar (0=bone dry, 5=lusciously sweet)")
    confidence: Optional[Confidence] = Field(None, description="Confidence in the axes (None = not stated)")
    source: ProfileOrigin = Field(ProfileOrigin.AI, description="Where the axes came from")
    style_tags: List[str] = Field(default_factory=list, description="Short kebab-case descriptors")

    @computed_field
    @property
    def power(self) -> int:
        return calculate_power(self.axes())

    def axes(self) -> Dict[str, int]:
        return {
            "body": self.body,
            "tannin": self.tannin,
            "acidity": self.acidity,
            "oak": self.oak,
            "sweetness": self.sweetness,
        }

    @property
    def structure_score(self) -> float:
        return calculate_structure_score(self.tannin, self.acidity, self.oak, self.power)


class ReadinessResult(BaseModel):
    """Drinking readiness for one wine row. Immutable once computed."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0, le=100, description="Readiness score (0-100)")
    status: ReadinessStatus
    drink_window_start: int = Field(..., description="First year of the drink window")
    drink_window_end: int = Field(..., description="Last year of the drink window")
    confidence: Confidence
    reasons: List[str] = Field(..., min_length=1, description="Ordered decisive factors")
    algorithm_version: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _window_is_ordered(self):
        if self.drink_window_start > self.drink_window_end:
            raise ValueError(
                f"drink window start {self.drink_window_start} after end {self.drink_window_end}"
            )
        return self


class WineRecord(BaseModel):
    """Wine metadata as stored by the inventory. Read-only to the engine."""

    model_config = ConfigDict(populate_by_name=True)

    wine_id: Optional[str] = None
    wine_name: Optional[str] = None
    producer: Optional[str] = None
    vintage_year: Optional[int] = Field(
        None, validation_alias=AliasChoices("vintage_year", "vintageYear", "vintage")
    )
    color: WineColor = WineColor.RED
    grapes: List[str] = Field(default_factory=list)
    region: str = ""
    appellation: Optional[str] = None

    @field_validator("wine_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return _as_id(value)

    @field_validator("vintage_year", mode="before")
    @classmethod
    def _coerce_vintage(cls, value):
        # Vintages arrive as floats from pandas/CSV and NaN for NV wines
        if value is None or value == "":
            return None
        if isinstance(value, float):
            if math.isnan(value):
                return None
            return int(value)
        if isinstance(value, str):
            text = value.strip()
            return int(text) if text.isdigit() else None
        return value

    @field_validator("color", mode="before")
    @classmethod
    def _parse_color(cls, value):
        return WineColor.parse(value)

    @field_validator("grapes", mode="before")
    @classmethod
    def _parse_grapes(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [str(grape) for grape in value if grape]

    @field_validator("region", mode="before")
    @classmethod
    def _parse_region(cls, value):
        return "" if value is None else str(value)


class FoodProfile(BaseModel):
    """Described dish. Every field optional; unset means neutral."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    protein: Optional[Protein] = None
    sauce: Optional[Sauce] = None
    spice_level: Optional[Level] = Field(
        None, validation_alias=AliasChoices("spice_level", "spiceLevel", "spice")
    )
    smoke_level: Optional[Level] = Field(
        None, validation_alias=AliasChoices("smoke_level", "smokeLevel", "smoke")
    )

    @field_validator("protein", "sauce", "spice_level", "smoke_level", mode="before")
    @classmethod
    def _lenient_enum(cls, value, info):
        if value is None or isinstance(value, (Protein, Sauce, Level)):
            return value
        normalized = normalize_food_value(value)
        allowed = {
            "protein": Protein,
            "sauce": Sauce,
            "spice_level": Level,
            "smoke_level": Level,
        }[info.field_name]
        if normalized not in {member.value for member in allowed}:
            logger.warning(f"Ignoring unknown {info.field_name} value: {value!r}")
            return None
        return normalized


class Bottle(BaseModel):
    """In-stock bottle offered to the lineup planner."""

    bottle_id: str
    wine_id: str
    wine_name: str = ""
    color: WineColor = WineColor.RED
    rating: Optional[float] = Field(None, ge=0, le=5, description="Community rating (0-5)")
    quantity: int = Field(1, ge=0)
    grapes: List[str] = Field(default_factory=list)
    region: str = ""
    readiness: Optional[ReadinessResult] = None
    profile: Optional[StructuralProfile] = None

    @field_validator("bottle_id", "wine_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value):
        return _as_id(value)

    @field_validator("color", mode="before")
    @classmethod
    def _parse_color(cls, value):
        return WineColor.parse(value)


class LineupSlot(BaseModel):
    """One position in an ordered tasting lineup."""

    position: int = Field(..., ge=1)
    label: str
    bottle: Bottle
    pairing_score: int = Field(..., ge=0, le=100)
    explanation: str
    power: int


class WineRow(BaseModel):
    """One unit of backfill work: a row key plus what is stored for it."""

    row_id: str
    wine: Optional[WineRecord] = None
    profile: Optional[StructuralProfile] = None
    readiness: Optional[ReadinessResult] = None

    @field_validator("row_id", mode="before")
    @classmethod
    def _coerce_row_id(cls, value):
        return _as_id(value)


class RowFilter(BaseModel):
    """Backfill selection: which rows a mode visits at a given version."""

    model_config = ConfigDict(frozen=True)

    mode: BackfillMode
    algorithm_version: int

    def matches(self, row: WineRow) -> bool:
        if self.mode == BackfillMode.FORCE_ALL:
            return True
        if row.readiness is None:
            return True
        if self.mode == BackfillMode.STALE_OR_MISSING:
            return row.readiness.algorithm_version != self.algorithm_version
        return False


class RowFailure(BaseModel):
    """A row that raised during backfill. Recorded, never re-raised."""

    row_id: str
    error: str


class BackfillJob(BaseModel):
    """Persisted state of a backfill job. Nothing else survives a step."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    mode: BackfillMode
    status: JobStatus = JobStatus.IDLE
    cursor: Optional[str] = Field(None, description="Key of the last committed row")
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[RowFailure] = Field(default_factory=list)
    algorithm_version_at_start: int = Field(..., ge=1)
    batch_size: int = Field(..., ge=1)
    cancel_requested: bool = False
    estimated_total: Optional[int] = None
    error: Optional[str] = Field(None, description="Fatal error that stopped the job")
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def row_filter(self) -> RowFilter:
        return RowFilter(mode=self.mode, algorithm_version=self.algorithm_version_at_start)
