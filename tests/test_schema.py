"""
Tests for Pydantic schemas.

Validates that data models enforce correct constraints.
"""

import math

import pytest
from pydantic import ValidationError

from cellarwise.constants import BackfillMode, Confidence, JobStatus, ProfileOrigin, ReadinessStatus, WineColor
from cellarwise.schema import (
    BackfillJob,
    Bottle,
    ReadinessResult,
    RowFilter,
    StructuralProfile,
    WineRecord,
    WineRow,
)


def readiness(**overrides):
    values = dict(
        score=80,
        status=ReadinessStatus.PEAK,
        drink_window_start=2020,
        drink_window_end=2030,
        confidence=Confidence.MED,
        reasons=["age 5"],
        algorithm_version=3,
    )
    values.update(overrides)
    return ReadinessResult(**values)


class TestStructuralProfile:
    """Test StructuralProfile validation."""

    def test_valid_profile(self):
        profile = StructuralProfile(body=3, tannin=2, acidity=4, oak=1)
        assert profile.sweetness == 0
        assert profile.confidence is None
        assert profile.source == ProfileOrigin.AI

    @pytest.mark.parametrize("axis", ["body", "tannin", "acidity", "oak", "sweetness"])
    def test_axis_above_maximum_raises_error(self, axis):
        values = dict(body=3, tannin=3, acidity=3, oak=3, sweetness=0)
        values[axis] = 6
        with pytest.raises(ValidationError) as exc_info:
            StructuralProfile(**values)
        assert axis in str(exc_info.value)

    def test_negative_axis_raises_error(self):
        with pytest.raises(ValidationError):
            StructuralProfile(body=-1, tannin=3, acidity=3, oak=3)

    def test_power_is_derived(self):
        """Supplied power is ignored; the formula decides."""
        profile = StructuralProfile(body=1, tannin=1, acidity=0, oak=0, power=9)
        assert profile.power == 2

    def test_power_is_clamped(self):
        assert StructuralProfile(body=5, tannin=5, acidity=5, oak=5, sweetness=5).power == 10
        assert StructuralProfile(body=0, tannin=0, acidity=0, oak=0).power == 1

    def test_power_serialized(self):
        dumped = StructuralProfile(body=2, tannin=2, acidity=5, oak=2).model_dump()
        assert dumped["power"] == 7

    def test_profile_is_frozen(self):
        profile = StructuralProfile(body=3, tannin=3, acidity=3, oak=3)
        with pytest.raises(ValidationError):
            profile.body = 4


class TestReadinessResult:
    """Test ReadinessResult invariants."""

    def test_valid_result(self):
        assert readiness().score == 80

    def test_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            readiness(drink_window_start=2031, drink_window_end=2030)

    def test_single_year_window_allowed(self):
        assert readiness(drink_window_start=2024, drink_window_end=2024).drink_window_end == 2024

    def test_reasons_required(self):
        with pytest.raises(ValidationError):
            readiness(reasons=[])

    @pytest.mark.parametrize("score", [-1, 101])
    def test_score_range(self, score):
        with pytest.raises(ValidationError):
            readiness(score=score)

    def test_version_must_be_positive(self):
        with pytest.raises(ValidationError):
            readiness(algorithm_version=0)

    def test_json_round_trip(self):
        result = readiness()
        assert ReadinessResult.model_validate_json(result.model_dump_json()) == result


class TestWineRecord:
    """Test tolerant parsing of inventory records."""

    @pytest.mark.parametrize("raw, expected", [
        (2015, 2015),
        (2015.0, 2015),
        ("2015", 2015),
        (" 2015 ", 2015),
        ("NV", None),
        ("", None),
        (None, None),
        (math.nan, None),
    ])
    def test_vintage_coercion(self, raw, expected):
        assert WineRecord(vintage_year=raw).vintage_year == expected

    def test_vintage_aliases(self):
        assert WineRecord.model_validate({"vintageYear": 2019}).vintage_year == 2019
        assert WineRecord.model_validate({"vintage": 2018}).vintage_year == 2018

    def test_grapes_from_string(self):
        wine = WineRecord(grapes="Grenache, Syrah,  Mourvedre ,")
        assert wine.grapes == ["Grenache", "Syrah", "Mourvedre"]

    def test_grapes_none(self):
        assert WineRecord(grapes=None).grapes == []

    @pytest.mark.parametrize("raw, color", [
        ("Rosé", WineColor.ROSE),
        ("Sparkling Brut", WineColor.SPARKLING),
        ("WHITE", WineColor.WHITE),
        ("orange", WineColor.RED),
        (None, WineColor.RED),
    ])
    def test_color_parsing(self, raw, color):
        assert WineRecord(color=raw).color == color

    def test_numeric_id_becomes_string(self):
        assert WineRecord(wine_id=42).wine_id == "42"

    def test_region_none_becomes_empty(self):
        assert WineRecord(region=None).region == ""


class TestBottle:
    """Test Bottle validation."""

    def test_rating_range(self):
        with pytest.raises(ValidationError):
            Bottle(bottle_id="b", wine_id="w", rating=5.5)

    def test_quantity_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            Bottle(bottle_id="b", wine_id="w", quantity=-1)

    def test_ids_coerced(self):
        bottle = Bottle(bottle_id=7, wine_id=8)
        assert (bottle.bottle_id, bottle.wine_id) == ("7", "8")


class TestRowFilter:
    """Test backfill row selection."""

    @pytest.fixture
    def rows(self):
        return {
            "missing": WineRow(row_id="1"),
            "stale": WineRow(row_id="2", readiness=readiness(algorithm_version=2)),
            "current": WineRow(row_id="3", readiness=readiness(algorithm_version=3)),
        }

    @pytest.mark.parametrize("mode, selected", [
        (BackfillMode.MISSING_ONLY, {"missing"}),
        (BackfillMode.STALE_OR_MISSING, {"missing", "stale"}),
        (BackfillMode.FORCE_ALL, {"missing", "stale", "current"}),
    ])
    def test_modes(self, rows, mode, selected):
        row_filter = RowFilter(mode=mode, algorithm_version=3)
        assert {name for name, row in rows.items() if row_filter.matches(row)} == selected


class TestBackfillJob:
    """Test job defaults."""

    def test_defaults(self):
        job = BackfillJob(mode="force_all", algorithm_version_at_start=3, batch_size=100)
        assert job.status == JobStatus.IDLE
        assert job.cursor is None
        assert job.processed == job.updated == job.skipped == job.failed == 0
        assert job.failures == []
        assert len(job.id) == 32

    def test_ids_are_unique(self):
        first = BackfillJob(mode="force_all", algorithm_version_at_start=3, batch_size=100)
        second = BackfillJob(mode="force_all", algorithm_version_at_start=3, batch_size=100)
        assert first.id != second.id

    def test_row_filter_uses_start_version(self):
        job = BackfillJob(mode="stale_or_missing", algorithm_version_at_start=4, batch_size=10)
        assert job.row_filter == RowFilter(mode=BackfillMode.STALE_OR_MISSING, algorithm_version=4)

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            BackfillJob(mode="force_all", algorithm_version_at_start=3, batch_size=0)
