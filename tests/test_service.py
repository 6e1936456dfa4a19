"""
Tests for the CellarEngine entry point.
"""

import pytest

from cellarwise.constants import BackfillMode, Confidence, JobStatus, ReadinessStatus
from cellarwise.error_handling import JobAlreadyRunning, WineNotFound
from cellarwise.schema import Bottle, WineRecord
from cellarwise.service import CellarEngine
from cellarwise.stores import InMemoryCellarStore, WineStore

from conftest import ALGORITHM_VERSION, CURRENT_YEAR


@pytest.fixture
def engine(seeded_store):
    return CellarEngine(
        seeded_store,
        algorithm_version=ALGORITHM_VERSION,
        current_year=CURRENT_YEAR,
        batch_size=5,
        workers=2,
    )


class TestConstruction:
    """Store wiring."""

    def test_job_store_defaults_to_wine_store(self, seeded_store):
        engine = CellarEngine(seeded_store, current_year=CURRENT_YEAR)
        assert engine.job_store is seeded_store

    def test_job_store_required_for_plain_wine_store(self):
        class RowsOnly(WineStore):
            def list_wines(self, row_filter, cursor, limit):
                return [], cursor

            def get_wine_row(self, row_id):
                return None

            def get_wine(self, wine_id):
                return None

            def save_readiness(self, row_id, result):
                pass

            def save_profile(self, row_id, profile):
                pass

            def count_wines(self, row_filter):
                return 0

            def get_in_stock_bottles(self):
                return []

        with pytest.raises(TypeError):
            CellarEngine(RowsOnly())


class TestReadiness:
    """Single-wine readiness."""

    def test_compute_uses_fixed_year(self, engine):
        wine = WineRecord(vintage_year=CURRENT_YEAR, color="rose")
        result = engine.compute_readiness(wine)
        assert result.status == ReadinessStatus.READY_NOW
        assert result.drink_window_start == CURRENT_YEAR
        assert result.algorithm_version == ALGORITHM_VERSION

    def test_compute_with_profile(self, engine, nebbiolo_profile):
        wine = WineRecord(vintage_year=2015, color="red", grapes=["Nebbiolo"])
        assert engine.compute_readiness(wine, nebbiolo_profile).confidence == Confidence.HIGH

    def test_recompute_persists(self, engine, seeded_store):
        result = engine.recompute_readiness("r001")
        assert seeded_store.get_wine_row("r001").readiness == result

    def test_recompute_unknown_row(self, engine):
        with pytest.raises(WineNotFound):
            engine.recompute_readiness("missing")

    def test_recompute_orphan_row(self, engine):
        with pytest.raises(WineNotFound):
            engine.recompute_readiness("r013")


class TestBackfill:
    """Backfill through the engine."""

    def test_start_accepts_mode_string(self, engine):
        job = engine.start_backfill("missing_only")
        assert job.mode == BackfillMode.MISSING_ONLY

    def test_default_mode_is_stale_or_missing(self, engine):
        assert engine.start_backfill().mode == BackfillMode.STALE_OR_MISSING

    def test_full_lifecycle(self, engine):
        job = engine.start_backfill(BackfillMode.FORCE_ALL)
        with pytest.raises(JobAlreadyRunning):
            engine.start_backfill(BackfillMode.FORCE_ALL)

        engine.resume_backfill(job.id)
        engine.cancel_backfill(job.id)
        assert engine.resume_backfill(job.id).status == JobStatus.CANCELLED

        engine.requeue_backfill(job.id)
        finished = engine.resume_backfill(job.id, max_batches=None)

        assert finished.status == JobStatus.COMPLETED
        assert engine.get_job_status(job.id).processed == 13

    def test_unknown_mode_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.start_backfill("everything")


class TestLineup:
    """Lineup planning through the engine."""

    def test_uses_in_stock_bottles(self, make_profile):
        store = InMemoryCellarStore()
        store.add_wine("b1", WineRecord(wine_id="w1"), profile=make_profile(body=1, tannin=1, acidity=0, oak=0))
        store.add_bottle(Bottle(bottle_id="b1", wine_id="w1", rating=4.0, quantity=2))
        store.add_bottle(Bottle(bottle_id="b2", wine_id="w2", rating=4.5, quantity=0))
        store.add_bottle(Bottle(bottle_id="b3", wine_id="w3", rating=3.5, quantity=1))
        engine = CellarEngine(store, current_year=CURRENT_YEAR)

        slots = engine.score_lineup(None, {"protein": "fish"}, 4)

        assert [slot.bottle.bottle_id for slot in slots] == ["b1", "b3"]
        assert slots[0].power == 2

    def test_food_dict_is_parsed(self, engine, make_bottle):
        plan = engine.plan_lineup([make_bottle("a"), make_bottle("b")], {"spiceLevel": "high"}, 2)
        assert plan.target_count == 2
        assert len(plan.slots) == 2

    def test_explicit_pool_overrides_store(self, engine, make_bottle):
        slots = engine.score_lineup([make_bottle("only")], None, 6)
        assert [slot.bottle.bottle_id for slot in slots] == ["only"]
