"""
CellarEngine: the public entry point.

Wires the readiness calculator, pairing/lineup planner and backfill
orchestrator to a store. Algorithm version and the current year are
explicit so every result is reproducible.
"""

from typing import Callable, Iterable, List, Optional, Union

from cellarwise.backfill import BackfillOrchestrator, resolve_and_save_profile, system_year
from cellarwise.config import (
    BACKFILL_BATCH_SIZE,
    BACKFILL_WORKERS,
    LINEUP_MAX_POWER_JUMP,
    LINEUP_MIN_RATING,
    READINESS_ALGORITHM_VERSION,
)
from cellarwise.constants import BackfillMode
from cellarwise.error_handling import WineNotFound
from cellarwise.heuristics import HeuristicProfileEstimator
from cellarwise.lineup import LineupOrderer, LineupPlan
from cellarwise.pairing import PairingScorer
from cellarwise.profile_source import ProfileSource
from cellarwise.readiness import ReadinessCalculator
from cellarwise.schema import (
    BackfillJob,
    Bottle,
    FoodProfile,
    LineupSlot,
    ReadinessResult,
    StructuralProfile,
    WineRecord,
)
from cellarwise.stores import JobStore, WineStore
from cellarwise.utils import logger


FoodInput = Union[FoodProfile, dict, None]


class CellarEngine:
    """Readiness, pairing and backfill over one wine store."""

    def __init__(
        self,
        wine_store: WineStore,
        job_store: Optional[JobStore] = None,
        algorithm_version: int = READINESS_ALGORITHM_VERSION,
        current_year: Optional[int] = None,
        profile_source: Optional[ProfileSource] = None,
        estimator: Optional[HeuristicProfileEstimator] = None,
        batch_size: int = BACKFILL_BATCH_SIZE,
        workers: int = BACKFILL_WORKERS,
        min_rating: float = LINEUP_MIN_RATING,
        max_power_jump: int = LINEUP_MAX_POWER_JUMP,
    ):
        """
        Args:
            wine_store: Row storage
            job_store: Job storage (defaults to wine_store when it implements both)
            algorithm_version: Version stamped on every readiness result
            current_year: Fixed reference year; the system clock when omitted
            profile_source: AI profile lookup; heuristic only when omitted
        """
        if job_store is None:
            if not isinstance(wine_store, JobStore):
                raise TypeError("job_store is required when wine_store is not also a JobStore")
            job_store = wine_store

        self.wine_store = wine_store
        self.job_store = job_store
        self.algorithm_version = algorithm_version
        self.profile_source = profile_source
        self.estimator = estimator or HeuristicProfileEstimator()
        self.clock: Callable[[], int] = (lambda: current_year) if current_year is not None else system_year

        self.calculator = ReadinessCalculator(algorithm_version, self.estimator)
        self.lineup = LineupOrderer(
            scorer=PairingScorer(),
            estimator=self.estimator,
            min_rating=min_rating,
            max_power_jump=max_power_jump,
        )
        self.backfill = BackfillOrchestrator(
            wine_store,
            job_store,
            algorithm_version,
            profile_source=profile_source,
            estimator=self.estimator,
            clock=self.clock,
            batch_size=batch_size,
            workers=workers,
        )

    # =======================
    # READINESS
    # =======================

    def compute_readiness(self, wine: WineRecord, profile: Optional[StructuralProfile] = None) -> ReadinessResult:
        """Readiness for a wine record without touching storage."""
        return self.calculator.compute_for_wine(wine, self.clock(), profile)

    def recompute_readiness(self, wine_id: str) -> ReadinessResult:
        """
        Recompute and persist readiness for one row.

        Raises:
            WineNotFound: unknown id or a row without a wine record
        """
        row = self.wine_store.get_wine_row(wine_id)
        if row is None or row.wine is None:
            raise WineNotFound(wine_id)

        profile = resolve_and_save_profile(row, self.profile_source, self.wine_store)
        result = self.calculator.compute_for_wine(row.wine, self.clock(), profile)
        self.wine_store.save_readiness(row.row_id, result)
        logger.info(f"Recomputed readiness for {wine_id}: {result.status.value} ({result.score})")
        return result

    # =======================
    # BACKFILL
    # =======================

    def start_backfill(self, mode: Union[BackfillMode, str] = BackfillMode.STALE_OR_MISSING) -> BackfillJob:
        return self.backfill.start(BackfillMode(mode))

    def resume_backfill(self, job_id: str, max_batches: Optional[int] = 1) -> BackfillJob:
        return self.backfill.resume(job_id, max_batches)

    def cancel_backfill(self, job_id: str) -> BackfillJob:
        return self.backfill.cancel(job_id)

    def requeue_backfill(self, job_id: str) -> BackfillJob:
        return self.backfill.requeue(job_id)

    def get_job_status(self, job_id: str) -> BackfillJob:
        return self.backfill.get_status(job_id)

    # =======================
    # LINEUP
    # =======================

    @staticmethod
    def _food(food: FoodInput) -> FoodProfile:
        if isinstance(food, FoodProfile):
            return food
        return FoodProfile.model_validate(food or {})

    def plan_lineup(self, candidate_pool: Optional[Iterable[Bottle]], food: FoodInput, seat_count: int) -> LineupPlan:
        """Lineup plan with diagnostics. Uses in-stock bottles when no pool is given."""
        if candidate_pool is None:
            candidate_pool = self.wine_store.get_in_stock_bottles()
        return self.lineup.plan(candidate_pool, self._food(food), seat_count)

    def score_lineup(self, candidate_pool: Optional[Iterable[Bottle]], food: FoodInput, seat_count: int) -> List[LineupSlot]:
        """Ordered lineup slots, light to bold."""
        return self.plan_lineup(candidate_pool, food, seat_count).slots


__all__ = ['CellarEngine']
