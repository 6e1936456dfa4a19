"""
Readiness Backfill Orchestrator

Recomputes readiness over every wine row in resumable batches. Each step
is stateless: everything that must survive an interruption (cursor,
counters, recent failures) is persisted on the job before the step returns.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from cellarwise.config import BACKFILL_BATCH_SIZE, BACKFILL_WORKERS
from cellarwise.constants import BackfillConstants, BackfillMode, JobStatus
from cellarwise.error_handling import (
    FatalStorageError,
    InvalidJobState,
    JobAlreadyRunning,
    JobNotFound,
    describe_error,
)
from cellarwise.heuristics import HeuristicProfileEstimator
from cellarwise.profile_source import ProfileSource
from cellarwise.readiness import ReadinessCalculator
from cellarwise.schema import BackfillJob, RowFailure, RowFilter, StructuralProfile, WineRow
from cellarwise.stores import JobStore, WineStore
from cellarwise.utils import logger

UPDATED = "updated"
SKIPPED = "skipped"


def system_year() -> int:
    return date.today().year


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_profile(row: WineRow, profile_source: Optional[ProfileSource]) -> Optional[StructuralProfile]:
    """
    Stored profile first, then the profile source. None means use the heuristic.

    Profile source failures are logged and treated as a missing profile.
    """
    if row.profile is not None:
        return row.profile
    if profile_source is None:
        return None

    wine_id = (row.wine.wine_id if row.wine else None) or row.row_id
    try:
        return profile_source.get_profile(wine_id)
    except Exception as e:
        logger.warning(f"Profile source failed for {wine_id}, using heuristic: {e}")
        return None


def resolve_and_save_profile(
    row: WineRow,
    profile_source: Optional[ProfileSource],
    wine_store: WineStore,
) -> Optional[StructuralProfile]:
    """
    resolve_profile, storing a newly sourced profile on the row.

    Later runs then reuse the stored profile instead of asking the source again.
    """
    profile = resolve_profile(row, profile_source)
    if profile is not None and row.profile is None:
        wine_store.save_profile(row.row_id, profile)
        logger.debug(f"Stored {profile.source.value} profile on row {row.row_id}")
    return profile


class BackfillOrchestrator:
    """
    Batched, resumable driver of the readiness calculator.

    States: idle -> running -> {completed, cancelled, failed}.
    """

    def __init__(
        self,
        wine_store: WineStore,
        job_store: JobStore,
        algorithm_version: int,
        profile_source: Optional[ProfileSource] = None,
        estimator: Optional[HeuristicProfileEstimator] = None,
        clock: Callable[[], int] = system_year,
        batch_size: int = BACKFILL_BATCH_SIZE,
        workers: int = BACKFILL_WORKERS,
    ):
        self.wine_store = wine_store
        self.job_store = job_store
        self.algorithm_version = algorithm_version
        self.profile_source = profile_source
        self.estimator = estimator or HeuristicProfileEstimator()
        self.clock = clock
        self.batch_size = batch_size
        self.workers = workers

    # =======================
    # LIFECYCLE
    # =======================

    def start(self, mode: BackfillMode, batch_size: Optional[int] = None) -> BackfillJob:
        """
        Start a new job unless one is already running.

        Raises:
            JobAlreadyRunning: another job holds the running slot (no job row is created)
        """
        mode = BackfillMode(mode)
        row_filter = RowFilter(mode=mode, algorithm_version=self.algorithm_version)
        job = BackfillJob(
            mode=mode,
            status=JobStatus.RUNNING,
            algorithm_version_at_start=self.algorithm_version,
            batch_size=batch_size or self.batch_size,
            estimated_total=self.wine_store.count_wines(row_filter),
            started_at=_utcnow(),
        )

        if not self.job_store.create_job_if_idle(job):
            running = self.job_store.get_running_job()
            raise JobAlreadyRunning(running.id if running else None)

        logger.info(
            f"Started backfill job {job.id} (mode={mode.value}, version={self.algorithm_version}, "
            f"~{job.estimated_total} rows)"
        )
        return job

    def get_status(self, job_id: str) -> BackfillJob:
        job = self.job_store.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def cancel(self, job_id: str) -> BackfillJob:
        """Request cancellation; the next step stops the job without processing."""
        job = self.get_status(job_id)
        if job.status != JobStatus.RUNNING or not self.job_store.request_cancel(job_id):
            raise InvalidJobState(job_id, job.status.value, "cancel")
        logger.info(f"Cancel requested for backfill job {job_id}")
        return self.get_status(job_id)

    def requeue(self, job_id: str) -> BackfillJob:
        """Move a cancelled or failed job back to idle so it can be resumed."""
        job = self.get_status(job_id)
        if not self.job_store.transition(job_id, (JobStatus.CANCELLED, JobStatus.FAILED), JobStatus.IDLE):
            raise InvalidJobState(job_id, job.status.value, "requeue")
        logger.info(f"Requeued backfill job {job_id} from {job.status.value}")
        return self.get_status(job_id)

    def resume(self, job_id: str, max_batches: Optional[int] = 1) -> BackfillJob:
        """
        Continue a job from its persisted cursor.

        Idle and failed jobs re-acquire the running slot first.

        Raises:
            JobAlreadyRunning: another job is running
            InvalidJobState: the job is completed or cancelled
        """
        job = self.get_status(job_id)

        if job.status in (JobStatus.IDLE, JobStatus.FAILED):
            if not self.job_store.transition(job_id, (job.status,), JobStatus.RUNNING):
                running = self.job_store.get_running_job()
                if running is not None and running.id != job_id:
                    raise JobAlreadyRunning(running.id)
                raise InvalidJobState(job_id, self.get_status(job_id).status.value, "resume")
            logger.info(f"Resumed backfill job {job_id} from {job.status.value} at cursor {job.cursor}")
        elif job.status != JobStatus.RUNNING:
            raise InvalidJobState(job_id, job.status.value, "resume")

        return self.run(job_id, max_batches)

    def run(self, job_id: str, max_batches: Optional[int] = None) -> BackfillJob:
        """Step until the job leaves `running` or `max_batches` steps ran."""
        job = self.get_status(job_id)
        batches = 0
        while job.status == JobStatus.RUNNING and (max_batches is None or batches < max_batches):
            job = self.step(job_id)
            batches += 1
        return job

    # =======================
    # BATCH PROCESSING
    # =======================

    def step(self, job_id: str) -> BackfillJob:
        """
        Process one batch and commit cursor and counters together.

        Returns the updated job. A fatal storage error marks the job failed
        with its cursor unchanged and is not raised.
        """
        job = self.get_status(job_id)
        if job.status != JobStatus.RUNNING:
            raise InvalidJobState(job_id, job.status.value, "step")

        if job.cancel_requested:
            return self._finish(job, JobStatus.CANCELLED)

        try:
            rows, next_cursor = self.wine_store.list_wines(job.row_filter, job.cursor, job.batch_size)
            outcomes = self._process_batch(rows, job)

            failures = [o for o in outcomes if isinstance(o, RowFailure)]
            progressed = job.model_copy(update={
                "cursor": next_cursor if rows else job.cursor,
                "processed": job.processed + len(rows),
                "updated": job.updated + sum(1 for o in outcomes if o == UPDATED),
                "skipped": job.skipped + sum(1 for o in outcomes if o == SKIPPED),
                "failed": job.failed + len(failures),
                "failures": (job.failures + failures)[-BackfillConstants.MAX_RECORDED_FAILURES:],
            })
            for failure in failures:
                logger.warning(f"Backfill row {failure.row_id} failed: {failure.error}")

            if len(rows) < job.batch_size:
                progressed = progressed.model_copy(update={
                    "status": JobStatus.COMPLETED,
                    "finished_at": _utcnow(),
                })
                logger.info(
                    f"Backfill job {job_id} completed: {progressed.processed} processed, "
                    f"{progressed.updated} updated, {progressed.skipped} skipped, {progressed.failed} failed"
                )

            self.job_store.save_job(progressed)
            return progressed

        except FatalStorageError as e:
            logger.error(f"Backfill job {job_id} failed at cursor {job.cursor}: {e}")
            failed = job.model_copy(update={
                "status": JobStatus.FAILED,
                "error": describe_error(e, BackfillConstants.MAX_ERROR_LENGTH),
                "finished_at": _utcnow(),
            })
            try:
                self.job_store.save_job(failed)
            except FatalStorageError as save_error:
                logger.error(f"Could not record failure of job {job_id}: {save_error}")
            return failed

    def _process_batch(self, rows: List[WineRow], job: BackfillJob) -> List:
        if not rows:
            return []
        calculator = ReadinessCalculator(job.algorithm_version_at_start, self.estimator)
        current_year = self.clock()

        def process(row: WineRow):
            try:
                return self._process_row(row, calculator, current_year)
            except FatalStorageError:
                raise
            except Exception as e:
                return RowFailure(row_id=row.row_id, error=describe_error(e, BackfillConstants.MAX_ERROR_LENGTH))

        with ThreadPoolExecutor(max_workers=max(1, self.workers)) as pool:
            return list(pool.map(process, rows))

    def _process_row(self, row: WineRow, calculator: ReadinessCalculator, current_year: int) -> str:
        if row.wine is None:
            logger.debug(f"Skipping orphan row {row.row_id}")
            return SKIPPED

        profile = resolve_and_save_profile(row, self.profile_source, self.wine_store)
        result = calculator.compute_for_wine(row.wine, current_year, profile)
        self.wine_store.save_readiness(row.row_id, result)
        return UPDATED

    def _finish(self, job: BackfillJob, status: JobStatus) -> BackfillJob:
        finished = job.model_copy(update={"status": status, "finished_at": _utcnow()})
        self.job_store.save_job(finished)
        logger.info(f"Backfill job {job.id} {status.value} at cursor {job.cursor}")
        return finished


__all__ = [
    'BackfillOrchestrator',
    'resolve_and_save_profile',
    'resolve_profile',
    'system_year',
]
