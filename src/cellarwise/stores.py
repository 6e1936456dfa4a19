"""
Storage contracts for wine rows and backfill jobs, plus an in-memory store.

The in-memory store is the reference implementation of both contracts and
is what the tests run against. PostgresCellarStore (database.py) is the
production adapter.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

from cellarwise.constants import JobStatus
from cellarwise.error_handling import JobNotFound, WineNotFound
from cellarwise.schema import (
    BackfillJob,
    Bottle,
    ReadinessResult,
    RowFilter,
    StructuralProfile,
    WineRecord,
    WineRow,
)
from cellarwise.utils import logger


class WineStore(ABC):
    """Wine rows the engine reads and writes readiness results to."""

    @abstractmethod
    def list_wines(self, row_filter: RowFilter, cursor: Optional[str], limit: int) -> Tuple[List[WineRow], Optional[str]]:
        """
        Rows with row_id strictly after `cursor` matching `row_filter`, in row_id order.

        Returns:
            (rows, next_cursor) where next_cursor is the last returned row_id,
            or the given cursor when nothing was returned
        """

    @abstractmethod
    def get_wine_row(self, row_id: str) -> Optional[WineRow]:
        """One row by key, or None."""

    @abstractmethod
    def get_wine(self, wine_id: str) -> Optional[WineRecord]:
        """Wine record by wine id (not row id), or None."""

    @abstractmethod
    def save_readiness(self, row_id: str, result: ReadinessResult) -> None:
        """Persist a readiness result on a row, replacing any previous one."""

    @abstractmethod
    def save_profile(self, row_id: str, profile: StructuralProfile) -> None:
        """Store a structural profile on a row so later runs reuse it."""

    @abstractmethod
    def count_wines(self, row_filter: RowFilter) -> int:
        """Number of rows matching the filter."""

    @abstractmethod
    def get_in_stock_bottles(self) -> List[Bottle]:
        """Bottles with quantity > 0, readiness and profile attached where stored."""


class JobStore(ABC):
    """
    Persisted backfill jobs.

    Implementations guarantee at most one job with status `running`.
    """

    @abstractmethod
    def create_job_if_idle(self, job: BackfillJob) -> bool:
        """Atomically insert a running job unless another job is running."""

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[BackfillJob]:
        pass

    @abstractmethod
    def get_running_job(self) -> Optional[BackfillJob]:
        pass

    @abstractmethod
    def save_job(self, job: BackfillJob) -> None:
        """
        Write progress for an existing job.

        A cancel request already stored on the job is never cleared by a save.
        """

    @abstractmethod
    def transition(self, job_id: str, expected: Iterable[JobStatus], target: JobStatus) -> bool:
        """
        Move a job to `target` if its status is one of `expected`.

        Clears the cancel flag. Moving to `running` or `idle` also clears the
        stored error and finish time. Moving to `running` fails (returns False)
        while another job is running.
        """

    @abstractmethod
    def request_cancel(self, job_id: str) -> bool:
        """Flag a running job for cancellation. False if it is not running."""


class InMemoryCellarStore(WineStore, JobStore):
    """Thread-safe in-memory implementation of both store contracts."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: Dict[str, WineRow] = {}
        self._bottles: Dict[str, Bottle] = {}
        self._jobs: Dict[str, BackfillJob] = {}

    # =======================
    # SEEDING
    # =======================

    def add_wine(
        self,
        row_id,
        wine: Optional[WineRecord],
        profile: Optional[StructuralProfile] = None,
        readiness: Optional[ReadinessResult] = None,
    ) -> WineRow:
        row = WineRow(row_id=row_id, wine=wine, profile=profile, readiness=readiness)
        with self._lock:
            self._rows[row.row_id] = row
        return row

    def add_bottle(self, bottle: Bottle) -> None:
        with self._lock:
            self._bottles[bottle.bottle_id] = bottle

    def rows(self) -> List[WineRow]:
        """Snapshot of every row, in key order."""
        with self._lock:
            return [self._rows[key] for key in sorted(self._rows)]

    def jobs(self) -> List[BackfillJob]:
        with self._lock:
            return [job.model_copy(deep=True) for job in self._jobs.values()]

    # =======================
    # WINE STORE
    # =======================

    def list_wines(self, row_filter, cursor, limit):
        with self._lock:
            keys = sorted(key for key in self._rows if cursor is None or key > cursor)
            batch = []
            for key in keys:
                if len(batch) >= limit:
                    break
                row = self._rows[key]
                if row_filter.matches(row):
                    batch.append(row)
        next_cursor = batch[-1].row_id if batch else cursor
        return batch, next_cursor

    def get_wine_row(self, row_id):
        with self._lock:
            return self._rows.get(str(row_id))

    def get_wine(self, wine_id):
        with self._lock:
            for key in sorted(self._rows):
                wine = self._rows[key].wine
                if wine is not None and wine.wine_id == str(wine_id):
                    return wine
        return None

    def save_readiness(self, row_id, result):
        with self._lock:
            row = self._rows.get(row_id)
            if row is None:
                raise WineNotFound(row_id)
            self._rows[row_id] = row.model_copy(update={"readiness": result})

    def save_profile(self, row_id, profile):
        with self._lock:
            row = self._rows.get(row_id)
            if row is None:
                raise WineNotFound(row_id)
            self._rows[row_id] = row.model_copy(update={"profile": profile})

    def count_wines(self, row_filter):
        with self._lock:
            return sum(1 for row in self._rows.values() if row_filter.matches(row))

    def get_in_stock_bottles(self):
        with self._lock:
            bottles = []
            for key in sorted(self._bottles):
                bottle = self._bottles[key]
                if bottle.quantity <= 0:
                    continue
                row = self._rows.get(bottle.bottle_id)
                if row is not None:
                    bottle = bottle.model_copy(update={
                        "readiness": bottle.readiness or row.readiness,
                        "profile": bottle.profile or row.profile,
                    })
                bottles.append(bottle)
            return bottles

    # =======================
    # JOB STORE
    # =======================

    def _running_locked(self) -> Optional[BackfillJob]:
        return next((job for job in self._jobs.values() if job.status == JobStatus.RUNNING), None)

    def create_job_if_idle(self, job):
        with self._lock:
            if self._running_locked() is not None:
                return False
            self._jobs[job.id] = job.model_copy(deep=True)
            return True

    def get_job(self, job_id):
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def get_running_job(self):
        with self._lock:
            job = self._running_locked()
            return job.model_copy(deep=True) if job else None

    def save_job(self, job):
        with self._lock:
            stored = self._jobs.get(job.id)
            if stored is None:
                raise JobNotFound(job.id)
            self._jobs[job.id] = job.model_copy(
                deep=True,
                update={"cancel_requested": stored.cancel_requested or job.cancel_requested},
            )

    def transition(self, job_id, expected, target):
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(job_id)
            if job.status not in tuple(expected):
                return False
            if target == JobStatus.RUNNING:
                running = self._running_locked()
                if running is not None and running.id != job_id:
                    return False
            update = {"status": target, "cancel_requested": False}
            if target in (JobStatus.RUNNING, JobStatus.IDLE):
                update.update(error=None, finished_at=None)
            self._jobs[job_id] = job.model_copy(update=update)
            logger.debug(f"Job {job_id}: {job.status.value} -> {target.value}")
            return True

    def request_cancel(self, job_id):
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(job_id)
            if job.status != JobStatus.RUNNING:
                return False
            self._jobs[job_id] = job.model_copy(update={"cancel_requested": True})
            return True


__all__ = [
    'WineStore',
    'JobStore',
    'InMemoryCellarStore',
]
