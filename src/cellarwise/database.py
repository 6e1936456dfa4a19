"""
PostgreSQL storage for Cellarwise.

Backs both store contracts with psycopg 3 and a psycopg_pool connection
pool. The single-running-job rule lives in the database as a partial
unique index, so concurrent `start` calls cannot both win.
"""

import os
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from cellarwise.config import DATABASE_URL, DB_POOL_MAX_SIZE, DB_POOL_MIN_SIZE
from cellarwise.constants import BackfillMode, JobStatus
from cellarwise.error_handling import FatalStorageError, JobNotFound, WineNotFound
from cellarwise.schema import (
    BackfillJob,
    Bottle,
    ReadinessResult,
    RowFailure,
    RowFilter,
    StructuralProfile,
    WineRecord,
    WineRow,
)
from cellarwise.stores import JobStore, WineStore
from cellarwise.utils import logger

# Global connection pool
_connection_pool: Optional[ConnectionPool] = None


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS wines (
    id TEXT PRIMARY KEY,
    wine_name TEXT,
    producer TEXT,
    vintage INTEGER,
    color TEXT,
    grapes TEXT[] NOT NULL DEFAULT '{}',
    region TEXT,
    appellation TEXT
);

CREATE TABLE IF NOT EXISTS bottles (
    id TEXT PRIMARY KEY,
    wine_id TEXT REFERENCES wines(id) ON DELETE SET NULL,
    quantity INTEGER NOT NULL DEFAULT 1,
    rating FLOAT,
    profile JSONB,
    readiness JSONB,
    readiness_version INTEGER,
    readiness_updated_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS readiness_backfill_jobs (
    id TEXT PRIMARY KEY,
    mode TEXT NOT NULL,
    status TEXT NOT NULL,
    cursor TEXT,
    processed INTEGER NOT NULL DEFAULT 0,
    updated INTEGER NOT NULL DEFAULT 0,
    skipped INTEGER NOT NULL DEFAULT 0,
    failed INTEGER NOT NULL DEFAULT 0,
    failures JSONB NOT NULL DEFAULT '[]',
    algorithm_version_at_start INTEGER NOT NULL,
    batch_size INTEGER NOT NULL,
    cancel_requested BOOLEAN NOT NULL DEFAULT FALSE,
    estimated_total INTEGER,
    error TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    started_at TIMESTAMPTZ,
    finished_at TIMESTAMPTZ
);

CREATE UNIQUE INDEX IF NOT EXISTS readiness_backfill_jobs_one_running
    ON readiness_backfill_jobs (status) WHERE status = 'running';
"""

# Filter fragments per mode; %(version)s is bound for stale_or_missing
_MODE_CONDITIONS = {
    BackfillMode.MISSING_ONLY: "b.readiness IS NULL",
    BackfillMode.STALE_OR_MISSING: "(b.readiness IS NULL OR b.readiness_version IS DISTINCT FROM %(version)s)",
    BackfillMode.FORCE_ALL: "TRUE",
}

_ROW_SELECT = """
    SELECT b.id AS row_id, b.profile, b.readiness,
           w.id AS wine_id, w.wine_name, w.producer, w.vintage, w.color,
           w.grapes, w.region, w.appellation
    FROM bottles b
    LEFT JOIN wines w ON w.id = b.wine_id
"""

_JOB_COLUMNS = (
    "id", "mode", "status", "cursor", "processed", "updated", "skipped", "failed",
    "failures", "algorithm_version_at_start", "batch_size", "cancel_requested",
    "estimated_total", "error", "created_at", "started_at", "finished_at",
)


def get_database_url() -> Optional[str]:
    """Get database URL from config or environment."""
    return DATABASE_URL or os.getenv("DATABASE_URL")


def get_connection_pool() -> ConnectionPool:
    """
    Get or create the shared connection pool.

    Pool configuration comes from config (DB_POOL_MIN_SIZE/DB_POOL_MAX_SIZE).
    """
    global _connection_pool

    if _connection_pool is None:
        database_url = get_database_url()
        if not database_url:
            raise ValueError("DATABASE_URL not found in environment")

        _connection_pool = ConnectionPool(
            database_url,
            min_size=DB_POOL_MIN_SIZE,
            max_size=DB_POOL_MAX_SIZE,
            open=False,
        )
        _connection_pool.open()
        logger.info(f"Opened connection pool ({DB_POOL_MIN_SIZE}-{DB_POOL_MAX_SIZE} connections)")

    return _connection_pool


def init_database(pool: Optional[ConnectionPool] = None) -> None:
    """Create tables and the single-running-job index if they do not exist."""
    pool = pool or get_connection_pool()
    conn = pool.getconn()
    try:
        with conn.cursor() as cursor:
            cursor.execute(SCHEMA_SQL)
        conn.commit()
        logger.info("Database schema initialized")
    except psycopg.Error as e:
        conn.rollback()
        raise FatalStorageError(f"Failed to initialize schema: {e}") from e
    finally:
        pool.putconn(conn)


def _wine_from_record(record: Dict[str, Any]) -> WineRecord:
    return WineRecord(
        wine_id=record["wine_id"],
        wine_name=record.get("wine_name"),
        producer=record.get("producer"),
        vintage_year=record.get("vintage"),
        color=record.get("color"),
        grapes=record.get("grapes") or [],
        region=record.get("region"),
        appellation=record.get("appellation"),
    )


def _row_from_record(record: Dict[str, Any]) -> WineRow:
    wine = _wine_from_record(record) if record.get("wine_id") is not None else None
    profile = record.get("profile")
    readiness = record.get("readiness")
    return WineRow(
        row_id=record["row_id"],
        wine=wine,
        profile=StructuralProfile.model_validate(profile) if profile else None,
        readiness=ReadinessResult.model_validate(readiness) if readiness else None,
    )


def _job_from_record(record: Dict[str, Any]) -> BackfillJob:
    data = dict(record)
    data["failures"] = [RowFailure.model_validate(f) for f in (data.get("failures") or [])]
    return BackfillJob.model_validate(data)


def _job_params(job: BackfillJob) -> Dict[str, Any]:
    params = job.model_dump(mode="python")
    params["mode"] = job.mode.value
    params["status"] = job.status.value
    params["failures"] = Jsonb([f.model_dump() for f in job.failures])
    return params


class PostgresCellarStore(WineStore, JobStore):
    """PostgreSQL implementation of the wine and job store contracts."""

    def __init__(self, pool: Optional[ConnectionPool] = None):
        self.pool = pool or get_connection_pool()

    @contextmanager
    def _connection(self, operation: str):
        """Borrow a pooled connection; commit on success, wrap DB errors."""
        conn = self.pool.getconn()
        try:
            yield conn
            conn.commit()
        except psycopg.Error as e:
            conn.rollback()
            logger.error(f"Database error during {operation}: {e}")
            raise FatalStorageError(f"Database error during {operation}: {e}") from e
        finally:
            self.pool.putconn(conn)

    @staticmethod
    def _filter_sql(row_filter: RowFilter) -> str:
        return _MODE_CONDITIONS[row_filter.mode]

    # =======================
    # WINE STORE
    # =======================

    def list_wines(self, row_filter, cursor, limit):
        query = (
            _ROW_SELECT
            + " WHERE (%(cursor)s::text IS NULL OR b.id > %(cursor)s) AND "
            + self._filter_sql(row_filter)
            + " ORDER BY b.id LIMIT %(limit)s"
        )
        params = {"cursor": cursor, "limit": limit, "version": row_filter.algorithm_version}
        with self._connection("list_wines") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                records = cur.fetchall()

        rows = [_row_from_record(record) for record in records]
        next_cursor = rows[-1].row_id if rows else cursor
        return rows, next_cursor

    def get_wine_row(self, row_id):
        with self._connection("get_wine_row") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(_ROW_SELECT + " WHERE b.id = %(row_id)s", {"row_id": str(row_id)})
                record = cur.fetchone()
        return _row_from_record(record) if record else None

    def get_wine(self, wine_id):
        with self._connection("get_wine") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id AS wine_id, wine_name, producer, vintage, color,
                           grapes, region, appellation
                    FROM wines WHERE id = %(wine_id)s
                    """,
                    {"wine_id": str(wine_id)},
                )
                record = cur.fetchone()
        if record is None:
            return None
        return _wine_from_record(record)

    def save_profile(self, row_id, profile):
        with self._connection("save_profile") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE bottles SET profile = %s WHERE id = %s",
                    (Jsonb(profile.model_dump(mode="json")), row_id),
                )
                updated = cur.rowcount
        if updated == 0:
            raise WineNotFound(row_id)

    def save_readiness(self, row_id, result):
        with self._connection("save_readiness") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE bottles
                    SET readiness = %s, readiness_version = %s, readiness_updated_at = NOW()
                    WHERE id = %s
                    """,
                    (Jsonb(result.model_dump(mode="json")), result.algorithm_version, row_id),
                )
                updated = cur.rowcount
        if updated == 0:
            raise WineNotFound(row_id)

    def count_wines(self, row_filter):
        condition = self._filter_sql(row_filter)
        query = "SELECT COUNT(*) FROM bottles b WHERE " + condition
        params = {"version": row_filter.algorithm_version} if "%(version)s" in condition else None
        with self._connection("count_wines") as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                (count,) = cur.fetchone()
        return int(count)

    def get_in_stock_bottles(self) -> List[Bottle]:
        with self._connection("get_in_stock_bottles") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT b.id AS bottle_id, b.wine_id, b.quantity, b.rating, b.profile, b.readiness,
                           w.wine_name, w.color, w.grapes, w.region
                    FROM bottles b
                    JOIN wines w ON w.id = b.wine_id
                    WHERE b.quantity > 0
                    ORDER BY b.id
                    """
                )
                records = cur.fetchall()

        bottles = []
        for record in records:
            bottles.append(Bottle(
                bottle_id=record["bottle_id"],
                wine_id=record["wine_id"],
                wine_name=record.get("wine_name") or "",
                color=record.get("color"),
                rating=record.get("rating"),
                quantity=record["quantity"],
                grapes=record.get("grapes") or [],
                region=record.get("region") or "",
                profile=StructuralProfile.model_validate(record["profile"]) if record.get("profile") else None,
                readiness=ReadinessResult.model_validate(record["readiness"]) if record.get("readiness") else None,
            ))
        return bottles

    # =======================
    # JOB STORE
    # =======================

    def create_job_if_idle(self, job):
        columns = ", ".join(_JOB_COLUMNS)
        values = ", ".join(f"%({column})s" for column in _JOB_COLUMNS)
        with self._connection("create_job_if_idle") as conn:
            with conn.cursor() as cur:
                # Conflicts on the partial unique index when a job is running
                cur.execute(
                    f"INSERT INTO readiness_backfill_jobs ({columns}) VALUES ({values}) "
                    "ON CONFLICT DO NOTHING RETURNING id",
                    _job_params(job),
                )
                inserted = cur.fetchone()
        return inserted is not None

    def _fetch_job(self, where: str, params: Optional[Dict[str, Any]], operation: str) -> Optional[BackfillJob]:
        with self._connection(operation) as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT * FROM readiness_backfill_jobs WHERE {where}", params)
                record = cur.fetchone()
        return _job_from_record(record) if record else None

    def get_job(self, job_id):
        return self._fetch_job("id = %(id)s", {"id": job_id}, "get_job")

    def get_running_job(self):
        return self._fetch_job("status = 'running'", None, "get_running_job")

    def save_job(self, job):
        with self._connection("save_job") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE readiness_backfill_jobs
                    SET status = %(status)s, cursor = %(cursor)s,
                        processed = %(processed)s, updated = %(updated)s,
                        skipped = %(skipped)s, failed = %(failed)s, failures = %(failures)s,
                        cancel_requested = cancel_requested OR %(cancel_requested)s,
                        estimated_total = %(estimated_total)s, error = %(error)s,
                        started_at = %(started_at)s, finished_at = %(finished_at)s
                    WHERE id = %(id)s
                    """,
                    _job_params(job),
                )
                updated = cur.rowcount
        if updated == 0:
            raise JobNotFound(job.id)

    def transition(self, job_id, expected, target):
        expected = [status.value for status in expected]
        reset = target in (JobStatus.RUNNING, JobStatus.IDLE)
        with self._connection("transition") as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        """
                        UPDATE readiness_backfill_jobs
                        SET status = %(target)s, cancel_requested = FALSE,
                            error = CASE WHEN %(reset)s THEN NULL ELSE error END,
                            finished_at = CASE WHEN %(reset)s THEN NULL ELSE finished_at END
                        WHERE id = %(id)s AND status = ANY(%(expected)s)
                        """,
                        {"target": target.value, "reset": reset, "id": job_id, "expected": expected},
                    )
                except psycopg.errors.UniqueViolation:
                    # Another job holds the running slot
                    conn.rollback()
                    return False
                changed = cur.rowcount
        if changed == 0 and self.get_job(job_id) is None:
            raise JobNotFound(job_id)
        return changed > 0

    def request_cancel(self, job_id):
        with self._connection("request_cancel") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE readiness_backfill_jobs SET cancel_requested = TRUE "
                    "WHERE id = %s AND status = 'running'",
                    (job_id,),
                )
                changed = cur.rowcount
        if changed == 0 and self.get_job(job_id) is None:
            raise JobNotFound(job_id)
        return changed > 0


__all__ = [
    'PostgresCellarStore',
    'get_connection_pool',
    'get_database_url',
    'init_database',
    'SCHEMA_SQL',
]
