"""
Readiness reporting helpers (pandas).

Flattens stored rows into a DataFrame and summarizes status distribution
and backfill progress for dashboards and the CLI.
"""

from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from cellarwise.constants import BackfillMode, ColumnNames, JobStatus, ReadinessStatus
from cellarwise.power_formula import add_power_features_to_dataframe
from cellarwise.schema import BackfillJob, RowFilter, WineRow
from cellarwise.stores import WineStore
from cellarwise.utils import logger


READINESS_COLUMNS = [
    ColumnNames.ROW_ID,
    ColumnNames.WINE_ID,
    ColumnNames.WINE_NAME,
    ColumnNames.VINTAGE,
    ColumnNames.COLOR,
    ColumnNames.READINESS_SCORE,
    ColumnNames.READINESS_STATUS,
    ColumnNames.READINESS_CONFIDENCE,
    ColumnNames.READINESS_VERSION,
    ColumnNames.DRINK_WINDOW_START,
    ColumnNames.DRINK_WINDOW_END,
]


def collect_rows(store: WineStore, page_size: int = 500) -> List[WineRow]:
    """Page through every row of a store in key order."""
    row_filter = RowFilter(mode=BackfillMode.FORCE_ALL, algorithm_version=1)
    rows: List[WineRow] = []
    cursor: Optional[str] = None
    while True:
        page, cursor = store.list_wines(row_filter, cursor, page_size)
        rows.extend(page)
        if len(page) < page_size:
            return rows


def readiness_frame(rows: Iterable[WineRow]) -> pd.DataFrame:
    """
    One DataFrame row per wine row, with its persisted readiness.

    Rows without a result keep NaN/None in the readiness columns.
    """
    records = []
    for row in rows:
        wine = row.wine
        result = row.readiness
        records.append({
            ColumnNames.ROW_ID: row.row_id,
            ColumnNames.WINE_ID: wine.wine_id if wine else None,
            ColumnNames.WINE_NAME: wine.wine_name if wine else None,
            ColumnNames.VINTAGE: wine.vintage_year if wine else None,
            ColumnNames.COLOR: wine.color.value if wine else None,
            ColumnNames.READINESS_SCORE: result.score if result else None,
            ColumnNames.READINESS_STATUS: result.status.value if result else None,
            ColumnNames.READINESS_CONFIDENCE: result.confidence.value if result else None,
            ColumnNames.READINESS_VERSION: result.algorithm_version if result else None,
            ColumnNames.DRINK_WINDOW_START: result.drink_window_start if result else None,
            ColumnNames.DRINK_WINDOW_END: result.drink_window_end if result else None,
        })

    df = pd.DataFrame.from_records(records, columns=READINESS_COLUMNS)
    logger.debug(f"Built readiness frame with {len(df)} rows")
    return df


def profile_frame(rows: Iterable[WineRow]) -> pd.DataFrame:
    """Stored structural profiles with power and structure_score columns."""
    records = [
        {ColumnNames.ROW_ID: row.row_id, **row.profile.axes(), "source": row.profile.source.value}
        for row in rows
        if row.profile is not None
    ]
    df = pd.DataFrame.from_records(records, columns=[ColumnNames.ROW_ID, *ColumnNames.axis_columns(), "source"])
    return add_power_features_to_dataframe(df)


def summarize_readiness(df: pd.DataFrame, algorithm_version: Optional[int] = None) -> Dict[str, Any]:
    """
    Counts per status and confidence plus the mean score.

    When `algorithm_version` is given, also counts rows whose result is
    missing or stamped with a different version.
    """
    scored = df[df[ColumnNames.READINESS_STATUS].notna()]

    by_status = scored[ColumnNames.READINESS_STATUS].value_counts().to_dict()
    summary = {
        "total": int(len(df)),
        "with_readiness": int(len(scored)),
        "missing": int(len(df) - len(scored)),
        "by_status": {status.value: int(by_status.get(status.value, 0)) for status in ReadinessStatus},
        "by_confidence": {
            level: int(count)
            for level, count in scored[ColumnNames.READINESS_CONFIDENCE].value_counts().sort_index().items()
        },
        "mean_score": round(float(scored[ColumnNames.READINESS_SCORE].mean()), 1) if len(scored) else None,
    }

    if algorithm_version is not None:
        stale = df[ColumnNames.READINESS_VERSION] != algorithm_version
        summary["stale_or_missing"] = int(stale.sum())

    return summary


def job_progress(job: BackfillJob) -> Dict[str, Any]:
    """Counters and percent complete against the job's estimated total."""
    if job.status == JobStatus.COMPLETED:
        percent = 100.0
    elif not job.estimated_total:
        percent = None
    else:
        percent = round(min(100.0, job.processed / job.estimated_total * 100), 1)

    return {
        "job_id": job.id,
        "mode": job.mode.value,
        "status": job.status.value,
        "processed": job.processed,
        "updated": job.updated,
        "skipped": job.skipped,
        "failed": job.failed,
        "estimated_total": job.estimated_total,
        "percent_complete": percent,
        "cursor": job.cursor,
        "error": job.error,
    }


__all__ = [
    'collect_rows',
    'readiness_frame',
    'profile_frame',
    'summarize_readiness',
    'job_progress',
    'READINESS_COLUMNS',
]
