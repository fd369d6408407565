"""
Export service - CSV downloads produced after a run.

Successful asset ids, the per-asset verification report, and manual
entry exports (valid, invalid or deleted rows).
"""

import csv
from typing import Iterable

import pandas as pd
import structlog

from models.imports import ImportRow, RowStatus
from models.manual_entry import ManualEntryInput
from models.verification import AssetVerificationResult

logger = structlog.get_logger(__name__)

SUCCESSFUL_IDS_HEADER = "MMS ID"

REPORT_COLUMNS = [
    "Asset ID",
    "Status",
    "Files Before",
    "Files After",
    "Files Added",
    "Files Expected",
    "Warnings",
]

ENTRY_COLUMNS = [
    "Asset ID",
    "File URL",
    "File Title",
    "Description",
    "File Type",
    "Supplemental",
]


def _to_csv(df: pd.DataFrame, header: bool = True) -> str:
    """Every cell quoted, embedded quotes doubled, no trailing newline."""
    return df.to_csv(
        index=False,
        header=header,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    ).rstrip("\n")


def successful_ids_csv(rows: Iterable[ImportRow]) -> str:
    """
    CSV of asset ids whose rows ended in success.

    MMS ID
    "991234"
    "995678"
    """
    ids: list[str] = []
    for row in rows:
        if row.status == RowStatus.SUCCESS and row.asset_id and row.asset_id not in ids:
            ids.append(row.asset_id)

    if not ids:
        return SUCCESSFUL_IDS_HEADER

    # Header stays bare, values are quoted
    body = _to_csv(pd.DataFrame({SUCCESSFUL_IDS_HEADER: ids}), header=False)
    return f"{SUCCESSFUL_IDS_HEADER}\n{body}"


def verification_report_csv(results: list[AssetVerificationResult]) -> str:
    """One line per asset with before/after counts and its warnings."""
    df = pd.DataFrame(
        [
            [
                r.asset_id,
                r.status.value,
                r.files_before_count,
                r.files_after_count,
                r.files_added,
                r.files_expected,
                "; ".join(r.warnings),
            ]
            for r in results
        ],
        columns=REPORT_COLUMNS,
    )

    logger.info("verification_report_generated", assets=len(results))
    return _to_csv(df)


def entries_csv(entries: Iterable[ManualEntryInput]) -> str:
    """Manual entry rows in the upload template's column order."""
    df = pd.DataFrame(
        [
            [
                entry.asset_id,
                entry.url,
                entry.title,
                entry.description,
                entry.type,
                "Yes" if entry.supplemental else "No",
            ]
            for entry in entries
        ],
        columns=ENTRY_COLUMNS,
    )
    return _to_csv(df)
