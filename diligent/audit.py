import os
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from diligent.logger import get_logger
from diligent.models import Report
from diligent.store import ReportStore

logger = get_logger(__name__)


def report_json(report: Report) -> str:
    """Canonical serialization shared by every sink: 2-space indented JSON."""
    return report.model_dump_json(indent=2, exclude_none=True)


def ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def write_report(path: str, report: Report) -> str:
    ensure_parent(path)
    with open(path, "w", encoding="utf-8") as f:
        f.write(report_json(report))
    return path


def persist_report(report: Report, report_path: Optional[str], store: Optional[ReportStore]) -> Optional[int]:
    """
    Hand the report to the log store and the report file.

    Each sink is attempted independently; a failing sink is logged and does
    not prevent the other. Returns the store row id when stored.
    """
    content = report_json(report)
    log_id = None

    if store is not None:
        try:
            log_id = store.create_log(report.finished_at or datetime.now(timezone.utc), content)
            logger.info("report_stored", db_path=store.db_path, log_id=log_id)
        except sqlite3.Error as e:
            logger.error("report_store_failed", db_path=store.db_path, error=str(e))

    if report_path:
        try:
            write_report(report_path, report)
            logger.info("report_written", path=report_path)
        except OSError as e:
            logger.error("report_write_failed", path=report_path, error=str(e))

    return log_id
