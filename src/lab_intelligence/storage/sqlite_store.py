# ============================================================================
# src/lab_intelligence/storage/sqlite_store.py
# ============================================================================
"""
SQLite Store

Persists reports, extracted values and provider analyses so results
survive restarts. Raw sqlite3, JSON for complex fields; one short-lived
connection per call.
"""

import sqlite3
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone

from ..config import base_settings
from ..core.context import ExtractedLabValue, ProviderAnalysisResult, ProviderRole
from ..utils.exceptions import StorageError
from .base import StorageBackend

logger = logging.getLogger(__name__)

# Columns of lab_reports besides the JSON blob
_REPORT_COLUMNS = ("status", "analysis_status", "document_type", "urgency_level")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore(StorageBackend):
    """
    SQLite-backed StorageBackend.

    The full report dict is stored as JSON; the few fields callers filter
    on are mirrored into real columns.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or base_settings.STORE_DB_PATH)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e

    @contextmanager
    def _connection(self, action: str):
        """Short-lived connection; sqlite3 errors surface as StorageError."""
        conn = self._connect()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Failed to {action}: {e}") from e
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def _init_database(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection("initialize schema") as conn:
            cur = conn.cursor()

            cur.execute("""
                CREATE TABLE IF NOT EXISTS lab_reports (
                    report_id       TEXT PRIMARY KEY,
                    status          TEXT NOT NULL DEFAULT 'pending',
                    analysis_status TEXT,
                    document_type   TEXT,
                    urgency_level   TEXT,
                    created_at      TEXT NOT NULL,
                    updated_at      TEXT NOT NULL,
                    report_data     TEXT NOT NULL
                )
            """)

            cur.execute("""
                CREATE TABLE IF NOT EXISTS lab_values (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    report_id       TEXT NOT NULL,
                    test_name       TEXT NOT NULL,
                    value           TEXT NOT NULL,
                    numeric_value   REAL,
                    unit            TEXT,
                    reference_range TEXT,
                    abnormal_flag   TEXT,
                    critical_flag   INTEGER DEFAULT 0,
                    confidence      REAL,
                    value_data      TEXT NOT NULL,
                    FOREIGN KEY (report_id) REFERENCES lab_reports (report_id)
                )
            """)

            cur.execute("""
                CREATE TABLE IF NOT EXISTS lab_analyses (
                    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                    report_id          TEXT NOT NULL,
                    provider_id        TEXT NOT NULL,
                    role               TEXT NOT NULL,
                    analysis_type      TEXT NOT NULL,
                    urgency_level      TEXT NOT NULL,
                    confidence         REAL NOT NULL,
                    processing_time    REAL,
                    created_at         TEXT NOT NULL,
                    analysis_data      TEXT NOT NULL,
                    FOREIGN KEY (report_id) REFERENCES lab_reports (report_id)
                )
            """)

            cur.execute("CREATE INDEX IF NOT EXISTS idx_values_report ON lab_values (report_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_analyses_report ON lab_analyses (report_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reports_status ON lab_reports (status)")

            conn.commit()
        logger.info(f"Report store initialized: {self.db_path}")

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    def create_report(self, report_id: str, file_name: str = "", **fields) -> Dict[str, Any]:
        now = _now()
        report = {
            "report_id": report_id,
            "file_name": file_name,
            "status": "pending",
            "analysis_status": None,
            "created_at": now,
            "updated_at": now,
        }
        report.update(fields)

        with self._connection(f"create report {report_id}") as conn:
            try:
                conn.execute("""
                    INSERT INTO lab_reports
                        (report_id, status, analysis_status, document_type,
                         urgency_level, created_at, updated_at, report_data)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    report_id,
                    report["status"],
                    report.get("analysis_status"),
                    report.get("document_type"),
                    report.get("urgency_level"),
                    now,
                    now,
                    json.dumps(report, default=str),
                ))
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise StorageError(f"Report {report_id} already exists") from e

        logger.info(f"Created report {report_id}")
        return report

    def update_report(self, report_id: str, **fields) -> Dict[str, Any]:
        with self._connection(f"update report {report_id}") as conn:
            row = conn.execute(
                "SELECT report_data FROM lab_reports WHERE report_id = ?", (report_id,)
            ).fetchone()
            if row is None:
                raise StorageError(f"Report {report_id} not found")

            report = json.loads(row[0])
            report.update(fields)
            report["updated_at"] = _now()

            conn.execute("""
                UPDATE lab_reports
                SET status = ?, analysis_status = ?, document_type = ?,
                    urgency_level = ?, updated_at = ?, report_data = ?
                WHERE report_id = ?
            """, (
                *(report.get(column) for column in _REPORT_COLUMNS),
                report["updated_at"],
                json.dumps(report, default=str),
                report_id,
            ))
            conn.commit()

        logger.debug(f"Updated report {report_id}: {sorted(fields)}")
        return report

    def create_lab_value(self, report_id: str, value: ExtractedLabValue) -> int:
        data = value.to_dict()
        with self._connection(f"store value for report {report_id}") as conn:
            cur = conn.execute("""
                INSERT INTO lab_values
                    (report_id, test_name, value, numeric_value, unit, reference_range,
                     abnormal_flag, critical_flag, confidence, value_data)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                report_id,
                value.test_name,
                value.value,
                value.numeric_value,
                value.unit,
                value.reference_range,
                value.abnormal_flag.value if value.abnormal_flag else None,
                1 if value.critical_flag else 0,
                value.confidence,
                json.dumps(data, default=str),
            ))
            conn.commit()
            return cur.lastrowid

    def create_analysis_record(
        self,
        report_id: str,
        result: ProviderAnalysisResult,
        role: ProviderRole = ProviderRole.SECONDARY,
    ) -> int:
        with self._connection(f"store analysis for report {report_id}") as conn:
            cur = conn.execute("""
                INSERT INTO lab_analyses
                    (report_id, provider_id, role, analysis_type, urgency_level,
                     confidence, processing_time, created_at, analysis_data)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                report_id,
                result.provider_id,
                role.value,
                result.analysis_type,
                result.urgency_level.value,
                result.confidence,
                result.processing_time,
                _now(),
                json.dumps(result.to_dict(), default=str),
            ))
            conn.commit()
            logger.info(f"Saved {role.value} analysis from {result.provider_id} for report {report_id}")
            return cur.lastrowid

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        with self._connection(f"read report {report_id}") as conn:
            row = conn.execute(
                "SELECT report_data FROM lab_reports WHERE report_id = ?", (report_id,)
            ).fetchone()
        if row:
            return json.loads(row[0])
        return None

    def get_lab_values(self, report_id: str) -> List[Dict[str, Any]]:
        with self._connection(f"read values for report {report_id}") as conn:
            rows = conn.execute(
                "SELECT value_data FROM lab_values WHERE report_id = ? ORDER BY id", (report_id,)
            ).fetchall()
        return [json.loads(r[0]) for r in rows]

    def get_analysis_records(self, report_id: str) -> List[Dict[str, Any]]:
        with self._connection(f"read analyses for report {report_id}") as conn:
            rows = conn.execute(
                "SELECT role, analysis_data FROM lab_analyses WHERE report_id = ? ORDER BY id",
                (report_id,),
            ).fetchall()
        records = []
        for role, data in rows:
            record = json.loads(data)
            record["role"] = role
            records.append(record)
        return records

    def list_reports(self, status: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
        """Stored reports, newest first."""
        query = "SELECT report_data FROM lab_reports WHERE 1=1"
        params: list = []
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        with self._connection("list reports") as conn:
            rows = conn.execute(query, params).fetchall()
        return [json.loads(r[0]) for r in rows]
