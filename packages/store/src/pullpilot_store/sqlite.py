"""SQLiteJobStore: local file-based store, the default backend.

Terminal writes are a single conditional UPDATE guarded by
status = 'pending', so at most one of complete_job / fail_job applies per job.

Schema:
  repositories  connected GitHub repositories (disconnect flips is_active).
  review_jobs   one row per submission; the report is stored as JSON text.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading

from pullpilot_store.base import BaseJobStore
from pullpilot_store.models import COMPLETED, FAILED, PENDING, Repository, ReviewJob, utc_now

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS repositories (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    full_name   TEXT NOT NULL UNIQUE,
    is_active   INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS review_jobs (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id    INTEGER NOT NULL REFERENCES repositories (id),
    pr_number        INTEGER NOT NULL,
    pr_title         TEXT,
    status           TEXT NOT NULL DEFAULT 'pending',
    analysis_result  TEXT,
    created_at       TEXT NOT NULL,
    completed_at     TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_repo ON review_jobs (repository_id);
CREATE INDEX IF NOT EXISTS idx_jobs_pr   ON review_jobs (repository_id, pr_number);
"""


class SQLiteJobStore(BaseJobStore):
    """Stores repositories and review jobs in a local SQLite database file.

    The database file path defaults to `.pullpilot.db` in the current working
    directory. Configure via .pullpilot.yml: `store_path: /path/to/file.db`.

    One connection is shared across threads and every statement runs under a
    lock; worker threads only ever issue a single UPDATE each.
    """

    def __init__(self, db_path: str = ".pullpilot.db"):
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Repositories                                                        #
    # ------------------------------------------------------------------ #

    def add_repository(self, full_name: str) -> Repository:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO repositories (full_name, is_active, created_at)
                VALUES (?, 1, ?)
                ON CONFLICT (full_name) DO UPDATE SET is_active = 1
                """,
                (full_name, utc_now()),
            )
            self._conn.commit()
            row = self._conn.execute("SELECT * FROM repositories WHERE full_name=?", (full_name,)).fetchone()
        return self._row_to_repository(row)

    def get_repository(self, repository_id: int) -> Repository | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM repositories WHERE id=?", (repository_id,)).fetchone()
        return self._row_to_repository(row) if row else None

    def list_repositories(self, include_inactive: bool = False) -> list[Repository]:
        query = "SELECT * FROM repositories"
        if not include_inactive:
            query += " WHERE is_active = 1"
        with self._lock:
            rows = self._conn.execute(query + " ORDER BY id DESC").fetchall()
        return [self._row_to_repository(r) for r in rows]

    def deactivate_repository(self, repository_id: int) -> Repository | None:
        with self._lock:
            cursor = self._conn.execute("UPDATE repositories SET is_active = 0 WHERE id=?", (repository_id,))
            self._conn.commit()
            if cursor.rowcount == 0:
                return None
            row = self._conn.execute("SELECT * FROM repositories WHERE id=?", (repository_id,)).fetchone()
        return self._row_to_repository(row)

    # ------------------------------------------------------------------ #
    # Review jobs                                                         #
    # ------------------------------------------------------------------ #

    def create_job(self, repository_id: int, pr_number: int, pr_title: str) -> ReviewJob:
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO review_jobs (repository_id, pr_number, pr_title, status, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (repository_id, pr_number, pr_title, PENDING, utc_now()),
            )
            self._conn.commit()
            row = self._conn.execute("SELECT * FROM review_jobs WHERE id=?", (cursor.lastrowid,)).fetchone()
        return self._row_to_job(row)

    def get_job(self, job_id: int) -> ReviewJob | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM review_jobs WHERE id=?", (job_id,)).fetchone()
        return self._row_to_job(row) if row else None

    def list_jobs(self, repository_id: int, pr_number: int | None = None) -> list[ReviewJob]:
        with self._lock:
            if pr_number is not None:
                rows = self._conn.execute(
                    "SELECT * FROM review_jobs WHERE repository_id=? AND pr_number=? ORDER BY id",
                    (repository_id, pr_number),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT * FROM review_jobs WHERE repository_id=? ORDER BY id",
                    (repository_id,),
                ).fetchall()
        return [self._row_to_job(r) for r in rows]

    def complete_job(self, job_id: int, analysis_result: dict) -> bool:
        return self._finish(job_id, COMPLETED, json.dumps(analysis_result))

    def fail_job(self, job_id: int) -> bool:
        return self._finish(job_id, FAILED, None)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _finish(self, job_id: int, status: str, result_json: str | None) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE review_jobs
                   SET status = ?, analysis_result = ?, completed_at = ?
                 WHERE id = ? AND status = ?
                """,
                (status, result_json, utc_now(), job_id, PENDING),
            )
            self._conn.commit()
        if cursor.rowcount == 0:
            logger.debug("Job %d is not pending; %s write ignored", job_id, status)
            return False
        return True

    @staticmethod
    def _row_to_repository(row: sqlite3.Row) -> Repository:
        return Repository(
            id=row["id"],
            full_name=row["full_name"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> ReviewJob:
        raw_result = row["analysis_result"]
        return ReviewJob(
            id=row["id"],
            repository_id=row["repository_id"],
            pr_number=row["pr_number"],
            pr_title=row["pr_title"] or "",
            status=row["status"],
            created_at=row["created_at"],
            completed_at=row["completed_at"],
            analysis_result=json.loads(raw_result) if raw_result else None,
        )
