"""Single-writer SQLite worker for the session message database."""

from __future__ import annotations

import queue
import sqlite3
from dataclasses import dataclass, field
from itertools import count
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Any

from .logging_setup import get_logger

logger = get_logger(__name__)

Statement = tuple[str, Any]

_POLL_SEC = 0.2


@dataclass(slots=True)
class _DbJob:
    job_id: str
    statements: list[Statement]
    fetch: bool
    max_rows: int
    done: Event = field(default_factory=Event)
    result: dict[str, Any] | None = None


class MessageDbQueue:
    """Owns the only connection to one database file.

    Callers block on `query()` / `write()` while a daemon thread runs jobs in
    submission order. A write job is a list of statements committed together
    or rolled back together.
    """

    def __init__(self, *, db_path: str | Path, busy_timeout_ms: int = 5000, wait_timeout_sec: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout_ms = int(busy_timeout_ms) if int(busy_timeout_ms) > 0 else 5000
        self._wait_timeout_sec = float(wait_timeout_sec) if wait_timeout_sec > 0 else 5.0
        self._jobs: queue.Queue[_DbJob] = queue.Queue()
        self._stop = Event()
        self._worker: Thread | None = None
        self._job_ids = count(1)
        self._lock = Lock()
        self._completed = 0
        self._last_error: str | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    def start(self) -> dict[str, Any]:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return {"ok": True, "running": True, "already_running": True}
            self._stop.clear()
            self._worker = Thread(target=self._work, daemon=True, name="deckster-message-db")
            self._worker.start()
        return {"ok": True, "running": True, "already_running": False}

    def stop(self) -> dict[str, Any]:
        with self._lock:
            worker = self._worker
            self._stop.set()
        if worker is not None and worker.is_alive():
            worker.join(timeout=2.0)
        with self._lock:
            self._worker = None
        return {"ok": True, "running": False}

    def health(self) -> dict[str, Any]:
        with self._lock:
            running = self._worker is not None and self._worker.is_alive()
            completed = self._completed
            last_error = self._last_error
        return {
            "ok": True,
            "running": running,
            "pending_jobs": self._jobs.qsize(),
            "completed_jobs": completed,
            "db_path": str(self._db_path),
            "last_error": last_error,
        }

    def query(self, sql: str, params: Any = None, *, max_rows: int = 500) -> dict[str, Any]:
        """Run one SELECT and return up to `max_rows` rows as dicts."""
        text = (sql or "").strip()
        if not text.lower().startswith(("select", "with")):
            return {"ok": False, "error": "query() only accepts SELECT statements."}
        return self._submit([(text, params)], fetch=True, max_rows=max_rows)

    def write(self, statements: list[Statement]) -> dict[str, Any]:
        """Run statements in one transaction; `rows_affected` sums their row counts."""
        cleaned = [((sql or "").strip(), params) for sql, params in statements]
        if not cleaned or any(not sql for sql, _ in cleaned):
            return {"ok": False, "error": "statements are required."}
        return self._submit(cleaned, fetch=False, max_rows=0)

    def _submit(self, statements: list[Statement], *, fetch: bool, max_rows: int) -> dict[str, Any]:
        self.start()
        job = _DbJob(
            job_id=f"msgdb_{next(self._job_ids)}",
            statements=statements,
            fetch=fetch,
            max_rows=max(1, int(max_rows)),
        )
        self._jobs.put(job)
        if not job.done.wait(timeout=self._wait_timeout_sec):
            return {"ok": False, "job_id": job.job_id, "error": "db_queue_timeout"}
        return job.result or {"ok": False, "job_id": job.job_id, "error": "no_result"}

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.execute(f"PRAGMA busy_timeout = {self._busy_timeout_ms:d};")
        return conn

    def _work(self) -> None:
        try:
            conn = self._open()
        except sqlite3.Error as exc:
            with self._lock:
                self._last_error = str(exc)
            logger.error("Cannot open message database %s: %s", self._db_path, exc)
            return
        try:
            while not self._stop.is_set():
                try:
                    job = self._jobs.get(timeout=_POLL_SEC)
                except queue.Empty:
                    continue
                job.result = self._run(conn, job)
                job.done.set()
        finally:
            conn.close()

    def _run(self, conn: sqlite3.Connection, job: _DbJob) -> dict[str, Any]:
        try:
            if job.fetch:
                sql, params = job.statements[0]
                rows = conn.execute(sql, params or ()).fetchmany(job.max_rows)
                result = {"ok": True, "job_id": job.job_id, "rows": [dict(row) for row in rows]}
            else:
                affected = 0
                for sql, params in job.statements:
                    affected += max(0, conn.execute(sql, params or ()).rowcount)
                conn.commit()
                result = {"ok": True, "job_id": job.job_id, "rows_affected": affected}
        except sqlite3.Error as exc:
            conn.rollback()
            with self._lock:
                self._last_error = str(exc)
            logger.warning("Message DB job %s failed: %s", job.job_id, exc)
            return {"ok": False, "job_id": job.job_id, "error": str(exc)}
        with self._lock:
            self._completed += 1
        return result
