"""MemoryStore - persistent ledger of findings across review runs.

Each record is keyed by (project_id, dedupe_key) and tracks when the key was
first seen, when a run last confirmed it, and its resolution status. Records
are never deleted: every status transition is also appended to the
memory_events table, which is the audit trail of resolution history.

Concurrency: one writer per project. Writers take an in-process lock for the
project and an IMMEDIATE SQLite transaction, so a reconciliation is atomic
over that project's keys. Readers never block on the in-process lock.
"""

import sqlite3
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from thereviewer.exceptions import MemoryStoreUnavailable
from thereviewer.utils.logging import logger


class MemoryStatus(str, Enum):
    """Resolution status of a remembered finding."""

    OPEN = "open"
    FIXED = "fixed"
    ACCEPTED_RISK = "accepted-risk"


@dataclass(frozen=True)
class MemoryRecord:
    """One remembered dedupe key."""

    project_id: str
    dedupe_key: str
    artifact_id: str
    first_seen: str
    last_confirmed: str
    status: MemoryStatus

    def to_dict(self) -> dict[str, str]:
        return {
            "project_id": self.project_id,
            "dedupe_key": self.dedupe_key,
            "artifact_id": self.artifact_id,
            "first_seen": self.first_seen,
            "last_confirmed": self.last_confirmed,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class MemoryEvent:
    """A single status transition."""

    dedupe_key: str
    from_status: str | None
    to_status: str
    at: str


@dataclass(frozen=True)
class ReconcileSummary:
    """Counts of what one reconciliation changed."""

    inserted: int = 0
    confirmed: int = 0
    reopened: int = 0
    fixed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "inserted": self.inserted,
            "confirmed": self.confirmed,
            "reopened": self.reopened,
            "fixed": self.fixed,
        }


def artifact_of(dedupe_key: str) -> str:
    """Artifact id embedded in a dedupe key ('<artifact>#<site>::...')."""
    return dedupe_key.partition("#")[0]


def check_scope_of(dedupe_key: str) -> tuple[str, str, str]:
    """(artifact, dimension, key identity) of a dedupe key, ignoring the site."""
    dimension, _, identity = dedupe_key.split("::", 1)[-1].partition("/")
    return artifact_of(dedupe_key), dimension, identity


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS memory_records (
        project_id TEXT NOT NULL,
        dedupe_key TEXT NOT NULL,
        artifact_id TEXT NOT NULL,
        first_seen TEXT NOT NULL,
        last_confirmed TEXT NOT NULL,
        status TEXT NOT NULL,
        PRIMARY KEY (project_id, dedupe_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memory_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id TEXT NOT NULL,
        dedupe_key TEXT NOT NULL,
        from_status TEXT,
        to_status TEXT NOT NULL,
        at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_memory_records_status
    ON memory_records(project_id, status)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_memory_events_key
    ON memory_events(project_id, dedupe_key)
    """,
)


class MemoryStore:
    """SQLite-backed memory of findings, scoped per project."""

    _locks: dict[tuple[str, str], threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(
        self,
        db_path: Path | str,
        clock: Callable[[], str] = _utc_now,
        timeout: float = 30.0,
    ):
        """Initialize the store and create tables if needed.

        Args:
            db_path: SQLite file (default location is .pf/review_memory.db)
            clock: Returns ISO timestamps; injectable for tests
            timeout: Seconds to wait for another process's write transaction
        """
        self.db_path = Path(db_path)
        self.clock = clock
        self.timeout = timeout

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            try:
                for statement in _SCHEMA:
                    conn.execute(statement)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise MemoryStoreUnavailable(
                f"Cannot open memory store at {self.db_path}: {e}",
                {"db_path": str(self.db_path)},
            ) from e

        logger.debug(f"Memory store ready at {self.db_path}")

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; write transactions are opened explicitly
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _project_lock(self, project_id: str) -> threading.Lock:
        key = (str(self.db_path.resolve()), project_id)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> MemoryRecord:
        return MemoryRecord(
            project_id=row["project_id"],
            dedupe_key=row["dedupe_key"],
            artifact_id=row["artifact_id"],
            first_seen=row["first_seen"],
            last_confirmed=row["last_confirmed"],
            status=MemoryStatus(row["status"]),
        )

    def lookup(self, project_id: str, dedupe_key: str) -> MemoryRecord | None:
        """Return the record for a key, or None if it was never seen."""
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT * FROM memory_records WHERE project_id = ? AND dedupe_key = ?",
                    (project_id, dedupe_key),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise MemoryStoreUnavailable(f"Memory lookup failed: {e}") from e

        return self._row_to_record(row) if row else None

    # The engine treats the store as a read-only snapshot through this alias
    get = lookup

    def records(self, project_id: str, status: MemoryStatus | None = None) -> list[MemoryRecord]:
        """All records of a project, ordered by key."""
        query = "SELECT * FROM memory_records WHERE project_id = ?"
        params: list[str] = [project_id]
        if status is not None:
            query += " AND status = ?"
            params.append(MemoryStatus(status).value)
        query += " ORDER BY dedupe_key"

        try:
            conn = self._connect()
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise MemoryStoreUnavailable(f"Memory query failed: {e}") from e

        return [self._row_to_record(row) for row in rows]

    def history(self, project_id: str, dedupe_key: str) -> list[MemoryEvent]:
        """Status transitions of one key, oldest first."""
        try:
            conn = self._connect()
            try:
                rows = conn.execute(
                    """
                    SELECT dedupe_key, from_status, to_status, at FROM memory_events
                    WHERE project_id = ? AND dedupe_key = ?
                    ORDER BY id
                    """,
                    (project_id, dedupe_key),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise MemoryStoreUnavailable(f"Memory history query failed: {e}") from e

        return [
            MemoryEvent(row["dedupe_key"], row["from_status"], row["to_status"], row["at"])
            for row in rows
        ]

    def reconcile(
        self,
        project_id: str,
        current_keys: Iterable[str],
        artifacts: Iterable[str] | None = None,
        unobserved: Iterable[tuple[str, str, str]] | None = None,
    ) -> ReconcileSummary:
        """Bring the project's records in line with the keys observed by a completed run.

        - present and new: inserted as open
        - present and open: stays open, last_confirmed updated
        - present and fixed: reopened, original first_seen preserved
        - present and accepted-risk: status kept, last_confirmed updated
        - absent and open: transitions to fixed

        Args:
            project_id: Project scope of the reconciliation
            current_keys: Every dedupe key the run produced
            artifacts: When given, only keys belonging to these artifact ids can
                transition to fixed. Artifacts the run skipped keep their state.
            unobserved: (artifact, dimension, key identity) of checks that failed
                in this run. Their keys were not observed and keep their state.

        Raises:
            MemoryStoreUnavailable: If the transaction cannot be committed. No
                partial reconciliation is ever persisted.
        """
        keys = set(current_keys)
        scope = set(artifacts) if artifacts is not None else None
        blind = set(unobserved or ())
        now = self.clock()

        inserted = confirmed = reopened = fixed = 0

        with self._project_lock(project_id):
            try:
                conn = self._connect()
            except sqlite3.Error as e:
                raise MemoryStoreUnavailable(f"Cannot connect to memory store: {e}") from e

            try:
                conn.execute("BEGIN IMMEDIATE")

                existing = {
                    row["dedupe_key"]: MemoryStatus(row["status"])
                    for row in conn.execute(
                        "SELECT dedupe_key, status FROM memory_records WHERE project_id = ?",
                        (project_id,),
                    )
                }

                for key in sorted(keys):
                    status = existing.get(key)
                    if status is None:
                        conn.execute(
                            """
                            INSERT INTO memory_records (
                                project_id, dedupe_key, artifact_id,
                                first_seen, last_confirmed, status
                            ) VALUES (?, ?, ?, ?, ?, ?)
                            """,
                            (project_id, key, artifact_of(key), now, now, MemoryStatus.OPEN.value),
                        )
                        self._record_event(conn, project_id, key, None, MemoryStatus.OPEN, now)
                        inserted += 1
                    elif status == MemoryStatus.FIXED:
                        self._update(conn, project_id, key, MemoryStatus.OPEN, now)
                        self._record_event(conn, project_id, key, status, MemoryStatus.OPEN, now)
                        reopened += 1
                    else:
                        self._update(conn, project_id, key, status, now)
                        confirmed += 1

                for key, status in sorted(existing.items()):
                    if key in keys or status != MemoryStatus.OPEN:
                        continue
                    if scope is not None and artifact_of(key) not in scope:
                        continue
                    if check_scope_of(key) in blind:
                        continue
                    conn.execute(
                        """
                        UPDATE memory_records SET status = ?
                        WHERE project_id = ? AND dedupe_key = ?
                        """,
                        (MemoryStatus.FIXED.value, project_id, key),
                    )
                    self._record_event(conn, project_id, key, status, MemoryStatus.FIXED, now)
                    fixed += 1

                conn.execute("COMMIT")
            except sqlite3.Error as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise MemoryStoreUnavailable(
                    f"Reconciliation for {project_id} failed: {e}",
                    {"project_id": project_id, "keys": len(keys)},
                ) from e
            finally:
                conn.close()

        summary = ReconcileSummary(inserted, confirmed, reopened, fixed)
        logger.info(f"Reconciled memory for {project_id}: {summary.to_dict()}")
        return summary

    def accept_risk(self, project_id: str, dedupe_key: str) -> MemoryRecord:
        """Mark a key accepted-risk. This is the human override signal.

        Raises:
            KeyError: If the key was never recorded for the project.
        """
        return self._set_status(project_id, dedupe_key, MemoryStatus.ACCEPTED_RISK)

    def revoke_acceptance(self, project_id: str, dedupe_key: str) -> MemoryRecord:
        """Return an accepted-risk key to open."""
        return self._set_status(project_id, dedupe_key, MemoryStatus.OPEN)

    def _set_status(self, project_id: str, dedupe_key: str, status: MemoryStatus) -> MemoryRecord:
        now = self.clock()
        with self._project_lock(project_id):
            try:
                conn = self._connect()
                try:
                    conn.execute("BEGIN IMMEDIATE")
                    row = conn.execute(
                        "SELECT status FROM memory_records WHERE project_id = ? AND dedupe_key = ?",
                        (project_id, dedupe_key),
                    ).fetchone()
                    if row is None:
                        conn.execute("ROLLBACK")
                        raise KeyError(f"No memory record for {dedupe_key} in {project_id}")

                    previous = MemoryStatus(row["status"])
                    if previous != status:
                        conn.execute(
                            """
                            UPDATE memory_records SET status = ?
                            WHERE project_id = ? AND dedupe_key = ?
                            """,
                            (status.value, project_id, dedupe_key),
                        )
                        self._record_event(conn, project_id, dedupe_key, previous, status, now)
                    conn.execute("COMMIT")
                except sqlite3.Error:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
                finally:
                    conn.close()
            except sqlite3.Error as e:
                raise MemoryStoreUnavailable(f"Status update failed: {e}") from e

        record = self.lookup(project_id, dedupe_key)
        logger.info(f"{dedupe_key} marked {status.value} in {project_id}")
        return record

    @staticmethod
    def _update(conn, project_id: str, key: str, status: MemoryStatus, now: str) -> None:
        conn.execute(
            """
            UPDATE memory_records SET status = ?, last_confirmed = ?
            WHERE project_id = ? AND dedupe_key = ?
            """,
            (status.value, now, project_id, key),
        )

    @staticmethod
    def _record_event(
        conn,
        project_id: str,
        key: str,
        from_status: MemoryStatus | None,
        to_status: MemoryStatus,
        now: str,
    ) -> None:
        conn.execute(
            """
            INSERT INTO memory_events (project_id, dedupe_key, from_status, to_status, at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (project_id, key, from_status.value if from_status else None, to_status.value, now),
        )
