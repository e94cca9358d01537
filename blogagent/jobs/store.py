"""Generation job storage: Postgres (preferred) or file-based fallback.

Both stores serialize writes to a job: ``update`` merges fields under a row
lock (Postgres ``SELECT ... FOR UPDATE``) or a process lock (files), and an
optional ``expected_status`` turns it into a compare-and-set. Whenever
``status`` changes, ``current_step`` and ``progress`` are derived from it in
the same write, and a status change that leaves the state graph raises
InvalidStateError.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, Protocol

from blogagent.config import Settings
from blogagent.errors import InvalidStateError, NotFoundError
from blogagent.jobs.models import (
    STATUS_PROGRESS,
    TRANSITIONS,
    Category,
    Job,
    JobListFilter,
    JobPage,
    JobStats,
    JobStatus,
    ProgressLogEntry,
    StepStatus,
    Template,
    can_transition,
    compute_stats,
    utcnow,
)

logger = logging.getLogger(__name__)

# Fields fixed at creation time.
_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "topic", "category"})


class JobStore(Protocol):
    def create(
        self,
        topic: str,
        category: Category | str,
        template: Template | str | None = None,
        **options: Any,
    ) -> Job: ...
    def get(self, job_id: str) -> Job: ...
    def update(
        self,
        job_id: str,
        fields: dict[str, Any],
        expected_status: Iterable[JobStatus] | JobStatus | None = None,
    ) -> Job: ...
    def append_progress(
        self,
        job_id: str,
        step: str,
        status: StepStatus | str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> ProgressLogEntry: ...
    def list_progress(self, job_id: str, after_seq: int | None = None) -> list[ProgressLogEntry]: ...
    def list(self, filters: JobListFilter) -> JobPage: ...
    def delete(self, job_id: str) -> None: ...
    def stats(self) -> JobStats: ...


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:16]}"


def build_job(
    topic: str,
    category: Category | str,
    template: Template | str | None = None,
    **options: Any,
) -> Job:
    """New queued job with a fresh id."""
    return Job(
        id=new_job_id(),
        topic=topic,
        category=Category(category),
        template=Template(template) if template else None,
        **options,
    )


def merge_fields(job: Job, fields: dict[str, Any]) -> Job:
    """Return ``job`` with ``fields`` applied and derived fields refreshed."""
    unknown = set(fields) - set(Job.model_fields)
    if unknown:
        raise ValueError(f"Unknown job fields: {sorted(unknown)}")
    fixed = set(fields) & _IMMUTABLE_FIELDS
    if fixed:
        raise ValueError(f"Job fields cannot be changed: {sorted(fixed)}")

    data = job.model_dump()
    data.update(fields)
    if "status" in fields:
        status = JobStatus(fields["status"])
        if not can_transition(job.status, status):
            raise InvalidStateError(job.id, job.status.value, [s.value for s in TRANSITIONS[job.status]])
        data["current_step"] = status.value
        if "progress" not in fields and status in STATUS_PROGRESS:
            data["progress"] = STATUS_PROGRESS[status]
    data["updated_at"] = utcnow()
    return Job.model_validate(data)


def _expected_set(expected_status: Iterable[JobStatus] | JobStatus | None) -> list[JobStatus] | None:
    if expected_status is None:
        return None
    if isinstance(expected_status, (JobStatus, str)):
        return [JobStatus(expected_status)]
    return [JobStatus(s) for s in expected_status]


def _check_expected(job: Job, expected: list[JobStatus] | None) -> None:
    if expected is not None and job.status not in expected:
        raise InvalidStateError(job.id, job.status.value, [s.value for s in expected])


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

class PostgresJobStore:
    """Persist jobs and progress logs in Postgres. Survives restarts."""

    def __init__(self, database_url: str):
        self._url = database_url
        self._lock = threading.Lock()
        self._conn = self._connect()

    def _connect(self):
        try:
            import psycopg
        except ImportError:
            raise ImportError(
                "psycopg required for Postgres job store. pip install 'psycopg[binary]'"
            )
        conn = psycopg.connect(self._url, autocommit=True)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS blog_jobs (
                id TEXT PRIMARY KEY,
                topic TEXT NOT NULL,
                category TEXT NOT NULL,
                status TEXT NOT NULL,
                payload JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_blog_jobs_status_created
            ON blog_jobs (status, created_at DESC)
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS blog_progress_logs (
                id BIGSERIAL PRIMARY KEY,
                job_id TEXT NOT NULL REFERENCES blog_jobs (id) ON DELETE CASCADE,
                step TEXT NOT NULL,
                status TEXT NOT NULL,
                message TEXT NOT NULL DEFAULT '',
                data JSONB,
                created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_blog_progress_logs_job
            ON blog_progress_logs (job_id, id)
        """)
        return conn

    def create(self, topic, category, template=None, **options) -> Job:
        job = build_job(topic, category, template, **options)
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO blog_jobs (id, topic, category, status, payload, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s::jsonb, %s, %s)
                """,
                (
                    job.id,
                    job.topic,
                    job.category.value,
                    job.status.value,
                    json.dumps(job.model_dump(mode="json")),
                    job.created_at,
                    job.updated_at,
                ),
            )
        return job

    def get(self, job_id: str) -> Job:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM blog_jobs WHERE id = %s", (job_id,)
            ).fetchone()
        if not row:
            raise NotFoundError("job", job_id)
        return self._row_to_job(row)

    def update(self, job_id, fields, expected_status=None) -> Job:
        expected = _expected_set(expected_status)
        with self._lock, self._conn.transaction():
            row = self._conn.execute(
                "SELECT payload FROM blog_jobs WHERE id = %s FOR UPDATE", (job_id,)
            ).fetchone()
            if not row:
                raise NotFoundError("job", job_id)
            job = self._row_to_job(row)
            _check_expected(job, expected)
            updated = merge_fields(job, fields)
            self._conn.execute(
                """
                UPDATE blog_jobs SET status = %s, payload = %s::jsonb, updated_at = %s
                WHERE id = %s
                """,
                (
                    updated.status.value,
                    json.dumps(updated.model_dump(mode="json")),
                    updated.updated_at,
                    job_id,
                ),
            )
        return updated

    def append_progress(self, job_id, step, status, message, data=None) -> ProgressLogEntry:
        from psycopg import errors as pg_errors

        try:
            with self._lock:
                row = self._conn.execute(
                    """
                    INSERT INTO blog_progress_logs (job_id, step, status, message, data)
                    VALUES (%s, %s, %s, %s, %s::jsonb)
                    RETURNING id, job_id, step, status, message, data, created_at
                    """,
                    (
                        job_id,
                        step,
                        StepStatus(status).value,
                        message,
                        json.dumps(data) if data is not None else None,
                    ),
                ).fetchone()
        except pg_errors.ForeignKeyViolation:
            raise NotFoundError("job", job_id)
        return self._row_to_entry(row)

    def list_progress(self, job_id, after_seq=None) -> list[ProgressLogEntry]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id, job_id, step, status, message, data, created_at
                FROM blog_progress_logs
                WHERE job_id = %s AND id > %s
                ORDER BY id
                """,
                (job_id, after_seq or 0),
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def list(self, filters: JobListFilter) -> JobPage:
        clauses: list[str] = []
        params: list[Any] = []
        if filters.status:
            clauses.append("status = %s")
            params.append(filters.status.value)
        if filters.category:
            clauses.append("category = %s")
            params.append(filters.category.value)
        if filters.search:
            clauses.append("topic ILIKE %s")
            params.append(f"%{filters.search}%")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM blog_jobs {where}", params
            ).fetchone()[0]
            rows = self._conn.execute(
                f"""
                SELECT payload FROM blog_jobs {where}
                ORDER BY created_at DESC, id DESC
                LIMIT %s OFFSET %s
                """,
                [*params, filters.limit, filters.offset],
            ).fetchall()
        return JobPage(
            jobs=[self._row_to_job(r) for r in rows],
            total=total,
            page=filters.page,
            limit=filters.limit,
        )

    def delete(self, job_id: str) -> None:
        with self._lock:
            row = self._conn.execute(
                "DELETE FROM blog_jobs WHERE id = %s RETURNING id", (job_id,)
            ).fetchone()
        if not row:
            raise NotFoundError("job", job_id)

    def stats(self) -> JobStats:
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) FROM blog_jobs GROUP BY status"
            ).fetchall()
        statuses: list[JobStatus] = []
        for status, count in rows:
            statuses.extend([JobStatus(status)] * count)
        return compute_stats(statuses)

    def _row_to_job(self, row) -> Job:
        payload = row[0] if isinstance(row[0], dict) else json.loads(row[0])
        return Job.model_validate(payload)

    def _row_to_entry(self, row) -> ProgressLogEntry:
        data = row[5]
        if data is not None and not isinstance(data, dict):
            data = json.loads(data)
        return ProgressLogEntry(
            seq=row[0],
            job_id=row[1],
            step=row[2],
            status=StepStatus(row[3]),
            message=row[4],
            data=data,
            created_at=row[6],
        )


# ---------------------------------------------------------------------------
# File-based implementation (fallback when no Postgres)
# ---------------------------------------------------------------------------

class FileJobStore:
    """Persist jobs as JSON files and progress logs as JSON lines.

    One process-wide lock serializes writes; files are replaced atomically so
    readers never see a half-written job.
    """

    def __init__(self, data_dir: Path):
        self._dir = Path(data_dir) / "jobs"
        self._progress_dir = Path(data_dir) / "progress"
        self._dir.mkdir(parents=True, exist_ok=True)
        self._progress_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._seq: dict[str, int] = {}
        self._last_ts: datetime | None = None

    def _job_path(self, job_id: str) -> Path:
        return self._dir / f"{job_id}.json"

    def _progress_path(self, job_id: str) -> Path:
        return self._progress_dir / f"{job_id}.jsonl"

    def _next_timestamp(self) -> datetime:
        """Strictly increasing timestamps, even when the clock stalls."""
        now = utcnow()
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now

    def create(self, topic, category, template=None, **options) -> Job:
        with self._lock:
            ts = self._next_timestamp()
            job = build_job(topic, category, template, created_at=ts, updated_at=ts, **options)
            self._write_job(job)
        return job

    def get(self, job_id: str) -> Job:
        path = self._job_path(job_id)
        if not path.exists():
            raise NotFoundError("job", job_id)
        return self._read_job(path)

    def update(self, job_id, fields, expected_status=None) -> Job:
        expected = _expected_set(expected_status)
        with self._lock:
            job = self.get(job_id)
            _check_expected(job, expected)
            updated = merge_fields(job, fields)
            self._write_job(updated)
        return updated

    def append_progress(self, job_id, step, status, message, data=None) -> ProgressLogEntry:
        with self._lock:
            if not self._job_path(job_id).exists():
                raise NotFoundError("job", job_id)
            seq = self._current_seq(job_id) + 1
            entry = ProgressLogEntry(
                seq=seq,
                job_id=job_id,
                step=step,
                status=StepStatus(status),
                message=message,
                data=data,
                created_at=self._next_timestamp(),
            )
            with open(self._progress_path(job_id), "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
            self._seq[job_id] = seq
        return entry

    def list_progress(self, job_id, after_seq=None) -> list[ProgressLogEntry]:
        path = self._progress_path(job_id)
        if not path.exists():
            return []
        with self._lock:
            with open(path, "r", encoding="utf-8") as f:
                lines = [line for line in f if line.strip()]
        entries = [ProgressLogEntry.model_validate_json(line) for line in lines]
        if after_seq is not None:
            entries = [e for e in entries if e.seq > after_seq]
        return entries

    def list(self, filters: JobListFilter) -> JobPage:
        jobs = self._all_jobs()
        if filters.status:
            jobs = [j for j in jobs if j.status == filters.status]
        if filters.category:
            jobs = [j for j in jobs if j.category == filters.category]
        if filters.search:
            needle = filters.search.lower()
            jobs = [j for j in jobs if needle in j.topic.lower()]
        jobs.sort(key=lambda j: (j.created_at, j.id), reverse=True)
        page = jobs[filters.offset:filters.offset + filters.limit]
        return JobPage(jobs=page, total=len(jobs), page=filters.page, limit=filters.limit)

    def delete(self, job_id: str) -> None:
        with self._lock:
            path = self._job_path(job_id)
            if not path.exists():
                raise NotFoundError("job", job_id)
            path.unlink()
            self._progress_path(job_id).unlink(missing_ok=True)
            self._seq.pop(job_id, None)

    def stats(self) -> JobStats:
        return compute_stats([j.status for j in self._all_jobs()])

    def _all_jobs(self) -> list[Job]:
        jobs = []
        for path in self._dir.glob("job_*.json"):
            try:
                jobs.append(self._read_job(path))
            except FileNotFoundError:
                # deleted between glob and read
                continue
        return jobs

    def _current_seq(self, job_id: str) -> int:
        if job_id not in self._seq:
            entries = self.list_progress(job_id)
            self._seq[job_id] = entries[-1].seq if entries else 0
        return self._seq[job_id]

    def _write_job(self, job: Job) -> None:
        path = self._job_path(job.id)
        tmp = path.with_suffix(".json.tmp")
        data = job.model_dump(mode="json")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        os.replace(tmp, path)

    def _read_job(self, path: Path) -> Job:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Job.model_validate(data)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_job_store(settings: Settings) -> JobStore:
    """Return a job store (Postgres if configured, else file-based)."""
    if settings.blog_database_url:
        try:
            store = PostgresJobStore(settings.blog_database_url)
            logger.info("Using Postgres job store")
            return store
        except Exception as e:
            logger.warning("Postgres job store failed (%s), falling back to file store", e)
            return FileJobStore(settings.data_dir)
    logger.info("Using file-based job store (BLOG_DATA_DIR/jobs)")
    return FileJobStore(settings.data_dir)
