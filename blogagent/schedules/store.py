"""Schedule storage: Postgres (preferred) or file-based fallback."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol

from blogagent.config import Settings
from blogagent.errors import NotFoundError
from blogagent.jobs.models import utcnow
from blogagent.schedules.cron import next_run_at
from blogagent.schedules.models import Schedule

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 500


class ScheduleStore(Protocol):
    def save(self, schedule: Schedule) -> Schedule: ...
    def get(self, schedule_id: str) -> Schedule: ...
    def list(self) -> list[Schedule]: ...
    def list_due(self, now: datetime) -> list[Schedule]: ...
    def delete(self, schedule_id: str) -> None: ...
    def mark_as_run(
        self,
        schedule_id: str,
        job_id: str | None,
        success: bool,
        error: str | None = None,
        now: datetime | None = None,
    ) -> Schedule: ...


def prepare_for_save(schedule: Schedule, now: datetime | None = None) -> Schedule:
    """Validate the cron expression and fill in next_run_at for enabled schedules."""
    now = now or utcnow()
    data = schedule.model_dump()
    data["updated_at"] = now
    if schedule.enabled:
        if schedule.next_run_at is None:
            data["next_run_at"] = next_run_at(schedule.cron_expression, schedule.timezone, now)
        else:
            next_run_at(schedule.cron_expression, schedule.timezone, now)
    else:
        data["next_run_at"] = None
    return Schedule.model_validate(data)


def apply_run(
    schedule: Schedule,
    job_id: str | None,
    success: bool,
    error: str | None,
    now: datetime,
) -> Schedule:
    """Counters and next run time after one trigger attempt."""
    data = schedule.model_dump()
    data["last_run_at"] = now
    data["updated_at"] = now
    data["run_count"] = schedule.run_count + 1
    if job_id:
        data["last_job_id"] = job_id
    if success:
        data["last_error"] = None
        topics = schedule.active_topics()
        if topics:
            data["topic_index"] = (schedule.topic_index + 1) % len(topics)
    else:
        data["error_count"] = schedule.error_count + 1
        data["last_error"] = (error or "unknown error")[:MAX_ERROR_CHARS]
    data["next_run_at"] = next_run_at(schedule.cron_expression, schedule.timezone, now)
    return Schedule.model_validate(data)


def is_due(schedule: Schedule, now: datetime) -> bool:
    return schedule.enabled and schedule.next_run_at is not None and schedule.next_run_at <= now


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

class PostgresScheduleStore:
    def __init__(self, database_url: str):
        import psycopg

        self._lock = threading.Lock()
        self._conn = psycopg.connect(database_url, autocommit=True)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS blog_schedules (
                id TEXT PRIMARY KEY,
                enabled BOOLEAN NOT NULL DEFAULT TRUE,
                next_run_at TIMESTAMPTZ,
                payload JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

    def save(self, schedule: Schedule) -> Schedule:
        schedule = prepare_for_save(schedule)
        self._write(schedule)
        return schedule

    def _write(self, schedule: Schedule) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO blog_schedules (id, enabled, next_run_at, payload, created_at, updated_at)
                VALUES (%s, %s, %s, %s::jsonb, %s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    enabled = EXCLUDED.enabled, next_run_at = EXCLUDED.next_run_at,
                    payload = EXCLUDED.payload, updated_at = EXCLUDED.updated_at
                """,
                (
                    schedule.id,
                    schedule.enabled,
                    schedule.next_run_at,
                    json.dumps(schedule.model_dump(mode="json")),
                    schedule.created_at,
                    schedule.updated_at,
                ),
            )

    def get(self, schedule_id: str) -> Schedule:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM blog_schedules WHERE id = %s", (schedule_id,)
            ).fetchone()
        if not row:
            raise NotFoundError("schedule", schedule_id)
        return self._row_to_schedule(row)

    def list(self) -> list[Schedule]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT payload FROM blog_schedules ORDER BY created_at DESC"
            ).fetchall()
        return [self._row_to_schedule(r) for r in rows]

    def list_due(self, now: datetime) -> list[Schedule]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT payload FROM blog_schedules
                WHERE enabled AND next_run_at IS NOT NULL AND next_run_at <= %s
                ORDER BY next_run_at
                """,
                (now,),
            ).fetchall()
        return [self._row_to_schedule(r) for r in rows]

    def delete(self, schedule_id: str) -> None:
        with self._lock:
            row = self._conn.execute(
                "DELETE FROM blog_schedules WHERE id = %s RETURNING id", (schedule_id,)
            ).fetchone()
        if not row:
            raise NotFoundError("schedule", schedule_id)

    def mark_as_run(self, schedule_id, job_id, success, error=None, now=None) -> Schedule:
        updated = apply_run(self.get(schedule_id), job_id, success, error, now or utcnow())
        self._write(updated)
        return updated

    def _row_to_schedule(self, row) -> Schedule:
        payload = row[0] if isinstance(row[0], dict) else json.loads(row[0])
        return Schedule.model_validate(payload)


# ---------------------------------------------------------------------------
# File-based implementation (fallback when no Postgres)
# ---------------------------------------------------------------------------

class FileScheduleStore:
    def __init__(self, data_dir: Path):
        self._dir = Path(data_dir) / "schedules"
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _path(self, schedule_id: str) -> Path:
        return self._dir / f"{schedule_id}.json"

    def save(self, schedule: Schedule) -> Schedule:
        schedule = prepare_for_save(schedule)
        with self._lock:
            self._write(schedule)
        return schedule

    def get(self, schedule_id: str) -> Schedule:
        path = self._path(schedule_id)
        if not path.exists():
            raise NotFoundError("schedule", schedule_id)
        with open(path, "r", encoding="utf-8") as f:
            return Schedule.model_validate(json.load(f))

    def list(self) -> list[Schedule]:
        schedules = [self.get(p.stem) for p in self._dir.glob("*.json")]
        return sorted(schedules, key=lambda s: s.created_at, reverse=True)

    def list_due(self, now: datetime) -> list[Schedule]:
        due = [s for s in self.list() if is_due(s, now)]
        return sorted(due, key=lambda s: s.next_run_at)

    def delete(self, schedule_id: str) -> None:
        with self._lock:
            path = self._path(schedule_id)
            if not path.exists():
                raise NotFoundError("schedule", schedule_id)
            path.unlink()

    def mark_as_run(self, schedule_id, job_id, success, error=None, now=None) -> Schedule:
        with self._lock:
            updated = apply_run(self.get(schedule_id), job_id, success, error, now or utcnow())
            self._write(updated)
        return updated

    def _write(self, schedule: Schedule) -> None:
        path = self._path(schedule.id)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(schedule.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_schedule_store(settings: Settings) -> ScheduleStore:
    if settings.blog_database_url:
        try:
            store = PostgresScheduleStore(settings.blog_database_url)
            logger.info("Using Postgres schedule store")
            return store
        except Exception as e:
            logger.warning("Postgres schedule store failed (%s), falling back to file store", e)
    return FileScheduleStore(settings.data_dir)
