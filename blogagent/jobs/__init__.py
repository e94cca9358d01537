"""Generation job models and storage."""

from blogagent.jobs.models import (
    Category,
    Job,
    JobListFilter,
    JobPage,
    JobStats,
    JobStatus,
    ProgressLogEntry,
    StepStatus,
    Template,
)
from blogagent.jobs.store import FileJobStore, JobStore, PostgresJobStore, get_job_store, new_job_id

__all__ = [
    "Category",
    "Job",
    "JobListFilter",
    "JobPage",
    "JobStats",
    "JobStatus",
    "ProgressLogEntry",
    "StepStatus",
    "Template",
    "JobStore",
    "FileJobStore",
    "PostgresJobStore",
    "get_job_store",
    "new_job_id",
]
