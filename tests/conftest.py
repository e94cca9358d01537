"""Pytest configuration and shared fixtures."""

import pytest

from blogagent.config import Settings
from blogagent.jobs.store import FileJobStore
from blogagent.schedules.store import FileScheduleStore
from blogagent.schedules.topics import TopicResolver
from blogagent.services import build_services
from blogagent.workflow.executor import WorkflowExecutor
from tests.fakes import FakeSourceControl, FakeTools


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        blog_data_dir=str(tmp_path / "data"),
        blog_content_dir=str(tmp_path / "content"),
        blog_public_dir=str(tmp_path / "public"),
        blog_database_url=None,
        blog_step_timeout_seconds=5.0,
        blog_stream_poll_interval=0.01,
        blog_stream_keepalive_seconds=5.0,
        blog_scheduler_enabled=False,
        cron_secret=None,
        openai_api_key=None,
        anthropic_api_key=None,
    )


@pytest.fixture
def job_store(tmp_path):
    return FileJobStore(tmp_path / "data")


@pytest.fixture
def schedule_store(tmp_path):
    return FileScheduleStore(tmp_path / "data")


@pytest.fixture
def tools(tmp_path):
    return FakeTools(tmp_path / "content")


@pytest.fixture
def source_control():
    return FakeSourceControl()


@pytest.fixture
def executor(job_store, tools, source_control):
    return WorkflowExecutor(job_store, tools, source_control, step_timeout=5.0)


@pytest.fixture
def services(settings, job_store, schedule_store, tools, source_control):
    return build_services(
        settings,
        jobs=job_store,
        schedules=schedule_store,
        tools=tools,
        source_control=source_control,
        topics=TopicResolver(),
    )
