"""CLI smoke tests against a file store in a temp directory."""

import pytest
from typer.testing import CliRunner

from blogagent.cli import app
from blogagent.jobs.models import JobStatus, StepStatus
from blogagent.jobs.store import FileJobStore
from tests.fakes import move_to

runner = CliRunner()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("BLOG_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("BLOG_CONTENT_DIR", str(tmp_path / "content"))
    monkeypatch.setenv("BLOG_PUBLIC_DIR", str(tmp_path / "public"))
    monkeypatch.delenv("BLOG_DATABASE_URL", raising=False)
    return tmp_path / "data"


def test_jobs_and_show(data_dir):
    store = FileJobStore(data_dir)
    job = store.create("Python asyncio", "tech")
    store.append_progress(job.id, "init", StepStatus.PROGRESS, "Job created")

    result = runner.invoke(app, ["jobs"])
    assert result.exit_code == 0
    assert "1 total" in result.output

    result = runner.invoke(app, ["show", job.id])
    assert result.exit_code == 0
    assert "Job created" in result.output


def test_hold_outside_review_fails(data_dir):
    job = FileJobStore(data_dir).create("Python asyncio", "tech")
    result = runner.invoke(app, ["hold", job.id])
    assert result.exit_code == 1
    assert "queued" in result.output


def test_deploy_reject(data_dir):
    store = FileJobStore(data_dir)
    job = store.create("Python asyncio", "tech")
    move_to(store, job.id, JobStatus.PENDING_DEPLOY)

    result = runner.invoke(app, ["deploy", job.id, "reject"])
    assert result.exit_code == 0
    assert store.get(job.id).status == JobStatus.COMPLETED


def test_stats(data_dir):
    FileJobStore(data_dir).create("Python asyncio", "tech")
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "total 1" in result.output


def test_schedule_add_and_list(data_dir):
    result = runner.invoke(app, ["schedule-add", "daily", "--topic", "asyncio", "--cron", "0 9 * * 1-5"])
    assert result.exit_code == 0, result.output
    result = runner.invoke(app, ["schedules"])
    assert "daily" in result.output


def test_schedule_add_rejects_bad_cron(data_dir):
    result = runner.invoke(app, ["schedule-add", "bad", "--cron", "nope"])
    assert result.exit_code == 1


def test_thumbnail_upload_from_file(data_dir, tmp_path):
    store = FileJobStore(data_dir)
    job = store.create("Python asyncio", "tech")
    move_to(store, job.id, JobStatus.PENDING_DEPLOY, metadata={"title": "Asyncio", "slug": "python-asyncio"})
    image = tmp_path / "cover.jpg"
    image.write_bytes(b"\xff\xd8\xff jpeg")

    result = runner.invoke(app, ["thumbnail", job.id, "--file", str(image)])
    assert result.exit_code == 0, result.output
    assert "thumbnailImage.jpg" in result.output
    assert store.get(job.id).metadata["thumbnail_image"].endswith("thumbnailImage.jpg")
