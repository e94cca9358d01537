"""Tests for the workflow executor pipeline."""

import asyncio
from pathlib import Path

import pytest

from blogagent.errors import InvalidStateError
from blogagent.jobs.models import JobStatus, StepStatus, can_transition
from blogagent.jobs.store import FileJobStore
from blogagent.workflow.executor import WorkflowExecutor
from blogagent.workflow.gates import GateController
from blogagent.workflow.runner import JobRunner
from tests.fakes import FakeSourceControl, FakeTools


def _steps(store, job_id):
    return [(e.step, e.status.value) for e in store.list_progress(job_id)]


class TestGeneration:

    def test_runs_until_human_review(self, job_store, executor, tools):
        job = job_store.create("Python asyncio", "tech", keywords=["asyncio"])
        result = asyncio.run(executor.run_generation(job.id))

        assert result.status == JobStatus.HUMAN_REVIEW
        job = job_store.get(job.id)
        assert job.current_step == "human_review"
        assert job.progress == 50
        assert job.research_data["summary"] == "Notes on Python asyncio"
        assert job.draft_content == tools.body
        assert job.review_result["score"] == 85
        assert job.review_result["passed"] is True
        assert job.human_approval is None
        assert _steps(job_store, job.id) == [
            ("research", "started"),
            ("research", "completed"),
            ("write", "started"),
            ("write", "completed"),
            ("review", "started"),
            ("review", "completed"),
            ("human_review", "progress"),
        ]
        assert tools.steps() == ["research", "write", "review"]

    def test_duplicate_invocation_is_rejected(self, job_store, executor, tools):
        job = job_store.create("Python asyncio", "tech")
        asyncio.run(executor.run_generation(job.id))
        log_size = len(job_store.list_progress(job.id))

        with pytest.raises(InvalidStateError):
            asyncio.run(executor.run_generation(job.id))
        assert job_store.get(job.id).status == JobStatus.HUMAN_REVIEW
        assert len(job_store.list_progress(job.id)) == log_size
        assert tools.steps().count("research") == 1

    def test_low_review_score_still_reaches_the_gate(self, tmp_path, job_store):
        tools = FakeTools(tmp_path / "content", score=40)
        executor = WorkflowExecutor(job_store, tools, FakeSourceControl())
        job = job_store.create("Python asyncio", "tech")
        asyncio.run(executor.run_generation(job.id))
        job = job_store.get(job.id)
        assert job.status == JobStatus.HUMAN_REVIEW
        assert job.review_result["passed"] is False


class TestFailures:

    def test_step_error_fails_the_job(self, tmp_path, job_store):
        tools = FakeTools(tmp_path / "content", fail_step="write")
        executor = WorkflowExecutor(job_store, tools, FakeSourceControl())
        job = job_store.create("Python asyncio", "tech")

        assert asyncio.run(executor.run_generation(job.id)) is None
        job = job_store.get(job.id)
        assert job.status == JobStatus.FAILED
        assert "write exploded" in job.error
        assert job.research_data is not None
        assert job.draft_content is None
        last = job_store.list_progress(job.id)[-1]
        assert (last.step, last.status) == ("write", StepStatus.FAILED)
        assert "review" not in tools.steps()

    def test_step_timeout_fails_the_job(self, tmp_path, job_store):
        tools = FakeTools(tmp_path / "content", slow_step="research", delay=0.5)
        executor = WorkflowExecutor(job_store, tools, FakeSourceControl(), step_timeout=0.05)
        job = job_store.create("Python asyncio", "tech")

        asyncio.run(executor.run_generation(job.id))
        job = job_store.get(job.id)
        assert job.status == JobStatus.FAILED
        assert "timed out" in job.error
        assert job.progress == 10

    def test_error_message_is_truncated(self, tmp_path, job_store):
        def research(topic, category):
            raise RuntimeError("x" * 2000)

        tools = FakeTools(tmp_path / "content")
        tools.research = research
        executor = WorkflowExecutor(job_store, tools, FakeSourceControl())
        job = job_store.create("Python asyncio", "tech")
        asyncio.run(executor.run_generation(job.id))
        assert len(job_store.get(job.id).error) == 500

    def test_validation_failure_keeps_the_result(self, tmp_path, job_store):
        tools = FakeTools(tmp_path / "content", body="Too short to publish.")
        executor = WorkflowExecutor(job_store, tools, FakeSourceControl())
        job = job_store.create("Python asyncio", "tech", auto_approve=True)

        asyncio.run(executor.run_generation(job.id))
        job = job_store.get(job.id)
        assert job.status == JobStatus.FAILED
        assert job.error.startswith("Validation failed")
        assert job.validation_result["passed"] is False
        assert any("shorter than 500" in e for e in job.validation_result["errors"])
        assert Path(job.filepath).exists()


class TestRefinementAndDeploy:

    def _at_review(self, job_store, executor, **options):
        job = job_store.create("Python asyncio", "tech", **options)
        asyncio.run(executor.run_generation(job.id))
        return job.id

    def test_refinement_reaches_pending_deploy(self, job_store, executor, tools):
        job_id = self._at_review(job_store, executor)
        job_store.update(job_id, {"status": JobStatus.CREATING, "human_approval": True})

        result = asyncio.run(executor.run_refinement(job_id))
        assert result.status == JobStatus.PENDING_DEPLOY
        job = job_store.get(job_id)
        assert job.progress == 90
        assert job.metadata["slug"] == "python-asyncio"
        assert job.metadata["created_at"] == "2026-01-15"
        assert job.validation_result == {"passed": True, "errors": []}
        assert Path(job.filepath).name == "python-asyncio.mdoc"
        assert Path(job.filepath).parent.name == "tech"
        steps = [s for s, status in _steps(job_store, job_id) if status == "completed"]
        assert steps[-4:] == ["create", "thumbnail", "createFile", "validate"]
        assert _steps(job_store, job_id)[-1] == ("pending_deploy", "progress")

    def test_thumbnail_skipped_without_image_model(self, job_store, executor):
        job_id = self._at_review(job_store, executor)
        job_store.update(job_id, {"status": JobStatus.CREATING})
        asyncio.run(executor.run_refinement(job_id))
        job = job_store.get(job_id)
        assert job.thumbnail_data is None
        assert job.metadata["thumbnail_image"] is None
        thumb = [e for e in job_store.list_progress(job_id) if e.step == "thumbnail" and e.status == StepStatus.COMPLETED]
        assert thumb[0].data == {"skipped": True}

    def test_thumbnail_path_lands_in_metadata(self, tmp_path, job_store):
        tools = FakeTools(tmp_path / "content", with_thumbnail=True)
        executor = WorkflowExecutor(job_store, tools, FakeSourceControl())
        job_id = self._at_review(job_store, executor, auto_approve=True)
        job = job_store.get(job_id)
        assert job.metadata["thumbnail_image"] == "/images/thumbnails/python-asyncio/thumbnailImage.png"
        assert "thumbnailImage:" in Path(job.filepath).read_text(encoding="utf-8")

    def test_deploy_completes_with_pr(self, job_store, executor, source_control):
        job_id = self._at_review(job_store, executor, auto_approve=True)
        job_store.update(job_id, {"status": JobStatus.DEPLOYING})

        result = asyncio.run(executor.run_deploy(job_id))
        assert result.status == JobStatus.COMPLETED
        job = job_store.get(job_id)
        assert job.progress == 100
        assert job.commit_hash == "abc1234def"
        assert job.pr_result["pr_url"] == "https://github.com/acme/blog/pull/7"
        assert source_control.calls == [(job.filepath, "python-asyncio")]
        assert _steps(job_store, job_id)[-1] == ("complete", "completed")

    def test_deploy_failure_fails_the_job(self, tmp_path, job_store):
        executor = WorkflowExecutor(job_store, FakeTools(tmp_path / "content"), FakeSourceControl(fail=True))
        job_id = self._at_review(job_store, executor, auto_approve=True)
        job_store.update(job_id, {"status": JobStatus.DEPLOYING})

        asyncio.run(executor.run_deploy(job_id))
        job = job_store.get(job_id)
        assert job.status == JobStatus.FAILED
        assert "push rejected" in job.error
        assert job.filepath is not None


def test_auto_approve_runs_through_to_pending_deploy(job_store, executor, tools):
    job = job_store.create("Python asyncio", "tech", auto_approve=True)
    result = asyncio.run(executor.run_generation(job.id))

    assert result.status == JobStatus.PENDING_DEPLOY
    job = job_store.get(job.id)
    assert job.human_approval is True
    approvals = [e for e in job_store.list_progress(job.id) if e.step == "human_review"]
    assert approvals[-1].status == StepStatus.COMPLETED
    assert approvals[-1].data == {"action": "approve", "auto": True}
    assert tools.steps() == ["research", "write", "review", "create", "thumbnail", "createFile", "validate"]


class RecordingStore(FileJobStore):
    """File store that records every status write as (from, to)."""

    def __init__(self, root):
        super().__init__(root)
        self.moves: list[tuple[JobStatus, JobStatus]] = []

    def update(self, job_id, fields, expected_status=None):
        before = self.get(job_id).status
        job = super().update(job_id, fields, expected_status)
        if "status" in fields:
            self.moves.append((before, job.status))
        return job


def test_every_status_write_follows_the_graph(tmp_path):
    store = RecordingStore(tmp_path / "data")
    runner = JobRunner()
    executor = WorkflowExecutor(store, FakeTools(tmp_path / "content"), FakeSourceControl())
    gates = GateController(store, executor, runner)
    job = store.create("Python asyncio", "tech")

    async def scenario():
        await executor.run_generation(job.id)
        gates.submit_review(job.id, "rewrite", "More examples")
        await runner.join(job.id)
        gates.hold(job.id)
        gates.resume(job.id)
        gates.submit_review(job.id, "approve")
        await runner.join(job.id)
        gates.decide_deploy(job.id, "approve")
        await runner.join(job.id)

    asyncio.run(scenario())

    assert store.get(job.id).status == JobStatus.COMPLETED
    assert all(can_transition(before, after) for before, after in store.moves)
    S = JobStatus
    assert [after for _, after in store.moves] == [
        S.RESEARCH, S.WRITING, S.REVIEW, S.HUMAN_REVIEW,
        S.WRITING, S.WRITING, S.REVIEW, S.HUMAN_REVIEW,
        S.ON_HOLD, S.HUMAN_REVIEW,
        S.CREATING, S.CREATING, S.CREATING, S.CREATE_FILE, S.VALIDATING, S.PENDING_DEPLOY,
        S.DEPLOYING, S.DEPLOYING, S.COMPLETED,
    ]
