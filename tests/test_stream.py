"""Tests for the progress stream publisher."""

import asyncio
import json

import pytest

from blogagent.errors import NotFoundError
from blogagent.jobs.models import JobStatus, StepStatus
from blogagent.workflow.stream import ProgressStreamPublisher, StreamEvent
from tests.fakes import move_to


def _publisher(store, keepalive=5.0):
    return ProgressStreamPublisher(store, poll_interval=0.01, keepalive_interval=keepalive)


async def _collect(stream, timeout=2.0):
    events = []

    async def consume():
        async for event in stream:
            events.append(event)

    await asyncio.wait_for(consume(), timeout)
    return events


class TestSnapshot:

    def test_unknown_job_raises_on_open(self, job_store):
        with pytest.raises(NotFoundError):
            _publisher(job_store).open("job_missing")

    def test_completed_job_ends_after_snapshot(self, job_store):
        job = job_store.create("Topic", "tech")
        job_store.append_progress(job.id, "complete", StepStatus.COMPLETED, "Post published")
        move_to(job_store, job.id, JobStatus.COMPLETED, filepath="/tmp/post.mdoc")

        events = asyncio.run(_collect(_publisher(job_store).open(job.id)))
        assert [e.type for e in events] == ["progress", "complete"]
        assert events[0].data["seq"] == 1
        assert events[0].data["progress"] == 100
        assert events[1].data["filepath"] == "/tmp/post.mdoc"

    def test_failed_job_reports_failing_step(self, job_store):
        job = job_store.create("Topic", "tech")
        job_store.append_progress(job.id, "write", StepStatus.FAILED, "model down")
        job_store.update(job.id, {"status": JobStatus.FAILED, "error": "model down"})

        events = asyncio.run(_collect(_publisher(job_store).open(job.id)))
        assert events[-1].type == "error"
        assert events[-1].data["message"] == "model down"
        assert events[-1].data["step"] == "write"

    def test_job_waiting_for_review_announces_gate(self, job_store):
        job = job_store.create("Topic", "tech")
        move_to(job_store, job.id, JobStatus.HUMAN_REVIEW, draft_content="draft")

        async def first_two():
            stream = _publisher(job_store).open(job.id)
            events = [await stream.__anext__(), await stream.__anext__()]
            await stream.aclose()
            return events

        events = asyncio.run(first_two())
        assert [e.type for e in events] == ["progress", "review-required"]
        assert events[1].data["draft_content"] == "draft"


class TestLiveTail:

    def test_follows_progress_until_failure(self, job_store):
        job = job_store.create("Topic", "tech")

        async def scenario():
            consumer = asyncio.create_task(_collect(_publisher(job_store).open(job.id)))
            await asyncio.sleep(0.05)
            job_store.update(job.id, {"status": JobStatus.RESEARCH})
            job_store.append_progress(job.id, "research", StepStatus.STARTED, "Researching")
            await asyncio.sleep(0.05)
            job_store.append_progress(job.id, "research", StepStatus.COMPLETED, "Research complete")
            job_store.append_progress(job.id, "write", StepStatus.FAILED, "boom")
            job_store.update(job.id, {"status": JobStatus.FAILED, "error": "boom"})
            return await consumer

        events = asyncio.run(scenario())
        assert events[0].type == "progress"
        assert events[-1].type == "error"
        assert events[-1].data["step"] == "write"
        logged = [e.data["message"] for e in events if e.type == "progress" and "seq" in e.data]
        assert logged == ["Researching", "Research complete", "boom"]
        seqs = [e.data["seq"] for e in events if e.type == "progress" and "seq" in e.data]
        assert seqs == sorted(seqs)

    def test_gate_then_completion(self, job_store):
        job = job_store.create("Topic", "tech")

        async def scenario():
            consumer = asyncio.create_task(_collect(_publisher(job_store).open(job.id)))
            await asyncio.sleep(0.05)
            job_store.append_progress(job.id, "human_review", StepStatus.PROGRESS, "Waiting for human review")
            move_to(job_store, job.id, JobStatus.HUMAN_REVIEW)
            await asyncio.sleep(0.05)
            move_to(job_store, job.id, JobStatus.COMPLETED)
            job_store.append_progress(job.id, "deploy", StepStatus.COMPLETED, "Deploy skipped")
            return await consumer

        events = asyncio.run(scenario())
        types = [e.type for e in events]
        assert types.count("review-required") == 1
        assert types[-1] == "complete"
        assert types.index("review-required") < types.index("complete")
        # entry appended right after the terminal status still arrives
        assert events[-2].data["message"] == "Deploy skipped"

    def test_deleted_job_ends_with_error(self, job_store):
        job = job_store.create("Topic", "tech")

        async def scenario():
            consumer = asyncio.create_task(_collect(_publisher(job_store).open(job.id)))
            await asyncio.sleep(0.05)
            job_store.delete(job.id)
            return await consumer

        events = asyncio.run(scenario())
        assert events[-1].type == "error"
        assert events[-1].data["message"] == "Job was deleted"

    def test_keepalive_when_idle(self, job_store):
        job = job_store.create("Topic", "tech")

        async def scenario():
            stream = _publisher(job_store, keepalive=0.03).open(job.id)
            seen = []
            async for event in stream:
                seen.append(event.type)
                if event.type == "keepalive":
                    break
            await stream.aclose()
            return seen

        seen = asyncio.run(asyncio.wait_for(scenario(), 2.0))
        assert seen == ["progress", "keepalive"]


class TestWireFormat:

    def test_sse_data_line(self):
        event = StreamEvent(type="progress", data={"step": "research", "progress": 10})
        text = event.to_sse()
        assert text.startswith("data: ")
        assert text.endswith("\n\n")
        assert json.loads(text[len("data: "):]) == {"type": "progress", "step": "research", "progress": 10}

    def test_keepalive_is_a_comment(self):
        assert StreamEvent(type="keepalive").to_sse() == ": keepalive\n\n"

    def test_terminal_flags(self):
        assert StreamEvent(type="complete").is_terminal
        assert StreamEvent(type="error").is_terminal
        assert not StreamEvent(type="review-required").is_terminal
