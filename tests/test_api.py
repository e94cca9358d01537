"""API tests through FastAPI's TestClient with in-process services."""

import time

import pytest
from fastapi.testclient import TestClient

from backend.main import create_app
from blogagent.jobs.models import JobStatus
from tests.fakes import move_to


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as client:
        yield client


def _wait_for(client, job_id, status, timeout=5.0):
    deadline = time.monotonic() + timeout
    job = None
    while time.monotonic() < deadline:
        job = client.get(f"/api/jobs/{job_id}").json()["job"]
        if job["status"] == status:
            return job
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} stuck in {job and job['status']}, expected {status}")


def _generate(client, **body):
    resp = client.post("/api/generate", json={"topic": "Python asyncio", "category": "tech", **body})
    assert resp.status_code == 202
    return resp.json()["job_id"]


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["active_jobs"] == 0


class TestGenerate:

    def test_accepts_and_runs_to_review(self, client):
        resp = client.post(
            "/api/generate",
            json={"topic": "Python asyncio", "category": "tech", "template": "tutorial", "keywords": ["asyncio"]},
        )
        assert resp.status_code == 202
        body = resp.json()
        assert body["status"] == "queued"
        assert body["stream_url"] == f"/api/jobs/{body['job_id']}/stream"

        job = _wait_for(client, body["job_id"], "human_review")
        assert job["template"] == "tutorial"
        assert job["review_result"]["score"] == 85

        detail = client.get(f"/api/jobs/{body['job_id']}").json()
        assert detail["progress_logs"][0]["step"] == "init"

    def test_blank_topic_is_bad_request(self, client):
        resp = client.post("/api/generate", json={"topic": "  "})
        assert resp.status_code == 400

    def test_unknown_category_is_rejected(self, client):
        resp = client.post("/api/generate", json={"topic": "x", "category": "sports"})
        assert resp.status_code == 422


class TestDecisions:

    def test_full_flow(self, client, source_control):
        job_id = _generate(client)
        _wait_for(client, job_id, "human_review")

        resp = client.post(f"/api/human-review/{job_id}", json={"action": "approve"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "next_step": "creating"}
        job = _wait_for(client, job_id, "pending_deploy")
        assert job["filepath"].endswith("python-asyncio.mdoc")

        resp = client.post(f"/api/deploy/{job_id}", json={"action": "approve"})
        assert resp.json() == {"success": True, "status": "deploying"}
        job = _wait_for(client, job_id, "completed")
        assert job["pr_result"]["pr_url"] == "https://github.com/acme/blog/pull/7"

        stream = client.get(f"/api/jobs/{job_id}/stream")
        assert stream.status_code == 200
        assert stream.headers["content-type"].startswith("text/event-stream")
        assert '"type": "complete"' in stream.text

    def test_wrong_status_is_conflict(self, client, services):
        job = services.jobs.create("Python asyncio", "tech")
        resp = client.post(f"/api/human-review/{job.id}", json={"action": "approve"})
        assert resp.status_code == 409
        assert resp.json()["current_status"] == "queued"

    def test_unknown_job_is_not_found(self, client):
        assert client.post("/api/human-review/job_missing", json={"action": "approve"}).status_code == 404
        assert client.get("/api/jobs/job_missing").status_code == 404
        assert client.get("/api/jobs/job_missing/stream").status_code == 404

    def test_feedback_needs_text(self, client):
        job_id = _generate(client)
        _wait_for(client, job_id, "human_review")
        resp = client.post(f"/api/human-review/{job_id}", json={"action": "feedback", "feedback": ""})
        assert resp.status_code == 400

    def test_hold_resume_and_edit(self, client):
        job_id = _generate(client)
        _wait_for(client, job_id, "human_review")

        resp = client.patch(f"/api/jobs/{job_id}/content", json={"final_content": "# Edited"})
        assert resp.status_code == 200
        assert resp.json()["final_content"] == "# Edited"

        assert client.post(f"/api/jobs/{job_id}/hold").json()["status"] == "on_hold"
        assert client.post(f"/api/human-review/{job_id}", json={"action": "approve"}).status_code == 409
        assert client.delete(f"/api/jobs/{job_id}/hold").json()["status"] == "human_review"

    def test_deploy_skip(self, client, source_control):
        job_id = _generate(client, auto_approve=True)
        _wait_for(client, job_id, "pending_deploy")
        resp = client.post(f"/api/deploy/{job_id}", json={"action": "skip"})
        assert resp.json()["status"] == "completed"
        assert source_control.calls == []

    def test_thumbnail_upload_and_regenerate(self, client, tools):
        job_id = _generate(client, auto_approve=True)
        _wait_for(client, job_id, "pending_deploy")

        resp = client.post(
            f"/api/jobs/{job_id}/thumbnail/upload",
            files={"file": ("cover.webp", b"RIFF fake webp", "image/webp")},
        )
        assert resp.status_code == 200
        assert resp.json()["path"].endswith("/thumbnailImage.webp")
        assert resp.json()["mime_type"] == "image/webp"

        resp = client.post(
            f"/api/jobs/{job_id}/thumbnail/upload",
            files={"file": ("cover.gif", b"GIF89a", "image/gif")},
        )
        assert resp.status_code == 400

        # No image model configured.
        assert client.post(f"/api/jobs/{job_id}/thumbnail").status_code == 400

        tools.with_thumbnail = True
        resp = client.post(f"/api/jobs/{job_id}/thumbnail", json={"prompt": "flat illustration"})
        assert resp.status_code == 200
        assert resp.json()["path"].endswith("/thumbnailImage.png")

    def test_thumbnail_outside_gate_is_conflict(self, client, services):
        job = services.jobs.create("Python asyncio", "tech")
        resp = client.post(
            f"/api/jobs/{job.id}/thumbnail/upload",
            files={"file": ("cover.png", b"\x89PNG", "image/png")},
        )
        assert resp.status_code == 409


class TestQueries:

    def test_list_recent_stats_delete(self, client, services):
        ids = [services.jobs.create(f"Topic {i}", "tech" if i % 2 else "life").id for i in range(3)]
        move_to(services.jobs, ids[0], JobStatus.COMPLETED)

        page = client.get("/api/jobs", params={"page": 1, "limit": 2}).json()
        assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
        assert [j["id"] for j in page["jobs"]] == [ids[2], ids[1]]

        assert client.get("/api/jobs", params={"category": "tech"}).json()["pagination"]["total"] == 1
        assert len(client.get("/api/jobs/recent", params={"limit": 2}).json()) == 2

        stats = client.get("/api/stats").json()
        assert stats["total"] == 3
        assert stats["completed"] == 1
        assert stats["success_rate"] == 100

        assert client.delete(f"/api/jobs/{ids[1]}").status_code == 204
        assert client.get(f"/api/jobs/{ids[1]}").status_code == 404


class TestCron:

    def test_secret_required_when_configured(self, client, services):
        services.settings = services.settings.model_copy(update={"cron_secret": "s3cret"})
        assert client.post("/api/cron").status_code == 401
        assert client.get("/api/cron", headers={"Authorization": "Bearer wrong"}).status_code == 401

        resp = client.get("/api/cron", headers={"Authorization": "Bearer s3cret"})
        assert resp.status_code == 200
        assert resp.json() == {"processed": 0, "results": []}
