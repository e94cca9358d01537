"""Human gate controller: review, hold/resume, content and thumbnail edits, deploy decisions.

Every decision is validated against the job's current status through the
store's compare-and-set, so a decision on a job in the wrong status raises
InvalidStateError without mutating anything. Mutating decisions append a
progress entry.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from blogagent.errors import InvalidInputError, InvalidStateError
from blogagent.jobs.models import Job, JobStatus, StepStatus
from blogagent.jobs.store import JobStore
from blogagent.tools.file_manager import THUMBNAIL_EXTENSIONS, thumbnail_path
from blogagent.schemas.artifacts import ThumbnailResult
from blogagent.workflow.executor import WorkflowExecutor
from blogagent.workflow.runner import JobRunner
from blogagent.workflow.transitions import approve_review

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = ("approve", "feedback", "rewrite")
DEPLOY_ACTIONS = ("approve", "reject", "skip")
THUMBNAIL_STATUSES = (JobStatus.HUMAN_REVIEW, JobStatus.PENDING_DEPLOY)
MAX_THUMBNAIL_BYTES = 5 * 1024 * 1024


class GateController:
    def __init__(self, store: JobStore, executor: WorkflowExecutor, runner: JobRunner):
        self._store = store
        self._executor = executor
        self._runner = runner

    def submit_review(self, job_id: str, action: str, feedback: str | None = None) -> JobStatus:
        """Apply a review decision and return the status the job moved to."""
        action = (action or "").strip().lower()
        if action not in REVIEW_ACTIONS:
            raise InvalidInputError(f"Unsupported review action: {action!r}")
        text = (feedback or "").strip()

        if action == "approve":
            approve_review(self._store, job_id, feedback=text or None)
            logger.info("Job %s approved", job_id)
            self._runner.launch(job_id, lambda: self._executor.run_refinement(job_id), "refinement")
            return JobStatus.CREATING

        if not text:
            raise InvalidInputError("feedback is required for feedback/rewrite")
        self._store.update(
            job_id,
            {
                "status": JobStatus.WRITING,
                "human_approval": False,
                "human_feedback": text,
                "final_content": None,
            },
            expected_status=JobStatus.HUMAN_REVIEW,
        )
        self._store.append_progress(
            job_id, "human_review", StepStatus.COMPLETED, f"Human review: {action}",
            {"action": action, "feedback": text},
        )
        logger.info("Job %s sent back for rewrite", job_id)
        self._runner.launch(job_id, lambda: self._executor.run_rewrite(job_id), "rewrite")
        return JobStatus.WRITING

    def edit_content(self, job_id: str, final_content: str, metadata: dict[str, Any] | None = None) -> Job:
        """Replace the post body (and optionally merge metadata) during human review."""
        if not final_content or not final_content.strip():
            raise InvalidInputError("final_content is required")
        fields: dict[str, Any] = {"final_content": final_content}
        if metadata:
            current = self._store.get(job_id)
            fields["metadata"] = {**(current.metadata or {}), **metadata}
        job = self._store.update(job_id, fields, expected_status=JobStatus.HUMAN_REVIEW)
        self._store.append_progress(
            job_id, "human_review", StepStatus.PROGRESS, "Content edited by reviewer",
            {"length": len(final_content), "metadata_keys": sorted(metadata or {})},
        )
        return job

    def hold(self, job_id: str) -> Job:
        job = self._store.update(job_id, {"status": JobStatus.ON_HOLD}, expected_status=JobStatus.HUMAN_REVIEW)
        self._store.append_progress(job_id, "on_hold", StepStatus.PROGRESS, "Job put on hold")
        return job

    def resume(self, job_id: str) -> Job:
        job = self._store.update(job_id, {"status": JobStatus.HUMAN_REVIEW}, expected_status=JobStatus.ON_HOLD)
        self._store.append_progress(job_id, "human_review", StepStatus.PROGRESS, "Job resumed from hold")
        return job

    def decide_deploy(self, job_id: str, action: str) -> JobStatus:
        action = (action or "").strip().lower()
        if action not in DEPLOY_ACTIONS:
            raise InvalidInputError(f"Unsupported deploy action: {action!r}")

        if action == "approve":
            self._store.update(job_id, {"status": JobStatus.DEPLOYING}, expected_status=JobStatus.PENDING_DEPLOY)
            self._store.append_progress(job_id, "deploy", StepStatus.PROGRESS, "Deploy approved")
            self._runner.launch(job_id, lambda: self._executor.run_deploy(job_id), "deploy")
            return JobStatus.DEPLOYING

        job = self._store.update(job_id, {"status": JobStatus.COMPLETED}, expected_status=JobStatus.PENDING_DEPLOY)
        self._store.append_progress(
            job_id, "deploy", StepStatus.COMPLETED,
            "Deploy skipped; no pull request created",
            {"action": action, "filepath": job.filepath},
        )
        logger.info("Job %s completed without deploy", job_id)
        return JobStatus.COMPLETED

    # ------------------------------------------------------------------
    # Thumbnail
    # ------------------------------------------------------------------

    async def regenerate_thumbnail(self, job_id: str, prompt: str | None = None) -> ThumbnailResult:
        """Generate a new thumbnail, optionally from a custom image prompt."""
        job = self._thumbnail_target(job_id)
        prompt = (prompt or "").strip() or None
        thumbnail = await self._executor.generate_thumbnail(job, prompt)
        if thumbnail is None:
            raise InvalidInputError("No image model is configured; upload a thumbnail instead")
        message = "Thumbnail regenerated with custom prompt" if prompt else "Thumbnail regenerated"
        self._replace_thumbnail(job_id, thumbnail, message, {"source": "generated", "custom_prompt": bool(prompt)})
        return thumbnail

    def upload_thumbnail(self, job_id: str, data: bytes, mime_type: str | None) -> ThumbnailResult:
        """Store an uploaded PNG, JPEG or WebP image as the post thumbnail."""
        job = self._thumbnail_target(job_id)
        mime_type = (mime_type or "").lower()
        if mime_type not in THUMBNAIL_EXTENSIONS:
            raise InvalidInputError(f"Unsupported image type: {mime_type or 'unknown'!r}")
        if not data:
            raise InvalidInputError("Uploaded image is empty")
        if len(data) > MAX_THUMBNAIL_BYTES:
            raise InvalidInputError(f"Image too large. Maximum size is {MAX_THUMBNAIL_BYTES // (1024 * 1024)} MB.")
        thumbnail = ThumbnailResult(
            image_base64=base64.b64encode(data).decode("ascii"),
            mime_type=mime_type,
            path=thumbnail_path(job.metadata.get("slug", ""), mime_type),
        )
        self._replace_thumbnail(job_id, thumbnail, "Thumbnail uploaded", {"source": "upload", "size": len(data)})
        return thumbnail

    def _thumbnail_target(self, job_id: str) -> Job:
        job = self._store.get(job_id)
        if job.status not in THUMBNAIL_STATUSES:
            raise InvalidStateError(job_id, job.status.value, [s.value for s in THUMBNAIL_STATUSES])
        if not job.metadata:
            raise InvalidInputError("Job has no metadata yet")
        return job

    def _replace_thumbnail(self, job_id: str, thumbnail: ThumbnailResult, message: str, data: dict) -> Job:
        current = self._store.get(job_id)
        metadata = {**(current.metadata or {}), "thumbnail_image": thumbnail.path}
        job = self._store.update(
            job_id,
            {"thumbnail_data": thumbnail.model_dump(mode="json"), "metadata": metadata},
            expected_status=THUMBNAIL_STATUSES,
        )
        # A post file already exists once refinement has run.
        if job.filepath:
            self._executor.write_post_file(job)
        self._store.append_progress(job_id, "thumbnail", StepStatus.COMPLETED, message, {**data, "path": thumbnail.path})
        logger.info("Job %s thumbnail replaced (%s)", job_id, data["source"])
        return job
