"""Workflow executor: runs the generation pipeline for one job.

Entry points (each launched through the JobRunner):

  run_generation   queued   -> research -> writing -> review -> human_review (gate)
  run_rewrite      writing  -> review -> human_review (gate)
  run_refinement   creating -> createFile -> validating -> pending_deploy (gate)
  run_deploy       deploying -> completed

Every step moves the job into its status with a compare-and-set on the
previous status, runs the tool in a worker thread under a timeout, then
persists the artifact and a "completed" progress entry. Any failure appends a
"failed" entry, sets status=failed with the error, and stops the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from blogagent.errors import InvalidStateError, NotFoundError, StepFailure
from blogagent.jobs.models import ACTIVE_STATUSES, Job, JobStatus, StepStatus
from blogagent.jobs.store import JobStore
from blogagent.schemas.artifacts import (
    PostMetadata,
    ResearchData,
    ReviewResult,
    ThumbnailResult,
)
from blogagent.tools.base import ContentTools, DraftRequest, RefineRequest, SourceControl
from blogagent.workflow.transitions import approve_review

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 500

# A step action returns (artifact fields, completion message, progress data).
StepResult = tuple[dict[str, Any], str, dict[str, Any] | None]


class WorkflowExecutor:
    def __init__(
        self,
        store: JobStore,
        tools: ContentTools,
        source_control: SourceControl,
        step_timeout: float = 300.0,
    ):
        self._store = store
        self._tools = tools
        self._source_control = source_control
        self._step_timeout = step_timeout

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_generation(self, job_id: str) -> Job | None:
        job = self._store.get(job_id)
        job = await self._run_step(job, "research", JobStatus.RESEARCH, JobStatus.QUEUED, self._research,
                                   f'Researching "{job.topic}"')
        if job is None:
            return None
        job = await self._run_step(job, "write", JobStatus.WRITING, JobStatus.RESEARCH, self._draft,
                                   "Writing draft")
        if job is None:
            return None
        return await self._review_and_wait(job)

    async def run_rewrite(self, job_id: str) -> Job | None:
        """Redraft with the reviewer's feedback, then return to the review gate."""
        job = self._store.get(job_id)
        job = await self._run_step(job, "write", JobStatus.WRITING, JobStatus.WRITING, self._draft,
                                   "Rewriting draft with reviewer feedback")
        if job is None:
            return None
        return await self._review_and_wait(job)

    async def run_refinement(self, job_id: str) -> Job | None:
        job = self._store.get(job_id)
        job = await self._run_step(job, "create", JobStatus.CREATING, JobStatus.CREATING, self._refine,
                                   "Refining content and generating metadata")
        if job is None:
            return None
        job = await self._run_step(job, "thumbnail", JobStatus.CREATING, JobStatus.CREATING, self._thumbnail,
                                   "Generating thumbnail")
        if job is None:
            return None
        job = await self._run_step(job, "createFile", JobStatus.CREATE_FILE, JobStatus.CREATING, self._create_file,
                                   "Writing post file")
        if job is None:
            return None
        job = await self._run_step(job, "validate", JobStatus.VALIDATING, JobStatus.CREATE_FILE, self._validate,
                                   "Validating post file")
        if job is None:
            return None

        job = self._store.update(job.id, {"status": JobStatus.PENDING_DEPLOY}, expected_status=JobStatus.VALIDATING)
        self._store.append_progress(
            job.id, "pending_deploy", StepStatus.PROGRESS, "Waiting for deploy approval",
            {"filepath": job.filepath},
        )
        return job

    async def run_deploy(self, job_id: str) -> Job | None:
        job = self._store.get(job_id)
        job = await self._run_step(job, "deploy", JobStatus.DEPLOYING, JobStatus.DEPLOYING, self._deploy,
                                   "Creating branch and pull request")
        if job is None:
            return None
        job = self._store.update(job.id, {"status": JobStatus.COMPLETED}, expected_status=JobStatus.DEPLOYING)
        self._store.append_progress(
            job.id, "complete", StepStatus.COMPLETED, "Post published",
            {"pr_result": job.pr_result, "filepath": job.filepath},
        )
        return job

    # ------------------------------------------------------------------
    # Gate helpers (outside the pipeline)
    # ------------------------------------------------------------------

    async def generate_thumbnail(self, job: Job, prompt: str | None = None) -> ThumbnailResult | None:
        metadata = PostMetadata.model_validate(job.metadata or {})
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._tools.generate_thumbnail, metadata, job.category, prompt),
                timeout=self._step_timeout,
            )
        except asyncio.TimeoutError:
            raise StepFailure("thumbnail", f"thumbnail timed out after {self._step_timeout:g}s") from None

    def write_post_file(self, job: Job) -> str:
        """Render the job's content, metadata and thumbnail to its post file."""
        metadata = PostMetadata.model_validate(job.metadata or {})
        thumbnail = ThumbnailResult.model_validate(job.thumbnail_data) if job.thumbnail_data else None
        return self._tools.create_file(job.final_content or "", metadata, job.category, thumbnail)

    # ------------------------------------------------------------------
    # Step mechanics
    # ------------------------------------------------------------------

    async def _review_and_wait(self, job: Job) -> Job | None:
        job = await self._run_step(job, "review", JobStatus.REVIEW, JobStatus.WRITING, self._ai_review,
                                   "AI review of the draft")
        if job is None:
            return None
        # Suspension point: nothing runs until a gate decision arrives.
        job = self._store.update(
            job.id, {"status": JobStatus.HUMAN_REVIEW, "human_approval": None}, expected_status=JobStatus.REVIEW
        )
        self._store.append_progress(
            job.id, "human_review", StepStatus.PROGRESS, "Waiting for human review",
            {"score": (job.review_result or {}).get("score")},
        )
        if not job.auto_approve:
            return job
        approve_review(self._store, job.id, auto=True)
        return await self.run_refinement(job.id)

    async def _run_step(
        self,
        job: Job,
        step: str,
        status: JobStatus,
        from_status: JobStatus,
        action: Callable[[Job], StepResult],
        started_message: str,
    ) -> Job | None:
        """Run one step. Returns the updated job, or None once the job has failed.

        Raises InvalidStateError (without touching the job) when the job is
        not in ``from_status``, e.g. on a duplicate invocation.
        """
        job = self._store.update(job.id, {"status": status}, expected_status=from_status)
        self._store.append_progress(job.id, step, StepStatus.STARTED, started_message)
        logger.info("Job %s: %s started", job.id, step)
        try:
            fields, message, data = await asyncio.wait_for(
                asyncio.to_thread(action, job), timeout=self._step_timeout
            )
        except asyncio.TimeoutError:
            # The worker thread cannot be interrupted; its result is discarded.
            self._fail(job.id, step, f"{step} timed out after {self._step_timeout:g}s")
            return None
        except StepFailure as e:
            self._fail(job.id, step, e.message, e.artifacts)
            return None
        except Exception as e:
            self._fail(job.id, step, f"{type(e).__name__}: {e}")
            return None

        job = self._store.update(job.id, fields, expected_status=status)
        self._store.append_progress(job.id, step, StepStatus.COMPLETED, message, data)
        return job

    def _fail(self, job_id: str, step: str, message: str, artifacts: dict[str, Any] | None = None) -> None:
        message = message[:MAX_ERROR_CHARS]
        logger.error("Job %s failed at %s: %s", job_id, step, message)
        try:
            self._store.append_progress(job_id, step, StepStatus.FAILED, message)
            self._store.update(
                job_id,
                {**(artifacts or {}), "status": JobStatus.FAILED, "error": message},
                expected_status=ACTIVE_STATUSES,
            )
        except (NotFoundError, InvalidStateError) as e:
            logger.warning("Could not record failure of job %s: %s", job_id, e)

    # ------------------------------------------------------------------
    # Step actions (run in worker threads)
    # ------------------------------------------------------------------

    def _research(self, job: Job) -> StepResult:
        research = self._tools.research(job.topic, job.category)
        return (
            {"research_data": research.model_dump(mode="json")},
            f"Research complete ({len(research.sources)} sources)",
            {"sources": len(research.sources), "key_points": len(research.key_points)},
        )

    def _draft(self, job: Job) -> StepResult:
        rewrite = job.human_approval is False and bool(job.human_feedback)
        request = DraftRequest(
            topic=job.topic,
            category=job.category,
            template=job.template,
            tone=job.tone,
            target_reader=job.target_reader,
            keywords=job.keywords,
            research=ResearchData.model_validate(job.research_data) if job.research_data else None,
            feedback=job.human_feedback if rewrite else None,
            previous_draft=job.draft_content if rewrite else None,
        )
        draft = self._tools.draft(request)
        if not draft.strip():
            raise StepFailure("write", "Draft is empty")
        return {"draft_content": draft}, f"Draft written ({len(draft)} chars)", {"length": len(draft)}

    def _ai_review(self, job: Job) -> StepResult:
        review = self._tools.ai_review(job.topic, job.draft_content or "")
        return (
            {"review_result": review.to_artifact()},
            f"AI review complete (score {review.score})",
            {"score": review.score, "passed": review.passed},
        )

    def _refine(self, job: Job) -> StepResult:
        edited = bool(job.final_content and job.final_content.strip())
        content = job.final_content if edited else job.draft_content
        if not content:
            raise StepFailure("create", "No content to refine")
        refined = self._tools.refine(
            RefineRequest(
                topic=job.topic,
                category=job.category,
                keywords=job.keywords,
                content=content,
                review=ReviewResult.model_validate(job.review_result) if job.review_result else None,
                feedback=job.human_feedback,
                content_is_final=edited,
            )
        )
        metadata = refined.metadata
        if job.metadata:
            # Reviewer-edited metadata wins over generated values.
            metadata = PostMetadata.model_validate({**metadata.model_dump(), **job.metadata})
        return (
            {"final_content": refined.content, "metadata": metadata.model_dump(mode="json")},
            f'Content refined: "{metadata.title}"',
            {"slug": metadata.slug, "edited": edited},
        )

    def _thumbnail(self, job: Job) -> StepResult:
        if job.thumbnail_data:
            return {}, "Thumbnail provided during review kept", {"skipped": True, "kept": True}
        metadata = PostMetadata.model_validate(job.metadata or {})
        thumbnail = self._tools.generate_thumbnail(metadata, job.category)
        if thumbnail is None:
            return {}, "Thumbnail skipped", {"skipped": True}
        metadata.thumbnail_image = thumbnail.path
        return (
            {"thumbnail_data": thumbnail.model_dump(mode="json"), "metadata": metadata.model_dump(mode="json")},
            f"Thumbnail generated: {thumbnail.path}",
            {"path": thumbnail.path},
        )

    def _create_file(self, job: Job) -> StepResult:
        filepath = self.write_post_file(job)
        return {"filepath": filepath}, f"File created: {filepath}", {"filepath": filepath}

    def _validate(self, job: Job) -> StepResult:
        result = self._tools.validate(job.filepath or "")
        artifact = result.model_dump(mode="json")
        if not result.passed:
            raise StepFailure(
                "validate",
                "Validation failed: " + "; ".join(result.errors),
                {"validation_result": artifact},
            )
        return {"validation_result": artifact}, "Validation passed", None

    def _deploy(self, job: Job) -> StepResult:
        if not job.filepath or not job.metadata:
            raise StepFailure("deploy", "Nothing to deploy: post file or metadata missing")
        pr = self._source_control.create_pull_request(
            job.filepath, job.final_content or "", PostMetadata.model_validate(job.metadata)
        )
        pr_result = pr.model_dump(mode="json")
        return (
            {"commit_hash": pr.commit_hash, "pr_result": pr_result},
            f"Pull request created: {pr.pr_url}" if pr.pr_url else f"Branch pushed: {pr.branch_name}",
            {"pr_result": pr_result},
        )
