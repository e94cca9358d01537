"""Commit a generated post on its own branch and open a GitHub pull request.

Each pull request is committed in a throwaway ``git worktree`` so the working
copy, its index and HEAD are never touched. Deploys against the same repository
are serialized by a per-repository lock shared by every instance.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import threading
from datetime import date
from pathlib import Path

import httpx

from blogagent.schemas.artifacts import PostMetadata, PullRequestResult
from blogagent.tools.prompts import render_prompt

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"

_repo_locks: dict[Path, threading.Lock] = {}
_repo_locks_guard = threading.Lock()


class GitError(RuntimeError):
    pass


def repo_lock(repo_dir: Path) -> threading.Lock:
    with _repo_locks_guard:
        return _repo_locks.setdefault(Path(repo_dir).resolve(), threading.Lock())


def branch_name_for(slug: str, on_date: date | None = None) -> str:
    stamp = (on_date or date.today()).strftime("%Y%m%d")
    return f"post/{stamp}-{slug}"


def commit_message_for(metadata: PostMetadata) -> str:
    return f"feat: add post - {metadata.title}"


class GitHubPullRequests:
    """SourceControl backed by the local git CLI and the GitHub REST API.

    Without ``token``/``repository`` the branch is still committed and pushed,
    and the result carries no PR URL.
    """

    def __init__(
        self,
        repo_dir: Path,
        base_branch: str = "main",
        token: str | None = None,
        repository: str | None = None,
        public_dir: Path | None = None,
        remote: str = "origin",
        transport: httpx.BaseTransport | None = None,
    ):
        self._repo_dir = Path(repo_dir)
        self._base = base_branch
        self._token = token
        self._repository = repository
        self._public_dir = Path(public_dir) if public_dir else None
        self._remote = remote
        self._transport = transport

    def _git(self, *args: str, cwd: Path | None = None) -> str:
        proc = subprocess.run(
            ["git", *args],
            cwd=cwd or self._repo_dir,
            capture_output=True,
            text=True,
        )
        if proc.returncode != 0:
            raise GitError(f"git {' '.join(args)} failed: {(proc.stderr or proc.stdout).strip()[:300]}")
        return proc.stdout.strip()

    @staticmethod
    def _relative(top: Path, path: str | Path) -> Path:
        try:
            return Path(path).resolve().relative_to(top)
        except ValueError:
            raise GitError(f"{path} is outside the repository {top}") from None

    def create_pull_request(self, filepath: str, content: str, metadata: PostMetadata) -> PullRequestResult:
        self._git("rev-parse", "--is-inside-work-tree")
        top = Path(self._git("rev-parse", "--show-toplevel")).resolve()
        branch = branch_name_for(metadata.slug)
        files = [self._relative(top, filepath)]
        if metadata.thumbnail_image and self._public_dir:
            thumb = self._public_dir / metadata.thumbnail_image.lstrip("/")
            if thumb.exists():
                files.append(self._relative(top, thumb))

        with repo_lock(top):
            commit_hash = self._commit_on_branch(top, branch, files, commit_message_for(metadata))
        logger.info("Pushed %s (%s)", branch, commit_hash[:7])

        result = PullRequestResult(commit_hash=commit_hash, branch_name=branch)
        if not (self._token and self._repository):
            logger.warning("GitHub token/repository not configured; open a PR for %s manually", branch)
            return result

        body = render_prompt("pr_body.j2", metadata=metadata, filepath=filepath, content=content)
        with httpx.Client(
            base_url=GITHUB_API,
            timeout=30.0,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/vnd.github+json",
            },
        ) as client:
            resp = client.post(
                f"/repos/{self._repository}/pulls",
                json={
                    "title": commit_message_for(metadata),
                    "head": branch,
                    "base": self._base,
                    "body": body,
                },
            )
            resp.raise_for_status()
            pr = resp.json()
        result.pr_url = pr.get("html_url") or ""
        result.pr_number = pr.get("number")
        return result

    def _commit_on_branch(self, top: Path, branch: str, files: list[Path], message: str) -> str:
        """Commit ``files`` (relative to ``top``) on ``branch`` in a temporary worktree and push it."""
        self._git("worktree", "prune", cwd=top)
        with tempfile.TemporaryDirectory(prefix="blogagent-") as tmp:
            tree = Path(tmp) / "tree"
            self._git("worktree", "add", "-B", branch, str(tree), "HEAD", cwd=top)
            try:
                for rel in files:
                    (tree / rel).parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(top / rel, tree / rel)
                self._git("add", "--", *(str(rel) for rel in files), cwd=tree)
                self._git("commit", "-m", message, cwd=tree)
                commit_hash = self._git("rev-parse", "HEAD", cwd=tree)
                self._git("push", "--set-upstream", self._remote, branch, cwd=tree)
            finally:
                try:
                    self._git("worktree", "remove", "--force", str(tree), cwd=top)
                except GitError as e:
                    logger.warning("Could not remove worktree %s: %s", tree, e)
        return commit_hash
