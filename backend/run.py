"""Run the blog agent API with uvicorn (``python -m backend.run``)."""

import os

import uvicorn

from blogagent.config import get_settings


def main() -> None:
    settings = get_settings()
    # The in-process scheduler must not run under the reloader.
    reload = os.environ.get("BLOG_ENV", "development") == "development" and not settings.blog_scheduler_enabled
    uvicorn.run("backend.main:app", host="0.0.0.0", port=settings.port, reload=reload)


if __name__ == "__main__":
    main()
