"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Locate the project root .env file regardless of CWD
_THIS_DIR = Path(__file__).resolve().parent          # blogagent/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


def _resolve(path: str) -> Path:
    p = Path(path)
    if not p.is_absolute():
        return (_PROJECT_ROOT / p).resolve()
    return p.resolve()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM provider: openai | anthropic
    blog_llm_provider: str = "openai"

    # OpenAI
    openai_api_key: str | None = None
    blog_openai_model: str = "gpt-4o-mini"
    blog_image_model: str = "gpt-image-1"

    # Anthropic
    anthropic_api_key: str | None = None
    blog_anthropic_model: str = "claude-3-5-sonnet-20241022"

    # Web search for the research step
    tavily_api_key: str | None = None

    # Data directory for the file-based stores (jobs, progress logs, schedules)
    blog_data_dir: str = "./data"

    # Where generated posts and thumbnails land
    blog_content_dir: str = "./content"
    blog_public_dir: str = "./public"

    # Postgres URL; when unset, file-based stores are used
    blog_database_url: str | None = None

    # Source control
    blog_repo_dir: str = "."
    blog_base_branch: str = "main"
    github_token: str | None = None
    github_repository: str | None = None  # owner/name

    # Workflow
    blog_step_timeout_seconds: float = 300.0
    blog_stream_poll_interval: float = 0.5
    blog_stream_keepalive_seconds: float = 15.0

    # Scheduler
    cron_secret: str | None = None
    blog_scheduler_enabled: bool = False
    blog_scheduler_interval_seconds: float = 60.0

    # CORS origins (comma-separated). Defaults to localhost dev.
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Server port
    port: int = 8000

    @property
    def data_dir(self) -> Path:
        """Data directory as Path.

        Relative paths are resolved against the project root (not CWD),
        so the backend works whether started from project root or backend/.
        """
        return _resolve(self.blog_data_dir)

    @property
    def content_dir(self) -> Path:
        return _resolve(self.blog_content_dir)

    @property
    def public_dir(self) -> Path:
        return _resolve(self.blog_public_dir)

    @property
    def repo_dir(self) -> Path:
        return _resolve(self.blog_repo_dir)

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def ensure_dirs(self) -> None:
        """Ensure all data directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.content_dir.mkdir(parents=True, exist_ok=True)
        self.public_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_dirs()
    return settings
