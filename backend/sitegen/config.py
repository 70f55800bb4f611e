from pydantic_settings import BaseSettings
from functools import lru_cache
import os


_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
# .env lives in the repo root (two levels up from backend/sitegen/)
_ENV_PATH = os.path.join(_REPO_ROOT, ".env")


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    vercel_token: str = ""

    # Model defaults
    default_model: str = "claude-sonnet-4-5-20250929"
    plan_max_tokens: int = 4000
    component_max_tokens: int = 4000
    component_temperature: float = 0.5
    model_timeout: float = 90.0  # seconds, per model call

    # Component retries (exponential backoff between attempts)
    max_attempts: int = 3
    retry_base_delay: float = 2.0  # seconds
    retry_max_delay: float = 10.0  # seconds

    # Generated projects live here, one directory per generation request
    projects_dir: str = os.path.join(_REPO_ROOT, "landing-pages")

    # Status entries are evicted this long after their last update
    status_ttl_seconds: int = 30 * 60

    # Deployment runs only when enabled and enough components completed
    deploy_enabled: bool = False
    deploy_threshold: float = 0.5
    deploy_timeout: int = 600  # seconds

    # Preview dev servers
    dev_server_port_min: int = 3000
    dev_server_port_max: int = 4999
    npm_install_timeout: int = 600  # seconds

    log_level: str = "INFO"

    class Config:
        # In deployed environments, env vars are injected directly and .env is optional
        env_file = _ENV_PATH if os.path.exists(_ENV_PATH) else None
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()
