"""Runtime settings — env-driven, overridable per invocation from the CLI.

Reads ``TOOLFETCHER_*`` environment variables and an optional ``.env`` file.
The GitHub token is additionally picked up from ``GITHUB_TOKEN``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FetcherSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export TOOLFETCHER_CONFIG_PATH=/opt/dfir/tools.yaml
        export TOOLFETCHER_TOOLS_DIR=/opt/dfir/tools
        export TOOLFETCHER_LOG_LEVEL=DEBUG
        export GITHUB_TOKEN=ghp_...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TOOLFETCHER_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Inputs
    config_path: Path = Path("tools.yaml")
    tools_dir: Path | None = None

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None

    # Remote access
    github_token: str = Field(
        "",
        validation_alias=AliasChoices("TOOLFETCHER_GITHUB_TOKEN", "GITHUB_TOKEN", "github_token"),
    )
    http_timeout_seconds: float | None = None
    http_retries: int = 3
    user_agent: str = "toolfetcher"

    # Scratch space for downloads; system temp when unset
    staging_dir: Path | None = None
