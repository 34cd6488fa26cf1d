"""Runtime configuration — env-driven defaults for the CLI layer.

Centralized config using pydantic-settings.  Reads from a .env file and
GROUNDSKEEPER_* environment variables; a few settings also honour the
conventional names used by CI providers (S3_BUCKET, AWS_REGION,
GITHUB_TOKEN).

Only the CLI reads these settings.  The reconciliation pipeline itself
receives explicit policy and context models.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GroundskeeperSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export GROUNDSKEEPER_LOG_LEVEL=DEBUG
        export S3_BUCKET=my-build-artifacts
        export GROUNDSKEEPER_PREFIX=frontend

    Or via .env file::

        GROUNDSKEEPER_BUCKET=my-build-artifacts
        GROUNDSKEEPER_REGION=us-west-2
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="GROUNDSKEEPER_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = "INFO"

    # Snapshot storage
    bucket: str = Field(
        default="",
        validation_alias=AliasChoices("GROUNDSKEEPER_BUCKET", "S3_BUCKET", "bucket"),
    )
    region: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GROUNDSKEEPER_REGION", "AWS_REGION", "region"),
    )
    prefix: str | None = None

    # Review comments
    github_token: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GROUNDSKEEPER_GITHUB_TOKEN", "GITHUB_TOKEN", "github_token"
        ),
    )
    github_api_url: str = "https://api.github.com"


# Module-level singleton — import as `from groundskeeper.config import settings`
settings = GroundskeeperSettings()
