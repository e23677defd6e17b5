"""Configuration schema for gitmirror YAML files.

Defines Pydantic models for the config file structure with dedicated
sections for the mirror and logging.

Usage:
    from gitmirror.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    fallbacks = unified.mirror.model_dump(exclude_none=True)
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class MirrorConfig(BaseModel):
    """Mirror settings.

    All fields are optional so env vars and CLI args can supply them at
    runtime instead.
    """

    repo: str | None = Field(
        default=None, description="Local directory to mirror into"
    )
    origin: str | None = Field(
        default=None, description="Remote repository URL"
    )
    branch: str = Field(default="master", description="Branch to mirror")
    ssh_key: str | None = Field(
        default=None, description="Private key for SSH remotes"
    )
    username: str | None = Field(default=None, description="HTTP username")
    password: str | None = Field(
        default=None, description="HTTP password or token"
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Mirror-resolution attempts before giving up (1-10)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", description="text or json")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
