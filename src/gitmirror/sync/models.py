"""Pydantic models for the mirror reconciler.

- ``SyncSettings``: immutable configuration resolved once per reconciler.
- ``SyncSession``: ephemeral per-call state of one synchronization.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..backend.base import branch_reference

DEFAULT_BRANCH = "master"
DEFAULT_ATTEMPTS = 2


class SyncSettings(BaseModel):
    """Everything a reconciler needs to know about its mirror.

    Attributes:
        path: Absolute path of the directory mirroring the remote branch.
        origin: URL of the remote repository.
        branch: Fully-qualified local reference of the target branch.
            Short names are normalized (``main`` -> ``refs/heads/main``).
        credential: Opaque credential handed to the backend's clone and
            pull.  ``None`` uses whatever the backend picks up by default.
        progress: Text sink receiving human-readable progress lines.
            ``None`` means silent operation.
        max_attempts: Number of mirror-resolution cycles before a mirror
            whose head cannot be resolved is reported as malformed.
    """

    path: Path
    origin: str
    branch: str = Field(default=branch_reference(DEFAULT_BRANCH))
    credential: Any = None
    progress: Any = None
    max_attempts: int = Field(default=DEFAULT_ATTEMPTS, ge=1)

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @field_validator("path", mode="before")
    @classmethod
    def _absolute_path(cls, value: Any) -> Path:
        return Path(value).expanduser().absolute()

    @field_validator("origin")
    @classmethod
    def _non_empty_origin(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("origin cannot be empty")
        return value

    @field_validator("branch", mode="before")
    @classmethod
    def _qualified_branch(cls, value: Any) -> str:
        name = str(value or "").strip()
        if not name:
            raise ValueError("branch cannot be empty")
        return branch_reference(name)


class SyncSession(BaseModel):
    """Per-call state of one ``Reconciler.synchronize()`` run.

    Attributes:
        started_at: ``time.monotonic()`` value at the start of the call.
        attempt: Number of mirror-resolution cycles started so far.
        cloned: True when the current resolution attempt cloned the mirror.
    """

    started_at: float = Field(default_factory=time.monotonic)
    attempt: int = 0
    cloned: bool = False

    def elapsed(self) -> float:
        """Seconds since the session started."""
        return time.monotonic() - self.started_at
