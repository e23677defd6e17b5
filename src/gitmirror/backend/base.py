"""Capability surface the reconciler needs from a version-control engine.

The reconciler never talks to git directly.  It calls into an object that
satisfies ``VCSBackend``; ``gitmirror.backend.git.GitBackend`` is the
production implementation and the test suite drives the reconciler with an
in-memory fake.

All operations are coroutines.  Network-bound ones (``clone`` and ``pull``)
must stop promptly when the awaiting task is cancelled and let
``asyncio.CancelledError`` propagate.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, TextIO, runtime_checkable

from pydantic import BaseModel

#: Name under which the single tracked origin is registered.
CANONICAL_REMOTE = "origin"

#: Namespace of local branch references.
LOCAL_HEADS_PREFIX = "refs/heads/"


def branch_reference(name: str) -> str:
    """Return the fully-qualified local reference for branch *name*.

    >>> branch_reference("main")
    'refs/heads/main'
    """
    if name.startswith(LOCAL_HEADS_PREFIX):
        return name
    return LOCAL_HEADS_PREFIX + name


def short_branch_name(reference: str) -> str:
    """Strip the local-heads namespace from *reference*."""
    return reference.removeprefix(LOCAL_HEADS_PREFIX)


class BackendError(Exception):
    """Generic failure reported by a backend operation."""


class MirrorNotFoundError(BackendError):
    """No mirror exists at the requested path."""


class HeadUnresolvableError(BackendError):
    """The mirror's current position cannot be resolved."""


class RemoteNotFoundError(BackendError):
    """The requested remote is not configured in the mirror."""


class PullOutcome(str, Enum):
    """Result of a successful pull."""

    UPDATED = "updated"
    ALREADY_UP_TO_DATE = "already_up_to_date"


class RemoteDescriptor(BaseModel):
    """A named remote endpoint as recorded in the mirror's metadata.

    Attributes:
        name: Remote name (``origin`` for the tracked endpoint).
        urls: Every URL configured for the remote, in configuration order.
    """

    name: str
    urls: list[str]

    model_config = {"frozen": True}


@dataclass
class Mirror:
    """Handle to an opened local mirror.

    ``repo`` is the backend's repository object.  It is ``None`` when the
    metadata directory exists but the backend could not load it; such a
    mirror opens but never resolves a head.
    """

    path: Path
    repo: Any = None


@runtime_checkable
class VCSBackend(Protocol):
    """Operations the reconciler performs against a local mirror."""

    metadata_dir: str

    async def open(self, path: Path) -> Mirror: ...

    async def clone(
        self,
        path: Path,
        origin: str,
        branch: str,
        credential: Any = None,
        progress: TextIO | None = None,
    ) -> Mirror: ...

    async def head(self, mirror: Mirror) -> str: ...

    async def get_remote(
        self, mirror: Mirror, name: str
    ) -> RemoteDescriptor: ...

    async def create_remote(
        self, mirror: Mirror, descriptor: RemoteDescriptor
    ) -> None: ...

    async def delete_remote(self, mirror: Mirror, name: str) -> None: ...

    async def branch_exists(self, mirror: Mirror, branch: str) -> bool: ...

    async def checkout(
        self,
        mirror: Mirror,
        branch: str,
        create: bool = False,
        force: bool = False,
    ) -> None: ...

    async def pull(
        self,
        mirror: Mirror,
        branch: str,
        credential: Any = None,
        progress: TextIO | None = None,
        force: bool = False,
        remote: str = CANONICAL_REMOTE,
    ) -> PullOutcome: ...

    async def remove_metadata(self, path: Path) -> None: ...
