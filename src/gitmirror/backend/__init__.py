"""Version-control backends for the mirror reconciler.

- ``base``  -- ``VCSBackend`` protocol, ``Mirror``, ``RemoteDescriptor``,
  ``PullOutcome`` and the backend error types.
- ``git``   -- ``GitBackend``: the GitPython implementation.
- ``auth``  -- ``SSHKeyAuth`` and ``BasicAuth`` credentials.
"""

from .auth import BasicAuth, SSHKeyAuth
from .base import (
    CANONICAL_REMOTE,
    BackendError,
    HeadUnresolvableError,
    Mirror,
    MirrorNotFoundError,
    PullOutcome,
    RemoteDescriptor,
    RemoteNotFoundError,
    VCSBackend,
    branch_reference,
    short_branch_name,
)
from .git import GitBackend

__all__ = [
    "CANONICAL_REMOTE",
    "BackendError",
    "BasicAuth",
    "GitBackend",
    "HeadUnresolvableError",
    "Mirror",
    "MirrorNotFoundError",
    "PullOutcome",
    "RemoteDescriptor",
    "RemoteNotFoundError",
    "SSHKeyAuth",
    "VCSBackend",
    "branch_reference",
    "short_branch_name",
]
