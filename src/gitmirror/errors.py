"""Exception hierarchy for mirror synchronization failures.

Every fatal error raised by the reconciler is a ``MirrorSyncError``
subclass tagged with the phase that failed and the identifiers involved
(path, origin, branch), so callers can log a precise cause without
inspecting backend-specific exceptions.  The backend exception, when there
is one, is chained as ``__cause__``.

Cancellation is not part of the hierarchy: ``asyncio.CancelledError`` propagates
unchanged.
"""

from __future__ import annotations


class MirrorSyncError(Exception):
    """Base class for synchronization failures.

    Attributes:
        phase: Name of the failing phase (open, clone, head, delete,
            remote, checkout, pull).
        path: Local mirror path.
        origin: Remote origin URL, if known.
        branch: Short branch name, if known.
    """

    phase = "sync"

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        origin: str | None = None,
        branch: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.origin = origin
        self.branch = branch

    def __str__(self) -> str:
        return f"{self.phase}: {self.message}"


class MirrorAccessError(MirrorSyncError):
    """The mirror path exists but is of the wrong type or unreadable."""

    phase = "open"


class MetadataDeleteError(MirrorAccessError):
    """Backend metadata could not be removed during recovery."""

    phase = "delete"


class CloneError(MirrorSyncError):
    """A fresh clone of the origin failed."""

    phase = "clone"


class MalformedMirrorError(MirrorSyncError):
    """The mirror's head stayed unresolvable after every recovery attempt."""

    phase = "head"


class RemoteReconcileError(MirrorSyncError):
    """The canonical remote could not be read, created or replaced."""

    phase = "remote"


class BranchReconcileError(MirrorSyncError):
    """Switching to the target branch failed."""

    phase = "checkout"


class PullError(MirrorSyncError):
    """Pulling the target branch failed for a reason other than being current."""

    phase = "pull"
