"""Reconciler that brings a local mirror into agreement with a remote branch.

The ``Reconciler`` treats the local copy as non-authoritative.  Each call to
``synchronize()`` runs the whole algorithm independently:

1. Resolve the mirror: open it, or clone it when absent.  A mirror whose
   head cannot be resolved is considered malformed; its metadata is deleted
   and resolution starts over, up to ``max_attempts`` cycles.
2. A fresh clone already matches the requested branch and remote, so the
   run ends there.
3. Reconcile the canonical remote so that its URL set is exactly the origin.
4. Reconcile the branch: force-checkout the target, creating the local
   branch when it does not exist yet.
5. Force-pull the target branch.  "Already up to date" is a success.

Every phase writes one line to the progress sink.  Failures are raised as
``MirrorSyncError`` subclasses tagged with the phase; cancellation
propagates as ``asyncio.CancelledError``.

Concurrent calls against the same path are unsafe; callers serialize them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, TextIO

from ..backend.base import (
    CANONICAL_REMOTE,
    BackendError,
    HeadUnresolvableError,
    Mirror,
    MirrorNotFoundError,
    PullOutcome,
    RemoteDescriptor,
    RemoteNotFoundError,
    VCSBackend,
    short_branch_name,
)
from ..core.async_utils import run_sync
from ..errors import (
    BranchReconcileError,
    CloneError,
    MalformedMirrorError,
    MetadataDeleteError,
    MirrorAccessError,
    MirrorSyncError,
    PullError,
    RemoteReconcileError,
)
from .models import DEFAULT_ATTEMPTS, DEFAULT_BRANCH, SyncSession, SyncSettings
from .progress import ProgressReporter

logger = logging.getLogger(__name__)


class Reconciler:
    """Keep the directory at *path* mirroring one branch of *origin*.

    Construction is nondestructive; file-system work happens in
    ``synchronize()``.

    Args:
        path: Directory to which the remote branch is mirrored.
        origin: URL of the remote repository.
        branch: Short (or fully-qualified) name of the branch to mirror.
        credential: Opaque credential passed to the backend's clone and pull.
        progress: Text sink for progress lines; ``None`` is silent.
        backend: ``VCSBackend`` implementation; defaults to ``GitBackend``.
        max_attempts: Mirror-resolution cycles before giving up on a
            malformed mirror.
    """

    def __init__(
        self,
        path: str | Path,
        origin: str,
        *,
        branch: str = DEFAULT_BRANCH,
        credential: Any = None,
        progress: TextIO | None = None,
        backend: VCSBackend | None = None,
        max_attempts: int = DEFAULT_ATTEMPTS,
    ) -> None:
        self.settings = SyncSettings(
            path=path,
            origin=origin,
            branch=branch,
            credential=credential,
            progress=progress,
            max_attempts=max_attempts,
        )
        self.backend = backend or _default_backend()
        self.reporter = ProgressReporter(progress)

    @classmethod
    def from_settings(
        cls, settings: SyncSettings, backend: VCSBackend | None = None
    ) -> Reconciler:
        """Build a reconciler from an existing ``SyncSettings``."""
        return cls(
            settings.path,
            settings.origin,
            branch=settings.branch,
            credential=settings.credential,
            progress=settings.progress,
            backend=backend,
            max_attempts=settings.max_attempts,
        )

    @property
    def path(self) -> Path:
        return self.settings.path

    @property
    def origin(self) -> str:
        return self.settings.origin

    @property
    def branch(self) -> str:
        return self.settings.branch

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def synchronize(self) -> None:
        """Update the mirror to match the target branch on the origin.

        This is destructive: local modifications may be discarded, and a
        malformed mirror has its metadata deleted and is cloned again.

        Raises:
            MirrorSyncError: A phase failed; the subclass names the phase.
            asyncio.CancelledError: The calling task was cancelled.
        """
        session = SyncSession()
        logger.info(
            "Synchronizing %s with %s (%s)",
            self.path,
            self.origin,
            short_branch_name(self.branch),
        )

        mirror, head = await self._resolve(session)
        if session.cloned:
            self.reporter.completed(session.elapsed())
            return

        await self._reconcile_remote(mirror)
        await self._reconcile_branch(mirror, head)
        await self._pull(mirror)

        self.reporter.completed(session.elapsed())
        logger.info("Synchronized %s in %.2fs", self.path, session.elapsed())

    # ------------------------------------------------------------------
    # Mirror resolution
    # ------------------------------------------------------------------

    async def _resolve(self, session: SyncSession) -> tuple[Mirror, str]:
        """Open or clone the mirror and resolve its head.

        Recovery (metadata deletion) runs after every failed head
        resolution, including the last attempt, so a mirror that is still
        malformed when the attempts run out is left without metadata.
        """
        cause: HeadUnresolvableError | None = None
        while session.attempt < self.settings.max_attempts:
            session.attempt += 1
            session.cloned = False
            mirror = await self._open_or_clone(session)

            try:
                head = await self.backend.head(mirror)
            except HeadUnresolvableError as exc:
                cause = exc
            else:
                return mirror, head

            logger.warning(
                "Malformed repository at %s (attempt %d/%d): %s",
                self.path,
                session.attempt,
                self.settings.max_attempts,
                cause,
            )
            self.reporter.lines(
                "The repository appears to be malformed",
                "Attempting delete and re-clone",
            )
            try:
                await self.delete()
            except MirrorAccessError as exc:
                raise self._error(
                    MetadataDeleteError,
                    f"unable to delete existing malformed repository: {exc.message}",
                ) from exc

        raise self._error(
            MalformedMirrorError,
            "unable to determine repository HEAD reference after "
            f"{session.attempt} attempt(s): {cause}",
        ) from cause

    async def _open_or_clone(self, session: SyncSession) -> Mirror:
        self.reporter.line(f'Opening repository at "{self.path}"')
        try:
            return await self.backend.open(self.path)
        except MirrorNotFoundError:
            pass
        except (BackendError, OSError) as exc:
            raise self._error(
                MirrorAccessError,
                f'unable to open repository located at "{self.path}": {exc}',
            ) from exc

        self.reporter.lines(
            "Repository does not exist", f"Cloning from {self.origin}"
        )
        session.cloned = True
        try:
            return await self.backend.clone(
                self.path,
                self.origin,
                self.branch,
                credential=self.settings.credential,
                progress=self.settings.progress,
            )
        except (BackendError, OSError) as exc:
            raise self._error(
                CloneError,
                f"unable to clone {self.origin} into \"{self.path}\": {exc}",
            ) from exc

    # ------------------------------------------------------------------
    # Recovery deletion
    # ------------------------------------------------------------------

    async def delete(self) -> None:
        """Remove the backend metadata under the mirror path.

        See ``delete_metadata()``.
        """
        await delete_metadata(
            self.path, backend=self.backend, progress=self.reporter
        )

    # ------------------------------------------------------------------
    # Remote and branch reconciliation
    # ------------------------------------------------------------------

    async def _reconcile_remote(self, mirror: Mirror) -> None:
        desired = RemoteDescriptor(name=CANONICAL_REMOTE, urls=[self.origin])
        try:
            try:
                current = await self.backend.get_remote(mirror, CANONICAL_REMOTE)
            except RemoteNotFoundError:
                self.reporter.line(f"Creating {CANONICAL_REMOTE}")
                await self.backend.create_remote(mirror, desired)
                return

            if current.urls == desired.urls:
                return

            self.reporter.line(f"Updating {CANONICAL_REMOTE}")
            await self.backend.delete_remote(mirror, CANONICAL_REMOTE)
            await self.backend.create_remote(mirror, desired)
        except (BackendError, OSError) as exc:
            raise self._error(
                RemoteReconcileError,
                f"unable to set {CANONICAL_REMOTE} to {self.origin}: {exc}",
            ) from exc

    async def _reconcile_branch(self, mirror: Mirror, head: str) -> None:
        short = short_branch_name(self.branch)
        if head == self.branch:
            self.reporter.line(f"Already on {short} branch")
            return

        self.reporter.line(f"Switching to {short} branch")
        try:
            exists = await self.backend.branch_exists(mirror, self.branch)
            await self.backend.checkout(
                mirror, self.branch, create=not exists, force=True
            )
        except (BackendError, OSError) as exc:
            raise self._error(
                BranchReconcileError,
                f"unable to switch to {short} branch: {exc}",
            ) from exc

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def _pull(self, mirror: Mirror) -> None:
        self.reporter.line(f"Pulling from {self.origin}")
        try:
            outcome = await self.backend.pull(
                mirror,
                self.branch,
                credential=self.settings.credential,
                progress=self.settings.progress,
                force=True,
                remote=CANONICAL_REMOTE,
            )
        except (BackendError, OSError) as exc:
            raise self._error(
                PullError,
                f"unable to pull {short_branch_name(self.branch)} "
                f"from {self.origin}: {exc}",
            ) from exc

        if outcome is PullOutcome.ALREADY_UP_TO_DATE:
            self.reporter.line("Already up to date")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _error(
        self, error_type: type[MirrorSyncError], message: str
    ) -> MirrorSyncError:
        return error_type(
            message,
            path=str(self.path),
            origin=self.origin,
            branch=short_branch_name(self.branch),
        )


async def synchronize(
    path: str | Path, origin: str, **options: Any
) -> None:
    """Create an ephemeral ``Reconciler`` and run one synchronization.

    Accepts the same keyword options as ``Reconciler``.
    """
    await Reconciler(path, origin, **options).synchronize()


async def delete_metadata(
    path: str | Path,
    *,
    backend: VCSBackend | None = None,
    progress: TextIO | ProgressReporter | None = None,
) -> None:
    """Remove the backend metadata directory under *path*.

    Ordinary files in the directory are left alone.  A missing path or a
    directory without metadata is a no-op.

    Raises:
        MirrorAccessError: The path or its metadata entry is not a
            directory, or cannot be inspected.  Nothing is modified.
        MetadataDeleteError: Removing the metadata failed.
    """
    path = Path(path).expanduser().absolute()
    backend = backend or _default_backend()
    reporter = (
        progress
        if isinstance(progress, ProgressReporter)
        else ProgressReporter(progress)
    )

    metadata = await run_sync(_deletable_metadata, path, backend.metadata_dir)
    if metadata is None:
        return

    reporter.line(f'Deleting repository at "{metadata}"')
    try:
        await backend.remove_metadata(path)
    except (BackendError, OSError) as exc:
        raise MetadataDeleteError(
            f'unable to delete "{metadata}": {exc}', path=str(path)
        ) from exc


def _deletable_metadata(path: Path, metadata_dir: str) -> Path | None:
    """Return the metadata directory to delete, or ``None`` if absent."""
    metadata = path / metadata_dir
    try:
        if not path.exists():
            return None
        if not path.is_dir():
            raise MirrorAccessError(
                f'repository path "{path}" is not a directory', path=str(path)
            )

        if not metadata.exists() and not metadata.is_symlink():
            return None
        # rmtree refuses symlinks, and following one would delete elsewhere
        if metadata.is_symlink() or not metadata.is_dir():
            raise MirrorAccessError(
                f'repository path "{metadata}" is not a directory',
                path=str(path),
            )
    except OSError as exc:
        raise MirrorAccessError(
            f'unable to access path "{metadata}": {exc}', path=str(path)
        ) from exc
    return metadata


def _default_backend() -> VCSBackend:
    from ..backend.git import GitBackend

    return GitBackend()
