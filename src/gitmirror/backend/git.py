"""GitPython implementation of the ``VCSBackend`` capability.

Local operations (opening, reading refs, editing remotes, checkout) go
through GitPython's object API in a worker thread.  Network operations
(clone and fetch) run the git executable as a child process so progress can
be streamed to the sink and the process can be terminated when the caller
cancels.

Pull has "reset to remote" semantics: the branch is fetched with a forced
refspec into its remote-tracking ref and the worktree is hard-reset onto it.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, TextIO

from git import Git, GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo
from git.cmd import handle_process_output
from git.exc import GitError, ODBError

from ..core.async_utils import run_process, run_sync
from ..core.output import write_line
from .auth import credential_config, credential_env
from .base import (
    CANONICAL_REMOTE,
    BackendError,
    HeadUnresolvableError,
    Mirror,
    MirrorNotFoundError,
    PullOutcome,
    RemoteDescriptor,
    RemoteNotFoundError,
    short_branch_name,
)

logger = logging.getLogger(__name__)


class GitBackend:
    """Mirror operations backed by the git command line via GitPython."""

    metadata_dir = ".git"

    # ------------------------------------------------------------------
    # Opening and cloning
    # ------------------------------------------------------------------

    async def open(self, path: Path) -> Mirror:
        return await run_sync(self._open, Path(path))

    def _open(self, path: Path) -> Mirror:
        if path.exists() and not path.is_dir():
            raise BackendError(f"repository path \"{path}\" is not a directory")
        if not (path / self.metadata_dir).exists():
            raise MirrorNotFoundError(f"no repository at \"{path}\"")
        try:
            return Mirror(path=path, repo=Repo(path))
        except NoSuchPathError as exc:
            raise MirrorNotFoundError(str(exc)) from exc
        except InvalidGitRepositoryError:
            # Metadata is present but unreadable; head resolution will fail
            logger.warning("Unreadable repository metadata at %s", path)
            return Mirror(path=path, repo=None)
        except OSError as exc:
            raise BackendError(str(exc)) from exc

    async def clone(
        self,
        path: Path,
        origin: str,
        branch: str,
        credential: Any = None,
        progress: TextIO | None = None,
    ) -> Mirror:
        path = Path(path)
        short = short_branch_name(branch)
        if path.exists() and any(path.iterdir()):
            # Recovery leaves working files behind; git clone refuses
            # non-empty directories, so initialise in place instead.
            return await self._clone_in_place(
                path, origin, short, credential, progress
            )

        git = Git()
        try:
            handle = git(c=credential_config(credential)).clone(
                "--progress",
                "--branch",
                short,
                "--",
                origin,
                str(path),
                as_process=True,
                env=credential_env(credential),
            )
        except GitCommandError as exc:
            raise BackendError(str(exc)) from exc
        await self._wait(handle, progress)
        return await self.open(path)

    async def _clone_in_place(
        self,
        path: Path,
        origin: str,
        short: str,
        credential: Any,
        progress: TextIO | None,
    ) -> Mirror:
        try:
            repo = await run_sync(Repo.init, path)
            await run_sync(repo.create_remote, CANONICAL_REMOTE, origin)
            tracking = f"refs/remotes/{CANONICAL_REMOTE}/{short}"
            await self._fetch(
                path,
                f"+refs/heads/{short}:{tracking}",
                credential,
                progress,
            )
            await run_sync(repo.git.checkout, "--force", "-B", short, tracking)
        except BackendError:
            await self._discard_metadata(path)
            raise
        except (GitCommandError, OSError) as exc:
            await self._discard_metadata(path)
            raise BackendError(str(exc)) from exc
        return Mirror(path=path, repo=repo)

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    async def head(self, mirror: Mirror) -> str:
        return await run_sync(self._head, mirror)

    def _head(self, mirror: Mirror) -> str:
        if mirror.repo is None:
            raise HeadUnresolvableError(
                f"repository metadata at \"{mirror.path}\" cannot be read"
            )
        head = mirror.repo.head
        try:
            head.commit  # raises when HEAD is unborn or dangling
            if head.is_detached:
                return "HEAD"
            return head.reference.path
        except (ValueError, TypeError, OSError, GitError, ODBError) as exc:
            raise HeadUnresolvableError(str(exc)) from exc

    async def branch_exists(self, mirror: Mirror, branch: str) -> bool:
        repo = self._repo(mirror)
        heads = await run_sync(lambda: [h.path for h in repo.heads])
        return branch in heads

    async def checkout(
        self,
        mirror: Mirror,
        branch: str,
        create: bool = False,
        force: bool = False,
    ) -> None:
        repo = self._repo(mirror)
        args = ["--force"] if force else []
        if create:
            args.append("-b")
        args.append(short_branch_name(branch))
        try:
            await run_sync(repo.git.checkout, *args)
        except GitCommandError as exc:
            raise BackendError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Remotes
    # ------------------------------------------------------------------

    async def get_remote(self, mirror: Mirror, name: str) -> RemoteDescriptor:
        return await run_sync(self._get_remote, self._repo(mirror), name)

    def _get_remote(self, repo: Repo, name: str) -> RemoteDescriptor:
        try:
            remote = repo.remote(name)
        except ValueError as exc:
            raise RemoteNotFoundError(str(exc)) from exc
        try:
            urls = list(remote.urls)
        except GitCommandError as exc:
            raise BackendError(str(exc)) from exc
        return RemoteDescriptor(name=name, urls=urls)

    async def create_remote(
        self, mirror: Mirror, descriptor: RemoteDescriptor
    ) -> None:
        await run_sync(self._create_remote, self._repo(mirror), descriptor)

    def _create_remote(self, repo: Repo, descriptor: RemoteDescriptor) -> None:
        if not descriptor.urls:
            raise BackendError(f"remote {descriptor.name} has no URL")
        try:
            remote = repo.create_remote(descriptor.name, descriptor.urls[0])
            for url in descriptor.urls[1:]:
                remote.add_url(url)
        except GitCommandError as exc:
            raise BackendError(str(exc)) from exc

    async def delete_remote(self, mirror: Mirror, name: str) -> None:
        await run_sync(self._delete_remote, self._repo(mirror), name)

    def _delete_remote(self, repo: Repo, name: str) -> None:
        try:
            repo.delete_remote(repo.remote(name))
        except ValueError as exc:
            raise RemoteNotFoundError(str(exc)) from exc
        except GitCommandError as exc:
            raise BackendError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def pull(
        self,
        mirror: Mirror,
        branch: str,
        credential: Any = None,
        progress: TextIO | None = None,
        force: bool = False,
        remote: str = CANONICAL_REMOTE,
    ) -> PullOutcome:
        repo = self._repo(mirror)
        short = short_branch_name(branch)
        tracking = f"refs/remotes/{remote}/{short}"
        refspec = f"refs/heads/{short}:{tracking}"
        if force:
            refspec = "+" + refspec

        try:
            before = await run_sync(lambda: repo.head.commit.hexsha)
        except (ValueError, ODBError) as exc:
            raise BackendError(str(exc)) from exc

        await self._fetch(mirror.path, refspec, credential, progress, remote)

        try:
            target = await run_sync(lambda: repo.commit(tracking).hexsha)
            if force:
                await run_sync(
                    repo.head.reset, tracking, index=True, working_tree=True
                )
            else:
                await run_sync(repo.git.merge, "--ff-only", tracking)
        except (GitCommandError, ValueError, ODBError) as exc:
            raise BackendError(str(exc)) from exc

        if before == target:
            return PullOutcome.ALREADY_UP_TO_DATE
        return PullOutcome.UPDATED

    async def _fetch(
        self,
        path: Path,
        refspec: str,
        credential: Any,
        progress: TextIO | None,
        remote: str = CANONICAL_REMOTE,
    ) -> None:
        git = Git(str(path))
        try:
            handle = git(c=credential_config(credential)).fetch(
                "--progress",
                remote,
                refspec,
                as_process=True,
                env=credential_env(credential),
            )
        except GitCommandError as exc:
            raise BackendError(str(exc)) from exc
        await self._wait(handle, progress)

    # ------------------------------------------------------------------
    # Metadata removal
    # ------------------------------------------------------------------

    async def remove_metadata(self, path: Path) -> None:
        await run_sync(shutil.rmtree, Path(path) / self.metadata_dir)

    async def _discard_metadata(self, path: Path) -> None:
        """Remove a half-initialised metadata directory after a failed clone."""
        await run_sync(
            shutil.rmtree, path / self.metadata_dir, ignore_errors=True
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _repo(self, mirror: Mirror) -> Repo:
        if mirror.repo is None:
            raise BackendError(
                f"repository metadata at \"{mirror.path}\" cannot be read"
            )
        return mirror.repo

    async def _wait(self, handle: Any, progress: TextIO | None) -> None:
        """Stream a running git command's stderr and wait for it to exit."""
        try:
            await run_process(handle.proc, _drain, handle, progress)
        except GitCommandError as exc:
            raise BackendError(str(exc)) from exc


def _drain(handle: Any, progress: TextIO | None) -> None:
    """Blocking helper: forward progress lines, then check the exit status."""
    stderr: list[str] = []

    def on_stderr(line: str) -> None:
        nonlocal progress
        stderr.append(line)
        if progress is None:
            return
        # Progress meters rewrite the line with carriage returns
        text = line.rstrip("\n").split("\r")[-1].strip()
        if text and not write_line(progress, text):
            # keep reading stderr, stop forwarding it
            progress = None

    handle_process_output(handle, None, on_stderr)
    handle.wait(stderr="".join(stderr))
