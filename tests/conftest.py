"""Shared pytest fixtures for gitmirror tests."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Any

import pytest

from gitmirror.backend.base import (
    CANONICAL_REMOTE,
    BackendError,
    HeadUnresolvableError,
    Mirror,
    MirrorNotFoundError,
    PullOutcome,
    RemoteDescriptor,
    RemoteNotFoundError,
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "git: test drives the real git executable"
    )


def pytest_collection_modifyitems(config, items):
    """Skip git tests when no git executable is on PATH."""
    if shutil.which("git"):
        return
    skip_git = pytest.mark.skip(reason="git executable not found")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class FakeBackend:
    """Minimal VCSBackend replacement for reconciler tests.

    Simulates one mirror directory in memory.  ``exists`` says whether
    metadata is present; ``head`` is the resolved reference, or ``None``
    for a malformed mirror.  Every call is appended to ``calls`` as
    ``(operation, *args)``.

    Failures are injected by name through ``fail``; a value that is an
    exception instance is raised from that operation.  ``malformed_clones``
    counts how many upcoming clones produce a mirror whose head does not
    resolve.  ``block`` holds operation names that wait forever, for
    cancellation tests.
    """

    metadata_dir = ".git"

    def __init__(
        self,
        *,
        exists: bool = True,
        head: str | None = "refs/heads/master",
        remotes: dict[str, list[str]] | None = None,
        branches: set[str] | None = None,
        outcome: PullOutcome = PullOutcome.UPDATED,
    ) -> None:
        self.exists = exists
        self.head_ref = head
        self.remotes: dict[str, list[str]] = dict(remotes or {})
        self.branches: set[str] = set(branches or {"refs/heads/master"})
        self.outcome = outcome
        self.fail: dict[str, BaseException] = {}
        self.malformed_clones = 0
        self.block: set[str] = set()
        self.calls: list[tuple] = []

    def ops(self) -> list[str]:
        """Names of the operations called, in order."""
        return [call[0] for call in self.calls]

    async def _enter(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.block:
            await asyncio.Event().wait()
        if name in self.fail:
            raise self.fail[name]

    async def open(self, path: Path) -> Mirror:
        await self._enter("open", path)
        if not self.exists:
            raise MirrorNotFoundError(f'no repository at "{path}"')
        return Mirror(path=path, repo=self)

    async def clone(
        self, path, origin, branch, credential=None, progress=None
    ) -> Mirror:
        await self._enter("clone", path, origin, branch)
        self.exists = True
        self.remotes = {CANONICAL_REMOTE: [origin]}
        self.branches.add(branch)
        if self.malformed_clones:
            self.malformed_clones -= 1
            self.head_ref = None
        else:
            self.head_ref = branch
        return Mirror(path=path, repo=self)

    async def head(self, mirror: Mirror) -> str:
        await self._enter("head")
        if self.head_ref is None:
            raise HeadUnresolvableError("reference HEAD not found")
        return self.head_ref

    async def get_remote(self, mirror: Mirror, name: str) -> RemoteDescriptor:
        await self._enter("get_remote", name)
        if name not in self.remotes:
            raise RemoteNotFoundError(f"remote {name} not found")
        return RemoteDescriptor(name=name, urls=self.remotes[name])

    async def create_remote(
        self, mirror: Mirror, descriptor: RemoteDescriptor
    ) -> None:
        await self._enter("create_remote", descriptor.name, descriptor.urls)
        if descriptor.name in self.remotes:
            raise BackendError(f"remote {descriptor.name} already exists")
        self.remotes[descriptor.name] = list(descriptor.urls)

    async def delete_remote(self, mirror: Mirror, name: str) -> None:
        await self._enter("delete_remote", name)
        self.remotes.pop(name)

    async def branch_exists(self, mirror: Mirror, branch: str) -> bool:
        await self._enter("branch_exists", branch)
        return branch in self.branches

    async def checkout(
        self, mirror: Mirror, branch: str, create=False, force=False
    ) -> None:
        await self._enter("checkout", branch, create, force)
        if create:
            self.branches.add(branch)
        elif branch not in self.branches:
            raise BackendError(f"reference {branch} not found")
        self.head_ref = branch

    async def pull(
        self,
        mirror: Mirror,
        branch: str,
        credential=None,
        progress=None,
        force=False,
        remote=CANONICAL_REMOTE,
    ) -> PullOutcome:
        await self._enter("pull", branch, force, remote)
        return self.outcome

    async def remove_metadata(self, path: Path) -> None:
        await self._enter("remove_metadata", path)
        self.exists = False
        self.head_ref = None


@pytest.fixture
def fake_backend():
    """A FakeBackend holding a healthy mirror of master."""
    return FakeBackend(remotes={CANONICAL_REMOTE: ["https://example.com/repo.git"]})


@pytest.fixture
def mirror_dir(tmp_path):
    """An existing directory with a ``.git`` directory in it."""
    path = tmp_path / "mirror"
    (path / ".git").mkdir(parents=True)
    return path


# ---------------------------------------------------------------------------
# Real git repositories
# ---------------------------------------------------------------------------


def commit_file(repo, name: str, content: str, message: str) -> str:
    """Write *name* in *repo*'s worktree, commit it and return the sha."""
    path = Path(repo.working_tree_dir) / name
    path.write_text(content)
    repo.index.add([str(path)])
    return repo.index.commit(message).hexsha


@pytest.fixture
def origin_repo(tmp_path):
    """A local repository with ``master`` and ``production`` branches.

    Its ``file://`` URL is usable as a clone origin.
    """
    from git import Repo

    path = tmp_path / "origin"
    repo = Repo.init(path)
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Test")
        cw.set_value("user", "email", "test@example.com")
    commit_file(repo, "README", "master\n", "initial")
    if repo.active_branch.name != "master":
        repo.git.branch("-M", "master")
    repo.git.branch("production")
    return repo


def origin_url(repo) -> str:
    return Path(repo.working_tree_dir).as_uri()


