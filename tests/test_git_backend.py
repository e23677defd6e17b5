"""Integration tests for GitBackend against local repositories.

The origin is a regular repository on disk reached through a ``file://``
URL, so these tests need the git executable but no network.
"""

from __future__ import annotations

import io
from unittest.mock import patch

import pytest
from conftest import commit_file, origin_url
from git import GitCommandError, Repo

from gitmirror.backend.base import (
    BackendError,
    HeadUnresolvableError,
    MirrorNotFoundError,
    PullOutcome,
    RemoteDescriptor,
    RemoteNotFoundError,
)
from gitmirror.backend.git import GitBackend
from gitmirror.errors import CloneError
from gitmirror.sync import Reconciler

pytestmark = pytest.mark.git


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _sync(path, origin_repo, **kwargs) -> str:
    """Run one synchronization and return its progress output."""
    sink = io.StringIO()
    reconciler = Reconciler(
        path,
        origin_url(origin_repo),
        backend=GitBackend(),
        progress=sink,
        **kwargs,
    )
    await reconciler.synchronize()
    return sink.getvalue()


@pytest.fixture
def mirror_path(tmp_path):
    return tmp_path / "mirror"


# ---------------------------------------------------------------------------
# Reconciler end to end
# ---------------------------------------------------------------------------


class TestSynchronize:
    async def test_fresh_clone(self, origin_repo, mirror_path):
        output = await _sync(mirror_path, origin_repo)

        assert (mirror_path / "README").read_text() == "master\n"
        mirror = Repo(mirror_path)
        assert mirror.active_branch.name == "master"
        assert list(mirror.remote("origin").urls) == [origin_url(origin_repo)]
        assert "Cloning from" in output

    async def test_second_run_already_up_to_date(
        self, origin_repo, mirror_path
    ):
        await _sync(mirror_path, origin_repo)

        output = await _sync(mirror_path, origin_repo)

        assert "Already on master branch" in output
        assert "Already up to date" in output
        assert "Cloning from" not in output

    async def test_upstream_commit_pulled(self, origin_repo, mirror_path):
        await _sync(mirror_path, origin_repo)
        sha = commit_file(origin_repo, "README", "v2\n", "update")

        output = await _sync(mirror_path, origin_repo)

        assert "Already up to date" not in output
        assert (mirror_path / "README").read_text() == "v2\n"
        assert Repo(mirror_path).head.commit.hexsha == sha

    async def test_local_changes_discarded(self, origin_repo, mirror_path):
        await _sync(mirror_path, origin_repo)
        mirror = Repo(mirror_path)
        commit_file(mirror, "LOCAL", "local\n", "local commit")
        (mirror_path / "README").write_text("scribbled\n")

        await _sync(mirror_path, origin_repo)

        assert (mirror_path / "README").read_text() == "master\n"
        assert mirror.head.commit.hexsha == origin_repo.heads.master.commit.hexsha

    async def test_rewritten_upstream_history(self, origin_repo, mirror_path):
        await _sync(mirror_path, origin_repo)
        commit_file(origin_repo, "README", "v2\n", "update")
        await _sync(mirror_path, origin_repo)
        origin_repo.git.reset("--hard", "HEAD~1")
        sha = commit_file(origin_repo, "README", "rewritten\n", "force-pushed")

        await _sync(mirror_path, origin_repo)

        assert Repo(mirror_path).head.commit.hexsha == sha

    async def test_remote_url_corrected(self, origin_repo, mirror_path):
        await _sync(mirror_path, origin_repo)
        Repo(mirror_path).git.remote(
            "set-url", "origin", "https://invalid.example.com/other.git"
        )

        output = await _sync(mirror_path, origin_repo)

        assert "Updating origin" in output
        urls = list(Repo(mirror_path).remote("origin").urls)
        assert urls == [origin_url(origin_repo)]

    async def test_missing_remote_created(self, origin_repo, mirror_path):
        await _sync(mirror_path, origin_repo)
        Repo(mirror_path).git.remote("remove", "origin")

        output = await _sync(mirror_path, origin_repo)

        assert "Creating origin" in output

    async def test_branch_switch(self, origin_repo, mirror_path):
        origin_repo.git.checkout("production")
        commit_file(origin_repo, "PRODUCTION", "prod\n", "production only")
        origin_repo.git.checkout("master")
        await _sync(mirror_path, origin_repo)
        assert "production" not in [h.name for h in Repo(mirror_path).heads]
        (mirror_path / "README").write_text("scribbled\n")

        output = await _sync(mirror_path, origin_repo, branch="production")

        assert "Switching to production branch" in output
        mirror = Repo(mirror_path)
        assert mirror.active_branch.name == "production"
        assert not mirror.is_dirty()
        assert (mirror_path / "README").read_text() == "master\n"
        assert (mirror_path / "PRODUCTION").read_text() == "prod\n"

    async def test_detached_head_reattached(self, origin_repo, mirror_path):
        await _sync(mirror_path, origin_repo)
        mirror = Repo(mirror_path)
        mirror.git.checkout("--detach")

        await _sync(mirror_path, origin_repo)

        assert not mirror.head.is_detached
        assert mirror.active_branch.name == "master"

    async def test_unreadable_metadata_recovered(self, origin_repo, mirror_path):
        await _sync(mirror_path, origin_repo)
        (mirror_path / ".git" / "HEAD").unlink()
        (mirror_path / "EXTRA").write_text("untracked\n")

        output = await _sync(mirror_path, origin_repo)

        assert "The repository appears to be malformed" in output
        assert "Attempting delete and re-clone" in output
        mirror = Repo(mirror_path)
        assert mirror.active_branch.name == "master"
        assert (mirror_path / "README").read_text() == "master\n"
        assert (mirror_path / "EXTRA").exists()

    async def test_dangling_head_recovered(self, origin_repo, mirror_path):
        await _sync(mirror_path, origin_repo)
        (mirror_path / ".git" / "HEAD").write_text("ref: refs/heads/gone\n")

        output = await _sync(mirror_path, origin_repo)

        assert "The repository appears to be malformed" in output
        assert Repo(mirror_path).active_branch.name == "master"

    async def test_clone_failure(self, tmp_path, mirror_path):
        missing = (tmp_path / "no-such-origin").as_uri()
        reconciler = Reconciler(mirror_path, missing, backend=GitBackend())

        with pytest.raises(CloneError):
            await reconciler.synchronize()

    async def test_failed_clone_in_place_wrapped(
        self, origin_repo, mirror_path
    ):
        mirror_path.mkdir()
        (mirror_path / "LEFTOVER").write_text("working file\n")
        failure = GitCommandError(["git", "remote", "add"], 128, "locked")

        with patch.object(Repo, "create_remote", side_effect=failure):
            with pytest.raises(CloneError) as exc_info:
                await _sync(mirror_path, origin_repo)

        assert isinstance(exc_info.value.__cause__, BackendError)
        assert not (mirror_path / ".git").exists()
        assert (mirror_path / "LEFTOVER").exists()

    async def test_failed_fetch_in_place_wrapped(self, tmp_path, mirror_path):
        mirror_path.mkdir()
        (mirror_path / "LEFTOVER").write_text("working file\n")
        missing = (tmp_path / "no-such-origin").as_uri()
        reconciler = Reconciler(mirror_path, missing, backend=GitBackend())

        with pytest.raises(CloneError):
            await reconciler.synchronize()

        assert not (mirror_path / ".git").exists()

    async def test_closed_progress_sink(self, origin_repo, mirror_path):
        sink = io.StringIO()
        sink.close()
        reconciler = Reconciler(
            mirror_path,
            origin_url(origin_repo),
            backend=GitBackend(),
            progress=sink,
        )

        await reconciler.synchronize()

        assert (mirror_path / "README").read_text() == "master\n"


# ---------------------------------------------------------------------------
# Backend operations
# ---------------------------------------------------------------------------


class TestGitBackend:
    async def test_open_missing(self, mirror_path):
        with pytest.raises(MirrorNotFoundError):
            await GitBackend().open(mirror_path)

    async def test_open_plain_directory(self, tmp_path):
        with pytest.raises(MirrorNotFoundError):
            await GitBackend().open(tmp_path)

    async def test_head_of_unborn_branch(self, tmp_path):
        Repo.init(tmp_path / "empty")
        backend = GitBackend()
        mirror = await backend.open(tmp_path / "empty")

        with pytest.raises(HeadUnresolvableError):
            await backend.head(mirror)

    async def test_head_detached(self, origin_repo, mirror_path):
        backend = GitBackend()
        mirror = await backend.clone(
            mirror_path, origin_url(origin_repo), "refs/heads/master"
        )
        assert await backend.head(mirror) == "refs/heads/master"

        mirror.repo.git.checkout("--detach")
        assert await backend.head(mirror) == "HEAD"

    async def test_remotes(self, origin_repo, mirror_path):
        backend = GitBackend()
        url = origin_url(origin_repo)
        mirror = await backend.clone(mirror_path, url, "refs/heads/master")

        assert await backend.get_remote(mirror, "origin") == RemoteDescriptor(
            name="origin", urls=[url]
        )
        with pytest.raises(RemoteNotFoundError):
            await backend.get_remote(mirror, "upstream")

        await backend.create_remote(
            mirror, RemoteDescriptor(name="upstream", urls=["https://a/r"])
        )
        assert (await backend.get_remote(mirror, "upstream")).urls == [
            "https://a/r"
        ]
        await backend.delete_remote(mirror, "upstream")
        with pytest.raises(RemoteNotFoundError):
            await backend.get_remote(mirror, "upstream")

    async def test_branch_exists(self, origin_repo, mirror_path):
        backend = GitBackend()
        mirror = await backend.clone(
            mirror_path, origin_url(origin_repo), "refs/heads/master"
        )

        assert await backend.branch_exists(mirror, "refs/heads/master")
        assert not await backend.branch_exists(mirror, "refs/heads/production")

    async def test_pull_outcome(self, origin_repo, mirror_path):
        backend = GitBackend()
        mirror = await backend.clone(
            mirror_path, origin_url(origin_repo), "refs/heads/master"
        )

        assert (
            await backend.pull(mirror, "refs/heads/master", force=True)
            is PullOutcome.ALREADY_UP_TO_DATE
        )
        commit_file(origin_repo, "README", "v2\n", "update")
        assert (
            await backend.pull(mirror, "refs/heads/master", force=True)
            is PullOutcome.UPDATED
        )

    async def test_clone_forwards_progress(self, origin_repo, mirror_path):
        sink = io.StringIO()

        await GitBackend().clone(
            mirror_path,
            origin_url(origin_repo),
            "refs/heads/master",
            progress=sink,
        )

        assert "Cloning into" in sink.getvalue()
