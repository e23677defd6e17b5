"""Credentials understood by ``GitBackend``.

The reconciler treats credentials as opaque values and only hands them to
the backend's ``clone`` and ``pull``.  Each credential here knows how to
express itself to the git command line: as extra environment variables,
as ``-c key=value`` configuration, or both.
"""

from __future__ import annotations

import base64
import shlex
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class SSHKeyAuth:
    """Authenticate over SSH with a specific private key.

    Args:
        private_key: Path to the private key file.
        strict_host_key_checking: When ``False`` unknown hosts are accepted
            (new hosts are added to known_hosts).
    """

    private_key: Path
    strict_host_key_checking: bool = True

    def git_env(self) -> dict[str, str]:
        key = shlex.quote(str(Path(self.private_key).expanduser()))
        checking = "yes" if self.strict_host_key_checking else "accept-new"
        return {
            "GIT_SSH_COMMAND": (
                f"ssh -i {key} -o IdentitiesOnly=yes "
                f"-o BatchMode=yes -o StrictHostKeyChecking={checking}"
            )
        }

    def git_config(self) -> list[str]:
        return []


@dataclass(frozen=True)
class BasicAuth:
    """HTTP basic authentication (username plus password or token)."""

    username: str
    password: str = field(repr=False)

    def git_env(self) -> dict[str, str]:
        # Never fall back to an interactive prompt
        return {"GIT_TERMINAL_PROMPT": "0"}

    def git_config(self) -> list[str]:
        token = base64.b64encode(
            f"{self.username}:{self.password}".encode("utf-8")
        ).decode("ascii")
        return [f"http.extraHeader=Authorization: Basic {token}"]


def credential_env(credential: object) -> dict[str, str]:
    """Return the environment additions for *credential* (may be ``None``)."""
    if credential is None:
        return {}
    git_env = getattr(credential, "git_env", None)
    return dict(git_env()) if callable(git_env) else {}


def credential_config(credential: object) -> list[str]:
    """Return the ``-c`` configuration entries for *credential*."""
    if credential is None:
        return []
    git_config = getattr(credential, "git_config", None)
    return list(git_config()) if callable(git_config) else []
