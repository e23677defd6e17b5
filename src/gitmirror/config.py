"""Configuration for the gitmirror command line.

Reads mirror settings from CLI args, environment variables, .env files,
and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITMIRROR_REPO: Local directory to mirror into (required)
    GITMIRROR_ORIGIN: Remote repository URL (required)
    GITMIRROR_BRANCH: Branch to mirror (optional, default: master)
    GITMIRROR_SSH_KEY: Private key for SSH remotes (optional)
    GITMIRROR_USERNAME: HTTP username (optional)
    GITMIRROR_PASSWORD: HTTP password or token (optional, requires username)
    GITMIRROR_DEBUG: Enable debug logging (optional, default: false)
    GITMIRROR_MAX_ATTEMPTS: Mirror-resolution attempts (optional, default: 2)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .backend.auth import BasicAuth, SSHKeyAuth

logger = logging.getLogger(__name__)


@dataclass
class Config:
    repo: str
    origin: str
    branch: str = "master"
    ssh_key: str | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    debug: bool = False
    max_attempts: int = 2

    def credential(self) -> SSHKeyAuth | BasicAuth | None:
        """Build the credential object matching the configured auth fields."""
        if self.ssh_key:
            return SSHKeyAuth(private_key=Path(self.ssh_key))
        if self.username and self.password:
            return BasicAuth(username=self.username, password=self.password)
        return None


def validate_config(config: Config, require_origin: bool = True) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.
        require_origin: Reject an empty origin (commands that never contact
            the remote pass False).

    Raises:
        ValueError: If a required value is empty, the attempt count is
            out of range, or credentials are inconsistent.
    """
    config.repo = config.repo.strip()
    config.origin = config.origin.strip()
    config.branch = config.branch.strip()

    if not config.repo:
        raise ValueError(
            "Repository path cannot be empty. Set GITMIRROR_REPO environment variable."
        )

    if require_origin and not config.origin:
        raise ValueError(
            "Origin cannot be empty. Set GITMIRROR_ORIGIN environment variable."
        )

    if not config.branch:
        raise ValueError("Branch cannot be empty.")

    if not (1 <= config.max_attempts <= 10):
        raise ValueError(
            f"Invalid max_attempts {config.max_attempts}: must be a number between 1 and 10"
        )

    if config.password and not config.username:
        raise ValueError(
            "A password was given without a username. Set GITMIRROR_USERNAME."
        )

    if config.ssh_key and config.username:
        logger.warning(
            "Both an SSH key and HTTP credentials are configured; using the SSH key"
        )


def load_config(
    repo: str | None = None,
    origin: str | None = None,
    branch: str | None = None,
    ssh_key: str | None = None,
    username: str | None = None,
    password: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
    require_origin: bool = True,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        repo: Override repository path.
        origin: Override origin URL.
        branch: Override branch name.
        ssh_key: Override SSH private key path.
        username: Override HTTP username.
        password: Override HTTP password.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML config file ``mirror``
            section.  Used when CLI arg and env var are both unset.
        require_origin: Fail when no origin is configured.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the repository path or origin is missing after
            checking all sources, or a value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- Required string fields: CLI > env > YAML > error ---

    final_repo = repo or os.getenv("GITMIRROR_REPO") or fb.get("repo")
    if not final_repo:
        raise ValueError(
            "Repository path not found. Set GITMIRROR_REPO environment variable, "
            "pass --repo CLI argument, or add 'repo' to config.yml."
        )

    final_origin = origin or os.getenv("GITMIRROR_ORIGIN") or fb.get("origin")
    if require_origin and not final_origin:
        raise ValueError(
            "Origin not found. Set GITMIRROR_ORIGIN environment variable, "
            "pass --origin CLI argument, or add 'origin' to config.yml."
        )

    # --- Optional string fields: CLI > env > YAML > default ---

    final_branch = (
        branch or os.getenv("GITMIRROR_BRANCH") or fb.get("branch") or "master"
    )
    final_ssh_key = ssh_key or os.getenv("GITMIRROR_SSH_KEY") or fb.get("ssh_key")
    final_username = (
        username or os.getenv("GITMIRROR_USERNAME") or fb.get("username")
    )
    final_password = (
        password or os.getenv("GITMIRROR_PASSWORD") or fb.get("password")
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("GITMIRROR_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    attempts_raw = os.getenv("GITMIRROR_MAX_ATTEMPTS")
    if attempts_raw is not None:
        try:
            final_attempts = int(attempts_raw)
        except ValueError:
            raise ValueError(
                f"Invalid GITMIRROR_MAX_ATTEMPTS '{attempts_raw}': must be a number between 1 and 10"
            ) from None
    elif "max_attempts" in fb:
        final_attempts = int(fb["max_attempts"])
    else:
        final_attempts = 2

    config = Config(
        repo=str(final_repo),
        origin=str(final_origin or ""),
        branch=str(final_branch),
        ssh_key=final_ssh_key,
        username=final_username,
        password=final_password,
        debug=final_debug,
        max_attempts=final_attempts,
    )

    validate_config(config, require_origin=require_origin)

    return config
