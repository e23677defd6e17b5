"""Core helpers shared by the backend and the reconciler."""

from .async_utils import run_process, run_sync
from .output import write_line

__all__ = ["run_process", "run_sync", "write_line"]
