"""Mirror one branch of a remote git repository into a local directory.

The local copy is treated as non-authoritative: synchronizing performs the
equivalent of a hard reset to the remote branch, discarding any local
modifications, and a corrupted copy is deleted and cloned again.
"""

__version__ = "0.1.0"

from .errors import MirrorSyncError  # noqa: E402
from .sync import Reconciler, delete_metadata, synchronize  # noqa: E402

__all__ = [
    "MirrorSyncError",
    "Reconciler",
    "__version__",
    "delete_metadata",
    "synchronize",
]
