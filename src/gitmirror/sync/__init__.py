"""Mirror reconciliation.

Public API for keeping a local directory synchronized with one branch of a
remote repository.

Modules:

- ``reconciler`` -- ``Reconciler``: the synchronization algorithm, plus the
  one-shot ``synchronize()`` coroutine and ``delete_metadata()``.
- ``models``     -- ``SyncSettings`` and ``SyncSession``.
- ``progress``   -- ``ProgressReporter`` and ``format_elapsed``.

Usage example
-------------
::

    import asyncio
    import sys

    from gitmirror.sync import Reconciler

    reconciler = Reconciler(
        "/srv/config",
        "https://git.example.com/ops/config.git",
        branch="production",
        progress=sys.stdout,
    )
    asyncio.run(reconciler.synchronize())
"""

from .models import SyncSession, SyncSettings
from .progress import ProgressReporter, format_elapsed
from .reconciler import Reconciler, delete_metadata, synchronize

__all__ = [
    "ProgressReporter",
    "Reconciler",
    "SyncSession",
    "SyncSettings",
    "delete_metadata",
    "format_elapsed",
    "synchronize",
]
