"""Guarded writes to caller-supplied text sinks."""

import logging
from typing import TextIO

logger = logging.getLogger(__name__)


def write_line(sink: TextIO | None, text: str) -> bool:
    """Write *text* plus a newline to *sink* and flush it when possible.

    Returns False when the sink refused the write (closed file, broken
    pipe).  The failure is logged and never raised.
    """
    if sink is None:
        return True
    try:
        sink.write(text + "\n")
        flush = getattr(sink, "flush", None)
        if callable(flush):
            flush()
    except (OSError, ValueError) as exc:
        logger.warning("Progress sink write failed: %s", exc)
        return False
    return True
