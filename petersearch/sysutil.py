"""File-system helpers, memory logging and size units."""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tracemalloc
from typing import BinaryIO

KB = 1000.0
MB = 1000.0 * KB
GB = 1000.0 * MB
TB = 1000.0 * GB
PB = 1000.0 * TB

logger = logging.getLogger(__name__)


def create_dir(dirname: str | os.PathLike[str]) -> None:
    """Create ``dirname`` empty, removing anything already there."""
    shutil.rmtree(dirname, ignore_errors=True)
    if os.path.lexists(dirname):
        os.remove(dirname)
    os.makedirs(dirname, mode=0o755, exist_ok=True)


def create_file(filename: str | os.PathLike[str]) -> BinaryIO:
    """Open ``filename`` for reading and writing, creating it if missing.

    Existing contents are kept, not truncated.
    """
    fd = os.open(filename, os.O_RDWR | os.O_CREAT, 0o755)
    return os.fdopen(fd, "r+b")


def format_megabytes(size: float) -> str:
    """Format a byte count as megabytes with two decimals."""
    return f"{size / MB:.2f}"


def _peak_rss_bytes() -> int | None:
    try:
        import resource
    except ImportError:
        return None
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return peak if sys.platform == "darwin" else peak * 1024


def log_memory_usage() -> str:
    """Log the process's memory usage and return the logged message."""
    parts = []
    if tracemalloc.is_tracing():
        current, peak = tracemalloc.get_traced_memory()
        parts.append(f"Memory used: {format_megabytes(current)} MB.")
        parts.append(f"Traced peak: {format_megabytes(peak)} MB.")
    rss = _peak_rss_bytes()
    if rss is not None:
        if not parts:
            parts.append(f"Memory used: {format_megabytes(rss)} MB.")
        parts.append(f"Peak RSS: {format_megabytes(rss)} MB.")
    if not parts:
        parts.append("Memory used: unknown.")
    message = " ".join(parts)
    logger.info(message)
    return message