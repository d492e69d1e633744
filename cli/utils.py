"""Utility functions for CLI output."""

import re
import sys
from typing import Callable

from common.types import ChunkUploadProgress
from cli.constants import GREEN, RESET


def progress_printer(label: str) -> Callable[[ChunkUploadProgress], None]:
    """
    Build a progress callback that redraws one terminal line per chunk.

    The line is terminated once the last chunk is reported.
    """
    def report(progress: ChunkUploadProgress) -> None:
        sys.stdout.write(
            f"\r{label} chunk {progress.current_chunk}/{progress.total_chunks} "
            f"({GREEN}{progress.percentage:.1f}%{RESET})"
        )
        if progress.current_chunk >= progress.total_chunks:
            sys.stdout.write('\n')
        sys.stdout.flush()

    return report


def safe_file_name(identifier: str, default: str = "document") -> str:
    """
    Turn an identifier into a file name that stays inside its directory.

    Path separators and other unusual characters become underscores and
    leading dots are dropped, so "../x" cannot climb out of the target.
    """
    name = re.sub(r'[^A-Za-z0-9._-]', '_', identifier).lstrip('.')
    return name or default


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"
