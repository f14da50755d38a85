import logging
import os
import re
import sys

logger = logging.getLogger(__name__)


def calculate_chunks(file_size: int, chunk_size: int) -> list[tuple[int, int]]:
    """
    Calculate chunk ranges for a chunked upload.

    An empty file still yields one (empty) chunk so the server learns about it.

    Args:
        file_size: Total size of the file in bytes
        chunk_size: Size of each chunk in bytes

    Returns:
        List of (offset, length) tuples for each chunk
    """
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")

    if file_size == 0:
        return [(0, 0)]

    chunks = []
    for offset in range(0, file_size, chunk_size):
        chunks.append((offset, min(chunk_size, file_size - offset)))

    return chunks


def read_range(path: str, offset: int, length: int) -> bytes:
    """Read one byte range through its own file handle."""
    with open(path, "rb") as f:
        f.seek(offset)
        return f.read(length)


def resolve_paths(paths) -> list[str]:
    """
    Canonicalize input paths and expand directories recursively.

    Unresolvable paths are reported and skipped; entries that are neither
    regular files nor directories are skipped with a warning.

    Args:
        paths: Iterable of user-supplied paths

    Returns:
        Flat list of absolute file paths
    """
    resolved = []
    for path in paths:
        try:
            full_path = os.path.realpath(path, strict=True)
        except OSError as e:
            print(f"Error: {e}", file=sys.stderr)
            continue
        _collect(full_path, resolved)
    return resolved


def _collect(path: str, resolved: list[str]):
    if os.path.isdir(path):
        logger.debug("%s is a directory", path)
        try:
            entries = sorted(os.listdir(path))
        except OSError as e:
            print(f"Error: {e}", file=sys.stderr)
            return
        for entry in entries:
            _collect(os.path.join(path, entry), resolved)
    elif os.path.isfile(path):
        resolved.append(path)
    else:
        print(f"Warning: {path} is not a file or directory", file=sys.stderr)


SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]

# Binary multiples: K=1024, M=1024**2, ...
_SIZE_POWERS = {"": 0, "K": 1, "M": 2, "G": 3, "T": 4}
_SIZE_PATTERN = re.compile(r"^(\d+)\s*(?:([KMGT])(?:i?B)?|B)?$", re.IGNORECASE)


def format_size(size: float) -> str:
    """
    Format a byte count with two decimals in the largest unit below 1024.

    Args:
        size: Size in bytes

    Returns:
        Formatted size string, e.g. "1.50 KB"
    """
    value = float(size)
    for unit in SIZE_UNITS[:-1]:
        if value < 1024:
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} {SIZE_UNITS[-1]}"


def format_speed(speed: float) -> str:
    return f"{format_size(speed)}/s"


def parse_size(size_str: str) -> int:
    """
    Parse a chunk size such as "512", "512B", "4K", "4KB", "4KiB" or "1TB".

    Suffixes are case-insensitive binary multiples.

    Raises:
        ValueError: If the string is not a whole number with an optional suffix
    """
    match = _SIZE_PATTERN.match(size_str.strip())
    if not match:
        raise ValueError(
            f"Invalid size format: {size_str}. Expected format: NUMBER[B|KB|MB|GB|TB]"
        )

    value, prefix = match.groups()
    return int(value) * 1024 ** _SIZE_POWERS[(prefix or "").upper()]
