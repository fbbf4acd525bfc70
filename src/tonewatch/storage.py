"""Chunk file naming and cleanup."""

from __future__ import annotations

import logging
import os
import tempfile
import uuid

logger = logging.getLogger("tonewatch")

DEFAULT_CHUNK_PREFIX = "tone_chunk_"


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def resolve_chunk_dir(directory: str | None = None) -> str:
    root = directory or tempfile.gettempdir()
    ensure_dir(root)
    return root


def build_chunk_path(
    directory: str,
    prefix: str = DEFAULT_CHUNK_PREFIX,
    suffix: str = ".wav",
) -> str:
    return os.path.join(directory, f"{prefix}{uuid.uuid4().hex}{suffix}")


def remove_chunk(path: str | None) -> bool:
    """Delete a chunk file if it is still there. Never raises."""
    if not path or not os.path.exists(path):
        return False
    try:
        os.remove(path)
    except OSError as exc:
        logger.warning("Failed to remove chunk file %s: %s", os.path.basename(path), exc)
        return False
    logger.debug("Removed chunk file: %s", os.path.basename(path))
    return True


def cleanup_chunks(directory: str | None = None, prefix: str = DEFAULT_CHUNK_PREFIX) -> int:
    root = directory or tempfile.gettempdir()
    try:
        names = os.listdir(root)
    except OSError as exc:
        logger.warning("Chunk cleanup skipped for %s: %s", root, exc)
        return 0

    removed = 0
    for name in names:
        if not name.startswith(prefix):
            continue
        if remove_chunk(os.path.join(root, name)):
            removed += 1
    if removed:
        logger.info("Removed %s orphaned chunk files from %s", removed, root)
    return removed
