"""
File Operation Utilities

Provides file hashing, change detection, copying and directory helpers
used by the sync engine and backup manager.

Author: SyncManager Project
License: MIT
"""

import os
import shutil
import hashlib
from pathlib import Path
from typing import Optional, Tuple, Union

from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 65536

PathLike = Union[str, Path]


def calculate_file_hash(
    file_path: PathLike,
    algorithm: str = "sha256",
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> str:
    """
    Calculate hash of a file.

    The file is streamed in ``chunk_size`` blocks, never loaded whole.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm (md5, sha1, sha256, etc.)
        chunk_size: Size of chunks to read (bytes)

    Returns:
        Hexadecimal hash string

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If algorithm is unsupported
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    try:
        hash_func = hashlib.new(algorithm)
    except ValueError:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    with open(file_path, 'rb') as f:
        while chunk := f.read(chunk_size):
            hash_func.update(chunk)

    return hash_func.hexdigest()


def try_file_hash(
    file_path: PathLike,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Hash a file without raising.

    Returns:
        Tuple of (success: bool, digest: str, error_message: str)
    """
    try:
        return True, calculate_file_hash(file_path, chunk_size=chunk_size), None
    except OSError as e:
        return False, None, f"Cannot read {file_path}: {e}"


def has_file_changed(
    source: PathLike,
    destination: PathLike,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> bool:
    """
    Decide whether ``source`` needs to be copied over ``destination``.

    A missing destination or a size mismatch counts as changed without
    hashing. Equal sizes fall back to comparing SHA-256 digests. If either
    digest cannot be computed the file is treated as changed.

    Args:
        source: Source file path
        destination: Destination file path
        chunk_size: Read size used while hashing

    Returns:
        True if the destination differs from the source (or might)
    """
    if not os.path.exists(destination):
        return True

    if os.path.getsize(source) != os.path.getsize(destination):
        return True

    src_ok, src_hash, src_error = try_file_hash(source, chunk_size)
    dst_ok, dst_hash, dst_error = try_file_hash(destination, chunk_size)

    if not (src_ok and dst_ok):
        logger.warning(
            f"Hash comparison failed, treating as changed: {src_error or dst_error}"
        )
        return True

    return src_hash != dst_hash


def copy_file(source: PathLike, destination: PathLike) -> None:
    """
    Copy a file over ``destination``, preserving timestamps and mode.

    Raises:
        OSError: On any copy failure
    """
    shutil.copy2(str(source), str(destination))
    logger.debug(f"Copied: {source} -> {destination}")


def ensure_directory(directory: PathLike) -> Tuple[bool, Optional[str]]:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: Directory path

    Returns:
        Tuple of (success: bool, error_message: str)
    """
    try:
        Path(directory).mkdir(parents=True, exist_ok=True)
        return True, None
    except OSError as e:
        logger.error(f"Failed to create directory {directory}: {e}")
        return False, f"Cannot create directory {directory}: {e}"
