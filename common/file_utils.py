#!/usr/bin/env python3
"""
File utility functions for backup reconciliation

Provides directory enumeration, content-based file type detection and the
file-system mutators used by the processor. Mutators never raise for a
single file; they return an ItemResult describing what happened.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import magic

from common.failure_tracker import ItemResult

logger = logging.getLogger(__name__)

# MIME type to extension mapping
# Covers images, videos, audio (including voice messages), documents and archives
MIME_TO_EXTENSION = {
    # Images
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heif",
    "image/tiff": "tiff",
    "image/bmp": "bmp",
    "image/avif": "avif",
    # Videos
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
    "video/webm": "webm",
    "video/x-matroska": "mkv",
    "video/x-m4v": "m4v",
    "video/3gpp": "3gp",
    # Audio
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/aac": "aac",
    "audio/x-hx-aac-adts": "aac",
    "audio/ogg": "ogg",
    "audio/opus": "opus",
    # Documents and archives
    "application/pdf": "pdf",
    "application/zip": "zip",
    "application/gzip": "gz",
    "application/x-7z-compressed": "7z",
    "application/x-rar": "rar",
    "application/vnd.rar": "rar",
}


@dataclass
class ListedFile:
    """One regular file found by enumerate_files."""

    path: Path
    size: int
    mtime: float
    atime: float

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def base_name(self) -> str:
        """Filename without its last extension."""
        name = self.path.name
        return name.rsplit(".", 1)[0] if "." in name.lstrip(".") else name

    @property
    def extension(self) -> str:
        """Last extension without the dot (empty if none)."""
        name = self.path.name
        return name.rsplit(".", 1)[1] if "." in name.lstrip(".") else ""


# ============================================================================
# Enumeration
# ============================================================================


def enumerate_files(
    root: Path, recursive: bool = False, exclude: Iterable[Path] = ()
) -> List[ListedFile]:
    """
    List every regular file below root.

    Files are returned sorted by path so later stages see a stable order.
    Entries that vanish or cannot be stat'ed while listing are logged and
    skipped.

    Args:
        root: Directory to list
        recursive: Also descend into sub-folders
        exclude: Paths to leave out, e.g. the open run log

    Returns:
        List of ListedFile records

    Example:
        >>> files = enumerate_files(Path("/backups/threema"), recursive=True)
        >>> print(files[0].base_name, files[0].extension)
    """
    root = Path(root)
    candidates = root.rglob("*") if recursive else root.iterdir()
    skipped = {Path(p) for p in exclude}

    listed = []
    for path in candidates:
        if path in skipped:
            continue
        try:
            if not path.is_file():
                continue
            stat = path.stat()
        except OSError as e:
            logger.error(f"could not read file information of '{path}'; {e}")
            continue
        listed.append(ListedFile(path, stat.st_size, stat.st_mtime, stat.st_atime))

    listed.sort(key=lambda f: str(f.path))
    logger.debug(f"found {len(listed)} files in '{root}' (recursive={recursive})")
    return listed


def remove_empty_folders(root: Path) -> List[ItemResult]:
    """
    Remove every folder below root whose subtree contains no files.

    Folders are removed deepest first (longest paths first); the root
    itself is never removed.

    Args:
        root: Directory to clean up

    Returns:
        One ItemResult per folder removal attempt
    """
    root = Path(root)
    holds_files = set()
    folders = []

    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        current = Path(dirpath)
        if filenames or any((current / d) in holds_files for d in dirnames):
            holds_files.add(current)
        elif current != root:
            folders.append(current)

    results = []
    for folder in sorted(folders, key=lambda p: len(str(p)), reverse=True):
        try:
            folder.rmdir()
            logger.debug(f"removed empty folder '{folder}'")
            results.append(ItemResult.success(folder, "remove folder"))
        except OSError as e:
            results.append(ItemResult.failure(folder, "remove folder", str(e)))
    return results


# ============================================================================
# Type Detection
# ============================================================================


def get_mime_type(file_path: Path) -> Optional[str]:
    """
    Get the MIME type of a file using python-magic.

    Args:
        file_path: Path to the file to analyze

    Returns:
        MIME type string or None if detection fails

    Example:
        >>> mime = get_mime_type(Path("/tmp/photo.jpg"))
        >>> print(mime)  # "image/jpeg"
    """
    try:
        return magic.from_file(str(file_path), mime=True)
    except (OSError, magic.MagicException) as e:
        logger.debug(f"Failed to get MIME type for {file_path}: {e}")
        return None


def sniff_extension(file_path: Path) -> Optional[str]:
    """
    Detect a file's extension from its content.

    Args:
        file_path: Path to the file to analyze

    Returns:
        Extension without dot (e.g. "jpg"), or None if the type is unknown
    """
    mime = get_mime_type(file_path)
    if not mime:
        return None
    return MIME_TO_EXTENSION.get(mime)


# ============================================================================
# File-System Mutators
# ============================================================================


def make_dirs(folder: Path) -> ItemResult:
    """Create a folder (and parents) if it does not exist yet."""
    try:
        Path(folder).mkdir(parents=True, exist_ok=True)
        return ItemResult.success(folder, "create folder")
    except OSError as e:
        return ItemResult.failure(folder, "create folder", str(e))


def move_file(source: Path, destination: Path) -> ItemResult:
    """
    Rename or move a file.

    The caller is responsible for choosing a destination that does not exist
    yet; see unique_destination.
    """
    try:
        shutil.move(str(source), str(destination))
        logger.debug(f"renamed '{source}' to '{destination}'")
        return ItemResult.success(source, "rename", str(destination))
    except OSError as e:
        return ItemResult.failure(source, "rename", f"target '{destination}'; {e}")


def delete_file(file_path: Path) -> ItemResult:
    """Delete a single file."""
    try:
        Path(file_path).unlink()
        logger.debug(f"deleted '{file_path}'")
        return ItemResult.success(file_path, "delete")
    except OSError as e:
        return ItemResult.failure(file_path, "delete", str(e))


def write_text_file(file_path: Path, content: str) -> ItemResult:
    """Write a UTF-8 text file, replacing an existing one."""
    try:
        Path(file_path).write_text(content, encoding="utf-8")
        return ItemResult.success(file_path, "write")
    except OSError as e:
        return ItemResult.failure(file_path, "write", str(e))


def unique_destination(directory: Path, name: str, extension: str, source: Optional[Path] = None):
    """
    Find a free destination path for a file.

    Tries ``directory/name.extension`` first; while that path exists (and is
    not the source itself) a counter prefix is tried: ``1_name.extension``,
    ``2_name.extension``, ...

    Args:
        directory: Target folder
        name: Target name without extension
        extension: Target extension without dot (may be empty)
        source: Current path of the file being moved

    Returns:
        Tuple of (destination path, counter used; 0 if none)
    """
    suffix = f".{extension}" if extension else ""
    candidate = Path(directory) / f"{name}{suffix}"
    counter = 0
    while candidate.exists() and (source is None or candidate != Path(source)):
        counter += 1
        candidate = Path(directory) / f"{counter}_{name}{suffix}"
    return candidate, counter
