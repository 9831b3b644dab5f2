"""Asynchronous filesystem helpers for Kiln.

Every helper is a coroutine that runs its blocking work in a worker thread.
Native OSErrors are converted to FSError here, logged once, and raised;
callers propagate FSError without logging it again.

Key functions:
- walk: Find files with a given extension.
- list_all_except: Find every file whose extension is not excluded.
- copy_tree / copy_file: Copy directories and files.
- remove_tree / remove_trees: Delete paths, optionally tolerating absence.
- hash_file: Short content digest used for cache busting.
"""

from __future__ import annotations

import asyncio
import hashlib
import shutil
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TypeVar

from .logging import get_logger

logger = get_logger("fs")

T = TypeVar("T")

HASH_LENGTH = 8
_CHUNK_SIZE = 64 * 1024


class FSError(Exception):
    """A filesystem operation failed.

    Attributes:
        path: Path the failing operation was working on, if known.
    """

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


async def _run(func: Callable[[], T], path: Path | None = None) -> T:
    """Run a blocking callable in a thread, converting OSError into FSError."""
    try:
        return await asyncio.to_thread(func)
    except OSError as exc:
        message = str(exc)
        logger.error(message)
        raise FSError(message, path) from exc


def _normalize_extension(extension: str) -> str:
    if extension in ("*", ""):
        return extension
    return extension if extension.startswith(".") else f".{extension}"


def _walk_sync(
    directory: Path, matches: Callable[[Path], bool], recurse: bool
) -> list[Path]:
    found: list[Path] = []
    for entry in directory.iterdir():
        if entry.is_dir():
            if recurse:
                found.extend(_walk_sync(entry, matches, recurse))
        elif matches(entry):
            found.append(entry.absolute())
    return found


async def walk(directory: Path, extension: str, recurse: bool = True) -> list[Path]:
    """Walk a directory finding all files with the given extension.

    Args:
        directory: Directory to walk.
        extension: Extension to look for, with or without the leading dot.
            ``"*"`` matches every file.
        recurse: Whether to descend into subdirectories.

    Returns:
        Absolute paths in directory-listing order.

    Raises:
        FSError: If the directory cannot be listed.
    """
    wanted = _normalize_extension(extension)

    def matches(path: Path) -> bool:
        return wanted == "*" or path.suffix == wanted

    return await _run(lambda: _walk_sync(Path(directory), matches, recurse), directory)


async def list_all_except(directory: Path, excluded: Iterable[str]) -> list[Path]:
    """List every file below directory whose extension is not excluded.

    Args:
        directory: Directory to list recursively.
        excluded: Extensions to skip, e.g. ``[".map", ""]``. An empty string
            excludes files without an extension.

    Returns:
        Absolute paths of the remaining files.

    Raises:
        FSError: If a directory cannot be listed.
    """
    skipped = {_normalize_extension(ext) for ext in excluded}
    return await _run(
        lambda: _walk_sync(Path(directory), lambda p: p.suffix not in skipped, True),
        directory,
    )


def _copy_tree_sync(source: Path, destination: Path, recurse: bool, overwrite: bool) -> None:
    destination.mkdir(parents=True, exist_ok=True)
    for entry in source.iterdir():
        target = destination / entry.name
        if entry.is_dir():
            if recurse:
                _copy_tree_sync(entry, target, recurse, overwrite)
            continue
        _copy_file_sync(entry, target, overwrite)


def _copy_file_sync(source: Path, destination: Path, overwrite: bool) -> None:
    if not overwrite and destination.exists():
        raise FileExistsError(f"File exists: '{destination}'")
    shutil.copyfile(source, destination)


async def copy_tree(
    source: Path, destination: Path, recurse: bool = True, overwrite: bool = True
) -> None:
    """Copy all files from source into destination.

    The destination and its parents are created when missing. The copy is
    best effort: entries copied before a failure stay on disk.

    Args:
        source: Directory to copy from.
        destination: Directory to copy into.
        recurse: Whether to copy subdirectories as well.
        overwrite: Whether existing destination files are replaced.

    Raises:
        FSError: If any entry cannot be copied.
    """
    await _run(
        lambda: _copy_tree_sync(Path(source), Path(destination), recurse, overwrite),
        source,
    )


async def copy_file(source: Path, destination: Path, overwrite: bool = True) -> None:
    """Copy a single file, replacing the destination unless overwrite is False."""
    await _run(lambda: _copy_file_sync(Path(source), Path(destination), overwrite), source)


async def move_file(source: Path, destination: Path) -> None:
    """Move a file or directory; an existing destination file is replaced."""
    await _run(lambda: Path(source).replace(destination), source)


async def create_directory(path: Path) -> None:
    """Create a directory and any missing parents."""
    await _run(lambda: Path(path).mkdir(parents=True, exist_ok=True), path)


async def read_file(path: Path) -> str:
    return await _run(lambda: Path(path).read_text(encoding="utf-8"), path)


async def write_file(path: Path, content: str | bytes) -> None:
    """Write text (UTF-8) or bytes to a file, replacing its content."""
    target = Path(path)
    if isinstance(content, bytes):
        await _run(lambda: target.write_bytes(content), path)
    else:
        await _run(lambda: target.write_text(content, encoding="utf-8"), path)


def _remove_sync(path: Path, recursive: bool, force: bool) -> None:
    if path.is_dir() and not path.is_symlink():
        if recursive:
            shutil.rmtree(path)
        else:
            path.rmdir()
        return
    try:
        path.unlink()
    except FileNotFoundError:
        if not force:
            raise


async def remove_tree(path: Path, recursive: bool = False, force: bool = False) -> None:
    """Remove a file or directory.

    Args:
        path: Path to delete.
        recursive: Delete directory contents as well.
        force: Do not fail when the path does not exist.

    Raises:
        FSError: If the path cannot be removed.
    """
    await _run(lambda: _remove_sync(Path(path), recursive, force), path)


async def remove_trees(
    paths: Iterable[Path], recursive: bool = False, force: bool = False
) -> None:
    """Remove several paths concurrently; the first failure is re-raised."""
    results = await asyncio.gather(
        *(remove_tree(path, recursive, force) for path in paths),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, Exception):
            raise result


def _digest_sync(path: Path) -> str:
    md5 = hashlib.md5(usedforsecurity=False)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            md5.update(chunk)
    return md5.hexdigest()[:HASH_LENGTH]


async def hash_file(path: Path) -> str:
    """Return the first eight hex characters of the file's MD5 digest.

    Raises:
        FSError: If the file cannot be read.
    """
    return await _run(lambda: _digest_sync(Path(path)), path)
