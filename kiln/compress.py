"""Output compression for Kiln.

Production builds get a gzip and a Brotli sibling for every compressible
output file so a static host can serve precompressed responses. Files are
streamed in chunks and compressed concurrently; a file that fails is logged
and skipped.

Functions:
    compress: Compress the output tree (production only).
    gzip_file: Write ``<file>.gz``.
    brotli_file: Write ``<file>.br``.
"""

from __future__ import annotations

import asyncio
import gzip
import shutil
from pathlib import Path

import brotli

from .config import Config
from .fs import list_all_except
from .logging import get_logger

logger = get_logger("compress")

INVALID_EXT = [".map", ".txt", ".scss", ".gz", ".br", ""]

_CHUNK_SIZE = 64 * 1024


def _gzip_sync(path: Path) -> Path:
    target = path.with_name(f"{path.name}.gz")
    with open(path, "rb") as src, gzip.open(target, "wb", compresslevel=9) as dest:
        shutil.copyfileobj(src, dest, _CHUNK_SIZE)
    return target


def _brotli_sync(path: Path) -> Path:
    target = path.with_name(f"{path.name}.br")
    compressor = brotli.Compressor(quality=11)
    with open(path, "rb") as src, open(target, "wb") as dest:
        for chunk in iter(lambda: src.read(_CHUNK_SIZE), b""):
            dest.write(compressor.process(chunk))
        dest.write(compressor.finish())
    return target


async def gzip_file(path: Path) -> Path:
    """Compress a file with gzip at the highest level.

    Returns:
        Path of the written ``.gz`` file.
    """
    return await asyncio.to_thread(_gzip_sync, path)


async def brotli_file(path: Path) -> Path:
    """Compress a file with Brotli at the highest quality.

    Returns:
        Path of the written ``.br`` file.
    """
    return await asyncio.to_thread(_brotli_sync, path)


async def _compress_one(path: Path) -> None:
    results = await asyncio.gather(gzip_file(path), brotli_file(path), return_exceptions=True)
    for result in results:
        if isinstance(result, Exception):
            logger.warning("Could not compress %s: %s", path, result)


async def compress(config: Config) -> None:
    """Write ``.gz`` and ``.br`` siblings for every compressible output file.

    Does nothing outside production. Source maps, text files, SCSS sources,
    already compressed files and files without an extension are skipped.

    Raises:
        FSError: If the output directory cannot be listed.
    """
    if not config.production:
        return

    files = await list_all_except(config.out, INVALID_EXT)
    logger.debug("Compressing %d files", len(files))
    await asyncio.gather(*(_compress_one(path) for path in files))
