"""Site building functionality for Kiln.

This module orchestrates a complete build: it cleans the output directory,
copies assets and root files, compiles the stylesheet, renders every page,
and finally compresses the output for production.

The build runs in three phases. Each phase waits for all of its tasks to
settle before the next one starts, and a failing phase does not stop the
later ones. All failures are reported together as a single BuildError.

Key functions:
- build_site: Build the entire site.
- create_root_files: Copy well-known root files (robots.txt, icons, ...).
- clean: Remove the output directory.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable

from .assets import copy_assets, render_styles
from .compress import compress
from .config import Config
from .content import build_pages
from .fs import copy_file, create_directory, remove_tree
from .logging import get_logger
from .renderers import ContentRenderer
from .site import Site
from .utils import format_duration

logger = get_logger("build")

ROOT_FILES = [
    "robots.txt",
    "humans.txt",
    "apple-touch-icon.png",
    "favicon.ico",
    "icon.svg",
    "icon-192.png",
    "icon-512.png",
    "manifest.webmanifest",
]


class BuildError(Exception):
    """One or more build stages failed.

    Attributes:
        errors: The exceptions raised by the failing stages, in phase order.
    """

    def __init__(self, message: str, errors: list[Exception] | None = None):
        self.errors = list(errors or [])
        super().__init__(message)


async def _settle(*tasks: Awaitable[object]) -> list[Exception]:
    """Run tasks concurrently and return the exceptions they raised."""
    results = await asyncio.gather(*tasks, return_exceptions=True)
    return [result for result in results if isinstance(result, Exception)]


async def build_site(site: Site, renderer: ContentRenderer | None = None) -> None:
    """Build the site into the configured output directory.

    Args:
        site: Site to build. Its page registry is reset first.
        renderer: Content renderer; defaults to the Markdown renderer.

    Raises:
        BuildError: If any stage failed. ``errors`` holds every cause.
    """
    config = site.config
    mode = "production" if config.production else "development"
    logger.info("Building site (%s)", mode)
    start = time.perf_counter()

    try:
        site.reset_pages()
        errors: list[Exception] = []

        try:
            await clean(config)
            await create_directory(config.out)
        except Exception as exc:
            raise BuildError(str(exc), [exc]) from exc

        errors += await _settle(
            copy_assets(config),
            render_styles(site, config.assets.style_entry_path),
            create_root_files(config),
        )
        errors += await _settle(build_pages(site, renderer))
        errors += await _settle(compress(config))

        if errors:
            raise BuildError("; ".join(str(err) for err in errors), errors)
        logger.info("Built %d pages", len(site.state.pages))
    finally:
        logger.info("Build finished in %s", format_duration(time.perf_counter() - start))


async def create_root_files(config: Config) -> None:
    """Copy the well-known root files from the assets root into ``<out>``.

    Missing files are skipped. A failed copy has already been logged by the
    filesystem layer and does not fail the build.
    """
    copies = []
    for name in ROOT_FILES:
        source = config.assets.root / name
        if source.is_file():
            copies.append(copy_file(source, config.out / name))
    await asyncio.gather(*copies, return_exceptions=True)


async def clean(config: Config) -> None:
    """Remove the output directory, tolerating its absence.

    Raises:
        FSError: If the directory exists but cannot be removed.
    """
    logger.debug("Cleaning %s", config.out)
    await remove_tree(config.out, recursive=True, force=True)
