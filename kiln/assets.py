"""Asset pipeline for Kiln.

Copies images, style sources and scripts into the output directory and
compiles the stylesheet into a content-hashed CSS file.

Key functions:
- copy_assets: Replace the images/, assets/scss/ and js/ output trees.
- minify_scripts: Minify copied JavaScript in place.
- render_styles: Compile the SCSS entry and register the hashed file.
"""

from __future__ import annotations

import asyncio
import shutil
import subprocess
from pathlib import Path

from rjsmin import jsmin

from .config import Config
from .fs import (
    copy_file,
    copy_tree,
    create_directory,
    hash_file,
    move_file,
    read_file,
    remove_tree,
    remove_trees,
    walk,
    write_file,
)
from .logging import get_logger
from .site import Site

logger = get_logger("assets")


class StyleError(Exception):
    """The stylesheet compiler failed."""


def asset_targets(config: Config) -> list[tuple[Path, Path]]:
    """Return (source, destination) pairs for the copied asset trees."""
    return [
        (config.assets.images, config.out / "images"),
        (config.assets.style, config.out / "assets" / "scss"),
        (config.assets.js, config.out / "js"),
    ]


async def copy_assets(config: Config) -> None:
    """Copy static assets to the output directory.

    The three output trees are removed first, then the copies run
    concurrently. Missing source directories are skipped. Every copy is
    allowed to finish; the first failure is then re-raised.

    Raises:
        FSError: If a copy failed.
    """
    logger.debug("Copying assets")
    targets = asset_targets(config)

    await remove_trees([dest for _, dest in targets], recursive=True, force=True)

    copies = []
    for source, dest in targets:
        if not source.is_dir():
            logger.debug("Skipping missing asset directory %s", source)
            continue
        copies.append(copy_tree(source, dest))

    results = await asyncio.gather(*copies, return_exceptions=True)
    for result in results:
        if isinstance(result, Exception):
            raise result

    if config.production:
        await minify_scripts(config.out / "js")


async def minify_scripts(directory: Path) -> None:
    """Minify every ``.js`` file below directory in place."""
    if not directory.is_dir():
        return
    for script in await walk(directory, "js"):
        source = await read_file(script)
        await write_file(script, jsmin(source))


def find_executable(name: str, search_root: Path | None = None) -> str | None:
    """Find an executable in PATH, then in ``search_root/node_modules/.bin``."""
    found = shutil.which(name)
    if found:
        return found
    if search_root is not None:
        local = search_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)
    return None


def _sass_command(sass_bin: str, source: Path, dest: Path, production: bool) -> list[str]:
    cmd = [sass_bin, str(source), str(dest)]
    if production:
        cmd += ["--style=compressed", "--no-source-map"]
    else:
        cmd += ["--style=expanded", "--source-map"]
    return cmd


async def _compile(cmd: list[str]) -> None:
    try:
        result = await asyncio.to_thread(subprocess.run, cmd, capture_output=True, text=True)
    except OSError as exc:
        logger.error("Style build failed: %s", exc)
        raise StyleError(str(exc)) from exc
    if result.returncode != 0:
        message = result.stderr.strip() or f"sass exited with {result.returncode}"
        logger.error("Style build failed: %s", message)
        raise StyleError(message)


async def render_styles(site: Site, entry: Path) -> None:
    """Compile a stylesheet entry into a content-hashed CSS file.

    ``style.scss`` becomes ``<out>/style.<hash>.css`` and is registered in
    the site state as ``style.css``. The file emitted by a previous render
    is removed. A missing entry is skipped; a missing ``sass`` executable
    falls back to copying the entry unchanged.

    Args:
        site: Site being built.
        entry: Stylesheet entry file.

    Raises:
        StyleError: If the compiler exits with an error.
        FSError: If the output cannot be written or hashed.
    """
    config = site.config
    if not entry.exists():
        logger.warning("Stylesheet %s not found; skipping styles", entry)
        return

    name = f"{entry.stem}.css"
    compiled = config.out / name
    await create_directory(compiled.parent)

    sass_bin = find_executable("sass", config.assets.root.parent)
    if sass_bin is None:
        logger.warning(
            "sass not found; install it with `npm install -D sass`. "
            "Falling back to the uncompiled stylesheet."
        )
        await copy_file(entry, compiled)
    else:
        await _compile(_sass_command(sass_bin, entry, compiled, config.production))

    digest = await hash_file(compiled)
    hashed = compiled.with_name(f"{entry.stem}.{digest}.css")
    await move_file(compiled, hashed)

    previous = site.state.styles.get(name)
    if previous is not None and Path(previous) != hashed:
        await remove_tree(Path(previous), force=True)
    site.state.styles[name] = hashed
    logger.info("Rendered %s as %s", entry.name, hashed.name)
