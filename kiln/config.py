"""Configuration loading for Kiln.

The configuration is read once per run from ``kiln.yaml`` in the project root
and frozen into a Config object. Every path is resolved against the project
root so pipeline stages never depend on the current working directory.

Key functions:
- load_config: Build a Config from kiln.yaml, defaults and the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "kiln.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "out": "public",
    "production": False,
    "port": 3000,
    "ws_port": 3001,
    "content": {
        "pages": "content/pages",
        "extension": "md",
    },
    "assets": {
        "root": "assets",
        "images": "assets/images",
        "js": "assets/js",
        "style": "assets/scss",
        "style_entry": "style.scss",
    },
    "meta": {
        "title": "Kiln",
        "url": "http://localhost:3000",
        "description": "",
        "author": "",
    },
}


@dataclass(frozen=True)
class ContentPaths:
    """Where content documents live and which extension they use."""

    pages: Path
    extension: str = "md"


@dataclass(frozen=True)
class AssetPaths:
    """Source directories for static assets.

    Attributes:
        root: Directory holding root-level files such as robots.txt.
        images: Image directory copied to <out>/images.
        js: Script directory copied to <out>/js.
        style: Style source directory copied to <out>/assets/scss.
        style_entry: Stylesheet entry file name inside ``style``.
    """

    root: Path
    images: Path
    js: Path
    style: Path
    style_entry: str = "style.scss"

    @property
    def style_entry_path(self) -> Path:
        return self.style / self.style_entry


@dataclass(frozen=True)
class SiteMeta:
    title: str
    url: str
    description: str = ""
    author: str = ""


@dataclass(frozen=True)
class Config:
    """Immutable build configuration.

    Attributes:
        out: Output directory.
        content: Content source locations.
        assets: Asset source locations.
        meta: Site metadata used by templates and the sitemap.
        production: Minify HTML/JS and compress output when True.
        port: HTTP port for the dev server.
        ws_port: Port for the live reload push channel.
    """

    out: Path
    content: ContentPaths
    assets: AssetPaths
    meta: SiteMeta
    production: bool = False
    port: int = 3000
    ws_port: int = 3001


def load_config(project_root: Path, production: bool | None = None) -> Config:
    """Load site configuration from kiln.yaml.

    Args:
        project_root: Root directory of the project.
        production: Force production mode on or off. When None, production
            mode follows the ``production`` key or ``KILN_ENV=production``.

    Returns:
        Config with defaults applied and paths resolved against project_root.
    """
    raw = _merge(DEFAULT_CONFIG, _read_config_file(project_root / CONFIG_FILENAME))

    if production is None:
        production = bool(raw.get("production")) or (
            os.environ.get("KILN_ENV", "").lower() == "production"
        )

    def resolve(value: Any) -> Path:
        path = Path(str(value))
        return path if path.is_absolute() else project_root / path

    content = raw["content"]
    assets = raw["assets"]
    meta = raw["meta"]
    return Config(
        out=resolve(raw["out"]),
        content=ContentPaths(
            pages=resolve(content["pages"]),
            extension=str(content["extension"]).lstrip("."),
        ),
        assets=AssetPaths(
            root=resolve(assets["root"]),
            images=resolve(assets["images"]),
            js=resolve(assets["js"]),
            style=resolve(assets["style"]),
            style_entry=str(assets["style_entry"]),
        ),
        meta=SiteMeta(
            title=str(meta["title"]),
            url=str(meta["url"]),
            description=str(meta.get("description") or ""),
            author=str(meta.get("author") or ""),
        ),
        production=production,
        port=int(raw["port"]),
        ws_port=int(raw["ws_port"]),
    )


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    return loaded if isinstance(loaded, dict) else {}


def _merge(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge overrides into defaults one level deep for nested sections."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in defaults.items()}
    for key, value in overrides.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key].update(value)
        elif value is not None and not isinstance(merged.get(key), dict):
            merged[key] = value
    return merged
