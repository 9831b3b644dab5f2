"""Kiln static site generator.

Kiln turns a directory of content documents into a tree of HTML pages,
copies and compiles the site's assets, optionally compresses the output,
and serves the result with live reload while authoring.

The build runs on asyncio: independent stages fan out concurrently and
their failures are collected into a single BuildError. The CLI module is
the main entry point and provides commands for building, serving and
cleaning a site.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
