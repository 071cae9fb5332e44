"""Path helpers."""

from __future__ import annotations

import os
from pathlib import Path


def _has_extension(name: str) -> bool:
    # A leading dot alone does not start an extension.
    return "." in name[1:] if name != ".." else False


def append_extension(path: str | os.PathLike[str], extension: str) -> Path:
    """Return the path with ``extension`` appended after any existing one.

    ``hhh/abc`` becomes ``hhh/abc.tar``; ``hhh/abc.tar`` becomes ``hhh/abc.tar.gz``.
    """
    path = Path(path)
    name = path.name
    if name in ("", ".."):
        raise ValueError(f"path has no file name: {str(path)!r}")
    if not extension and not _has_extension(name):
        return path
    return path.with_name(f"{name}.{extension}")