"""Installs and removes the files and directories a service needs."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

from dnsinfra.paths import append_extension

_logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class InstallStrategy(Enum):
    """What to do when a file being installed already exists."""

    OVERRIDE = "override"
    BACKUP = "backup"
    PRESERVE = "preserve"


class UninstallStrategy(Enum):
    """What to do with an installed path on uninstall."""

    KEEP = "keep"
    REMOVE = "remove"
    REMOVE_IF_EMPTY = "remove_if_empty"


@dataclass(frozen=True)
class InstallItem:
    """A file (with content or a source path to copy) or a directory."""

    path: Path
    source: bytes | Path | None = None
    mode: int | None = None
    install_strategy: InstallStrategy = InstallStrategy.OVERRIDE
    uninstall_strategy: UninstallStrategy = UninstallStrategy.REMOVE

    @classmethod
    def file(
        cls,
        path: PathLike,
        content: bytes | str,
        mode: int | None = None,
        install_strategy: InstallStrategy = InstallStrategy.OVERRIDE,
        uninstall_strategy: UninstallStrategy = UninstallStrategy.REMOVE,
    ) -> InstallItem:
        """A file written from ``content``."""
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        return cls(Path(path), data, mode, install_strategy, uninstall_strategy)

    @classmethod
    def copy(cls, src: PathLike, dest: PathLike) -> InstallItem:
        """A file copied from ``src`` to ``dest``."""
        return cls(Path(dest), Path(src))

    @classmethod
    def directory(
        cls,
        path: PathLike,
        uninstall_strategy: UninstallStrategy = UninstallStrategy.REMOVE,
    ) -> InstallItem:
        """A directory, created with its parents when missing."""
        return cls(Path(path), None, uninstall_strategy=uninstall_strategy)

    def is_file(self) -> bool:
        return self.source is not None

    def is_directory(self) -> bool:
        return not self.is_file()


def _current_exe() -> Path:
    argv0 = sys.argv[0] if sys.argv else ""
    if not argv0:
        raise RuntimeError("failed to get current exe path: no program path")
    path = Path(argv0)
    if not path.exists():
        raise RuntimeError(f"failed to get current exe path: {argv0!r} does not exist")
    return path.resolve()


class InstallerBuilder:
    """Collects install items in the order they are installed."""

    def __init__(self) -> None:
        self._items: list[InstallItem] = []

    def add_item(self, item: InstallItem) -> InstallerBuilder:
        self._items.append(item)
        return self

    def install_current_exe_to(self, path: PathLike) -> InstallerBuilder:
        """Copy the running program to ``path`` unless it already runs from there."""
        cmd_path = Path(path)
        current = _current_exe()
        if current != cmd_path:
            self.add_item(InstallItem.copy(current, cmd_path))
        return self

    def build(self) -> Installer:
        return Installer(self._items)


def _write_content(dest: Path, data: bytes, mode: int | None) -> None:
    flags = os.O_CREAT | os.O_WRONLY | getattr(os, "O_BINARY", 0)
    fd = os.open(dest, flags, 0o666 if mode is None else mode)
    with os.fdopen(fd, "wb") as file:
        file.write(data)
        file.flush()
        os.fsync(file.fileno())


class Installer:
    """Installs items in order and uninstalls them in reverse."""

    def __init__(self, items: list[InstallItem] | tuple[InstallItem, ...] = ()) -> None:
        self.items: tuple[InstallItem, ...] = tuple(items)

    def __repr__(self) -> str:
        return f"Installer({list(self.items)!r})"

    @classmethod
    def builder(cls) -> InstallerBuilder:
        return InstallerBuilder()

    def install(self) -> None:
        for item in self.items:
            if item.is_directory():
                if not item.path.exists():
                    item.path.mkdir(parents=True)
                continue

            dest = item.path
            if dest.exists():
                if item.install_strategy is InstallStrategy.BACKUP:
                    shutil.copy(dest, append_extension(dest, "bak"))
                elif item.install_strategy is InstallStrategy.PRESERVE:
                    dest = append_extension(dest, "default")

            if isinstance(item.source, Path):
                shutil.copy(item.source, dest)
            else:
                _write_content(dest, item.source, item.mode)

            try:
                shown = dest.resolve(strict=True)
            except OSError:
                shown = dest
            _logger.info("Installed to %r", str(shown))

    def uninstall(self, purge: bool = False) -> None:
        for item in reversed(self.items):
            path = item.path
            if not path.exists():
                _logger.warning("%r does not exist, skipping", str(path))
                continue

            if purge or item.uninstall_strategy is UninstallStrategy.REMOVE:
                if path.is_file():
                    path.unlink()
                    _logger.info("file %r removed", str(path))
                else:
                    shutil.rmtree(path)
                    _logger.info("dir %r removed", str(path))
            elif (
                item.is_directory()
                and item.uninstall_strategy is UninstallStrategy.REMOVE_IF_EMPTY
                and _is_empty_dir(path)
            ):
                shutil.rmtree(path)
                _logger.info("dir %r removed", str(path))


def _is_empty_dir(path: Path) -> bool:
    try:
        return next(path.iterdir(), None) is None
    except OSError:
        return False