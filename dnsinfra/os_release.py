"""Operating system identification from os-release data."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

OS_RELEASE_PATH = Path("/etc/os-release")


def _on_android() -> bool:
    return sys.platform == "android" or hasattr(sys, "getandroidapilevel")


@dataclass
class OsRelease:
    id: str = ""
    name: str = ""
    pretty_name: str = ""
    id_like: str | None = None

    @classmethod
    def parse(cls, text: str) -> OsRelease:
        """Parse ``KEY=value`` lines; values are kept as written, quotes included."""
        release = cls()
        for line in text.splitlines():
            key, sep, value = line.partition("=")
            if not sep:
                continue
            key = key.strip().lower()
            value = value.strip()
            if key == "id":
                release.id += value
            elif key == "name":
                release.name += value
            elif key == "pretty_name":
                release.pretty_name += value
            elif key == "id_like":
                release.id_like = value
        return release

    def _id_contains(self, search: str) -> bool:
        return search in self.id or (self.id_like is not None and search in self.id_like)

    def is_kali(self) -> bool:
        return "kali" in self.id

    def is_debian(self) -> bool:
        return self._id_contains("debian") or self.is_deepin()

    def is_centos(self) -> bool:
        return self._id_contains("centos")

    def is_fedora(self) -> bool:
        return self._id_contains("fedora")

    def is_openwrt(self) -> bool:
        return "openwrt" in self.id

    def is_deepin(self) -> bool:
        return self._id_contains("Deepin")

    def is_linux(self) -> bool:
        return sys.platform.startswith("linux") and not _on_android()

    def is_macos(self) -> bool:
        return sys.platform == "darwin"

    def is_windows(self) -> bool:
        return sys.platform == "win32"

    def is_android(self) -> bool:
        return _on_android()


def _named(name: str) -> OsRelease:
    return OsRelease(id=name, name=name, pretty_name=name)


def get() -> OsRelease:
    """Describe the running system; on Linux this reads /etc/os-release."""
    if _on_android():
        return _named("android")
    if sys.platform == "darwin":
        return _named("macos")
    if sys.platform == "win32":
        return _named("windows")
    return OsRelease.parse(OS_RELEASE_PATH.read_text())