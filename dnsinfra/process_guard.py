"""A pid file that keeps a second instance from starting."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

import psutil

_PID_TEXT = re.compile(r"\+?[0-9]+")
_U32_MAX = 0xFFFF_FFFF


class AlreadyRunningError(RuntimeError):
    """The pid file names a process that is still running."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"the process id {pid} already running!!!")
        self.pid = pid


@dataclass
class ProcessGuard:
    """Holds the pid file; releasing it removes the file."""

    pid: int
    path: Path

    def release(self) -> None:
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError:
            pass

    def __enter__(self) -> ProcessGuard:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def is_process_running(pid: int) -> bool:
    """Whether a process with this id exists."""
    return psutil.pid_exists(pid)


def _parse_pid(text: str) -> int | None:
    if not _PID_TEXT.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _U32_MAX else None


def create(path: str | os.PathLike[str]) -> ProcessGuard:
    """Write this process's id to ``path`` unless a live process already owns it."""
    path = Path(path)
    pid = os.getpid()
    if path.exists():
        prev = _parse_pid(path.read_text())
        if prev is not None and is_process_running(prev):
            raise AlreadyRunningError(prev)
    path.write_text(str(pid))
    return ProcessGuard(pid=pid, path=path)