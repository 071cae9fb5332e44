"""A log file that rolls over into dated backups once it reaches a size."""

from __future__ import annotations

import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

_DATE_FMT = "%Y%m%d-%H%M%S"


class MappedFile:
    """A size-capped file that keeps at most ``num`` files (itself and backups).

    When the file reaches ``size`` bytes it is copied to
    ``<stem>-<timestamp><suffix>`` next to it, and the oldest copies beyond
    ``num`` are removed before writing starts again from an empty file.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        size: int,
        num: int | None = None,
        mode: int | None = None,
    ) -> None:
        self.path = Path(path)
        self.size = size
        self.num = num
        self.mode = mode
        self.preamble: bytes | None = None
        self._file: BinaryIO | None = None
        self._len = 0

    def __repr__(self) -> str:
        return f"MappedFile({str(self.path)!r}, size={self.size}, num={self.num})"

    def exists(self) -> bool:
        return self.path.exists()

    def __len__(self) -> int:
        if self._len > 0 or self._file is not None:
            return self._len
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def __bool__(self) -> bool:
        return True

    def touch(self) -> None:
        """Create the file and its directories, ready for writing."""
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        file = self._active_file()
        os.fsync(file.fileno())

    def mapped_files(self) -> list[Path]:
        """The file and its backups, newest name first."""
        if not self.path.name:
            return []
        stem = self.path.stem
        suffix = self.path.suffix
        files = [
            entry
            for entry in self.path.parent.iterdir()
            if entry.suffix == suffix and entry.name.startswith(stem)
        ]
        return sorted(files, key=str, reverse=True)

    def remove_files(self) -> None:
        """Close the file and delete it together with all its backups."""
        self.close()
        for path in self.mapped_files():
            path.unlink()

    def write(self, data: bytes) -> int:
        """Write all of ``data``, rolling the file over first if it is full."""
        file = self._active_file()
        written = self._write_all(file, data)
        self._len += written
        if self._is_full():
            self.flush()
        return written

    def flush(self) -> None:
        """Flush the open file; a full file is closed as well."""
        if self._file is None:
            return
        self._file.flush()
        if self._is_full():
            self._file.close()
            self._file = None

    def close(self) -> None:
        if self._file is not None:
            file, self._file = self._file, None
            file.flush()
            file.close()

    def __enter__(self) -> MappedFile:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @staticmethod
    def _write_all(file: BinaryIO, data: bytes) -> int:
        view = memoryview(data)
        total = 0
        while view:
            count = file.write(view) or 0
            total += count
            view = view[count:]
        return total

    def _is_full(self) -> bool:
        return len(self) >= self.size

    def _active_file(self) -> BinaryIO:
        if self._is_full():
            self._backup_files()
        if self._file is not None:
            return self._file

        flags = os.O_CREAT | os.O_WRONLY | getattr(os, "O_BINARY", 0)
        if self.path.exists():
            flags |= os.O_TRUNC if self._is_full() else os.O_APPEND
        mode = 0o666 if self.mode is None else self.mode
        fd = os.open(self.path, flags, mode)
        file = os.fdopen(fd, "wb", buffering=0)

        self._len = os.fstat(fd).st_size
        if self._len == 0 and self.preamble is not None:
            self._len = self._write_all(file, self.preamble)
        self._file = file
        return file

    def _backup_path(self) -> Path:
        stamp = time.time_ns()
        while True:
            seconds, nanos = divmod(stamp, 1_000_000_000)
            date = datetime.fromtimestamp(seconds).strftime(_DATE_FMT)
            candidate = self.path.parent / f"{self.path.stem}-{date}{nanos:09d}"
            if self.path.suffix:
                candidate = candidate.with_suffix(self.path.suffix)
            if not candidate.exists():
                return candidate
            stamp += 1

    def _backup_files(self) -> None:
        if self.path.name:
            shutil.copyfile(self.path, self._backup_path())
        files = self.mapped_files()
        if self.num is not None and self.num <= len(files):
            for path in files[self.num:]:
                path.unlink()