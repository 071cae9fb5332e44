"""Logging setup: a compact line format, file rollover and target filters."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from datetime import datetime

from dnsinfra.mapped_file import MappedFile

TRACE = 5
LOG_ENV = "DNSINFRA_LOG"
_OFF = logging.CRITICAL + 10
_DEFAULT_SPEC = "named={level},dnsinfra={level},{env}"

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": _OFF,
}

_logger = logging.getLogger(__name__)


def _parse_level(text: str) -> int:
    try:
        return _LEVELS[text.strip().lower()]
    except KeyError:
        raise ValueError(f"invalid log level: {text!r}") from None


def _to_level(level: int | str) -> int:
    return _parse_level(level) if isinstance(level, str) else int(level)


def _level_name(level: int | str) -> str:
    level = _to_level(level)
    if level <= TRACE:
        return "TRACE"
    if level <= logging.DEBUG:
        return "DEBUG"
    if level <= logging.INFO:
        return "INFO"
    if level <= logging.WARNING:
        return "WARN"
    if level < _OFF:
        return "ERROR"
    return "OFF"


class TdnsFormatter(logging.Formatter):
    """``date.ms:LEVEL[:target:line]: message``; INFO lines omit the target."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created)
        msecs = int(record.created * 1000) % 1000
        level = _level_name(record.levelno)
        line = f"{created:%Y-%m-%d %H:%M:%S}.{msecs}:{level}"
        if level != "INFO":
            line += f":{record.name}:{record.lineno}"
        line += f": {record.getMessage()}"
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            line += "\n" + record.exc_text
        if record.stack_info:
            line += "\n" + self.formatStack(record.stack_info)
        return line


class MappedFileHandler(logging.Handler):
    """Writes formatted records to a rolling MappedFile."""

    def __init__(self, mapped_file: MappedFile) -> None:
        super().__init__()
        self.mapped_file = mapped_file

    def emit(self, record: logging.LogRecord) -> None:
        try:
            data = (self.format(record) + "\n").encode("utf-8")
            self.mapped_file.write(data)
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self.acquire()
        try:
            self.mapped_file.flush()
        finally:
            self.release()

    def close(self) -> None:
        self.acquire()
        try:
            self.mapped_file.close()
        finally:
            self.release()
        super().close()


class _DirectiveFilter(logging.Filter):
    def __init__(self, default: int, directives: dict[str, int]) -> None:
        super().__init__()
        self.default = default
        self.directives = directives

    def level_for(self, name: str) -> int:
        best, best_len = self.default, -1
        for target, level in self.directives.items():
            if (name == target or name.startswith(target + ".")) and len(target) > best_len:
                best, best_len = level, len(target)
        return best

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.level_for(record.name)


class _LogGuard:
    def __init__(self, handlers: list[logging.Handler], previous_level: int) -> None:
        self.handlers = handlers
        self._previous_level = previous_level

    def close(self) -> None:
        root = logging.getLogger()
        for handler in self.handlers:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(self._previous_level)
        self.handlers = []

    def __enter__(self) -> _LogGuard:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def console_level(argv: Sequence[str] | None = None) -> int:
    """DEBUG when ``-d`` or ``--debug`` is among the arguments, else INFO."""
    args = sys.argv if argv is None else argv
    return logging.DEBUG if any(arg in ("-d", "--debug") for arg in args) else logging.INFO


def all_smart_dns(level: int | str, filter_spec: str | None = None, env: str | None = None) -> str:
    """Expand ``{level}`` and ``{env}`` in a filter spec (or the default one)."""
    if env is None:
        env = os.environ.get(LOG_ENV, "")
    spec = filter_spec if filter_spec is not None else _DEFAULT_SPEC
    return spec.replace("{level}", _level_name(level)).replace("{env}", env)


def apply_filter(spec: str) -> logging.Filter:
    """Build a filter from ``target=level`` directives; unmatched loggers need WARN."""
    default = logging.WARNING
    directives: dict[str, int] = {}
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        target, sep, level = part.partition("=")
        if sep:
            target = target.strip()
            if not target:
                raise ValueError(f"invalid filter directive: {part!r}")
            directives[target] = _parse_level(level)
        elif part.lower() in _LEVELS:
            default = _LEVELS[part.lower()]
        else:
            directives[part] = TRACE
    return _DirectiveFilter(default, directives)


def _install(handlers: list[logging.Handler]) -> _LogGuard:
    root = logging.getLogger()
    previous = root.level
    root.setLevel(TRACE)
    for handler in handlers:
        root.addHandler(handler)
    return _LogGuard(handlers, previous)


def _console_handler(level: int, log_filter: logging.Filter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(TdnsFormatter())
    handler.addFilter(log_filter)
    return handler


def init_global_default(
    path: str | os.PathLike[str],
    level: int | str,
    filter_spec: str | None = None,
    size: int = 128 * 1024,
    num: int = 2,
    mode: int | None = None,
) -> _LogGuard:
    """Log to a rolling file and the console; falls back to the console alone."""
    level = _to_level(level)
    mapped = MappedFile(path, size, num, mode)
    try:
        mapped.touch()
        writable = True
    except OSError as err:
        _logger.warning("%r, %r", str(path), err)
        writable = False

    console = console_level()
    if not writable:
        log_filter = apply_filter(all_smart_dns(console, filter_spec))
        return _install([_console_handler(console, log_filter)])

    file_handler = MappedFileHandler(mapped)
    file_handler.setLevel(level)
    file_handler.setFormatter(TdnsFormatter())

    hello_filter = apply_filter(all_smart_dns(level, filter_spec))
    file_handler.addFilter(hello_filter)
    file_handler.handle(
        logging.LogRecord("dnsinfra", logging.INFO, __file__, 0, "dnsinfra starting", None, None)
    )
    file_handler.removeFilter(hello_filter)

    log_filter = apply_filter(all_smart_dns(min(level, console), filter_spec))
    file_handler.addFilter(log_filter)
    return _install([file_handler, _console_handler(console, log_filter)])


def default() -> _LogGuard:
    """Log to the console only, at the console level."""
    console = console_level()
    return _install([_console_handler(console, apply_filter(all_smart_dns(console)))])