import logging
import sys

import pytest

from dnsinfra.log import (
    MappedFileHandler,
    TdnsFormatter,
    all_smart_dns,
    apply_filter,
    console_level,
    default,
    init_global_default,
)
from dnsinfra.mapped_file import MappedFile


def _record(name, level, msg, args=None, lineno=42):
    record = logging.LogRecord(name, level, "mod.py", lineno, msg, args, None)
    record.created = 1_700_000_000.0625
    return record


def test_info_format_omits_target():
    line = TdnsFormatter().format(_record("dnsinfra.x", logging.INFO, "hello %s", ("world",)))
    assert line.endswith(".62:INFO: hello world")
    assert "dnsinfra.x" not in line


def test_warn_format_has_target_and_line():
    line = TdnsFormatter().format(_record("dnsinfra.x", logging.WARNING, "careful"))
    assert line.endswith(".62:WARN:dnsinfra.x:42: careful")


def test_console_level_from_arguments():
    assert console_level(["prog", "-d"]) == logging.DEBUG
    assert console_level(["prog", "--debug"]) == logging.DEBUG
    assert console_level(["prog", "run"]) == logging.INFO


def test_all_smart_dns_custom_spec():
    assert all_smart_dns("debug", "a={level},{env}", "b=warn") == "a=DEBUG,b=warn"


def test_default_spec_round_trips_through_filter():
    log_filter = apply_filter(all_smart_dns(logging.INFO, None, ""))
    assert log_filter.filter(_record("dnsinfra.mod", logging.INFO, "m"))
    assert not log_filter.filter(_record("dnsinfra.mod", logging.DEBUG, "m"))
    assert log_filter.filter(_record("named", logging.INFO, "m"))


def test_filter_default_is_warn():
    log_filter = apply_filter("")
    assert not log_filter.filter(_record("other", logging.INFO, "m"))
    assert log_filter.filter(_record("other", logging.WARNING, "m"))


def test_filter_most_specific_target_wins():
    log_filter = apply_filter("a=error,a.b=debug")
    assert log_filter.filter(_record("a.b.c", logging.DEBUG, "m"))
    assert not log_filter.filter(_record("a.x", logging.WARNING, "m"))
    assert not log_filter.filter(_record("ab", logging.DEBUG, "m"))


def test_filter_bare_level_and_off():
    assert apply_filter("debug").filter(_record("any", logging.DEBUG, "m"))
    assert not apply_filter("x=off").filter(_record("x", logging.ERROR, "m"))


def test_filter_rejects_bad_level():
    with pytest.raises(ValueError):
        apply_filter("a=loud")


def test_mapped_file_handler_writes_lines(tmp_path):
    path = tmp_path / "dns.log"
    handler = MappedFileHandler(MappedFile(path, 10_000, 2, None))
    handler.setFormatter(TdnsFormatter())
    handler.handle(_record("dnsinfra", logging.INFO, "first"))
    handler.handle(_record("dnsinfra", logging.INFO, "second"))
    handler.close()
    lines = path.read_text().splitlines()
    assert [line.rsplit(": ", 1)[1] for line in lines] == ["first", "second"]


def test_init_global_default_writes_file(tmp_path):
    path = tmp_path / "logs" / "dns.log"
    root = logging.getLogger()
    before = list(root.handlers)
    guard = init_global_default(path, logging.INFO, None, 1024 * 1024, 2, None)
    try:
        assert len(guard.handlers) == 2
        logging.getLogger("dnsinfra.test").info("served")
    finally:
        guard.close()
    assert root.handlers == before
    text = path.read_text()
    assert "starting" in text
    assert "served" in text


def test_init_global_default_falls_back_to_console(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with init_global_default(blocker / "dns.log", "info", None, 1024, 2, None) as guard:
        assert len(guard.handlers) == 1
        assert isinstance(guard.handlers[0], logging.StreamHandler)


def test_default_uses_console_level():
    with default() as guard:
        assert len(guard.handlers) == 1
        assert guard.handlers[0].level == console_level(sys.argv)