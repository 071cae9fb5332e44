from pathlib import Path

import pytest

from dnsinfra.paths import append_extension


def test_append_extension():
    n = append_extension(Path("hhh/abc"), "tar")
    assert n == Path("hhh/abc.tar")
    n = append_extension(n, "gz")
    assert n == Path("hhh/abc.tar.gz")


def test_append_extension_accepts_text():
    assert append_extension("conf/smartdns.conf", "bak") == Path("conf/smartdns.conf.bak")


def test_append_to_dotfile():
    assert append_extension(Path(".bashrc"), "bak") == Path(".bashrc.bak")


def test_empty_extension_without_existing_extension_is_noop():
    assert append_extension(Path("dir/abc"), "") == Path("dir/abc")


def test_no_file_name_raises():
    with pytest.raises(ValueError):
        append_extension(Path(""), "bak")
    with pytest.raises(ValueError):
        append_extension(Path("a/.."), "bak")