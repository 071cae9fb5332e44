import pytest

from dnsinfra.file_mode import FileMode


@pytest.mark.parametrize("text", ["644", "0644", "o644", "0o644"])
def test_parse(text):
    assert FileMode.parse(text) == 0o644


def test_debug_display():
    assert repr(FileMode.parse("644")) == "0o644"


def test_int_conversion():
    assert int(FileMode.parse(" 755 ")) == 0o755


def test_equality_between_modes():
    assert FileMode.parse("0o600") == FileMode(0o600)
    assert not (FileMode.parse("600") == FileMode(0o644))


def test_usable_as_index():
    assert oct(FileMode(0o640)) == "0o640"


@pytest.mark.parametrize("text", ["", "8", "abc", "0o", "64 4"])
def test_parse_invalid(text):
    with pytest.raises(ValueError):
        FileMode.parse(text)


def test_parse_out_of_range():
    with pytest.raises(ValueError):
        FileMode.parse("77777777777")