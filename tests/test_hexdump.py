import pytest

from ltntools.hexdump import hexdump


def test_single_partial_row():
    assert hexdump(b"\x00\xff", 16) == "00 ff \n"


def test_row_breaks():
    assert hexdump(bytes(4), 2) == "00 00\n00 00\n\n"


def test_empty_buffer():
    assert hexdump(b"") == "\n"


@pytest.mark.parametrize("per_row", [1, 7, 16])
def test_round_trip(per_row):
    data = bytes(range(256))
    text = hexdump(data, per_row)
    assert bytes.fromhex(text.replace("\n", " ")) == data
    assert text.count("\n") == len(data) // per_row + 1


def test_invalid_row_width():
    with pytest.raises(ValueError):
        hexdump(b"\x00", 0)