import pytest

from .base85 import (
    ALPHABET,
    decode_base85,
    decode_base85_lines,
    encode_base85,
    encode_base85_lines,
    length_prefix,
    parse_length_prefix,
)
from .exceptions import Base85Error

# zlib stream git writes for an empty literal
EMPTY_DEFLATE = bytes.fromhex("7801030000000001")


def test_alphabet_order():
    """Test the alphabet matches git's symbol order"""
    assert len(ALPHABET) == 85
    assert len(set(ALPHABET)) == 85
    assert ALPHABET.startswith("0123456789ABC")
    assert ALPHABET.endswith("`{|}~")
    for value in range(85):
        assert encode_base85(value.to_bytes(4, "big")) == "0000" + ALPHABET[value]


def test_reference_vectors():
    """Test encoding against known git output"""
    assert encode_base85(EMPTY_DEFLATE) == "cmV?d00001"
    assert encode_base85_lines(EMPTY_DEFLATE) == "HcmV?d00001\n"
    assert encode_base85(b"\0\0\0\0") == "00000"
    assert encode_base85(b"\xff\xff\xff\xff") == "|NsC0"


def test_empty_input():
    assert encode_base85(b"") == ""
    assert encode_base85_lines(b"") == ""
    assert decode_base85_lines("") == b""


def test_short_group_is_padded():
    """Test a short final group still takes five symbols"""
    encoded = encode_base85(b"\x01")
    assert len(encoded) == 5
    assert decode_base85(encoded, 1) == b"\x01"


def test_round_trip_full_byte_range():
    """Test every prefix of 0..255..0 survives encode and decode"""
    data = bytes(range(256)) + bytes(reversed(range(256)))
    for length in range(len(data) + 1):
        chunk = data[:length]
        assert decode_base85_lines(encode_base85_lines(chunk)) == chunk


def test_line_framing():
    """Test lines carry 52 bytes and a length character"""
    data = bytes(range(256)) + bytes(reversed(range(256)))
    lines = encode_base85_lines(data).splitlines()

    # 512 bytes: nine full lines and one of 44 bytes
    assert len(lines) == 10
    assert all(line[0] == "z" and len(line) == 66 for line in lines[:9])
    assert lines[9][0] == "r"
    assert len(lines[9]) == 1 + 55


def test_crlf_line_endings():
    data = bytes(range(100))
    encoded = encode_base85_lines(data, eol="\r\n")
    assert encoded.count("\r\n") == 2
    assert decode_base85_lines(encoded) == data


def test_length_prefix():
    assert length_prefix(1) == "A"
    assert length_prefix(26) == "Z"
    assert length_prefix(27) == "a"
    assert length_prefix(52) == "z"
    for length in range(1, 53):
        assert parse_length_prefix(length_prefix(length)) == length


def test_length_prefix_out_of_range():
    with pytest.raises(Base85Error):
        length_prefix(0)
    with pytest.raises(Base85Error):
        length_prefix(53)
    with pytest.raises(Base85Error):
        parse_length_prefix("1")


def test_decode_errors():
    """Test malformed base85 input is rejected"""
    # Not a multiple of five symbols
    with pytest.raises(Base85Error):
        decode_base85("abc", 2)

    # Symbol outside the alphabet
    with pytest.raises(Base85Error):
        decode_base85('"""""', 4)
    with pytest.raises(Base85Error):
        decode_base85("0000é", 4)

    # Group value above 2**32 - 1
    with pytest.raises(Base85Error):
        decode_base85("~~~~~", 4)

    # Declared length does not fit the symbols
    with pytest.raises(Base85Error):
        decode_base85("00000", 5)
    with pytest.raises(Base85Error):
        decode_base85("0000000000", 4)


def test_decode_line_with_wrong_symbol_count():
    with pytest.raises(Base85Error):
        decode_base85_lines(["A000000"])
    with pytest.raises(Base85Error):
        decode_base85_lines(["E00000"])
