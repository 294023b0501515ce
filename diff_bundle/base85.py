"""
Base85 codec used by git binary patches.

git's ``base85.c`` shares its alphabet and grouping with
``base64.b85encode``: every four input bytes become five symbols, and a
short final group is zero-padded but still written as five symbols. Binary
patch bodies add a line framing on top: at most 52 source bytes per line,
each line prefixed with one character giving its byte count (``A``-``Z``
for 1-26, ``a``-``z`` for 27-52).
"""

import base64
from typing import Iterable, List, Union

from .config import BASE85_LINE_BYTES
from .exceptions import Base85Error

ALPHABET = (
    "0123456789"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "!#$%&()*+-;<=>?@^_`{|}~"
)


def encode_base85(data: bytes) -> str:
    """Encode raw bytes into base85 symbols without any line framing."""
    return base64.b85encode(data, pad=True).decode("ascii")


def decode_base85(text: str, length: int) -> bytes:
    """Decode base85 symbols and truncate the result to ``length`` bytes."""
    if len(text) % 5:
        raise Base85Error(
            f"base85 text length {len(text)} is not a multiple of 5",
            {"text": text},
        )
    capacity = len(text) // 5 * 4
    if length < 0 or length > capacity or capacity - length >= 4:
        raise Base85Error(
            f"declared length {length} does not match {len(text)} base85 symbols",
            {"text": text, "length": length},
        )

    try:
        decoded = base64.b85decode(text)
    except ValueError as e:
        raise Base85Error(f"invalid base85 text: {e}", {"text": text}) from e
    return decoded[:length]


def length_prefix(length: int) -> str:
    """Return the character that announces a line's byte count."""
    if length < 1 or length > BASE85_LINE_BYTES:
        raise Base85Error(f"cannot frame a base85 line of {length} bytes")
    if length <= 26:
        return chr(ord("A") + length - 1)
    return chr(ord("a") + length - 27)


def parse_length_prefix(char: str) -> int:
    if "A" <= char <= "Z":
        return ord(char) - ord("A") + 1
    if "a" <= char <= "z":
        return ord(char) - ord("a") + 27
    raise Base85Error(f"invalid base85 line length character {char!r}")


def encode_base85_lines(data: bytes, eol: str = "\n") -> str:
    """Encode bytes into length-prefixed base85 lines of 52 source bytes each."""
    lines = []
    for pos in range(0, len(data), BASE85_LINE_BYTES):
        chunk = data[pos:pos + BASE85_LINE_BYTES]
        lines.append(length_prefix(len(chunk)) + encode_base85(chunk) + eol)
    return "".join(lines)


def decode_base85_lines(lines: Union[str, Iterable[str]]) -> bytes:
    """Decode length-prefixed base85 lines back into bytes."""
    if isinstance(lines, str):
        lines = lines.splitlines()

    out: List[bytes] = []
    for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            continue
        length = parse_length_prefix(line[0])
        body = line[1:]
        expected = (length + 3) // 4 * 5
        if len(body) != expected:
            raise Base85Error(
                f"base85 line announces {length} bytes but carries {len(body)} symbols",
                {"line": line},
            )
        out.append(decode_base85(body, length))
    return b"".join(out)
