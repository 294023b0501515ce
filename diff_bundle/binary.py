"""
Payload handling for ``GIT binary patch`` sections.

A binary section carries a forward block (new content) and a reverse block
(old content). Each block is either a ``literal`` (zlib-deflated file
content) or a ``delta`` (zlib-deflated git delta against the other side),
framed as base85 lines.
"""

import hashlib
import zlib
from typing import Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .base85 import decode_base85_lines, encode_base85_lines
from .config import NULL_SHA1
from .exceptions import Base85Error, ParseError

LITERAL = "literal"
DELTA = "delta"

# Matches the deflate level git itself uses for binary patches
COMPRESSION_LEVEL = zlib.Z_BEST_SPEED


class BinaryBlock(BaseModel):
    """One decoded block of a binary patch, still possibly a delta"""

    model_config = ConfigDict(frozen=True)

    method: str
    size: int
    payload: bytes


def git_blob_sha1(data: Optional[bytes]) -> str:
    """Object name git assigns to a blob with this content; zeros when absent."""
    if data is None:
        return NULL_SHA1
    header = b"blob %d\0" % len(data)
    return hashlib.sha1(header + data).hexdigest()


def encode_literal(data: bytes, eol: str = "\n") -> str:
    """Render a ``literal`` block body for ``data``."""
    return encode_base85_lines(zlib.compress(data, COMPRESSION_LEVEL), eol)


def decode_block(method: str, size: int, lines: Iterable[str]) -> BinaryBlock:
    """Inflate the base85 lines of one block and check its announced size."""
    try:
        deflated = decode_base85_lines(list(lines))
    except Base85Error as e:
        raise ParseError(f"Corrupt binary patch data: {e.message}") from e
    try:
        payload = zlib.decompress(deflated)
    except zlib.error as e:
        raise ParseError(f"Binary patch data does not inflate: {e}") from e
    if len(payload) != size:
        raise ParseError(
            f"Binary {method} announces {size} bytes but inflates to {len(payload)}"
        )
    return BinaryBlock(method=method, size=size, payload=payload)


def _read_varint(delta: bytes, pos: int) -> Tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if pos >= len(delta):
            raise ParseError("Truncated size header in binary delta")
        byte = delta[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return value, pos


def apply_delta(base: bytes, delta: bytes) -> bytes:
    """Apply a git binary delta to ``base``."""
    src_size, pos = _read_varint(delta, 0)
    dst_size, pos = _read_varint(delta, pos)
    if src_size != len(base):
        raise ParseError(
            f"Binary delta expects a {src_size} byte base, got {len(base)} bytes"
        )

    out = bytearray()
    while pos < len(delta):
        cmd = delta[pos]
        pos += 1
        if cmd & 0x80:
            # copy from base: offset and size bytes are flagged by the low bits
            offset = 0
            for i in range(4):
                if cmd & (1 << i):
                    offset |= delta[pos] << (8 * i)
                    pos += 1
            size = 0
            for i in range(3):
                if cmd & (0x10 << i):
                    size |= delta[pos] << (8 * i)
                    pos += 1
            if size == 0:
                size = 0x10000
            if offset + size > len(base):
                raise ParseError("Binary delta copies beyond the end of its base")
            out += base[offset:offset + size]
        elif cmd:
            if pos + cmd > len(delta):
                raise ParseError("Truncated insert in binary delta")
            out += delta[pos:pos + cmd]
            pos += cmd
        else:
            raise ParseError("Unexpected zero opcode in binary delta")

    if len(out) != dst_size:
        raise ParseError(
            f"Binary delta produced {len(out)} bytes, expected {dst_size}"
        )
    return bytes(out)


def resolve_blocks(
    forward: BinaryBlock,
    reverse: Optional[BinaryBlock],
    old_base: Optional[bytes] = None,
) -> Tuple[Optional[bytes], bytes]:
    """
    Turn the forward and reverse blocks of a binary patch into file contents.

    Args:
        forward: The block producing the new content
        reverse: The block producing the old content, if the patch has one
        old_base: Preimage obtained elsewhere, used when both blocks are deltas

    Returns:
        A tuple of (old content or None, new content)
    """
    old = None
    if reverse is not None and reverse.method == LITERAL:
        old = reverse.payload
    elif old_base is not None:
        old = old_base

    if forward.method == LITERAL:
        new = forward.payload
    elif old is not None:
        new = apply_delta(old, forward.payload)
    else:
        raise ParseError("Binary delta has no base to apply against")

    if old is None and reverse is not None:
        old = apply_delta(new, reverse.payload)

    return old, new
