"""
Git's C-style path quoting, as used in ``diff --git`` headers.
"""

from typing import Tuple

from .exceptions import ParseError

_UNESCAPES = {
    "a": b"\a",
    "b": b"\b",
    "t": b"\t",
    "n": b"\n",
    "v": b"\v",
    "f": b"\f",
    "r": b"\r",
    '"': b'"',
    "\\": b"\\",
}

_ESCAPES = {ord(v): k for k, v in _UNESCAPES.items()}


def needs_quoting(path: str) -> bool:
    return any(ch in '"\\' or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in path)


def quote_git_path(path: str) -> str:
    """Quote ``path`` the way git does when it contains special characters"""
    if not needs_quoting(path):
        return path
    # Non-ASCII characters are written as-is
    out = ['"']
    for ch in path:
        code = ord(ch)
        if code in _ESCAPES:
            out.append("\\" + _ESCAPES[code])
        elif code < 0x20 or code == 0x7F:
            out.append(f"\\{code:03o}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def unquote_git_path(text: str) -> Tuple[str, str]:
    """
    Read one quoted path from the start of ``text``.

    Returns:
        A tuple of (path, remaining text after the closing quote)
    """
    if not text.startswith('"'):
        raise ParseError(f"Expected a quoted path: {text!r}")
    out = bytearray()
    pos = 1
    while pos < len(text):
        ch = text[pos]
        if ch == '"':
            return out.decode("utf-8", "surrogateescape"), text[pos + 1:]
        if ch == "\\":
            pos += 1
            if pos >= len(text):
                break
            esc = text[pos]
            if esc in _UNESCAPES:
                out += _UNESCAPES[esc]
                pos += 1
            elif esc in "01234567":
                digits = text[pos:pos + 3]
                if len(digits) != 3 or any(d not in "01234567" for d in digits):
                    raise ParseError(f"Bad octal escape in quoted path: {text!r}")
                out.append(int(digits, 8))
                pos += 3
            else:
                raise ParseError(f"Unknown escape \\{esc} in quoted path: {text!r}")
            continue
        out += ch.encode("utf-8", "surrogateescape")
        pos += 1
    raise ParseError(f"Unterminated quoted path: {text!r}")
