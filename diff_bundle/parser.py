import re
from typing import Callable, Dict, List, Optional, Tuple

from .binary import DELTA, BinaryBlock, decode_block, resolve_blocks
from .config import EMPTY_BLOB_SHA1, FILEMODE_PROPERTY
from .exceptions import ParseError
from .logging_utils import get_logger
from .models import Change, ChangeType, FileType, Hunk, HunkLine, LineType
from .paths import unquote_git_path

logger = get_logger("parser")

BlobLoader = Callable[[str], bytes]

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_INDEX_RE = re.compile(r"^index ([0-9a-fA-F]+)\.\.([0-9a-fA-F]+)(?: (\d+))?$")
_BINARY_BLOCK_RE = re.compile(r"^(literal|delta) (\d+)$")
_BINARY_DIFFER_RE = re.compile(r"^Binary files (.+) and (.+) differ$")
_DATE_SUFFIX_RE = re.compile(r"^(.*?)\s+\d{4}-\d{2}-\d{2}(?:[ T].*)?$")
_SVN_SUFFIX_RE = re.compile(r"^(.*?)\s+\((?:revision \d+|working copy|nonexistent)\)$")

_LINE_TYPES = {
    " ": LineType.CONTEXT,
    "-": LineType.DELETION,
    "+": LineType.ADDITION,
}

DEV_NULL = "/dev/null"


class _Cursor:
    """Line cursor over diff text; line numbers are 1-based"""

    def __init__(self, text: str):
        self.lines = text.split("\n")
        if self.lines and self.lines[-1] == "":
            self.lines.pop()
        self.pos = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.lines)

    @property
    def line_number(self) -> int:
        return self.pos + 1

    def peek(self, offset: int = 0) -> Optional[str]:
        index = self.pos + offset
        if index < len(self.lines):
            return self.lines[index]
        return None

    def next(self) -> str:
        line = self.lines[self.pos]
        self.pos += 1
        return line


class DiffParser:
    """Parser for converting unified diff text into section-level changes"""

    def __init__(self, blob_loader: Optional[BlobLoader] = None):
        """Initialize the parser; ``blob_loader`` resolves object names to content"""
        self.blob_loader = blob_loader

    def parse_diff(self, diff_text: str) -> List[Change]:
        """
        Parse diff text into one Change per file section, in input order.

        Kinds are only what a section says about itself: add, delete,
        modify, copy-here or move-here. Sources of copies and moves are
        resolved by the classifier.
        """
        cursor = _Cursor(diff_text)
        changes = []

        # Skip any preamble, e.g. a mail header from format-patch
        while not cursor.at_end and not self._is_section_start(cursor):
            cursor.next()
        if cursor.at_end:
            if diff_text.strip():
                raise ParseError("No file sections found in diff text")
            return changes

        while not cursor.at_end:
            line = cursor.peek().rstrip("\r")
            if not line.strip():
                cursor.next()
                continue
            if line == "-- ":
                # format-patch signature
                break
            if line.startswith("diff --git "):
                changes.append(self._parse_git_section(cursor))
            elif line.startswith("Index: "):
                changes.append(self._parse_index_section(cursor))
            elif self._is_unified_start(cursor):
                changes.append(self._parse_unified_section(cursor))
            elif line.startswith("diff ") and self._is_unified_start(cursor, 1):
                # "diff -ruN a b" line from plain diff
                cursor.next()
            else:
                raise ParseError(f"Unexpected line between file sections: {line!r}", cursor.line_number)

        logger.debug(f"Parsed {len(changes)} file sections")
        return changes

    def _is_section_start(self, cursor: _Cursor) -> bool:
        line = cursor.peek()
        return (
            line.startswith("diff --git ")
            or line.startswith("Index: ")
            or self._is_unified_start(cursor)
        )

    @staticmethod
    def _is_unified_start(cursor: _Cursor, offset: int = 0) -> bool:
        line = cursor.peek(offset)
        following = cursor.peek(offset + 1)
        return (
            line is not None
            and following is not None
            and line.startswith("--- ")
            and following.startswith("+++ ")
        )

    def _parse_git_section(self, cursor: _Cursor) -> Change:
        """Parse one ``diff --git`` section with its extended headers and body"""
        header_line = cursor.line_number
        header = cursor.next().rstrip("\r")
        old_path, new_path = _split_git_header(header[len("diff --git "):])

        kind = ChangeType.MODIFY
        old_properties: Dict[str, str] = {}
        new_properties: Dict[str, str] = {}
        index_hashes: Optional[Tuple[str, str]] = None
        index_mode = None

        while not cursor.at_end:
            line = cursor.peek().rstrip("\r")
            if line.startswith("old mode "):
                old_properties[FILEMODE_PROPERTY] = line[len("old mode "):]
            elif line.startswith("new mode "):
                new_properties[FILEMODE_PROPERTY] = line[len("new mode "):]
            elif line.startswith("new file mode "):
                kind = ChangeType.ADD
                new_properties[FILEMODE_PROPERTY] = line[len("new file mode "):]
            elif line.startswith("deleted file mode "):
                kind = ChangeType.DELETE
                old_properties[FILEMODE_PROPERTY] = line[len("deleted file mode "):]
            elif line.startswith("copy from "):
                kind = ChangeType.COPY_HERE
                old_path = _parse_header_path(line[len("copy from "):])
            elif line.startswith("copy to "):
                new_path = _parse_header_path(line[len("copy to "):])
            elif line.startswith("rename from "):
                kind = ChangeType.MOVE_HERE
                old_path = _parse_header_path(line[len("rename from "):])
            elif line.startswith("rename to "):
                new_path = _parse_header_path(line[len("rename to "):])
            elif line.startswith(("similarity index ", "dissimilarity index ")):
                pass
            elif line.startswith("index "):
                match = _INDEX_RE.match(line)
                if not match:
                    raise ParseError(f"Malformed index line {line!r}", cursor.line_number)
                index_hashes = (match.group(1), match.group(2))
                index_mode = match.group(3)
            else:
                break
            cursor.next()

        if index_mode and not old_properties and not new_properties:
            # Mode shown on the index line is unchanged on both sides
            old_properties[FILEMODE_PROPERTY] = index_mode
            new_properties[FILEMODE_PROPERTY] = index_mode

        hunks: List[Hunk] = []
        file_type = FileType.TEXT
        old_data = new_data = None
        line = cursor.peek()
        line = line.rstrip("\r") if line is not None else None

        if line is not None and self._is_unified_start(cursor):
            old_target, new_target = self._read_targets(cursor)
            if old_path is None and new_path is None:
                old_path = old_target or new_target
                new_path = new_target or old_target
            hunks = self._parse_hunks(cursor, new_path or old_path)
            if not hunks:
                raise ParseError(f"No hunks after ---/+++ lines in {header!r}", header_line)
        elif line == "GIT binary patch":
            cursor.next()
            file_type = FileType.BINARY
            old_data, new_data = self._parse_binary_patch(cursor, new_path or old_path, kind, index_hashes)
        elif line is not None and _BINARY_DIFFER_RE.match(line):
            cursor.next()
            file_type = FileType.BINARY
            old_data, new_data = self._load_binary_sides(new_path or old_path, kind, index_hashes)
        elif index_hashes is not None and _announces_content(*index_hashes):
            raise ParseError(f"Missing content after the index line of {header!r}", header_line)

        if old_path is None and new_path is None:
            raise ParseError(f"Unable to determine paths from {header!r}", header_line)

        if kind == ChangeType.ADD:
            old_path, new_path = None, new_path or old_path
            old_data = None
        elif kind == ChangeType.DELETE:
            old_path, new_path = old_path or new_path, None
            new_data = None
        elif kind == ChangeType.MODIFY:
            old_path = new_path = new_path or old_path
        elif old_path is None or new_path is None:
            raise ParseError(f"Copy or rename without both paths in {header!r}", header_line)

        return Change(
            old_path=old_path,
            new_path=new_path,
            kind=kind,
            file_type=file_type,
            old_properties=old_properties,
            new_properties=new_properties,
            old_data=old_data,
            new_data=new_data,
            hunks=hunks,
        )

    def _parse_index_section(self, cursor: _Cursor) -> Change:
        """Parse an ``Index:`` section, as written by svn or by ``Bundle.to_unified_diff``"""
        index_path = cursor.next().rstrip("\r")[len("Index: "):]
        if not cursor.at_end and cursor.peek().startswith("==="):
            cursor.next()
        if not self._is_unified_start(cursor):
            raise ParseError(f"Missing ---/+++ lines after Index: {index_path}", cursor.line_number)
        return self._parse_unified_section(cursor, index_path)

    def _parse_unified_section(self, cursor: _Cursor, index_path: Optional[str] = None) -> Change:
        """Parse a plain ``---``/``+++`` section"""
        old_path, new_path = self._read_targets(cursor)
        if old_path is None and new_path is None:
            raise ParseError("Both sides of a section are /dev/null", cursor.line_number)

        if old_path is None:
            kind = ChangeType.ADD
            new_path = index_path or new_path
        elif new_path is None:
            kind = ChangeType.DELETE
            old_path = index_path or old_path
        else:
            kind = ChangeType.MODIFY
            old_path = new_path = index_path or new_path

        hunks = self._parse_hunks(cursor, new_path or old_path)
        if not hunks:
            raise ParseError(f"No hunks in section for {new_path or old_path}", cursor.line_number)

        # svn names both sides even for added or deleted files
        if kind == ChangeType.MODIFY and len(hunks) == 1:
            if hunks[0].old_start == 0 and hunks[0].old_length == 0:
                kind, old_path = ChangeType.ADD, None
            elif hunks[0].new_start == 0 and hunks[0].new_length == 0:
                kind, new_path = ChangeType.DELETE, None
        return Change(old_path=old_path, new_path=new_path, kind=kind, hunks=hunks)

    def _read_targets(self, cursor: _Cursor) -> Tuple[Optional[str], Optional[str]]:
        """Consume the ``---`` and ``+++`` lines and return both paths"""
        old_target = _parse_target(cursor.next().rstrip("\r")[4:])
        new_target = _parse_target(cursor.next().rstrip("\r")[4:])
        return _strip_prefixes(old_target, new_target)

    def _parse_hunks(self, cursor: _Cursor, path: str) -> List[Hunk]:
        """Parse consecutive hunks of a single file"""
        hunks = []
        while not cursor.at_end and cursor.peek().startswith("@@ "):
            hunk = self._parse_hunk(cursor, path)
            if hunks and hunk.old_start < hunks[-1].old_start + hunks[-1].old_length:
                raise ParseError(f"Overlapping hunk {hunk.header} in {path}", cursor.line_number)
            hunks.append(hunk)
        return hunks

    def _parse_hunk(self, cursor: _Cursor, path: str) -> Hunk:
        header_line = cursor.line_number
        header = cursor.next().rstrip("\r")
        match = _HUNK_RE.match(header)
        if not match:
            raise ParseError(f"Malformed hunk header {header!r} in {path}", header_line)

        old_start = int(match.group(1))
        old_length = int(match.group(2)) if match.group(2) is not None else 1
        new_start = int(match.group(3))
        new_length = int(match.group(4)) if match.group(4) is not None else 1

        old_left, new_left = old_length, new_length
        lines: List[HunkLine] = []
        flags = {"old": False, "new": False}

        while old_left > 0 or new_left > 0:
            if cursor.at_end:
                raise ParseError(f"Truncated hunk {header} in {path}", cursor.line_number)
            raw = cursor.next()
            if raw == "":
                # Some tools strip the space from empty context lines
                raw = " "
            marker, content = raw[0], raw[1:]
            if marker == "\\":
                self._mark_no_newline(lines, flags, header, path, cursor.line_number - 1)
                continue
            line_type = _LINE_TYPES.get(marker)
            if line_type is None:
                raise ParseError(f"Unexpected line {raw!r} in hunk {header} of {path}", cursor.line_number - 1)
            if line_type != LineType.ADDITION:
                old_left -= 1
            if line_type != LineType.DELETION:
                new_left -= 1
            if old_left < 0 or new_left < 0:
                raise ParseError(f"Hunk {header} in {path} is longer than its header says", cursor.line_number - 1)
            lines.append(HunkLine(line_type=line_type, content=content))

        if not cursor.at_end and cursor.peek().startswith("\\"):
            cursor.next()
            self._mark_no_newline(lines, flags, header, path, cursor.line_number - 1)

        return Hunk(
            old_start=old_start,
            old_length=old_length,
            new_start=new_start,
            new_length=new_length,
            lines=lines,
            old_no_newline=flags["old"],
            new_no_newline=flags["new"],
        )

    @staticmethod
    def _mark_no_newline(lines: List[HunkLine], flags: Dict[str, bool], header: str, path: str, line_number: int):
        """Attach a ``\\ No newline at end of file`` marker to the previous line"""
        if not lines:
            raise ParseError(f"Newline marker before any line in hunk {header} of {path}", line_number)
        previous = lines[-1].line_type
        if previous != LineType.ADDITION:
            flags["old"] = True
        if previous != LineType.DELETION:
            flags["new"] = True

    def _parse_binary_patch(
        self,
        cursor: _Cursor,
        path: str,
        kind: ChangeType,
        index_hashes: Optional[Tuple[str, str]],
    ) -> Tuple[Optional[bytes], Optional[bytes]]:
        """Decode the forward and reverse blocks of a ``GIT binary patch``"""
        forward = self._parse_binary_block(cursor, path)
        reverse = None
        if not cursor.at_end and _BINARY_BLOCK_RE.match(cursor.peek().rstrip("\r")):
            reverse = self._parse_binary_block(cursor, path)

        old_base = None
        needs_base = forward.method == DELTA and (reverse is None or reverse.method == DELTA)
        if needs_base or (reverse is None and kind != ChangeType.ADD):
            old_base = self._load_blob(index_hashes[0] if index_hashes else None, path)

        try:
            old_data, new_data = resolve_blocks(forward, reverse, old_base)
        except ParseError as e:
            raise ParseError(f"{e.message} in {path}", cursor.line_number) from e
        return old_data, new_data

    def _parse_binary_block(self, cursor: _Cursor, path: str) -> BinaryBlock:
        line_number = cursor.line_number
        if cursor.at_end:
            raise ParseError(f"Missing binary block in {path}", line_number)
        line = cursor.next().rstrip("\r")
        match = _BINARY_BLOCK_RE.match(line)
        if not match:
            raise ParseError(f"Expected literal or delta block in {path}, got {line!r}", line_number)

        data_lines = []
        while not cursor.at_end:
            data_line = cursor.next().rstrip("\r")
            if not data_line:
                break
            data_lines.append(data_line)

        try:
            return decode_block(match.group(1), int(match.group(2)), data_lines)
        except ParseError as e:
            raise ParseError(f"{e.message} in {path}", line_number) from e

    def _load_binary_sides(
        self,
        path: str,
        kind: ChangeType,
        index_hashes: Optional[Tuple[str, str]],
    ) -> Tuple[Optional[bytes], Optional[bytes]]:
        """Fetch both sides of a ``Binary files ... differ`` section"""
        if self.blob_loader is None or index_hashes is None:
            logger.warning(f"Binary content of {path} is not in the diff and cannot be loaded")
            return None, None
        old_data = None if kind == ChangeType.ADD else self._load_blob(index_hashes[0], path)
        new_data = None if kind == ChangeType.DELETE else self._load_blob(index_hashes[1], path)
        return old_data, new_data

    def _load_blob(self, object_name: Optional[str], path: str) -> Optional[bytes]:
        if not object_name or set(object_name) == {"0"}:
            return None
        if self.blob_loader is None:
            logger.warning(f"No blob loader to fetch {object_name} for {path}")
            return None
        return self.blob_loader(object_name)


def _split_git_header(text: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Split the ``a/X b/Y`` part of a ``diff --git`` header.

    Unquoted paths containing spaces are ambiguous; when the two halves
    cannot be told apart the paths are left for later headers to supply.
    """
    if text.startswith('"'):
        old, rest = unquote_git_path(text)
        rest = rest.lstrip(" ")
        new = unquote_git_path(rest)[0] if rest.startswith('"') else rest
        return _strip_prefixes(old, new)

    if text.endswith('"') and ' "' in text:
        split = text.index(' "')
        old = text[:split]
        new = unquote_git_path(text[split + 1:])[0]
        return _strip_prefixes(old, new)

    candidates = [m.start() for m in re.finditer(" ", text)]
    for split in candidates:
        old, new = text[:split], text[split + 1:]
        if old[2:] == new[2:] and old[:2] == "a/" and new[:2] == "b/":
            return old[2:], new[2:]
        if old == new:
            return old, new

    separators = [m.start() for m in re.finditer(" b/", text)]
    if len(separators) == 1 and text.startswith("a/"):
        return text[2:separators[0]], text[separators[0] + 3:]
    if len(candidates) == 1:
        return text[:candidates[0]], text[candidates[0] + 1:]
    return None, None


def _announces_content(old_hash: str, new_hash: str) -> bool:
    """Whether an ``index A..B`` line promises a body, i.e. is not an empty add or delete"""
    if old_hash.lower() == new_hash.lower():
        return False
    return not (_is_empty_object(old_hash) and _is_empty_object(new_hash))


def _is_empty_object(object_name: str) -> bool:
    return set(object_name) == {"0"} or EMPTY_BLOB_SHA1.startswith(object_name.lower())


def _parse_header_path(text: str) -> str:
    if text.startswith('"'):
        return unquote_git_path(text)[0]
    return text


def _parse_target(text: str) -> Optional[str]:
    """Read the path from a ``---``/``+++`` line, dropping timestamps"""
    if text.startswith('"'):
        path = unquote_git_path(text)[0]
    else:
        path = text.split("\t", 1)[0] if "\t" in text else text
        for suffix_re in (_DATE_SUFFIX_RE, _SVN_SUFFIX_RE):
            match = suffix_re.match(path)
            if match:
                path = match.group(1)
    if path == DEV_NULL:
        return None
    return path


def _strip_prefixes(old: Optional[str], new: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Remove ``a/`` and ``b/`` prefixes when the sides agree on using them"""
    old_prefixed = old is None or old.startswith("a/")
    new_prefixed = new is None or new.startswith("b/")
    if old_prefixed and new_prefixed and (old is not None or new is not None):
        old = old[2:] if old is not None else None
        new = new[2:] if new is not None else None
    return old, new


def parse_diff(diff_text: str, blob_loader: Optional[BlobLoader] = None) -> List[Change]:
    """Parse diff text into section-level changes"""
    return DiffParser(blob_loader).parse_diff(diff_text)
