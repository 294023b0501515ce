"""
Hunk synthesis: turn two versions of a text into minimal unified-diff hunks.
"""

from difflib import SequenceMatcher
from typing import List, Optional

from .config import get_context_radius
from .exceptions import HunkSynthesisError
from .logging_utils import get_logger
from .models import Hunk, HunkLine, LineType

logger = get_logger("synthesizer")


def split_lines(text: str) -> List[str]:
    """Split text on newlines only, keeping each line's terminator"""
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _first_line_number(start: int, length: int) -> int:
    # A zero-length side names the line before the region
    return start if length else start + 1


def split_hunk(hunk: Hunk, context: int) -> List[Hunk]:
    """
    Break one hunk into the smallest hunks that keep ``context`` lines of
    context around every change.

    Changes separated by more than twice the context radius end up in
    separate hunks. Hunks without any change are dropped, and a missing
    newline marker only follows the hunk that still contains the file's
    last line.

    Args:
        hunk: A hunk, typically with far more context than needed
        context: The context radius

    Returns:
        The resulting hunks in file order
    """
    lines = hunk.lines
    changed = [i for i, line in enumerate(lines) if line.line_type != LineType.CONTEXT]
    if not changed:
        return []

    groups = []
    first = previous = changed[0]
    for index in changed[1:]:
        if index - previous - 1 > 2 * context:
            groups.append((first, previous))
            first = index
        previous = index
    groups.append((first, previous))

    # old_before[i] / new_before[i]: old/new side lines preceding lines[i]
    old_before = [0]
    new_before = [0]
    for line in lines:
        old_before.append(old_before[-1] + line.in_old)
        new_before.append(new_before[-1] + line.in_new)

    last_old = max((i for i, line in enumerate(lines) if line.in_old), default=None)
    last_new = max((i for i, line in enumerate(lines) if line.in_new), default=None)

    old_first = _first_line_number(hunk.old_start, hunk.old_length)
    new_first = _first_line_number(hunk.new_start, hunk.new_length)

    hunks = []
    for first, last in groups:
        lo = max(0, first - context)
        hi = min(len(lines) - 1, last + context)
        old_length = old_before[hi + 1] - old_before[lo]
        new_length = new_before[hi + 1] - new_before[lo]
        old_start = old_first + old_before[lo]
        new_start = new_first + new_before[lo]
        hunks.append(
            Hunk(
                old_start=old_start if old_length else old_start - 1,
                old_length=old_length,
                new_start=new_start if new_length else new_start - 1,
                new_length=new_length,
                lines=lines[lo:hi + 1],
                old_no_newline=hunk.old_no_newline and last_old is not None and lo <= last_old <= hi,
                new_no_newline=hunk.new_no_newline and last_new is not None and lo <= last_new <= hi,
            )
        )
    return hunks


class HunkSynthesizer:
    """Computes minimal hunks from two versions of a text file"""

    def __init__(self, context: Optional[int] = None, allow_full_replace: bool = False):
        self.context = get_context_radius() if context is None else context
        self.allow_full_replace = allow_full_replace

    def synthesize(self, old_text: str, new_text: str) -> List[Hunk]:
        """Compute hunks transforming ``old_text`` into ``new_text``"""
        if not isinstance(old_text, str) or not isinstance(new_text, str):
            raise HunkSynthesisError(
                "Hunk synthesis needs decoded text on both sides",
                {"old_type": type(old_text).__name__, "new_type": type(new_text).__name__},
            )

        old_lines = split_lines(old_text)
        new_lines = split_lines(new_text)
        if old_lines == new_lines:
            return []

        matcher = SequenceMatcher(None, old_lines, new_lines, autojunk=False)
        opcodes = matcher.get_opcodes()

        aligned = any(tag == "equal" for tag, _, _, _, _ in opcodes)
        if old_lines and new_lines and not aligned and not self.allow_full_replace:
            raise HunkSynthesisError(
                "No common line between the two versions; refusing to emit a full replacement",
                {"old_lines": len(old_lines), "new_lines": len(new_lines)},
            )

        hunk_lines = []
        for tag, i1, i2, j1, j2 in opcodes:
            if tag == "equal":
                hunk_lines.extend(_lines(LineType.CONTEXT, old_lines[i1:i2]))
                continue
            hunk_lines.extend(_lines(LineType.DELETION, old_lines[i1:i2]))
            hunk_lines.extend(_lines(LineType.ADDITION, new_lines[j1:j2]))

        full = Hunk(
            old_start=1 if old_lines else 0,
            old_length=len(old_lines),
            new_start=1 if new_lines else 0,
            new_length=len(new_lines),
            lines=hunk_lines,
            old_no_newline=bool(old_lines) and not old_lines[-1].endswith("\n"),
            new_no_newline=bool(new_lines) and not new_lines[-1].endswith("\n"),
        )
        hunks = split_hunk(full, self.context)
        logger.debug(f"Synthesized {len(hunks)} hunks from {len(old_lines)} -> {len(new_lines)} lines")
        return hunks


def _lines(line_type: LineType, raw_lines: List[str]) -> List[HunkLine]:
    return [HunkLine(line_type=line_type, content=_strip_newline(line)) for line in raw_lines]


def _strip_newline(line: str) -> str:
    return line[:-1] if line.endswith("\n") else line


def synthesize_hunks(
    old_text: str,
    new_text: str,
    context: Optional[int] = None,
    allow_full_replace: bool = False,
) -> List[Hunk]:
    """Compute hunks transforming ``old_text`` into ``new_text``"""
    return HunkSynthesizer(context, allow_full_replace).synthesize(old_text, new_text)
