import pytest

from .exceptions import HunkSynthesisError
from .models import Hunk, HunkLine, LineType
from .synthesizer import HunkSynthesizer, split_hunk, split_lines, synthesize_hunks


def numbered(count, trailing_newline=True, **replacements):
    lines = [replacements.get(f"l{i}", str(i)) for i in range(1, count + 1)]
    text = "\n".join(lines)
    return text + "\n" if trailing_newline else text


def test_split_lines():
    assert split_lines("") == []
    assert split_lines("a\nb") == ["a\n", "b"]
    assert split_lines("a\r\nb\n") == ["a\r\n", "b\n"]


def test_identical_texts_have_no_hunks():
    assert synthesize_hunks("a\nb\n", "a\nb\n") == []


def test_context_is_bounded():
    """Test a change keeps only three lines of trailing context"""
    old = numbered(20, trailing_newline=False)
    new = numbered(20, trailing_newline=False, l2="two")

    hunks = synthesize_hunks(old, new, context=3)

    assert len(hunks) == 1
    hunk = hunks[0]
    assert hunk.header == "@@ -1,5 +1,5 @@"
    assert [line.content for line in hunk.lines] == ["1", "2", "two", "3", "4", "5"]
    # The missing newline belongs to line 20, which this hunk does not reach
    assert not hunk.old_no_newline
    assert not hunk.new_no_newline


def test_no_newline_marker_near_end():
    old = numbered(10, trailing_newline=False)
    new = numbered(10, trailing_newline=False, l9="nine")

    hunks = synthesize_hunks(old, new, context=3)

    assert len(hunks) == 1
    assert hunks[0].header == "@@ -6,5 +6,5 @@"
    assert hunks[0].old_no_newline
    assert hunks[0].new_no_newline


def test_trailing_newline_added():
    """Test adding a final newline changes only the last line"""
    hunks = synthesize_hunks("a\nb\nc", "a\nb\nc\n", context=3)

    assert len(hunks) == 1
    hunk = hunks[0]
    assert hunk.header == "@@ -1,3 +1,3 @@"
    assert [line.line_type for line in hunk.lines] == [
        LineType.CONTEXT,
        LineType.CONTEXT,
        LineType.DELETION,
        LineType.ADDITION,
    ]
    assert hunk.old_no_newline
    assert not hunk.new_no_newline


def test_disjoint_hunks_stay_disjoint():
    """Test edits far apart produce separate hunks"""
    old = numbered(20)
    new = numbered(20, l2="two", l15="fifteen")

    hunks = synthesize_hunks(old, new, context=3)

    assert [hunk.header for hunk in hunks] == ["@@ -1,5 +1,5 @@", "@@ -12,7 +12,7 @@"]
    assert hunks[0].old_start + hunks[0].old_length <= hunks[1].old_start


def test_close_edits_share_a_hunk():
    # Six unchanged lines between the edits is exactly twice the radius
    old = numbered(20)
    new = numbered(20, l2="two", l9="nine")

    hunks = synthesize_hunks(old, new, context=3)

    assert len(hunks) == 1
    assert hunks[0].header == "@@ -1,12 +1,12 @@"


def test_pure_insertion():
    old = numbered(10)
    new = old.replace("5\n", "5\nx\n")

    hunks = synthesize_hunks(old, new, context=3)

    assert len(hunks) == 1
    assert hunks[0].header == "@@ -3,6 +3,7 @@"


def test_new_file():
    hunks = synthesize_hunks("", "a\nb\n")

    assert len(hunks) == 1
    assert hunks[0].header == "@@ -0,0 +1,2 @@"
    assert all(line.line_type == LineType.ADDITION for line in hunks[0].lines)


def test_deleted_content():
    hunks = synthesize_hunks("a\nb\n", "")

    assert len(hunks) == 1
    assert hunks[0].header == "@@ -1,2 +0,0 @@"


def test_crlf_is_preserved():
    hunks = synthesize_hunks("a\r\nb\r\nc\r\n", "a\r\nB\r\nc\r\n")

    contents = [line.content for line in hunks[0].lines]
    assert contents == ["a\r", "b\r", "B\r", "c\r"]


def test_alignment_failure():
    """Test texts without any common line are refused"""
    with pytest.raises(HunkSynthesisError):
        synthesize_hunks("a\nb\n", "c\nd\n")

    hunks = HunkSynthesizer(context=3, allow_full_replace=True).synthesize("a\nb\n", "c\nd\n")
    assert len(hunks) == 1
    assert hunks[0].header == "@@ -1,2 +1,2 @@"


def test_bytes_are_rejected():
    with pytest.raises(HunkSynthesisError):
        synthesize_hunks(b"a\n", "a\n")


def test_split_external_hunk():
    """Test a hunk with too much context is trimmed"""
    lines = (
        [HunkLine(line_type=LineType.CONTEXT, content=f"c{i}") for i in range(4)]
        + [HunkLine(line_type=LineType.DELETION, content="gone")]
        + [HunkLine(line_type=LineType.CONTEXT, content=f"d{i}") for i in range(4)]
    )
    hunk = Hunk(old_start=10, old_length=9, new_start=10, new_length=8, lines=lines)

    result = split_hunk(hunk, 3)

    assert len(result) == 1
    assert result[0].header == "@@ -11,7 +11,6 @@"
    assert result[0].lines[0].content == "c1"
    assert result[0].lines[-1].content == "d2"


def test_split_drops_context_only_hunk():
    hunk = Hunk(
        old_start=1,
        old_length=1,
        new_start=1,
        new_length=1,
        lines=[HunkLine(line_type=LineType.CONTEXT, content="same")],
    )
    assert split_hunk(hunk, 3) == []
