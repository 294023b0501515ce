from enum import Enum
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from .config import FILEMODE_PROPERTY


class ChangeType(str, Enum):
    """Kinds of file-level change that can occur in a bundle"""

    ADD = "add"
    DELETE = "delete"
    MODIFY = "modify"
    MOVE_AWAY = "move-away"
    MOVE_HERE = "move-here"
    COPY_AWAY = "copy-away"
    COPY_HERE = "copy-here"
    MULTICOPY = "multicopy"

    @property
    def is_away(self) -> bool:
        return self in (ChangeType.MOVE_AWAY, ChangeType.COPY_AWAY, ChangeType.MULTICOPY)

    @property
    def is_here(self) -> bool:
        return self in (ChangeType.MOVE_HERE, ChangeType.COPY_HERE)


class FileType(str, Enum):
    TEXT = "text"
    BINARY = "binary"


class LineType(str, Enum):
    """Types of lines that can occur in a hunk"""

    ADDITION = "addition"
    DELETION = "deletion"
    CONTEXT = "context"

    @property
    def marker(self) -> str:
        return _LINE_MARKERS[self]


_LINE_MARKERS = {
    LineType.ADDITION: "+",
    LineType.DELETION: "-",
    LineType.CONTEXT: " ",
}


class HunkLine(BaseModel):
    """A single line of a hunk; content keeps any carriage return but no newline"""

    model_config = ConfigDict(frozen=True)

    line_type: LineType
    content: str

    @property
    def in_old(self) -> bool:
        return self.line_type != LineType.ADDITION

    @property
    def in_new(self) -> bool:
        return self.line_type != LineType.DELETION


class Hunk(BaseModel):
    """One contiguous region of line changes"""

    model_config = ConfigDict(frozen=True)

    old_start: int
    old_length: int
    new_start: int
    new_length: int
    lines: Tuple[HunkLine, ...] = ()
    # The last old/new side line of the hunk ends the file without a newline
    old_no_newline: bool = False
    new_no_newline: bool = False

    @property
    def header(self) -> str:
        return f"@@ -{_range(self.old_start, self.old_length)} +{_range(self.new_start, self.new_length)} @@"

    @property
    def has_changes(self) -> bool:
        return any(line.line_type != LineType.CONTEXT for line in self.lines)


def _range(start: int, length: int) -> str:
    # git omits a length of one
    if length == 1:
        return str(start)
    return f"{start},{length}"


class Change(BaseModel):
    """Represents the change to a single path in a bundle"""

    model_config = ConfigDict(frozen=True)

    old_path: Optional[str] = None
    new_path: Optional[str] = None
    kind: ChangeType
    file_type: FileType = FileType.TEXT
    # Ordered (name, value) pairs such as ("unix:filemode", "100644")
    old_properties: Tuple[Tuple[str, str], ...] = ()
    new_properties: Tuple[Tuple[str, str], ...] = ()
    old_data: Optional[bytes] = None
    new_data: Optional[bytes] = None
    hunks: Tuple[Hunk, ...] = ()
    # Destinations of a copy/move source, in input order
    away_paths: Tuple[str, ...] = ()

    @field_validator("old_properties", "new_properties", mode="before")
    @classmethod
    def _freeze_properties(cls, value):
        if isinstance(value, Mapping):
            return tuple(value.items())
        return value

    @property
    def current_path(self) -> str:
        return self.new_path if self.new_path is not None else self.old_path

    @property
    def old_mode(self) -> Optional[str]:
        return self.get_property(FILEMODE_PROPERTY, new=False)

    @property
    def new_mode(self) -> Optional[str]:
        return self.get_property(FILEMODE_PROPERTY)

    @property
    def is_binary(self) -> bool:
        return self.file_type == FileType.BINARY

    def get_property(self, name: str, new: bool = True) -> Optional[str]:
        """Look up a property on the new side, or the old side when ``new`` is false"""
        properties = self.new_properties if new else self.old_properties
        return dict(properties).get(name)
