from .base85 import decode_base85, decode_base85_lines, encode_base85, encode_base85_lines
from .bundle import Bundle
from .classifier import classify_changes
from .exceptions import (
    Base85Error,
    ClassificationError,
    DiffBundleError,
    HunkSynthesisError,
    ParseError,
    RenderError,
    RepositoryError,
)
from .models import Change, ChangeType, FileType, Hunk, HunkLine, LineType
from .parser import DiffParser, parse_diff
from .renderer import PatchRenderer
from .synthesizer import HunkSynthesizer, synthesize_hunks

__all__ = [
    "Bundle",
    "Change",
    "ChangeType",
    "FileType",
    "Hunk",
    "HunkLine",
    "LineType",
    "DiffParser",
    "parse_diff",
    "classify_changes",
    "PatchRenderer",
    "HunkSynthesizer",
    "synthesize_hunks",
    "encode_base85",
    "decode_base85",
    "encode_base85_lines",
    "decode_base85_lines",
    "DiffBundleError",
    "ParseError",
    "Base85Error",
    "HunkSynthesisError",
    "ClassificationError",
    "RenderError",
    "RepositoryError",
]
