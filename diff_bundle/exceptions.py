"""
Exceptions raised by diff_bundle.
"""

from typing import Any, Dict, Optional


class DiffBundleError(Exception):
    """
    Base class for every error raised by the toolkit.

    Attributes:
        message -- explanation of the error
        details -- additional details about the error
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ParseError(DiffBundleError):
    """Raised when diff text is malformed or truncated."""

    def __init__(self, message: str, line_number: Optional[int] = None, details=None):
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message, details)
        self.line_number = line_number


class Base85Error(DiffBundleError):
    """Raised when base85 input violates the alphabet or length rules."""


class HunkSynthesisError(DiffBundleError):
    """Raised when two texts cannot be aligned into hunks."""


class ClassificationError(DiffBundleError):
    """Raised when path cross-references between changes are ambiguous."""

    def __init__(self, message: str, path: Optional[str] = None, details=None):
        super().__init__(message, details)
        self.path = path


class RenderError(DiffBundleError):
    """Raised when a change violates a precondition of patch rendering."""

    def __init__(self, message: str, path: Optional[str] = None, details=None):
        super().__init__(message, details)
        self.path = path


class RepositoryError(DiffBundleError):
    """Raised when a git command fails."""
