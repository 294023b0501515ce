from typing import Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from .classifier import classify_changes
from .exceptions import ClassificationError
from .models import Change
from .parser import BlobLoader, parse_diff
from .renderer import PatchRenderer


class Bundle(BaseModel):
    """An ordered set of classified file changes making up one code change"""

    model_config = ConfigDict(frozen=True)

    changes: Tuple[Change, ...] = ()
    base_commit: Optional[str] = None
    head_commit: Optional[str] = None

    @model_validator(mode="after")
    def _check_unique_paths(self) -> "Bundle":
        seen = set()
        for change in self.changes:
            path = change.current_path
            if path in seen:
                raise ClassificationError(f"Path {path} appears more than once in the bundle", path=path)
            seen.add(path)
        return self

    @classmethod
    def from_diff(
        cls,
        diff_text: str,
        blob_loader: Optional[BlobLoader] = None,
        base_commit: Optional[str] = None,
        head_commit: Optional[str] = None,
    ) -> "Bundle":
        """Parse and classify diff text"""
        changes = parse_diff(diff_text, blob_loader)
        return cls.from_changes(changes, base_commit=base_commit, head_commit=head_commit)

    @classmethod
    def from_changes(
        cls,
        changes: Iterable[Change],
        base_commit: Optional[str] = None,
        head_commit: Optional[str] = None,
    ) -> "Bundle":
        """Build a bundle from parsed or programmatically created changes"""
        return cls(
            changes=tuple(classify_changes(changes)),
            base_commit=base_commit,
            head_commit=head_commit,
        )

    def to_git_patch(self, context: Optional[int] = None) -> str:
        return PatchRenderer(context).render_git_patch(self)

    def to_unified_diff(self, context: Optional[int] = None) -> str:
        return PatchRenderer(context).render_unified_diff(self)

    def get_change(self, path: str) -> Optional[Change]:
        """Find the change whose current path is ``path``"""
        for change in self.changes:
            if change.current_path == path:
                return change
        return None

    @property
    def paths(self) -> List[str]:
        return [change.current_path for change in self.changes]

    def __iter__(self) -> Iterator[Change]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self.changes)
