"""
Serializes a bundle into a git patch or into a plain unified diff.
"""

from typing import Dict, List, Optional

from .binary import encode_literal, git_blob_sha1
from .config import DEFAULT_FILE_MODE, get_context_radius
from .exceptions import RenderError
from .logging_utils import get_logger
from .models import Change, ChangeType, Hunk
from .paths import quote_git_path
from .synthesizer import split_hunk

logger = get_logger("renderer")

DEV_NULL = "/dev/null"
NO_NEWLINE = "\\ No newline at end of file"
UNIFIED_RULE = "=" * 67


class PatchRenderer:
    """Renders bundles as patch text"""

    def __init__(self, context: Optional[int] = None):
        self.context = get_context_radius() if context is None else context

    def render_git_patch(self, bundle) -> str:
        """
        Render a bundle as a patch ``git apply`` accepts.

        Copy and rename sources emit nothing themselves: their destinations
        carry ``copy from`` / ``rename from`` headers. A moved source
        must have exactly the one rename destination in the bundle.
        """
        changes = list(bundle.changes)
        by_path = {change.current_path: change for change in changes}
        self._check_moved_sources(changes, by_path)

        sections = []
        for change in changes:
            section = self._render_git_change(change, by_path)
            if section:
                sections.append(section)

        logger.debug(f"Rendered {len(sections)} git patch sections from {len(changes)} changes")
        return "".join(sections) + "\n"

    def render_unified_diff(self, bundle) -> str:
        """Render the text changes of a bundle as a unified diff for display"""
        parts = []
        for change in bundle.changes:
            hunks = self._split_hunks(change)
            if not hunks:
                continue
            path = change.current_path
            old_target = DEV_NULL if change.kind == ChangeType.ADD else path
            new_target = DEV_NULL if change.new_path is None else path
            parts.append(f"Index: {path}\n")
            parts.append(UNIFIED_RULE + "\n")
            parts.append(f"--- {old_target}\n")
            parts.append(f"+++ {new_target}\n")
            parts.extend(_render_hunk(hunk) for hunk in hunks)
        return "".join(parts)

    def _check_moved_sources(self, changes: List[Change], by_path: Dict[str, Change]) -> None:
        """Ensure every move-away or multicopy source has its rename destination"""
        for change in changes:
            if change.kind not in (ChangeType.MULTICOPY, ChangeType.MOVE_AWAY):
                continue
            dests = [by_path[path] for path in change.away_paths if path in by_path]
            dests = [dest for dest in dests if dest.kind.is_here and dest.old_path == change.old_path]
            if not dests:
                raise RenderError(
                    f"{change.kind.value} source {change.old_path} has no destination in the bundle",
                    path=change.old_path,
                )
            renames = [dest for dest in dests if dest.kind == ChangeType.MOVE_HERE]
            if len(renames) != 1:
                raise RenderError(
                    f"{change.kind.value} source {change.old_path} needs one rename destination, found {len(renames)}",
                    path=change.old_path,
                    details={"destinations": [dest.current_path for dest in dests]},
                )

    def _render_git_change(self, change: Change, by_path: Dict[str, Change]) -> str:
        kind = change.kind
        if kind in (ChangeType.MOVE_AWAY, ChangeType.MULTICOPY):
            return ""

        path = change.current_path
        old_path = change.old_path if change.old_path is not None else path
        new_path = change.new_path if change.new_path is not None else path
        old_mode = change.old_mode or DEFAULT_FILE_MODE
        new_mode = change.new_mode or DEFAULT_FILE_MODE

        old_data, new_data = change.old_data, change.new_data
        if kind.is_here and old_data is None:
            source = by_path.get(change.old_path)
            if source is not None:
                old_data = source.old_data

        if change.is_binary:
            body = self._render_binary_body(change, kind, old_data, new_data)
        else:
            body = self._render_text_body(change, kind, old_path, new_path)

        if kind == ChangeType.COPY_AWAY and not body and old_mode == new_mode:
            return ""
        if kind == ChangeType.MODIFY and not body and old_mode == new_mode:
            raise RenderError(f"Modified file {path} has no content or mode change", path=path)

        lines = [f"diff --git {quote_git_path('a/' + old_path)} {quote_git_path('b/' + new_path)}"]
        if kind == ChangeType.ADD:
            lines.append(f"new file mode {new_mode}")
        elif kind == ChangeType.DELETE:
            lines.append(f"deleted file mode {old_mode}")
        else:
            if old_mode != new_mode:
                lines.append(f"old mode {old_mode}")
                lines.append(f"new mode {new_mode}")
            if kind == ChangeType.COPY_HERE:
                lines.append(f"copy from {quote_git_path(old_path)}")
                lines.append(f"copy to {quote_git_path(new_path)}")
            elif kind == ChangeType.MOVE_HERE:
                lines.append(f"rename from {quote_git_path(old_path)}")
                lines.append(f"rename to {quote_git_path(new_path)}")

        return "\n".join(lines) + "\n" + body

    def _render_text_body(self, change: Change, kind: ChangeType, old_path: str, new_path: str) -> str:
        hunks = self._split_hunks(change)
        if not hunks:
            return ""
        old_target = DEV_NULL if kind == ChangeType.ADD else _target("a/" + old_path)
        new_target = DEV_NULL if kind == ChangeType.DELETE else _target("b/" + new_path)
        parts = [f"--- {old_target}\n", f"+++ {new_target}\n"]
        parts.extend(_render_hunk(hunk) for hunk in hunks)
        return "".join(parts)

    def _render_binary_body(
        self,
        change: Change,
        kind: ChangeType,
        old_data: Optional[bytes],
        new_data: Optional[bytes],
    ) -> str:
        path = change.current_path
        if kind == ChangeType.ADD:
            old_data = b""
        elif kind == ChangeType.DELETE:
            new_data = b""

        if kind in (ChangeType.ADD, ChangeType.DELETE, ChangeType.MODIFY):
            if old_data is None or new_data is None:
                raise RenderError(f"Binary {kind.value} of {path} is missing its file content", path=path)
        elif new_data is None:
            # Exact copy or rename whose content was never loaded
            logger.warning(f"No binary content for {path}; rendering headers only")
            return ""
        elif old_data is None:
            raise RenderError(f"Binary {kind.value} of {path} is missing its source content", path=path)

        if old_data == new_data and kind not in (ChangeType.ADD, ChangeType.DELETE):
            return ""

        old_sha = git_blob_sha1(None if kind == ChangeType.ADD else old_data)
        new_sha = git_blob_sha1(None if kind == ChangeType.DELETE else new_data)
        return "".join(
            [
                f"index {old_sha}..{new_sha}\n",
                "GIT binary patch\n",
                f"literal {len(new_data)}\n",
                encode_literal(new_data),
                "\n",
                f"literal {len(old_data)}\n",
                encode_literal(old_data),
                "\n",
            ]
        )

    def _split_hunks(self, change: Change) -> List[Hunk]:
        hunks = []
        for hunk in change.hunks:
            hunks.extend(split_hunk(hunk, self.context))
        return hunks


def _target(path: str) -> str:
    path = quote_git_path(path)
    # git apply would strip trailing whitespace from the name otherwise
    if path != path.rstrip():
        return path + "\t"
    return path


def _render_hunk(hunk: Hunk) -> str:
    last_old = max((i for i, line in enumerate(hunk.lines) if line.in_old), default=None)
    last_new = max((i for i, line in enumerate(hunk.lines) if line.in_new), default=None)

    parts = [hunk.header + "\n"]
    for index, line in enumerate(hunk.lines):
        parts.append(line.line_type.marker + line.content + "\n")
        if (hunk.old_no_newline and index == last_old) or (hunk.new_no_newline and index == last_new):
            parts.append(NO_NEWLINE + "\n")
    return "".join(parts)
