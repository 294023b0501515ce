import os
import tempfile
from typing import Optional

import git
from git.exc import BadName, GitCommandError
from pydantic import BaseModel, ConfigDict

from .bundle import Bundle
from .config import get_git_context_lines
from .exceptions import RepositoryError
from .logging_utils import get_logger
from .models import Change, FileType
from .parser import DiffParser

logger = get_logger("repository")

# git looks this far into a file to decide whether it is binary
BINARY_SNIFF_BYTES = 8000


class CommitInfo(BaseModel):
    """Commit metadata needed to describe a bundle"""

    model_config = ConfigDict(frozen=True)

    hash: str
    tree_hash: str
    subject: str


class GitRepository:
    """Reads diffs from and applies patches to a git repository"""

    def __init__(self, repo_path: str):
        """Initialize with a git repository path"""
        try:
            self.repo = git.Repo(repo_path)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise RepositoryError(f"Not a git repository: {repo_path}") from e

    def get_commit_info(self, ref: str = "HEAD") -> CommitInfo:
        commit = self._commit(ref)
        return CommitInfo(hash=commit.hexsha, tree_hash=commit.tree.hexsha, subject=commit.summary)

    def get_full_diff(self, base: str, head: str, context_lines: Optional[int] = None) -> str:
        """
        Get the diff between two commits with rename and copy detection.

        Context is requested generously; the renderer trims hunks to the
        configured radius.
        """
        if context_lines is None:
            context_lines = get_git_context_lines()
        raw = self._git(
            "diff",
            "-M",
            "-C",
            "--binary",
            "--full-index",
            "--no-color",
            "--no-ext-diff",
            "--no-textconv",
            "--src-prefix=a/",
            "--dst-prefix=b/",
            f"-U{context_lines}",
            base,
            head,
            "--",
        )
        return raw.decode("utf-8", "surrogateescape")

    def load_blob(self, object_name: str) -> bytes:
        """Read the content of a blob by its object name"""
        return self._git("cat-file", "blob", object_name)

    def load_file(self, ref: str, path: str) -> bytes:
        """Read the content of ``path`` as of ``ref``"""
        return self._git("cat-file", "blob", f"{ref}:{path}")

    def load_bundle(self, base: str, head: str) -> Bundle:
        """Build a classified bundle for the changes between two commits"""
        diff_text = self.get_full_diff(base, head)
        changes = DiffParser(blob_loader=self.load_blob).parse_diff(diff_text)
        changes = [self._fill_exact_copy(change, base, head) for change in changes]
        base_info = self.get_commit_info(base)
        head_info = self.get_commit_info(head)
        logger.info(f"Loaded {len(changes)} file sections between {base_info.hash[:12]} and {head_info.hash[:12]}")
        return Bundle.from_changes(changes, base_commit=base_info.hash, head_commit=head_info.hash)

    def _fill_exact_copy(self, change: Change, base: str, head: str) -> Change:
        # git prints no body at all for 100% similar copies and renames,
        # so binary content has to be read from the trees
        if not change.kind.is_here or change.hunks or change.is_binary:
            return change
        new_data = self.load_file(head, change.new_path)
        if not is_binary_content(new_data):
            return change
        old_data = self.load_file(base, change.old_path)
        return change.model_copy(update={"file_type": FileType.BINARY, "old_data": old_data, "new_data": new_data})

    def apply_patch(self, patch: str, index: bool = True) -> None:
        """Apply a git patch to the working tree, and the index when ``index`` is set"""
        fd, patch_path = tempfile.mkstemp(suffix=".patch")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(patch.encode("utf-8", "surrogateescape"))
            args = ["apply"]
            if index:
                args.append("--index")
            args.append(patch_path)
            self._git(*args)
        finally:
            os.unlink(patch_path)

    def write_tree(self) -> str:
        """Write the index as a tree and return its hash"""
        return self._git("write-tree").decode("ascii").strip()

    def _commit(self, ref: str):
        try:
            return self.repo.commit(ref)
        except (BadName, ValueError) as e:
            raise RepositoryError(f"Unknown commit {ref}") from e

    def _git(self, command: str, *args: str) -> bytes:
        method = getattr(self.repo.git, command.replace("-", "_"))
        try:
            return method(*args, stdout_as_string=False, strip_newline_in_stdout=False)
        except GitCommandError as e:
            raise RepositoryError(
                f"git {command} failed with status {e.status}",
                {"args": list(args), "stderr": _decode(e.stderr)},
            ) from e


def is_binary_content(data: bytes) -> bool:
    return b"\0" in data[:BINARY_SNIFF_BYTES]


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return str(value or "").strip()
