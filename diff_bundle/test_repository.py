import os

import pytest
from git import Repo

from .binary import git_blob_sha1
from .exceptions import RepositoryError
from .models import ChangeType, FileType
from .repository import GitRepository, is_binary_content

KOAN = "".join(f"line {i} of the koan\n" for i in range(1, 21))
IMAGE = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + bytes(range(256)) * 4


@pytest.fixture
def test_repo(tmp_path):
    """Create a temporary git repository with a base commit"""
    repo = Repo.init(tmp_path)
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")

    (tmp_path / "koan").write_text(KOAN)
    (tmp_path / "notes.txt").write_text("alpha\nbeta\ngamma\n")
    (tmp_path / "run.sh").write_text("#!/bin/sh\necho hi\n")
    (tmp_path / "image.png").write_bytes(IMAGE)
    commit(repo, "Initial commit")

    return tmp_path


def commit(repo, message):
    repo.git.add(A=True)
    repo.git.commit("-m", message)
    return repo.head.commit.hexsha


def round_trip(repo_path, base, head):
    """Apply the rendered patch to base and return the resulting tree"""
    git_repo = GitRepository(str(repo_path))
    bundle = git_repo.load_bundle(base, head)

    git_repo.repo.git.reset("--hard", base)
    git_repo.apply_patch(bundle.to_git_patch())
    return bundle, git_repo.write_tree()


def expected_tree(repo_path, head):
    return GitRepository(str(repo_path)).get_commit_info(head).tree_hash


def test_commit_info(test_repo):
    git_repo = GitRepository(str(test_repo))

    info = git_repo.get_commit_info("HEAD")

    assert info.subject == "Initial commit"
    assert info.hash == Repo(test_repo).head.commit.hexsha
    assert info.tree_hash == Repo(test_repo).head.commit.tree.hexsha


def test_unknown_commit(test_repo):
    with pytest.raises(RepositoryError):
        GitRepository(str(test_repo)).get_full_diff("HEAD", "no-such-ref")


def test_not_a_repository(tmp_path):
    with pytest.raises(RepositoryError):
        GitRepository(str(tmp_path / "missing"))


def test_load_blob(test_repo):
    git_repo = GitRepository(str(test_repo))

    assert git_repo.load_blob(git_blob_sha1(IMAGE)) == IMAGE


def test_round_trip_text_changes(test_repo):
    """Test modify, add, delete and mode changes survive a round trip"""
    repo = Repo(test_repo)
    base = repo.head.commit.hexsha

    (test_repo / "koan").write_text(KOAN.replace("line 10 ", "LINE TEN "))
    (test_repo / "added.txt").write_text("fresh\n")
    (test_repo / "notes.txt").unlink()
    os.chmod(test_repo / "run.sh", 0o755)
    head = commit(repo, "Text changes")

    bundle, tree = round_trip(test_repo, base, head)

    assert {change.current_path: change.kind for change in bundle} == {
        "added.txt": ChangeType.ADD,
        "koan": ChangeType.MODIFY,
        "notes.txt": ChangeType.DELETE,
        "run.sh": ChangeType.MODIFY,
    }
    assert bundle.get_change("run.sh").new_mode == "100755"
    # Full-context git output is trimmed to the context radius
    assert bundle.to_git_patch().count("@@ -7,7 +7,7 @@") == 1
    assert tree == expected_tree(test_repo, head)


def test_round_trip_trailing_newline_and_encoding(test_repo):
    repo = Repo(test_repo)
    base = repo.head.commit.hexsha

    (test_repo / "notes.txt").write_text("alpha\nbeta\ngamma")
    (test_repo / "latin1.txt").write_bytes(b"caf\xe9\n")
    head = commit(repo, "Newline and encoding")

    _, tree = round_trip(test_repo, base, head)

    assert tree == expected_tree(test_repo, head)


def test_round_trip_rename(test_repo):
    repo = Repo(test_repo)
    base = repo.head.commit.hexsha

    repo.git.mv("koan", "renamed")
    (test_repo / "renamed").write_text(KOAN.replace("line 3 ", "line three "))
    head = commit(repo, "Rename")

    bundle, tree = round_trip(test_repo, base, head)

    assert bundle.get_change("koan").kind == ChangeType.MOVE_AWAY
    assert bundle.get_change("renamed").kind == ChangeType.MOVE_HERE
    assert tree == expected_tree(test_repo, head)


def test_round_trip_copy(test_repo):
    """Test a copy whose destination is edited"""
    repo = Repo(test_repo)
    base = repo.head.commit.hexsha

    (test_repo / "koan2").write_text(KOAN.replace("line 5 ", "line five "))
    (test_repo / "koan").write_text(KOAN + "a closing line\n")
    head = commit(repo, "Copy")

    bundle, tree = round_trip(test_repo, base, head)

    assert bundle.get_change("koan").kind == ChangeType.COPY_AWAY
    koan2 = bundle.get_change("koan2")
    assert koan2.kind == ChangeType.COPY_HERE
    assert koan2.old_path == "koan"
    assert len(koan2.hunks) == 1
    assert tree == expected_tree(test_repo, head)


def test_round_trip_multicopy(test_repo):
    repo = Repo(test_repo)
    base = repo.head.commit.hexsha

    (test_repo / "koan3").write_text(KOAN)
    (test_repo / "koan4").write_text(KOAN.replace("line 20 ", "line twenty "))
    (test_repo / "koan").unlink()
    head = commit(repo, "Multicopy")

    bundle, tree = round_trip(test_repo, base, head)

    assert bundle.get_change("koan").kind == ChangeType.MULTICOPY
    destination_kinds = sorted(bundle.get_change(path).kind.value for path in ("koan3", "koan4"))
    assert destination_kinds == ["copy-here", "move-here"]
    assert tree == expected_tree(test_repo, head)


def test_binary_delete(test_repo):
    """Test deleting a binary image keeps its preimage"""
    repo = Repo(test_repo)
    base = repo.head.commit.hexsha
    image_sha = repo.head.commit.tree["image.png"].hexsha

    (test_repo / "image.png").unlink()
    head = commit(repo, "Delete image")

    bundle, tree = round_trip(test_repo, base, head)

    assert len(bundle) == 1
    change = bundle.get_change("image.png")
    assert change.kind == ChangeType.DELETE
    assert change.file_type == FileType.BINARY
    assert change.new_data is None
    assert git_blob_sha1(change.old_data) == image_sha
    assert tree == expected_tree(test_repo, head)


def test_round_trip_binary_changes(test_repo):
    repo = Repo(test_repo)
    base = repo.head.commit.hexsha

    (test_repo / "image.png").write_bytes(IMAGE[:-10] + b"\x00changed!!")
    (test_repo / "data.bin").write_bytes(bytes(range(256)))
    head = commit(repo, "Binary changes")

    bundle, tree = round_trip(test_repo, base, head)

    image = bundle.get_change("image.png")
    assert image.kind == ChangeType.MODIFY
    assert image.old_data == IMAGE
    assert bundle.get_change("data.bin").new_data == bytes(range(256))
    assert tree == expected_tree(test_repo, head)


def test_round_trip_binary_exact_rename(test_repo):
    """Test content git omits for identical binary renames is loaded"""
    repo = Repo(test_repo)
    base = repo.head.commit.hexsha

    repo.git.mv("image.png", "logo.png")
    head = commit(repo, "Rename image")

    bundle, tree = round_trip(test_repo, base, head)

    logo = bundle.get_change("logo.png")
    assert logo.kind == ChangeType.MOVE_HERE
    assert logo.file_type == FileType.BINARY
    assert logo.new_data == IMAGE
    assert bundle.get_change("image.png").old_data == IMAGE
    assert tree == expected_tree(test_repo, head)


def test_failed_apply(test_repo):
    git_repo = GitRepository(str(test_repo))
    patch = "diff --git a/missing b/missing\n--- a/missing\n+++ b/missing\n@@ -1 +1 @@\n-a\n+b\n"

    with pytest.raises(RepositoryError) as excinfo:
        git_repo.apply_patch(patch)

    assert excinfo.value.details["stderr"]


def test_is_binary_content():
    assert is_binary_content(IMAGE)
    assert not is_binary_content(KOAN.encode())
