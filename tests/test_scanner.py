"""Tests for the history and working-tree scanners."""

import pytest

from repoaudit.errors import GitCommandError
from repoaudit.scanner import list_blobs, list_worktree_files, read_codeowners, recent_log, recent_log_with_files
from repoaudit.scanner.history import all_commits, fetch_all, list_branches, list_tags
from repoaudit.scanner.worktree import directory_size


def test_list_blobs_reports_every_version(git_repo, commit):
    """Each version of a file is its own blob."""
    commit(git_repo, {"data.bin": b"x" * 300, "small.txt": "hi\n"}, "first")
    commit(git_repo, {"data.bin": b"y" * 1200}, "grow")
    blobs = list_blobs(git_repo)
    by_path = {}
    for b in blobs:
        by_path.setdefault(b.path, []).append(b.size)
    assert sorted(by_path["data.bin"]) == [300, 1200]
    assert by_path["small.txt"] == [3]
    assert all(len(b.object_id) == 40 for b in blobs)


def test_list_blobs_empty_repo(git_repo):
    assert list_blobs(git_repo) == []


def test_recent_log_is_bounded(git_repo, commit):
    """The log stops at the configured limit."""
    for i in range(5):
        commit(git_repo, {"f.txt": f"{i}\n"}, f"change {i}")
    log = recent_log(git_repo, limit=3)
    assert len(log.splitlines()) == 3
    assert "change 4" in log.splitlines()[0]
    assert "f.txt" in recent_log_with_files(git_repo, limit=1)
    assert len(all_commits(git_repo)) == 5


def test_recent_log_empty_repo(git_repo):
    """An unborn branch gives an empty log, not an error."""
    assert recent_log(git_repo) == ""
    assert recent_log_with_files(git_repo) == ""


def test_branches_and_tags(git_repo, commit, git):
    commit(git_repo, {"f.txt": "1\n"})
    git(git_repo, "tag", "v1.0")
    assert "main" in list_branches(git_repo)
    assert list_tags(git_repo).strip() == "v1.0"


def test_git_failure_raises(tmp_path, git):
    """Non-zero git exits raise GitCommandError."""
    with pytest.raises(GitCommandError):
        list_branches(tmp_path / "missing")


def test_worktree_files_skip_metadata_and_symlinks(tmp_path):
    """.git and symlinks are not worktree files."""
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("print(1)\n")
    (tmp_path / "big.dat").write_bytes(b"\0" * 2048)
    (tmp_path / "link").symlink_to(tmp_path / "big.dat")
    records = list_worktree_files(tmp_path)
    assert [(r.path, r.size) for r in records] == [("./big.dat", 2048), ("./src/app.py", 9)]
    assert directory_size(tmp_path) == 2057
    assert directory_size(tmp_path / ".git") == len("ref: refs/heads/main\n")


def test_codeowners(tmp_path):
    """CODEOWNERS content is labelled with the path it came from."""
    assert read_codeowners(tmp_path) is None
    (tmp_path / ".github").mkdir()
    (tmp_path / ".github" / "CODEOWNERS").write_text("* @acme/maintainers\n")
    content = read_codeowners(tmp_path)
    assert "# .github/CODEOWNERS" in content
    assert "@acme/maintainers" in content


def test_fetch_all_tolerates_unreachable_remote(bare_repo, git):
    """A failing fetch is logged and reported as False."""
    assert fetch_all(bare_repo) is True
    git(bare_repo, "remote", "add", "origin", str(bare_repo.parent / "nowhere"))
    assert fetch_all(bare_repo) is False


def test_worktree_files_ordered_by_relative_path(tmp_path):
    """Files in a directory sort with, not before, the entries of its subdirectories."""
    (tmp_path / "b.txt").write_text("b")
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "z.txt").write_text("z")
    (tmp_path / "c").mkdir()
    (tmp_path / "c" / "a.txt").write_text("a")
    assert [r.path for r in list_worktree_files(tmp_path)] == ["./a/z.txt", "./b.txt", "./c/a.txt"]
