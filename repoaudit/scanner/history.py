"""History scanner - git plumbing over every ref, plus the bounded commit log."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from ..errors import GitCommandError
from ..models import BlobRecord

logger = logging.getLogger(__name__)

BATCH_CHECK_FORMAT = "%(objecttype) %(objectname) %(objectsize) %(rest)"
LOG_FORMAT = "%h %ad %an %s"


def git(
    repo_path: str | Path,
    *args: str,
    input: str | None = None,
    ok_codes: tuple[int, ...] = (0,),
) -> str:
    """Run git in repo_path and return stdout. Raises GitCommandError otherwise."""
    cmd = ["git", "-C", str(repo_path), *args]
    logger.debug("Running %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            input=input,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as e:
        raise GitCommandError(list(args), None, "git executable not found") from e
    if result.returncode not in ok_codes:
        raise GitCommandError(list(args), result.returncode, result.stderr)
    return result.stdout


def _has_commits(repo_path: str | Path) -> bool:
    return bool(git(repo_path, "rev-list", "--all", "--max-count=1").strip())


def list_blobs(repo_path: str | Path) -> list[BlobRecord]:
    """Every blob reachable from any ref, in rev-list enumeration order."""
    objects = git(repo_path, "rev-list", "--objects", "--all")
    if not objects.strip():
        return []
    out = git(repo_path, "cat-file", f"--batch-check={BATCH_CHECK_FORMAT}", input=objects)
    blobs: list[BlobRecord] = []
    for line in out.splitlines():
        parts = line.split(" ", 3)
        if len(parts) < 3 or parts[0] != "blob":
            continue
        try:
            size = int(parts[2])
        except ValueError:
            continue
        path = parts[3] if len(parts) == 4 else ""
        blobs.append(BlobRecord(size=size, object_id=parts[1], path=path))
    return blobs


def all_commits(repo_path: str | Path) -> list[str]:
    """Every commit reachable from any ref (full history, unbounded)."""
    return git(repo_path, "rev-list", "--all").split()


def recent_log(repo_path: str | Path, limit: int = 200) -> str:
    if not _has_commits(repo_path):
        return ""
    return git(
        repo_path, "--no-pager", "log", f"--pretty=format:{LOG_FORMAT}",
        "--date=iso", f"--max-count={limit}",
    )


def recent_log_with_files(repo_path: str | Path, limit: int = 200) -> str:
    """Same window as recent_log, each commit followed by the paths it touched."""
    if not _has_commits(repo_path):
        return ""
    return git(
        repo_path, "--no-pager", "log", "--name-only", f"--pretty=format:{LOG_FORMAT}",
        "--date=iso", f"--max-count={limit}",
    )


def list_branches(repo_path: str | Path) -> str:
    return git(repo_path, "branch", "-avv")


def list_tags(repo_path: str | Path) -> str:
    return git(repo_path, "tag", "-l")


def fetch_all(repo_path: str | Path) -> bool:
    """git fetch --all --prune. Returns False instead of raising on failure."""
    try:
        git(repo_path, "fetch", "--all", "--prune")
    except GitCommandError as e:
        logger.warning("Fetch failed, auditing local refs only: %s", e)
        return False
    return True
