"""Secret heuristic scanner.

One fixed disjunction of secret-shaped tokens is matched against two corpora
separately: every commit reachable from any ref, and the current working
tree. A line removed from the worktree but still present in history is a
history-only finding, so the two results are never merged.

Matching is deliberately over-inclusive. A bare ``PASSWORD`` or ``TOKEN_``
in an identifier is reported; there is no entropy check, no decoding and no
allow-list. Result truncation is a display limit for readability, not a
claim that nothing else matched.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .models import SecretMatch
from .scanner.history import all_commits, git
from .scanner.worktree import iter_worktree_files, relative_name

logger = logging.getLogger(__name__)

SECRET_PATTERNS = (
    r"PRIVATE[-_ ]KEY",
    r"BEGIN RSA PRIVATE KEY",
    r"BEGIN OPENSSH PRIVATE KEY",
    r"AWS_ACCESS_KEY_ID",
    r"AWS_SECRET_ACCESS_KEY",
    r"API[_-]?KEY",
    r"SECRET[_-]?",
    r"TOKEN[_-]?",
    r"PASSWORD",
    r"passwd",
    r"-----BEGIN CERTIFICATE-----",
)
# Valid both as a Python regex and as a POSIX ERE for `git grep -E`.
SECRET_REGEX = "|".join(SECRET_PATTERNS)
SECRET_RE = re.compile(SECRET_REGEX)

WORKTREE_LOCATION = "worktree"
SNIPPET_MAX = 200
BINARY_SNIFF_BYTES = 8192
REVS_PER_GREP = 200


@dataclass
class ScanResult:
    matches: list[SecretMatch] = field(default_factory=list)
    truncated: bool = False
    limit: Optional[int] = None


def _snippet(line: str) -> str:
    return line.strip()[:SNIPPET_MAX]


def scan_text(text: str, location: str, file: str) -> list[SecretMatch]:
    """One match per line containing any secret-shaped token."""
    matches = []
    for lineno, line in enumerate(text.split("\n"), start=1):
        if SECRET_RE.search(line):
            matches.append(SecretMatch(location=location, file=file, line=lineno, snippet=_snippet(line)))
    return matches


def _is_binary(path: Path) -> bool:
    with open(path, "rb") as f:
        return b"\0" in f.read(BINARY_SNIFF_BYTES)


def scan_worktree(
    root: str | Path,
    exclude: Iterable[str | Path] = (),
    limit: Optional[int] = 500,
) -> ScanResult:
    """Scan regular text files in the checkout, excluding .git."""
    root = Path(root).resolve()
    result = ScanResult(limit=limit)
    for p in iter_worktree_files(root, exclude):
        try:
            if _is_binary(p):
                continue
            text = p.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Skipping unreadable file %s: %s", p, e)
            continue
        for m in scan_text(text, WORKTREE_LOCATION, relative_name(p, root)):
            if limit is not None and len(result.matches) >= limit:
                result.truncated = True
                return result
            result.matches.append(m)
    return result


def _parse_grep_output(out: str) -> list[SecretMatch]:
    # -z output: "<rev>:<path>\0<lineno>\0<line>"
    matches = []
    for record in out.split("\n"):
        parts = record.split("\0", 2)
        if len(parts) != 3:
            continue
        name, lineno, line = parts
        rev, sep, path = name.partition(":")
        if not sep:
            continue
        try:
            n = int(lineno)
        except ValueError:
            continue
        matches.append(SecretMatch(location=rev, file=path, line=n, snippet=_snippet(line)))
    return matches


def scan_history(repo_path: str | Path, limit: Optional[int] = None) -> ScanResult:
    """git grep every reachable commit; results ordered by commit, path, line."""
    result = ScanResult(limit=limit)
    commits = all_commits(repo_path)
    order = {sha: i for i, sha in enumerate(commits)}
    for start in range(0, len(commits), REVS_PER_GREP):
        chunk = commits[start:start + REVS_PER_GREP]
        out = git(
            repo_path, "grep", "-I", "-n", "-z", "--no-color", "-E", "-e", SECRET_REGEX, *chunk, "--",
            ok_codes=(0, 1),
        )
        found = _parse_grep_output(out)
        found.sort(key=lambda m: (order.get(m.location, len(order)), m.file, m.line))
        for m in found:
            if limit is not None and len(result.matches) >= limit:
                result.truncated = True
                return result
            result.matches.append(m)
    return result


def render_matches(result: ScanResult) -> str:
    """Artifact text: one match per line, plus a display-limit note if cut."""
    lines = [m.to_line() for m in result.matches]
    if result.truncated:
        lines.append(f"... output truncated at {result.limit} matches (display limit, not a scan limit)")
    return "\n".join(lines)
