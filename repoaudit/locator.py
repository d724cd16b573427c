"""Repository locator - remote URL to owner/name."""

from __future__ import annotations

import re
from pathlib import Path

from .errors import ConfigurationError, GitCommandError, ParseError
from .models import RepositoryIdentity
from .scanner.history import git

# host:owner/repo[.git] (scp-like ssh) or scheme://[user@]host[:port]/owner/repo[.git]
REMOTE_RE = re.compile(
    r"""^(?:
        (?:https?|ssh|git)://(?:[^@/]+@)?[^/:]+(?::\d+)?/
        |
        (?:[^@/:]+@)?[^/:]+:
    )
    (?P<owner>[^/\s]+)/(?P<name>[^/\s]+?)(?:\.git)?/?$""",
    re.IGNORECASE | re.VERBOSE,
)


def parse_remote_url(url: str) -> RepositoryIdentity:
    m = REMOTE_RE.match(url.strip())
    if not m:
        raise ParseError(f"Unable to parse remote url: {url}")
    return RepositoryIdentity(owner=m.group("owner"), name=m.group("name"))


def read_remote_url(repo_path: str | Path, remote: str = "origin") -> str:
    """URL of the named remote. ConfigurationError when it is not configured."""
    try:
        url = git(repo_path, "remote", "get-url", remote).strip()
    except GitCommandError as e:
        raise ConfigurationError(
            f"No {remote} remote configured. Set {remote} to git@github.com:USER/REPO.git "
            f"or https://github.com/USER/REPO.git"
        ) from e
    if not url:
        raise ConfigurationError(f"Remote {remote} has an empty URL")
    return url


def locate_repository(repo_path: str | Path, remote: str = "origin") -> RepositoryIdentity:
    return parse_remote_url(read_remote_url(repo_path, remote))
