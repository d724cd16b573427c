"""Shared fixtures: throwaway git repositories and a scripted API credential."""

import json
import shutil
import subprocess
from pathlib import Path

import pytest

from repoaudit.credentials import CredentialProvider
from repoaudit.models import ApiResponse

GIT_IDENTITY = [
    "-c", "user.name=Audit Test",
    "-c", "user.email=audit@example.com",
    "-c", "commit.gpgsign=false",
    "-c", "init.defaultBranch=main",
]


def run_git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *GIT_IDENTITY, *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


@pytest.fixture
def git():
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    return run_git


@pytest.fixture
def bare_repo(tmp_path, git):
    """Initialized repository with no remote and no commits."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    return repo


@pytest.fixture
def git_repo(bare_repo, git):
    """Repository with origin pointing at acme/widget."""
    git(bare_repo, "remote", "add", "origin", "git@github.com:acme/widget.git")
    return bare_repo


@pytest.fixture
def commit(git):
    """commit(repo, {"path": "content" or bytes or None}, message) - None deletes."""

    def _commit(repo: Path, files: dict, message: str = "update") -> str:
        for rel, content in files.items():
            p = repo / rel
            if content is None:
                git(repo, "rm", "-q", "--", rel)
                continue
            p.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                p.write_bytes(content)
            else:
                p.write_text(content)
            git(repo, "add", "--", rel)
        git(repo, "commit", "-q", "-m", message)
        return git(repo, "rev-parse", "HEAD").strip()

    return _commit


class ScriptedCredential(CredentialProvider):
    """Answers API calls from a {path-suffix: (status, body) | Exception} table."""

    kind = "scripted"

    def __init__(self, responses: dict, prefix: str = "/repos/acme/widget"):
        self.responses = responses
        self.prefix = prefix
        self.calls = []

    def request(self, method, path, params=None, timeout=None):
        self.calls.append((method, path, dict(params or {})))
        suffix = path[len(self.prefix):] if path.startswith(self.prefix) else path
        answer = self.responses.get(suffix, (404, '{"message": "Not Found"}'))
        if isinstance(answer, Exception):
            raise answer
        status, body = answer
        if not isinstance(body, str):
            body = json.dumps(body)
        return ApiResponse(body=body, status=status)


def workflow_run(run_id: int, name: str = "CI", branch: str = "main", conclusion="success") -> dict:
    """A workflow run object with fields in the order the API returns them."""
    return {
        "id": run_id,
        "name": name,
        "node_id": f"WFR_{run_id}",
        "head_branch": branch,
        "head_sha": f"{run_id:040x}",
        "path": ".github/workflows/ci.yml",
        "run_number": run_id % 100,
        "event": "push",
        "status": "completed",
        "conclusion": conclusion,
        "workflow_id": 161335,
        "pull_requests": [],
        "created_at": "2026-10-01T12:00:00Z",
        "actor": {"login": "octocat", "id": 1},
        "repository": {"id": 1296269, "node_id": "R_1", "name": "widget"},
    }


WORKFLOWS_BODY = {
    "total_count": 2,
    "workflows": [
        {"id": 161335, "node_id": "W_1", "name": "CI", "path": ".github/workflows/ci.yml", "state": "active"},
        {"id": 269289, "node_id": "W_2", "name": "Release", "path": ".github/workflows/release.yml", "state": "disabled_manually"},
    ],
}

PROTECTION_BODY = {
    "url": "https://api.github.com/repos/acme/widget/branches/main/protection",
    "required_status_checks": {"strict": True, "contexts": ["ci/test"]},
    "required_pull_request_reviews": {
        "dismiss_stale_reviews": True,
        "require_code_owner_reviews": False,
        "required_approving_review_count": 1,
    },
    "enforce_admins": {"enabled": True},
    "allow_force_pushes": {"enabled": False},
}
