"""Report sink - the output directory each step writes its artifacts into."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Everything a run can write; only these are cleared from a reused directory.
ARTIFACT_NAMES = {
    "error.txt", "audit_run.txt", "report_summary.txt", "api_calls.txt",
    "branches.txt", "tags.txt", "git_dir_size.txt", "working_tree_size.txt",
    "recent_commits.txt", "recent_commits_with_files.txt",
    "largest_blobs.txt", "top_fs_files.txt",
    "secrets_in_history.txt", "secrets_in_worktree.txt", "codeowners.txt",
    "branch_protection.json", "branch_protection.txt",
    "workflows_list.json", "workflows_summary.txt", "workflows_summary.json", "workflows_runs.txt",
    "recent_workflow_runs.json", "recent_workflow_runs_summary.txt",
}
PER_WORKFLOW_RE = re.compile(r"^workflow_runs_\d+\.json$")


def is_artifact_name(name: str) -> bool:
    return name in ARTIFACT_NAMES or bool(PER_WORKFLOW_RE.match(name))


class ReportSink:
    """Owns one output directory for the lifetime of a run.

    Each artifact name is written exactly once. Artifacts left behind by a
    previous run are removed on creation so runs never merge.
    """

    def __init__(self, directory: Path):
        self.directory = directory
        self._written: dict[str, Path] = {}

    @classmethod
    def create(cls, directory: str | Path) -> "ReportSink":
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        for old in sorted(path.iterdir()):
            if old.is_file() and is_artifact_name(old.name):
                logger.debug("Removing previous artifact %s", old)
                old.unlink()
        return cls(path.resolve())

    def write(self, step_name: str, content: str) -> Path:
        if step_name in self._written:
            raise ValueError(f"Artifact already written: {step_name}")
        if "/" in step_name or "\\" in step_name:
            raise ValueError(f"Artifact name must be a plain file name: {step_name}")
        path = self.directory / step_name
        if content and not content.endswith("\n"):
            content += "\n"
        path.write_text(content, encoding="utf-8")
        self._written[step_name] = path
        return path

    def read(self, step_name: str) -> str | None:
        path = self._written.get(step_name)
        if path is None or not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def has(self, step_name: str) -> bool:
        return step_name in self._written

    def names(self) -> list[str]:
        return list(self._written)

    def contents(self) -> dict[str, str]:
        return {name: self.read(name) or "" for name in self._written}


@dataclass
class RunLog:
    """Progress notes and `METHOD path -> status` lines for one run."""

    calls: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def note(self, msg: str) -> None:
        logger.info(msg)
        self.notes.append(msg)
