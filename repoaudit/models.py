"""Snapshots of repository and hosting-platform state gathered during one run."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RepositoryIdentity:
    """owner/name of the upstream repository, derived from the remote URL."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class BlobRecord:
    """One blob reachable from some ref. Not deduplicated across refs."""

    size: int
    object_id: str
    path: str = ""

    def to_line(self) -> str:
        return f"{self.size} {self.object_id} {self.path}".rstrip()


@dataclass(frozen=True)
class WorkTreeFileRecord:
    size: int
    path: str

    def to_line(self) -> str:
        return f"{self.size}\t{self.path}"


@dataclass(frozen=True)
class SecretMatch:
    """Heuristic hit. location is a commit id or "worktree"."""

    location: str
    file: str
    line: int
    snippet: str

    def to_line(self) -> str:
        if self.location == "worktree":
            return f"{self.file}:{self.line}:{self.snippet}"
        return f"{self.location}:{self.file}:{self.line}:{self.snippet}"


@dataclass
class ApiResponse:
    """Verbatim result of one hosting API call."""

    body: str
    status: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class ProtectionStatus:
    """Branch protection for one branch.

    state is "protected", "absent" (not found or not permitted to see it) or
    "unavailable" (no credential, transport failure, unexpected status).
    """

    branch: str
    state: str
    status_code: Optional[int] = None
    detail: str = ""
    error: str = ""


@dataclass(frozen=True)
class WorkflowSummary:
    id: int
    name: str
    path: str
    state: str

    def to_line(self) -> str:
        return f"{self.id} {self.name} {self.path} {self.state}"


@dataclass(frozen=True)
class WorkflowRun:
    id: int
    head_branch: Optional[str] = None
    head_sha: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    event: Optional[str] = None
    created_at: Optional[str] = None
    name: Optional[str] = None  # only filled for cross-workflow listings

    def to_line(self) -> str:
        parts = [
            str(self.id),
            self.name,
            self.head_branch,
            (self.head_sha or "")[:12] or None,
            self.status,
            self.conclusion,
            self.event,
            self.created_at,
        ]
        if self.name is None:
            parts.pop(1)
        return " ".join(p if p is not None else "-" for p in parts)


@dataclass
class StepOutcome:
    name: str
    ok: bool = True
    error: str = ""
    degraded: bool = False


@dataclass
class AuditReport:
    """Everything one run produced. Created fresh per run."""

    repository: Optional[RepositoryIdentity]
    started_at: str
    output_dir: str
    artifacts: dict[str, str] = field(default_factory=dict)
    steps: list[StepOutcome] = field(default_factory=list)
    summary_path: Optional[str] = None

    @property
    def degraded_steps(self) -> list[str]:
        return [s.name for s in self.steps if not s.ok or s.degraded]
