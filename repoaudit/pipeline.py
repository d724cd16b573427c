"""Audit pipeline - runs each inspection step and assembles the report.

Steps run sequentially. Only locating the repository is fatal; every other
step is isolated, so its failure is written into its own artifacts as
``unavailable: <reason>`` and the run carries on.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .api import ApiClient
from .config import AuditConfig, resolve_output_dir
from .credentials import resolve_credential
from .decoders import select_decoder
from .errors import AuditError, ConfigurationError, ParseError
from .format import render_summary
from .github import report_protection_and_workflows
from .locator import locate_repository
from .models import AuditReport, RepositoryIdentity, StepOutcome
from .ranking import top_ascending, top_descending
from .scanner import history, worktree
from .secret_scan import render_matches, scan_history, scan_worktree
from .sink import ReportSink, RunLog

logger = logging.getLogger(__name__)

ClientFactory = Callable[[RepositoryIdentity, AuditConfig], ApiClient]


class FatalAuditError(AuditError):
    """Raised when the run cannot start. error.txt has been written."""

    def __init__(self, cause: AuditError, error_path: Path):
        self.cause = cause
        self.error_path = error_path
        super().__init__(str(cause))


def default_client_factory(identity: RepositoryIdentity, config: AuditConfig) -> ApiClient:
    credential = resolve_credential(config.token_env, api_url=config.api_url)
    return ApiClient(identity, credential, timeout=config.timeout)


def _timestamp(now: Optional[Callable[[], datetime]] = None) -> str:
    moment = now() if now else datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def _run_step(
    report: AuditReport,
    sink: ReportSink,
    name: str,
    artifacts: tuple[str, ...],
    fn: Callable[[], dict[str, str]],
) -> StepOutcome:
    """Run fn and write what it returns; on failure mark its artifacts unavailable."""
    outcome = StepOutcome(name=name)
    try:
        for artifact, content in fn().items():
            sink.write(artifact, content)
    except (AuditError, OSError) as e:
        logger.warning("Step %s failed: %s", name, e)
        outcome.ok = False
        outcome.error = str(e)
        for artifact in artifacts:
            if not sink.has(artifact):
                sink.write(artifact, f"unavailable: {e}")
    report.steps.append(outcome)
    return outcome


def run_audit(
    repo_path: str | Path,
    config: AuditConfig | None = None,
    client_factory: ClientFactory | None = None,
    now: Optional[Callable[[], datetime]] = None,
) -> AuditReport:
    """Run the whole audit for the repository at repo_path.

    Raises ConfigurationError, before anything is written, when the output
    directory is the repository root or one of its parents. Raises
    FatalAuditError (after writing error.txt) when the repository cannot be
    located. Any other failure only degrades its own section.
    """
    config = config or AuditConfig()
    repo_path = Path(repo_path).resolve()
    out_dir = resolve_output_dir(repo_path, config.output_dir)
    sink = ReportSink.create(out_dir)
    started_at = _timestamp(now)

    try:
        identity = locate_repository(repo_path, config.remote)
    except (ConfigurationError, ParseError) as e:
        error_path = sink.write("error.txt", f"ERROR: {e}")
        raise FatalAuditError(e, error_path) from e

    report = AuditReport(repository=identity, started_at=started_at, output_dir=str(sink.directory))
    log = RunLog()
    log.note(f"Audit start: {started_at}")
    log.note(f"Repository: {identity.full_name}")
    exclude = [sink.directory]

    if config.fetch:
        log.note("Fetching all remotes...")
        history.fetch_all(repo_path)

    _run_step(report, sink, "branches", ("branches.txt",),
              lambda: {"branches.txt": history.list_branches(repo_path)})
    _run_step(report, sink, "tags", ("tags.txt",),
              lambda: {"tags.txt": history.list_tags(repo_path)})
    _run_step(report, sink, "sizes", ("git_dir_size.txt", "working_tree_size.txt"), lambda: {
        "git_dir_size.txt": f"{worktree.directory_size(repo_path / worktree.METADATA_DIR)}\t.git",
        "working_tree_size.txt": f"{worktree.directory_size(repo_path, exclude)}\t.",
    })
    _run_step(report, sink, "recent_commits", ("recent_commits.txt", "recent_commits_with_files.txt"), lambda: {
        "recent_commits.txt": history.recent_log(repo_path, config.log_limit),
        "recent_commits_with_files.txt": history.recent_log_with_files(repo_path, config.log_limit),
    })
    _run_step(report, sink, "largest_blobs", ("largest_blobs.txt",), lambda: {
        "largest_blobs.txt": "\n".join(
            b.to_line() for b in top_ascending(history.list_blobs(repo_path), config.blob_limit)
        ),
    })
    _run_step(report, sink, "top_fs_files", ("top_fs_files.txt",), lambda: {
        "top_fs_files.txt": "\n".join(
            f.to_line()
            for f in top_descending(worktree.list_worktree_files(repo_path, exclude), config.file_limit)
        ),
    })
    _run_step(report, sink, "secrets_in_history", ("secrets_in_history.txt",), lambda: {
        "secrets_in_history.txt": render_matches(scan_history(repo_path, config.history_secret_limit)),
    })
    _run_step(report, sink, "secrets_in_worktree", ("secrets_in_worktree.txt",), lambda: {
        "secrets_in_worktree.txt": render_matches(
            scan_worktree(repo_path, exclude, config.worktree_secret_limit)
        ),
    })
    _run_step(report, sink, "codeowners", ("codeowners.txt",), lambda: {
        "codeowners.txt": _codeowners_text(repo_path),
    })

    client = (client_factory or default_client_factory)(identity, config)
    decoder = select_decoder(config.decoder)
    if client.credential is not None:
        log.note(f"Credential: {client.credential.describe()}")
    for section in report_protection_and_workflows(client, decoder, sink, config.branch, log):
        report.steps.append(StepOutcome(
            name=section.name, ok=section.ok, error=section.error, degraded=section.degraded,
        ))

    sink.write("audit_run.txt", "\n".join(log.notes))
    summary = render_summary(
        identity, started_at, sink, report.degraded_steps,
        branch=config.branch, rows=config.summary_rows,
    )
    report.summary_path = str(sink.write("report_summary.txt", summary))
    report.artifacts = sink.contents()
    return report


def _codeowners_text(repo_path: Path) -> str:
    content = worktree.read_codeowners(repo_path)
    if content is None:
        return "NO CODEOWNERS"
    return "CODEOWNERS found\n" + content
