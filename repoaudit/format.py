"""Report assembly - summary file text and the boxed terminal view."""

from __future__ import annotations

import shutil
from typing import List, Optional

import click

from .models import AuditReport, RepositoryIdentity
from .sink import ReportSink

UNAVAILABLE = "(unavailable)"
EMPTY = "(none)"
BRANCH_LINES = 200
RUN_LINES = 30
SECRET_LINES = 30


def _get_width() -> int:
    try:
        return min(72, shutil.get_terminal_size((72, 24)).columns)
    except OSError:
        return 72


def _lines(content: str) -> List[str]:
    return [ln for ln in content.split("\n") if ln.strip()]


def _head(sink: ReportSink, name: str, n: int) -> str:
    content = sink.read(name)
    if content is None:
        return UNAVAILABLE
    lines = _lines(content)[:n]
    return "\n".join(lines) if lines else EMPTY


def _largest_first(sink: ReportSink, name: str, n: int) -> str:
    """Artifact is ascending by size; show the n largest, biggest first."""
    content = sink.read(name)
    if content is None:
        return UNAVAILABLE
    lines = _lines(content)
    if len(lines) == 1 and lines[0].startswith("unavailable:"):
        return lines[0]
    picked = list(reversed(lines[-n:])) if n > 0 else []
    return "\n".join(picked) if picked else EMPTY


def render_summary(
    identity: Optional[RepositoryIdentity],
    started_at: str,
    sink: ReportSink,
    degraded: List[str],
    branch: str = "main",
    rows: int = 10,
) -> str:
    """Fixed section order. Missing artifacts render as (unavailable)."""
    out = [
        f"Repository: {identity.full_name if identity else UNAVAILABLE}",
        f"Audit time: {started_at}",
        f"Degraded sections: {', '.join(degraded) if degraded else 'none'}",
        "",
        "Branches:",
        _head(sink, "branches.txt", BRANCH_LINES),
        "",
        f"Top {rows} largest blobs in history (size, object, path):",
        _largest_first(sink, "largest_blobs.txt", rows),
        "",
        f"Top {rows} large files in workspace (size, path):",
        _head(sink, "top_fs_files.txt", rows),
        "",
        "Recent workflow runs summary:",
        _head(sink, "recent_workflow_runs_summary.txt", RUN_LINES),
        "",
        f"Branch protection ({branch}):",
        _head(sink, "branch_protection.txt", BRANCH_LINES),
        "",
        "CODEOWNERS:",
        _head(sink, "codeowners.txt", BRANCH_LINES),
        "",
        "Secrets heuristics (history, worktree):",
        "history matches:",
        _head(sink, "secrets_in_history.txt", SECRET_LINES),
        "worktree matches:",
        _head(sink, "secrets_in_worktree.txt", SECRET_LINES),
    ]
    return "\n".join(out) + "\n"


def _count(report: AuditReport, name: str) -> str:
    content = report.artifacts.get(name)
    if content is None:
        return "n/a"
    lines = _lines(content)
    if lines and lines[0].startswith("unavailable:"):
        return "n/a"
    return str(sum(1 for ln in lines if not ln.startswith("... ")))


def format_console(report: AuditReport) -> str:
    """Short boxed overview for the terminal; the file holds the details."""
    width = _get_width()
    lines = []
    lines.append("┌" + "─" * (width - 2) + "┐")
    lines.append(" repoaudit · protection posture")
    lines.append("─" * width)
    repo = report.repository.full_name if report.repository else UNAVAILABLE
    lines.append(f" Repository   {repo}")
    lines.append(f" Audit time   {report.started_at}")
    lines.append("─" * width)
    protection = (report.artifacts.get("branch_protection.txt") or UNAVAILABLE).split("\n")[0]
    lines.append(f" Protection   {protection[: width - 14]}")
    lines.append(f" Workflows    {_count(report, 'workflows_summary.txt')}")
    history = _count(report, "secrets_in_history.txt")
    worktree = _count(report, "secrets_in_worktree.txt")
    secret_line = f" Secrets      {history} in history, {worktree} in worktree"
    if history not in ("0", "n/a") or worktree not in ("0", "n/a"):
        lines.append(click.style(secret_line, fg="yellow"))
    else:
        lines.append(secret_line)
    degraded = report.degraded_steps
    if degraded:
        lines.append(click.style(f" Degraded     {', '.join(degraded)}", fg="red"))
    lines.append("─" * width)
    footer = f" Summary: {report.summary_path}" if report.summary_path else " Summary not written"
    lines.append(click.style(footer, dim=True))
    lines.append("└" + "─" * (width - 2) + "┘")
    return "\n".join(lines)
