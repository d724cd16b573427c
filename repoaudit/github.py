"""Branch protection and CI workflow reporter.

Three independent sections: branch protection, the workflow list (with the
latest runs of each workflow) and the latest runs across all workflows. A
failure in one section never stops the others. Raw responses are written to
the sink before any decoding so a decode failure keeps the raw body.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from .api import ApiClient
from .decoders import Decoded, ResponseDecoder
from .errors import AuditError, ParseError
from .models import ApiResponse, ProtectionStatus, WorkflowRun, WorkflowSummary
from .sink import ReportSink, RunLog

logger = logging.getLogger(__name__)

NO_PROTECTION_MESSAGE = "No branch protection rule found for {branch} or insufficient permissions"
# Not found and not permitted look the same from the outside.
NO_PROTECTION_STATUSES = {401, 403, 404}
RUNS_PER_WORKFLOW = 3
RECENT_RUNS = 10


class _HttpStatusError(AuditError):
    def __init__(self, status: int):
        self.status = status
        super().__init__(f"unexpected HTTP status {status}")


@dataclass
class SectionResult:
    name: str
    ok: bool = True
    degraded: bool = False
    error: str = ""


def _call(
    client: ApiClient,
    sink: ReportSink,
    log: RunLog,
    artifact: str,
    path: str,
    params: Optional[dict] = None,
) -> ApiResponse:
    """GET path, recording the verbatim outcome under artifact before returning."""
    shown = client.repo_path(path) + (f" {params}" if params else "")
    try:
        resp = client.get(path, params)
    except AuditError as e:
        log.calls.append(f"GET {shown} -> error: {e}")
        sink.write(artifact, f"unavailable: {e}")
        raise
    log.calls.append(f"GET {shown} -> {resp.status}")
    sink.write(artifact, resp.body)
    return resp


def _decode(decoder: ResponseDecoder, kind: str, body: str, section: SectionResult) -> Decoded:
    result = decoder.decode(kind, body)
    if result.degraded:
        section.degraded = True
    return result


def fetch_branch_protection(
    client: ApiClient,
    decoder: ResponseDecoder,
    sink: ReportSink,
    log: RunLog,
    branch: str = "main",
) -> ProtectionStatus:
    log.note(f"Fetching branch protection for '{branch}'...")
    try:
        resp = _call(client, sink, log, "branch_protection.json", f"/branches/{branch}/protection")
    except AuditError as e:
        return ProtectionStatus(branch=branch, state="unavailable", error=str(e))
    if resp.status in NO_PROTECTION_STATUSES:
        return ProtectionStatus(branch=branch, state="absent", status_code=resp.status)
    if not resp.ok:
        return ProtectionStatus(
            branch=branch, state="unavailable", status_code=resp.status,
            error=f"unexpected HTTP status {resp.status}",
        )
    try:
        decoded = decoder.decode("protection", resp.body)
    except ParseError as e:
        return ProtectionStatus(
            branch=branch, state="unavailable", status_code=resp.status,
            error=f"could not decode response: {e}",
        )
    status = ProtectionStatus(branch=branch, state="protected", status_code=resp.status, detail=decoded.value)
    if decoded.degraded:
        status.error = f"degraded decode: {decoded.error}"
    return status


def render_protection(status: ProtectionStatus) -> str:
    if status.state == "protected":
        return status.detail
    if status.state == "absent":
        return NO_PROTECTION_MESSAGE.format(branch=status.branch)
    return f"unavailable: {status.error or 'unknown error'}"


def fetch_workflows(
    client: ApiClient,
    decoder: ResponseDecoder,
    sink: ReportSink,
    log: RunLog,
    section: SectionResult,
) -> list[WorkflowSummary]:
    log.note("Fetching workflows list...")
    resp = _call(client, sink, log, "workflows_list.json", "/actions/workflows")
    if not resp.ok:
        raise _HttpStatusError(resp.status)
    return _decode(decoder, "workflows", resp.body, section).value


def fetch_workflow_runs(
    client: ApiClient,
    decoder: ResponseDecoder,
    sink: ReportSink,
    log: RunLog,
    section: SectionResult,
    workflow_id: int,
    per_page: int = RUNS_PER_WORKFLOW,
) -> list[WorkflowRun]:
    resp = _call(
        client, sink, log, f"workflow_runs_{workflow_id}.json",
        f"/actions/workflows/{workflow_id}/runs", {"per_page": per_page},
    )
    if not resp.ok:
        raise _HttpStatusError(resp.status)
    return _decode(decoder, "runs", resp.body, section).value[:per_page]


def fetch_recent_runs(
    client: ApiClient,
    decoder: ResponseDecoder,
    sink: ReportSink,
    log: RunLog,
    section: SectionResult,
    per_page: int = RECENT_RUNS,
) -> list[WorkflowRun]:
    log.note("Fetching recent workflow runs (global)...")
    resp = _call(client, sink, log, "recent_workflow_runs.json", "/actions/runs", {"per_page": per_page})
    if not resp.ok:
        raise _HttpStatusError(resp.status)
    return _decode(decoder, "runs", resp.body, section).value[:per_page]


def _section(name: str, fn: Callable[[SectionResult], None]) -> SectionResult:
    section = SectionResult(name=name)
    try:
        fn(section)
    except AuditError as e:
        logger.warning("%s unavailable: %s", name, e)
        section.ok = False
        section.error = str(e)
    return section


def report_protection_and_workflows(
    client: ApiClient,
    decoder: ResponseDecoder,
    sink: ReportSink,
    branch: str = "main",
    log: RunLog | None = None,
) -> list[SectionResult]:
    """Run the three API sections and write their normalized artifacts."""
    log = log if log is not None else RunLog()

    def protection(section: SectionResult) -> None:
        status = fetch_branch_protection(client, decoder, sink, log, branch)
        sink.write("branch_protection.txt", render_protection(status))
        if status.state == "unavailable":
            section.ok = False
            section.error = status.error
        elif status.error:
            section.degraded = True
            section.error = status.error

    def workflows(section: SectionResult) -> None:
        try:
            items = fetch_workflows(client, decoder, sink, log, section)
        except AuditError as e:
            sink.write("workflows_summary.txt", f"unavailable: {e}")
            sink.write("workflows_runs.txt", f"unavailable: {e}")
            raise
        sink.write("workflows_summary.txt", "\n".join(w.to_line() for w in items))
        blocks = []
        structured = []
        seen: set[int] = set()
        for w in items:
            if w.id in seen:
                continue
            seen.add(w.id)
            block = [f"Workflow ID: {w.id}"]
            try:
                runs = fetch_workflow_runs(client, decoder, sink, log, section, w.id)
            except AuditError as e:
                # One workflow's runs failing leaves the others intact.
                section.degraded = True
                block.append(f"unavailable: {e}")
                runs = []
            block.extend(r.to_line() for r in runs)
            block.append("----")
            blocks.append("\n".join(block))
            structured.append({**asdict(w), "runs": [asdict(r) for r in runs]})
        sink.write("workflows_runs.txt", "\n".join(blocks))
        sink.write("workflows_summary.json", json.dumps(structured, indent=2))

    def recent(section: SectionResult) -> None:
        try:
            runs = fetch_recent_runs(client, decoder, sink, log, section)
        except AuditError as e:
            sink.write("recent_workflow_runs_summary.txt", f"unavailable: {e}")
            raise
        sink.write("recent_workflow_runs_summary.txt", "\n".join(r.to_line() for r in runs))

    results = [
        _section("branch_protection", protection),
        _section("workflows", workflows),
        _section("recent_workflow_runs", recent),
    ]
    sink.write("api_calls.txt", "\n".join(log.calls))
    return results
