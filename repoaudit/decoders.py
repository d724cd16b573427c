"""Response decoders: structured JSON first, text-pattern extraction as fallback.

The decoder stack is chosen once at startup (``select_decoder``). With the
default ``auto`` mode a body the JSON decoder rejects is handed to the regex
decoder and the result is flagged as degraded.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from .errors import ParseError
from .models import WorkflowRun, WorkflowSummary

logger = logging.getLogger(__name__)

KINDS = ("protection", "workflows", "runs")
RUN_FIELDS = ("head_branch", "head_sha", "status", "conclusion", "event", "created_at")


@dataclass
class Decoded:
    value: Any
    decoder: str
    degraded: bool = False
    error: str = ""


class ResponseDecoder:
    name = "base"

    def decode(self, kind: str, body: str) -> Decoded:
        if kind not in KINDS:
            raise ValueError(f"Unknown response kind: {kind}")
        return Decoded(value=getattr(self, f"_{kind}")(body), decoder=self.name)

    def _protection(self, body: str) -> str:
        raise NotImplementedError

    def _workflows(self, body: str) -> list[WorkflowSummary]:
        raise NotImplementedError

    def _runs(self, body: str) -> list[WorkflowRun]:
        raise NotImplementedError


def _load(body: str) -> dict:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _enabled(section: Any) -> Optional[bool]:
    if isinstance(section, dict):
        return section.get("enabled")
    return None


class JsonDecoder(ResponseDecoder):
    name = "json"

    def _protection(self, body: str) -> str:
        data = _load(body)
        lines = ["required_status_checks:"]
        lines.append(json.dumps(data.get("required_status_checks"), indent=2, sort_keys=True))
        reviews = data.get("required_pull_request_reviews")
        if isinstance(reviews, dict):
            lines.append(
                f"required_approving_review_count: {reviews.get('required_approving_review_count')}"
            )
            lines.append(f"dismiss_stale_reviews: {reviews.get('dismiss_stale_reviews')}")
            lines.append(f"require_code_owner_reviews: {reviews.get('require_code_owner_reviews')}")
        else:
            lines.append("required_pull_request_reviews: null")
        for key in ("enforce_admins", "allow_force_pushes", "allow_deletions", "required_linear_history"):
            if key in data:
                lines.append(f"{key}: {_enabled(data[key])}")
        return "\n".join(lines)

    def _workflows(self, body: str) -> list[WorkflowSummary]:
        items = _load(body).get("workflows")
        if not isinstance(items, list):
            raise ParseError("Response has no 'workflows' list")
        try:
            return [
                WorkflowSummary(
                    id=int(w["id"]),
                    name=str(w.get("name", "")),
                    path=str(w.get("path", "")),
                    state=str(w.get("state", "")),
                )
                for w in items
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Malformed workflow entry: {e}") from e

    def _runs(self, body: str) -> list[WorkflowRun]:
        items = _load(body).get("workflow_runs")
        if not isinstance(items, list):
            raise ParseError("Response has no 'workflow_runs' list")
        try:
            return [
                WorkflowRun(
                    id=int(r["id"]),
                    name=r.get("name"),
                    **{f: r.get(f) for f in RUN_FIELDS},
                )
                for r in items
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Malformed workflow run entry: {e}") from e


_STRING = r'"((?:[^"\\]|\\.)*)"'
_FLAT_OBJECT_RE = re.compile(r"\{[^{}\[\]]*\}")
# A workflow run object opens with id, name, node_id; nested objects do not.
_RUN_ANCHOR_RE = re.compile(r'"id"\s*:\s*(\d+)\s*,\s*"name"\s*:\s*(?:' + _STRING + r'|null)\s*,\s*"node_id"')
_PROTECTION_LINE_RE = re.compile(r'"required_status_checks"|"strict"|"contexts"')


def _field(text: str, key: str) -> Optional[str]:
    m = re.search(r'"' + re.escape(key) + r'"\s*:\s*(?:' + _STRING + r'|(null|true|false|-?\d+))', text)
    if not m:
        return None
    if m.group(1) is not None:
        return m.group(1)
    return None if m.group(2) == "null" else m.group(2)


class RegexDecoder(ResponseDecoder):
    """Best-effort text extraction. Never raises on odd input."""

    name = "regex"

    def _protection(self, body: str) -> str:
        lines = ["required_status_checks:"]
        for n, line in enumerate(body.split("\n"), start=1):
            if _PROTECTION_LINE_RE.search(line):
                lines.append(f"{n}:{line.strip()}")
        return "\n".join(lines)

    def _workflows(self, body: str) -> list[WorkflowSummary]:
        found = []
        for m in _FLAT_OBJECT_RE.finditer(body):
            obj = m.group(0)
            wid = _field(obj, "id")
            path = _field(obj, "path")
            if wid is None or not wid.isdigit() or path is None:
                continue
            found.append(WorkflowSummary(
                id=int(wid),
                name=_field(obj, "name") or "",
                path=path,
                state=_field(obj, "state") or "",
            ))
        return found

    def _runs(self, body: str) -> list[WorkflowRun]:
        anchors = list(_RUN_ANCHOR_RE.finditer(body))
        runs = []
        for i, m in enumerate(anchors):
            end = anchors[i + 1].start() if i + 1 < len(anchors) else len(body)
            segment = body[m.start():end]
            runs.append(WorkflowRun(
                id=int(m.group(1)),
                name=m.group(2),
                **{f: _field(segment, f) for f in RUN_FIELDS},
            ))
        return runs


class TieredDecoder(ResponseDecoder):
    """Primary decoder with a fallback for bodies the primary rejects."""

    def __init__(self, primary: ResponseDecoder, fallback: ResponseDecoder):
        self.primary = primary
        self.fallback = fallback
        self.name = f"{primary.name}+{fallback.name}"

    def decode(self, kind: str, body: str) -> Decoded:
        try:
            return self.primary.decode(kind, body)
        except ParseError as e:
            logger.warning("Structured decode of %s failed, using %s fallback: %s", kind, self.fallback.name, e)
            result = self.fallback.decode(kind, body)
            result.degraded = True
            result.error = str(e)
            return result


def select_decoder(mode: str = "auto") -> ResponseDecoder:
    if mode == "auto":
        return TieredDecoder(JsonDecoder(), RegexDecoder())
    if mode == "json":
        return JsonDecoder()
    if mode == "regex":
        return RegexDecoder()
    raise ValueError(f"Unknown decoder mode: {mode}")
