"""Credential providers for the hosting API.

Resolved once at startup and handed to the ApiClient. The ambient `gh` CLI
session wins when it is installed and logged in; otherwise a bearer token
from the environment is used.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from typing import Mapping, Optional
from urllib.parse import urlencode, urlsplit

import requests

from .errors import NetworkError
from .models import ApiResponse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
ACCEPT_HEADER = "application/vnd.github.v3+json"
_STATUS_LINE_RE = re.compile(r"^HTTP/[\d.]+\s+(\d{3})")
DEFAULT_HOSTNAME = "github.com"


def _with_query(path: str, params: Optional[Mapping[str, object]]) -> str:
    if not params:
        return path
    return f"{path}?{urlencode(params)}"


def api_hostname(api_url: str) -> str | None:
    """gh hostname for an API base URL; None for github.com itself.

    api.github.com maps to github.com, Enterprise `https://host/api/v3` to host.
    """
    host = (urlsplit(api_url).hostname or "").lower()
    if host in ("", "api.github.com", DEFAULT_HOSTNAME):
        return None
    return host


class CredentialProvider:
    """Base for the two credential strategies."""

    kind = "none"

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, object]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResponse:
        raise NotImplementedError

    def describe(self) -> str:
        return self.kind


class AmbientSession(CredentialProvider):
    """Calls go through `gh api`, reusing whatever login gh already has."""

    kind = "gh-session"

    def __init__(self, executable: str = "gh", hostname: str | None = None):
        self.executable = executable
        self.hostname = hostname

    @staticmethod
    def _host_args(hostname: str | None) -> list[str]:
        return ["--hostname", hostname] if hostname else []

    @classmethod
    def available(cls, executable: str = "gh", hostname: str | None = None) -> bool:
        path = shutil.which(executable)
        if not path:
            return False
        try:
            result = subprocess.run(
                [path, "auth", "status", *cls._host_args(hostname)],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0

    def request(self, method, path, params=None, timeout=None) -> ApiResponse:
        cmd = [
            self.executable, "api", "-X", method.upper(), "--include",
            *self._host_args(self.hostname), _with_query(path, params),
        ]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise NetworkError(f"gh api {path} failed: {e}") from e
        # gh exits non-zero on 4xx/5xx but still prints the response.
        if not result.stdout:
            raise NetworkError(f"gh api {path} failed: {result.stderr.strip() or 'no output'}")
        return parse_included_response(result.stdout)

    def describe(self) -> str:
        return f"{self.kind} ({self.hostname or DEFAULT_HOSTNAME})"


def parse_included_response(raw: str) -> ApiResponse:
    """Split `gh api --include` output into status code and body."""
    text = raw.replace("\r\n", "\n")
    head, sep, body = text.partition("\n\n")
    if not sep:
        head, body = text, ""
    m = _STATUS_LINE_RE.match(head)
    if not m:
        raise NetworkError(f"Unexpected gh api output: {head.splitlines()[0] if head else '(empty)'}")
    return ApiResponse(body=body, status=int(m.group(1)))


class BearerToken(CredentialProvider):
    """Personal access token sent as an Authorization header."""

    kind = "bearer-token"

    def __init__(self, token: str, api_url: str = DEFAULT_API_URL, session: requests.Session | None = None):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"token {token}",
            "Accept": ACCEPT_HEADER,
        })

    def request(self, method, path, params=None, timeout=None) -> ApiResponse:
        url = f"{self.api_url}{path}"
        try:
            resp = self.session.request(method.upper(), url, params=params, timeout=timeout)
        except requests.RequestException as e:
            raise NetworkError(f"{method.upper()} {url} failed: {e}") from e
        return ApiResponse(body=resp.text, status=resp.status_code)

    def describe(self) -> str:
        return f"{self.kind} ({self.api_url})"


def resolve_credential(
    token_env: str = "GH_PAT",
    environ: Optional[Mapping[str, str]] = None,
    api_url: str = DEFAULT_API_URL,
    gh_executable: str = "gh",
) -> CredentialProvider | None:
    """Pick the credential strategy for this run. None when neither is usable."""
    env = os.environ if environ is None else environ
    hostname = api_hostname(api_url)
    if AmbientSession.available(gh_executable, hostname):
        logger.debug("Using authenticated gh session for %s", hostname or DEFAULT_HOSTNAME)
        return AmbientSession(gh_executable, hostname)
    token = (env.get(token_env) or "").strip()
    if token:
        logger.debug("Using bearer token from %s", token_env)
        return BearerToken(token, api_url=api_url)
    logger.warning("gh not available and %s not set; API sections will be unavailable", token_env)
    return None
