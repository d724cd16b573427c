"""API client - repository-scoped calls against the hosting API."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from .credentials import CredentialProvider
from .errors import AuthError
from .models import ApiResponse, RepositoryIdentity

logger = logging.getLogger(__name__)


class ApiClient:
    """Single-attempt, synchronous calls under /repos/{owner}/{repo}.

    No retry, backoff or rate-limit handling. Non-2xx responses are returned
    to the caller; only a missing credential or a transport failure raises.
    """

    def __init__(
        self,
        identity: RepositoryIdentity,
        credential: CredentialProvider | None,
        timeout: Optional[float] = 30.0,
    ):
        self.identity = identity
        self.credential = credential
        self.timeout = timeout

    def repo_path(self, path: str) -> str:
        return f"/repos/{self.identity.full_name}{path}"

    def call(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, object]] = None,
    ) -> ApiResponse:
        if self.credential is None:
            raise AuthError("No credential: gh is not logged in and no token was supplied")
        full = self.repo_path(path)
        logger.debug("%s %s %s", method.upper(), full, dict(params or {}))
        resp = self.credential.request(method, full, params=params, timeout=self.timeout)
        logger.debug("%s %s -> %s", method.upper(), full, resp.status)
        return resp

    def get(self, path: str, params: Optional[Mapping[str, object]] = None) -> ApiResponse:
        return self.call("GET", path, params)

    def post(self, path: str, params: Optional[Mapping[str, object]] = None) -> ApiResponse:
        return self.call("POST", path, params)
