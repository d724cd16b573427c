"""Tests for credential resolution and the API client."""

import subprocess
from unittest.mock import Mock, patch

import pytest
import requests

from repoaudit.api import ApiClient
from repoaudit.credentials import (
    AmbientSession,
    BearerToken,
    api_hostname,
    parse_included_response,
    resolve_credential,
)
from repoaudit.errors import AuthError, NetworkError
from repoaudit.models import RepositoryIdentity

from conftest import ScriptedCredential

IDENTITY = RepositoryIdentity("acme", "widget")


def test_call_without_credential_raises_auth_error():
    """No resolved credential means AuthError, never a silent empty response."""
    client = ApiClient(IDENTITY, None)
    with pytest.raises(AuthError):
        client.get("/actions/workflows")


def test_call_scopes_path_to_repository():
    """Paths are relative to /repos/{owner}/{repo}."""
    cred = ScriptedCredential({"/actions/runs": (200, '{"workflow_runs": []}')})
    client = ApiClient(IDENTITY, cred)
    resp = client.get("/actions/runs", {"per_page": 10})
    assert resp.status == 200 and resp.ok
    assert cred.calls == [("GET", "/repos/acme/widget/actions/runs", {"per_page": 10})]
    client.post("/actions/runs")
    assert cred.calls[-1][0] == "POST"


def test_non_2xx_is_returned_not_raised():
    """Error statuses come back as responses for the caller to judge."""
    client = ApiClient(IDENTITY, ScriptedCredential({}))
    resp = client.get("/branches/main/protection")
    assert resp.status == 404
    assert not resp.ok


def test_bearer_token_request():
    """Token requests carry the auth and Accept headers and the timeout."""
    session = requests.Session()
    cred = BearerToken("ghp_test", api_url="https://ghe.example.com/api/v3/", session=session)
    assert session.headers["Authorization"] == "token ghp_test"
    fake = Mock(status_code=403, text='{"message": "Resource not accessible"}')
    with patch.object(session, "request", return_value=fake) as req:
        resp = ApiClient(IDENTITY, cred, timeout=5).get("/branches/main/protection")
    req.assert_called_once_with(
        "GET",
        "https://ghe.example.com/api/v3/repos/acme/widget/branches/main/protection",
        params=None,
        timeout=5,
    )
    assert resp.status == 403
    assert "Resource not accessible" in resp.body


def test_bearer_token_transport_failure():
    """requests exceptions surface as NetworkError."""
    session = requests.Session()
    cred = BearerToken("ghp_test", session=session)
    with patch.object(session, "request", side_effect=requests.ConnectionError("boom")):
        with pytest.raises(NetworkError):
            cred.request("GET", "/repos/acme/widget/actions/runs")


def test_ambient_session_parses_included_status():
    """gh exits 1 on 404 but the status line is still read."""
    out = "HTTP/2.0 404 Not Found\r\nContent-Type: application/json\r\n\r\n{\"message\":\"Branch not protected\"}"
    done = subprocess.CompletedProcess(args=[], returncode=1, stdout=out, stderr="gh: Branch not protected (HTTP 404)")
    with patch("repoaudit.credentials.subprocess.run", return_value=done) as run:
        resp = AmbientSession().request("GET", "/repos/acme/widget/actions/runs", {"per_page": 10})
    cmd = run.call_args[0][0]
    assert cmd[:5] == ["gh", "api", "-X", "GET", "--include"]
    assert cmd[5] == "/repos/acme/widget/actions/runs?per_page=10"
    assert resp.status == 404
    assert resp.body == '{"message":"Branch not protected"}'


def test_ambient_session_without_output_is_network_error():
    """gh printing nothing is a transport failure."""
    done = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="error connecting to api.github.com")
    with patch("repoaudit.credentials.subprocess.run", return_value=done):
        with pytest.raises(NetworkError):
            AmbientSession().request("GET", "/repos/acme/widget/actions/runs")


def test_parse_included_response_rejects_garbage():
    with pytest.raises(NetworkError):
        parse_included_response("gh: not logged in")
    assert parse_included_response("HTTP/1.1 200 OK\nX: y\n\n{}").status == 200


def test_resolve_prefers_ambient_session():
    """A logged-in gh wins over a token in the environment."""
    with patch.object(AmbientSession, "available", return_value=True):
        cred = resolve_credential(environ={"GH_PAT": "ghp_x"})
    assert isinstance(cred, AmbientSession)


def test_resolve_falls_back_to_token():
    """Without gh the token from token_env is used, stripped."""
    with patch.object(AmbientSession, "available", return_value=False):
        cred = resolve_credential(environ={"GH_PAT": "ghp_x"})
        assert isinstance(cred, BearerToken)
        assert cred.token == "ghp_x"
        assert resolve_credential(environ={}) is None
        assert resolve_credential(token_env="MY_TOKEN", environ={"MY_TOKEN": " t "}).token == "t"


def test_ambient_session_unavailable_without_gh():
    with patch("repoaudit.credentials.shutil.which", return_value=None):
        assert AmbientSession.available() is False


def test_api_hostname_for_enterprise_url():
    """api.github.com needs no --hostname; an Enterprise API URL names its host."""
    assert api_hostname("https://api.github.com") is None
    assert api_hostname("https://ghe.example.com/api/v3") == "ghe.example.com"


def test_ambient_session_targets_enterprise_host():
    """resolve_credential hands the API host to gh for both auth check and calls."""
    with patch.object(AmbientSession, "available", return_value=True) as available:
        cred = resolve_credential(environ={}, api_url="https://ghe.example.com/api/v3")
    available.assert_called_once_with("gh", "ghe.example.com")
    assert cred.describe() == "gh-session (ghe.example.com)"

    done = subprocess.CompletedProcess(args=[], returncode=0, stdout="HTTP/2.0 200 OK\n\n[]", stderr="")
    with patch("repoaudit.credentials.subprocess.run", return_value=done) as run:
        cred.request("GET", "/repos/acme/widget/actions/runs")
    assert run.call_args[0][0] == [
        "gh", "api", "-X", "GET", "--include", "--hostname", "ghe.example.com",
        "/repos/acme/widget/actions/runs",
    ]
