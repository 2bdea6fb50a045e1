"""
test_api_oauth.py — HTTP tests for the provider connect endpoints.
"""
from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from agenthub.auth.sqlite_db import get_conn
from agenthub.exceptions import UpstreamError

STATE_COOKIE = "agenthub_oauth_state"


def _start(client, provider="github"):
    return client.get(f"/oauth/{provider}", follow_redirects=False)


def _state_from(resp) -> str:
    return parse_qs(urlparse(resp.headers["location"]).query)["state"][0]


def test_start_redirects_to_provider_with_state_cookie(logged_in):
    resp = _start(logged_in)
    assert resp.status_code == 302

    location = urlparse(resp.headers["location"])
    assert location.netloc == "github.com"
    set_cookie = resp.headers["set-cookie"]
    assert set_cookie.startswith(f"{STATE_COOKIE}=")
    assert "Path=/oauth" in set_cookie
    assert "samesite=lax" in set_cookie.lower()
    assert logged_in.cookies.get(STATE_COOKIE) == _state_from(resp)


@pytest.mark.parametrize("provider", ["myspace", "legacy"])
def test_start_with_unsupported_provider_returns_400(logged_in, provider):
    resp = _start(logged_in, provider)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "UNSUPPORTED_PROVIDER"
    assert "set-cookie" not in resp.headers


def test_start_requires_login(client):
    resp = _start(client)
    assert resp.status_code == 401


def test_callback_links_account(logged_in, exchanger):
    state = _state_from(_start(logged_in))
    resp = logged_in.get("/oauth/github/callback", params={"code": "auth-code", "state": state})

    assert resp.status_code == 200
    body = resp.json()
    assert body["provider"] == "github"
    assert body["providerUserId"] == "4242"
    assert body["displayName"] == "Alice"
    assert "Max-Age=0" in resp.headers["set-cookie"]
    exchanger.exchange_token.assert_awaited_once()

    accounts = logged_in.get("/me/accounts").json()
    assert [a["providerUserId"] for a in accounts] == ["4242"]


def test_callback_without_state_cookie_is_rejected(logged_in, exchanger):
    state = _state_from(_start(logged_in))
    logged_in.cookies.delete(STATE_COOKIE)
    resp = logged_in.get("/oauth/github/callback", params={"code": "auth-code", "state": state})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "OAUTH_STATE_MISMATCH"
    exchanger.exchange_token.assert_not_called()


def test_replayed_callback_is_rejected(logged_in, exchanger):
    state = _state_from(_start(logged_in))
    params = {"code": "auth-code", "state": state}
    assert logged_in.get("/oauth/github/callback", params=params).status_code == 200

    # a replay carries the same cookie value the first callback saw
    logged_in.cookies.set(STATE_COOKIE, state, path="/oauth")
    resp = logged_in.get("/oauth/github/callback", params=params)
    assert resp.status_code == 400
    assert exchanger.exchange_token.await_count == 1


def test_callback_requires_login(client, exchanger):
    resp = client.get("/oauth/github/callback", params={"code": "c", "state": "s"})
    assert resp.status_code == 401
    exchanger.exchange_token.assert_not_called()


def test_upstream_failure_is_retryable(logged_in, exchanger):
    exchanger.exchange_token.side_effect = UpstreamError()
    state = _state_from(_start(logged_in))
    resp = logged_in.get("/oauth/github/callback", params={"code": "auth-code", "state": state})

    assert resp.status_code == 503
    assert resp.json()["error"]["retryable"] is True
    assert resp.headers["retry-after"] == "5"
    assert "Max-Age=0" in resp.headers["set-cookie"]
    assert logged_in.cookies.get(STATE_COOKIE) is None


def test_non_ascii_state_is_a_mismatch(logged_in, exchanger):
    _start(logged_in)
    resp = logged_in.get("/oauth/github/callback", params={"code": "auth-code", "state": "café"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "OAUTH_STATE_MISMATCH"
    exchanger.exchange_token.assert_not_called()


def test_mismatched_state_clears_state_cookie(logged_in, exchanger):
    _start(logged_in)
    resp = logged_in.get("/oauth/github/callback", params={"code": "auth-code", "state": "forged"})

    assert resp.status_code == 400
    assert resp.headers["set-cookie"].startswith(f"{STATE_COOKIE}=")
    assert "Max-Age=0" in resp.headers["set-cookie"]
    assert logged_in.cookies.get(STATE_COOKIE) is None


def test_conflict_clears_state_cookie(app, logged_in):
    services = app.state.auth
    bob = services.credentials.create_user(email="b@x.com", username="bob", password="Hunter2!!")
    bob_session = services.sessions.create(bob.id).session_id
    bob_state = services.oauth.start_connect(bob_session, "github").state
    asyncio.run(services.oauth.handle_callback(bob_session, "github", bob_state, {"code": "c"}))

    state = _state_from(_start(logged_in))
    resp = logged_in.get("/oauth/github/callback", params={"code": "auth-code", "state": state})

    assert resp.status_code == 409
    assert logged_in.cookies.get(STATE_COOKIE) is None


def test_startup_purges_states_expired_on_the_app_clock(app, logged_in, settings, clock):
    _start(logged_in)
    clock.advance(seconds=settings.oauth_state_ttl.total_seconds() + 1)

    with TestClient(app):
        pass

    with get_conn(settings.database_path) as conn:
        assert conn.execute("SELECT COUNT(*) FROM oauth_states").fetchone()[0] == 0
