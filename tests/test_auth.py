"""Tests for auth.py — credential exchange, caching, expiry, single-flight."""
import threading
import time
from unittest.mock import MagicMock

import httpx
import pytest

from sf_records.auth import TokenManager, EXPIRY_BUFFER
from sf_records.config import Config
from sf_records.utils.cache import TokenCache
from sf_records.utils.errors import AuthError, ConfigurationError


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def _make_token_response(access_token="tok-abc", **extra):
    """Build a fake httpx.Response for the token endpoint."""
    payload = {
        "access_token": access_token,
        "instance_url": "https://acme.my.salesforce.com",
        "token_type": "Bearer",
        "expires_in": 3600,
    }
    payload.update(extra)
    resp = MagicMock()
    resp.status_code = 200
    resp.text = str(payload)
    resp.json.return_value = payload
    return resp


def _manager(config, clock=None, cache=None):
    return TokenManager(config, cache=cache, clock=clock or FakeClock(), http=MagicMock())


# ── Credential exchange ──────────────────────────────────────────────

def test_exchange_sets_token(fake_config):
    auth = _manager(fake_config)
    auth._http.post.return_value = _make_token_response("my-token")

    token = auth.get_access_token()
    assert token.access_token == "my-token"
    assert token.instance_url == "https://acme.my.salesforce.com"
    auth._http.post.assert_called_once()


def test_exchange_posts_to_token_url(fake_config):
    auth = _manager(fake_config)
    auth._http.post.return_value = _make_token_response()

    auth.get_access_token()
    assert auth._http.post.call_args[0][0] == "https://login.example.com/services/oauth2/token"


def test_client_credentials_body(fake_config):
    auth = _manager(fake_config)
    auth._http.post.return_value = _make_token_response()

    auth.get_access_token()
    body = auth._http.post.call_args[1]["data"]
    assert body == {
        "grant_type": "client_credentials",
        "client_id": "test-client-id",
        "client_secret": "test-client-secret",
    }


def test_password_grant_body(password_settings):
    auth = _manager(Config(settings=password_settings))
    auth._http.post.return_value = _make_token_response()

    auth.get_access_token()
    body = auth._http.post.call_args[1]["data"]
    assert body["grant_type"] == "password"
    assert body["username"] == "user@example.com"
    assert body["password"] == "pw+sectoken"
    assert auth.grant_type == "password"


def test_scope_included_when_configured(fake_settings):
    config = Config(settings=fake_settings.model_copy(update={"scope": "api refresh_token"}))
    auth = _manager(config)
    auth._http.post.return_value = _make_token_response()

    auth.get_access_token()
    assert auth._http.post.call_args[1]["data"]["scope"] == "api refresh_token"


def test_issued_at_uses_local_clock(fake_config):
    clock = FakeClock(now=42_000.0)
    auth = _manager(fake_config, clock=clock)
    auth._http.post.return_value = _make_token_response(issued_at="1700000000000")

    assert auth.get_access_token().issued_at == 42_000.0


# ── Response defaults and derivation ─────────────────────────────────

def test_defaults_for_missing_type_and_lifetime(fake_config):
    auth = _manager(fake_config)
    resp = _make_token_response()
    resp.json.return_value = {"access_token": "t", "instance_url": "https://x.example.com"}
    auth._http.post.return_value = resp

    token = auth.get_access_token()
    assert token.token_type == "Bearer"
    assert token.expires_in == 3600


def test_instance_url_derived_from_id(fake_config):
    auth = _manager(fake_config)
    resp = _make_token_response()
    resp.json.return_value = {
        "access_token": "t",
        "id": "https://acme.my.salesforce.com/id/00Dxx0000001gEREAY/005xx000001SwiUAAS",
    }
    auth._http.post.return_value = resp

    assert auth.get_access_token().instance_url == "https://acme.my.salesforce.com"


def test_null_fields_use_defaults(fake_config):
    auth = _manager(fake_config)
    resp = _make_token_response()
    resp.json.return_value = {
        "access_token": "t", "instance_url": "https://x.example.com",
        "token_type": None, "expires_in": None,
    }
    auth._http.post.return_value = resp

    token = auth.get_access_token()
    assert token.token_type == "Bearer"
    assert token.expires_in == 3600


def test_missing_instance_url_and_id_raises(fake_config):
    auth = _manager(fake_config)
    resp = _make_token_response()
    resp.json.return_value = {"access_token": "t"}
    auth._http.post.return_value = resp

    with pytest.raises(AuthError, match="instance_url"):
        auth.get_access_token()


def test_missing_access_token_raises(fake_config):
    auth = _manager(fake_config)
    resp = _make_token_response()
    resp.json.return_value = {"instance_url": "https://x.example.com"}
    auth._http.post.return_value = resp

    with pytest.raises(AuthError, match="missing access_token"):
        auth.get_access_token()
    assert auth._cache.size == 0


def test_non_json_body_raises(fake_config):
    auth = _manager(fake_config)
    resp = _make_token_response()
    resp.json.side_effect = ValueError("Expecting value")
    resp.text = "<html>maintenance</html>"
    auth._http.post.return_value = resp

    with pytest.raises(AuthError, match="not valid JSON") as exc_info:
        auth.get_access_token()
    assert exc_info.value.body == "<html>maintenance</html>"


# ── Caching ──────────────────────────────────────────────────────────

def test_caches_token(fake_config):
    auth = _manager(fake_config)
    auth._http.post.return_value = _make_token_response("cached-tok")

    first = auth.get_access_token()
    second = auth.get_access_token()
    assert auth._http.post.call_count == 1
    assert second is first


def test_invalidate_forces_exchange(fake_config):
    auth = _manager(fake_config)
    auth._http.post.return_value = _make_token_response("fresh-tok")

    auth.get_access_token()
    auth.invalidate()
    auth.get_access_token()
    assert auth._http.post.call_count == 2


def test_invalidate_stale_keeps_newer_token(fake_config, make_token):
    auth = _manager(fake_config)
    newer = make_token("newer")
    auth._cache.put(newer)

    auth.invalidate(make_token("older"))
    assert auth._cache.get() is newer


def test_shared_cache_between_managers(fake_config):
    cache = TokenCache()
    a = _manager(fake_config, cache=cache)
    b = _manager(fake_config, cache=cache)
    a._http.post.return_value = _make_token_response("shared")

    a.get_access_token()
    assert b.get_access_token().access_token == "shared"
    b._http.post.assert_not_called()


# ── Expiry ───────────────────────────────────────────────────────────

def test_expiry_buffer_is_five_minutes():
    assert EXPIRY_BUFFER == 300


def test_not_expired_just_inside_margin(fake_config):
    clock = FakeClock(now=1_000_000.0)
    auth = _manager(fake_config, clock=clock)
    auth._http.post.return_value = _make_token_response()

    auth.get_access_token()
    clock.now += 3299
    auth.get_access_token()
    assert auth._http.post.call_count == 1


def test_expired_past_margin_triggers_exchange(fake_config):
    clock = FakeClock(now=1_000_000.0)
    auth = _manager(fake_config, clock=clock)
    auth._http.post.side_effect = [_make_token_response("first"), _make_token_response("second")]

    auth.get_access_token()
    clock.now += 3301
    assert auth.get_access_token().access_token == "second"
    assert auth._http.post.call_count == 2


# ── Single-flight ────────────────────────────────────────────────────

def test_concurrent_callers_share_one_exchange(fake_config):
    auth = TokenManager(fake_config, http=MagicMock())

    def slow_post(*args, **kwargs):
        time.sleep(0.05)
        return _make_token_response("only-one")

    auth._http.post.side_effect = slow_post

    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(auth.get_access_token())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert auth._http.post.call_count == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_concurrent_callers_share_one_failed_exchange(fake_config):
    auth = TokenManager(fake_config, http=MagicMock())

    def slow_reject(*args, **kwargs):
        time.sleep(0.05)
        return MagicMock(status_code=400, text='{"error":"invalid_grant"}')

    auth._http.post.side_effect = slow_reject

    errors = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        try:
            auth.get_access_token()
        except AuthError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert auth._http.post.call_count == 1
    assert len(errors) == 8
    assert all(e is errors[0] for e in errors)
    assert errors[0].status_code == 400


def test_call_after_failed_exchange_tries_again(fake_config):
    auth = _manager(fake_config)
    auth._http.post.side_effect = [
        MagicMock(status_code=400, text="invalid_grant"),
        _make_token_response("second-try"),
    ]

    with pytest.raises(AuthError):
        auth.get_access_token()
    assert auth.get_access_token().access_token == "second-try"
    assert auth._http.post.call_count == 2


def test_timeout_overrides_configured_request_timeout(fake_config):
    auth = TokenManager(fake_config, timeout=2.5)
    try:
        assert auth._http.timeout.read == 2.5
    finally:
        auth.close()


def test_default_timeout_from_settings(fake_config):
    auth = TokenManager(fake_config)
    try:
        assert auth._http.timeout.read == 10.0
    finally:
        auth.close()


# ── get_status ───────────────────────────────────────────────────────

def test_status_no_token(fake_config):
    status = _manager(fake_config).get_status()
    assert status.has_token is False
    assert status.is_expired is True
    assert status.grant_type == "client_credentials"


def test_status_valid_token(fake_config, make_token):
    auth = _manager(fake_config, clock=FakeClock(now=1_000_000.0))
    auth._cache.put(make_token(issued_at=1_000_000.0))

    status = auth.get_status()
    assert status.has_token is True
    assert status.is_expired is False
    assert status.seconds_remaining == 3300
    assert status.instance_url == "https://acme.my.salesforce.com"


def test_status_expired_token(fake_config, make_token):
    auth = _manager(fake_config, clock=FakeClock(now=1_010_000.0))
    auth._cache.put(make_token(issued_at=1_000_000.0))

    status = auth.get_status()
    assert status.is_expired is True
    assert status.seconds_remaining is None


# ── Error handling ───────────────────────────────────────────────────

def test_rejection_preserves_body(fake_config):
    auth = _manager(fake_config)
    err_resp = MagicMock()
    err_resp.status_code = 400
    err_resp.text = '{"error":"invalid_grant","error_description":"authentication failure"}'
    auth._http.post.return_value = err_resp

    with pytest.raises(AuthError, match="HTTP 400") as exc_info:
        auth.get_access_token()
    assert exc_info.value.status_code == 400
    assert exc_info.value.body == err_resp.text


def test_rejection_is_not_retried(fake_config):
    auth = _manager(fake_config)
    err_resp = MagicMock(status_code=401, text="unauthorized")
    auth._http.post.return_value = err_resp

    with pytest.raises(AuthError):
        auth.get_access_token()
    assert auth._http.post.call_count == 1


def test_transport_failure_raises_auth_error(fake_config):
    auth = _manager(fake_config)
    auth._http.post.side_effect = httpx.ConnectError("connection refused")

    with pytest.raises(AuthError, match="connection error"):
        auth.get_access_token()


def test_missing_credentials_raise_without_network(fake_settings):
    config = Config(settings=fake_settings.model_copy(update={"client_secret": "", "token_url": ""}))
    auth = _manager(config)

    with pytest.raises(ConfigurationError, match="client_secret, token_url"):
        auth.get_access_token()
    auth._http.post.assert_not_called()


def test_username_without_password_raises(fake_settings):
    config = Config(settings=fake_settings.model_copy(update={"username": "user@example.com"}))
    auth = _manager(config)

    with pytest.raises(ConfigurationError, match="password"):
        auth.get_access_token()
    auth._http.post.assert_not_called()
