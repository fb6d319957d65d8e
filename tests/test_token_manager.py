"""Unit tests for feishu_docs.services.token_manager — TokenManager."""

import threading

import pytest
import requests

from feishu_docs.errors import AuthError
from feishu_docs.services.token_manager import Credentials, TokenManager

from fakes import BASE_URL, FakeResponse, token_payload


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _manager(session, clock=None, credentials=None):
    return TokenManager(
        credentials or Credentials("cli_app", "secret"),
        session=session,
        base_url=BASE_URL,
        timeout=5,
        clock=clock or Clock(),
    )


class TestTokenCaching:

    def test_second_call_inside_window_reuses_token(self, session):
        mgr = _manager(session)
        assert mgr.get_token() == "t-123"
        assert mgr.get_token() == "t-123"
        assert session.post.call_count == 1

    def test_expiry_is_lifetime_minus_margin(self, session):
        mgr = _manager(session, clock=Clock(1000.0))
        mgr.get_token()
        assert mgr.token.expires_at == 1000.0 + 7200 - 300

    def test_exchange_posts_credentials(self, session):
        _manager(session).get_token()
        url = session.post.call_args.args[0]
        assert url == f"{BASE_URL}/auth/v3/tenant_access_token/internal"
        assert session.post.call_args.kwargs["json"] == {
            "app_id": "cli_app",
            "app_secret": "secret",
        }

    def test_refreshes_once_past_expiry(self, session):
        clock = Clock(1000.0)
        mgr = _manager(session, clock=clock)
        mgr.get_token()

        clock.now = 1000.0 + 6900  # exactly at expiry
        session.post.return_value = FakeResponse(token_payload("t-456"))
        assert mgr.get_token() == "t-456"
        assert session.post.call_count == 2

    def test_invalidate_forces_new_exchange(self, session):
        mgr = _manager(session)
        mgr.get_token()
        mgr.invalidate()
        mgr.get_token()
        assert session.post.call_count == 2


class TestTokenFailures:

    def test_non_zero_code_raises_auth_error(self, session):
        session.post.return_value = FakeResponse({"code": 10003, "msg": "invalid app_secret"})
        with pytest.raises(AuthError, match="invalid app_secret"):
            _manager(session).get_token()

    def test_network_error_raises_auth_error(self, session):
        session.post.side_effect = requests.ConnectionError("boom")
        with pytest.raises(AuthError):
            _manager(session).get_token()

    def test_non_json_body_raises_auth_error(self, session):
        session.post.return_value = FakeResponse(ValueError("not json"), status_code=502)
        with pytest.raises(AuthError):
            _manager(session).get_token()

    @pytest.mark.parametrize("expire", [None, 0, -60, "soon"])
    def test_unusable_lifetime_raises_auth_error(self, session, expire):
        payload = {"code": 0, "msg": "ok", "tenant_access_token": "t-123"}
        if expire is not None:
            payload["expire"] = expire
        session.post.return_value = FakeResponse(payload)
        mgr = _manager(session)
        with pytest.raises(AuthError, match="lifetime"):
            mgr.get_token()
        assert mgr.token is None

    def test_missing_credentials_never_hit_the_network(self, session):
        mgr = _manager(session, credentials=Credentials("", ""))
        with pytest.raises(AuthError):
            mgr.get_token()
        session.post.assert_not_called()

    def test_failure_is_not_cached(self, session):
        mgr = _manager(session)
        session.post.side_effect = [
            requests.ConnectionError("boom"),
            FakeResponse(token_payload()),
        ]
        with pytest.raises(AuthError):
            mgr.get_token()
        assert mgr.get_token() == "t-123"


class TestSingleFlight:

    def test_concurrent_callers_share_one_exchange(self, session):
        entered = threading.Event()
        release = threading.Event()

        def slow_post(*args, **kwargs):
            entered.set()
            release.wait(timeout=5)
            return FakeResponse(token_payload())

        session.post.side_effect = slow_post
        mgr = _manager(session)
        results = []

        def worker():
            results.append(mgr.get_token())

        leader = threading.Thread(target=worker)
        leader.start()
        assert entered.wait(timeout=5)

        followers = [threading.Thread(target=worker) for _ in range(4)]
        for t in followers:
            t.start()
        release.set()
        for t in [leader, *followers]:
            t.join(timeout=5)

        assert results == ["t-123"] * 5
        assert session.post.call_count == 1

    def test_waiters_receive_the_leaders_error(self, session):
        entered = threading.Event()
        release = threading.Event()

        def failing_post(*args, **kwargs):
            entered.set()
            release.wait(timeout=5)
            return FakeResponse({"code": 10014, "msg": "app not found"})

        session.post.side_effect = failing_post
        mgr = _manager(session)
        errors = []

        def worker():
            try:
                mgr.get_token()
            except AuthError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(3)]
        threads[0].start()
        assert entered.wait(timeout=5)
        for t in threads[1:]:
            t.start()
        release.set()
        for t in threads:
            t.join(timeout=5)

        assert len(errors) == 3
