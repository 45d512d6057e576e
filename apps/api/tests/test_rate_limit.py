"""Fixed-window rate limiting against an in-memory Redis stand-in."""
import pytest

from core import rate_limit
from core.rate_limit import RateLimitRule, check_rate_limit, identify_request, rate_limit_headers

from conftest import FakeRedis

RULE = RateLimitRule(limit=3, window=60)


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(rate_limit, "get_redis_client", lambda: fake)
    return fake


class TestCheckRateLimit:
    def test_counts_down_then_blocks(self, fake_redis):
        results = [check_rate_limit("user-1", "scope", RULE) for _ in range(4)]

        assert [r.success for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    def test_window_set_on_first_hit(self, fake_redis):
        check_rate_limit("user-1", "scope", RULE)

        assert fake_redis.ttls["rate_limit:scope:user-1"] == 60

    def test_identifiers_and_scopes_are_independent(self, fake_redis):
        for _ in range(3):
            check_rate_limit("user-1", "scope", RULE)

        assert check_rate_limit("user-2", "scope", RULE).success is True
        assert check_rate_limit("user-1", "other", RULE).success is True
        assert check_rate_limit("user-1", "scope", RULE).success is False

    def test_fails_open_without_redis(self):
        # conftest makes Redis unavailable by default
        results = [check_rate_limit("user-1", "scope", RULE) for _ in range(10)]

        assert all(r.success for r in results)

    def test_fails_open_on_redis_error(self, monkeypatch):
        class BrokenRedis(FakeRedis):
            def get(self, key):
                raise ConnectionError("redis went away")

        monkeypatch.setattr(rate_limit, "get_redis_client", lambda: BrokenRedis())

        assert check_rate_limit("user-1", "scope", RULE).success is True


class TestHeaders:
    def test_blocked_result_has_retry_after(self, fake_redis):
        for _ in range(3):
            check_rate_limit("user-1", "scope", RULE)
        headers = rate_limit_headers(check_rate_limit("user-1", "scope", RULE))

        assert headers["X-RateLimit-Limit"] == "3"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert int(headers["Retry-After"]) <= 60

    def test_allowed_result_has_no_retry_after(self, fake_redis):
        headers = rate_limit_headers(check_rate_limit("user-1", "scope", RULE))

        assert "Retry-After" not in headers


def _request(headers=None, client_ip="10.0.0.7"):
    from starlette.requests import Request

    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "client": (client_ip, 5000)})


class TestIdentifyRequest:
    def test_bearer_token_identifies_user(self):
        from core.security import create_access_token

        token = create_access_token({"sub": "abc-123"})

        assert identify_request(_request({"Authorization": f"Bearer {token}"})) == "user:abc-123"

    def test_invalid_token_falls_back_to_ip(self):
        assert identify_request(_request({"Authorization": "Bearer nope"})) == "ip:10.0.0.7"

    def test_forwarded_for_wins_over_peer(self):
        request = _request({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

        assert identify_request(request) == "ip:203.0.113.9"
