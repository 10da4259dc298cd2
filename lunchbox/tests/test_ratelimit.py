from __future__ import annotations

from unittest.mock import MagicMock, patch

from starlette.requests import Request

from lunchbox.ratelimit.config import RateLimitConfig
from lunchbox.ratelimit.dependency import client_ip
from lunchbox.ratelimit.limiter import InMemoryRateLimiter, RedisRateLimiter, build_limiter


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _request(headers: dict[str, str], client=("127.0.0.1", 5000)) -> Request:
    return Request({
        "type": "http",
        "method": "POST",
        "path": "/recommendations",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    })


def test_admits_up_to_capacity_then_denies():
    limiter = InMemoryRateLimiter(RateLimitConfig(window_s=60.0, capacity=20), clock=FakeClock())

    results = [limiter.admit("203.0.113.5") for _ in range(21)]

    assert results[:20] == [True] * 20
    assert results[20] is False


def test_window_resets_after_it_elapses():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(RateLimitConfig(window_s=60.0, capacity=20), clock=clock)
    for _ in range(21):
        limiter.admit("203.0.113.5")

    clock.now += 60.001

    assert limiter.admit("203.0.113.5") is True
    record = limiter.get_record("203.0.113.5")
    assert record.count == 1
    assert record.window_start == clock.now


def test_window_boundary_is_still_inside_window():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(RateLimitConfig(window_s=60.0, capacity=1), clock=clock)
    limiter.admit("a")

    clock.now += 60.0

    assert limiter.admit("a") is False


def test_denied_requests_keep_counting():
    limiter = InMemoryRateLimiter(RateLimitConfig(window_s=60.0, capacity=2), clock=FakeClock())
    for _ in range(5):
        limiter.admit("a")

    assert limiter.get_record("a").count == 5


def test_sources_are_counted_independently():
    limiter = InMemoryRateLimiter(RateLimitConfig(window_s=60.0, capacity=1), clock=FakeClock())

    assert limiter.admit("a") is True
    assert limiter.admit("a") is False
    assert limiter.admit("b") is True


def test_reset_clears_all_records():
    limiter = InMemoryRateLimiter(RateLimitConfig(capacity=1), clock=FakeClock())
    limiter.admit("a")
    limiter.reset()

    assert limiter.get_record("a") is None
    assert limiter.admit("a") is True


def test_redis_limiter_sets_expiry_on_first_hit():
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [1, -1]
    limiter = RedisRateLimiter(client, RateLimitConfig(window_s=60.0, capacity=20, namespace="rl"))

    assert limiter.admit("203.0.113.5") is True
    client.pipeline.return_value.incr.assert_called_once_with("rl:default:203.0.113.5")
    client.expire.assert_called_once_with("rl:default:203.0.113.5", 60)


def test_redis_limiter_denies_over_capacity():
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [21, 42]
    limiter = RedisRateLimiter(client, RateLimitConfig(capacity=20))

    assert limiter.admit("203.0.113.5") is False
    client.expire.assert_not_called()


def test_redis_limiter_admits_when_store_is_down():
    client = MagicMock()
    client.pipeline.side_effect = ConnectionError("redis down")
    limiter = RedisRateLimiter(client, RateLimitConfig(capacity=20))

    assert limiter.admit("203.0.113.5") is True


def test_client_ip_prefers_first_forwarded_address():
    request = _request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1", "X-Real-IP": "198.51.100.7"})
    assert client_ip(request) == "203.0.113.5"


def test_client_ip_falls_back_to_real_ip_header():
    assert client_ip(_request({"X-Real-IP": "198.51.100.7"})) == "198.51.100.7"


def test_client_ip_falls_back_to_peer_then_unknown():
    assert client_ip(_request({})) == "127.0.0.1"
    assert client_ip(_request({}, client=None)) == "unknown"


def test_redis_limiter_scopes_count_separately():
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [1, 60]
    config = RateLimitConfig(namespace="rl")
    gateway = RedisRateLimiter(client, config, scope="gateway")
    logs = RedisRateLimiter(client, config, scope="loading_logs")

    gateway.admit("203.0.113.5")
    logs.admit("203.0.113.5")

    keys = [c.args[0] for c in client.pipeline.return_value.incr.call_args_list]
    assert keys == ["rl:gateway:203.0.113.5", "rl:loading_logs:203.0.113.5"]


@patch("lunchbox.ratelimit.limiter.redis.Redis.from_url")
def test_build_limiter_uses_redis_per_scope(mock_from_url):
    config = RateLimitConfig(redis_url="redis://localhost:6379/0", namespace="rl")

    gateway = build_limiter(config, "gateway")
    logs = build_limiter(config, "loading_logs")

    assert isinstance(gateway, RedisRateLimiter)
    assert gateway.namespace == "rl:gateway"
    assert logs.namespace == "rl:loading_logs"


def test_build_limiter_defaults_to_memory():
    assert isinstance(build_limiter(RateLimitConfig(redis_url="")), InMemoryRateLimiter)
