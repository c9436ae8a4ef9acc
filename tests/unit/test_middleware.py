"""
Unit Tests - Middleware
"""
from fastapi import Request, Response

from storefront.serving.api.middleware import RateLimitMiddleware


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def dummy_app(scope, receive, send):
    pass


async def call_next(request: Request) -> Response:
    return Response("ok")


def request_from(host: str) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/api/products",
        "headers": [],
        "query_string": b"",
        "client": (host, 50000),
    })


class TestRateLimit:
    async def test_limits_per_client(self):
        limiter = RateLimitMiddleware(dummy_app, max_requests=2, window_seconds=60, clock=FakeClock())

        first = await limiter.dispatch(request_from("10.0.0.1"), call_next)
        second = await limiter.dispatch(request_from("10.0.0.1"), call_next)
        third = await limiter.dispatch(request_from("10.0.0.1"), call_next)
        other = await limiter.dispatch(request_from("10.0.0.2"), call_next)

        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert second.headers["X-RateLimit-Remaining"] == "0"
        assert third.status_code == 429
        assert third.headers["Retry-After"] == "60"
        assert other.status_code == 200

    async def test_window_slides(self):
        clock = FakeClock()
        limiter = RateLimitMiddleware(dummy_app, max_requests=1, window_seconds=60, clock=clock)

        await limiter.dispatch(request_from("10.0.0.1"), call_next)
        clock.now += 61
        response = await limiter.dispatch(request_from("10.0.0.1"), call_next)

        assert response.status_code == 200

    async def test_idle_clients_are_dropped(self):
        clock = FakeClock()
        limiter = RateLimitMiddleware(dummy_app, max_requests=5, window_seconds=60, clock=clock)

        for n in range(50):
            await limiter.dispatch(request_from(f"10.0.1.{n}"), call_next)
        assert limiter.tracked_clients == 50

        clock.now += 61
        await limiter.dispatch(request_from("10.0.2.1"), call_next)

        assert limiter.tracked_clients == 1

    async def test_active_clients_survive_sweep(self):
        clock = FakeClock()
        limiter = RateLimitMiddleware(dummy_app, max_requests=5, window_seconds=60, clock=clock)

        await limiter.dispatch(request_from("10.0.0.1"), call_next)
        clock.now += 30
        await limiter.dispatch(request_from("10.0.0.2"), call_next)
        clock.now += 31
        await limiter.dispatch(request_from("10.0.0.3"), call_next)

        assert limiter.tracked_clients == 2
