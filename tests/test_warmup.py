"""Tests for server warm-up tracking."""

import httpx
import pytest

from cardlink.core.exceptions import WarmupError
from cardlink.services.warmup import ServerWarmup


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestServerWarmup:
    def test_successful_warmup_marks_warm(self, make_client, recorder):
        handler = recorder([httpx.Response(200, json={"status": "ok"})])
        warmup = ServerWarmup(make_client(handler), clock=FakeClock())

        warmup.warmup()

        assert warmup.is_warm()
        assert handler.last.url.path == "/api/health"

    def test_warm_server_is_not_pinged_again(self, make_client, recorder):
        handler = recorder([httpx.Response(200, json={})])
        clock = FakeClock()
        warmup = ServerWarmup(make_client(handler), clock=clock)

        warmup.warmup()
        clock.now += 60
        warmup.warmup()

        assert handler.calls == 1

    def test_warm_window_expires(self, make_client, recorder):
        handler = recorder([httpx.Response(200, json={})])
        clock = FakeClock()
        warmup = ServerWarmup(make_client(handler), clock=clock)

        warmup.warmup()
        clock.now += 301

        assert not warmup.is_warm()
        warmup.warmup()
        assert handler.calls == 2

    def test_failure_is_single_attempt_and_raises(self, make_client, recorder, sleeps):
        handler = recorder([httpx.Response(503)])
        warmup = ServerWarmup(make_client(handler), clock=FakeClock())

        with pytest.raises(WarmupError):
            warmup.warmup()

        assert handler.calls == 1
        assert sleeps == []
        assert not warmup.is_warm()

    def test_timeout_raises_warmup_error(self, make_client, recorder):
        handler = recorder([httpx.ConnectTimeout("slow start")])
        warmup = ServerWarmup(make_client(handler), clock=FakeClock())

        with pytest.raises(WarmupError) as exc_info:
            warmup.warmup()

        assert exc_info.value.details == {"status": 0}

    def test_reset(self, make_client, recorder):
        warmup = ServerWarmup(make_client(recorder()), clock=FakeClock())
        warmup.warmup()

        warmup.reset()

        assert not warmup.is_warm()
