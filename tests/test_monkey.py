"""Tests for the fault-injection middleware."""

import asyncio
import os
import time

import httpx
import pytest
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from mockingjay.models import Behavior
from mockingjay.monkey import MonkeyMiddleware, monkey_from_yaml, wrap
from mockingjay.selector import BehaviorConfigError


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "..", "fixtures")

ALWAYS = 1.0
NEVER = 0.0
CANNED_RESPONSE = "hello, world"


def _make_delegate():
    app = FastAPI()
    app.state.calls = 0

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        app.state.calls += 1
        return PlainTextResponse(CANNED_RESPONSE, headers={"x-delegate": "yes"})

    return app


def _always(**effect):
    return [Behavior(frequency=ALWAYS, **effect)]


class TestPassThrough:
    def test_never_monkeys_when_frequency_is_nothing(self):
        delegate = _make_delegate()
        monkey = MonkeyMiddleware(delegate, [Behavior(frequency=NEVER, body="blah blah")])
        response = TestClient(monkey).get("/")
        assert response.status_code == 200
        assert response.text == CANNED_RESPONSE

    def test_output_identical_to_delegate(self):
        delegate = _make_delegate()
        monkey = MonkeyMiddleware(delegate, [
            Behavior(frequency=NEVER, status=500),
            Behavior(frequency=NEVER, garbage=10),
        ])
        direct = TestClient(delegate).get("/")
        wrapped = TestClient(monkey).get("/")
        assert wrapped.status_code == direct.status_code
        assert wrapped.headers == direct.headers
        assert wrapped.content == direct.content

    def test_residual_draw_passes_through(self):
        monkey = MonkeyMiddleware(_make_delegate(), [Behavior(frequency=0.5, status=500)], randomiser=lambda: 0.75)
        response = TestClient(monkey).get("/")
        assert response.status_code == 200
        assert response.text == CANNED_RESPONSE

    def test_no_effect_slot_passes_through(self):
        monkey = MonkeyMiddleware(_make_delegate(), [Behavior(frequency=ALWAYS)])
        response = TestClient(monkey).get("/")
        assert response.text == CANNED_RESPONSE

    def test_lifespan_does_not_consume_a_draw(self):
        draws = iter([0.1]).__next__
        monkey = MonkeyMiddleware(_make_delegate(), [Behavior(frequency=0.5, status=418)], randomiser=draws)
        with TestClient(monkey) as client:
            assert client.get("/").status_code == 418


class TestStatusAndBody:
    def test_status_and_body_override(self):
        delegate = _make_delegate()
        monkey = MonkeyMiddleware(delegate, _always(status=404, body="hello, monkey"))
        client = TestClient(monkey)
        for _ in range(5):
            response = client.get("/")
            assert response.status_code == 404
            assert response.text == "hello, monkey"
        assert delegate.state.calls == 0

    def test_body_override_defaults_to_200(self):
        monkey = MonkeyMiddleware(_make_delegate(), _always(body="This is wrong :( "))
        response = TestClient(monkey).get("/")
        assert response.status_code == 200
        assert response.text == "This is wrong :( "

    def test_status_only_keeps_delegate_response(self):
        delegate = _make_delegate()
        monkey = MonkeyMiddleware(delegate, _always(status=503))
        response = TestClient(monkey).get("/")
        assert response.status_code == 503
        assert response.text == CANNED_RESPONSE
        assert response.headers["x-delegate"] == "yes"
        assert delegate.state.calls == 1

    def test_draw_sequence_picks_each_behavior(self):
        draws = iter([0.1, 0.6, 0.9]).__next__
        monkey = MonkeyMiddleware(
            _make_delegate(),
            [Behavior(frequency=0.5, body="A"), Behavior(frequency=0.3, status=404)],
            randomiser=draws,
        )
        client = TestClient(monkey)

        first = client.get("/")
        assert (first.status_code, first.text) == (200, "A")
        second = client.get("/")
        assert (second.status_code, second.text) == (404, CANNED_RESPONSE)
        third = client.get("/")
        assert (third.status_code, third.text) == (200, CANNED_RESPONSE)


class TestGarbage:
    def test_returns_garbage(self):
        delegate = _make_delegate()
        monkey = MonkeyMiddleware(delegate, _always(garbage=1984))
        response = TestClient(monkey).get("/")
        assert response.status_code == 200
        assert len(response.content) == 1984
        assert delegate.state.calls == 0

    def test_large_garbage_is_exact(self):
        monkey = MonkeyMiddleware(_make_delegate(), _always(garbage=10_000_000))
        response = TestClient(monkey).get("/")
        assert len(response.content) == 10_000_000
        assert response.headers["content-length"] == "10000000"

    def test_zero_garbage(self):
        monkey = MonkeyMiddleware(_make_delegate(), _always(garbage=0))
        assert TestClient(monkey).get("/").content == b""

    def test_garbage_with_status(self):
        monkey = MonkeyMiddleware(_make_delegate(), _always(garbage=10, status=500))
        response = TestClient(monkey).get("/")
        assert response.status_code == 500
        assert len(response.content) == 10


class TestDelay:
    def test_delays_real_response(self):
        delegate = _make_delegate()
        monkey = MonkeyMiddleware(delegate, _always(delay=200))
        started = time.monotonic()
        response = TestClient(monkey).get("/")
        elapsed = time.monotonic() - started
        assert elapsed >= 0.2
        assert response.status_code == 200
        assert response.text == CANNED_RESPONSE
        assert response.headers["x-delegate"] == "yes"
        assert delegate.state.calls == 1

    def test_delays_do_not_block_each_other(self):
        monkey = MonkeyMiddleware(_make_delegate(), _always(delay=300))

        async def fire(count):
            transport = httpx.ASGITransport(app=monkey)
            async with httpx.AsyncClient(transport=transport, base_url="http://monkey") as client:
                return await asyncio.gather(*(client.get("/") for _ in range(count)))

        started = time.monotonic()
        responses = asyncio.run(fire(5))
        elapsed = time.monotonic() - started
        assert all(r.text == CANNED_RESPONSE for r in responses)
        assert 0.3 <= elapsed < 1.0


class TestConstruction:
    def test_loads_from_yaml(self):
        with open(os.path.join(FIXTURES_DIR, "monkey.yaml")) as f:
            monkey = monkey_from_yaml(_make_delegate(), f.read())
        assert len(monkey.behaviors) == 4

    def test_wrap_with_empty_path_returns_app(self):
        delegate = _make_delegate()
        assert wrap(delegate, "") is delegate
        assert wrap(delegate, None) is delegate

    def test_wrap_with_path(self):
        delegate = _make_delegate()
        monkey = wrap(delegate, os.path.join(FIXTURES_DIR, "monkey.yaml"))
        assert isinstance(monkey, MonkeyMiddleware)
        assert monkey.app is delegate

    def test_refuses_invalid_table(self):
        with pytest.raises(BehaviorConfigError):
            MonkeyMiddleware(_make_delegate(), [
                Behavior(frequency=0.7, body="a"),
                Behavior(frequency=0.7, body="b"),
            ])

    def test_refuses_multiple_effects(self):
        with pytest.raises(BehaviorConfigError):
            MonkeyMiddleware(_make_delegate(), _always(body="a", garbage=3))

    def test_works_as_starlette_middleware(self):
        app = _make_delegate()
        app.add_middleware(MonkeyMiddleware, behaviors=_always(status=404, body="hello, monkey"))
        response = TestClient(app).get("/")
        assert response.status_code == 404
        assert response.text == "hello, monkey"
