"""ASGI middleware that randomly misbehaves according to a behavior table."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from mockingjay.loader import behaviors_from_yaml, load_behaviors
from mockingjay.models import Behavior
from mockingjay.selector import Randomiser, SystemRandomiser, select, validate_behaviors

logger = logging.getLogger(__name__)

GARBAGE_CHUNK_SIZE = 64 * 1024
_GARBAGE_CHUNK = b"\xde\xad\xbe\xef" * (GARBAGE_CHUNK_SIZE // 4)


class MonkeyMiddleware:
    """Wraps an ASGI app and corrupts or delays a share of its responses.

    Every HTTP request draws once from the randomiser and consults the
    behavior table. Requests that select nothing go to the wrapped app
    untouched.

    Args:
        app: The delegate ASGI application.
        behaviors: The behavior table, in selection order.
        randomiser: Zero-argument callable returning a float in [0, 1).
            Defaults to a SystemRandomiser.

    Raises:
        BehaviorConfigError: If the behavior table is invalid.
    """

    def __init__(self, app, behaviors: Sequence[Behavior], randomiser: Optional[Randomiser] = None):
        validate_behaviors(behaviors)
        self.app = app
        self.behaviors = tuple(behaviors)
        self.randomiser = randomiser or SystemRandomiser()
        logger.info("Monkey loaded %d behavior(s)", len(self.behaviors))
        for behavior in self.behaviors:
            logger.info("  %s", behavior.describe())

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        behavior = select(self.behaviors, self.randomiser())
        if behavior is None or not behavior.effects():
            await self.app(scope, receive, send)
            return

        logger.debug("Monkeying with %s %s: %s", scope.get("method"), scope.get("path"), behavior.describe())

        if behavior.delay is not None:
            response = await _capture(self.app, scope, receive)
            await asyncio.sleep(behavior.delay / 1000)
            await response.replay(send)
        elif behavior.garbage is not None:
            await _send_garbage(send, behavior.garbage, behavior.status or 200)
        elif behavior.body is not None:
            await _send_body(send, behavior.body.encode("utf-8"), behavior.status or 200)
        else:
            response = await _capture(self.app, scope, receive)
            response.status = behavior.status
            await response.replay(send)


def monkey_from_yaml(app, text: str, randomiser: Optional[Randomiser] = None) -> MonkeyMiddleware:
    """Build the middleware from a YAML behavior document."""
    return MonkeyMiddleware(app, behaviors_from_yaml(text), randomiser)


def wrap(app, config_path: Optional[str], randomiser: Optional[Randomiser] = None):
    """Wrap ``app`` with the behaviors in ``config_path``.

    An empty path means no monkeying: ``app`` is returned as is.
    """
    if not config_path:
        return app
    return MonkeyMiddleware(app, load_behaviors(config_path), randomiser)


# -- internal helpers ---------------------------------------------------------


@dataclass
class _CapturedResponse:
    status: int = 200
    headers: List = field(default_factory=list)
    body: bytearray = field(default_factory=bytearray)

    async def replay(self, send):
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self.headers,
        })
        await send({"type": "http.response.body", "body": bytes(self.body)})


async def _capture(app, scope, receive) -> _CapturedResponse:
    captured = _CapturedResponse()

    async def send(message):
        if message["type"] == "http.response.start":
            captured.status = message["status"]
            captured.headers = list(message.get("headers", []))
        elif message["type"] == "http.response.body":
            captured.body.extend(message.get("body", b""))

    await app(scope, receive, send)
    return captured


async def _send_body(send, body: bytes, status: int):
    await send({
        "type": "http.response.start",
        "status": status,
        "headers": [
            (b"content-type", b"text/plain; charset=utf-8"),
            (b"content-length", str(len(body)).encode("latin-1")),
        ],
    })
    await send({"type": "http.response.body", "body": body})


async def _send_garbage(send, size: int, status: int):
    await send({
        "type": "http.response.start",
        "status": status,
        "headers": [
            (b"content-type", b"application/octet-stream"),
            (b"content-length", str(size).encode("latin-1")),
        ],
    })
    remaining = size
    while remaining > GARBAGE_CHUNK_SIZE:
        await send({"type": "http.response.body", "body": _GARBAGE_CHUNK, "more_body": True})
        remaining -= GARBAGE_CHUNK_SIZE
    await send({"type": "http.response.body", "body": _GARBAGE_CHUNK[:remaining]})
