"""Serve declared endpoints as a fake HTTP service."""

import logging
from typing import Mapping, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from mockingjay.models import Endpoint, RequestSpec

logger = logging.getLogger(__name__)

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def request_matches(
    spec: RequestSpec,
    method: str,
    path: str,
    query: str,
    headers: Mapping[str, str],
    body: bytes,
) -> bool:
    """Return True if an incoming request satisfies a declared request."""
    if spec.method.upper() != method.upper():
        return False

    if "?" in spec.uri:
        if spec.uri != f"{path}?{query}":
            return False
    elif spec.uri != path:
        return False

    lowered = {k.lower(): v for k, v in headers.items()}
    for name, value in spec.headers.items():
        if lowered.get(name.lower()) != value:
            return False

    if spec.body is not None and spec.body.encode("utf-8") != body:
        return False
    return True


def find_endpoint(endpoints: Sequence[Endpoint], method, path, query, headers, body) -> Optional[Endpoint]:
    for endpoint in endpoints:
        if request_matches(endpoint.request, method, path, query, headers, body):
            return endpoint
    return None


def create_fake_server(endpoints: Sequence[Endpoint]) -> FastAPI:
    """Build a FastAPI app answering each declared request with its response."""
    app = FastAPI(title="mockingjay fake server")
    app.state.endpoints = tuple(endpoints)

    @app.api_route("/{path:path}", methods=_METHODS)
    async def serve(request: Request):
        body = await request.body()
        endpoint = find_endpoint(
            app.state.endpoints,
            request.method,
            request.url.path,
            request.url.query,
            request.headers,
            body,
        )
        if endpoint is None:
            logger.info("No endpoint matches %s %s", request.method, request.url.path)
            return PlainTextResponse(
                f"no endpoint matches {request.method} {request.url.path}", status_code=404
            )

        logger.debug("Serving %r for %s %s", endpoint.name, request.method, request.url.path)
        return Response(
            content=endpoint.response.body,
            status_code=endpoint.response.code,
            headers=dict(endpoint.response.headers),
        )

    return app
