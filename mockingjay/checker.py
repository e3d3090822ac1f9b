"""Check a live HTTP service against declared endpoint contracts."""

import asyncio
import logging
import time
from typing import List, Optional, Sequence

import httpx

from mockingjay.models import CheckResult, Endpoint

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0  # seconds, per request


class CompatibilityChecker:
    """Replays every endpoint against a real service, all at once.

    Each endpoint gets its own task and a single attempt. The run returns
    once every task has finished, so its duration is bounded by the
    slowest endpoint rather than the sum of all of them.

    Args:
        timeout: Per-request timeout in seconds.
        max_concurrency: Optional cap on in-flight requests. None means
            one concurrent request per endpoint.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_concurrency: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.transport = transport

    def check(self, endpoints: Sequence[Endpoint], base_url: str) -> List[CheckResult]:
        """Synchronous form of :meth:`check_async`."""
        return asyncio.run(self.check_async(endpoints, base_url))

    async def check_async(self, endpoints: Sequence[Endpoint], base_url: str) -> List[CheckResult]:
        """Check every endpoint against ``base_url`` concurrently.

        Returns:
            Exactly one CheckResult per endpoint.
        """
        started = time.monotonic()
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        limits = httpx.Limits(max_connections=None, max_keepalive_connections=None)

        async with httpx.AsyncClient(
            timeout=self.timeout, limits=limits, transport=self.transport
        ) as client:

            async def run_one(endpoint: Endpoint) -> CheckResult:
                if semaphore is None:
                    return await check_endpoint(client, endpoint, base_url)
                async with semaphore:
                    return await check_endpoint(client, endpoint, base_url)

            results = await asyncio.gather(*(run_one(ep) for ep in endpoints))

        failed = sum(1 for r in results if not r.success)
        logger.info(
            "Checked %d endpoint(s) against %s in %.3fs: %d failed",
            len(results), base_url, time.monotonic() - started, failed,
        )
        return list(results)


async def check_endpoint(client: httpx.AsyncClient, endpoint: Endpoint, base_url: str) -> CheckResult:
    """Send one endpoint's request and compare the response to its contract.

    Failures to build or send the request become failed results rather
    than exceptions.
    """
    spec = endpoint.request
    url = base_url.rstrip("/") + spec.uri
    try:
        # UnicodeEncodeError (unencodable header) is a ValueError.
        request = client.build_request(
            spec.method,
            url,
            headers=spec.headers or None,
            content=spec.body.encode("utf-8") if spec.body is not None else None,
        )
    except (httpx.InvalidURL, ValueError) as exc:
        return _transport_failure(endpoint, url, f"could not build request: {type(exc).__name__}: {exc}")

    try:
        response = await client.send(request)
    except httpx.HTTPError as exc:
        return _transport_failure(endpoint, url, f"{type(exc).__name__}: {exc}")

    result = compare(endpoint, response.status_code, response.content)
    if not result.success:
        logger.warning("%s is not compatible: %s", endpoint.name, result.diagnostic)
    return result


def compare(endpoint: Endpoint, status: int, body: bytes) -> CheckResult:
    """Compare an observed response against the endpoint's expected response.

    Compatible means the same status code and byte-for-byte the same body.
    """
    expected = endpoint.response
    problems = []
    if status != expected.code:
        problems.append(f"expected {expected.code}, got {status}")
    if body != expected.body.encode("utf-8"):
        observed = body.decode("utf-8", errors="replace")
        problems.append(f"expected body {_truncate(expected.body)!r}, got {_truncate(observed)!r}")

    return CheckResult(
        name=endpoint.name,
        success=not problems,
        diagnostic="; ".join(problems),
    )


def _transport_failure(endpoint: Endpoint, url: str, detail: str) -> CheckResult:
    diagnostic = f"transport error: {detail}"
    logger.warning("%s: %s %s failed, %s", endpoint.name, endpoint.request.method, url, diagnostic)
    return CheckResult(name=endpoint.name, success=False, diagnostic=diagnostic, transport_error=True)


def _truncate(text: str, limit: int = 200) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"... ({len(text)} chars)"
