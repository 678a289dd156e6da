"""HTTP prober — one bounded GET against a target URL.

Any HTTP response is a ``Response`` (4xx/5xx included). Timeouts,
connection and DNS errors become a ``Failure``. Latency runs from dispatch
to response headers; the body is never read.
"""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from .models import Failure, ProbeResult, Response

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "healthmon/0.1"


class ProbeError(Exception):
    """A probe did not produce an HTTP response."""

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind  # timeout | connect | protocol | invalid_url | error
        self.message = message
        super().__init__(f"{kind}: {message}")


class Prober:
    """Executes single HTTP checks on a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=False,
            headers={"User-Agent": user_agent},
        )

    async def probe(self, url: str, timeout: float) -> ProbeResult:
        """Probe ``url``; always returns within ``timeout`` seconds."""
        try:
            return await asyncio.wait_for(self._fetch(url, timeout), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Probe %s timed out after %.0fms", url, timeout * 1000)
            return Failure(reason=f"timeout after {timeout * 1000:.0f}ms")
        except ProbeError as e:
            logger.warning("Probe %s failed: %s", url, e)
            return Failure(reason=str(e))
        except Exception as e:
            logger.exception("Unexpected error probing %s", url)
            return Failure(reason=f"error: {type(e).__name__}: {e}")

    async def _fetch(self, url: str, timeout: float) -> Response:
        t0 = time.perf_counter()
        try:
            async with self._client.stream("GET", url, timeout=timeout) as resp:
                latency = (time.perf_counter() - t0) * 1000
                status = resp.status_code
        except httpx.TimeoutException as e:
            raise ProbeError("timeout", str(e) or type(e).__name__) from e
        except httpx.ConnectError as e:
            raise ProbeError("connect", str(e) or type(e).__name__) from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise ProbeError("invalid_url", str(e)) from e
        except httpx.HTTPError as e:
            raise ProbeError("protocol", f"{type(e).__name__}: {e}") from e

        return Response(status_code=status, latency_ms=max(0, round(latency)))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
