"""Async HTTP client with retry/backoff and request budgeting."""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class ProviderUnavailableError(RuntimeError):
    pass


class BudgetExceededError(RuntimeError):
    pass


@dataclass
class RequestMetrics:
    """Per-run request counters; the only source of request counts."""

    network_search: int = 0
    network_geocode: int = 0
    failed_search: int = 0
    failed_geocode: int = 0

    def inc_network(self, kind: str) -> None:
        if kind == "search":
            self.network_search += 1
        elif kind == "geocode":
            self.network_geocode += 1
        else:
            raise ValueError(f"Unknown request kind: {kind}")

    def inc_failure(self, kind: str) -> None:
        if kind == "search":
            self.failed_search += 1
        elif kind == "geocode":
            self.failed_geocode += 1
        else:
            raise ValueError(f"Unknown request kind: {kind}")


class RequestBudget:
    def __init__(
        self,
        max_search: int,
        max_geocode: int,
        on_consume: Optional[Callable[[str, int, int], None]] = None,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.max_search = max_search
        self.max_geocode = max_geocode
        self.on_consume = on_consume
        self.metrics = metrics if metrics is not None else RequestMetrics()

    def consume(self, kind: str) -> None:
        if kind == "search":
            used, limit = self.metrics.network_search, self.max_search
        elif kind == "geocode":
            used, limit = self.metrics.network_geocode, self.max_geocode
        else:
            raise ValueError(f"Unknown budget kind: {kind}")
        if used >= limit:
            raise BudgetExceededError(
                f"{kind.capitalize()} request budget exceeded: {used} >= {limit}"
            )
        self.metrics.inc_network(kind)
        if self.on_consume:
            self.on_consume(kind, self.metrics.network_search, self.metrics.network_geocode)


class HttpClient:
    def __init__(
        self,
        api_key: str,
        timeout: float = 10,
        retry_max: int = 3,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.retry_max = retry_max
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.session: Optional[Any] = None

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if isinstance(self.session, aiohttp.ClientSession) and not self.session.closed:
            await self.session.close()
        self.session = None

    def _get_session(self) -> Any:
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Authorization": f"KakaoAK {self.api_key}"}
        session = self._get_session()

        for attempt in range(1, self.retry_max + 1):
            try:
                async with session.get(url, params=params, headers=headers) as resp:
                    status = resp.status
                    if status == 200:
                        try:
                            payload = await resp.json(content_type=None)
                        except ValueError as exc:
                            logger.error("Non-JSON response from %s", url)
                            raise ProviderUnavailableError(f"Non-JSON response from {url}") from exc
                        if not isinstance(payload, dict):
                            raise ProviderUnavailableError(f"Unexpected payload type from {url}")
                        return payload

                    if status in RETRYABLE_STATUSES:
                        logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                        if attempt >= self.retry_max:
                            raise ProviderUnavailableError(f"HTTP {status} from {url}")
                        retry_after = resp.headers.get("Retry-After")
                        if not await self._sleep_retry_after(retry_after):
                            await self._sleep_backoff(attempt)
                        continue

                    # Non-retryable
                    logger.error("HTTP %s from %s", status, url)
                    raise ProviderUnavailableError(f"HTTP {status} from {url}")
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt >= self.retry_max:
                    raise ProviderUnavailableError(f"Request to {url} failed: {exc}") from exc
                logger.warning("Request to %s failed (attempt %s): %s", url, attempt, exc)
                await self._sleep_backoff(attempt)

        raise ProviderUnavailableError("Unexpected HTTP retry loop exit")

    async def _sleep_backoff(self, attempt: int) -> None:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        await asyncio.sleep(base + jitter)

    async def _sleep_retry_after(self, retry_after: Optional[str]) -> bool:
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max))
        await asyncio.sleep(delay)
        return True
