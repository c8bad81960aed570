"""Redis-backed rate limiting for the account endpoints."""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network, ip_address, ip_network
from typing import Callable, Iterable, Protocol, runtime_checkable

from fastapi import status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.types import ASGIApp

from core import settings

logger = logging.getLogger(__name__)

ACCOUNT_PATH_PREFIX = "/api/v1/user"


@runtime_checkable
class SupportsRateLimitClient(Protocol):
    async def incr(self, key: str) -> int: ...

    async def expire(self, key: str, ttl: int) -> None: ...


def _parse_networks(cidrs: Iterable[str]) -> tuple[IPv4Network | IPv6Network, ...]:
    networks: list[IPv4Network | IPv6Network] = []
    for cidr in cidrs:
        try:
            networks.append(ip_network(cidr, strict=False))
        except ValueError as exc:
            raise ValueError(f"Invalid CIDR in RATE_LIMIT_TRUSTED_PROXIES: {cidr}") from exc
    return tuple(networks)


@lru_cache
def _trusted_proxy_networks() -> tuple[IPv4Network | IPv6Network, ...]:
    return _parse_networks(settings.rate_limit_trusted_proxies)


def _extract_client_ip_from_headers(request: Request) -> str | None:
    for header in settings.rate_limit_ip_headers:
        value = request.headers.get(header)
        if not value:
            continue
        for candidate in value.split(","):
            ip_candidate = candidate.strip()
            if not ip_candidate:
                continue
            try:
                ip_address(ip_candidate)
            except ValueError:
                continue
            return ip_candidate
    return None


def _remote_ip(request: Request) -> tuple[str | None, IPv4Address | IPv6Address | None]:
    host = request.client.host if request.client else None
    if not host:
        return None, None
    try:
        addr = ip_address(host)
    except ValueError:
        return host, None
    return host, addr


def _is_trusted_proxy(remote_ip: IPv4Address | IPv6Address | None) -> bool:
    if remote_ip is None:
        return False
    return any(remote_ip in network for network in _trusted_proxy_networks())


def default_client_identifier(request: Request) -> str:
    """Resolve the client address used as the rate-limit key.

    Forwarded-for headers are honoured only when the peer is a configured
    trusted proxy; otherwise clients could pick their own bucket.
    """
    remote_host, remote_ip = _remote_ip(request)

    if _is_trusted_proxy(remote_ip):
        forwarded_ip = _extract_client_ip_from_headers(request)
        if forwarded_ip:
            return forwarded_ip

    if remote_host:
        return remote_host

    return "anonymous"


class RateLimiter:
    """Simple fixed-window rate limiter backed by Redis."""

    def __init__(
        self,
        redis_client: SupportsRateLimitClient,
        limit: int,
        window_seconds: int,
        prefix: str = "rate-limit",
    ) -> None:
        self.redis = redis_client
        self.limit = max(limit, 0)
        self.window_seconds = max(window_seconds, 0)
        self.prefix = prefix

    async def allow(self, key: str) -> bool:
        """Return True when the request should be allowed, False if limited."""
        if self.limit == 0 or self.window_seconds == 0:
            return True

        bucket = int(time.time()) // self.window_seconds
        redis_key = f"{self.prefix}:{key}:{bucket}"

        count = await self.redis.incr(redis_key)
        if count == 1:
            await self.redis.expire(redis_key, self.window_seconds)
        return count <= self.limit


@lru_cache
def get_redis_client() -> SupportsRateLimitClient:
    """Return a cached async Redis client."""
    return Redis.from_url(settings.redis_url, decode_responses=False)


_cached_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Singleton accessor for the shared rate limiter."""
    global _cached_rate_limiter
    if _cached_rate_limiter is None:
        _cached_rate_limiter = RateLimiter(
            redis_client=get_redis_client(),
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    return _cached_rate_limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Override the cached rate limiter (primarily for tests)."""
    global _cached_rate_limiter
    _cached_rate_limiter = limiter


def _service_unavailable() -> JSONResponse:
    return JSONResponse(
        {"detail": "Service unavailable"},
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle requests under the limited path prefixes.

    Account endpoints fail closed: if the limiter backend cannot be
    reached they answer 503 instead of accepting unthrottled credential
    guessing.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter_factory: Callable[[], RateLimiter],
        limited_prefixes: Iterable[str] = (ACCOUNT_PATH_PREFIX,),
        client_identifier: Callable[[Request], str] | None = None,
    ) -> None:
        super().__init__(app)
        self.limiter_factory = limiter_factory
        self.limited_prefixes = tuple(limited_prefixes)
        self.client_identifier = client_identifier or default_client_identifier

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        if request.scope["type"] != "http" or not self._is_limited(request.url.path):
            return await call_next(request)

        try:
            limiter = self.limiter_factory()
        except (RedisError, OSError, ValueError) as exc:
            logger.warning("Rate limiter unavailable", exc_info=exc)
            return _service_unavailable()

        client_key = self.client_identifier(request) or "anonymous"
        try:
            is_allowed = await limiter.allow(client_key)
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter backend failure", exc_info=exc)
            return _service_unavailable()

        if not is_allowed:
            return JSONResponse(
                {"detail": "Too Many Requests"},
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            )

        return await call_next(request)

    def _is_limited(self, path: str) -> bool:
        return any(
            path == prefix or path.startswith(f"{prefix}/")
            for prefix in self.limited_prefixes
        )
