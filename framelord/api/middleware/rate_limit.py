"""Rate limiting middleware for the FrameLord API

Per-IP request limits (per minute and per hour) kept in memory.

Security features:
- IP spoofing protection (X-Forwarded-For is only trusted behind Cloud Run
  or in development)
- Bounded memory via TTLCache buckets
"""

from __future__ import annotations

import ipaddress
import os
import time
from collections.abc import Callable
from typing import Any

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from framelord.config import RATE_LIMIT_MAX_IPS, RATE_LIMIT_RPH, RATE_LIMIT_RPM
from framelord.observability.telemetry import counter, log_event

# Cloud Run sets this header; X-Forwarded-For is only trusted when present
TRUSTED_PROXY_HEADER = "X-Cloud-Trace-Context"

EXEMPT_PATHS = frozenset({"/", "/health", "/api/stripe/webhook"})


def _is_valid_ip(ip_str: str) -> bool:
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def _first_forwarded_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded:
        return None
    ip = forwarded.split(",")[0].strip()
    return ip if _is_valid_ip(ip) else None


def get_client_ip(request: Request) -> str:
    """Client IP with spoofing protection.

    Also used as the anonymous client id for the public FrameScan gate and
    the LLM budget of unauthenticated callers.
    """
    if TRUSTED_PROXY_HEADER in request.headers:
        ip = _first_forwarded_ip(request)
        if ip:
            return ip

    if os.getenv("FRAMELORD_ENV", "development") == "development":
        ip = _first_forwarded_ip(request)
        if ip:
            return ip
        real_ip = request.headers.get("X-Real-IP")
        if real_ip and _is_valid_ip(real_ip):
            return real_ip

    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Limits requests per client IP (60/min and 1000/hour by default).

    Single-process only; a multi-instance deployment needs a shared store.
    """

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = RATE_LIMIT_RPM,
        requests_per_hour: int = RATE_LIMIT_RPH,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour

        # {ip: [timestamp, ...]}; idle IPs expire with the cache TTL
        self.minute_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=120
        )
        self.hour_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=7200
        )

    @staticmethod
    def _clean_old_requests(bucket: list[float], max_age_seconds: int) -> list[float]:
        now = time.time()
        return [ts for ts in bucket if now - ts < max_age_seconds]

    def _reject(self, client_ip: str, limit: str, count: int, window: int) -> JSONResponse:
        maximum = self.requests_per_minute if limit == "minute" else self.requests_per_hour
        counter("api.rate_limit.rejected")
        log_event("api.rate_limit.request_exceeded", ip=client_ip, limit=limit, count=count)
        return JSONResponse(
            status_code=429,
            content={
                "detail": f"Rate limit exceeded. Maximum {maximum} requests per {limit}.",
                "retry_after": window,
            },
            headers={"Retry-After": str(window)},
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check rate limits before processing the request."""
        # Health probes and Stripe retries are never limited
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = get_client_ip(request)
        now = time.time()

        minute_bucket = self._clean_old_requests(self.minute_buckets.get(client_ip, []), 60)
        hour_bucket = self._clean_old_requests(self.hour_buckets.get(client_ip, []), 3600)

        if len(minute_bucket) >= self.requests_per_minute:
            self.minute_buckets[client_ip] = minute_bucket
            return self._reject(client_ip, "minute", len(minute_bucket), 60)
        if len(hour_bucket) >= self.requests_per_hour:
            self.hour_buckets[client_ip] = hour_bucket
            return self._reject(client_ip, "hour", len(hour_bucket), 3600)

        minute_bucket.append(now)
        hour_bucket.append(now)
        self.minute_buckets[client_ip] = minute_bucket
        self.hour_buckets[client_ip] = hour_bucket

        response = await call_next(request)

        response.headers["X-RateLimit-Limit-Minute"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining-Minute"] = str(
            self.requests_per_minute - len(minute_bucket)
        )
        response.headers["X-RateLimit-Limit-Hour"] = str(self.requests_per_hour)
        response.headers["X-RateLimit-Remaining-Hour"] = str(
            self.requests_per_hour - len(hour_bucket)
        )
        return response
