from __future__ import annotations

import asyncio
import time
from collections import deque
import json
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request


APPLIED_RATE_LIMITS: set[str] = set()

LOGIN_LIMIT = 5
REFRESH_LIMIT = 10
SIGNUP_LIMIT = 5
WINDOW_SECONDS = 60


class SlidingWindowRateLimiter:
    def __init__(self, clock=time.monotonic) -> None:
        self._entries: dict[str, deque[float]] = {}
        self._windows: dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def allow(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
        now = self._clock()
        async with self._lock:
            self._evict_idle(now)
            self._windows[key] = window_seconds
            bucket = self._entries.setdefault(key, deque())
            if len(bucket) >= limit:
                retry_after = max(int(window_seconds - (now - bucket[0])) + 1, 1)
                return False, retry_after
            bucket.append(now)
            return True, 0

    def _evict_idle(self, now: float) -> None:
        for key in list(self._entries):
            bucket = self._entries[key]
            boundary = now - self._windows[key]
            while bucket and bucket[0] <= boundary:
                bucket.popleft()
            if not bucket:
                del self._entries[key]
                del self._windows[key]

    def __len__(self) -> int:
        return len(self._entries)

    async def reset(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._windows.clear()


_rate_limiter = SlidingWindowRateLimiter()


async def reset_rate_limiter_state() -> None:
    await _rate_limiter.reset()


def _client_address(request: Request, forwarded_for: str | None) -> str:
    forwarded = (forwarded_for or "").split(",")[0].strip()
    client_host = request.client.host if request.client else ""
    return forwarded or client_host or "unknown"


async def _json_key_parts(request: Request, json_fields: tuple[str, ...]) -> list[str]:
    content_type = (request.headers.get("content-type") or "").lower()
    if not json_fields or "application/json" not in content_type:
        return []
    try:
        payload = json.loads((await request.body()) or b"{}")
    except json.JSONDecodeError:
        return []
    if not isinstance(payload, dict):
        return []
    return [
        f"{field}={str(payload[field]).strip().lower()}"
        for field in json_fields
        if payload.get(field) is not None
    ]


def rate_limit_dependency(
    *,
    route_key: str,
    scope: str,
    limit: int,
    window_seconds: int = WINDOW_SECONDS,
    json_fields: tuple[str, ...] = (),
):
    """Build a route dependency that allows ``limit`` calls per window.

    Calls are keyed by scope, client address and the listed JSON body fields.
    """
    APPLIED_RATE_LIMITS.add(route_key)

    async def dependency(
        request: Request,
        x_forwarded_for: Annotated[str | None, Header(alias="X-Forwarded-For")] = None,
    ) -> None:
        key_parts = [scope, _client_address(request, x_forwarded_for)]
        key_parts.extend(await _json_key_parts(request, json_fields))
        allowed, retry_after = await _rate_limiter.allow(
            ":".join(key_parts),
            limit=limit,
            window_seconds=window_seconds,
        )
        if not allowed:
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)},
            )

    return Depends(dependency)
