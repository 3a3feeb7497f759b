"""
Rate limiting -- in-memory sliding window per client IP.

Every chat request can fan out into four LLM calls, so the chat route is
limited separately (and more tightly) than the read-only routes.

Configuration via environment:
  RATE_LIMIT_PER_MINUTE=60       (all routes)
  CHAT_RATE_LIMIT_PER_MINUTE=20  (POST /chat)
"""

import logging
import os
import time
from collections import defaultdict

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 60
DEFAULT_CHAT_RATE_LIMIT = 20
WINDOW_SECONDS = 60.0


def _get_limit(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


_request_log: dict[str, list[float]] = defaultdict(list)


def reset_rate_limits() -> None:
    """Forget all recorded requests."""
    _request_log.clear()


def _check(bucket: str, limit: int) -> None:
    cutoff = time.time() - WINDOW_SECONDS
    _request_log[bucket] = [ts for ts in _request_log[bucket] if ts > cutoff]

    if len(_request_log[bucket]) >= limit:
        logger.warning(f"[RateLimit] {bucket} exceeded {limit}/min")
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded ({limit} requests per minute)",
            headers={"Retry-After": "60"},
        )
    _request_log[bucket].append(time.time())


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def check_rate_limit(request: Request) -> None:
    """Dependency for ordinary routes. Raises HTTP 429 over the limit."""
    _check(_client_ip(request), _get_limit("RATE_LIMIT_PER_MINUTE", DEFAULT_RATE_LIMIT))


async def check_chat_rate_limit(request: Request) -> None:
    """Dependency for the chat route (its own, tighter bucket)."""
    _check(
        f"chat:{_client_ip(request)}",
        _get_limit("CHAT_RATE_LIMIT_PER_MINUTE", DEFAULT_CHAT_RATE_LIMIT),
    )
