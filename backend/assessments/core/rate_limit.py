from __future__ import annotations

import logging
from dataclasses import dataclass

import redis
from fastapi import Depends, HTTPException

from assessments.core.redis_client import get_redis
from assessments.core.security import get_current_user_id

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quota:
    key: str
    used: int
    limit: int


def rate_limit(*, key_prefix: str, limit: int, window_seconds: int):
    """Fixed-window quota per learner, counted in Redis.

    Redis errors let the request through.
    """

    async def _dep(user_id: str = Depends(get_current_user_id)) -> Quota:
        key = f"rl:{key_prefix}:{user_id}"
        r = get_redis()
        try:
            used = int(r.incr(key))
            if used == 1:
                r.expire(key, int(window_seconds))
            ttl = r.ttl(key) if used > int(limit) else None
        except redis.RedisError as e:
            log.warning("rate limit check skipped key=%s: %s", key, e)
            return Quota(key=key, used=0, limit=int(limit))

        if used > int(limit):
            retry_after = int(ttl) if ttl and ttl > 0 else int(window_seconds)
            raise HTTPException(
                status_code=429,
                detail="rate limit exceeded",
                headers={"Retry-After": str(retry_after)},
            )
        return Quota(key=key, used=used, limit=int(limit))

    return Depends(_dep)
