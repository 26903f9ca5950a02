"""Fixed-window action budgets kept in Redis."""

from __future__ import annotations

import time
from typing import Optional

from unishare.infra.redis import redis_client

KEY_PREFIX = "engagement:rl"


def bucket_key(action: str, actor_id: str, window_seconds: int, now: float) -> str:
	return f"{KEY_PREFIX}:{action}:{actor_id}:{int(now // window_seconds)}"


async def allow(
	action: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
) -> bool:
	"""Count one ``action`` by ``actor_id``; False once the window's budget is spent."""
	if limit <= 0:
		return False
	window = max(1, int(window_seconds))
	key = bucket_key(action, actor_id, window, time.time() if now is None else now)
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, window)
		used, _ = await pipe.execute()
	return int(used) <= limit
