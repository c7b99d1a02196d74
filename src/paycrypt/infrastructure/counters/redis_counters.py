"""Redis-backed keyed counter store.

Shares admission counters between several gateway processes. The sliding
window is a sorted set per key (score = event time) updated inside one
MULTI/EXEC pipeline; connection slots are INCR/DECR integers, released by a
Lua script that decrements and deletes atomically.
"""

import logging
import math
import time
import uuid
from typing import Callable, Optional

from redis import Redis

from ...domain.ports.counter_port import KeyedCounterStore

logger = logging.getLogger(__name__)

# Decrement, and drop the key at zero, as one server-side step
RELEASE_SCRIPT = """
local count = redis.call("DECR", KEYS[1])
if count <= 0 then
    redis.call("DEL", KEYS[1])
    return 0
end
return count
"""


class RedisCounterStore(KeyedCounterStore):
    """Keyed counters stored in Redis.

    Keys:
        {prefix}:window:{key} - sorted set of event timestamps
        {prefix}:slots:{key}  - open connection count
    """

    def __init__(
        self,
        redis: Redis,
        prefix: str = "paycrypt:admission",
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis
        self.prefix = prefix
        self._clock = clock
        self._release = redis.register_script(RELEASE_SCRIPT)

    @classmethod
    def from_url(cls, url: str, prefix: str = "paycrypt:admission") -> "RedisCounterStore":
        return cls(Redis.from_url(url, decode_responses=True), prefix=prefix)

    def _window_key(self, key: str) -> str:
        return f"{self.prefix}:window:{key}"

    def _slots_key(self, key: str) -> str:
        return f"{self.prefix}:slots:{key}"

    def hit_window(self, key: str, limit: int, window_seconds: float) -> bool:
        redis_key = self._window_key(key)
        now = self._clock()
        member = f"{now:.6f}:{uuid.uuid4().hex}"

        pipe = self.redis.pipeline(transaction=True)
        pipe.zremrangebyscore(redis_key, 0, now - window_seconds)
        pipe.zadd(redis_key, {member: now})
        pipe.zcard(redis_key)
        pipe.expire(redis_key, max(1, math.ceil(window_seconds)))
        _, _, count, _ = pipe.execute()

        if count > limit:
            # Over the limit: the tentative event must not count
            self.redis.zrem(redis_key, member)
            return False
        return True

    def acquire(self, key: str, limit: int) -> bool:
        redis_key = self._slots_key(key)
        count = self.redis.incr(redis_key)
        if count > limit:
            self.redis.decr(redis_key)
            return False
        return True

    def release(self, key: str) -> None:
        self._release(keys=[self._slots_key(key)])

    def current(self, key: str) -> int:
        value: Optional[str] = self.redis.get(self._slots_key(key))
        return max(0, int(value)) if value else 0

    def ping(self) -> bool:
        return bool(self.redis.ping())
