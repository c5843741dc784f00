"""Redis-backed counter store using redis-py."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import redis

from scoreboard.services.secrets.interface import SecretsInterface
from scoreboard.services.state.interface import StateStoreInterface

# KEYS[1] counter, KEYS[2] set of applied delivery ids
# ARGV[1] increment, ARGV[2] delivery id ("" when not tracked)
_INCR_ONCE_LUA = """
if ARGV[2] ~= "" then
    if redis.call("SISMEMBER", KEYS[2], ARGV[2]) == 1 then
        return tonumber(redis.call("GET", KEYS[1]) or "0")
    end
    redis.call("SADD", KEYS[2], ARGV[2])
end
return redis.call("INCRBY", KEYS[1], ARGV[1])
"""


class RedisStateStore(StateStoreInterface):
    def __init__(self, secrets: SecretsInterface) -> None:
        self._url = secrets.get_or_default("STATE_REDIS_URL", "redis://localhost:6379/0")
        self._prefix = secrets.get_or_default("STATE_REDIS_PREFIX", "scoreboard:")
        self._client: redis.Redis | None = None  # type: ignore[type-arg]
        self._incr_script: Any = None

    def connect(self) -> None:
        import redis

        self._client = redis.Redis.from_url(self._url, decode_responses=True)
        self._incr_script = self._client.register_script(_INCR_ONCE_LUA)

    def disconnect(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
            self._incr_script = None

    def _ensure_connected(self) -> redis.Redis:  # type: ignore[type-arg]
        if self._client is None:
            self.connect()
        return self._client  # type: ignore[return-value]

    def incr(self, key: str, by: int = 1, delivery_id: str | None = None) -> int:
        self._ensure_connected()
        counter_key = f"{self._prefix}counter:{key}"
        applied_key = f"{self._prefix}applied:{key}"
        result = self._incr_script(
            keys=[counter_key, applied_key], args=[by, delivery_id or ""]
        )
        return int(result)

    def get(self, key: str) -> int:
        raw = self._ensure_connected().get(f"{self._prefix}counter:{key}")
        return int(raw) if raw is not None else 0

    def health_check(self) -> bool:
        try:
            return bool(self._ensure_connected().ping())
        except Exception:
            return False
