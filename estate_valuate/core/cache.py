import threading

from cachetools import TTLCache

from .config import Settings, settings as default_settings

try:
    import redis  # Optional dependency
except ImportError:
    redis = None


class CounterStore:
    """
    Expiring counters for the request limiter.

    Redis (USE_REDIS=true) lets every worker share one count; otherwise
    counts live in a per-process TTLCache and expire after CACHE_TTL_SECONDS.
    """
    def __init__(self, cfg: Settings = default_settings):
        self.ttl = cfg.CACHE_TTL_SECONDS
        self.backend = None
        if cfg.USE_REDIS and redis is not None:
            self.backend = redis.Redis.from_url(cfg.REDIS_URL, decode_responses=True)
        self._local = TTLCache(maxsize=4096, ttl=self.ttl)
        self._lock = threading.Lock()

    def incr(self, key: str) -> int:
        """Bump `key` and return the new count; a fresh key starts its TTL at 1."""
        if self.backend:
            pipe = self.backend.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.ttl, nx=True)
            count, _ = pipe.execute()
            return int(count)
        with self._lock:
            count = self._local.get(key, 0) + 1
            self._local[key] = count
            return count

    def clear(self) -> None:
        self._local.clear()


counters = CounterStore()
