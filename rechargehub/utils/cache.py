import threading
import time

_cache = {}
_lock = threading.Lock()


def get_cached(key: str):
    with _lock:
        entry = _cache.get(key)
        if not entry:
            return None
        value, expires_at = entry
        if expires_at < time.monotonic():
            _cache.pop(key, None)
            return None
        return value


def set_cached(key: str, value, ttl_seconds: int = 60):
    if ttl_seconds <= 0:
        return
    with _lock:
        _cache[key] = (value, time.monotonic() + ttl_seconds)


def clear_cache(prefix: str | None = None) -> None:
    with _lock:
        if prefix is None:
            _cache.clear()
            return
        for key in [key for key in _cache if key.startswith(prefix)]:
            _cache.pop(key, None)
