import os
import time
import threading

# In-process store for values that are read on every webhook delivery
_store = {}
CACHE_TTL = int(os.getenv("CACHE_TTL_SECONDS", "300"))
cache_lock = threading.Lock()


def get_cache(key: str):
    with cache_lock:
        item = _store.get(key)
        if item is None:
            return None
        value, stored_at = item
        if time.time() - stored_at >= CACHE_TTL:
            del _store[key]
            return None
        return value


def set_cache(key: str, value):
    with cache_lock:
        _store[key] = (value, time.time())


def delete_cache(key: str):
    with cache_lock:
        _store.pop(key, None)
