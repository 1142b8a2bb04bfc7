from typing import Optional

import redis  # type: ignore

from ..settings import Settings


def get_redis_client_safe(settings: Settings):
    if not settings.redis_url:
        return None
    try:
        client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        # Ping to validate
        client.ping()
        return client
    except Exception:
        return None


# Process-wide client, resolved on first use
_redis_client = None
_redis_resolved = False


def get_redis_client(settings: Settings):
    global _redis_client, _redis_resolved
    if not _redis_resolved:
        _redis_client = get_redis_client_safe(settings)
        _redis_resolved = True
    return _redis_client


def close_redis_client() -> None:
    global _redis_client, _redis_resolved
    if _redis_client is not None:
        try:
            _redis_client.close()
        except Exception:
            pass
    _redis_client = None
    _redis_resolved = False


def _try_on_key(user_id: str, product_id: str) -> str:
    return f"tryon:{user_id}:{product_id}"


def get_cached_try_on(redis_client, user_id: str, product_id: str) -> Optional[str]:
    if not redis_client:
        return None
    try:
        value = redis_client.get(_try_on_key(user_id, product_id))
        return str(value) if value else None
    except Exception:
        return None


def cache_try_on(redis_client, user_id: str, product_id: str, image_url: str, ttl_seconds: int) -> None:
    if not redis_client or not image_url:
        return
    try:
        redis_client.set(_try_on_key(user_id, product_id), image_url, ex=ttl_seconds)
    except Exception:
        # Cache is best effort; generation already succeeded
        return
