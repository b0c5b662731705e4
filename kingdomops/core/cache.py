import redis
from functools import lru_cache
from kingdomops.core.config import settings

@lru_cache()
def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

def view_context_key(principal_id: str) -> str:
    return f"viewas:{principal_id}"
