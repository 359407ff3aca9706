"""
Redis read-through cache for single-entity reads.

Never a source of truth. Each entity key has a generation counter that
every committed mutation increments; entries are stored under
``{key}:v{generation}``, so a fill computed before a mutation lands under a
generation nobody reads again. A disabled or failing cache behaves as a miss.
"""
import json
import logging
from typing import Any, Callable, Optional

from .config import settings

logger = logging.getLogger(__name__)


def appointment_key(clinic_id: int, appointment_id: int) -> str:
    return f"appointment:{clinic_id}:{appointment_id}"


def invoice_key(clinic_id: int, invoice_id: int) -> str:
    return f"invoice:{clinic_id}:{invoice_id}"


def generation_key(key: str) -> str:
    return f"{key}:gen"


def versioned_key(key: str, generation: int) -> str:
    return f"{key}:v{generation}"


class ReadThroughCache:
    """Redis cache wrapper with JSON serialization"""

    def __init__(self, redis_client=None, enabled: bool = True, ttl: int = None):
        self.redis_client = redis_client
        self.enabled = enabled and redis_client is not None
        self.ttl = ttl or settings.CACHE_TTL_SECONDS

    def generation(self, key: str) -> Optional[int]:
        """Current generation of ``key``; None when the cache is unusable."""
        if not self.enabled:
            return None

        try:
            value = self.redis_client.get(generation_key(key))
            return int(value or 0)
        except Exception as e:
            logger.error(f"Cache generation error for {key}: {e}")
            return None

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        if not self.enabled:
            return None

        try:
            value = self.redis_client.get(key)
            if value is None:
                logger.debug(f"Cache MISS: {key}")
                return None
            logger.debug(f"Cache HIT: {key}")
            return json.loads(value)
        except Exception as e:
            logger.error(f"Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> bool:
        """Set value in cache with the configured TTL"""
        if not self.enabled:
            return False

        try:
            self.redis_client.setex(key, self.ttl, json.dumps(value, default=str))
            return True
        except Exception as e:
            logger.error(f"Cache set error for {key}: {e}")
            return False

    def read_through(self, key: str, loader: Callable[[], Any]) -> Any:
        """Serve ``key`` from cache, or load it and fill the current generation.

        The generation is read before loading, so a mutation committed while
        the loader runs moves readers to a newer generation than the fill.
        """
        generation = self.generation(key)
        if generation is None:
            return loader()

        entry = versioned_key(key, generation)
        cached = self.get(entry)
        if cached is not None:
            return cached

        value = loader()
        self.set(entry, value)
        return value

    def invalidate(self, *keys: str) -> None:
        """Advance the generation of each key after a mutation has committed."""
        if not self.enabled or not keys:
            return

        for key in keys:
            try:
                self.redis_client.incr(generation_key(key))
                logger.debug(f"Cache INVALIDATE: {key}")
            except Exception as e:
                logger.error(f"Cache invalidate error for {key}: {e}")
