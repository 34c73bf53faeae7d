"""
Shared async Redis connection behind the chat message cache.
REDIS_URL empty or unreachable -> no client, chats are served from the database only.
"""
import logging

from redis.asyncio import Redis

from chatbot.config import get_settings
from chatbot.services.redis_chat_cache import RedisChatCache

logger = logging.getLogger(__name__)

_client: Redis | None = None


def _redacted(url: str) -> str:
    return url.rsplit("@", 1)[-1]


async def get_redis_client() -> Redis | None:
    """Connect on first use; a failed ping is retried on the next call."""
    global _client
    if _client is not None:
        return _client
    url = get_settings().redis_url.strip()
    if not url:
        return None
    client = Redis.from_url(url, decode_responses=True)
    try:
        await client.ping()
    except Exception as e:
        logger.warning("Redis at %s unavailable, chat cache off: %s", _redacted(url), e)
        await client.aclose()
        return None
    logger.info("Chat cache using Redis at %s", _redacted(url))
    _client = client
    return _client


def build_redis_chat_cache(client: Redis) -> RedisChatCache:
    return RedisChatCache(client, ttl_seconds=get_settings().chat_cache_ttl_seconds)


async def redis_status() -> dict:
    """Health payload: disabled, ok or error."""
    client = await get_redis_client()
    if client is None:
        return {"redis": "unavailable"}
    try:
        await client.ping()
    except Exception as e:
        logger.warning("Redis health ping failed: %s", e)
        return {"redis": "error", "message": str(e)}
    return {"redis": "ok"}


async def close_redis() -> None:
    global _client
    if _client is None:
        return
    try:
        await _client.aclose()
    except Exception as e:
        logger.warning("Redis close failed: %s", e)
    _client = None
