"""
Per-chat message cache in Redis, in front of the messages table (Cache-Aside).

Key chat:{chat_id} holds a LIST of JSON-encoded message dicts, oldest first.
A read miss is filled from the database by the caller (warm); saves append only to
lists that already exist, so a list is always a complete copy of the chat.
Redis failures are logged and reported as a miss or a no-op; the database stays the
source of truth.
"""
import json
import logging
from typing import Any

from chatbot.config import get_settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "chat:"


def cache_key(chat_id: str) -> str:
    return f"{KEY_PREFIX}{chat_id}"


def _decode(raw: Any) -> dict | None:
    if isinstance(raw, bytes):
        raw = raw.decode()
    try:
        message = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return None
    return message if isinstance(message, dict) and "role" in message else None


class RedisChatCache:
    def __init__(self, redis_client: Any, ttl_seconds: int | None = None):
        self._redis = redis_client
        self._ttl = ttl_seconds or get_settings().chat_cache_ttl_seconds

    async def get_messages(self, chat_id: str) -> list[dict] | None:
        """Cached messages, or None when the chat is not cached (or Redis failed)."""
        try:
            raw = await self._redis.lrange(cache_key(chat_id), 0, -1)
        except Exception as e:
            logger.warning("Chat cache read failed (chat %s): %s", chat_id, e)
            return None
        messages = [m for m in map(_decode, raw or []) if m is not None]
        return messages or None

    async def warm(self, chat_id: str, messages: list[dict]) -> None:
        """Replace the cached list with messages loaded from the database."""
        if not messages:
            return
        key = cache_key(chat_id)
        try:
            pipe = self._redis.pipeline()
            pipe.delete(key)
            pipe.rpush(key, *(json.dumps(m, default=str) for m in messages))
            pipe.expire(key, self._ttl)
            await pipe.execute()
        except Exception as e:
            logger.warning("Chat cache warm failed (chat %s): %s", chat_id, e)

    async def append_messages(self, chat_id: str, messages: list[dict]) -> None:
        """Append freshly saved messages when the chat is cached; cold chats stay cold."""
        if not messages:
            return
        key = cache_key(chat_id)
        try:
            if not await self._redis.exists(key):
                return
            await self._redis.rpush(key, *(json.dumps(m, default=str) for m in messages))
            await self._redis.expire(key, self._ttl)
        except Exception as e:
            logger.warning("Chat cache append failed (chat %s): %s", chat_id, e)

    async def invalidate(self, chat_id: str) -> None:
        try:
            await self._redis.delete(cache_key(chat_id))
        except Exception as e:
            logger.warning("Chat cache delete failed (chat %s): %s", chat_id, e)
