import uuid
from unittest.mock import AsyncMock

import pytest

from chatbot.repositories.chat_repository import save_chat
from chatbot.services.chat_service import ChatService
from chatbot.services.redis_chat_cache import RedisChatCache


class FakeRedis:
    """The handful of list commands the chat cache uses, kept in a dict."""

    def __init__(self):
        self.lists: dict[str, list[str]] = {}
        self.ttls: dict[str, int] = {}

    async def lrange(self, key, start, end):
        return list(self.lists.get(key, []))

    async def exists(self, key):
        return int(key in self.lists)

    async def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(values)

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def delete(self, key):
        self.lists.pop(key, None)

    def pipeline(self):
        redis = self
        ops = []

        class Pipeline:
            def delete(self, key):
                ops.append(redis.delete(key))

            def rpush(self, key, *values):
                ops.append(redis.rpush(key, *values))

            def expire(self, key, seconds):
                ops.append(redis.expire(key, seconds))

            async def execute(self):
                for op in ops:
                    await op

        return Pipeline()


@pytest.mark.asyncio
async def test_messages_are_read_through_the_cache(db, user):
    redis = FakeRedis()
    service = ChatService(RedisChatCache(redis, ttl_seconds=60))
    chat_id = str(uuid.uuid4())
    save_chat(db, chat_id, user.id, "Cached")
    await service.save_user_message(db, chat_id, {"id": str(uuid.uuid4()), "role": "user", "content": "hi"})

    first = await service.get_messages(db, chat_id)
    await service.save_assistant_messages(
        db, chat_id, [{"id": str(uuid.uuid4()), "role": "assistant", "content": [{"type": "text", "text": "yo"}]}]
    )
    second = await service.get_messages(db, chat_id)

    assert [m["role"] for m in first] == ["user"]
    assert [m["role"] for m in second] == ["user", "assistant"]
    assert len(redis.lists[f"chat:{chat_id}"]) == 2
    assert redis.ttls[f"chat:{chat_id}"] == 60


@pytest.mark.asyncio
async def test_delete_invalidates_cache(db, user):
    redis = FakeRedis()
    service = ChatService(RedisChatCache(redis))
    chat_id = str(uuid.uuid4())
    save_chat(db, chat_id, user.id, "Cached")
    await service.save_user_message(db, chat_id, {"role": "user", "content": "hi"})
    await service.get_messages(db, chat_id)

    await service.delete_chat(db, chat_id)

    assert f"chat:{chat_id}" not in redis.lists


@pytest.mark.asyncio
async def test_redis_errors_fall_back_to_none():
    broken = AsyncMock()
    broken.lrange.side_effect = ConnectionError("redis down")
    cache = RedisChatCache(broken)

    assert await cache.get_messages("any") is None
