"""
Chat orchestration: Chat + Message persistence, Cache-Aside over DB + Redis.
- Save user message before streaming; save assistant messages after streaming.
- Load: try Redis; on miss load from DB, warm Redis, return.
- Ownership: callers compare chat.user_id with the acting user before any write.
"""
import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from chatbot.ai.prompts import TITLE_PROMPT
from chatbot.ai.providers import TITLE_MODEL, ProviderRegistry
from chatbot.models.chat import Chat
from chatbot.models.message import Message
from chatbot.repositories.chat_repository import ChatRepository
from chatbot.services.file_service import read_local_attachment
from chatbot.services.redis_chat_cache import RedisChatCache
from chatbot.utils.messages import message_text

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 80


def message_to_dict(m: Message) -> dict:
    return {
        "id": m.id,
        "chat_id": m.chat_id,
        "role": m.role,
        "content": m.content,
        "reasoning": m.reasoning,
        "attachments": m.attachments or [],
        "created_at": m.created_at.isoformat() if m.created_at else None,
    }


def generate_title(registry: ProviderRegistry, message: dict) -> str:
    """Short title from the first user message; falls back to the message text itself."""
    text = message_text(message.get("content")).strip()
    fallback = (text or "New chat")[:TITLE_MAX_LENGTH]
    try:
        title = registry.language_model(TITLE_MODEL).generate(TITLE_PROMPT, text or "New chat")
    except Exception as e:
        logger.warning("Title generation failed, using message text: %s", e)
        return fallback
    title = title.strip().strip("\"'").replace(":", "").strip()
    return title[:TITLE_MAX_LENGTH] or fallback


def to_model_messages(messages: list[dict]) -> list[dict]:
    """
    UI messages -> provider messages. Attachments we stored ourselves are inlined as bytes,
    other attachment urls are passed through.
    """
    out = []
    for m in messages:
        attachments = []
        for a in m.get("experimental_attachments") or m.get("attachments") or []:
            url = a.get("url")
            if not url:
                continue
            attachments.append({
                "url": url,
                "contentType": a.get("contentType") or a.get("content_type"),
                "data": read_local_attachment(url),
            })
        item = {"role": m.get("role"), "content": m.get("content") or ""}
        if attachments:
            item["attachments"] = attachments
        out.append(item)
    return out


class ChatService:
    """Orchestrates chat persistence: DB as source of truth, Redis as cache (Cache-Aside)."""

    def __init__(
        self,
        redis_cache: RedisChatCache | None,
        repository: ChatRepository | None = None,
    ):
        self._cache = redis_cache
        self._repo = repository or ChatRepository()

    async def get_chat(self, db: Session, chat_id: str) -> Chat | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._repo.get_chat_by_id(db, chat_id))

    async def create_chat(
        self, db: Session, chat_id: str, user_id: str, first_message: dict, registry: ProviderRegistry
    ) -> Chat:
        loop = asyncio.get_running_loop()
        title = await loop.run_in_executor(None, generate_title, registry, first_message)
        return await loop.run_in_executor(None, lambda: self._repo.save_chat(db, chat_id, user_id, title))

    async def list_chats(self, db: Session, user_id: str) -> list[Chat]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._repo.get_chats_by_user_id(db, user_id))

    async def delete_chat(self, db: Session, chat_id: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, lambda: self._repo.delete_chat_by_id(db, chat_id))
        if self._cache:
            await self._cache.invalidate(chat_id)

    async def get_messages(self, db: Session, chat_id: str) -> list[dict]:
        """Cache-Aside: try Redis first; on miss load from DB, warm Redis, return. Oldest first."""
        if self._cache:
            messages = await self._cache.get_messages(chat_id)
            if messages is not None:
                return messages
        loop = asyncio.get_running_loop()
        rows = await loop.run_in_executor(None, lambda: self._repo.get_messages_by_chat_id(db, chat_id))
        messages = [message_to_dict(r) for r in rows]
        if self._cache and messages:
            await self._cache.warm(chat_id, messages)
        return messages

    async def save_user_message(self, db: Session, chat_id: str, message: dict) -> None:
        """Save the user turn before streaming. DB first, then best-effort Redis append."""
        row = {
            "chat_id": chat_id,
            "role": "user",
            "content": message.get("content") or "",
            "attachments": message.get("experimental_attachments") or None,
            "created_at": datetime.utcnow(),
        }
        if message.get("id"):
            row["id"] = message["id"]
        loop = asyncio.get_running_loop()
        saved = await loop.run_in_executor(None, lambda: self._repo.save_messages(db, [row]))
        if self._cache:
            await self._cache.append_messages(chat_id, [message_to_dict(m) for m in saved])

    async def save_assistant_messages(self, db: Session, chat_id: str, messages: list[dict]) -> None:
        """
        Save sanitized response messages (assistant + tool) after streaming.
        created_at is spread by microseconds so ordering is stable.
        """
        if not messages:
            return
        now = datetime.utcnow()
        rows = [
            {
                "id": m["id"],
                "chat_id": chat_id,
                "role": m["role"],
                "content": m["content"],
                "reasoning": m.get("reasoning"),
                "created_at": now + timedelta(microseconds=i),
            }
            for i, m in enumerate(messages)
        ]
        loop = asyncio.get_running_loop()
        saved = await loop.run_in_executor(None, lambda: self._repo.save_messages(db, rows))
        if self._cache:
            await self._cache.append_messages(chat_id, [message_to_dict(m) for m in saved])

    async def get_message(self, db: Session, message_id: str) -> Message | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._repo.get_message_by_id(db, message_id))

    async def vote(self, db: Session, chat_id: str, message_id: str, vote_type: str):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._repo.vote_message(db, chat_id, message_id, vote_type))

    async def get_votes(self, db: Session, chat_id: str):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._repo.get_votes_by_chat_id(db, chat_id))
