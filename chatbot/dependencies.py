"""Shared FastAPI dependencies: Redis cache (optional), ChatService, provider registry, session factory."""
from fastapi import Depends

from chatbot.ai.providers import ProviderRegistry, get_provider_registry
from chatbot.core.redis import build_redis_chat_cache, get_redis_client
from chatbot.database import SessionLocal
from chatbot.repositories.chat_repository import ChatRepository
from chatbot.services.chat_service import ChatService


async def get_redis_chat_cache():
    """Async dependency: Redis chat cache or None if Redis disabled/down."""
    client = await get_redis_client()
    return build_redis_chat_cache(client) if client else None


def get_chat_service(redis_cache=Depends(get_redis_chat_cache)) -> ChatService:
    """ChatService with optional Redis cache (Cache-Aside). DB is source of truth."""
    return ChatService(redis_cache=redis_cache, repository=ChatRepository())


def get_registry() -> ProviderRegistry:
    return get_provider_registry()


def get_session_factory():
    """Fresh sessions for work that outlives the request (stream callbacks, tools)."""
    return SessionLocal
