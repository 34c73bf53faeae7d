from fastapi import APIRouter

from chatbot.core.redis import redis_status

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    """Liveness plus Redis cache status. DB not checked here."""
    return {"status": "ok", **(await redis_status())}
