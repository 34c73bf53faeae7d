import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from chatbot.config import get_settings
from chatbot.ai.prompts import validate_writing_styles
from chatbot.ai.providers import get_provider_registry, validate_registry
from chatbot.ai.tools import TOOLS
from chatbot.core.redis import close_redis
from chatbot.errors import register_exception_handlers
from chatbot.routers import auth, catalog, chat, document, files, health, voice, vote

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast on an inconsistent style table or model catalog
    validate_writing_styles(set(TOOLS))
    validate_registry(get_provider_registry())
    logger.info("Chat API started (%s)", settings.environment)
    try:
        yield
    finally:
        await close_redis()


app = FastAPI(
    title="Chat API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(chat.router)
app.include_router(vote.router)
app.include_router(document.router)
app.include_router(files.router)
app.include_router(voice.router)
app.include_router(catalog.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"message": "Chat API", "docs": "/docs"}
