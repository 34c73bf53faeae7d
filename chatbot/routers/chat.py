"""
Chat endpoints:
- POST /api/chat: one chat turn, streamed as Server-Sent Events (tools per writing style)
- DELETE /api/chat?id=: delete an owned chat with its messages and votes
- GET /api/chat/{id}: chat with its messages (ownership validated)
- GET /api/history: the caller's chats, newest first
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from chatbot.ai.models import get_chat_model
from chatbot.ai.prompts import build_system_prompt, resolve_active_tools
from chatbot.ai.providers import ProviderRegistry, UnknownModelError
from chatbot.ai.tools import ToolContext, get_tools
from chatbot.auth import get_current_user
from chatbot.database import get_db
from chatbot.dependencies import get_chat_service, get_registry, get_session_factory
from chatbot.models.user import User
from chatbot.schemas.chat import ChatDetailResponse, ChatOut, ChatRequest, MessageOut
from chatbot.services.ai_stream_service import CompletionResult, stream_chat_response
from chatbot.services.chat_service import ChatService, to_model_messages
from chatbot.utils.messages import get_most_recent_user_message, sanitize_response_messages
from chatbot.utils.thinking import extract_thinking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def _split_thinking(text: str) -> tuple[str, str]:
    split = extract_thinking(text)
    if split.thinking_complete or split.thinking_content:
        return split.main_content, split.thinking_content
    return text, ""


def _present_message(m: dict) -> MessageOut:
    """Assistant text that still carries a <think> block is split for display."""
    content = m.get("content")
    reasoning = m.get("reasoning")
    if m.get("role") == "assistant":
        thinking = ""
        if isinstance(content, str):
            content, thinking = _split_thinking(content)
        elif isinstance(content, list):
            parts = []
            for part in content:
                if isinstance(part, dict) and part.get("type") == "text":
                    text, part_thinking = _split_thinking(part.get("text") or "")
                    thinking = thinking or part_thinking
                    part = {**part, "text": text}
                parts.append(part)
            content = parts
        reasoning = reasoning or thinking or None
    return MessageOut(
        id=m["id"],
        chat_id=m["chat_id"],
        role=m["role"],
        content=content if content is not None else "",
        reasoning=reasoning,
        attachments=m.get("attachments") or [],
        created_at=m["created_at"],
    )


@router.post("/chat")
async def chat(
    body: ChatRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
    registry: ProviderRegistry = Depends(get_registry),
    session_factory=Depends(get_session_factory),
):
    """
    Save the user turn, then stream the assistant reply. Assistant messages are saved
    when the model is done; a failed save is logged and the reply still reaches the user.
    """
    logger.info(
        "Chat API request: id=%s model=%s style=%s search=%s messages=%d",
        body.id,
        body.selected_chat_model,
        body.selected_writing_style,
        body.use_search_grounding,
        len(body.messages),
    )
    messages = [m.model_dump(by_alias=True, exclude_none=True) for m in body.messages]

    user_message = get_most_recent_user_message(messages)
    if not user_message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No user message found")

    if get_chat_model(body.selected_chat_model) is None:
        raise UnknownModelError(f"Unknown chat model: {body.selected_chat_model}")
    # UnknownModelError (400) and ProviderConfigurationError (503) are mapped in errors.py
    model = registry.language_model(body.selected_chat_model)
    model.ensure_configured()

    try:
        existing = await chat_service.get_chat(db, body.id)
        if existing is None:
            await chat_service.create_chat(db, body.id, user.id, user_message, registry)
        elif existing.user_id != user.id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

        await chat_service.save_user_message(db, body.id, user_message)

        tools = get_tools(resolve_active_tools(body.selected_chat_model, body.selected_writing_style))
        system = build_system_prompt(body.selected_chat_model, body.selected_writing_style)
        model_messages = to_model_messages(messages)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Chat API error")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Failed to process chat request", "details": str(e)},
        )

    # Use fresh sessions after the stream: request-scoped db/user may be closed/detached by then
    user_id = user.id
    chat_id = body.id

    def tool_context(write_data) -> ToolContext:
        return ToolContext(
            user_id=user_id,
            session_factory=session_factory,
            registry=registry,
            write_data=write_data,
        )

    async def on_stream_done(result: CompletionResult) -> None:
        sanitized = sanitize_response_messages(result.response_messages, result.reasoning)
        if not sanitized:
            logger.info("No messages to save after sanitization (chat %s)", chat_id)
            return
        db_fresh = session_factory()
        try:
            await chat_service.save_assistant_messages(db_fresh, chat_id, sanitized)
        except Exception as e:
            logger.warning("Failed to save chat %s (reply already streamed): %s", chat_id, e)
        finally:
            db_fresh.close()

    return stream_chat_response(
        model,
        system,
        model_messages,
        tools,
        on_stream_done,
        tool_context_factory=tool_context,
        search_grounding=body.use_search_grounding,
    )


@router.delete("/chat")
async def delete_chat(
    id: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    if not id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    existing = await chat_service.get_chat(db, id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if existing.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    await chat_service.delete_chat(db, id)
    return {"message": "Chat deleted"}


@router.get("/chat/{chat_id}", response_model=ChatDetailResponse)
async def get_chat(
    chat_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    existing = await chat_service.get_chat(db, chat_id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if existing.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    messages = await chat_service.get_messages(db, chat_id)
    return ChatDetailResponse(
        chat=ChatOut.model_validate(existing),
        messages=[_present_message(m) for m in messages],
    )


@router.get("/history", response_model=list[ChatOut])
async def history(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    chats = await chat_service.list_chats(db, user.id)
    return [ChatOut.model_validate(c) for c in chats]
