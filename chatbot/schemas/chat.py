from datetime import datetime
from typing import Any

from pydantic import Field

from chatbot.schemas.base import CamelModel


class Attachment(CamelModel):
    url: str
    name: str | None = None
    content_type: str | None = None


class ChatMessageIn(CamelModel):
    id: str | None = None
    role: str
    content: str | list[dict[str, Any]] = ""
    reasoning: str | None = None
    experimental_attachments: list[Attachment] | None = Field(
        None, alias="experimental_attachments"
    )


class ChatRequest(CamelModel):
    id: str = Field(..., min_length=1, max_length=36)
    messages: list[ChatMessageIn]
    selected_chat_model: str
    selected_writing_style: str = "Normal"
    use_search_grounding: bool = False


class ChatOut(CamelModel):
    id: str
    title: str
    user_id: str
    created_at: datetime


class MessageOut(CamelModel):
    id: str
    chat_id: str
    role: str
    content: str | list[dict[str, Any]]
    reasoning: str | None = None
    attachments: list[Attachment] = []
    created_at: datetime


class ChatDetailResponse(CamelModel):
    chat: ChatOut
    messages: list[MessageOut]
