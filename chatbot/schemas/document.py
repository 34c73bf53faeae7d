from datetime import datetime

from pydantic import Field

from chatbot.models.document import DocumentKind
from chatbot.schemas.base import CamelModel


class DocumentIn(CamelModel):
    title: str = Field(..., min_length=1)
    content: str = ""
    kind: DocumentKind = DocumentKind.TEXT


class DocumentOut(CamelModel):
    id: str
    created_at: datetime
    title: str
    content: str | None = None
    kind: str
    user_id: str


class SuggestionOut(CamelModel):
    id: str
    document_id: str
    document_created_at: datetime
    original_text: str
    suggested_text: str
    description: str | None = None
    is_resolved: bool
    user_id: str
    created_at: datetime
