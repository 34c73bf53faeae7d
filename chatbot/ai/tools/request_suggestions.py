import json
import logging
import uuid

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from chatbot.ai.prompts import REQUEST_SUGGESTIONS, SUGGESTIONS_PROMPT
from chatbot.ai.providers import ARTIFACT_MODEL
from chatbot.ai.tools.base import Tool, ToolContext
from chatbot.ai.tools.documents import strip_code_fence
from chatbot.repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5


class RequestSuggestionsArgs(BaseModel):
    document_id: str = Field(..., alias="documentId", description="The ID of the document to request edits")

    class Config:
        populate_by_name = True


class SuggestionDraft(BaseModel):
    original_sentence: str = Field(..., alias="originalSentence")
    suggested_sentence: str = Field(..., alias="suggestedSentence")
    description: str = ""


_drafts = TypeAdapter(list[SuggestionDraft])


def parse_suggestions(text: str) -> list[SuggestionDraft]:
    """Model output -> at most MAX_SUGGESTIONS drafts. Unparseable output yields []."""
    try:
        data = json.loads(strip_code_fence(text.strip()))
        return _drafts.validate_python(data)[:MAX_SUGGESTIONS]
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Could not parse suggestions from model output: %s", e)
        return []


def request_suggestions(ctx: ToolContext, args: RequestSuggestionsArgs) -> dict:
    db = ctx.session_factory()
    try:
        document = DocumentRepository.get_document_by_id(db, args.document_id)
        if document is None or not document.content or document.user_id != ctx.user_id:
            return {"error": "Document not found"}

        model = ctx.registry.language_model(ARTIFACT_MODEL)
        drafts = parse_suggestions(model.generate(SUGGESTIONS_PROMPT, document.content))

        suggestions = []
        for draft in drafts:
            suggestion = {
                "id": str(uuid.uuid4()),
                "documentId": document.id,
                "originalText": draft.original_sentence,
                "suggestedText": draft.suggested_sentence,
                "description": draft.description,
                "isResolved": False,
            }
            ctx.write_data({"type": "suggestion", "content": suggestion})
            suggestions.append(suggestion)

        if suggestions:
            DocumentRepository.save_suggestions(
                db,
                [
                    {
                        "id": s["id"],
                        "document_id": document.id,
                        "document_created_at": document.created_at,
                        "original_text": s["originalText"],
                        "suggested_text": s["suggestedText"],
                        "description": s["description"],
                        "is_resolved": False,
                        "user_id": ctx.user_id,
                    }
                    for s in suggestions
                ],
            )
        title, kind = document.title, document.kind
    finally:
        db.close()

    return {
        "id": args.document_id,
        "title": title,
        "kind": kind,
        "message": "Suggestions have been added to the document",
    }


request_suggestions_tool = Tool(
    name=REQUEST_SUGGESTIONS,
    description="Request suggestions for a document",
    args_model=RequestSuggestionsArgs,
    execute=request_suggestions,
)
