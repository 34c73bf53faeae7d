"""
createDocument / updateDocument: generate document content with the artifact model,
stream it to the client as data events, then save a new document version.
"""
import logging
import re
import uuid
from typing import Literal

from pydantic import BaseModel, Field

from chatbot.ai.prompts import (
    CODE_PROMPT,
    CREATE_DOCUMENT,
    TEXT_DOCUMENT_PROMPT,
    UPDATE_DOCUMENT,
    update_document_prompt,
)
from chatbot.ai.providers import ARTIFACT_MODEL
from chatbot.ai.tools.base import Tool, ToolContext
from chatbot.repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^\s*```[\w+-]*\n(.*?)\n?```\s*$", re.S)


def strip_code_fence(text: str) -> str:
    """Models often wrap code in a markdown fence even when told not to."""
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text


def _generate_draft(ctx: ToolContext, kind: str, system: str, prompt: str) -> str:
    model = ctx.registry.language_model(ARTIFACT_MODEL)
    draft = ""
    for delta in model.stream_text(system, prompt):
        draft += delta
        if kind == "code":
            ctx.write_data({"type": "code-delta", "content": strip_code_fence(draft)})
        else:
            ctx.write_data({"type": "text-delta", "content": delta})
    return strip_code_fence(draft) if kind == "code" else draft


class CreateDocumentArgs(BaseModel):
    title: str = Field(..., min_length=1)
    kind: Literal["text", "code"] = "text"


def create_document(ctx: ToolContext, args: CreateDocumentArgs) -> dict:
    document_id = str(uuid.uuid4())

    ctx.write_data({"type": "id", "content": document_id})
    ctx.write_data({"type": "title", "content": args.title})
    ctx.write_data({"type": "kind", "content": args.kind})
    ctx.write_data({"type": "clear", "content": ""})

    system = CODE_PROMPT if args.kind == "code" else TEXT_DOCUMENT_PROMPT
    draft = _generate_draft(ctx, args.kind, system, args.title)

    ctx.write_data({"type": "finish", "content": ""})

    db = ctx.session_factory()
    try:
        DocumentRepository.save_document(db, document_id, args.title, args.kind, draft, ctx.user_id)
    finally:
        db.close()

    return {
        "id": document_id,
        "title": args.title,
        "kind": args.kind,
        "content": "A document was created and is now visible to the user.",
    }


class UpdateDocumentArgs(BaseModel):
    id: str = Field(..., description="The ID of the document to update")
    description: str = Field(..., description="The description of changes that need to be made")


def update_document(ctx: ToolContext, args: UpdateDocumentArgs) -> dict:
    db = ctx.session_factory()
    try:
        document = DocumentRepository.get_document_by_id(db, args.id)
        if document is None or document.user_id != ctx.user_id:
            return {"error": "Document not found"}
        title, kind, current = document.title, document.kind, document.content

        ctx.write_data({"type": "clear", "content": title})
        draft = _generate_draft(ctx, kind, update_document_prompt(current, kind), args.description)
        ctx.write_data({"type": "finish", "content": ""})

        DocumentRepository.save_document(db, args.id, title, kind, draft, ctx.user_id)
    finally:
        db.close()

    return {
        "id": args.id,
        "title": title,
        "kind": kind,
        "content": "The document has been updated successfully.",
    }


create_document_tool = Tool(
    name=CREATE_DOCUMENT,
    description=(
        "Create a document for a writing activity. This tool will call other functions "
        "that will generate the contents of the document based on the title and kind."
    ),
    args_model=CreateDocumentArgs,
    execute=create_document,
)

update_document_tool = Tool(
    name=UPDATE_DOCUMENT,
    description="Update a document with the given description.",
    args_model=UpdateDocumentArgs,
    execute=update_document,
)
