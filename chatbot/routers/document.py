"""
Documents written by the document tools, and their suggestions:
- GET /api/document?id=: all versions, oldest first
- POST /api/document?id=: save a new version
- DELETE /api/document?id=&timestamp=: drop versions newer than timestamp
- GET /api/suggestions?documentId=: suggestions of an owned document
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from chatbot.auth import get_current_user
from chatbot.database import get_db
from chatbot.models.user import User
from chatbot.repositories import document_repository
from chatbot.schemas.document import DocumentIn, DocumentOut, SuggestionOut

router = APIRouter(prefix="/api", tags=["document"])


def _owned_versions(db: Session, document_id: str, user: User):
    documents = document_repository.get_documents_by_id(db, document_id)
    if not documents:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    if documents[0].user_id != user.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return documents


@router.get("/document", response_model=list[DocumentOut])
def get_document(
    id: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    return [DocumentOut.model_validate(d) for d in _owned_versions(db, id, user)]


@router.post("/document", response_model=DocumentOut)
def save_document(
    body: DocumentIn,
    id: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    latest = document_repository.get_document_by_id(db, id)
    if latest is not None and latest.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    doc = document_repository.save_document(db, id, body.title, body.kind.value, body.content, user.id)
    return DocumentOut.model_validate(doc)


@router.delete("/document")
def delete_document_versions(
    id: str | None = None,
    timestamp: datetime | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    if timestamp is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing timestamp")
    _owned_versions(db, id, user)
    # Stored timestamps are naive UTC
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)
    deleted = document_repository.delete_documents_by_id_after_timestamp(db, id, timestamp)
    return {"deleted": deleted}


@router.get("/suggestions", response_model=list[SuggestionOut])
def get_suggestions(
    document_id: str | None = Query(None, alias="documentId"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not document_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    suggestions = document_repository.get_suggestions_by_document_id(db, document_id)
    if suggestions and suggestions[0].user_id != user.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return [SuggestionOut.model_validate(s) for s in suggestions]
