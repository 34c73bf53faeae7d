"""
Document + Suggestion persistence. A document id has one row per saved version;
the latest version is the one with the greatest created_at.
"""
from datetime import datetime

from sqlalchemy import desc
from sqlalchemy.orm import Session

from chatbot.models.document import Document, Suggestion


def save_document(
    db: Session,
    document_id: str,
    title: str,
    kind: str,
    content: str,
    user_id: str,
) -> Document:
    doc = Document(
        id=document_id,
        title=title,
        kind=kind,
        content=content,
        user_id=user_id,
        created_at=datetime.utcnow(),
    )
    db.add(doc)
    db.commit()
    db.refresh(doc)
    return doc


def get_documents_by_id(db: Session, document_id: str) -> list[Document]:
    """All versions, oldest first."""
    return (
        db.query(Document)
        .filter(Document.id == document_id)
        .order_by(Document.created_at)
        .all()
    )


def get_document_by_id(db: Session, document_id: str) -> Document | None:
    return (
        db.query(Document)
        .filter(Document.id == document_id)
        .order_by(desc(Document.created_at))
        .first()
    )


def delete_documents_by_id_after_timestamp(db: Session, document_id: str, timestamp: datetime) -> int:
    """Drop versions newer than timestamp (and their suggestions). Returns deleted version count."""
    db.query(Suggestion).filter(
        Suggestion.document_id == document_id,
        Suggestion.document_created_at > timestamp,
    ).delete(synchronize_session=False)
    deleted = db.query(Document).filter(
        Document.id == document_id,
        Document.created_at > timestamp,
    ).delete(synchronize_session=False)
    db.commit()
    return deleted


def save_suggestions(db: Session, suggestions: list[dict]) -> list[Suggestion]:
    rows = [Suggestion(**s) for s in suggestions]
    db.add_all(rows)
    db.commit()
    return rows


def get_suggestions_by_document_id(db: Session, document_id: str) -> list[Suggestion]:
    return (
        db.query(Suggestion)
        .filter(Suggestion.document_id == document_id)
        .order_by(Suggestion.created_at)
        .all()
    )


class DocumentRepository:
    """Thin wrapper for dependency injection; delegates to module functions."""

    @staticmethod
    def save_document(db: Session, document_id: str, title: str, kind: str, content: str, user_id: str) -> Document:
        return save_document(db, document_id, title, kind, content, user_id)

    @staticmethod
    def get_documents_by_id(db: Session, document_id: str) -> list[Document]:
        return get_documents_by_id(db, document_id)

    @staticmethod
    def get_document_by_id(db: Session, document_id: str) -> Document | None:
        return get_document_by_id(db, document_id)

    @staticmethod
    def delete_documents_by_id_after_timestamp(db: Session, document_id: str, timestamp: datetime) -> int:
        return delete_documents_by_id_after_timestamp(db, document_id, timestamp)

    @staticmethod
    def save_suggestions(db: Session, suggestions: list[dict]) -> list[Suggestion]:
        return save_suggestions(db, suggestions)

    @staticmethod
    def get_suggestions_by_document_id(db: Session, document_id: str) -> list[Suggestion]:
        return get_suggestions_by_document_id(db, document_id)
