"""
Message votes:
- GET /api/vote?chatId=: votes of an owned chat
- PATCH /api/vote: up/down vote one message (upsert)
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from chatbot.auth import get_current_user
from chatbot.database import get_db
from chatbot.dependencies import get_chat_service
from chatbot.models.user import User
from chatbot.schemas.vote import VoteOut, VoteRequest
from chatbot.services.chat_service import ChatService

router = APIRouter(prefix="/api", tags=["vote"])


async def _owned_chat(chat_service: ChatService, db: Session, chat_id: str, user: User):
    chat = await chat_service.get_chat(db, chat_id)
    if chat is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if chat.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return chat


@router.get("/vote", response_model=list[VoteOut])
async def get_votes(
    chat_id: str | None = Query(None, alias="chatId"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    if not chat_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="chatId is required")
    await _owned_chat(chat_service, db, chat_id, user)
    votes = await chat_service.get_votes(db, chat_id)
    return [VoteOut.model_validate(v) for v in votes]


@router.patch("/vote")
async def vote(
    body: VoteRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    await _owned_chat(chat_service, db, body.chat_id, user)
    message = await chat_service.get_message(db, body.message_id)
    if message is None or message.chat_id != body.chat_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    await chat_service.vote(db, body.chat_id, body.message_id, body.type)
    return {"message": "Message voted"}
