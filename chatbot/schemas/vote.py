from typing import Literal

from chatbot.schemas.base import CamelModel


class VoteRequest(CamelModel):
    chat_id: str
    message_id: str
    type: Literal["up", "down"]


class VoteOut(CamelModel):
    chat_id: str
    message_id: str
    is_upvoted: bool
