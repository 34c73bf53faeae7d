from chatbot.models.user import User
from chatbot.models.user_preference import UserPreference
from chatbot.models.chat import Chat
from chatbot.models.message import Message
from chatbot.models.vote import Vote
from chatbot.models.document import Document, DocumentKind, Suggestion

__all__ = [
    "User", "UserPreference", "Chat", "Message", "Vote",
    "Document", "DocumentKind", "Suggestion",
]
