from chatbot.schemas.base import CamelModel


class ChatModelOut(CamelModel):
    id: str
    name: str
    description: str
    supports_tools: bool


class ChatModelsResponse(CamelModel):
    default_chat_model: str
    models: list[ChatModelOut]


class WritingStyleOut(CamelModel):
    name: str
    prompt: str
    tools: list[str]


class PreferencesIn(CamelModel):
    selected_chat_model: str | None = None
    selected_writing_style: str | None = None


class PreferencesOut(CamelModel):
    selected_chat_model: str
    selected_writing_style: str
