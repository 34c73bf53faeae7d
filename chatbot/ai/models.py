"""Chat models offered to the user. Ids resolve through the provider registry."""
from dataclasses import dataclass

DEFAULT_CHAT_MODEL = "gemini-2-0-flash"


@dataclass(frozen=True)
class ChatModel:
    id: str
    name: str
    description: str
    supports_tools: bool = True


CHAT_MODELS: list[ChatModel] = [
    ChatModel(
        id="gemini-2-0-flash",
        name="Gemini 2.0 Flash",
        description="High-speed chat model for quick tasks.",
    ),
    ChatModel(
        id="gemini-2-5-pro-exp",
        name="Gemini 2.5 Pro",
        description="Google's most capable model for complex reasoning.",
    ),
    ChatModel(
        id="claude-3-5",
        name="Claude 3.5 Haiku",
        description="Fast and efficient Claude model for everyday use",
    ),
    ChatModel(
        id="claude-3-7",
        name="Claude 3.7 Sonnet",
        description="Latest Claude model with enhanced reasoning and coding abilities",
    ),
    ChatModel(
        id="cohere-command-a",
        name="Cohere Command A",
        description="Optimized for advanced RAG and comprehensive knowledge tasks.",
    ),
    ChatModel(
        id="deepseek-r1",
        name="Deepseek R1",
        description="Reasoning model via Together AI; shows its thinking, no tools.",
        supports_tools=False,
    ),
]


def get_chat_model(model_id: str) -> ChatModel | None:
    for model in CHAT_MODELS:
        if model.id == model_id:
            return model
    return None


def supports_tools(model_id: str) -> bool:
    model = get_chat_model(model_id)
    return model.supports_tools if model else False
