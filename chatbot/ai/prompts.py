"""
System prompts and writing styles.

WRITING_STYLES is the single table that decides, per style, the extra system prompt
and which tools the model may call. validate_writing_styles() runs at startup.
"""
import logging
from dataclasses import dataclass

from chatbot.ai.models import supports_tools

logger = logging.getLogger(__name__)

DEFAULT_WRITING_STYLE = "Normal"

GET_WEATHER = "getWeather"
CREATE_DOCUMENT = "createDocument"
UPDATE_DOCUMENT = "updateDocument"
REQUEST_SUGGESTIONS = "requestSuggestions"

ALL_TOOLS = (GET_WEATHER, CREATE_DOCUMENT, UPDATE_DOCUMENT, REQUEST_SUGGESTIONS)

REGULAR_PROMPT = "You are a friendly assistant! Keep your responses concise and helpful."

ARTIFACTS_PROMPT = """Documents are a special user interface mode that helps users with writing, editing, and other content creation tasks. When a document is open, it is shown on the right side of the screen, while the conversation is on the left side. When creating or updating documents, changes are reflected in real-time and visible to the user.

When asked to write code, always use a document. When writing code, specify the language in the backticks, e.g. ```python`code here```. The default language is Python.

DO NOT UPDATE DOCUMENTS IMMEDIATELY AFTER CREATING THEM. WAIT FOR USER FEEDBACK OR REQUEST TO UPDATE IT.

When to use `createDocument`:
- For substantial content (>10 lines) or code
- For content users will likely save or reuse (emails, code, essays, etc.)
- When explicitly requested to create a document
- For when content contains a single code snippet

When NOT to use `createDocument`:
- For informational or explanatory content
- For conversational responses
- When asked to keep it in chat

Using `updateDocument`:
- Default to full document rewrites for major changes
- Use targeted updates only for specific, isolated changes
- Follow user instructions for which parts to modify

When NOT to use `updateDocument`:
- Immediately after creating a document

Do not update document right after creating it. Wait for user feedback or request to update it."""

TITLE_PROMPT = """- you will generate a short title based on the first message a user begins a conversation with
- ensure it is not more than 80 characters long
- the title should be a summary of the user's message
- do not use quotes or colons"""

TEXT_DOCUMENT_PROMPT = "Write about the given topic. Markdown is supported. Use headings wherever appropriate."

CODE_PROMPT = """You are a Python code generator that creates self-contained, executable code snippets. When writing code:

1. Each snippet should be complete and runnable on its own
2. Prefer using print() statements to display outputs
3. Include helpful comments explaining the code
4. Keep snippets concise (generally under 15 lines)
5. Avoid external dependencies - use Python standard library
6. Handle potential errors gracefully
7. Return meaningful output that demonstrates the code's functionality
8. Don't use input() or other interactive functions
9. Don't access files or network resources
10. Don't use infinite loops

Return only the code, without surrounding explanation."""

SUGGESTIONS_PROMPT = """You are a help writing assistant. Given a piece of writing, please offer suggestions to improve the piece of writing and describe the change. It is very important for the edits to contain full sentences instead of just words. Max 5 suggestions.

Answer with a JSON array only. Each element is an object with the keys "originalSentence", "suggestedSentence" and "description"."""


def update_document_prompt(current_content: str | None, kind: str) -> str:
    if kind == "code":
        return f"Improve the following code snippet based on the given prompt.\n\n{current_content or ''}"
    return f"Improve the following contents of the document based on the given prompt.\n\n{current_content or ''}"


@dataclass(frozen=True)
class WritingStyle:
    prompt: str
    tools: tuple[str, ...]


WRITING_STYLES: dict[str, WritingStyle] = {
    "Normal": WritingStyle(prompt="", tools=ALL_TOOLS),
    "Concise": WritingStyle(
        prompt=(
            "<userStyle>Do not create artifacts. You may write in any programming language. "
            "Provide code directly in the chat using Markdown. Be concise. Use short sentences. "
            "Avoid details or elaboration. Respond directly. Write clear, simple emails without jargon. </userStyle>"
        ),
        tools=(GET_WEATHER, REQUEST_SUGGESTIONS),
    ),
    "Explanatory": WritingStyle(
        prompt=(
            "<userStyle>Provide detailed explanations and background context. Break down complex concepts "
            "into digestible parts. Use examples when helpful. Aim to educate the user thoroughly on the topic.</userStyle>"
        ),
        tools=ALL_TOOLS,
    ),
    "Formal": WritingStyle(
        prompt=(
            "<userStyle>Use a formal, professional tone. Avoid colloquialisms and casual language. Use precise "
            "vocabulary and maintain proper grammar throughout. Structure your responses in a logical, organized manner.</userStyle>"
        ),
        tools=ALL_TOOLS,
    ),
}


def validate_writing_styles(tool_names: set[str] | frozenset[str] | None = None) -> None:
    """Raise ValueError if the style table is inconsistent."""
    known = set(tool_names) if tool_names is not None else set(ALL_TOOLS)
    if DEFAULT_WRITING_STYLE not in WRITING_STYLES:
        raise ValueError(f"Writing style {DEFAULT_WRITING_STYLE!r} is missing")
    for name, style in WRITING_STYLES.items():
        unknown = [t for t in style.tools if t not in known]
        if unknown:
            raise ValueError(f"Writing style {name!r} enables unknown tools: {', '.join(unknown)}")
        if len(set(style.tools)) != len(style.tools):
            raise ValueError(f"Writing style {name!r} lists a tool twice")
    if len(WRITING_STYLES["Concise"].tools) >= len(WRITING_STYLES[DEFAULT_WRITING_STYLE].tools):
        raise ValueError("Concise must enable fewer tools than Normal")


def get_writing_style(name: str | None) -> WritingStyle:
    style = WRITING_STYLES.get(name or DEFAULT_WRITING_STYLE)
    if style is None:
        logger.warning("Unknown writing style %r, using %s", name, DEFAULT_WRITING_STYLE)
        return WRITING_STYLES[DEFAULT_WRITING_STYLE]
    return style


def resolve_active_tools(model_id: str, style_name: str | None) -> list[str]:
    """Models without tool support get none, whatever the style."""
    if not supports_tools(model_id):
        return []
    return list(get_writing_style(style_name).tools)


def system_prompt(model_id: str) -> str:
    if not supports_tools(model_id):
        return REGULAR_PROMPT
    return f"{REGULAR_PROMPT}\n\n{ARTIFACTS_PROMPT}"


def build_system_prompt(model_id: str, style_name: str | None) -> str:
    style_prompt = get_writing_style(style_name).prompt
    base = system_prompt(model_id)
    return f"{base}\n{style_prompt}" if style_prompt else base
