"""Helpers over UI/provider message dicts: {"role", "content": str | [parts], ...}."""
from typing import Any

from chatbot.utils.thinking import extract_thinking


def get_most_recent_user_message(messages: list[dict]) -> dict | None:
    for message in reversed(messages):
        if message.get("role") == "user":
            return message
    return None


def message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(p.get("text") or "" for p in content if isinstance(p, dict) and p.get("type") == "text")
    return ""


def sanitize_response_messages(messages: list[dict], reasoning: str | None = None) -> list[dict]:
    """
    Clean up what the model produced before saving:
    - assistant: drop empty text parts and tool calls that never got a result
    - assistant: move a leading <think> block into "reasoning"
    - drop messages left with no content
    Provider reasoning (if any) is attached to the last assistant message.
    """
    tool_result_ids = {
        part.get("toolCallId")
        for message in messages
        if message.get("role") == "tool" and isinstance(message.get("content"), list)
        for part in message["content"]
        if part.get("type") == "tool-result"
    }

    sanitized = []
    for message in messages:
        message = dict(message)
        if message.get("role") == "assistant":
            content = message.get("content")
            parts = [{"type": "text", "text": content}] if isinstance(content, str) else list(content or [])
            kept = []
            for part in parts:
                if part.get("type") == "tool-call":
                    if part.get("toolCallId") in tool_result_ids:
                        kept.append(part)
                elif part.get("type") == "text":
                    split = extract_thinking(part.get("text") or "")
                    if split.thinking_content:
                        message["reasoning"] = "\n\n".join(
                            r for r in (message.get("reasoning"), split.thinking_content) if r
                        )
                    if split.main_content:
                        kept.append({"type": "text", "text": split.main_content})
                else:
                    kept.append(part)
            message["content"] = kept
        if message.get("content"):
            sanitized.append(message)

    if reasoning:
        for message in reversed(sanitized):
            if message.get("role") == "assistant":
                message["reasoning"] = "\n\n".join(r for r in (reasoning, message.get("reasoning")) if r)
                break
    return sanitized
