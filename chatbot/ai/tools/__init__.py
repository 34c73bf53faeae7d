"""Tools the chat model may call, keyed by the name the model sees."""
from chatbot.ai.tools.base import Tool, ToolContext
from chatbot.ai.tools.documents import create_document_tool, update_document_tool
from chatbot.ai.tools.get_weather import get_weather_tool
from chatbot.ai.tools.request_suggestions import request_suggestions_tool

TOOLS: dict[str, Tool] = {
    t.name: t
    for t in (get_weather_tool, create_document_tool, update_document_tool, request_suggestions_tool)
}


def get_tools(names: list[str]) -> list[Tool]:
    return [TOOLS[name] for name in names if name in TOOLS]


__all__ = ["Tool", "ToolContext", "TOOLS", "get_tools"]
