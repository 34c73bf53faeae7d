"""Tool plumbing: what every tool gets (ToolContext) and how it is described to the model (Tool)."""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from chatbot.ai.providers import ProviderRegistry

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """
    Per-request state handed to tools.
    write_data pushes a {"type", "content"} payload into the response stream (document deltas, suggestions).
    session_factory opens a fresh DB session; tools run in the stream thread, not the request.
    """

    user_id: str
    session_factory: Callable[[], Session]
    registry: ProviderRegistry
    write_data: Callable[[dict], None]


class Tool:
    def __init__(
        self,
        name: str,
        description: str,
        args_model: type[BaseModel],
        execute: Callable[[ToolContext, Any], Any],
    ):
        self.name = name
        self.description = description
        self.args_model = args_model
        self._execute = execute

    @property
    def parameters(self) -> dict:
        """JSON schema of the arguments, as sent to the provider."""
        return self.args_model.model_json_schema()

    def run(self, ctx: ToolContext, raw_args: dict) -> Any:
        try:
            args = self.args_model.model_validate(raw_args or {})
        except ValidationError as e:
            logger.warning("Invalid arguments for tool %s: %s", self.name, e)
            return {"error": f"Invalid arguments for {self.name}: {e.errors(include_url=False)}"}
        return self._execute(ctx, args)

    def __repr__(self) -> str:
        return f"Tool({self.name!r})"
