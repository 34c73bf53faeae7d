"""
Provider registry: maps a chat model id to a hosted LLM.

- Gemini models use the google-genai client (API key, or Vertex AI when a project is configured).
- Anthropic, Cohere and Together AI are driven through their OpenAI-compatible endpoints with the openai SDK.

Clients are created lazily, so a missing credential surfaces as ProviderConfigurationError
when a model is first used, never at import or startup.
All calls are sync; the stream service runs them in a worker thread.
"""
import base64
import json
import logging
import threading
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

from google import genai
from google.genai import types
from google.oauth2 import service_account
from openai import OpenAI

from chatbot.ai.models import CHAT_MODELS, DEFAULT_CHAT_MODEL
from chatbot.config import Settings, get_settings

logger = logging.getLogger(__name__)

TITLE_MODEL = "title-model"
ARTIFACT_MODEL = "artifact-model"


class UnknownModelError(LookupError):
    """Model id is not in the registry."""


class ProviderConfigurationError(RuntimeError):
    """Credentials for a provider are missing."""


@dataclass(frozen=True)
class ModelSpec:
    provider: str  # "google" | "anthropic" | "cohere" | "together"
    model_name: str
    search_grounding: bool = False


@dataclass
class ToolCall:
    id: str
    name: str
    args: dict[str, Any]


@dataclass
class StreamPart:
    """One event from a provider stream: text, reasoning, tool-call or finish."""

    type: str
    text: str = ""
    tool_call: ToolCall | None = None
    finish_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)


MODEL_SPECS: dict[str, ModelSpec] = {
    "claude-3-5": ModelSpec("anthropic", "claude-3-5-haiku-latest"),
    "claude-3-7": ModelSpec("anthropic", "claude-3-7-sonnet-latest"),
    "gemini-2-5-pro-exp": ModelSpec("google", "gemini-2.5-pro-exp-03-25", search_grounding=True),
    "gemini-2-0-flash": ModelSpec("google", "gemini-2.0-flash-001", search_grounding=True),
    "cohere-command-a": ModelSpec("cohere", "command-a-03-2025"),
    "deepseek-r1": ModelSpec("together", "deepseek-ai/DeepSeek-R1-Distill-Llama-70B-free"),
}

# provider -> (api key setting, base url setting, env var name for error messages)
OPENAI_COMPATIBLE = {
    "anthropic": ("anthropic_api_key", "anthropic_base_url", "ANTHROPIC_API_KEY"),
    "cohere": ("cohere_api_key", "cohere_base_url", "COHERE_API_KEY"),
    "together": ("together_ai_api_key", "together_ai_base_url", "TOGETHER_AI_API_KEY"),
}


# ---- Message helpers (shared by both providers) ----


def _parts(content: Any) -> list[dict]:
    """Content is a plain string or a list of parts; always return parts."""
    if content is None:
        return []
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content else []
    return [p for p in content if isinstance(p, dict)]


def _text_of(content: Any) -> str:
    return "".join(p.get("text") or "" for p in _parts(content) if p.get("type") == "text")


def _token_count(usage: Any, key: str) -> int:
    """Get token count from usage metadata (dict or Pydantic model)."""
    if usage is None:
        return 0
    if isinstance(usage, dict):
        return int(usage.get(key) or 0)
    return int(getattr(usage, key, 0) or 0)


class LanguageModel:
    """One model of one provider. Subclasses implement stream()."""

    def __init__(self, model_id: str, spec: ModelSpec, settings: Settings):
        self.model_id = model_id
        self.spec = spec
        self._settings = settings

    def stream(
        self,
        system: str,
        messages: list[dict],
        tools: list[Any] | None = None,
        *,
        search_grounding: bool = False,
        temperature: float = 1.0,
    ) -> Iterator[StreamPart]:
        raise NotImplementedError

    def ensure_configured(self) -> None:
        """Raise ProviderConfigurationError when the provider has no credentials."""

    def stream_text(self, system: str, prompt: str, temperature: float = 0.7) -> Iterator[str]:
        """Text deltas only; for single-prompt generation (documents)."""
        for part in self.stream(system, [{"role": "user", "content": prompt}], temperature=temperature):
            if part.type == "text" and part.text:
                yield part.text

    def generate(self, system: str, prompt: str, temperature: float = 0.7) -> str:
        text = "".join(self.stream_text(system, prompt, temperature=temperature))
        if not text.strip():
            raise ValueError(f"Empty response from model {self.model_id}")
        return text


# ---- Google Gemini (google-genai) ----

_gemini_client = None
_gemini_lock = threading.Lock()

# Gemini finish reasons in the vocabulary the OpenAI-compatible providers use
_GEMINI_FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
    "BLOCKLIST": "content_filter",
    "PROHIBITED_CONTENT": "content_filter",
    "SPII": "content_filter",
}


def _gemini_finish_reason(reason: Any, called_tools: bool) -> str:
    name = str(getattr(reason, "name", reason)).upper()
    if called_tools and name == "STOP":
        return "tool_calls"
    return _GEMINI_FINISH_REASONS.get(name, name.lower())


def _get_gemini_client(settings: Settings):
    global _gemini_client
    if _gemini_client is not None:
        return _gemini_client
    with _gemini_lock:
        if _gemini_client is not None:
            return _gemini_client
        if settings.vertex_project_id:
            credentials = None
            if settings.vertex_credentials_path:
                path = Path(settings.vertex_credentials_path)
                if path.is_file():
                    credentials = service_account.Credentials.from_service_account_file(
                        str(path),
                        scopes=["https://www.googleapis.com/auth/cloud-platform"],
                    )
            _gemini_client = genai.Client(
                vertexai=True,
                project=settings.vertex_project_id,
                location=settings.vertex_location,
                credentials=credentials,
            )
        elif settings.gemini_api_key:
            _gemini_client = genai.Client(api_key=settings.gemini_api_key)
        else:
            raise ProviderConfigurationError("GEMINI_API_KEY is not configured")
        return _gemini_client


def _gemini_attachment_part(attachment: dict) -> types.Part:
    mime_type = attachment.get("contentType") or "application/octet-stream"
    data = attachment.get("data")
    if data is not None:
        return types.Part.from_bytes(data=data, mime_type=mime_type)
    return types.Part.from_uri(file_uri=attachment["url"], mime_type=mime_type)


def to_gemini_contents(messages: list[dict]) -> list[types.Content]:
    contents = []
    for m in messages:
        role = m.get("role")
        if role == "user":
            parts = [types.Part.from_text(text=p["text"]) for p in _parts(m.get("content")) if p.get("type") == "text" and p.get("text")]
            parts.extend(_gemini_attachment_part(a) for a in m.get("attachments") or [])
            if parts:
                contents.append(types.Content(role="user", parts=parts))
        elif role == "assistant":
            parts = []
            for p in _parts(m.get("content")):
                if p.get("type") == "text" and p.get("text"):
                    parts.append(types.Part.from_text(text=p["text"]))
                elif p.get("type") == "tool-call":
                    parts.append(types.Part.from_function_call(name=p["toolName"], args=p.get("args") or {}))
            if parts:
                contents.append(types.Content(role="model", parts=parts))
        elif role == "tool":
            parts = []
            for p in _parts(m.get("content")):
                if p.get("type") != "tool-result":
                    continue
                result = p.get("result")
                response = result if isinstance(result, dict) else {"result": result}
                parts.append(types.Part.from_function_response(name=p["toolName"], response=response))
            if parts:
                contents.append(types.Content(role="user", parts=parts))
    return contents


class GeminiLanguageModel(LanguageModel):
    def ensure_configured(self) -> None:
        _get_gemini_client(self._settings)

    def stream(self, system, messages, tools=None, *, search_grounding=False, temperature=1.0):
        client = _get_gemini_client(self._settings)

        gemini_tools = None
        if search_grounding and self.spec.search_grounding:
            # Gemini rejects search grounding combined with function calling
            gemini_tools = [types.Tool(google_search=types.GoogleSearch())]
        elif tools:
            gemini_tools = [
                types.Tool(
                    function_declarations=[
                        types.FunctionDeclaration(
                            name=t.name,
                            description=t.description,
                            parameters_json_schema=t.parameters,
                        )
                        for t in tools
                    ]
                )
            ]

        config = types.GenerateContentConfig(
            system_instruction=system or None,
            temperature=temperature,
            tools=gemini_tools,
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )
        stream = client.models.generate_content_stream(
            model=self.spec.model_name,
            contents=to_gemini_contents(messages),
            config=config,
        )
        finish_reason = None
        called_tools = False
        usage = None
        for chunk in stream:
            if not chunk:
                continue
            usage = getattr(chunk, "usage_metadata", None) or usage
            if not chunk.candidates:
                continue
            candidate = chunk.candidates[0]
            if candidate.finish_reason:
                finish_reason = candidate.finish_reason
            if not candidate.content or not candidate.content.parts:
                continue
            for part in candidate.content.parts:
                if part.function_call:
                    fc = part.function_call
                    called_tools = True
                    yield StreamPart(
                        "tool-call",
                        tool_call=ToolCall(id=fc.id or str(uuid.uuid4()), name=fc.name, args=dict(fc.args or {})),
                    )
                elif part.text:
                    yield StreamPart("reasoning" if part.thought else "text", text=part.text)
        yield StreamPart(
            "finish",
            finish_reason=_gemini_finish_reason(finish_reason, called_tools) if finish_reason else None,
            usage={
                "input_tokens": _token_count(usage, "prompt_token_count"),
                "output_tokens": _token_count(usage, "candidates_token_count"),
            },
        )


# ---- OpenAI-compatible providers (openai SDK) ----

_openai_clients: dict[str, OpenAI] = {}
_openai_lock = threading.Lock()


def _get_openai_client(provider: str, settings: Settings) -> OpenAI:
    if provider in _openai_clients:
        return _openai_clients[provider]
    key_attr, base_attr, env_name = OPENAI_COMPATIBLE[provider]
    api_key = getattr(settings, key_attr)
    if not api_key:
        raise ProviderConfigurationError(f"{env_name} is not configured")
    with _openai_lock:
        client = _openai_clients.get(provider)
        if client is None:
            client = OpenAI(api_key=api_key, base_url=getattr(settings, base_attr))
            _openai_clients[provider] = client
        return client


def _openai_attachment_part(attachment: dict) -> dict:
    data = attachment.get("data")
    if data is not None:
        mime_type = attachment.get("contentType") or "application/octet-stream"
        url = f"data:{mime_type};base64,{base64.b64encode(data).decode()}"
    else:
        url = attachment["url"]
    return {"type": "image_url", "image_url": {"url": url}}


def to_openai_messages(system: str, messages: list[dict]) -> list[dict]:
    out: list[dict] = [{"role": "system", "content": system}] if system else []
    for m in messages:
        role = m.get("role")
        if role == "user":
            text = _text_of(m.get("content"))
            attachments = m.get("attachments") or []
            if attachments:
                content: Any = [{"type": "text", "text": text}] if text else []
                content.extend(_openai_attachment_part(a) for a in attachments)
            else:
                content = text
            out.append({"role": "user", "content": content})
        elif role == "assistant":
            tool_calls = [
                {
                    "id": p["toolCallId"],
                    "type": "function",
                    "function": {"name": p["toolName"], "arguments": json.dumps(p.get("args") or {})},
                }
                for p in _parts(m.get("content"))
                if p.get("type") == "tool-call"
            ]
            msg: dict[str, Any] = {"role": "assistant", "content": _text_of(m.get("content")) or None}
            if tool_calls:
                msg["tool_calls"] = tool_calls
            out.append(msg)
        elif role == "tool":
            for p in _parts(m.get("content")):
                if p.get("type") == "tool-result":
                    out.append({
                        "role": "tool",
                        "tool_call_id": p["toolCallId"],
                        "content": json.dumps(p.get("result"), default=str),
                    })
    return out


def _parse_arguments(raw: str) -> dict:
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Tool call arguments are not valid JSON: %.200s", raw)
        return {}
    return args if isinstance(args, dict) else {}


class OpenAICompatibleLanguageModel(LanguageModel):
    def ensure_configured(self) -> None:
        _get_openai_client(self.spec.provider, self._settings)

    def stream(self, system, messages, tools=None, *, search_grounding=False, temperature=1.0):
        client = _get_openai_client(self.spec.provider, self._settings)
        kwargs: dict[str, Any] = {
            "model": self.spec.model_name,
            "messages": to_openai_messages(system, messages),
            "temperature": temperature,
            "stream": True,
        }
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {"name": t.name, "description": t.description, "parameters": t.parameters},
                }
                for t in tools
            ]

        pending: dict[int, dict] = {}
        finish_reason = None
        usage = None
        for chunk in client.chat.completions.create(**kwargs):
            usage = getattr(chunk, "usage", None) or usage
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            delta = choice.delta
            if delta is not None:
                reasoning = getattr(delta, "reasoning_content", None) or getattr(delta, "reasoning", None)
                if reasoning:
                    yield StreamPart("reasoning", text=reasoning)
                if delta.content:
                    yield StreamPart("text", text=delta.content)
                for tc in delta.tool_calls or []:
                    entry = pending.setdefault(tc.index, {"id": None, "name": "", "arguments": ""})
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function:
                        entry["name"] += tc.function.name or ""
                        entry["arguments"] += tc.function.arguments or ""
            if choice.finish_reason:
                finish_reason = choice.finish_reason

        for index in sorted(pending):
            entry = pending[index]
            yield StreamPart(
                "tool-call",
                tool_call=ToolCall(
                    id=entry["id"] or str(uuid.uuid4()),
                    name=entry["name"],
                    args=_parse_arguments(entry["arguments"]),
                ),
            )
        yield StreamPart(
            "finish",
            finish_reason=finish_reason,
            usage={
                "input_tokens": _token_count(usage, "prompt_tokens"),
                "output_tokens": _token_count(usage, "completion_tokens"),
            },
        )


# ---- Registry ----


class ProviderRegistry:
    """Resolves model ids (catalog ids plus title/artifact models) to LanguageModel instances."""

    def __init__(self, settings: Settings | None = None, specs: dict[str, ModelSpec] | None = None):
        self._settings = settings or get_settings()
        self._specs = dict(specs if specs is not None else MODEL_SPECS)
        self._specs.setdefault(TITLE_MODEL, ModelSpec("google", self._settings.title_model))
        self._specs.setdefault(ARTIFACT_MODEL, ModelSpec("google", self._settings.artifact_model))

    def has_model(self, model_id: str) -> bool:
        return model_id in self._specs

    def spec(self, model_id: str) -> ModelSpec:
        try:
            return self._specs[model_id]
        except KeyError:
            raise UnknownModelError(f"Unknown model: {model_id}") from None

    def language_model(self, model_id: str) -> LanguageModel:
        spec = self.spec(model_id)
        if spec.provider == "google":
            return GeminiLanguageModel(model_id, spec, self._settings)
        if spec.provider in OPENAI_COMPATIBLE:
            return OpenAICompatibleLanguageModel(model_id, spec, self._settings)
        raise UnknownModelError(f"Unknown provider {spec.provider!r} for model {model_id}")


def validate_registry(registry: ProviderRegistry) -> None:
    """Every offered chat model must resolve; the default must be offered."""
    missing = [m.id for m in CHAT_MODELS if not registry.has_model(m.id)]
    if missing:
        raise ValueError(f"Chat models without a provider: {', '.join(missing)}")
    if DEFAULT_CHAT_MODEL not in {m.id for m in CHAT_MODELS}:
        raise ValueError(f"Default chat model {DEFAULT_CHAT_MODEL!r} is not in the catalog")


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    return ProviderRegistry()
