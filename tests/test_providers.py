from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from google.genai import types

from chatbot.ai.models import CHAT_MODELS
from chatbot.ai.providers import (
    GeminiLanguageModel,
    OpenAICompatibleLanguageModel,
    ProviderConfigurationError,
    ProviderRegistry,
    UnknownModelError,
    to_gemini_contents,
    to_openai_messages,
    validate_registry,
)
from chatbot.config import Settings


def _chunk(content=None, tool_calls=None, finish_reason=None, usage=None, reasoning_content=None):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls, reasoning_content=reasoning_content)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)], usage=usage)


def _tool_delta(index, id=None, name=None, arguments=None):
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


class TestRegistry:
    def test_every_catalog_model_resolves(self):
        registry = ProviderRegistry(Settings())

        validate_registry(registry)
        for model in CHAT_MODELS:
            assert registry.has_model(model.id)

    def test_provider_classes(self):
        registry = ProviderRegistry(Settings())

        assert isinstance(registry.language_model("gemini-2-0-flash"), GeminiLanguageModel)
        assert isinstance(registry.language_model("claude-3-7"), OpenAICompatibleLanguageModel)
        assert isinstance(registry.language_model("deepseek-r1"), OpenAICompatibleLanguageModel)

    def test_unknown_model(self):
        with pytest.raises(UnknownModelError):
            ProviderRegistry(Settings()).language_model("gpt-404")

    def test_missing_catalog_model_fails_validation(self):
        registry = ProviderRegistry(Settings(), specs={})

        with pytest.raises(ValueError, match="without a provider"):
            validate_registry(registry)

    def test_missing_key_surfaces_on_first_use(self):
        model = ProviderRegistry(Settings(cohere_api_key="")).language_model("cohere-command-a")

        with pytest.raises(ProviderConfigurationError, match="COHERE_API_KEY"):
            list(model.stream("system", [{"role": "user", "content": "hi"}]))

    def test_ensure_configured_checks_credentials(self):
        model = ProviderRegistry(Settings(cohere_api_key="")).language_model("cohere-command-a")

        with pytest.raises(ProviderConfigurationError, match="COHERE_API_KEY"):
            model.ensure_configured()


class TestOpenAIMessages:
    def test_system_user_assistant_and_tool_turns(self):
        messages = [
            {"role": "user", "content": "Weather?"},
            {"role": "assistant", "content": [
                {"type": "tool-call", "toolCallId": "c1", "toolName": "getWeather", "args": {"latitude": 1, "longitude": 2}},
            ]},
            {"role": "tool", "content": [
                {"type": "tool-result", "toolCallId": "c1", "toolName": "getWeather", "result": {"t": 20}},
            ]},
        ]

        out = to_openai_messages("be nice", messages)

        assert out[0] == {"role": "system", "content": "be nice"}
        assert out[1] == {"role": "user", "content": "Weather?"}
        assert out[2]["content"] is None
        assert out[2]["tool_calls"][0]["function"] == {
            "name": "getWeather",
            "arguments": '{"latitude": 1, "longitude": 2}',
        }
        assert out[3] == {"role": "tool", "tool_call_id": "c1", "content": '{"t": 20}'}

    def test_inline_attachment_becomes_data_url(self):
        messages = [{
            "role": "user",
            "content": "What is this?",
            "attachments": [{"url": "/api/files/a.png", "contentType": "image/png", "data": b"png"}],
        }]

        content = to_openai_messages("", messages)[0]["content"]

        assert content[0] == {"type": "text", "text": "What is this?"}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,cG5n"


class TestOpenAIStream:
    def test_text_reasoning_and_tool_call_deltas(self):
        chunks = [
            _chunk(reasoning_content="thinking"),
            _chunk(content="Hel"),
            _chunk(content="lo"),
            _chunk(tool_calls=[_tool_delta(0, id="c1", name="getWeather", arguments='{"latitude": ')]),
            _chunk(tool_calls=[_tool_delta(0, arguments='1, "longitude": 2}')]),
            _chunk(finish_reason="tool_calls", usage=SimpleNamespace(prompt_tokens=7, completion_tokens=3)),
        ]
        client = MagicMock()
        client.chat.completions.create.return_value = iter(chunks)
        model = ProviderRegistry(Settings(anthropic_api_key="k")).language_model("claude-3-5")

        with patch("chatbot.ai.providers._get_openai_client", return_value=client):
            parts = list(model.stream("sys", [{"role": "user", "content": "hi"}]))

        assert [(p.type, p.text) for p in parts[:3]] == [("reasoning", "thinking"), ("text", "Hel"), ("text", "lo")]
        assert parts[3].tool_call.name == "getWeather"
        assert parts[3].tool_call.args == {"latitude": 1, "longitude": 2}
        assert parts[4].type == "finish"
        assert parts[4].finish_reason == "tool_calls"
        assert parts[4].usage == {"input_tokens": 7, "output_tokens": 3}


class TestGeminiContents:
    def test_roles_and_function_parts(self):
        messages = [
            {"role": "user", "content": "Weather?"},
            {"role": "assistant", "content": [
                {"type": "text", "text": "Checking."},
                {"type": "tool-call", "toolCallId": "c1", "toolName": "getWeather", "args": {"latitude": 1}},
            ]},
            {"role": "tool", "content": [
                {"type": "tool-result", "toolCallId": "c1", "toolName": "getWeather", "result": "sunny"},
            ]},
        ]

        contents = to_gemini_contents(messages)

        assert [c.role for c in contents] == ["user", "model", "user"]
        assert contents[1].parts[1].function_call.name == "getWeather"
        assert contents[2].parts[0].function_response.response == {"result": "sunny"}

    def test_empty_messages_are_skipped(self):
        assert to_gemini_contents([{"role": "user", "content": ""}]) == []


def _gemini_chunk(parts, finish_reason=None, usage=None):
    return types.GenerateContentResponse(
        candidates=[
            types.Candidate(
                content=types.Content(role="model", parts=parts),
                finish_reason=finish_reason,
            )
        ],
        usage_metadata=usage,
    )


class TestGeminiStream:
    def _stream(self, chunks):
        client = MagicMock()
        client.models.generate_content_stream.return_value = iter(chunks)
        model = ProviderRegistry(Settings()).language_model("gemini-2-0-flash")
        with patch("chatbot.ai.providers._get_gemini_client", return_value=client):
            return list(model.stream("sys", [{"role": "user", "content": "hi"}]))

    def test_finish_reason_matches_openai_vocabulary(self):
        parts = self._stream([
            _gemini_chunk([types.Part(text="Hel")]),
            _gemini_chunk(
                [types.Part(text="lo")],
                finish_reason=types.FinishReason.STOP,
                usage=types.GenerateContentResponseUsageMetadata(prompt_token_count=4, candidates_token_count=2),
            ),
        ])

        assert [(p.type, p.text) for p in parts[:2]] == [("text", "Hel"), ("text", "lo")]
        assert parts[-1].type == "finish"
        assert parts[-1].finish_reason == "stop"
        assert parts[-1].usage == {"input_tokens": 4, "output_tokens": 2}

    def test_max_tokens_is_length(self):
        parts = self._stream([_gemini_chunk([types.Part(text="cut")], finish_reason=types.FinishReason.MAX_TOKENS)])

        assert parts[-1].finish_reason == "length"

    def test_function_call_finishes_with_tool_calls(self):
        call = types.Part(function_call=types.FunctionCall(name="getWeather", args={"latitude": 1, "longitude": 2}))

        parts = self._stream([_gemini_chunk([call], finish_reason=types.FinishReason.STOP)])

        assert parts[0].tool_call.name == "getWeather"
        assert parts[0].tool_call.args == {"latitude": 1, "longitude": 2}
        assert parts[-1].finish_reason == "tool_calls"
