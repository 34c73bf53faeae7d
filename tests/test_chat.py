import asyncio
import uuid
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeLanguageModel, parse_sse

from chatbot.ai.providers import ProviderConfigurationError, StreamPart, ToolCall
from chatbot.database import SessionLocal
from chatbot.repositories.chat_repository import ChatRepository
from chatbot.routers.chat import chat as post_chat
from chatbot.schemas.chat import ChatRequest
from chatbot.services.chat_service import ChatService
from chatbot.models.chat import Chat
from chatbot.models.message import Message
from chatbot.models.vote import Vote
from chatbot.services.ai_stream_service import STREAM_ERROR_MESSAGE, _background_tasks


def _chat_body(chat_id: str, text: str = "Hello there", model: str = "gemini-2-0-flash", **extra) -> dict:
    body = {
        "id": chat_id,
        "messages": [{"id": str(uuid.uuid4()), "role": "user", "content": text}],
        "selectedChatModel": model,
    }
    body.update(extra)
    return body


def _messages(db, chat_id: str) -> list[Message]:
    db.expire_all()
    return db.query(Message).filter(Message.chat_id == chat_id).order_by(Message.created_at).all()


def _text_of(events: list[dict]) -> str:
    return "".join(e["textDelta"] for e in events if e["type"] == "text-delta")


class TestPostChat:
    def test_unauthenticated_request_writes_nothing(self, client, db):
        chat_id = str(uuid.uuid4())

        response = client.post("/api/chat", json=_chat_body(chat_id))

        assert response.status_code == 401
        assert db.query(Chat).count() == 0
        assert db.query(Message).count() == 0

    def test_streams_reply_and_persists_both_turns(self, client, db, registry, auth_headers, user):
        registry.set_model("gemini-2-0-flash", FakeLanguageModel(text="Hi! How can I help you today?"))
        chat_id = str(uuid.uuid4())

        response = client.post("/api/chat", json=_chat_body(chat_id), headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert _text_of(events) == "Hi! How can I help you today?"
        assert events[-1]["type"] == "finish"
        assert events[-1]["finishReason"] == "stop"

        chat = db.get(Chat, chat_id)
        assert chat is not None
        assert chat.user_id == user.id
        assert chat.title == "Greeting the assistant"

        saved = _messages(db, chat_id)
        assert [m.role for m in saved] == ["user", "assistant"]
        assert saved[0].content == "Hello there"
        assert saved[1].content == [{"type": "text", "text": "Hi! How can I help you today?"}]

    def test_text_deltas_are_grouped_by_word(self, client, registry, auth_headers):
        registry.set_model("gemini-2-0-flash", FakeLanguageModel(steps=[[
            StreamPart(type="text", text="one tw"),
            StreamPart(type="text", text="o three"),
        ]]))

        response = client.post("/api/chat", json=_chat_body(str(uuid.uuid4())), headers=auth_headers)

        deltas = [e["textDelta"] for e in parse_sse(response.text) if e["type"] == "text-delta"]
        assert deltas == ["one ", "two ", "three"]

    def test_existing_chat_of_another_user_is_rejected(self, client, db, registry, auth_headers, other_headers):
        chat_id = str(uuid.uuid4())
        client.post("/api/chat", json=_chat_body(chat_id), headers=auth_headers)
        before = len(_messages(db, chat_id))

        response = client.post("/api/chat", json=_chat_body(chat_id, "intrude"), headers=other_headers)

        assert response.status_code == 401
        assert len(_messages(db, chat_id)) == before

    def test_no_user_message_is_bad_request(self, client, auth_headers):
        body = {
            "id": str(uuid.uuid4()),
            "messages": [{"role": "assistant", "content": "hi"}],
            "selectedChatModel": "gemini-2-0-flash",
        }

        response = client.post("/api/chat", json=body, headers=auth_headers)

        assert response.status_code == 400

    def test_unknown_model_is_bad_request(self, client, db, auth_headers):
        chat_id = str(uuid.uuid4())

        response = client.post("/api/chat", json=_chat_body(chat_id, model="gpt-404"), headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {"detail": "Unknown chat model: gpt-404"}
        assert db.get(Chat, chat_id) is None

    def test_unconfigured_provider_is_service_unavailable(self, client, db, registry, auth_headers):
        model = registry.set_model("claude-3-7", FakeLanguageModel("claude-3-7"))
        chat_id = str(uuid.uuid4())

        with patch.object(
            model, "ensure_configured", side_effect=ProviderConfigurationError("ANTHROPIC_API_KEY is not configured")
        ):
            response = client.post("/api/chat", json=_chat_body(chat_id, model="claude-3-7"), headers=auth_headers)

        assert response.status_code == 503
        assert response.json() == {"detail": "ANTHROPIC_API_KEY is not configured"}
        assert db.get(Chat, chat_id) is None
        assert model.calls == []

    def test_malformed_body_is_bad_request(self, client, auth_headers):
        response = client.post("/api/chat", json={"messages": "nope"}, headers=auth_headers)

        assert response.status_code == 400

    def test_thinking_block_is_saved_as_reasoning(self, client, db, registry, auth_headers):
        model = registry.set_model("deepseek-r1", FakeLanguageModel(
            "deepseek-r1", text="<think>user says hi</think>Hello!"
        ))
        chat_id = str(uuid.uuid4())

        client.post("/api/chat", json=_chat_body(chat_id, model="deepseek-r1"), headers=auth_headers)

        assert model.calls[0]["tools"] is None
        assistant = _messages(db, chat_id)[-1]
        assert assistant.role == "assistant"
        assert assistant.content == [{"type": "text", "text": "Hello!"}]
        assert assistant.reasoning == "user says hi"

    def test_concise_style_offers_fewer_tools(self, client, registry, auth_headers):
        model = registry.set_model("gemini-2-0-flash", FakeLanguageModel())

        client.post("/api/chat", json=_chat_body(str(uuid.uuid4())), headers=auth_headers)
        client.post(
            "/api/chat",
            json=_chat_body(str(uuid.uuid4()), selectedWritingStyle="Concise"),
            headers=auth_headers,
        )

        normal = {t.name for t in model.calls[0]["tools"]}
        concise = {t.name for t in model.calls[1]["tools"]}
        assert normal == {"getWeather", "createDocument", "updateDocument", "requestSuggestions"}
        assert concise == {"getWeather", "requestSuggestions"}
        assert "<userStyle>" in model.calls[1]["system"]

    def test_tool_call_result_is_fed_back_and_saved(self, client, db, registry, auth_headers):
        call = ToolCall(id="call-1", name="getWeather", args={"latitude": 52.52, "longitude": 13.41})
        model = registry.set_model("gemini-2-0-flash", FakeLanguageModel(steps=[
            [StreamPart(type="tool-call", tool_call=call)],
            [StreamPart(type="text", text="It is 17 degrees in Berlin.")],
        ]))
        forecast = MagicMock()
        forecast.json.return_value = {"current": {"temperature_2m": 17.0}}
        chat_id = str(uuid.uuid4())

        with patch("chatbot.ai.tools.get_weather.httpx.get", return_value=forecast):
            response = client.post("/api/chat", json=_chat_body(chat_id, "Weather in Berlin?"), headers=auth_headers)

        events = parse_sse(response.text)
        tool_results = [e for e in events if e["type"] == "tool-result"]
        assert tool_results[0]["result"] == {"current": {"temperature_2m": 17.0}}
        assert len(model.calls) == 2
        assert model.calls[1]["messages"][-1]["role"] == "tool"

        saved = _messages(db, chat_id)
        assert [m.role for m in saved] == ["user", "assistant", "tool", "assistant"]
        assert saved[1].content[0]["toolName"] == "getWeather"
        assert saved[3].content == [{"type": "text", "text": "It is 17 degrees in Berlin."}]

    def test_provider_error_sends_error_event_and_saves_no_reply(self, client, db, registry, auth_headers):
        registry.set_model("gemini-2-0-flash", FakeLanguageModel(steps=[[RuntimeError("quota exceeded")]]))
        chat_id = str(uuid.uuid4())

        response = client.post("/api/chat", json=_chat_body(chat_id), headers=auth_headers)

        events = parse_sse(response.text)
        assert {"type": "error", "error": STREAM_ERROR_MESSAGE} in events
        assert [m.role for m in _messages(db, chat_id)] == ["user"]

    def test_search_grounding_flag_reaches_the_model(self, client, registry, auth_headers):
        model = registry.set_model("gemini-2-0-flash", FakeLanguageModel())

        client.post(
            "/api/chat",
            json=_chat_body(str(uuid.uuid4()), useSearchGrounding=True),
            headers=auth_headers,
        )

        assert model.calls[0]["search_grounding"] is True


class TestClientStop:
    @pytest.mark.asyncio
    async def test_stopped_reply_is_saved(self, db, user, registry):
        words = [StreamPart(type="text", text=f"w{i} ") for i in range(50)]
        registry.set_model("gemini-2-0-flash", FakeLanguageModel(steps=[words], delay=0.02))
        chat_id = str(uuid.uuid4())

        response = await post_chat(
            ChatRequest.model_validate(_chat_body(chat_id)),
            db=db,
            user=user,
            chat_service=ChatService(redis_cache=None, repository=ChatRepository()),
            registry=registry,
            session_factory=SessionLocal,
        )
        body = response.body_iterator
        for _ in range(3):
            await body.__anext__()
        await body.aclose()
        await asyncio.wait_for(asyncio.gather(*list(_background_tasks)), timeout=5)

        saved = _messages(db, chat_id)
        assert [m.role for m in saved] == ["user", "assistant"]
        text = saved[1].content[0]["text"]
        assert text.startswith("w0 w1")
        assert "w49" not in text


class TestDeleteChat:
    def _create(self, client, headers) -> str:
        chat_id = str(uuid.uuid4())
        client.post("/api/chat", json=_chat_body(chat_id), headers=headers)
        return chat_id

    def test_missing_id_is_not_found(self, client, auth_headers):
        assert client.delete("/api/chat", headers=auth_headers).status_code == 404

    def test_unknown_chat_is_not_found(self, client, auth_headers):
        response = client.delete(f"/api/chat?id={uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == 404

    def test_unauthenticated(self, client, auth_headers):
        chat_id = self._create(client, auth_headers)

        assert client.delete(f"/api/chat?id={chat_id}").status_code == 401

    def test_other_owner_cannot_delete(self, client, db, auth_headers, other_headers):
        chat_id = self._create(client, auth_headers)

        response = client.delete(f"/api/chat?id={chat_id}", headers=other_headers)

        assert response.status_code == 401
        db.expire_all()
        assert db.get(Chat, chat_id) is not None

    def test_owner_deletes_chat_messages_and_votes(self, client, db, auth_headers):
        chat_id = self._create(client, auth_headers)
        assistant = _messages(db, chat_id)[-1]
        client.patch(
            "/api/vote",
            json={"chatId": chat_id, "messageId": assistant.id, "type": "up"},
            headers=auth_headers,
        )

        response = client.delete(f"/api/chat?id={chat_id}", headers=auth_headers)

        assert response.status_code == 200
        db.expire_all()
        assert db.get(Chat, chat_id) is None
        assert db.query(Message).filter(Message.chat_id == chat_id).count() == 0
        assert db.query(Vote).filter(Vote.chat_id == chat_id).count() == 0


class TestReadChats:
    def test_get_chat_with_messages(self, client, registry, auth_headers):
        registry.set_model("gemini-2-0-flash", FakeLanguageModel(text="Sure thing."))
        chat_id = str(uuid.uuid4())
        client.post("/api/chat", json=_chat_body(chat_id), headers=auth_headers)

        response = client.get(f"/api/chat/{chat_id}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["chat"]["id"] == chat_id
        assert [m["role"] for m in data["messages"]] == ["user", "assistant"]
        assert data["messages"][1]["chatId"] == chat_id

    def test_get_chat_of_other_user(self, client, auth_headers, other_headers):
        chat_id = str(uuid.uuid4())
        client.post("/api/chat", json=_chat_body(chat_id), headers=auth_headers)

        assert client.get(f"/api/chat/{chat_id}", headers=other_headers).status_code == 401

    def test_get_missing_chat(self, client, auth_headers):
        assert client.get(f"/api/chat/{uuid.uuid4()}", headers=auth_headers).status_code == 404

    def test_history_lists_only_own_chats(self, client, auth_headers, other_headers):
        mine = str(uuid.uuid4())
        client.post("/api/chat", json=_chat_body(mine), headers=auth_headers)
        client.post("/api/chat", json=_chat_body(str(uuid.uuid4())), headers=other_headers)

        response = client.get("/api/history", headers=auth_headers)

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [mine]

    def test_leftover_thinking_tags_are_split_out(self, client, db, auth_headers):
        chat_id = str(uuid.uuid4())
        client.post("/api/chat", json=_chat_body(chat_id), headers=auth_headers)
        db.add(Message(
            chat_id=chat_id,
            role="assistant",
            content=[{"type": "text", "text": "<think>\n\n</think>\n\nHello"}],
        ))
        db.commit()

        response = client.get(f"/api/chat/{chat_id}", headers=auth_headers)

        last = response.json()["messages"][-1]
        assert last["content"] == [{"type": "text", "text": "Hello"}]
        assert last["reasoning"] is None
