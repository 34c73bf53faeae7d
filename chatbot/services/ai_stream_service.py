"""
Streaming chat completion with tool calls, as Server-Sent Events.

A worker thread drives the (sync) provider stream: it forwards every part to an asyncio
queue, runs tool calls between model steps and feeds their results back to the model.
The async side re-chunks text deltas on word boundaries with a small delay (smooth stream)
and, once the model is done, hands the response messages to on_finish for saving.

Client stop: when the response is closed early the worker is told to stop; what was
generated so far is still passed to on_finish.
"""
import asyncio
import json
import logging
import re
import threading
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi.responses import StreamingResponse

from chatbot.ai.providers import LanguageModel
from chatbot.ai.tools import Tool, ToolContext
from chatbot.config import get_settings

logger = logging.getLogger(__name__)

STREAM_ERROR_MESSAGE = (
    "Oops, an error occurred! If you uploaded images, please try again without attachments "
    "as they might not be supported with the current AI provider."
)

_WORD = re.compile(r"\s*\S+\s+")

# Keep references to post-stop save tasks so they are not garbage collected mid-flight
_background_tasks: set[asyncio.Task] = set()


@dataclass
class CompletionResult:
    response_messages: list[dict] = field(default_factory=list)
    reasoning: str = ""
    finish_reason: str | None = None
    usage: dict[str, int] = field(default_factory=lambda: {"input_tokens": 0, "output_tokens": 0})
    stopped: bool = False
    error: Exception | None = None


def _sse_message(payload: dict) -> str:
    """Proper SSE format: data: {json}\\n\\n"""
    return f"data: {json.dumps(payload, default=str)}\n\n"


def _take_words(buffer: str, n: int) -> tuple[str, str]:
    """
    Take up to n full words (with their trailing whitespace) from buffer.
    Returns (chunk_to_send, remainder). Never breaks mid-word; keeps newlines intact.
    """
    end = 0
    for count, match in enumerate(_WORD.finditer(buffer), start=1):
        if match.start() != end:
            break
        end = match.end()
        if count == n:
            return buffer[:end], buffer[end:]
    return "", buffer


def _execute_tool(tools: dict[str, Tool], ctx: ToolContext, name: str, args: dict) -> Any:
    tool = tools.get(name)
    if tool is None:
        return {"error": f"Tool {name} is not available"}
    try:
        return tool.run(ctx, args)
    except Exception as e:
        logger.exception("Tool %s failed", name)
        return {"error": f"Tool {name} failed: {e}"}


def run_completion(
    model: LanguageModel,
    system: str,
    messages: list[dict],
    tools: list[Tool],
    tool_context: ToolContext | None,
    emit: Callable[[dict], None],
    stop_event: threading.Event,
    *,
    max_steps: int = 5,
    search_grounding: bool = False,
) -> CompletionResult:
    """
    Sync multi-step completion. Each step streams one assistant message; if it asked for
    tools, they are executed and a tool message is appended before the next step.
    Provider errors end the loop and are reported in result.error.
    """
    result = CompletionResult()
    history = list(messages)
    tools_by_name = {t.name: t for t in tools}
    reasoning: list[str] = []

    try:
        for _ in range(max(1, max_steps)):
            message_id = str(uuid.uuid4())
            emit({"type": "start-step", "messageId": message_id})
            text = ""
            tool_calls = []
            stream = model.stream(system, history, tools or None, search_grounding=search_grounding)
            try:
                for part in stream:
                    if stop_event.is_set():
                        result.stopped = True
                        break
                    if part.type == "text":
                        text += part.text
                        emit({"type": "text-delta", "textDelta": part.text})
                    elif part.type == "reasoning":
                        reasoning.append(part.text)
                        emit({"type": "reasoning", "textDelta": part.text})
                    elif part.type == "tool-call" and part.tool_call:
                        tc = part.tool_call
                        tool_calls.append(tc)
                        emit({"type": "tool-call", "toolCallId": tc.id, "toolName": tc.name, "args": tc.args})
                    elif part.type == "finish":
                        result.finish_reason = part.finish_reason
                        for key, value in part.usage.items():
                            result.usage[key] = result.usage.get(key, 0) + value
            finally:
                close = getattr(stream, "close", None)
                if close:
                    close()

            content: list[dict] = [{"type": "text", "text": text}] if text else []
            content.extend(
                {"type": "tool-call", "toolCallId": tc.id, "toolName": tc.name, "args": tc.args}
                for tc in tool_calls
            )
            assistant = {"id": message_id, "role": "assistant", "content": content}
            result.response_messages.append(assistant)
            history.append(assistant)

            continued = bool(tool_calls) and not result.stopped
            emit({"type": "finish-step", "finishReason": result.finish_reason, "isContinued": continued})
            if not continued:
                break

            tool_results = []
            for tc in tool_calls:
                if stop_event.is_set():
                    result.stopped = True
                    break
                output = _execute_tool(tools_by_name, tool_context, tc.name, tc.args)
                emit({"type": "tool-result", "toolCallId": tc.id, "toolName": tc.name, "result": output})
                tool_results.append({"type": "tool-result", "toolCallId": tc.id, "toolName": tc.name, "result": output})
            tool_message = {"id": str(uuid.uuid4()), "role": "tool", "content": tool_results}
            result.response_messages.append(tool_message)
            history.append(tool_message)
            if result.stopped:
                break
    except Exception as e:
        logger.exception("Model stream failed (%s)", model.model_id)
        result.error = e

    result.reasoning = "".join(reasoning)
    return result


def _sync_producer(
    run: Callable[[Callable[[dict], None]], CompletionResult],
    queue: asyncio.Queue,
    loop: asyncio.AbstractEventLoop,
) -> CompletionResult:
    """
    Run in thread: drive the completion, put each event into queue via loop.
    Puts None when done, or the exception on provider error. Thread-safe: uses
    call_soon_threadsafe so we don't block the event loop.
    """

    def emit(event: dict) -> None:
        if not loop.is_closed():
            loop.call_soon_threadsafe(queue.put_nowait, event)

    result = run(emit)
    if not loop.is_closed():
        loop.call_soon_threadsafe(queue.put_nowait, result.error if result.error else None)
    return result


async def _finish_after_stop(
    producer_future: asyncio.Future,
    on_finish: Callable[[CompletionResult], Awaitable[None]],
) -> None:
    try:
        result = await producer_future
        if result.error is None:
            await on_finish(result)
    except Exception as e:
        logger.warning("Saving stopped response failed: %s", e)


async def _stream_events(
    run: Callable[[Callable[[dict], None]], CompletionResult],
    on_finish: Callable[[CompletionResult], Awaitable[None]],
    stop_event: threading.Event,
) -> AsyncGenerator[str, None]:
    """
    Async generator: consume events from the worker thread, group text deltas every
    STREAM_WORD_GROUP_SIZE words with STREAM_DELAY_MS between sends, pass other events
    through. When the worker is done, call on_finish(result) and yield the finish event.
    """
    settings = get_settings()
    group_size = max(1, settings.stream_word_group_size)
    delay_s = max(0.0, settings.stream_delay_ms / 1000.0)

    queue: asyncio.Queue = asyncio.Queue()
    loop = asyncio.get_running_loop()
    producer_future = loop.run_in_executor(None, _sync_producer, run, queue, loop)

    buffer = ""
    completed = False

    try:
        while True:
            try:
                item = await asyncio.wait_for(queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                await asyncio.sleep(0)
                continue
            if item is None:
                break
            if isinstance(item, Exception):
                if buffer:
                    yield _sse_message({"type": "text-delta", "textDelta": buffer})
                    buffer = ""
                yield _sse_message({"type": "error", "error": STREAM_ERROR_MESSAGE})
                completed = True
                return
            if item.get("type") == "text-delta":
                buffer += item["textDelta"]
                while True:
                    chunk, buffer = _take_words(buffer, group_size)
                    if not chunk:
                        break
                    yield _sse_message({"type": "text-delta", "textDelta": chunk})
                    if delay_s:
                        await asyncio.sleep(delay_s)
                continue
            if buffer:
                yield _sse_message({"type": "text-delta", "textDelta": buffer})
                buffer = ""
            yield _sse_message(item)

        if buffer:
            yield _sse_message({"type": "text-delta", "textDelta": buffer})

        result = await producer_future
        completed = True
        try:
            await on_finish(result)
        except Exception as e:
            logger.warning("on_finish failed (stream already sent): %s", e)
        yield _sse_message({
            "type": "finish",
            "finishReason": "stop" if result.stopped else (result.finish_reason or "stop"),
            "usage": result.usage,
        })
    finally:
        if not completed:
            stop_event.set()
            task = asyncio.ensure_future(_finish_after_stop(producer_future, on_finish))
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)


def stream_chat_response(
    model: LanguageModel,
    system: str,
    messages: list[dict],
    tools: list[Tool],
    on_finish: Callable[[CompletionResult], Awaitable[None]],
    *,
    tool_context_factory: Callable[[Callable[[dict], None]], ToolContext] | None = None,
    search_grounding: bool = False,
) -> StreamingResponse:
    """
    Build a StreamingResponse of SSE events for one chat turn.
    on_finish(result) is called after the model is done (or stopped by the client);
    it should sanitize and save the response messages. If it raises, we log and still
    send the finish event.
    """
    settings = get_settings()
    stop_event = threading.Event()

    def run(emit: Callable[[dict], None]) -> CompletionResult:
        def write_data(payload: dict) -> None:
            emit({"type": "data", "data": [payload]})

        ctx = tool_context_factory(write_data) if tool_context_factory and tools else None
        return run_completion(
            model,
            system,
            messages,
            tools,
            ctx,
            emit,
            stop_event,
            max_steps=settings.chat_max_steps,
            search_grounding=search_grounding,
        )

    return StreamingResponse(
        _stream_events(run, on_finish, stop_event),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
