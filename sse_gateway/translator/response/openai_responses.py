"""
OpenAI Responses event stream <-> OpenAI chat chunks.

Rendering rules for the Responses side:

- every event carries a strictly increasing ``sequence_number``
- each output item keeps the ``output_index`` it was added with
- an item is closed (``*.done`` events) before an item of another kind opens
- function call arguments are buffered verbatim and never parsed mid-stream
- ``response.completed`` is emitted exactly once, after usage when available
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sse_gateway.translator.helpers.openai import create_openai_chunk
from sse_gateway.translator.state import (
    ResponsesFunctionItem,
    ResponsesMessageItem,
    ResponsesStreamState,
    StreamState,
    ToolCallBuffer,
    UpstreamState,
    merge_usage,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Responses -> chat chunks
# ---------------------------------------------------------------------------


def responses_usage_to_openai(usage: Any) -> dict[str, Any]:
    if not isinstance(usage, dict):
        return {}
    prompt = usage.get("input_tokens") or 0
    completion = usage.get("output_tokens") or 0
    out: dict[str, Any] = {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": usage.get("total_tokens") or prompt + completion,
    }
    cached = (usage.get("input_tokens_details") or {}).get("cached_tokens")
    if cached:
        out["prompt_tokens_details"] = {"cached_tokens": cached}
    reasoning = (usage.get("output_tokens_details") or {}).get("reasoning_tokens")
    if reasoning:
        out["completion_tokens_details"] = {"reasoning_tokens": reasoning}
    return out


def _chunk(up: UpstreamState, delta: dict[str, Any], finish: Optional[str] = None, usage=None) -> dict[str, Any]:
    return create_openai_chunk(up.message_id, up.model, up.created, delta, finish, usage)


def _ensure_started(up: UpstreamState, results: list[dict[str, Any]]) -> None:
    if up.message_id is None:
        up.message_id = f"chatcmpl-{uuid.uuid4().hex}"
    if not up.role_sent:
        up.role_sent = True
        results.append(_chunk(up, {"role": "assistant", "content": ""}))


def _finish_upstream(up: UpstreamState) -> list[dict[str, Any]]:
    if up.finish_sent or not up.role_sent:
        return []
    up.finish_sent = True
    usage = responses_usage_to_openai(up.usage) if up.usage else None
    return [_chunk(up, {}, up.finish_reason or "stop", usage)]


def openai_responses_to_openai_response(
    chunk: Optional[dict[str, Any]], state: StreamState
) -> list[dict[str, Any]]:
    up = state.upstream
    if chunk is None:
        return _finish_upstream(up)

    event_type = chunk.get("type") or ""
    results: list[dict[str, Any]] = []

    if event_type == "response.created":
        response = chunk.get("response") or {}
        if response.get("id"):
            up.message_id = f"chatcmpl-{response['id']}"
        up.model = response.get("model") or up.model
        _ensure_started(up, results)

    elif event_type == "response.output_item.added":
        _ensure_started(up, results)
        item = chunk.get("item") or {}
        if item.get("type") == "function_call":
            index = up.tool_counter
            up.tool_counter += 1
            buffer = ToolCallBuffer(
                id=item.get("call_id") or f"call_{uuid.uuid4().hex[:24]}",
                name=item.get("name") or "",
                block_index=index,
            )
            up.tool_blocks[item.get("id") or chunk.get("output_index")] = buffer
            up.tool_blocks.setdefault(chunk.get("output_index"), buffer)
            results.append(
                _chunk(
                    up,
                    {
                        "tool_calls": [
                            {
                                "index": index,
                                "id": buffer.id,
                                "type": "function",
                                "function": {"name": buffer.name, "arguments": ""},
                            }
                        ]
                    },
                )
            )

    elif event_type == "response.output_text.delta":
        _ensure_started(up, results)
        if chunk.get("delta"):
            results.append(_chunk(up, {"content": chunk["delta"]}))

    elif event_type in ("response.reasoning_summary_text.delta", "response.reasoning_text.delta"):
        _ensure_started(up, results)
        if chunk.get("delta"):
            results.append(_chunk(up, {"reasoning_content": chunk["delta"]}))

    elif event_type == "response.function_call_arguments.delta":
        buffer = up.tool_blocks.get(chunk.get("item_id")) or up.tool_blocks.get(chunk.get("output_index"))
        if buffer is not None and chunk.get("delta"):
            buffer.arguments += chunk["delta"]
            results.append(
                _chunk(up, {"tool_calls": [{"index": buffer.block_index, "function": {"arguments": chunk["delta"]}}]})
            )

    elif event_type in ("response.completed", "response.incomplete"):
        _ensure_started(up, results)
        response = chunk.get("response") or {}
        up.usage = merge_usage(up.usage, response.get("usage"))
        if response.get("status") == "incomplete" or event_type == "response.incomplete":
            up.finish_reason = "length"
        elif up.tool_counter > 0:
            up.finish_reason = "tool_calls"
        else:
            up.finish_reason = "stop"
        results.extend(_finish_upstream(up))

    elif event_type in ("response.failed", "error"):
        logger.warning("Upstream Responses stream error: %s", chunk.get("response") or chunk.get("error") or chunk)

    return results


# ---------------------------------------------------------------------------
# chat chunks -> Responses events
# ---------------------------------------------------------------------------


def _event(state: ResponsesStreamState, event_type: str, **fields: Any) -> dict[str, Any]:
    return {"type": event_type, "sequence_number": state.next_seq(), **fields}


def _response_object(state: ResponsesStreamState, status: str) -> dict[str, Any]:
    return {
        "id": state.response_id,
        "object": "response",
        "created_at": state.created,
        "status": status,
        "model": state.model or "",
        "output": [],
    }


def openai_usage_to_responses(usage: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if not usage:
        return None
    prompt = usage.get("prompt_tokens") or 0
    completion = usage.get("completion_tokens") or 0
    return {
        "input_tokens": prompt,
        "input_tokens_details": {
            "cached_tokens": (usage.get("prompt_tokens_details") or {}).get("cached_tokens") or 0
        },
        "output_tokens": completion,
        "output_tokens_details": {
            "reasoning_tokens": (usage.get("completion_tokens_details") or {}).get("reasoning_tokens") or 0
        },
        "total_tokens": usage.get("total_tokens") or prompt + completion,
    }


def _close_reasoning(state: ResponsesStreamState, events: list[dict[str, Any]]) -> None:
    if state.reasoning_index < 0 or state.reasoning_done:
        return
    state.reasoning_done = True
    text = state.reasoning_text
    common = {"item_id": state.reasoning_id, "output_index": state.reasoning_index, "summary_index": 0}
    events.append(_event(state, "response.reasoning_summary_text.done", text=text, **common))
    events.append(
        _event(state, "response.reasoning_summary_part.done", part={"type": "summary_text", "text": text}, **common)
    )
    item = {"id": state.reasoning_id, "type": "reasoning", "summary": [{"type": "summary_text", "text": text}]}
    events.append(_event(state, "response.output_item.done", output_index=state.reasoning_index, item=item))
    state.output.append({**item, "_output_index": state.reasoning_index})


def _close_message(state: ResponsesStreamState, events: list[dict[str, Any]]) -> None:
    message = state.message
    if message is None or message.done:
        return
    message.done = True
    part = {"type": "output_text", "annotations": [], "text": message.text}
    common = {"item_id": message.item_id, "output_index": message.output_index, "content_index": 0}
    events.append(_event(state, "response.output_text.done", text=message.text, **common))
    events.append(_event(state, "response.content_part.done", part=part, **common))
    item = {
        "id": message.item_id,
        "type": "message",
        "role": "assistant",
        "status": "completed",
        "content": [part],
    }
    events.append(_event(state, "response.output_item.done", output_index=message.output_index, item=item))
    state.output.append({**item, "_output_index": message.output_index})


def _close_functions(state: ResponsesStreamState, events: list[dict[str, Any]]) -> None:
    for index in sorted(state.function_items):
        fn = state.function_items[index]
        if fn.done:
            continue
        fn.done = True
        events.append(
            _event(
                state,
                "response.function_call_arguments.done",
                item_id=fn.item_id,
                output_index=fn.output_index,
                arguments=fn.arguments,
            )
        )
        item = {
            "id": fn.item_id,
            "type": "function_call",
            "call_id": fn.call_id,
            "name": fn.name,
            "arguments": fn.arguments,
            "status": "completed",
        }
        events.append(_event(state, "response.output_item.done", output_index=fn.output_index, item=item))
        state.output.append({**item, "_output_index": fn.output_index})


def _close_all(state: ResponsesStreamState, events: list[dict[str, Any]]) -> None:
    _close_reasoning(state, events)
    _close_message(state, events)
    _close_functions(state, events)


def _complete(state: ResponsesStreamState, events: list[dict[str, Any]]) -> None:
    if state.completed_sent or not state.started:
        return
    state.completed_sent = True
    response = _response_object(state, "completed")
    if state.finish_reason == "length":
        response["status"] = "incomplete"
        response["incomplete_details"] = {"reason": "max_output_tokens"}
    response["output"] = [
        {k: v for k, v in item.items() if k != "_output_index"}
        for item in sorted(state.output, key=lambda i: i["_output_index"])
    ]
    usage = openai_usage_to_responses(state.usage)
    if usage is not None:
        response["usage"] = usage
    events.append(_event(state, "response.completed", response=response))


def _start(state: ResponsesStreamState, events: list[dict[str, Any]]) -> None:
    if state.started:
        return
    state.started = True
    events.append(_event(state, "response.created", response=_response_object(state, "in_progress")))
    events.append(_event(state, "response.in_progress", response=_response_object(state, "in_progress")))


def _reasoning_delta(state: ResponsesStreamState, text: str, events: list[dict[str, Any]]) -> None:
    _close_functions(state, events)
    if state.reasoning_index >= 0 and state.reasoning_done:
        # A new reasoning item after a closed one
        state.reasoning_index = -1
        state.reasoning_text = ""
        state.reasoning_part_added = False
        state.reasoning_done = False
    if state.reasoning_index < 0:
        _close_message(state, events)
        state.reasoning_index = state.allocate_output_index()
        state.reasoning_id = f"rs_{state.response_id}_{state.reasoning_index}"
        events.append(
            _event(
                state,
                "response.output_item.added",
                output_index=state.reasoning_index,
                item={"id": state.reasoning_id, "type": "reasoning", "summary": []},
            )
        )
    common = {"item_id": state.reasoning_id, "output_index": state.reasoning_index, "summary_index": 0}
    if not state.reasoning_part_added:
        state.reasoning_part_added = True
        events.append(
            _event(state, "response.reasoning_summary_part.added", part={"type": "summary_text", "text": ""}, **common)
        )
    state.reasoning_text += text
    events.append(_event(state, "response.reasoning_summary_text.delta", delta=text, **common))


def _text_delta(state: ResponsesStreamState, text: str, events: list[dict[str, Any]]) -> None:
    _close_functions(state, events)
    _close_reasoning(state, events)
    if state.message is None or state.message.done:
        output_index = state.allocate_output_index()
        state.message = ResponsesMessageItem(item_id=f"msg_{state.response_id}_{output_index}", output_index=output_index)
        events.append(
            _event(
                state,
                "response.output_item.added",
                output_index=output_index,
                item={
                    "id": state.message.item_id,
                    "type": "message",
                    "role": "assistant",
                    "status": "in_progress",
                    "content": [],
                },
            )
        )
    message = state.message
    common = {"item_id": message.item_id, "output_index": message.output_index, "content_index": 0}
    if not message.content_added:
        message.content_added = True
        events.append(
            _event(
                state,
                "response.content_part.added",
                part={"type": "output_text", "annotations": [], "text": ""},
                **common,
            )
        )
    message.text += text
    events.append(_event(state, "response.output_text.delta", delta=text, **common))


def _tool_call_delta(state: ResponsesStreamState, tool_call: dict[str, Any], events: list[dict[str, Any]]) -> None:
    index = tool_call.get("index", 0)
    fn = tool_call.get("function") or {}
    item = state.function_items.get(index)
    if item is None:
        _close_reasoning(state, events)
        _close_message(state, events)
        call_id = tool_call.get("id") or f"call_{uuid.uuid4().hex[:24]}"
        item = ResponsesFunctionItem(
            item_id=f"fc_{call_id}",
            call_id=call_id,
            name=fn.get("name") or "",
            output_index=state.allocate_output_index(),
        )
        state.function_items[index] = item
        events.append(
            _event(
                state,
                "response.output_item.added",
                output_index=item.output_index,
                item={
                    "id": item.item_id,
                    "type": "function_call",
                    "call_id": item.call_id,
                    "name": item.name,
                    "arguments": "",
                    "status": "in_progress",
                },
            )
        )
    arguments = fn.get("arguments")
    if arguments and item.done:
        logger.debug("Dropping arguments for completed function call: call_id=%s", item.call_id)
    elif arguments:
        item.arguments += arguments
        events.append(
            _event(
                state,
                "response.function_call_arguments.delta",
                item_id=item.item_id,
                output_index=item.output_index,
                delta=arguments,
            )
        )


def openai_to_openai_responses_response(
    chunk: Optional[dict[str, Any]], state: ResponsesStreamState
) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []

    if chunk is None:
        _close_all(state, events)
        _complete(state, events)
        return events

    if not state.model and chunk.get("model"):
        state.model = chunk["model"]
    _start(state, events)

    if chunk.get("usage"):
        state.usage = merge_usage(state.usage, chunk["usage"])

    choices = chunk.get("choices") or []
    choice = choices[0] if choices and isinstance(choices[0], dict) else {}
    delta = choice.get("delta") or {}

    reasoning = delta.get("reasoning_content")
    if isinstance(reasoning, str) and reasoning:
        _reasoning_delta(state, reasoning, events)

    content = delta.get("content")
    if isinstance(content, str) and content:
        _text_delta(state, content, events)

    for tool_call in delta.get("tool_calls") or []:
        if isinstance(tool_call, dict):
            _tool_call_delta(state, tool_call, events)

    if choice.get("finish_reason") and state.finish_reason is None:
        state.finish_reason = choice["finish_reason"]
        _close_all(state, events)

    if state.finish_reason and chunk.get("usage"):
        _complete(state, events)

    return events
