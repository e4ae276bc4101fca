"""
Streaming Response Converter Tests

Each converter is driven chunk by chunk with a fresh state, then flushed with None.
"""

import json

from sse_gateway.translator.response.claude_to_openai import claude_to_openai_response
from sse_gateway.translator.response.gemini_to_openai import gemini_to_openai_response
from sse_gateway.translator.response.openai_responses import (
    openai_responses_to_openai_response,
    openai_to_openai_responses_response,
)
from sse_gateway.translator.response.openai_to_claude import openai_to_claude_response
from sse_gateway.translator.response.openai_to_gemini import openai_to_gemini_response
from sse_gateway.translator.state import ResponsesStreamState, StreamState


def _drive(fn, chunks, state):
    out = []
    for chunk in chunks:
        out.extend(fn(chunk, state))
    out.extend(fn(None, state))
    return out


def _pivot(delta, finish=None, usage=None):
    chunk = {
        "id": "chatcmpl-abc",
        "object": "chat.completion.chunk",
        "created": 1,
        "model": "gpt-x",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish}],
    }
    if usage:
        chunk["usage"] = usage
    return chunk


def _finishes(chunks):
    return [c["choices"][0]["finish_reason"] for c in chunks if c["choices"][0]["finish_reason"]]


class TestGeminiToOpenAI:
    def test_text_stream_with_usage(self):
        chunks = [
            {"response": {"responseId": "r1", "modelVersion": "gemini-2.5-pro",
                          "candidates": [{"content": {"parts": [{"text": "Let me think", "thought": True}]}}]}},
            {"response": {"candidates": [{"content": {"parts": [{"text": "Hello"}]}}]}},
            {"response": {"candidates": [{"content": {"parts": [{"text": " world"}]}, "finishReason": "STOP"}],
                          "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": 5,
                                            "thoughtsTokenCount": 3, "totalTokenCount": 18}}},
        ]
        out = _drive(gemini_to_openai_response, chunks, StreamState())

        assert out[0]["choices"][0]["delta"] == {"role": "assistant", "content": ""}
        assert out[0]["id"] == "chatcmpl-r1"
        assert out[1]["choices"][0]["delta"] == {"reasoning_content": "Let me think"}
        text = "".join(c["choices"][0]["delta"].get("content") or "" for c in out)
        assert text == "Hello world"
        assert _finishes(out) == ["stop"]
        assert out[-1]["usage"] == {
            "prompt_tokens": 10,
            "completion_tokens": 8,
            "total_tokens": 18,
            "completion_tokens_details": {"reasoning_tokens": 3},
        }

    def test_function_call_sets_tool_calls_finish(self):
        chunks = [
            {"candidates": [{"content": {"parts": [{"functionCall": {"id": "fc1", "name": "f", "args": {"a": 1}}}]},
                             "finishReason": "STOP"}]},
        ]
        out = _drive(gemini_to_openai_response, chunks, StreamState())
        call = out[1]["choices"][0]["delta"]["tool_calls"][0]
        assert call["id"] == "fc1"
        assert json.loads(call["function"]["arguments"]) == {"a": 1}
        # no usage arrived, so finish is sent at flush
        assert _finishes(out) == ["tool_calls"]
        assert "usage" not in out[-1]

    def test_flush_without_content_emits_nothing(self):
        assert gemini_to_openai_response(None, StreamState()) == []


class TestClaudeToOpenAI:
    def test_tool_use_stream(self):
        chunks = [
            {"type": "message_start", "message": {"id": "msg_1", "model": "claude-x",
                                                  "usage": {"input_tokens": 12, "output_tokens": 1}}},
            {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Checking"}},
            {"type": "content_block_stop", "index": 0},
            {"type": "content_block_start", "index": 1,
             "content_block": {"type": "tool_use", "id": "toolu_1", "name": "lookup", "input": {}}},
            {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"q":'}},
            {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '"x"}'}},
            {"type": "content_block_stop", "index": 1},
            {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 20}},
            {"type": "message_stop"},
        ]
        out = _drive(claude_to_openai_response, chunks, StreamState())

        assert out[0]["id"] == "chatcmpl-msg_1"
        assert out[1]["choices"][0]["delta"] == {"content": "Checking"}
        start = out[2]["choices"][0]["delta"]["tool_calls"][0]
        assert start["id"] == "toolu_1"
        assert start["function"] == {"name": "lookup", "arguments": ""}
        args = "".join(
            c["choices"][0]["delta"]["tool_calls"][0]["function"]["arguments"]
            for c in out
            if c["choices"][0]["delta"].get("tool_calls")
        )
        assert json.loads(args) == {"q": "x"}
        # finish exactly once, with the merged usage
        assert _finishes(out) == ["tool_calls"]
        assert out[-1]["usage"] == {"prompt_tokens": 12, "completion_tokens": 20, "total_tokens": 32}

    def test_thinking_delta(self):
        chunks = [
            {"type": "message_start", "message": {"id": "m"}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "hmm"}},
        ]
        out = _drive(claude_to_openai_response, chunks, StreamState())
        assert out[1]["choices"][0]["delta"] == {"reasoning_content": "hmm"}
        assert _finishes(out) == ["stop"]


class TestResponsesToOpenAI:
    def test_function_call_stream(self):
        chunks = [
            {"type": "response.created", "response": {"id": "resp_1", "model": "gpt-5"}},
            {"type": "response.output_text.delta", "delta": "Hi"},
            {"type": "response.output_item.added", "output_index": 1,
             "item": {"type": "function_call", "id": "fc_1", "call_id": "call_1", "name": "shell"}},
            {"type": "response.function_call_arguments.delta", "item_id": "fc_1", "delta": '{"cmd":"ls"}'},
            {"type": "response.completed", "response": {"usage": {"input_tokens": 4, "output_tokens": 6}}},
        ]
        out = _drive(openai_responses_to_openai_response, chunks, StreamState())
        assert out[0]["id"] == "chatcmpl-resp_1"
        assert out[1]["choices"][0]["delta"] == {"content": "Hi"}
        assert out[2]["choices"][0]["delta"]["tool_calls"][0]["id"] == "call_1"
        assert out[3]["choices"][0]["delta"]["tool_calls"][0]["function"]["arguments"] == '{"cmd":"ls"}'
        assert _finishes(out) == ["tool_calls"]
        assert out[-1]["usage"]["total_tokens"] == 10

    def test_incomplete_maps_to_length(self):
        chunks = [{"type": "response.incomplete", "response": {"status": "incomplete"}}]
        out = _drive(openai_responses_to_openai_response, chunks, StreamState())
        assert _finishes(out) == ["length"]


class TestOpenAIToClaude:
    def test_event_sequence(self):
        chunks = [
            _pivot({"role": "assistant", "content": ""}),
            _pivot({"reasoning_content": "think"}),
            _pivot({"content": "Hello"}),
            _pivot({"tool_calls": [{"index": 0, "id": "call_1", "type": "function",
                                    "function": {"name": "f", "arguments": ""}}]}),
            _pivot({"tool_calls": [{"index": 0, "function": {"arguments": '{"a":1}'}}]}),
            _pivot({}, finish="tool_calls"),
            _pivot({}, usage={"prompt_tokens": 7, "completion_tokens": 3, "total_tokens": 10}),
        ]
        events = _drive(openai_to_claude_response, chunks, StreamState())
        types = [e["type"] for e in events]
        assert types == [
            "message_start",
            "content_block_start", "content_block_delta", "content_block_stop",
            "content_block_start", "content_block_delta", "content_block_stop",
            "content_block_start", "content_block_delta", "content_block_stop",
            "message_delta",
            "message_stop",
        ]
        assert events[0]["message"]["id"] == "msg_abc"
        assert [e["index"] for e in events if e["type"] == "content_block_start"] == [0, 1, 2]
        assert events[7]["content_block"] == {"type": "tool_use", "id": "call_1", "name": "f", "input": {}}
        assert events[8]["delta"] == {"type": "input_json_delta", "partial_json": '{"a":1}'}
        assert events[10]["delta"]["stop_reason"] == "tool_use"
        assert events[10]["usage"] == {"input_tokens": 7, "output_tokens": 3}

    def test_finish_without_usage_flushes_once(self):
        state = StreamState()
        events = _drive(openai_to_claude_response, [_pivot({"content": "x"}, finish="length")], state)
        assert [e["type"] for e in events].count("message_stop") == 1
        assert events[-2]["delta"]["stop_reason"] == "max_tokens"
        assert openai_to_claude_response(None, state) == []


class TestOpenAIToGemini:
    def test_tool_args_buffered_until_finish(self):
        chunks = [
            _pivot({"content": "Hi"}),
            _pivot({"tool_calls": [{"index": 0, "id": "c1", "function": {"name": "f", "arguments": '{"a"'}}]}),
            _pivot({"tool_calls": [{"index": 0, "function": {"arguments": ": 1}"}}]}),
            _pivot({}, finish="tool_calls", usage={"prompt_tokens": 2, "completion_tokens": 4, "total_tokens": 6}),
        ]
        out = _drive(openai_to_gemini_response, chunks, StreamState())
        assert out[0]["candidates"][0]["content"]["parts"] == [{"text": "Hi"}]
        assert out[1]["candidates"][0]["content"]["parts"] == [
            {"functionCall": {"id": "c1", "name": "f", "args": {"a": 1}}}
        ]
        assert out[2]["candidates"][0]["finishReason"] == "STOP"
        assert out[2]["usageMetadata"] == {"promptTokenCount": 2, "candidatesTokenCount": 4, "totalTokenCount": 6}
        assert len(out) == 3


class TestOpenAIToResponses:
    def test_text_and_function_call_lifecycle(self):
        state = ResponsesStreamState()
        chunks = [
            _pivot({"role": "assistant", "content": ""}),
            _pivot({"content": "Hel"}),
            _pivot({"content": "lo"}),
            _pivot({"tool_calls": [{"index": 0, "id": "call_1", "function": {"name": "f", "arguments": '{"a":'}}]}),
            _pivot({"tool_calls": [{"index": 0, "function": {"arguments": "1}"}}]}),
            _pivot({}, finish="tool_calls"),
            _pivot({}, usage={"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7}),
        ]
        events = _drive(openai_to_openai_responses_response, chunks, state)

        assert [e["sequence_number"] for e in events] == list(range(len(events)))
        types = [e["type"] for e in events]
        assert types[:2] == ["response.created", "response.in_progress"]
        assert types.count("response.completed") == 1
        assert types[-1] == "response.completed"

        added = [e for e in events if e["type"] == "response.output_item.added"]
        assert [(e["item"]["type"], e["output_index"]) for e in added] == [("message", 0), ("function_call", 1)]
        done = [e for e in events if e["type"] == "response.output_item.done"]
        assert [(e["item"]["type"], e["output_index"]) for e in done] == [("message", 0), ("function_call", 1)]
        # message closes before the function call opens
        assert types.index("response.output_item.done") < types.index("response.function_call_arguments.delta")

        completed = events[-1]["response"]
        assert completed["id"] == state.response_id
        assert completed["status"] == "completed"
        assert completed["output"][0]["content"][0]["text"] == "Hello"
        assert completed["output"][1]["arguments"] == '{"a":1}'
        assert completed["usage"]["total_tokens"] == 7

    def test_reasoning_item_then_message(self):
        events = _drive(
            openai_to_openai_responses_response,
            [_pivot({"reasoning_content": "plan"}), _pivot({"content": "done"}, finish="length")],
            ResponsesStreamState(),
        )
        types = [e["type"] for e in events]
        assert types.index("response.reasoning_summary_text.done") < types.index("response.output_text.delta")
        completed = events[-1]["response"]
        assert completed["status"] == "incomplete"
        assert [item["type"] for item in completed["output"]] == ["reasoning", "message"]
        assert completed["output"][0]["summary"][0]["text"] == "plan"
