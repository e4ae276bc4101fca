"""
Tool Call Pairing Tests
"""

from sse_gateway.translator.helpers.tool_calls import ensure_tool_call_ids, fix_missing_tool_responses


def _assistant(*ids):
    return {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {"id": i, "type": "function", "function": {"name": "lookup", "arguments": "{}"}} for i in ids
        ],
    }


def test_ensure_tool_call_ids_fills_missing_ids():
    body = {"messages": [{"role": "assistant", "tool_calls": [{"function": {"name": "f", "arguments": "{}"}}]}]}
    ensure_tool_call_ids(body)
    call = body["messages"][0]["tool_calls"][0]
    assert call["id"].startswith("call_")
    assert call["type"] == "function"


def test_ensure_tool_call_ids_pairs_orphan_tool_message():
    body = {"messages": [_assistant("c1"), {"role": "tool", "content": "ok"}]}
    ensure_tool_call_ids(body)
    assert body["messages"][1]["tool_call_id"] == "c1"


def test_fix_missing_tool_responses_inserts_empty_results():
    body = {
        "messages": [
            {"role": "user", "content": "hi"},
            _assistant("c1", "c2"),
            {"role": "tool", "tool_call_id": "c1", "content": "one"},
            {"role": "user", "content": "next"},
        ]
    }
    fix_missing_tool_responses(body)
    roles = [(m["role"], m.get("tool_call_id")) for m in body["messages"]]
    assert roles == [
        ("user", None),
        ("assistant", None),
        ("tool", "c1"),
        ("tool", "c2"),
        ("user", None),
    ]
    assert body["messages"][3]["content"] == ""


def test_every_call_is_answered_after_normalisation():
    body = {"messages": [_assistant("a"), _assistant("b", "c"), {"role": "tool", "tool_call_id": "c", "content": "x"}]}
    ensure_tool_call_ids(body)
    fix_missing_tool_responses(body)
    calls = [tc["id"] for m in body["messages"] if m["role"] == "assistant" for tc in m["tool_calls"]]
    answered = [m["tool_call_id"] for m in body["messages"] if m["role"] == "tool"]
    assert sorted(calls) == sorted(answered)
    # each assistant message is followed by its own results
    assert body["messages"][1] == {"role": "tool", "tool_call_id": "a", "content": ""}


def test_bodies_without_messages_are_untouched():
    body = {"input": "hello"}
    assert fix_missing_tool_responses(ensure_tool_call_ids(body)) == {"input": "hello"}
