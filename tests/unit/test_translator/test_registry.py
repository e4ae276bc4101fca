"""
Translator Registry and Pivot Engine Tests
"""

from sse_gateway.translator import Format, Translator, TranslatorRegistry, get_translator
from sse_gateway.translator.state import ResponsesStreamState, StreamState


class TestTranslatorRegistry:
    def test_bootstrap_is_idempotent(self):
        registry = TranslatorRegistry()
        registry.bootstrap()
        first = registry.list_supported()
        registry.bootstrap()
        assert registry.list_supported() == first
        assert registry.bootstrapped is True

    def test_bootstrap_registers_all_pairs(self):
        supported = TranslatorRegistry().bootstrap().list_supported()
        for fmt in ("claude", "gemini", "gemini-cli", "antigravity", "openai-responses"):
            assert (fmt, "openai") in supported["request"]
            assert (fmt, "openai") in supported["response"]
        for fmt in ("claude", "gemini", "gemini-cli", "antigravity", "openai-responses"):
            assert ("openai", fmt) in supported["request"]

    def test_isolated_registry(self):
        registry = TranslatorRegistry()
        registry.register("claude", "openai", request_fn=lambda m, b, s, c: {"converted": True})
        assert registry.bootstrapped is False
        assert registry.get_request(Format.CLAUDE, Format.OPENAI)("m", {}, True, None) == {"converted": True}
        assert registry.get_response(Format.CLAUDE, Format.OPENAI) is None


class TestTranslator:
    def test_custom_converters_route_through_pivot(self):
        registry = TranslatorRegistry()
        seen = []

        def to_pivot(model, body, stream, credentials):
            seen.append("to_pivot")
            return {"messages": body["msgs"], "stray": 1}

        def from_pivot(model, body, stream, credentials):
            seen.append("from_pivot")
            return {"contents": body["messages"]}

        registry.register(Format.CLAUDE, Format.OPENAI, request_fn=to_pivot)
        registry.register(Format.OPENAI, Format.GEMINI, request_fn=from_pivot)
        # mark ready so built-ins are not loaded over the test converters
        registry._bootstrapped = True

        result = Translator(registry).translate_request("claude", "gemini", "m", {"msgs": []})
        assert seen == ["to_pivot", "from_pivot"]
        assert result == {"contents": []}

    def test_translate_request_never_mutates_input(self):
        body = {
            "model": "x",
            "messages": [
                {"role": "assistant", "tool_calls": [{"function": {"name": "f", "arguments": "{}"}}]},
            ],
        }
        snapshot = repr(body)
        get_translator().translate_request("openai", "openai", "x", body)
        assert repr(body) == snapshot

    def test_pivot_target_filters_foreign_fields(self):
        body = {
            "model": "x",
            "messages": [{"role": "user", "content": "hi", "cache_control": {"type": "ephemeral"}}],
            "max_tokens": 10,
            "system": "s",
        }
        result = get_translator().translate_request("claude", "openai", "x", body)
        assert "system" not in result
        assert result["messages"][0] == {"role": "system", "content": "s"}
        assert all("cache_control" not in m for m in result["messages"])

    def test_same_format_responses_pass_through(self):
        translator = get_translator()
        state = translator.init_state("openai")
        chunk = {"choices": [{"delta": {"content": "x"}}]}
        assert translator.translate_response("openai", "openai", chunk, state) == [chunk]
        assert translator.translate_response("openai", "openai", None, state) == []

    def test_init_state(self):
        state = Translator.init_state(Format.OPENAI_RESPONSES)
        assert isinstance(state, ResponsesStreamState)
        assert state.seq == 0
        assert state.response_id
        assert state.started is False
        assert state.completed_sent is False
        assert state.finish_reason_sent is False
        assert type(Translator.init_state("claude")) is StreamState

    def test_needs_translation(self):
        assert Translator.needs_translation("openai", "claude") is True
        assert Translator.needs_translation("anthropic", "claude") is False

    def test_build_provider_request_tags_format(self):
        request = get_translator().build_provider_request(
            "openai", "claude", "claude-sonnet", {"messages": [{"role": "user", "content": "hi"}]}
        )
        assert request.format == Format.CLAUDE
        assert request.body["messages"][0]["content"] == [{"type": "text", "text": "hi"}]
        assert request.is_cloud_code is False
