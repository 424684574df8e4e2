import pytest

from npc_core.domain.models import ChatMessage, ChatRequest, FetchResult, StreamFrame


SCHEMA = {
    "type": "object",
    "properties": {
        "message": {"type": "string"},
        "signal": {"type": "object", "properties": {"type": {"type": "string"}}},
    },
    "required": ["message"],
}


def test_chat_request_round_trip():
    history = [
        ChatMessage(role="system", content="You are a gardener."),
        ChatMessage(role="assistant", content='{"message":"Hi","signal":null}'),
        ChatMessage(role="user", content="What is compost?"),
    ]
    req = ChatRequest(model="gemma3n:e4b", messages=history, format=SCHEMA)

    payload = req.to_payload()
    assert payload["stream"] is True
    assert payload["keep_alive"] == "60m"
    assert [m["role"] for m in payload["messages"]] == ["system", "assistant", "user"]

    back = ChatRequest.from_payload(payload)
    assert back.messages == history
    assert back.format == SCHEMA
    assert back == req


def test_chat_request_payload_always_has_format():
    req = ChatRequest(model="m", messages=[ChatMessage(role="user", content="hi")])
    assert "format" in req.to_payload()
    assert req.to_payload()["format"] is None


def test_chat_message_unknown_role():
    with pytest.raises(ValueError):
        ChatMessage.from_payload({"role": "tool", "content": "x"})


def test_stream_frame_without_message_is_empty_fragment():
    frame = StreamFrame.from_payload({"done": True, "total_duration": 12})
    assert frame.content == ""
    assert frame.done is True


def test_fetch_result_failure_is_final():
    res = FetchResult.failure("HTTP 500: boom")
    assert res.success is False
    assert res.final is True
    assert res.error == "HTTP 500: boom"
