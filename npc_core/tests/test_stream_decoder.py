import asyncio
import json

from npc_core.providers.stream_decoder import StreamDecoder, decode_stream


def _line(content, done=False):
    return json.dumps({"model": "m", "message": {"role": "assistant", "content": content}, "done": done})


async def _aiter(items):
    for item in items:
        yield item


def _collect(lines):
    async def run():
        return [r async for r in decode_stream(_aiter(lines))]

    return asyncio.run(run())


def test_reply_accumulates_in_order():
    results = _collect([_line("Gar"), _line("den"), _line(" time")])
    assert [r.reply for r in results] == ["Gar", "Garden", "Garden time"]
    assert all(r.success and not r.final for r in results)


def test_stops_after_done():
    results = _collect([_line("a"), _line("b", done=True), _line("c"), _line("d", done=True)])
    assert len(results) == 2
    assert results[-1].final is True
    assert results[-1].reply == "ab"


def test_final_frame_parses_structured_reply():
    text = '{"message":"Hello","signal":{"type":"other","reason":"","data":null}}'
    results = _collect([_line(text[:10]), _line(text[10:], done=True)])
    final = results[-1]
    assert final.structured is not None
    assert final.structured.message == "Hello"


def test_plain_text_final_has_no_structured():
    results = _collect([_line("Just prose."), _line("", done=True)])
    final = results[-1]
    assert final.success is True
    assert final.final is True
    assert final.structured is None
    assert final.reply == "Just prose."


def test_malformed_and_blank_lines_are_skipped():
    results = _collect(["", "not json", "[1, 2]", _line("ok", done=True)])
    assert len(results) == 1
    assert results[0].reply == "ok"


def test_error_line_fails_turn():
    results = _collect([_line("par"), json.dumps({"error": "model not found"}), _line("x")])
    assert len(results) == 2
    assert results[-1].success is False
    assert results[-1].final is True
    assert results[-1].error == "model not found"
    assert results[-1].reply == "par"


def test_decoder_ignores_lines_after_done():
    decoder = StreamDecoder()
    assert decoder.feed(_line("x", done=True)).final is True
    assert decoder.feed(_line("y")) is None
    assert decoder.reply == "x"
