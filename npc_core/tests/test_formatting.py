from npc_core.conversation.formatting import (
    NPC_COLOR,
    SYSTEM_COLOR,
    USER_COLOR,
    BBCodeView,
    format_history,
    process_formatting,
)
from npc_core.domain.models import ChatMessage


def test_process_formatting():
    assert process_formatting("**Water** the *roots*") == "[b]Water[/b] the [i]roots[/i]"
    assert process_formatting("") == ""


def test_format_history_hides_prompt_and_shows_errors():
    history = [
        ChatMessage(role="system", content="secret prompt"),
        ChatMessage(role="assistant", content='{"message":"Hi **friend**","signal":null}'),
        ChatMessage(role="user", content="hello"),
        ChatMessage(role="system", content="Error: HTTP 500: boom"),
    ]
    text = format_history(history, "Sage")

    assert "secret prompt" not in text
    assert f"[color=#{NPC_COLOR}]Sage:[/color] Hi [b]friend[/b]" in text
    assert "You:[/color] hello" in text
    assert f"[color=#{SYSTEM_COLOR}]Error: HTTP 500: boom[/color]" in text


def test_format_history_streaming_partial():
    history = [ChatMessage(role="assistant", content='{"message":"Hel')]
    assert format_history(history, "Sage").endswith("Sage:[/color] Hel\n\n")


def test_bbcode_view_renders_history():
    texts, inputs = [], []
    view = BBCodeView("Sage", texts.append, inputs.append)
    view.render([ChatMessage(role="user", content="hi")])
    view.set_input_enabled(False)
    assert texts == [f"[color=#{USER_COLOR}]You:[/color] hi\n\n"]
    assert inputs == [False]
