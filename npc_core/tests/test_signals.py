from npc_core.conversation.signals import SignalDispatcher, handler_name
from npc_core.domain.structured import Signal, StructuredReply


def _reply(signal_type, data=None):
    return StructuredReply(message="m", signal=Signal(type=signal_type, reason="r", data=data))


def test_handler_name():
    assert handler_name("topic_completed") == "OnTopicCompleted"
    assert handler_name("knowledge_unlocked") == "OnKnowledgeUnlocked"
    assert handler_name("ENCOURAGEMENT") == "OnEncouragement"


def test_dispatch_calls_mapped_handler_with_raw_data():
    calls = []
    dispatcher = SignalDispatcher({"OnTopicCompleted": calls.append})
    assert dispatcher.dispatch(_reply("topic_completed", {"topic_name": "Soil"})) is True
    assert calls == [{"topic_name": "Soil"}]


def test_other_signal_is_noop():
    calls = []
    dispatcher = SignalDispatcher({"OnOther": calls.append})
    assert dispatcher.dispatch(_reply("other")) is False
    assert calls == []


def test_missing_signal_or_type():
    dispatcher = SignalDispatcher({})
    assert dispatcher.dispatch(None) is False
    assert dispatcher.dispatch(StructuredReply(message="x")) is False
    assert dispatcher.dispatch(_reply("")) is False


def test_unmapped_signal_is_ignored():
    dispatcher = SignalDispatcher({"OnTopicCompleted": lambda data: None})
    assert dispatcher.dispatch(_reply("made_up_signal")) is False


def test_no_handler_table():
    dispatcher = SignalDispatcher()
    assert dispatcher.has_handlers is False
    assert dispatcher.dispatch(_reply("topic_completed")) is False


def test_handler_error_does_not_propagate():
    def boom(data):
        raise RuntimeError("bad data")

    dispatcher = SignalDispatcher({"OnEncouragement": boom})
    assert dispatcher.dispatch(_reply("encouragement")) is False
