"""结构化回复中的信号分发。

信号类型是小写下划线命名（如 topic_completed），按固定规则映射为 handler 名
（OnTopicCompleted），再到事件处理器提供的显式映射表中查找。查不到、没有处理器、
或 handler 自身抛错时只记录错误，对话继续。
"""

from typing import Any, Callable, Mapping, Optional

from npc_core.domain.structured import OTHER_SIGNAL, StructuredReply, dump_payload
from npc_core.infrastructure.logging.logger import logger

SignalHandler = Callable[[Any], None]


def handler_name(signal_type: str) -> str:
    """topic_completed -> OnTopicCompleted。"""

    words = [w for w in signal_type.split("_") if w]
    return "On" + "".join(w[0].upper() + w[1:].lower() for w in words)


class SignalDispatcher:
    def __init__(self, handlers: Optional[Mapping[str, SignalHandler]] = None):
        self._handlers = handlers

    @property
    def has_handlers(self) -> bool:
        return self._handlers is not None

    def dispatch(self, reply: Optional[StructuredReply]) -> bool:
        """分发一次信号，返回是否有 handler 被成功调用。"""

        if reply is None or reply.signal is None or not reply.signal.type:
            return False

        signal = reply.signal
        signal_type = signal.type
        logger.info("Received signal", extra={"extra": {"signal": signal_type, "reason": signal.reason}})
        if signal_type == OTHER_SIGNAL:
            return False

        if self._handlers is None:
            logger.error(
                "No event handler set for conversation, signal ignored",
                extra={"extra": {"signal": signal_type}},
            )
            return False

        name = handler_name(signal_type)
        handler = self._handlers.get(name)
        if handler is None:
            logger.error("Unhandled signal", extra={"extra": {"signal": signal_type, "handler": name}})
            return False

        try:
            handler(signal.data)
        except Exception as e:
            logger.error(
                f"Error invoking handler {name}: {e}",
                extra={"extra": {"signal": signal_type, "data": dump_payload(signal.data)}},
            )
            return False
        return True
