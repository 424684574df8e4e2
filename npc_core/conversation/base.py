"""对话状态机。

管理回合制交互（Idle -> AwaitingReply -> Idle）、对话历史，并驱动 Provider 的流式接口：

- 每个回合追加 user 消息和空的 assistant 占位消息，随分片不断覆盖占位内容。
- 最终帧带结构化回复时交给 SignalDispatcher。
- 任何失败都在回合边界转换为可见的 system 消息，不向外传播。
"""

import logging
from contextlib import aclosing
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol, Sequence
from uuid import uuid4

from npc_core.config.settings import settings
from npc_core.conversation.signals import SignalDispatcher, SignalHandler
from npc_core.domain.models import ChatMessage, ChatRequest
from npc_core.domain.structured import OTHER_SIGNAL, Signal, StructuredReply
from npc_core.infrastructure.logging.logger import log_event, logger
from npc_core.providers.base import ChatProvider
from npc_core.providers.registry import resolve_model


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"


class NpcPronouns(str, Enum):
    THEY_THEM = "they/them"
    HE_HIM = "he/him"
    SHE_HER = "she/her"


class ConversationView(Protocol):
    """渲染协作者：展示历史，并在回合进行中禁用输入。"""

    def render(self, history: Sequence[ChatMessage]) -> None:
        ...

    def set_input_enabled(self, enabled: bool) -> None:
        ...


class EventHandler(Protocol):
    def handlers(self) -> Mapping[str, SignalHandler]:
        ...


class Conversation:
    def __init__(
        self,
        provider: ChatProvider,
        view: Optional[ConversationView] = None,
        event_handler: Optional[EventHandler] = None,
        *,
        npc_name: str = "NPC",
        npc_pronouns: NpcPronouns = NpcPronouns.THEY_THEM,
        backstory: str = "",
        response_format: Optional[Any] = None,
        initial_message: str = "",
        model: Optional[str] = None,
        keep_alive: Optional[str] = None,
    ):
        self._provider = provider
        self._view = view
        self._dispatcher = SignalDispatcher(event_handler.handlers() if event_handler else None)
        self.npc_name = npc_name
        self.npc_pronouns = npc_pronouns
        self.backstory = backstory or ""
        self.response_format = response_format
        self.initial_message = initial_message
        self.model = model or getattr(settings, "default_model", "npc-chat")
        self.keep_alive = keep_alive or getattr(settings, "keep_alive", "60m")

        self.history: List[ChatMessage] = []
        self.state = TurnState.IDLE
        self.needs_display_update = False
        self._generation = 0
        self._abort_requested = False

        if view is None:
            logger.warning("No view attached to conversation; display updates are not rendered")
        if not self.backstory.strip():
            logger.warning("No NPC backstory; conversation starts without a system prompt")
        if response_format is None:
            logger.warning("No response schema; replies are generated unconstrained")

    # ---- 协作者 ----

    def attach_event_handler(self, event_handler: EventHandler) -> None:
        self._dispatcher = SignalDispatcher(event_handler.handlers())

    def attach_view(self, view: ConversationView) -> None:
        self._view = view
        self.needs_display_update = True

    @property
    def is_waiting_for_response(self) -> bool:
        return self.state is TurnState.AWAITING_REPLY

    # ---- 提示词 ----

    def system_prompt(self) -> str:
        return f"Your name is {self.npc_name}. Your pronouns are {self.npc_pronouns.value}. {self.backstory}"

    def build_prompt(self) -> List[ChatMessage]:
        """本回合发给模型的消息：完整历史去掉末尾的空占位。"""

        return [ChatMessage(role=m.role, content=m.content) for m in self.history[:-1]]

    def start(self) -> None:
        """开始新对话；已有历史时原样继续。"""

        if not self.history:
            if self.backstory.strip():
                self.history.append(ChatMessage(role="system", content=self.system_prompt()))
            opening = StructuredReply(message=self.initial_message, signal=Signal(type=OTHER_SIGNAL))
            self.history.append(ChatMessage(role="assistant", content=opening.to_json()))
            logger.info("Started new conversation", extra={"extra": {"npc": self.npc_name}})
        else:
            logger.info("Continuing existing conversation", extra={"extra": {"npc": self.npc_name}})
        self.needs_display_update = True

    # ---- 回合 ----

    async def before_send(self, player_message: str) -> None:
        """子类钩子：回合开始前调用。"""

    async def after_send(self) -> None:
        """子类钩子：回合结束后调用（失败也会调用）。"""

    async def send(self, player_input: str) -> bool:
        """处理一次玩家输入；回合进行中或输入为空时忽略并返回 False。"""

        player_message = (player_input or "").strip()
        if self.state is TurnState.AWAITING_REPLY or not player_message:
            return False

        self.state = TurnState.AWAITING_REPLY
        generation = self._generation
        log_ctx = {"turn_id": f"t-{uuid4().hex}", "npc": self.npc_name}
        placeholder: Optional[ChatMessage] = None
        finished = False
        try:
            await self.before_send(player_message)
            self._set_input_enabled(False)

            self.history.append(ChatMessage(role="user", content=player_message))
            self.needs_display_update = True
            placeholder = ChatMessage(role="assistant", content="")
            self.history.append(placeholder)

            req = ChatRequest(
                model=resolve_model(self.model),
                messages=self.build_prompt(),
                format=self.response_format,
                keep_alive=self.keep_alive,
            )
            self._log(logging.INFO, "Starting turn", log_ctx, model=req.model, message_count=len(req.messages))

            async with aclosing(self._provider.chat_stream(req)) as results:
                async for result in results:
                    if generation != self._generation:
                        break
                    if not result.success:
                        self._fail(placeholder, result.error or "unknown error", log_ctx)
                        finished = True
                        break
                    placeholder.content = result.reply
                    self.needs_display_update = True
                    if result.final:
                        finished = True
                        if result.structured is not None:
                            self._dispatcher.dispatch(result.structured)
                        break

            if generation != self._generation:
                self._log(logging.INFO, "Discarded reply of a reset conversation", log_ctx)
            elif not finished:
                if self._abort_requested:
                    self._fail(placeholder, "request aborted", log_ctx)
                else:
                    self._log(logging.WARNING, "Stream ended without a final frame", log_ctx, reply_length=len(placeholder.content))
            else:
                self._log(logging.INFO, "Completed turn", log_ctx, role=placeholder.role, reply_length=len(placeholder.content))
        except Exception as e:
            if generation == self._generation:
                self._fail(placeholder, str(e), log_ctx)
        finally:
            if generation == self._generation:
                self.state = TurnState.IDLE
                self._abort_requested = False
                self._set_input_enabled(True)
                try:
                    await self.after_send()
                except Exception as e:
                    self._log(logging.ERROR, "after_send hook failed", log_ctx, error=str(e))
        return True

    def abort_turn(self) -> None:
        """中止进行中的回合，回合以 "Error: request aborted" 结束。"""

        if self.state is not TurnState.AWAITING_REPLY:
            return
        self._abort_requested = True
        self._provider.abort()

    def reset(self) -> None:
        """清空历史并回到 Idle；进行中的请求会被中止，其结果被丢弃。"""

        in_flight = self.state is TurnState.AWAITING_REPLY
        self._generation += 1
        self.history.clear()
        self.state = TurnState.IDLE
        self._abort_requested = False
        self.needs_display_update = True
        self._set_input_enabled(True)
        if in_flight:
            self._provider.abort()
        logger.info("Conversation reset", extra={"extra": {"npc": self.npc_name, "aborted_turn": in_flight}})

    # ---- 展示 ----

    def refresh_display(self) -> bool:
        """有待刷新的内容时交给 view 渲染；由游戏每帧调用。"""

        if not self.needs_display_update or self._view is None:
            return False
        self._view.render(list(self.history))
        self.needs_display_update = False
        return True

    # ---- 辅助方法 ----

    def _fail(self, placeholder: Optional[ChatMessage], error: str, log_ctx: dict) -> None:
        if placeholder is None:
            placeholder = ChatMessage(role="system", content="")
            self.history.append(placeholder)
        placeholder.content = f"Error: {error}"
        placeholder.role = "system"
        self.needs_display_update = True
        self._log(logging.ERROR, "Error in conversation", log_ctx, error=error)

    def _set_input_enabled(self, enabled: bool) -> None:
        if self._view is not None:
            self._view.set_input_enabled(enabled)

    @staticmethod
    def _log(level: int, message: str, log_ctx: dict, **fields: Any) -> None:
        log_event(level, message, log_ctx, **fields)
