"""统一的对话与流式结果数据模型。

本模块定义了对话核心在 Conversation 与 Ollama 传输层之间共享的数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- ChatRequest: 一次 /api/chat 请求体，每个回合新建。
- StreamFrame: 响应体中解码出的一行 NDJSON。
- FetchResult: 每处理一帧对外产出一次的结果。

传输层负责在这些模型和 Ollama 的 JSON 之间做转换。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from npc_core.domain.structured import StructuredReply


# 消息角色（与 Ollama role 字段一致）
Role = Literal["system", "user", "assistant"]
ROLES = ("system", "user", "assistant")

DEFAULT_KEEP_ALIVE = "60m"


@dataclass
class ChatMessage:
    """一条对话消息。

    - role: 消息角色。回合失败时占位消息会被改写为 "system"。
    - content: 纯文本内容；进行中的 assistant 占位消息会随每个分片被整体覆盖。
    """

    role: Role
    content: str

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChatMessage":
        role = payload.get("role") or "assistant"
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        return cls(role=role, content=payload.get("content") or "")


@dataclass(frozen=True)
class ChatRequest:
    """一次流式聊天请求，发送后不再修改。

    messages 的顺序就是发给模型的字面 prompt；format 为结构化输出的
    JSON Schema，为 None 时不约束生成。
    """

    model: str
    messages: List[ChatMessage]
    format: Optional[Any] = None
    stream: bool = True
    keep_alive: str = DEFAULT_KEEP_ALIVE

    def to_payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_payload() for m in self.messages],
            "format": self.format,
            "stream": self.stream,
            "keep_alive": self.keep_alive,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChatRequest":
        return cls(
            model=payload["model"],
            messages=[ChatMessage.from_payload(m) for m in payload.get("messages") or []],
            format=payload.get("format"),
            stream=bool(payload.get("stream", True)),
            keep_alive=payload.get("keep_alive") or DEFAULT_KEEP_ALIVE,
        )


@dataclass
class StreamFrame:
    """响应体中的一帧：本次增量内容 + done 标记。"""

    role: str
    content: str
    done: bool

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "StreamFrame":
        # 最后一帧有时不带 message，按空分片处理
        message = payload.get("message")
        if not isinstance(message, dict):
            message = {}
        content = message.get("content")
        return cls(
            role=message.get("role") or "assistant",
            content=content if isinstance(content, str) else "",
            done=bool(payload.get("done", False)),
        )


@dataclass
class FetchResult:
    """对外可观察的流式单元，每处理一帧产出一个。

    - success: 为 False 时表示本回合以错误结束，error 给出描述。
    - reply: 到目前为止累计的完整回复文本（只增不减）。
    - final: 是否为本回合最后一个结果。
    - structured: 仅在最终帧且累计文本能解析为结构化回复时存在。
    """

    success: bool
    reply: str = ""
    final: bool = False
    error: Optional[str] = None
    structured: Optional["StructuredReply"] = None

    @classmethod
    def failure(cls, error: str, reply: str = "") -> "FetchResult":
        return cls(success=False, reply=reply, final=True, error=error)
