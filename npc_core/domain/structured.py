"""结构化回复模型与解析。

模型被要求按 JSON Schema 返回：

    {"message": "...", "signal": {"type": "...", "reason": "...", "data": ...} | null}

但并不保证遵守，因此：

- parse_structured_reply: 流结束后对完整文本做严格解析，失败返回 None（不是错误）。
- extract_display_text: 流式过程中随时从可能不完整的文本里尽量取出可展示的 message。
"""

import json
import re
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from npc_core.infrastructure.logging.logger import logger


# 保留的空操作信号类型
OTHER_SIGNAL = "other"

_MESSAGE_KEY = re.compile(r'"message"\s*:\s*"')
_ESCAPES = {'"': '"', "n": "\n", "r": "\r", "t": "\t", "\\": "\\"}
_ESCAPE_RE = re.compile(r'\\(["nrt\\])')


class Signal(BaseModel):
    """嵌在回复中的带外事件；data 保持解析后的原始 JSON 值，由具体 handler 自行解释。"""

    type: Optional[str] = Field(default="", description="信号类型，小写下划线命名")
    reason: Optional[str] = Field(default="", description="模型给出的原因")
    data: Any = Field(default=None, description="任意 JSON 负载")


class StructuredReply(BaseModel):
    """一次完整的结构化回复：展示文本 + 可选信号。"""

    message: Optional[str] = Field(default=None, description="展示给玩家的文本")
    signal: Optional[Signal] = Field(default=None, description="可选的进度信号")

    def to_json(self) -> str:
        return self.model_dump_json()


def parse_structured_reply(text: str, *, quiet: bool = False) -> Optional[StructuredReply]:
    """严格解析完整文本；不符合结构时返回 None，调用方退回纯文本展示。"""

    if not text or not text.strip():
        return None
    try:
        return StructuredReply.model_validate_json(text)
    except PydanticValidationError as exc:
        if not quiet:
            logger.warning(
                "Failed to parse structured response",
                extra={"extra": {"error": exc.errors()[0].get("type"), "raw": text[:200]}},
            )
        return None


def _decode_escapes(raw: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], raw)


def extract_display_text(content: str) -> str:
    """从（可能不完整的）累计文本里取出可展示的字符串。

    1. 完整的 {...} 对象：完整解析，取 message。
    2. 出现 "message":" 键：取到下一个未转义引号（或文本末尾）为止，并解码常见转义。
    3. 以 { 开头但还没出现 message：暂不显示。
    4. 其他情况视为模型未遵守 schema 的纯文本，原样返回。
    """

    if not content:
        return ""

    stripped = content.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        reply = parse_structured_reply(stripped, quiet=True)
        if reply is not None and reply.message is not None:
            return reply.message

    match = _MESSAGE_KEY.search(content)
    if match:
        start = match.end()
        end = len(content)
        in_escape = False
        for i in range(start, len(content)):
            if in_escape:
                in_escape = False
                continue
            ch = content[i]
            if ch == "\\":
                in_escape = True
                continue
            if ch == '"':
                end = i
                break
        if end > start:
            raw = content[start:end]
            # 分片恰好停在转义符中间
            if in_escape and end == len(content):
                raw = raw[:-1]
            return _decode_escapes(raw)

    if stripped.startswith("{"):
        return ""

    return content


def dump_payload(data: Any) -> str:
    """把信号负载序列化成日志友好的字符串。"""

    try:
        return json.dumps(data, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(data)
