"""Ollama 流式响应解码。

响应体是逐行 JSON（NDJSON）：

    {"message": {"role": "assistant", "content": "He"}, "done": false}
    {"message": {"role": "assistant", "content": "llo"}, "done": true}

StreamDecoder 每次喂入一行，累积回复文本，并在 done=true 的那一帧尝试结构化解析。
"""

import json
from typing import AsyncIterator, List, Optional

from npc_core.domain.models import FetchResult, StreamFrame
from npc_core.domain.structured import parse_structured_reply
from npc_core.infrastructure.logging.logger import logger


class StreamDecoder:
    """单个回合的解码状态；每个请求新建一个。"""

    def __init__(self) -> None:
        self._pieces: List[str] = []
        self.done = False

    @property
    def reply(self) -> str:
        return "".join(self._pieces)

    def feed(self, line: str) -> Optional[FetchResult]:
        """处理一行；空行、坏行、最终帧之后的行都返回 None。"""

        if self.done or not line or not line.strip():
            return None
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed stream line", extra={"extra": {"line": line[:200]}})
            return None
        if not isinstance(payload, dict):
            return None

        if payload.get("error"):
            # Ollama 在 200 响应里以 {"error": "..."} 报告中途失败
            self.done = True
            return FetchResult.failure(str(payload["error"]), reply=self.reply)

        frame = StreamFrame.from_payload(payload)
        self._pieces.append(frame.content)
        reply = self.reply

        structured = None
        if frame.done:
            self.done = True
            if reply.strip():
                structured = parse_structured_reply(reply)

        return FetchResult(success=True, reply=reply, final=frame.done, structured=structured)


async def decode_stream(lines: AsyncIterator[str]) -> AsyncIterator[FetchResult]:
    """把行序列转成 FetchResult 序列，遇到最终帧或失败后停止消费。"""

    decoder = StreamDecoder()
    async for line in lines:
        result = decoder.feed(line)
        if result is None:
            continue
        yield result
        if result.final:
            return
