"""Provider 抽象接口。

Conversation 不直接依赖 httpx，而是依赖此协议：

- OllamaClient 是默认实现。
- 负责：将 ChatRequest 发到模型服务，并把流式响应解码为 FetchResult 序列。

测试中可以用任意实现了该协议的假对象替换。
"""

from typing import AsyncIterator, Protocol

from npc_core.domain.models import ChatRequest, FetchResult


class ChatProvider(Protocol):
    """流式聊天客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - host: 可读写的服务地址，回合之间可修改。
    - chat_stream(req): 异步产出 FetchResult，直到最终帧或流结束。
    - abort(): 让所有进行中的请求尽快停止（等待响应头时也一样），被中止的 chat_stream
      抛出 RequestAbortedError 而不是静默结束；之后的新请求不受影响。
    """

    name: str
    host: str

    def chat_stream(self, req: ChatRequest) -> AsyncIterator[FetchResult]:
        ...

    def abort(self) -> None:
        ...
