"""Ollama Provider 适配器。

- URL: {host}/api/chat
- 请求体: {model, messages, format, stream: true, keep_alive}
- 响应: 先读响应头；非 2xx 时整个 body 视为错误文本，成功时为逐行 JSON。

客户端持有一个长期存在的 httpx.AsyncClient（连接池），跨回合、跨对话复用；
host 可在回合之间修改而无需重建客户端。

abort() 会中止该客户端上所有进行中的请求。等待响应头（本地模型加载期间可能长达数分钟）、
读取错误 body、逐行读取这几个阶段都与中止信号赛跑；被中止的 chat_stream 不再产出
FetchResult，而是抛出 RequestAbortedError，调用方据此把回合标记为失败。
"""

import asyncio
import logging
import threading
from contextlib import AsyncExitStack, aclosing
from typing import Any, AsyncIterator, Awaitable, Optional, Set

import httpx

from npc_core.config.settings import settings
from npc_core.domain.exceptions import RequestAbortedError, ValidationError
from npc_core.domain.models import ChatRequest, FetchResult
from npc_core.infrastructure.logging.logger import log_event
from npc_core.providers.registry import OLLAMA_CONFIG
from npc_core.providers.stream_decoder import decode_stream


class _AbortToken:
    """单个请求的中止标记；aborted 同步置位，event 用于唤醒正在等待的读取。"""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._event = asyncio.Event()
        self.aborted = False

    def set(self) -> None:
        self.aborted = True
        try:
            self._loop.call_soon_threadsafe(self._event.set)
        except RuntimeError:
            # 事件循环已关闭，没有读取在等待
            pass

    async def wait(self) -> None:
        await self._event.wait()


async def _unless_aborted(aw: Awaitable[Any], token: _AbortToken) -> Any:
    """等待 aw，同时与中止信号赛跑；中止时取消 aw 并抛出 RequestAbortedError。"""

    if token.aborted:
        if asyncio.iscoroutine(aw):
            aw.close()
        raise RequestAbortedError()

    task = asyncio.ensure_future(aw)
    abort_wait = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({task, abort_wait}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        abort_wait.cancel()
        if not task.done():
            task.cancel()
            await asyncio.wait({task})

    if token.aborted:
        if not task.cancelled():
            # 取走结果，避免 "exception was never retrieved"
            task.exception()
        raise RequestAbortedError()
    return task.result()


async def _next_line(lines: AsyncIterator[str]) -> Optional[str]:
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return None


async def _until_aborted(lines: AsyncIterator[str], token: _AbortToken) -> AsyncIterator[str]:
    """逐行读取，每次读取都与中止信号赛跑，卡住的读取也能立即停下。"""

    while True:
        line = await _unless_aborted(_next_line(lines), token)
        if line is None:
            return
        yield line


class OllamaClient:
    """Ollama 流式聊天客户端。"""

    name = OLLAMA_CONFIG.name

    def __init__(self, cfg=settings, http_client: Optional[httpx.AsyncClient] = None):
        self._settings = cfg
        self._host = ""
        self.host = getattr(cfg, "ollama_host", "") or ""
        self._http_client = http_client
        self._client_lock = threading.Lock()
        self._tokens_lock = threading.Lock()
        self._tokens: Set[_AbortToken] = set()

    # ---- 配置 ----

    @property
    def host(self) -> str:
        return self._host

    @host.setter
    def host(self, value: str) -> None:
        self._host = (value or "").strip().rstrip("/")

    @property
    def http_client(self) -> httpx.AsyncClient:
        """连接池在首次使用时创建。"""

        if self._http_client is None:
            with self._client_lock:
                if self._http_client is None:
                    self._http_client = httpx.AsyncClient(
                        timeout=getattr(self._settings, "http_timeout", 600.0),
                        headers={"Connection": "keep-alive"},
                        trust_env=False,
                    )
        return self._http_client

    # ---- 流式 ----

    async def chat_stream(self, req: ChatRequest) -> AsyncIterator[FetchResult]:
        """产出 FetchResult 直到最终帧；被 abort() 中止时抛出 RequestAbortedError。"""

        if not self._host:
            raise ValidationError(code="MISSING_HOST", message="Ollama host is not configured")

        token = _AbortToken(asyncio.get_running_loop())
        with self._tokens_lock:
            self._tokens.add(token)
        log_ctx = {"host": self._host, "model": req.model}
        log_event(
            logging.INFO,
            "Sending chat request",
            log_ctx,
            message_count=len(req.messages),
            structured=req.format is not None,
        )
        frames = 0
        try:
            async with AsyncExitStack() as stack:
                stream = self.http_client.stream("POST", f"{self._host}/api/chat", json=req.to_payload())
                resp = await _unless_aborted(stack.enter_async_context(stream), token)
                if not resp.is_success:
                    body = (await _unless_aborted(resp.aread(), token)).decode("utf-8", errors="replace")
                    log_event(logging.ERROR, "HTTP error from model server", log_ctx, status=resp.status_code, body=body[:500])
                    yield FetchResult.failure(f"HTTP {resp.status_code}: {body}")
                    return

                async with aclosing(_until_aborted(resp.aiter_lines(), token)) as lines:
                    async with aclosing(decode_stream(lines)) as results:
                        async for result in results:
                            if token.aborted:
                                raise RequestAbortedError()
                            frames += 1
                            yield result

            log_event(logging.INFO, "Chat stream finished", log_ctx, frames=frames)
        except RequestAbortedError:
            log_event(logging.WARNING, "Chat request aborted", log_ctx, frames=frames)
            raise
        except httpx.RequestError as exc:
            log_event(logging.ERROR, "Chat request failed", log_ctx, error=str(exc), frames=frames)
            if token.aborted:
                raise RequestAbortedError() from exc
            yield FetchResult.failure(f"{type(exc).__name__}: {exc}")
        finally:
            with self._tokens_lock:
                self._tokens.discard(token)

    def abort(self) -> None:
        """中止当前所有进行中的请求；之后发起的请求不受影响。"""

        with self._tokens_lock:
            tokens = list(self._tokens)
        for token in tokens:
            token.set()
        if tokens:
            log_event(logging.INFO, "Abort requested", {"host": self._host}, requests=len(tokens))

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
