"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护逻辑模型与 Ollama 模型的映射 (registry)。
- 解码流式响应 (stream_decoder) 并提供 Ollama 客户端实现 (ollama_client)。
"""

import threading
from typing import Optional

from npc_core.config.settings import settings
from npc_core.providers.base import ChatProvider
from npc_core.providers.ollama_client import OllamaClient

_default_client: Optional[OllamaClient] = None
_default_lock = threading.Lock()


def create_provider(host: Optional[str] = None) -> OllamaClient:
    """新建一个独立的客户端（独立连接池）。"""

    client = OllamaClient(settings)
    if host is not None:
        client.host = host
    return client


def get_default_provider() -> OllamaClient:
    """进程级共享客户端，首次访问时在锁内创建。"""

    global _default_client
    if _default_client is None:
        with _default_lock:
            if _default_client is None:
                _default_client = OllamaClient(settings)
    return _default_client


__all__ = ["ChatProvider", "OllamaClient", "create_provider", "get_default_provider"]
