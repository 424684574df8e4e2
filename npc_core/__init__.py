"""NPC Core 顶层包。

该包提供由本地 Ollama 模型驱动的 NPC 对话核心，
包括配置加载、领域模型、流式 Provider 适配、对话状态机、
信号分发、教学进度跟踪与玩家设置持久化等能力。
"""

from npc_core.api.service import GameSession, get_default_session
from npc_core.conversation.base import Conversation, TurnState
from npc_core.conversation.educational import EducationalConversation
from npc_core.providers import OllamaClient, create_provider, get_default_provider

__all__ = [
    "Conversation",
    "EducationalConversation",
    "GameSession",
    "OllamaClient",
    "TurnState",
    "create_provider",
    "get_default_provider",
    "get_default_session",
]
