"""对外 API 服务模块。

把设置存储、Provider、教学对话和事件处理器组装成一个游戏会话，
供游戏循环 / UI 层调用。
"""

from typing import Callable, Optional

from npc_core.config.settings import settings
from npc_core.conversation.base import ConversationView
from npc_core.conversation.educational import EducationalConversation
from npc_core.conversation.events import ConversationEventHandler
from npc_core.conversation.formatting import BBCodeView
from npc_core.domain.exceptions import BusinessError
from npc_core.infrastructure.logging.logger import logger
from npc_core.infrastructure.storage.game_data_store import GameData, GameDataStore
from npc_core.prompts import load_backstory, load_response_schema
from npc_core.providers import get_default_provider
from npc_core.providers.base import ChatProvider


class GameSession:
    """一个 NPC 的完整会话：设置、对话与进度。"""

    def __init__(
        self,
        store: GameDataStore,
        provider: ChatProvider,
        view: Optional[ConversationView] = None,
        on_progress: Optional[Callable[[str], None]] = None,
        cfg=settings,
        on_text: Optional[Callable[[str], None]] = None,
    ):
        """view 为空且给了 on_text 时，使用 BBCodeView 把历史渲染成 BBCode 文本。"""
        self._cfg = cfg
        if view is None and on_text is not None:
            view = BBCodeView(cfg.npc_name, on_text)
        self.store = store
        self.provider = provider
        data = store.load()
        self._apply_host(data)

        self.conversation = EducationalConversation(
            provider,
            view=view,
            npc_name=cfg.npc_name,
            backstory=load_backstory(cfg.npc_backstory_path),
            response_format=load_response_schema(cfg.npc_response_schema_path),
            use_latest_model=data.use_latest_model,
        )
        self.events = ConversationEventHandler(self.conversation, on_progress=on_progress)
        self.conversation.attach_event_handler(self.events)

    @property
    def data(self) -> GameData:
        return self.store.data

    def needs_settings(self) -> bool:
        """尚未配置 Ollama 地址时，UI 应先弹出设置面板。"""

        return not self.store.data.ollama_host_url.strip()

    def open_conversation(self) -> None:
        self.conversation.apply_game_data(self.store.data)
        self.conversation.start()

    async def send(self, player_input: str) -> bool:
        return await self.conversation.send(player_input)

    def refresh_display(self) -> bool:
        return self.conversation.refresh_display()

    def save_settings(
        self,
        host: Optional[str] = None,
        subject: Optional[int] = None,
        use_latest_model: Optional[bool] = None,
    ) -> GameData:
        """更新并保存设置，随后把地址推给 Provider。

        Raises:
            BusinessError: 写入失败或设置项未知
        """
        changes = {}
        if host is not None:
            changes["ollama_host_url"] = host.strip()
        if subject is not None:
            changes["educational_subject"] = subject
        if use_latest_model is not None:
            changes["use_latest_model"] = use_latest_model
        try:
            data = self.store.update(**changes)
            self.store.save()
        except BusinessError as e:
            logger.error(f"Save settings failed: {e.message}", extra={"extra": {"code": e.code}})
            raise
        self._apply_host(data)
        logger.info("Settings saved", extra={"extra": {"host": self.provider.host}})
        return data

    async def aclose(self) -> None:
        aclose = getattr(self.provider, "aclose", None)
        if aclose is not None:
            await aclose()

    def _apply_host(self, data: GameData) -> None:
        self.provider.host = data.ollama_host_url.strip() or self._cfg.ollama_host


_session: Optional[GameSession] = None


def get_default_session() -> GameSession:
    """获取默认游戏会话（单例），使用共享 Provider 与默认设置文件。"""
    global _session
    if _session is None:
        _session = GameSession(store=GameDataStore(), provider=get_default_provider())
    return _session
