"""对话历史的展示格式化（BBCode 风格），供渲染层直接使用。"""

import re
from typing import Callable, Optional, Sequence

from npc_core.domain.models import ChatMessage
from npc_core.domain.structured import extract_display_text

USER_COLOR = "add8e6"
NPC_COLOR = "90ee90"
SYSTEM_COLOR = "ff6347"

_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC = re.compile(r"\*([^*]+)\*")


def process_formatting(text: str) -> str:
    """**x** -> [b]x[/b]，*x* -> [i]x[/i]。"""

    if not text:
        return text
    text = _BOLD.sub(r"[b]\1[/b]", text)
    return _ITALIC.sub(r"[i]\1[/i]", text)


def format_history(
    history: Sequence[ChatMessage],
    npc_name: str,
    user_color: str = USER_COLOR,
    npc_color: str = NPC_COLOR,
    system_color: str = SYSTEM_COLOR,
) -> str:
    parts = []
    for idx, message in enumerate(history):
        if message.role == "user":
            parts.append(f"[color=#{user_color}]You:[/color] {process_formatting(message.content)}\n\n")
        elif message.role == "assistant":
            shown = extract_display_text(message.content)
            parts.append(f"[color=#{npc_color}]{npc_name}:[/color] {process_formatting(shown)}\n\n")
        elif idx > 0:
            # 开头的 system 是提示词，不展示；其余 system 消息是回合错误
            parts.append(f"[color=#{system_color}]{message.content}[/color]\n\n")
    return "".join(parts)


class BBCodeView:
    """默认渲染器：把历史格式化成 BBCode 文本交给 UI（例如 RichTextLabel）。"""

    def __init__(
        self,
        npc_name: str,
        on_text: Callable[[str], None],
        on_input_enabled: Optional[Callable[[bool], None]] = None,
    ):
        self.npc_name = npc_name
        self._on_text = on_text
        self._on_input_enabled = on_input_enabled

    def render(self, history: Sequence[ChatMessage]) -> None:
        self._on_text(format_history(history, self.npc_name))

    def set_input_enabled(self, enabled: bool) -> None:
        if self._on_input_enabled is not None:
            self._on_input_enabled(enabled)
