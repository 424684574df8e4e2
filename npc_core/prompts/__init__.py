"""NPC 提示词资源加载。

- load_backstory: 读取 NPC 背景故事文本，用于构造 system 消息。
- load_response_schema: 读取结构化回复的 JSON Schema，作为请求的 format 字段。

资源缺失或损坏时只记录错误并降级（无 system 提示 / 不约束生成），不阻止启动。
"""

import json
from pathlib import Path
from typing import Any, Optional

from npc_core.infrastructure.logging.logger import logger


PROMPTS_DIR = Path(__file__).resolve().parent


def load_backstory(path: Optional[str] = None, locale: str = "en") -> str:
    """加载 NPC 背景故事；未指定路径时按 locale 读取内置文本。"""

    fname = Path(path) if path else PROMPTS_DIR / locale / "npc_backstory.txt"
    try:
        text = fname.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Could not load NPC backstory file", extra={"extra": {"path": str(fname), "error": str(e)}})
        return ""
    logger.info("Loaded NPC backstory from file", extra={"extra": {"path": str(fname)}})
    return text.strip()


def load_response_schema(path: Optional[str] = None) -> Optional[Any]:
    """加载结构化输出 schema；失败返回 None，此时模型不受约束地生成。"""

    fname = Path(path) if path else PROMPTS_DIR / "npc_response_schema.json"
    try:
        schema = json.loads(fname.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Error loading response schema", extra={"extra": {"path": str(fname), "error": str(e)}})
        return None
    logger.info("Loaded response schema for structured output", extra={"extra": {"path": str(fname)}})
    return schema
