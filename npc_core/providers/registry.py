"""模型配置。

本模块将“逻辑模型名”与“Ollama 模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "npc-chat"。
- provider_model：Ollama 实际拉取的模型 tag，例如 "gemma3n:e4b"。

玩家在设置里选择“使用最新模型”时用 npc-chat，否则用更省内存的 npc-chat-lite。"""

from dataclasses import dataclass
from typing import Dict


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str


@dataclass
class ProviderConfig:
    """Provider 的整体配置；服务地址由 Settings.ollama_host 与玩家设置决定，不在此登记。"""

    name: str
    models: Dict[str, ModelConfig]


LATEST_MODEL = "npc-chat"
LITE_MODEL = "npc-chat-lite"

# gemma3n:e4b 在小内存设备上需要额外 swap，e2b 作为低配备选
OLLAMA_CONFIG = ProviderConfig(
    name="ollama",
    models={
        LATEST_MODEL: ModelConfig(logical_name=LATEST_MODEL, provider_model="gemma3n:e4b"),
        LITE_MODEL: ModelConfig(logical_name=LITE_MODEL, provider_model="gemma3n:e2b"),
    },
)


def resolve_model(name: str) -> str:
    """逻辑名映射为 Ollama 模型名；未登记的名字视为已是具体 tag，原样返回。"""

    cfg = OLLAMA_CONFIG.models.get(name)
    return cfg.provider_model if cfg else name


def model_for_tier(use_latest: bool) -> str:
    return LATEST_MODEL if use_latest else LITE_MODEL
