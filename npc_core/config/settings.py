"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("NPC_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """运行时配置（使用 Pydantic）。"""

    # ---- Ollama 服务 ----
    ollama_host: str = Field(
        default="http://localhost:11434",
        description="Ollama 服务地址，运行期可被玩家设置覆盖",
    )
    default_model: str = Field(
        default="npc-chat",
        description="逻辑模型名，由 registry 映射为具体 Ollama 模型",
    )
    http_timeout: float = Field(
        default=600.0,
        ge=1.0,
        description="单次请求总超时（秒）；本地推理可能很慢，默认 10 分钟",
    )
    keep_alive: str = Field(default="60m", description="模型在服务端常驻内存的时长")

    # ---- NPC 资源 ----
    npc_name: str = Field(default="NPC", description="NPC 名称")
    npc_backstory_path: Optional[str] = Field(
        default=None,
        description="NPC 背景故事文本路径，为空时使用内置 prompts/en/npc_backstory.txt",
    )
    npc_response_schema_path: Optional[str] = Field(
        default=None,
        description="结构化回复 JSON Schema 路径，为空时使用内置 schema",
    )

    # ---- 存储与日志 ----
    game_data_path: str = Field(default=".storage/gamedata.json", description="玩家设置文件")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("ollama_host")
    @classmethod
    def strip_host(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
