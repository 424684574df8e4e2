import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict
from uuid import uuid4

from npc_core.config.settings import settings
from npc_core.domain.exceptions import BusinessError
from npc_core.infrastructure.logging.logger import log_event


@dataclass
class GameData:
    """玩家可修改的设置。"""

    ollama_host_url: str = ""
    educational_subject: int = 0
    use_latest_model: bool = True


class GameDataStore:
    """扁平 key/value 设置文件，以缩进 JSON 保存。"""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or settings.game_data_path).resolve()
        self.data = GameData()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> GameData:
        """读取设置；文件不存在时使用默认值，文件损坏时记录错误并回退默认值。"""

        if not self._path.exists():
            self.data = GameData()
            return self.data
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log_event(logging.ERROR, "Failed to read game data, using defaults", {"path": str(self._path)}, error=str(e))
            self.data = GameData()
            return self.data
        self.data = self._from_dict(raw if isinstance(raw, dict) else {})
        return self.data

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.parent / f"{self._path.stem}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(asdict(self.data), ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))
        log_event(logging.INFO, "Saved game data", {"path": str(self._path)})

    def update(self, **changes: Any) -> GameData:
        known = {f.name for f in fields(GameData)}
        for key, value in changes.items():
            if key not in known:
                raise BusinessError(code="UNKNOWN_SETTING", message=key)
            setattr(self.data, key, value)
        return self.data

    @staticmethod
    def _from_dict(raw: Dict[str, Any]) -> GameData:
        defaults = GameData()
        host = raw.get("ollama_host_url", defaults.ollama_host_url)
        try:
            subject = int(raw.get("educational_subject", defaults.educational_subject))
        except (TypeError, ValueError):
            subject = defaults.educational_subject
        use_latest = raw.get("use_latest_model", defaults.use_latest_model)
        return GameData(
            ollama_host_url=host if isinstance(host, str) else defaults.ollama_host_url,
            educational_subject=subject,
            use_latest_model=bool(use_latest),
        )
