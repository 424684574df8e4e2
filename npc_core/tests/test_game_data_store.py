import json
import tempfile
from pathlib import Path

import pytest

from npc_core.domain.exceptions import BusinessError
from npc_core.infrastructure.storage.game_data_store import GameData, GameDataStore


def test_missing_file_uses_defaults():
    with tempfile.TemporaryDirectory() as d:
        store = GameDataStore(Path(d) / "gamedata.json")
        assert store.load() == GameData()


def test_save_and_reload():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "nested" / "gamedata.json"
        store = GameDataStore(path)
        store.load()
        store.update(ollama_host_url="http://192.168.1.5:11434", educational_subject=3, use_latest_model=False)
        store.save()

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["educational_subject"] == 3
        assert not list(path.parent.glob("*.tmp"))

        again = GameDataStore(path).load()
        assert again == GameData("http://192.168.1.5:11434", 3, False)


def test_corrupt_file_falls_back_to_defaults():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "gamedata.json"
        path.write_text("{not json", encoding="utf-8")
        assert GameDataStore(path).load() == GameData()


def test_bad_field_types_are_coerced():
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "gamedata.json"
        path.write_text(json.dumps({"ollama_host_url": 5, "educational_subject": "x", "extra": 1}), encoding="utf-8")
        assert GameDataStore(path).load() == GameData()


def test_unknown_setting_rejected():
    store = GameDataStore("unused.json")
    with pytest.raises(BusinessError) as exc:
        store.update(volume=3)
    assert exc.value.code == "UNKNOWN_SETTING"
