from npc_core import providers
from npc_core.providers import create_provider, get_default_provider
from npc_core.providers.ollama_client import OllamaClient
from npc_core.providers.registry import LATEST_MODEL, LITE_MODEL, OLLAMA_CONFIG, model_for_tier, resolve_model


def test_resolve_model():
    assert resolve_model(LATEST_MODEL) == "gemma3n:e4b"
    assert resolve_model(LITE_MODEL) == "gemma3n:e2b"
    assert resolve_model("llama3.2:3b") == "llama3.2:3b"


def test_model_for_tier():
    assert model_for_tier(True) == LATEST_MODEL
    assert model_for_tier(False) == LITE_MODEL


def test_create_provider_with_host(monkeypatch):
    class DummySettings:
        ollama_host = "http://localhost:11434"
        http_timeout = 1.0

    monkeypatch.setattr("npc_core.providers.settings", DummySettings())
    provider = create_provider("http://gpu-box:11434/")
    assert isinstance(provider, OllamaClient)
    assert provider.host == "http://gpu-box:11434"
    assert create_provider().host == "http://localhost:11434"


def test_default_provider_is_shared(monkeypatch):
    monkeypatch.setattr(providers, "_default_client", None)
    first = get_default_provider()
    assert get_default_provider() is first


def test_http_client_is_created_lazily():
    class DummySettings:
        ollama_host = "http://localhost:11434"
        http_timeout = 3.0

    client = OllamaClient(DummySettings())
    assert client._http_client is None
    pool = client.http_client
    assert client.http_client is pool
    assert pool.timeout.read == 3.0


def test_client_name_comes_from_registry():
    assert OLLAMA_CONFIG.name == "ollama"
    assert OllamaClient.name == OLLAMA_CONFIG.name
    assert set(OLLAMA_CONFIG.models) == {LATEST_MODEL, LITE_MODEL}
