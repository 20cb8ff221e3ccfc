import httpx
import pytest

from habit_engine import llm_adapter
from habit_engine.exceptions import (
    BackendAuthError,
    BackendConnectionError,
    BackendError,
    BackendRateLimitError,
    BackendTimeoutError,
    ConfigError,
)
from habit_engine.llm_adapter import (
    OfflineAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    call_backend,
    create_llm_adapter,
    load_model_config,
)

OPENAI_CONFIG = {"provider": "openai", "api_key": "sk-test", "base_url": "https://llm.test/v1", "timeout": 5}


def _route(monkeypatch, handler):
    """Send every httpx.Client request in the adapter module to `handler`."""
    real_client = httpx.Client
    seen = []

    def record(request):
        seen.append(request)
        return handler(request)

    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(record)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(llm_adapter.httpx, "Client", factory)
    return seen


def test_openai_success(monkeypatch):
    seen = _route(monkeypatch, lambda request: httpx.Response(200, json={
        "model": "gpt-4o-mini",
        "choices": [{"message": {"content": "[]"}}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 1},
    }))

    response = OpenAIAdapter(OPENAI_CONFIG).generate("hi", system_prompt="be brief", max_tokens=50)

    assert response.success
    assert response.content == "[]"
    assert str(seen[0].url) == "https://llm.test/v1/chat/completions"
    assert seen[0].headers["authorization"] == "Bearer sk-test"
    body = seen[0].read().decode()
    assert '"max_tokens":50' in body.replace(" ", "")
    assert '"role":"system"' in body.replace(" ", "")


def test_ollama_success(monkeypatch):
    seen = _route(monkeypatch, lambda request: httpx.Response(200, json={
        "model": "qwen2.5:7b", "response": "ok", "eval_count": 2,
    }))

    response = OllamaAdapter({"base_url": "http://ollama.test"}).generate("hi", system_prompt="sys")

    assert response.content == "ok"
    assert response.usage["completion_tokens"] == 2
    assert seen[0].url.path == "/api/generate"


@pytest.mark.parametrize("status, expected", [
    (401, BackendAuthError),
    (429, BackendRateLimitError),
    (500, BackendError),
])
def test_http_errors_are_translated(monkeypatch, status, expected):
    _route(monkeypatch, lambda request: httpx.Response(status, headers={"retry-after": "7"}, text="nope"))

    with pytest.raises(expected) as exc:
        OpenAIAdapter(OPENAI_CONFIG).generate("hi")
    assert exc.value.provider == "openai"
    if status == 429:
        assert exc.value.retry_after == 7


def test_connect_error_is_translated(monkeypatch):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    _route(monkeypatch, refuse)

    with pytest.raises(BackendConnectionError) as exc:
        OllamaAdapter({}).generate("hi")
    assert "ollama serve" in exc.value.hint


def test_timeout_is_translated(monkeypatch):
    def slow(request):
        raise httpx.ReadTimeout("slow", request=request)

    _route(monkeypatch, slow)

    with pytest.raises(BackendTimeoutError) as exc:
        OpenAIAdapter(OPENAI_CONFIG).generate("hi")
    assert exc.value.reason == "timeout"


def test_openai_without_key_is_config_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigError):
        OpenAIAdapter({"provider": "openai"})


def test_call_backend_raises_on_offline_adapter():
    backend = call_backend(OfflineAdapter())

    with pytest.raises(BackendError):
        backend("system", "user")


def test_call_backend_passes_prompts(monkeypatch):
    seen = _route(monkeypatch, lambda request: httpx.Response(200, json={"response": "done"}))

    backend = call_backend(OllamaAdapter({}), temperature=0.2, max_tokens=99)

    assert backend("SYSTEM", "USER") == "done"
    body = seen[0].read().decode()
    assert "SYSTEM\\n\\nUSER" in body
    assert "99" in body


def test_factory_picks_adapter():
    assert isinstance(create_llm_adapter({"provider": "offline"}), OfflineAdapter)
    assert isinstance(create_llm_adapter({"provider": "rule_based"}), OfflineAdapter)
    assert isinstance(create_llm_adapter({"provider": "Ollama"}), OllamaAdapter)
    assert isinstance(create_llm_adapter(OPENAI_CONFIG), OpenAIAdapter)
    with pytest.raises(ConfigError):
        create_llm_adapter({"provider": "telepathy"})


def test_load_model_config_expands_env(tmp_path, monkeypatch):
    path = tmp_path / "model.yaml"
    path.write_text(
        "active_profile: cloud\n"
        "profiles:\n"
        "  cloud:\n"
        "    provider: openai\n"
        "    api_key: ${HABIT_TEST_KEY}\n"
        "    base_url: ${HABIT_TEST_UNSET}\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(llm_adapter, "LOCAL_MODEL_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr(llm_adapter, "MODEL_CONFIG_PATH", path)
    monkeypatch.setenv("HABIT_TEST_KEY", "sk-env")
    monkeypatch.delenv("HABIT_TEST_UNSET", raising=False)

    cfg = load_model_config()

    assert cfg == {"provider": "openai", "api_key": "sk-env", "base_url": None}
    assert load_model_config("nowhere") == {"provider": "offline"}


def test_load_model_config_without_files(tmp_path, monkeypatch):
    monkeypatch.setattr(llm_adapter, "LOCAL_MODEL_CONFIG_PATH", tmp_path / "a.yaml")
    monkeypatch.setattr(llm_adapter, "MODEL_CONFIG_PATH", tmp_path / "b.yaml")

    assert load_model_config() == {"provider": "offline"}
