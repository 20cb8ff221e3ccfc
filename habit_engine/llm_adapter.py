"""
LLM Adapter for the Habit Engine.

Provides a unified interface for the text-generation backend behind the
ActionGenerator. Supports: OpenAI API, Ollama (local), and an offline
adapter used when no backend is configured.
"""
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
import yaml

from habit_engine.exceptions import (
    BackendAuthError,
    BackendConnectionError,
    BackendError,
    BackendRateLimitError,
    BackendTimeoutError,
    ConfigError,
)
from habit_engine.logger import get_logger

CONFIG_DIR = Path(__file__).parent.parent / "config"
MODEL_CONFIG_PATH = CONFIG_DIR / "model.yaml"
LOCAL_MODEL_CONFIG_PATH = CONFIG_DIR / "local_model.yaml"

logger = get_logger("llm_adapter")

# callBackend(system_prompt, user_prompt) -> raw text
BackendCall = Callable[[str, str], str]


@dataclass
class LLMResponse:
    """Structured response from LLM."""
    content: str
    model: str
    usage: Optional[Dict[str, int]] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class BaseLLMAdapter(ABC):
    """Base class for LLM adapters."""

    provider = "unknown"

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.model_name = config.get("model_name", "unknown")
        self.timeout = float(config.get("timeout", 60.0))

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500
    ) -> LLMResponse:
        """Generate text completion."""

    def get_model_name(self) -> str:
        return self.model_name

    def _translate_error(self, exc: Exception, endpoint: str) -> BackendError:
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            if status == 401:
                return BackendAuthError(self.provider, self.model_name, endpoint)
            if status == 429:
                retry_after = exc.response.headers.get("retry-after")
                return BackendRateLimitError(
                    self.provider,
                    self.model_name,
                    endpoint,
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                )
            return BackendError(
                f"HTTP {status} - {exc.response.text[:200]}",
                self.provider,
                self.model_name,
                endpoint,
            )
        if isinstance(exc, httpx.ConnectError):
            return BackendConnectionError(self.provider, self.model_name, endpoint)
        if isinstance(exc, httpx.TimeoutException):
            return BackendTimeoutError(self.provider, self.model_name, endpoint, timeout_seconds=self.timeout)
        return BackendError(f"Request failed: {exc}", self.provider, self.model_name, endpoint)


class OpenAIAdapter(BaseLLMAdapter):
    """Adapter for OpenAI API (also compatible with other OpenAI-compatible APIs)."""

    provider = "openai"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.api_key = config.get("api_key") or os.environ.get("OPENAI_API_KEY")
        self.base_url = config.get("base_url", "https://api.openai.com/v1")
        self.model_name = config.get("model_name", "gpt-4o-mini")

        if not self.api_key:
            raise ConfigError(
                "OpenAI API key not found. Set OPENAI_API_KEY or add 'api_key' to the profile",
                config_path=str(MODEL_CONFIG_PATH),
            )

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500
    ) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=payload
                )
                response.raise_for_status()
                data = response.json()
        except Exception as e:
            raise self._translate_error(e, self.base_url) from e

        choices = data.get("choices") or [{}]
        return LLMResponse(
            content=(choices[0].get("message") or {}).get("content") or "",
            model=data.get("model", self.model_name),
            usage=data.get("usage")
        )


class OllamaAdapter(BaseLLMAdapter):
    """Adapter for local Ollama models."""

    provider = "ollama"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.base_url = config.get("base_url", "http://localhost:11434")
        self.model_name = config.get("model_name", "qwen2.5:7b")
        self.timeout = float(config.get("timeout", 120.0))

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500
    ) -> LLMResponse:
        full_prompt = prompt
        if system_prompt:
            full_prompt = f"{system_prompt}\n\n{prompt}"

        payload = {
            "model": self.model_name,
            "prompt": full_prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens
            }
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(f"{self.base_url}/api/generate", json=payload)
                response.raise_for_status()
                data = response.json()
        except Exception as e:
            raise self._translate_error(e, self.base_url) from e

        return LLMResponse(
            content=data.get("response", ""),
            model=data.get("model", self.model_name),
            usage={
                "prompt_tokens": data.get("prompt_eval_count", 0),
                "completion_tokens": data.get("eval_count", 0)
            }
        )


class OfflineAdapter(BaseLLMAdapter):
    """
    Stand-in when no backend is configured.
    Always reports failure so the ActionGenerator takes the fallback path.
    """

    provider = "offline"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config or {})
        self.model_name = "offline"

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500
    ) -> LLMResponse:
        return LLMResponse(
            content="",
            model=self.model_name,
            usage={"prompt_tokens": 0, "completion_tokens": 0},
            error="No generation backend configured"
        )


def call_backend(
    adapter: BaseLLMAdapter,
    temperature: float = 0.7,
    max_tokens: int = 500
) -> BackendCall:
    """Wrap an adapter as callBackend(system_prompt, user_prompt) -> str."""

    def _call(system_prompt: str, user_prompt: str) -> str:
        response = adapter.generate(
            user_prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not response.success:
            raise BackendError(response.error or "empty response", adapter.provider, adapter.model_name)
        return response.content

    return _call


def load_model_config(profile_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Load model configuration from YAML file.
    Priority: local_model.yaml > model.yaml

    Args:
        profile_name: Optional profile name. If None, uses active_profile from config.

    Returns:
        Configuration dict for the specified or active profile.

    Note:
        Supports ${ENV_VAR} syntax for environment variable expansion.
    """
    raw_config: Dict[str, Any] = {}

    for path in (LOCAL_MODEL_CONFIG_PATH, MODEL_CONFIG_PATH):
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    raw_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML: {e}", config_path=str(path)) from e
            break

    if "profiles" in raw_config:
        profiles = raw_config["profiles"] or {}
        active_profile = profile_name or raw_config.get("active_profile", "offline")

        if active_profile not in profiles:
            logger.warning("Profile '%s' not found, using offline mode", active_profile)
            return {"provider": "offline"}

        return _expand_env_vars(profiles[active_profile])

    if raw_config:
        return _expand_env_vars(raw_config)

    return {"provider": "offline"}


def _expand_env_vars(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Expand ${VAR} placeholders in config values with environment variables.

    Unset variables become None so adapters fall back to their own defaults.
    """
    result: Dict[str, Any] = {}
    pattern = re.compile(r'\$\{([^}]+)\}')

    for key, value in config.items():
        if isinstance(value, str):
            match = pattern.fullmatch(value)
            result[key] = os.environ.get(match.group(1)) if match else value
        elif isinstance(value, dict):
            result[key] = _expand_env_vars(value)
        else:
            result[key] = value

    return result


def create_llm_adapter(
    config: Optional[Dict[str, Any]] = None,
    profile_name: Optional[str] = None,
) -> BaseLLMAdapter:
    """
    Factory function to create the appropriate LLM adapter.

    Args:
        config: Optional config dict. If None, loads from model.yaml.
        profile_name: Optional profile name. Only used when config is None.
    """
    if config is None:
        config = load_model_config(profile_name)

    provider = str(config.get("provider", "offline")).lower()

    if provider == "openai":
        return OpenAIAdapter(config)
    if provider == "ollama":
        return OllamaAdapter(config)
    if provider in ("offline", "rule_based"):
        return OfflineAdapter(config)
    raise ConfigError(
        f"Unknown LLM provider '{provider}' (profile: {profile_name})",
        config_path=str(MODEL_CONFIG_PATH),
    )


# 单例模式：全局 LLM 实例注册表 (Profile Name -> Instance)
_llm_registry: Dict[str, BaseLLMAdapter] = {}


def get_llm(profile_name: Optional[str] = None) -> BaseLLMAdapter:
    """
    Get or create an LLM adapter instance for the specified profile.
    Instances are cached in _llm_registry.
    """
    target_profile = profile_name or "__active__"

    if target_profile not in _llm_registry:
        logger.info("Initializing LLM profile: %s", profile_name or "active")
        _llm_registry[target_profile] = create_llm_adapter(profile_name=profile_name)

    return _llm_registry[target_profile]


def reset_llm() -> None:
    """Reset the global LLM registry (useful for testing or config changes)."""
    _llm_registry.clear()
