"""
Habit Engine 异常定义模块。

定义系统中所有自定义异常的层次结构：
- HabitEngineError: 基类，所有已知错误
- ConfigError: 配置文件错误
- StorageError: 持久化状态读写错误
- ActionNotFoundError: 引用了不存在的每日行动
- BackendError: 生成后端调用相关错误

Allocator 与 VictoryLedger 从不抛出异常 (输入一律钳制)；
BackendError 只在 ActionGenerator 内部流转，由 fallback 路径吸收。
"""
from typing import Optional


class HabitEngineError(Exception):
    """Habit Engine 基础异常类。

    所有系统内已知错误都继承自此类。
    捕获此类可以处理所有预期的错误情况。
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: 错误描述
            hint: 对用户的操作建议
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """返回用户友好的错误消息。"""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class ConfigError(HabitEngineError):
    """配置文件错误。"""

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path


class StorageError(HabitEngineError):
    """持久化状态损坏或无法读写。"""

    def __init__(self, message: str, key: Optional[str] = None):
        hint = f"Stored state for '{key}' may be corrupted" if key else None
        super().__init__(message, hint)
        self.key = key


class ActionNotFoundError(HabitEngineError):
    """今天的行动列表中没有该 ID。"""

    def __init__(self, action_id: str):
        super().__init__(f"Daily action not found: {action_id}")
        self.action_id = action_id


class BackendError(HabitEngineError):
    """生成后端调用相关错误的基类。"""

    reason = "backend_error"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        self.provider = provider or "unknown"
        self.model_name = model_name or "unknown"
        self.endpoint = endpoint

        context = f"[{self.provider}/{self.model_name}]"
        super().__init__(f"{context} {message}")

    def get_user_message(self) -> str:
        base = f"Generation backend failed ({self.provider}/{self.model_name}): {self.message}"
        if self.hint:
            return f"{base}\nHint: {self.hint}"
        return base


class BackendConnectionError(BackendError):
    """无法连接到生成后端。"""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__("Cannot reach generation backend", provider, model_name, endpoint)
        if provider == "ollama":
            self.hint = "Make sure Ollama is running (ollama serve)"
        else:
            self.hint = "Check the network connection or the endpoint in config/model.yaml"


class BackendAuthError(BackendError):
    """后端鉴权失败。"""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__("Backend authentication failed", provider, model_name, endpoint)
        self.hint = "Check that the API key is configured"


class BackendTimeoutError(BackendError):
    """后端调用超时。"""

    reason = "timeout"

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        message = "Backend call timed out"
        if timeout_seconds:
            message = f"Backend call timed out ({timeout_seconds}s)"
        super().__init__(message, provider, model_name, endpoint)
        self.timeout_seconds = timeout_seconds
        self.hint = "The backend is slow or unreachable; try again later"


class BackendRateLimitError(BackendError):
    """后端返回 429。"""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__("Backend rate limit exceeded", provider, model_name, endpoint)
        self.retry_after = retry_after
        if retry_after:
            self.hint = f"Retry after {retry_after} seconds"
        else:
            self.hint = "Try again later"


class ResponseParseError(BackendError):
    """后端返回的文本中没有合法的行动列表。"""

    reason = "parse_error"

    def __init__(self, message: str = "Invalid backend response format", raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw
