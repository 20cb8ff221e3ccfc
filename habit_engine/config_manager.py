"""
Configuration Manager for the Habit Engine.

集中管理系统常量和配置参数。所有经验值必须显式声明并可配置。

使用方式:
    from habit_engine.config_manager import config
    limit = config.RATE_LIMIT_MAX_REQUESTS
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml


CONFIG_DIR = Path(__file__).parent.parent / "config"
RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass
class EngineConfig:
    """
    引擎运行时常量配置。

    所有值均为经验值，可根据用户实际情况调整。
    """

    # === 时间预算 ===

    # 默认每日可用时间 (分钟)
    # 经验值依据：3 小时是多数用户工作日可支配的上限
    DEFAULT_TOTAL_MINUTES: int = 180

    # 分配粒度 (分钟)，滑块与等分都按此取整
    ALLOCATION_STEP_MINUTES: int = 5

    # === 生成后端保护 ===

    # 每个身份在窗口内允许的后端请求数
    # 调整建议：共享部署可降至 5
    RATE_LIMIT_MAX_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0

    # 生成结果缓存有效期
    CACHE_TTL_SECONDS: float = 300.0

    # 单次后端调用超时，超时按后端错误处理
    BACKEND_TIMEOUT_SECONDS: float = 30.0

    # === 行动生成 ===

    # 每日行动上限
    # 经验值依据：两件小事足以维持连续性，又不至于压垮用户
    MAX_AI_ACTIONS: int = 2
    MAX_FALLBACK_ACTIONS: int = 2

    # 单个行动的时长边界
    MIN_ACTION_MINUTES: int = 5
    MAX_ACTION_MINUTES: int = 60

    # 提示词中要求的时长区间
    PROMPT_MIN_MINUTES: int = 5
    PROMPT_MAX_MINUTES: int = 25

    # 单个行动最多占用其愿景分配时间的比例
    ALLOCATION_CLAMP_RATIO: float = 0.7

    BACKEND_TEMPERATURE: float = 0.7
    BACKEND_MAX_TOKENS: int = 500

    # === 胜利记录 ===

    RECENT_VICTORIES_LIMIT: int = 7


def _load_runtime_config(path: Optional[Path] = None) -> dict:
    """加载运行时配置覆盖（如果存在）。"""
    target = path or RUNTIME_CONFIG_PATH
    if not target.exists():
        return {}

    try:
        with open(target, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def get_config(path: Optional[Path] = None) -> EngineConfig:
    """
    获取引擎配置实例。

    优先级：runtime.yaml > 默认值
    """
    base = EngineConfig()
    overrides = _load_runtime_config(path)

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)

    return base


# 全局配置实例（单例模式）
config = get_config()
