"""
Habit Engine 日志配置模块。

所有模块通过 get_logger("<name>") 取得 habit_engine.<name> 子 logger，
输出由 setup_logging() 统一挂载：
- <logs>/system.log: 运行日志，生成降级、预算重置、胜利记录 (INFO+)
- <logs>/error.log: 后端异常堆栈 (ERROR+)
- stderr: 只给用户看的告警 (WARNING+)

日志目录与级别可通过环境变量覆盖：
    HABIT_ENGINE_LOGS_DIR, HABIT_ENGINE_LOG_LEVEL, HABIT_ENGINE_CONSOLE_LEVEL
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "habit_engine"

# 单个日志文件上限与备份数
MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

Level = Union[int, str, None]


def get_logs_dir() -> Path:
    raw = os.getenv("HABIT_ENGINE_LOGS_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return Path(__file__).parent.parent / "logs"


def _resolve_level(value: Level, env_var: str, default: int) -> int:
    """int 原样返回；字符串按级别名解析 ("debug", "WARNING")；无效值回落到默认。"""
    if value is None:
        value = os.getenv(env_var) or default
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    return resolved if isinstance(resolved, int) else default


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: Level = None,
    console_level: Level = None,
    logs_dir: Optional[Path] = None,
    to_files: bool = True,
) -> logging.Logger:
    """
    挂载 habit_engine 的日志输出，重复调用会替换之前的 handler。

    Args:
        log_level: system.log 级别，默认 INFO
        console_level: stderr 级别，默认 WARNING
        logs_dir: 日志目录，默认 get_logs_dir()
        to_files: False 时只输出到 stderr (CLI 单次命令)
    """
    file_level = _resolve_level(log_level, "HABIT_ENGINE_LOG_LEVEL", logging.INFO)
    stderr_level = _resolve_level(console_level, "HABIT_ENGINE_CONSOLE_LEVEL", logging.WARNING)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(min(file_level, stderr_level) if to_files else stderr_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    if to_files:
        target_dir = logs_dir or get_logs_dir()
        target_dir.mkdir(parents=True, exist_ok=True)
        file_format = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        logger.addHandler(_rotating_handler(target_dir / "system.log", file_level, file_format))
        logger.addHandler(_rotating_handler(target_dir / "error.log", logging.ERROR, file_format))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(stderr_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """get_logger("victory_ledger") -> habit_engine.victory_ledger"""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)
