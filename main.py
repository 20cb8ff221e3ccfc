import os

import uvicorn

from habit_engine.config_manager import config
from habit_engine.llm_adapter import load_model_config
from habit_engine.logger import get_logger, setup_logging

logger = get_logger("main")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in {"1", "true", "yes"}


def main():
    """Run the Habit Engine HTTP API."""
    setup_logging()

    host = os.getenv("HABIT_ENGINE_HOST", "0.0.0.0")
    port = int(os.getenv("HABIT_ENGINE_PORT", "8010"))
    reload_enabled = _env_flag("HABIT_ENGINE_RELOAD")

    logger.info(
        "Starting Habit Engine on %s:%d (backend: %s, %d requests / %ss per user)",
        host,
        port,
        load_model_config().get("provider", "offline"),
        config.RATE_LIMIT_MAX_REQUESTS,
        config.RATE_LIMIT_WINDOW_SECONDS,
    )

    uvicorn.run(
        "web.backend.app:app",
        host=host,
        port=port,
        reload=reload_enabled,
        reload_dirs=["web", "habit_engine", "config"] if reload_enabled else None,
    )


if __name__ == "__main__":
    main()
