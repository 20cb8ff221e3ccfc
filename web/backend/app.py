import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from habit_engine.exceptions import ActionNotFoundError, HabitEngineError, StorageError
from web.backend.routers import actions, time_budget, victory

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")


def _status_for(exc: HabitEngineError) -> int:
    if isinstance(exc, ActionNotFoundError):
        return 404
    if isinstance(exc, StorageError):
        return 500
    return 400


def create_app() -> FastAPI:
    app = FastAPI(title="Habit Engine API", version="1.0")

    origins = [o.strip() for o in os.getenv("HABIT_ENGINE_ALLOWED_ORIGINS", "*").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    @app.exception_handler(HabitEngineError)
    async def engine_error_handler(request: Request, exc: HabitEngineError):
        status = _status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status, content={"detail": exc.message, "hint": exc.hint})

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "Habit Engine"}

    app.include_router(time_budget.router, prefix="/api/v1/time-budget", tags=["time-budget"])
    app.include_router(actions.router, prefix="/api/v1/actions", tags=["actions"])
    app.include_router(victory.router, prefix="/api/v1/victory", tags=["victory"])

    logger.info("Habit Engine API ready (origins: %s)", ", ".join(origins))
    return app


app = create_app()
