from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from app.config import settings
from app.db import init_schema
from app.gate.errors import AuthorizationError, PersistenceError, SchedulingError
from app.gate.router import router as gate_router
from app.logger import setup_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger(level=settings.log_level, log_file=settings.log_file)
    await init_schema()
    yield


app = FastAPI(title="GoalGate", version="0.1.0", lifespan=lifespan)
app.include_router(gate_router)


@app.exception_handler(AuthorizationError)
async def authorization_error(request: Request, exc: AuthorizationError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.warning(f"{request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(SchedulingError)
async def scheduling_error(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.warning(f"{request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "gate": {
            "intent": "/gate/intent",
            "effective_date": "/gate/effective-date",
            "goals": "/gate/goals",
            "goals_pending": "/gate/goals/pending",
            "selection": "/gate/selection",
            "shields": "/gate/shields",
            "unlock_schedule": "/gate/unlock-schedule",
            "triggers": "/gate/triggers/{identifier}",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
