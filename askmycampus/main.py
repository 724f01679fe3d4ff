from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .errors import INTERNAL_ERROR_MESSAGE, MISSING_FIELDS_MESSAGE, RelayError
from .llm import build_generator
from .logging_config import setup_logging
from .orchestrator import ChatOrchestrator
from .schemas import ChatRequest, ChatResponse, ErrorResponse, HistoryResponse
from .store import HistoryRepository, build_store

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_orchestrator() -> ChatOrchestrator:
    s = get_settings()
    logger.info("Building chat orchestrator llm=%s store=%s", s.llm_backend, s.store_backend)
    return ChatOrchestrator(
        HistoryRepository(build_store(s)),
        build_generator(s),
        prompt_window=s.prompt_history_window,
    )


app = FastAPI(title="AskMyCampus Chat Relay", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RelayError)
def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # unparseable bodies and non-string fields count as missing fields
    logger.info("Request validation failed on %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_MESSAGE})


@app.exception_handler(Exception)
def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})


@app.get("/api/")
def identity():
    return {"name": settings.app_name}


@app.get("/health")
def health(orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    store = orchestrator.repository.store
    ping = getattr(store, "ping", None)
    return {
        "ok": True,
        "backend": orchestrator.generator.name,
        "store": type(store).__name__,
        "store_reachable": ping() if ping else None,
        "prompt_window": orchestrator.prompt_window,
    }


@app.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def chat(payload: ChatRequest, orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    reply = orchestrator.handle_chat(payload.session_id, payload.message)
    return ChatResponse(reply=reply)


@app.get(
    "/api/history",
    response_model=HistoryResponse,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def session_history(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    history = orchestrator.get_history(session_id)
    return HistoryResponse(session_id=session_id, history=history)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("askmycampus.main:app", host="0.0.0.0", port=8000, reload=True)
