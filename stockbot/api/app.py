from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from stockbot.api_stub.runner import TurnRunner
from stockbot.app.errors import AgentUnavailableError, AppError, SessionNotFoundError

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


class AskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Left untyped so a non-string question is reported as INVALID_QUESTION.
    question: Any = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class MessageResponse(BaseModel):
    role: str
    content: str
    metadata: Optional[Dict[str, Any]] = None
    ts: str


class SessionDetailResponse(BaseModel):
    sessionId: str
    createdAt: str
    lastActiveAt: str
    expiresAt: str
    activeSymbol: Optional[str] = None
    referencedSymbols: List[str]
    lastOp: Optional[str] = None
    messages: List[MessageResponse]


def _error(status: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"code": code, "message": message})


def create_app(runner: TurnRunner) -> FastAPI:
    app = FastAPI(title="Stock Assistant", version="1.0.0")
    manager = runner.manager

    @app.exception_handler(AppError)
    async def _app_error(_request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500 and not isinstance(exc, AgentUnavailableError):
            if exc.code != "INTERNAL_ERROR":
                logger.error("request failed: %s", exc.message, exc_info=exc, extra={"code": exc.code})
            return _error(500, "INTERNAL_ERROR", "Something went wrong")
        return _error(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _bad_body(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "INVALID_QUESTION", "Invalid request body")

    @app.exception_handler(Exception)
    async def _unexpected(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error: %s", exc)
        return _error(500, "INTERNAL_ERROR", "Something went wrong")

    @app.post("/api/ask")
    def ask(req: AskRequest) -> Dict[str, Any]:
        return runner.run(req.question, req.session_id).to_wire()

    @app.get("/api/sessions/{session_id}", response_model=SessionDetailResponse)
    def get_session(session_id: str) -> SessionDetailResponse:
        s = manager.load_session(session_id)
        if s is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return SessionDetailResponse(
            sessionId=s.id,
            createdAt=s.created_at.isoformat(),
            lastActiveAt=s.last_active_at.isoformat(),
            expiresAt=s.expires_at.isoformat(),
            activeSymbol=s.active_symbol,
            referencedSymbols=s.referenced_symbols,
            lastOp=s.last_op,
            messages=[
                MessageResponse(role=m.role, content=m.content, metadata=m.metadata, ts=m.ts.isoformat())
                for m in manager.recent_messages(session_id, HISTORY_LIMIT)
            ],
        )

    @app.delete("/api/sessions/{session_id}")
    def delete_session(session_id: str) -> Dict[str, str]:
        if not manager.delete_session(session_id):
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return {"message": f"Session {session_id} deleted"}

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    return app
