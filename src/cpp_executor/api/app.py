from __future__ import annotations
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from ..logging import setup_logging
from ..services.orchestrator import Orchestrator
from ..settings import Settings, get_settings

log = structlog.get_logger(__name__)


# --------- Schemas ---------
class ExecuteRequest(BaseModel):
    code: str
    input: Optional[str] = ""


class ExecuteResponse(BaseModel):
    output: str
    success: bool


def create_app(settings: Optional[Settings] = None, orchestrator: Optional[Orchestrator] = None) -> FastAPI:
    s = settings or get_settings()
    setup_logging(s.log_level, s.log_json)
    orc = orchestrator or Orchestrator(s)

    app = FastAPI(title="C++ Executor")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=s.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # malformed body (bad JSON, missing `code`, wrong types) -> 400, not FastAPI's 422
    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    # --------- Endpoints ---------

    @app.get("/health", response_class=PlainTextResponse)
    def health():
        return "OK"

    # sync handler: each job runs on its own threadpool worker
    @app.post("/execute", response_model=ExecuteResponse)
    def execute(req: ExecuteRequest):
        stdin_text = req.input or ""
        if len(req.code) > s.max_code_length:
            raise HTTPException(status_code=400, detail=f"Code too long (max {s.max_code_length} characters)")
        if len(stdin_text) > s.max_input_length:
            raise HTTPException(status_code=400, detail=f"Input too long (max {s.max_input_length} characters)")

        job = orc.execute(req.code, stdin_text)
        return ExecuteResponse(output=job.output, success=job.success)

    app.state.settings = s
    app.state.orchestrator = orc
    return app


app = create_app()
