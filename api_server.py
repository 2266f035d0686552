from __future__ import annotations  # FastAPI server exposing conversational interviews

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.deps import Services
from api.routes import router
from config import EVALUATOR_KEY, GENERATOR_KEY, load_config, resolve_route
from config.settings import Settings, settings as default_settings
from interview_chat import (
    ChatSessionOrchestrator,
    CollaboratorRunner,
    Evaluator,
    FixedScoreEvaluator,
    InterviewService,
    InterviewServiceError,
    InvalidInputError,
    InvalidStateError,
    MessageCountPolicy,
    NotFoundError,
    ResponseGenerator,
    ScriptedResponseGenerator,
    StorageError,
    UpstreamError,
)
from interview_chat.llm import LlmEvaluator, LlmResponseGenerator
from storage import build_store


logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parent

_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (InvalidInputError, 400),
    (InvalidStateError, 400),
    (UpstreamError, 500),
    (StorageError, 500),
)


def build_collaborators(cfg: Settings) -> Tuple[ResponseGenerator, Evaluator]:
    """Pick the AI collaborators configured by ``AI_PROVIDER``."""

    if cfg.AI_PROVIDER == "mock":
        logger.info("Using mock AI collaborators")
        return ScriptedResponseGenerator(), FixedScoreEvaluator()
    config_path = Path(cfg.LLM_CONFIG_PATH)
    if not config_path.is_absolute():
        config_path = ROOT / config_path
    app_config = load_config(config_path)
    generator_route = resolve_route(app_config, GENERATOR_KEY)
    evaluator_route = resolve_route(app_config, EVALUATOR_KEY)
    logger.info(
        "Using LLM collaborators generator=%s evaluator=%s",
        generator_route.name,
        evaluator_route.name,
    )
    return LlmResponseGenerator(generator_route), LlmEvaluator(evaluator_route)


def build_services(cfg: Settings) -> Services:
    store = build_store(cfg)
    generator, evaluator = build_collaborators(cfg)
    runner = CollaboratorRunner(timeout_s=cfg.AI_REQUEST_TIMEOUT_S)
    orchestrator = ChatSessionOrchestrator(
        store,
        generator,
        evaluator,
        MessageCountPolicy(cfg.MAX_USER_MESSAGES),
        runner=runner,
        default_language=cfg.DEFAULT_LANGUAGE,
        default_job_title=cfg.DEFAULT_JOB_TITLE,
    )
    interviews = InterviewService(
        store,
        evaluator,
        runner=runner,
        default_language=cfg.DEFAULT_LANGUAGE,
        default_job_title=cfg.DEFAULT_JOB_TITLE,
    )
    return Services(store=store, interviews=interviews, orchestrator=orchestrator, ai_provider=cfg.AI_PROVIDER)


def _status_for(exc: InterviewServiceError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def _error_body(error: str, details: Optional[str] = None) -> dict:
    return {"error": error, "details": details}


def create_app(services: Optional[Services] = None, cfg: Optional[Settings] = None) -> FastAPI:
    cfg = cfg or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.services.close()

    app = FastAPI(title="Interview Chat API", lifespan=lifespan)
    app.state.services = services or build_services(cfg)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    @app.exception_handler(InterviewServiceError)
    async def handle_service_error(request: Request, exc: InterviewServiceError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
        return JSONResponse(status_code=status, content=_error_body(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body("Invalid request body", str(exc.errors())))

    app.include_router(router)
    return app


app = create_app()
