"""
PodForge HTTP service.

Every route is one stateless request handler: job submission, the
orchestrator trigger, the three worker triggers and the geo gate.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config.settings import Settings, get_settings
from ..config.startup_validation import run_startup_validation
from ..errors import (
    InvalidTransitionError,
    JobFailedError,
    PipelineError,
    RecordNotFoundError,
)
from ..pipeline import Pipeline, build_pipeline
from ..utils.logger import bind_trace_id, current_trace_id, get_logger
from .routes import router

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"


def _error(status_code: int, message: str, trace_id: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "trace_id": trace_id or current_trace_id()},
    )


def create_app(settings: Optional[Settings] = None, pipeline: Optional[Pipeline] = None) -> FastAPI:
    settings = settings or (pipeline.settings if pipeline else get_settings())
    app = FastAPI(title="PodForge", version="0.1.0", debug=settings.debug)

    validation = run_startup_validation(settings)
    validation.log_summary()
    app.state.validation = validation
    app.state.pipeline = pipeline or build_pipeline(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        trace_id = bind_trace_id(request.headers.get(CORRELATION_HEADER))
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = trace_id
        return response

    @app.exception_handler(JobFailedError)
    async def job_failed(request: Request, exc: JobFailedError):
        return _error(500, str(exc), exc.trace_id)

    @app.exception_handler(RecordNotFoundError)
    async def not_found(request: Request, exc: RecordNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(InvalidTransitionError)
    async def conflict(request: Request, exc: InvalidTransitionError):
        return _error(409, str(exc))

    @app.exception_handler(ValueError)
    async def bad_request(request: Request, exc: ValueError):
        return _error(400, str(exc))

    @app.exception_handler(PipelineError)
    async def pipeline_error(request: Request, exc: PipelineError):
        logger.error(f"{request.url.path} failed: {exc}")
        return _error(500, str(exc))

    app.include_router(router)
    return app
