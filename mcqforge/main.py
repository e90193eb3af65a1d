"""
MCQ Forge — Article-to-Quiz Engine
==================================
FastAPI entry point.
  • Global exception handler: never crashes, always returns the {error} envelope
  • /api/v1/extract      : URL → readable text through proxy strategies
  • /api/v1/generate-mcqs: {content, settings} → {mcqs} | {error}
  • /api/v1/quiz         : URL or text → MCQs, with fallback on soft failure
"""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mcqforge.core.config import settings
from mcqforge.schemas.envelope import ErrorResponse
from mcqforge.api.v1.endpoints.mcq import router as mcq_router

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
)
logger = logging.getLogger(__name__)

# ── App ──────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="MCQ Forge — Article-to-Quiz Engine",
    description=(
        "Turns a web article URL or pasted text into multiple-choice questions.\n"
        "Content is fetched through CORS proxies, cleaned, and sent to a generative model."
    ),
    version="1.0.0",
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get the same envelope as every other failure."""
    first = exc.errors()[0] if exc.errors() else {}
    body = ErrorResponse(
        error="Missing content or settings",
        detail=first.get("msg"),
    )
    return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    body = ErrorResponse(error=str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all: every unhandled exception returns a clean JSON envelope."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    body = ErrorResponse(
        error="An internal server error occurred.",
        detail=str(exc),
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# ── Health Check ─────────────────────────────────────────────────────────────
@app.get("/", tags=["System"])
async def health_check():
    return {
        "status": "operational",
        "service": "MCQ Forge",
        "version": app.version,
        "provider": settings.AI_PROVIDER,
        "backend": settings.GENERATION_BACKEND,
    }


app.include_router(mcq_router, prefix="/api/v1", tags=["MCQ"])
