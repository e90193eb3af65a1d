import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from mcqforge import ai_engine
from mcqforge.core.errors import ConfigurationError, ExtractionError, GenerationError
from mcqforge.core.security import verify_backend_key
from mcqforge.schemas.envelope import (
    ErrorResponse,
    ExtractRequest,
    ExtractResponse,
    GenerateMCQRequest,
    GenerationSuccess,
    QuizRequest,
    QuizResponse,
)
from mcqforge.services.content_extractor import ContentExtractor, normalize_url
from mcqforge.services.mcq_client import MCQSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str, detail: str = None) -> JSONResponse:
    body = ErrorResponse(error=message, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. EXTRACTION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/extract", response_model=ExtractResponse)
async def extract_content(request: ExtractRequest):
    """Fetch a page through the proxy chain and return its readable text."""
    try:
        url = normalize_url(request.url)
    except ValueError as ve:
        return _error(400, str(ve))

    try:
        content = await ContentExtractor().extract(url)
    except ExtractionError as e:
        logger.warning(f"[EXTRACT] ✗ {url}: all {e.attempts} strategies failed")
        return _error(422, str(e))

    return ExtractResponse(source_url=url, content=content, characters=len(content))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. GENERATION BACKEND ENVELOPE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post(
    "/generate-mcqs",
    response_model=GenerationSuccess,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    dependencies=[Depends(verify_backend_key)],
)
async def generate_mcqs(request: GenerateMCQRequest):
    """{content, settings} → {mcqs} on success, {error} with a non-2xx status otherwise."""
    if not request.content.strip():
        return _error(400, "Missing content or settings")

    try:
        mcqs = await ai_engine.generate_mcqs(request.content, request.settings)
    except ConfigurationError as e:
        logger.error(f"[MCQ] ✗ {e}")
        return _error(500, str(e))
    except Exception as e:
        logger.error(f"[MCQ] ✗ Generation failed: {e}")
        return _error(500, str(e) or "Unknown error occurred")

    return GenerationSuccess(mcqs=mcqs)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. END-TO-END QUIZ
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post("/quiz", response_model=QuizResponse, response_model_exclude_none=True)
async def create_quiz(request: QuizRequest):
    """
    URL or text in, MCQs out. A soft generation failure still returns 200
    with the fallback set and `warning` populated.
    """
    session = MCQSession()
    warning = None

    try:
        if request.url is not None:
            try:
                url = normalize_url(request.url)
            except ValueError as ve:
                return _error(400, str(ve))
            await session.generate_from_url(url, request.settings)
        else:
            await session.generate_from_text(request.text, request.settings)
    except ConfigurationError as e:
        logger.error(f"[MCQ] ✗ {e}")
        return _error(500, str(e))
    except ExtractionError as e:
        return _error(422, str(e))
    except GenerationError as e:
        warning = str(e)

    return QuizResponse(
        mcqs=session.mcqs,
        source_url=session.source_url,
        source_text=session.source_text,
        warning=warning,
    )
