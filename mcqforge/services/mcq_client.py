import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from pydantic import ValidationError

from mcqforge import ai_engine
from mcqforge.core.config import settings, require_credential
from mcqforge.core.errors import ConfigurationError, GenerationError, NetworkError
from mcqforge.schemas.envelope import BackendReply, GenerationFailure, GenerationSuccess
from mcqforge.schemas.mcq import MCQ, GenerationSettings
from mcqforge.services.content_extractor import ContentExtractor
from mcqforge.services.fallback import fallback_mcqs

logger = logging.getLogger(__name__)

FAILURE_PREFIX = "Failed to generate MCQs with AI"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BACKENDS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class GenerationBackend(ABC):
    """Anything that turns {content, settings} into a GenerationSuccess or GenerationFailure."""

    @abstractmethod
    def ensure_configured(self) -> None:
        """Raise ConfigurationError if the backend cannot be called at all."""

    @abstractmethod
    async def request(self, content: str, cfg: GenerationSettings) -> BackendReply:
        ...


class LocalBackend(GenerationBackend):
    """Runs the AI engine in-process."""

    def ensure_configured(self) -> None:
        ai_engine.ensure_provider_configured()

    async def request(self, content: str, cfg: GenerationSettings) -> BackendReply:
        try:
            mcqs = await ai_engine.generate_mcqs(content, cfg)
        except ConfigurationError:
            raise
        except Exception as e:
            return GenerationFailure(error=str(e))
        return GenerationSuccess(mcqs=mcqs)


class RemoteBackend(GenerationBackend):
    """Posts the envelope to a deployed MCQ Forge service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.MCQ_BACKEND_URL
        self.api_key = api_key if api_key is not None else settings.MCQ_BACKEND_API_KEY
        self.client = client
        self.timeout = timeout if timeout is not None else settings.BACKEND_TIMEOUT_SECONDS

    def ensure_configured(self) -> None:
        require_credential(self.base_url, "MCQ_BACKEND_URL")
        require_credential(self.api_key, "MCQ_BACKEND_API_KEY")

    async def request(self, content: str, cfg: GenerationSettings) -> BackendReply:
        self.ensure_configured()
        url = f"{self.base_url.rstrip('/')}/api/v1/generate-mcqs"
        payload = {"content": content, "settings": cfg.model_dump(by_alias=True, mode="json")}
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        logger.info("[MCQ] Sending request to generation backend...")
        try:
            if self.client is not None:
                response = await self.client.post(url, json=payload, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Generation backend timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Generation backend unreachable: {e}") from e

        return self._interpret(response)

    @staticmethod
    def _interpret(response: httpx.Response) -> BackendReply:
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            error = data.get("error") if isinstance(data, dict) else None
            return GenerationFailure(error=error or f"Server error: {response.status_code}")

        if not isinstance(data, dict) or not isinstance(data.get("mcqs"), list):
            return GenerationFailure(error="Invalid response format from server")

        try:
            return GenerationSuccess.model_validate(data)
        except ValidationError as e:
            return GenerationFailure(error=f"Invalid response format from server: {e.error_count()} invalid field(s)")


def default_backend() -> GenerationBackend:
    if settings.GENERATION_BACKEND == "remote":
        return RemoteBackend()
    return LocalBackend()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SESSION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class MCQSession:
    """
    Holds the current result for one user session.

    `mcqs` is replaced wholesale by every generation call. When generation
    fails the fallback set becomes the current result and GenerationError is
    still raised, so callers decide whether to show it.
    """

    def __init__(
        self,
        backend: Optional[GenerationBackend] = None,
        extractor: Optional[ContentExtractor] = None,
    ):
        self.backend = backend or default_backend()
        self.extractor = extractor or ContentExtractor()
        self.mcqs: List[MCQ] = []
        self.source_url = ""
        self.source_text = ""
        self.is_loading = False
        self.last_error: Optional[str] = None

    async def generate_from_url(self, url: str, cfg: GenerationSettings) -> List[MCQ]:
        self.backend.ensure_configured()

        self.is_loading = True
        self.source_url = url
        self.source_text = ""
        try:
            logger.info(f"[MCQ] Starting content extraction from URL: {url}")
            content = await self.extractor.extract(url)
            logger.info("[MCQ] Content extracted, generating MCQs...")
            return await self.generate(content, cfg)
        finally:
            self.is_loading = False

    async def generate_from_text(self, text: str, cfg: GenerationSettings) -> List[MCQ]:
        self.backend.ensure_configured()

        self.is_loading = True
        self.source_text = text
        self.source_url = ""
        try:
            return await self.generate(text, cfg)
        finally:
            self.is_loading = False

    async def generate(self, content: str, cfg: GenerationSettings) -> List[MCQ]:
        self.backend.ensure_configured()
        try:
            reply = await self.backend.request(content, cfg)
            if isinstance(reply, GenerationFailure):
                raise RuntimeError(reply.error)
        except ConfigurationError:
            raise
        except Exception as e:
            self.mcqs = fallback_mcqs(cfg)
            self.last_error = f"{FAILURE_PREFIX}: {e}"
            logger.error(f"[MCQ] ✗ {self.last_error}")
            raise GenerationError(self.last_error, fallback=self.mcqs) from e

        self.mcqs = reply.mcqs[: cfg.num_questions]
        self.last_error = None
        logger.info(f"[MCQ] ✓ Successfully generated {len(self.mcqs)} MCQs")
        return self.mcqs
