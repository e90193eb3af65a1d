"""
MCQ Forge — HTTP envelopes
==========================
Request/response bodies for the API, plus the tagged union the generation
client receives from whichever backend it talks to:

  GenerationSuccess  {"mcqs": [...]}
  GenerationFailure  {"error": "..."}   (non-2xx over HTTP)
"""

from __future__ import annotations

from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator

from mcqforge.schemas.mcq import MCQ, GenerationSettings


# ── Backend envelope ─────────────────────────────────────────────────────────

class GenerateMCQRequest(BaseModel):
    """Body of POST /api/v1/generate-mcqs."""
    content: str = Field(..., description="Source text the questions are drawn from")
    settings: GenerationSettings


class GenerationSuccess(BaseModel):
    mcqs: List[MCQ]


class GenerationFailure(BaseModel):
    error: str


BackendReply = Union[GenerationSuccess, GenerationFailure]


# ── Extraction ───────────────────────────────────────────────────────────────

class ExtractRequest(BaseModel):
    url: str = Field(..., min_length=1)


class ExtractResponse(BaseModel):
    source_url: str
    content: str
    characters: int


# ── End-to-end quiz ──────────────────────────────────────────────────────────

class QuizRequest(BaseModel):
    """Either a URL to extract from or raw text, never both."""
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = None
    text: Optional[str] = None
    settings: GenerationSettings = Field(default_factory=GenerationSettings)

    @model_validator(mode="after")
    def exactly_one_source(self) -> "QuizRequest":
        # Blank sources count as absent.
        if not (self.url and self.url.strip()):
            self.url = None
        if not (self.text and self.text.strip()):
            self.text = None
        if (self.url is None) == (self.text is None):
            raise ValueError("Provide exactly one of 'url' or 'text'")
        return self


class QuizResponse(BaseModel):
    mcqs: List[MCQ]
    source_url: str = ""
    source_text: str = ""
    warning: Optional[str] = None


# ── Errors ───────────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Standard error envelope. Every failing route returns this shape."""
    error: str
    detail: Optional[str] = None
