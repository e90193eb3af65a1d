"""
Error taxonomy shared by the extractor, the AI engine and the HTTP layer.

Shape errors subclass ValueError and transport/config errors subclass
RuntimeError so route handlers can keep mapping the builtin families to
status codes.
"""

from typing import Optional, List, Any


class MCQForgeError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigurationError(MCQForgeError, RuntimeError):
    """A required credential or setting is missing. Raised before any network call."""


class NetworkError(MCQForgeError, RuntimeError):
    """Timeout, abort or transport failure talking to a remote endpoint."""


class ExtractionError(MCQForgeError, RuntimeError):
    """Every content retrieval strategy failed for a URL."""

    def __init__(self, message: str, attempts: int = 0, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ParseError(MCQForgeError, ValueError):
    """The model reply could not be parsed as JSON."""


class FormatError(MCQForgeError, ValueError):
    """The model reply parsed, but not into the expected array of MCQs."""


class GenerationError(MCQForgeError, RuntimeError):
    """
    Soft generation failure. The fallback set has already been installed
    as the current result and is attached here for the caller.
    """

    def __init__(self, message: str, fallback: Optional[List[Any]] = None):
        super().__init__(message)
        self.fallback = list(fallback or [])
