import re
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence
from urllib.parse import quote, urlsplit

import httpx

from mcqforge.core.config import settings
from mcqforge.core.deadline import attempt_with_deadline
from mcqforge.core.errors import ExtractionError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; MCQForge/1.0)"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# RETRIEVAL STRATEGIES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ContentStrategy(ABC):
    """One proxy endpoint plus the shape of its reply."""

    name: str = "strategy"

    @abstractmethod
    def build_url(self, url: str) -> str:
        ...

    @abstractmethod
    def parse(self, response: httpx.Response) -> Any:
        """Return the page markup. Anything but a non-empty str is a failed attempt."""

    async def attempt(self, client: httpx.AsyncClient, url: str) -> Any:
        response = await client.get(self.build_url(url))
        response.raise_for_status()
        return self.parse(response)


class AllOriginsStrategy(ContentStrategy):
    name = "allorigins"

    def build_url(self, url: str) -> str:
        return f"https://api.allorigins.win/get?url={quote(url, safe='')}"

    def parse(self, response: httpx.Response) -> Any:
        return response.json().get("contents")


class CorsProxyStrategy(ContentStrategy):
    name = "corsproxy"

    def build_url(self, url: str) -> str:
        return f"https://corsproxy.io/?{quote(url, safe='')}"

    def parse(self, response: httpx.Response) -> Any:
        return response.text


class CodeTabsStrategy(ContentStrategy):
    name = "codetabs"

    def build_url(self, url: str) -> str:
        return f"https://api.codetabs.com/v1/proxy?quest={quote(url, safe='')}"

    def parse(self, response: httpx.Response) -> Any:
        return response.text


class ScrapeItStrategy(ContentStrategy):
    name = "scrape-it"

    def build_url(self, url: str) -> str:
        return f"https://scrape-it.cloud/api/scrape?url={quote(url, safe='')}"

    def parse(self, response: httpx.Response) -> Any:
        data = response.json()
        return data.get("content") or data.get("text") or data.get("body")


def default_strategies() -> List[ContentStrategy]:
    """Strategies in priority order."""
    return [AllOriginsStrategy(), CorsProxyStrategy(), CodeTabsStrategy(), ScrapeItStrategy()]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HTML CLEANING
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _block_pattern(tag: str) -> re.Pattern:
    return re.compile(rf"<{tag}\b[^<]*(?:(?!</{tag}>)<[^<]*)*</{tag}>", re.IGNORECASE)


_NOISE_BLOCKS = [_block_pattern(tag) for tag in ("script", "style", "nav", "header", "footer", "aside")]

_STRUCTURE_PATTERNS = [
    re.compile(r"<main\b[^>]*>(.*?)</main>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<article\b[^>]*>(.*?)</article>", re.IGNORECASE | re.DOTALL),
    re.compile(
        r'<div[^>]*(?:class|id)="[^"]*(?:content|article|post|main)[^"]*"[^>]*>(.*?)</div>',
        re.IGNORECASE | re.DOTALL,
    ),
]

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")

_ENTITIES = [
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
]

NOISE_PHRASES = (
    "cookie",
    "privacy policy",
    "terms of service",
    "subscribe",
    "newsletter",
    "advertisement",
)

MIN_LINE_CHARS = 10


def _main_region(markup: str) -> str:
    for pattern in _STRUCTURE_PATTERNS:
        match = pattern.search(markup)
        if match:
            # An empty first match falls back to the whole document.
            return match.group(1) or markup
    return markup


def _is_content_line(line: str) -> bool:
    trimmed = line.strip().lower()
    if len(trimmed) <= MIN_LINE_CHARS:
        return False
    return not any(phrase in trimmed for phrase in NOISE_PHRASES)


def clean_html(markup: str) -> str:
    """
    Reduce raw page markup to readable text:
    1. Drop script/style/nav/header/footer/aside blocks
    2. Keep <main>, else <article>, else a content-ish <div>, else everything
    3. Tags → spaces, decode common entities, collapse whitespace
    4. Drop short lines and cookie/newsletter boilerplate
    """
    cleaned = markup
    for pattern in _NOISE_BLOCKS:
        cleaned = pattern.sub("", cleaned)

    text = _TAG.sub(" ", _main_region(cleaned))
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    text = _WHITESPACE.sub(" ", text).strip()

    lines = [line for line in text.split("\n") if _is_content_line(line)]
    return "\n".join(lines).strip()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# EXTRACTOR
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _failure_message(attempts: int, last_error: Optional[BaseException]) -> str:
    return (
        f"Unable to extract content from URL after trying {attempts} different methods.\n\n"
        "This could be due to:\n"
        "• The website blocking automated requests\n"
        "• CORS restrictions\n"
        "• The website requiring JavaScript to load content\n"
        "• Network connectivity issues\n"
        "• The URL requiring authentication\n\n"
        "Please try:\n"
        "• Copying and pasting the content directly using the text input option\n"
        "• Checking if the URL is publicly accessible\n"
        "• Trying a different article URL\n"
        "• Waiting a few minutes and trying again\n\n"
        f"Last error: {last_error or 'Unknown error'}"
    )


class ContentExtractor:
    """Fetches a page through proxy strategies, in order, until one yields usable text."""

    def __init__(
        self,
        strategies: Optional[Sequence[ContentStrategy]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        min_chars: Optional[int] = None,
        max_chars: Optional[int] = None,
    ):
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.client = client
        self.timeout = timeout if timeout is not None else settings.EXTRACTION_TIMEOUT_SECONDS
        self.min_chars = min_chars if min_chars is not None else settings.MIN_CONTENT_CHARS
        self.max_chars = max_chars if max_chars is not None else settings.MAX_CONTENT_CHARS

    async def extract(self, url: str) -> str:
        if self.client is not None:
            return await self._run(self.client, url)
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            return await self._run(client, url)

    async def _run(self, client: httpx.AsyncClient, url: str) -> str:
        last_error: Optional[BaseException] = None

        for i, strategy in enumerate(self.strategies, start=1):
            try:
                logger.info(f"[EXTRACT] Trying strategy {i} ({strategy.name})...")
                raw = await attempt_with_deadline(
                    strategy.attempt(client, url), self.timeout, label="Strategy"
                )

                if not raw or not isinstance(raw, str):
                    raise ValueError("No content received or invalid content type")

                content = clean_html(raw)
                if len(content) < self.min_chars:
                    raise ValueError(
                        f"Extracted content is too short (less than {self.min_chars} characters)"
                    )

                logger.info(f"[EXTRACT] ✓ Extracted {len(content)} characters using strategy {i}")
                return content[: self.max_chars]

            except Exception as e:
                last_error = e
                logger.warning(f"[EXTRACT] Strategy {i} ({strategy.name}) failed: {str(e)[:200]}")

        raise ExtractionError(
            _failure_message(len(self.strategies), last_error),
            attempts=len(self.strategies),
            last_error=last_error,
        )


async def extract_content_from_url(url: str) -> str:
    """Extract readable text from `url` using the default strategy chain."""
    return await ContentExtractor().extract(url)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# URL INPUT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def normalize_url(raw: str) -> str:
    """
    Caller-side check for user supplied URLs. Adds https:// when no scheme
    is given. Raises ValueError for anything that is not an http(s) URL
    with a dotted host.
    """
    candidate = (raw or "").strip()
    if not candidate:
        raise ValueError("Please enter a valid URL")

    if not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", candidate):
        candidate = f"https://{candidate}"

    parts = urlsplit(candidate)
    host = parts.hostname or ""
    if parts.scheme.lower() not in ("http", "https") or "." not in host or " " in candidate:
        raise ValueError("Please enter a valid URL")
    return candidate
