"""
MCQ Forge — AI Engine
=====================
Server side of the generation boundary:
  1. Prompt construction from source text + GenerationSettings
  2. A single call to the configured provider (Gemini or Groq)
  3. Reply recovery: code fences, prose around the array, shape repair

Features:
  - One outbound request per generation (no retry, no failover)
  - Fail-fast configuration check before any network call
  - Strict coercion of every record into the MCQ schema
"""

import json
import re
import logging
import asyncio
from typing import Optional, Dict, Any, List

import google.generativeai as genai
from groq import AsyncGroq
from pydantic import ValidationError

from mcqforge.core.config import settings, require_credential
from mcqforge.core.deadline import attempt_with_deadline
from mcqforge.core.errors import ConfigurationError, FormatError, NetworkError, ParseError
from mcqforge.schemas.mcq import MCQ, GenerationSettings

logger = logging.getLogger(__name__)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CLIENT INITIALIZATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

logger.info(f"[AI-ENGINE] Provider mode: {settings.AI_PROVIDER}")

_groq_client: Optional[AsyncGroq] = None


def _groq() -> AsyncGroq:
    global _groq_client
    api_key = require_credential(settings.GROQ_API_KEY, "GROQ_API_KEY")
    if _groq_client is None:
        _groq_client = AsyncGroq(api_key=api_key)
        logger.info("[AI-ENGINE] ✓ Groq client ready")
    return _groq_client


def ensure_provider_configured() -> str:
    """Return the active provider's credential, or raise ConfigurationError."""
    if settings.AI_PROVIDER == "groq":
        return require_credential(settings.GROQ_API_KEY, "GROQ_API_KEY")
    return require_credential(settings.GOOGLE_API_KEY, "GEMINI_API_KEY")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PROMPT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_MULTIPLE_CORRECT_RULES = (
    '- Some questions can have multiple correct answers (mark as "type": "multiple" and provide correctAnswer as an array)\n'
    '- Mix single correct answer questions (mark as "type": "single" with correctAnswer as a number) '
    "and multiple correct answer questions\n"
    "- For multiple correct questions, ensure at least 2 options are correct\n"
    '- Clearly indicate in the question when multiple answers are expected '
    '(e.g., "Select all that apply", "Which of the following are correct?")\n'
)

_SINGLE_CORRECT_RULES = (
    '- Each question should have exactly one correct answer (mark as "type": "single" with correctAnswer as a number)\n'
)


def _example_record(question: str, correct: str, qtype: str, cfg: GenerationSettings) -> str:
    lines = [
        "{",
        f'  "question": "{question}",',
        '  "options": ["Option A", "Option B", "Option C", "Option D"],',
        f'  "correctAnswer": {correct},',
        f'  "type": "{qtype}",',
        f'  "difficulty": "{cfg.difficulty.value}"' + ("," if cfg.include_hints or cfg.include_explanations else ""),
    ]
    if cfg.include_hints:
        lines.append('  "hint": "Helpful hint here"' + ("," if cfg.include_explanations else ""))
    if cfg.include_explanations:
        lines.append('  "explanation": "Detailed explanation here"')
    lines.append("}")
    return "\n".join(lines)


def build_mcq_prompt(content: str, cfg: GenerationSettings) -> str:
    """Single instruction block; the content is quoted inline, never chunked."""
    rules = _MULTIPLE_CORRECT_RULES if cfg.allow_multiple_correct else _SINGLE_CORRECT_RULES
    hints = "Include helpful hints for each question" if cfg.include_hints else "Do not include hints"
    explanations = (
        "Include detailed explanations for correct answers"
        if cfg.include_explanations
        else "Do not include explanations"
    )

    examples = (
        "For single correct answer questions:\n"
        + _example_record("Question text here", "0", "single", cfg)
    )
    if cfg.allow_multiple_correct:
        examples += (
            "\n\nFor multiple correct answer questions:\n"
            + _example_record("Select all that apply: Question text here", "[0, 2]", "multiple", cfg)
        )

    return (
        "You are an expert educator and assessment creator. "
        f"Generate {cfg.num_questions} multiple choice questions based on the following content.\n\n"
        f'Content: "{content}"\n\n'
        "Requirements:\n"
        f"- Difficulty level: {cfg.difficulty.value}\n"
        f"- Each question should have exactly {cfg.num_answers} options\n"
        "- Questions should test understanding, not just memorization\n"
        f"{rules}"
        f"- {hints}\n"
        f"- {explanations}\n"
        "- Ensure questions are diverse and cover different aspects of the content\n"
        "- Make questions clear and unambiguous\n"
        "- Vary question types (factual, conceptual, analytical, application-based)\n\n"
        "Format your response as a JSON array with this exact structure:\n\n"
        f"{examples}\n\n"
        "Important: Return ONLY the JSON array, no additional text or formatting."
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# JSON RECOVERY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_FENCE = re.compile(r"```json\n?|\n?```")
_ARRAY = re.compile(r"\[[\s\S]*\]")


def parse_mcq_reply(raw_text: str) -> List[Any]:
    """
    Recover the JSON array from a model reply:
    1. Strip ```json / ``` fence markers
    2. json.loads the whole reply
    3. Otherwise json.loads the first [ ... ] span
    Raises ParseError if nothing parses, FormatError if the value is not a list.
    """
    cleaned = _FENCE.sub("", raw_text or "").strip()

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _ARRAY.search(cleaned)
        if not match:
            logger.error(f"[AI-ENGINE] JSON parse failed. Raw (first 500 chars): {cleaned[:500]}")
            raise ParseError("Could not parse JSON response from AI")
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.error(f"[AI-ENGINE] Bracketed JSON parse failed: {e}")
            raise ParseError(f"Could not parse JSON response from AI: {e}")

    if not isinstance(parsed, list):
        raise FormatError("Invalid response format from AI - expected array")
    return parsed


def normalize_mcq(item: Dict[str, Any]) -> Dict[str, Any]:
    """
    Repair the common type/correctAnswer mismatches without rejecting the record:
      - missing type → "multiple" if correctAnswer is a list, else "single"
      - "multiple" with a scalar answer → wrapped in a list
      - "single" with a list answer → its first element
    """
    mcq = dict(item)
    answer = mcq.get("correctAnswer")

    if not mcq.get("type"):
        mcq["type"] = "multiple" if isinstance(answer, list) else "single"

    if mcq["type"] == "multiple" and not isinstance(answer, list):
        mcq["correctAnswer"] = [answer]
    elif mcq["type"] == "single" and isinstance(answer, list):
        mcq["correctAnswer"] = answer[0] if answer else None

    return mcq


def coerce_mcqs(items: List[Any], cfg: GenerationSettings) -> List[MCQ]:
    """
    Validate repaired records into MCQ. Difficulty echoes the request and
    unrequested hint/explanation fields are cleared. Invalid records are
    dropped. An empty reply stays empty; a non-empty reply with nothing
    usable is a FormatError.
    """
    if not items:
        return []

    mcqs: List[MCQ] = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            logger.warning(f"[AI-ENGINE] Dropping record {position}: not an object")
            continue

        record = normalize_mcq(item)
        record["difficulty"] = cfg.difficulty.value
        if not cfg.include_hints:
            record.pop("hint", None)
        if not cfg.include_explanations:
            record.pop("explanation", None)

        try:
            mcqs.append(MCQ.model_validate(record))
        except ValidationError as e:
            logger.warning(f"[AI-ENGINE] Dropping record {position}: {e.error_count()} validation error(s)")

    if not mcqs:
        raise FormatError("Invalid response format from AI - no usable questions")
    return mcqs


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PROVIDER CALLS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def _call_gemini(prompt: str, temperature: float) -> str:
    """Call Gemini with the request temperature and fixed nucleus sampling."""
    api_key = require_credential(settings.GOOGLE_API_KEY, "GEMINI_API_KEY")
    genai.configure(api_key=api_key, transport="rest")

    logger.info(f"[AI-ENGINE] Calling Gemini ({settings.GEMINI_MODEL})...")
    model = genai.GenerativeModel(
        model_name=settings.GEMINI_MODEL,
        generation_config={
            "temperature": temperature,
            "top_k": settings.TOP_K,
            "top_p": settings.TOP_P,
            "max_output_tokens": settings.MAX_OUTPUT_TOKENS,
        },
    )
    response = await asyncio.to_thread(model.generate_content, prompt)
    logger.info("[AI-ENGINE] ✓ Gemini call succeeded")
    return response.text


async def _call_groq(prompt: str, temperature: float) -> str:
    """Call Groq (Llama 3). The chat API has no top_k, so only top_p is sent."""
    client = _groq()

    logger.info(f"[AI-ENGINE] Calling Groq ({settings.GROQ_MODEL})...")
    completion = await client.chat.completions.create(
        model=settings.GROQ_MODEL,
        messages=[{"role": "user", "content": prompt}],
        temperature=temperature,
        top_p=settings.TOP_P,
        max_tokens=settings.MAX_OUTPUT_TOKENS,
    )
    result = completion.choices[0].message.content or ""
    logger.info("[AI-ENGINE] ✓ Groq call succeeded")
    return result


async def call_provider(prompt: str, temperature: float) -> str:
    """Exactly one request to the configured provider, bounded by AI_TIMEOUT_SECONDS."""
    name, caller = ("Groq", _call_groq) if settings.AI_PROVIDER == "groq" else ("Gemini", _call_gemini)
    try:
        return await attempt_with_deadline(
            caller(prompt, temperature), settings.AI_TIMEOUT_SECONDS, label=f"{name} request"
        )
    except (ConfigurationError, NetworkError):
        raise
    except ValueError as e:
        # Gemini raises ValueError from .text on a blocked or empty candidate.
        logger.warning(f"[AI-ENGINE] {name} returned no usable text: {str(e)[:200]}")
        raise FormatError(f"Invalid response from AI: {e}") from e
    except Exception as e:
        logger.warning(f"[AI-ENGINE] {name} failed: {str(e)[:200]}")
        raise NetworkError(f"{name} request failed: {e}") from e


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# GENERATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def generate_mcqs(content: str, cfg: GenerationSettings) -> List[MCQ]:
    """
    Generate MCQs for `content`.
    Raises ConfigurationError before any network call when the provider
    credential is missing; NetworkError, ParseError or FormatError otherwise.
    """
    ensure_provider_configured()
    logger.info(
        f"[MCQ] Starting: {cfg.num_questions} questions, difficulty={cfg.difficulty.value}, "
        f"answers={cfg.num_answers}, multiple={cfg.allow_multiple_correct}"
    )

    prompt = build_mcq_prompt(content, cfg)
    raw = await call_provider(prompt, cfg.temperature)

    items = parse_mcq_reply(raw)[: cfg.num_questions]
    mcqs = coerce_mcqs(items, cfg)
    logger.info(f"[MCQ] ✓ Successfully generated {len(mcqs)} MCQs")
    return mcqs
