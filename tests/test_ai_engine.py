"""
Unit tests for prompt construction and model reply normalization
"""
import asyncio
import json
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from mcqforge import ai_engine
from mcqforge.ai_engine import build_mcq_prompt, coerce_mcqs, normalize_mcq, parse_mcq_reply
from mcqforge.core.config import settings
from mcqforge.core.errors import ConfigurationError, FormatError, NetworkError, ParseError
from mcqforge.schemas.mcq import MCQ, GenerationSettings, QuestionType

RECORD = {"question": "Q", "options": ["A", "B"], "correctAnswer": 0}


def _settings(**overrides) -> GenerationSettings:
    return GenerationSettings(**overrides)


def _record(question="Which gas do plants absorb?", correct=1, qtype=None, **extra):
    record = {
        "question": question,
        "options": ["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"],
        "correctAnswer": correct,
        **extra,
    }
    if qtype is not None:
        record["type"] = qtype
    return record


@pytest.fixture
def gemini_key(monkeypatch):
    monkeypatch.setattr(settings, "AI_PROVIDER", "gemini")
    monkeypatch.setattr(settings, "GOOGLE_API_KEY", "test-key")


class TestParseReply:
    def test_plain_array(self):
        assert parse_mcq_reply(json.dumps([RECORD])) == [RECORD]

    def test_code_fence_matches_unwrapped(self):
        fenced = '```json\n[{"question":"Q","options":["A","B"],"correctAnswer":0}]\n```'
        unwrapped = '[{"question":"Q","options":["A","B"],"correctAnswer":0}]'

        assert parse_mcq_reply(fenced) == parse_mcq_reply(unwrapped)

    def test_bare_fence(self):
        assert parse_mcq_reply("```\n[1, 2]\n```") == [1, 2]

    def test_array_inside_prose(self):
        reply = 'Here you go: [{"question":"Q","options":["A","B"],"correctAnswer":0}] Thanks!'
        assert parse_mcq_reply(reply) == [RECORD]

    def test_object_is_format_error(self):
        with pytest.raises(FormatError):
            parse_mcq_reply('{"question": "What is photosynthesis?"}')

    @pytest.mark.parametrize("reply", ["", "no json here", "Here: [1, 2", "Sure! [not json] done"])
    def test_unparseable_is_parse_error(self, reply):
        with pytest.raises(ParseError):
            parse_mcq_reply(reply)


class TestNormalizeMcq:
    def test_missing_type_with_list_is_multiple(self):
        assert normalize_mcq(_record(correct=[0, 2]))["type"] == "multiple"

    def test_missing_type_with_scalar_is_single(self):
        assert normalize_mcq(_record(correct=2))["type"] == "single"

    def test_multiple_with_scalar_is_wrapped(self):
        assert normalize_mcq(_record(correct=3, qtype="multiple"))["correctAnswer"] == [3]

    def test_single_with_list_collapses_to_first(self):
        assert normalize_mcq(_record(correct=[2, 0], qtype="single"))["correctAnswer"] == 2

    def test_consistent_record_untouched(self):
        record = _record(correct=[0, 1], qtype="multiple")
        assert normalize_mcq(record) == record

    def test_input_not_mutated(self):
        record = _record(correct=[1, 2], qtype="single")
        normalize_mcq(record)
        assert record["correctAnswer"] == [1, 2]

    @pytest.mark.parametrize(
        "record",
        [
            _record(correct=[0, 2]),
            _record(correct=1),
            _record(correct=3, qtype="multiple"),
            _record(correct=[2, 0], qtype="single"),
        ],
    )
    def test_idempotent(self, record):
        once = normalize_mcq(record)
        assert normalize_mcq(once) == once


class TestCoerceMcqs:
    def test_difficulty_echoes_request(self):
        mcqs = coerce_mcqs([_record(difficulty="easy")], _settings(difficulty="hard"))
        assert mcqs[0].difficulty.value == "hard"

    def test_unrequested_fields_cleared(self):
        record = _record(hint="Think plants", explanation="Because leaves")
        mcq = coerce_mcqs([record], _settings(includeHints=False, includeExplanations=True))[0]

        assert mcq.hint is None
        assert mcq.explanation == "Because leaves"

    def test_single_element_multiple_becomes_single(self):
        mcq = coerce_mcqs([_record(correct=2, qtype="multiple")], _settings())[0]

        assert mcq.type == QuestionType.single
        assert mcq.correct_answer == 2

    def test_duplicate_indices_removed(self):
        mcq = coerce_mcqs([_record(correct=[0, 0, 2], qtype="multiple")], _settings())[0]
        assert mcq.correct_answer == [0, 2]

    def test_invalid_records_dropped(self):
        records = [
            _record(correct=7),
            _record(question="   "),
            "not an object",
            _record(correct=[0, 1], qtype="multiple"),
        ]
        mcqs = coerce_mcqs(records, _settings())

        assert len(mcqs) == 1
        assert mcqs[0].correct_answer == [0, 1]

    def test_nothing_usable_is_format_error(self):
        with pytest.raises(FormatError):
            coerce_mcqs([_record(correct=9), None], _settings())

    def test_empty_reply_stays_empty(self):
        assert coerce_mcqs([], _settings()) == []

    def test_boolean_indices_dropped(self):
        records = [
            _record(correct=True),
            _record(correct=[True, 2], qtype="multiple"),
            _record(correct=0),
        ]
        mcqs = coerce_mcqs(records, _settings())

        assert len(mcqs) == 1
        assert mcqs[0].correct_answer == 0

    def test_boolean_index_rejected_by_model(self):
        with pytest.raises(ValidationError):
            MCQ.model_validate({**_record(correct=True), "type": "single", "difficulty": "easy"})

    def test_revalidation_is_idempotent(self):
        for mcq in coerce_mcqs([_record(correct=[3, 1]), _record(correct=0)], _settings()):
            again = MCQ.model_validate(mcq.model_dump(by_alias=True))
            assert again == mcq


class TestPrompt:
    def test_embeds_settings_and_content(self):
        prompt = build_mcq_prompt(
            "Chlorophyll absorbs light.", _settings(numQuestions=7, numAnswers=5, difficulty="hard")
        )

        assert "Generate 7 multiple choice questions" in prompt
        assert 'Content: "Chlorophyll absorbs light."' in prompt
        assert "Difficulty level: hard" in prompt
        assert "exactly 5 options" in prompt
        assert "Return ONLY the JSON array" in prompt

    def test_single_answer_rules(self):
        prompt = build_mcq_prompt("text", _settings(allowMultipleCorrect=False))

        assert "exactly one correct answer" in prompt
        assert '"type": "multiple"' not in prompt

    def test_multiple_answer_rules(self):
        prompt = build_mcq_prompt("text", _settings(allowMultipleCorrect=True))

        assert "at least 2 options are correct" in prompt
        assert "Select all that apply" in prompt
        assert '"correctAnswer": [0, 2]' in prompt

    def test_hint_and_explanation_switches(self):
        off = build_mcq_prompt("text", _settings(includeHints=False, includeExplanations=False))
        on = build_mcq_prompt("text", _settings(includeHints=True, includeExplanations=True))

        assert "Do not include hints" in off and "Do not include explanations" in off
        assert '"hint"' not in off
        assert '"hint": "Helpful hint here"' in on
        assert '"explanation": "Detailed explanation here"' in on


class TestGenerateMcqs:
    def test_truncates_and_keeps_invariants(self, gemini_key, monkeypatch):
        reply = json.dumps([
            _record(correct=[0, 2]),
            _record(correct=1, qtype="single"),
            _record(correct=3, qtype="multiple"),
            _record(correct=0),
            _record(correct=2),
        ])
        prompts = []

        async def fake_call(prompt, temperature):
            prompts.append((prompt, temperature))
            return f"```json\n{reply}\n```"

        monkeypatch.setattr(ai_engine, "call_provider", fake_call)
        cfg = _settings(numQuestions=3, temperature=0.3)

        mcqs = asyncio.run(ai_engine.generate_mcqs("Plants absorb carbon dioxide.", cfg))

        assert len(mcqs) == 3
        assert len(prompts) == 1 and prompts[0][1] == 0.3
        for mcq in mcqs:
            assert all(0 <= i < len(mcq.options) for i in mcq.correct_indices())
            if mcq.type == QuestionType.single:
                assert isinstance(mcq.correct_answer, int)
            else:
                assert len(set(mcq.correct_answer)) >= 2

    @pytest.mark.parametrize("key", [None, "", "your_api_key_here"])
    def test_missing_credential_fails_before_network(self, monkeypatch, key):
        calls = []

        async def fake_call(prompt, temperature):
            calls.append(prompt)
            return "[]"

        monkeypatch.setattr(settings, "AI_PROVIDER", "gemini")
        monkeypatch.setattr(settings, "GOOGLE_API_KEY", key)
        monkeypatch.setattr(ai_engine, "call_provider", fake_call)

        with pytest.raises(ConfigurationError):
            asyncio.run(ai_engine.generate_mcqs("content", _settings()))
        assert calls == []

    def test_groq_credential_checked_for_groq(self, monkeypatch):
        monkeypatch.setattr(settings, "AI_PROVIDER", "groq")
        monkeypatch.setattr(settings, "GROQ_API_KEY", None)
        monkeypatch.setattr(settings, "GOOGLE_API_KEY", "test-key")

        with pytest.raises(ConfigurationError, match="GROQ_API_KEY"):
            ai_engine.ensure_provider_configured()

    def test_provider_failure_is_network_error(self, gemini_key, monkeypatch):
        async def broken(prompt, temperature):
            raise RuntimeError("503 Service Unavailable")

        monkeypatch.setattr(ai_engine, "_call_gemini", broken)

        with pytest.raises(NetworkError, match="Gemini request failed"):
            asyncio.run(ai_engine.call_provider("prompt", 0.5))

    def test_provider_timeout_is_network_error(self, gemini_key, monkeypatch):
        async def slow(prompt, temperature):
            await asyncio.sleep(5)
            return "[]"

        monkeypatch.setattr(ai_engine, "_call_gemini", slow)
        monkeypatch.setattr(settings, "AI_TIMEOUT_SECONDS", 0.05)

        with pytest.raises(NetworkError, match="timeout"):
            asyncio.run(ai_engine.call_provider("prompt", 0.5))

    def test_non_array_reply_is_format_error(self, gemini_key, monkeypatch):
        async def fake_call(prompt, temperature):
            return '{"question": "Q"}'

        monkeypatch.setattr(ai_engine, "call_provider", fake_call)

        with pytest.raises(FormatError):
            asyncio.run(ai_engine.generate_mcqs("content", _settings()))

    def test_empty_array_reply_is_success(self, gemini_key, monkeypatch):
        async def fake_call(prompt, temperature):
            return "[]"

        monkeypatch.setattr(ai_engine, "call_provider", fake_call)

        assert asyncio.run(ai_engine.generate_mcqs("content", _settings())) == []


def _fake_gemini(monkeypatch, text="[]", error=None):
    seen = {}

    class FakeResponse:
        @property
        def text(self):
            if error is not None:
                raise error
            return text

    class FakeModel:
        def __init__(self, model_name, generation_config):
            seen["model_name"] = model_name
            seen["generation_config"] = generation_config

        def generate_content(self, prompt):
            seen["prompt"] = prompt
            return FakeResponse()

    monkeypatch.setattr(ai_engine.genai, "configure", lambda **kwargs: seen.update(configure=kwargs))
    monkeypatch.setattr(ai_engine.genai, "GenerativeModel", FakeModel)
    return seen


def _fake_groq(monkeypatch, content="[]"):
    seen = {}

    async def create(**kwargs):
        seen.update(kwargs)
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    monkeypatch.setattr(ai_engine, "_groq", lambda: client)
    return seen


class TestProviderInvocation:
    def test_gemini_receives_sampling_parameters(self, gemini_key, monkeypatch):
        seen = _fake_gemini(monkeypatch, text='[{"question": "Q"}]')

        raw = asyncio.run(ai_engine.call_provider("the prompt", 0.3))

        assert raw == '[{"question": "Q"}]'
        assert seen["configure"]["api_key"] == "test-key"
        assert seen["model_name"] == settings.GEMINI_MODEL
        assert seen["generation_config"] == {
            "temperature": 0.3,
            "top_k": 40,
            "top_p": 0.95,
            "max_output_tokens": 8192,
        }
        assert seen["prompt"] == "the prompt"

    def test_groq_receives_sampling_parameters(self, monkeypatch):
        monkeypatch.setattr(settings, "AI_PROVIDER", "groq")
        monkeypatch.setattr(settings, "GROQ_API_KEY", "groq-key")
        seen = _fake_groq(monkeypatch, content="[]")

        raw = asyncio.run(ai_engine.call_provider("the prompt", 0.9))

        assert raw == "[]"
        assert seen["model"] == settings.GROQ_MODEL
        assert seen["messages"] == [{"role": "user", "content": "the prompt"}]
        assert seen["temperature"] == 0.9
        assert seen["top_p"] == 0.95
        assert seen["max_tokens"] == 8192
        assert "top_k" not in seen

    def test_request_temperature_flows_from_settings(self, gemini_key, monkeypatch):
        seen = _fake_gemini(monkeypatch, text="[]")

        asyncio.run(ai_engine.generate_mcqs("content", _settings(temperature=0.15)))

        assert seen["generation_config"]["temperature"] == 0.15

    def test_blocked_candidate_is_format_error(self, gemini_key, monkeypatch):
        _fake_gemini(monkeypatch, error=ValueError("response.text requires a single valid Part"))

        with pytest.raises(FormatError, match="Invalid response from AI"):
            asyncio.run(ai_engine.call_provider("prompt", 0.5))
