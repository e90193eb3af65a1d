from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional, Union
from enum import Enum


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class QuestionType(str, Enum):
    single = "single"
    multiple = "multiple"


# ── Request ──────────────────────────────────────────────────────────────────

class GenerationSettings(BaseModel):
    """Per-request generation knobs. Wire names are camelCase."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    num_questions: int = Field(default=5, ge=1, alias="numQuestions", description="Number of questions to generate")
    difficulty: Difficulty = Field(default=Difficulty.medium, description="Desired difficulty level")
    num_answers: int = Field(default=4, ge=2, alias="numAnswers", description="Options per question")
    temperature: float = Field(default=0.7, ge=0.0, le=1.0, description="Sampling temperature")
    include_hints: bool = Field(default=True, alias="includeHints")
    include_explanations: bool = Field(default=True, alias="includeExplanations")
    allow_multiple_correct: bool = Field(default=False, alias="allowMultipleCorrect")


# ── Response ─────────────────────────────────────────────────────────────────

class MCQ(BaseModel):
    """
    A validated multiple-choice question.

    `correct_answer` is a single zero-based index for single-answer questions
    and a list of at least two distinct indices for multiple-answer ones.
    A multiple-answer record with fewer than two distinct indices is demoted
    to single, so validating an already valid record is a no-op.
    """
    model_config = ConfigDict(populate_by_name=True)

    question: str
    options: List[str] = Field(..., min_length=2)
    type: QuestionType
    correct_answer: Union[int, List[int]] = Field(..., alias="correctAnswer")
    difficulty: Difficulty
    hint: Optional[str] = None
    explanation: Optional[str] = None

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question must not be empty")
        return v

    @field_validator("options", mode="before")
    @classmethod
    def stringify_options(cls, v):
        if isinstance(v, list):
            return [str(opt) for opt in v]
        return v

    @field_validator("correct_answer", mode="before")
    @classmethod
    def reject_boolean_indices(cls, v):
        values = v if isinstance(v, list) else [v]
        if any(isinstance(x, bool) for x in values):
            raise ValueError("correctAnswer indices must be integers, not booleans")
        return v

    @model_validator(mode="after")
    def check_correct_answer(self) -> "MCQ":
        if self.type == QuestionType.multiple:
            raw = self.correct_answer if isinstance(self.correct_answer, list) else [self.correct_answer]
            indices = list(dict.fromkeys(raw))
            if not indices:
                raise ValueError("correctAnswer must name at least one option")
            if len(indices) < 2:
                self.type = QuestionType.single
                self.correct_answer = indices[0]
            else:
                self.correct_answer = indices
        elif isinstance(self.correct_answer, list):
            raise ValueError("single-answer questions take a scalar correctAnswer")

        indices = self.correct_answer if isinstance(self.correct_answer, list) else [self.correct_answer]
        for idx in indices:
            if not 0 <= idx < len(self.options):
                raise ValueError(f"correctAnswer index {idx} out of range for {len(self.options)} options")
        return self

    def correct_indices(self) -> List[int]:
        if isinstance(self.correct_answer, list):
            return list(self.correct_answer)
        return [self.correct_answer]
