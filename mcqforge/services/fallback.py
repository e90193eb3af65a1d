from typing import List

from mcqforge.schemas.mcq import MCQ, GenerationSettings, QuestionType


def fallback_mcqs(cfg: GenerationSettings) -> List[MCQ]:
    """Fixed demo set installed when generation fails. At most two records."""
    multiple = cfg.allow_multiple_correct
    hints = cfg.include_hints
    explanations = cfg.include_explanations

    mcqs = [
        MCQ(
            question=(
                "What are the primary benefits of artificial intelligence in modern web development? "
                "(Select all that apply)"
            ),
            options=[
                "Enhanced user experience through personalization",
                "Automated code generation and testing",
                "Increased development costs",
                "Improved accessibility features",
            ],
            correct_answer=[0, 1, 3] if multiple else 0,
            type=QuestionType.multiple if multiple else QuestionType.single,
            difficulty=cfg.difficulty,
            hint=(
                "Think about how AI tools help developers be more productive and create better user experiences."
                if hints else None
            ),
            explanation=(
                "AI in web development enhances user experience through personalization, automates repetitive "
                "tasks like code generation and testing, and can improve accessibility through automated "
                "alt-text generation and other features. It typically reduces costs rather than increases them."
                if explanations else None
            ),
        ),
        MCQ(
            question="Which programming language is primarily used for client-side web development?",
            options=["Python", "JavaScript", "Java", "C++"],
            correct_answer=1,
            type=QuestionType.single,
            difficulty=cfg.difficulty,
            hint="This language runs in web browsers and is essential for interactive web pages." if hints else None,
            explanation=(
                "JavaScript is the primary programming language for client-side web development, running in "
                "web browsers to create interactive and dynamic user interfaces."
                if explanations else None
            ),
        ),
    ]
    return mcqs[: cfg.num_questions]
