"""
Core data models for the QuizPlay session engine.
"""
from dataclasses import dataclass, field
from typing import List, Optional
from datetime import datetime
from enum import Enum


def normalize_answer(text: Optional[str]) -> str:
    """Trim surrounding whitespace and fold case."""
    if text is None:
        return ""
    return str(text).strip().lower()


class QuestionKind(Enum):
    """Kinds of question a quiz can contain."""
    MULTIPLE_CHOICE = "multiple-choice"
    BOOLEAN = "boolean"

    @classmethod
    def parse(cls, value: str) -> "QuestionKind":
        """
        Parse a kind from quiz file text.

        Accepts "multiple" as well, which is how stored quiz data spells it.

        Raises:
            ValueError: If the value names no known kind
        """
        normalized = normalize_answer(value)
        if normalized in ("multiple", "multiple-choice", "multiple_choice"):
            return cls.MULTIPLE_CHOICE
        if normalized == "boolean":
            return cls.BOOLEAN
        raise ValueError(f"Unknown question type: {value!r}")


BOOLEAN_OPTIONS = ["True", "False"]


@dataclass(frozen=True)
class Question:
    """Represents a single quiz question."""
    kind: QuestionKind
    prompt: str
    correct_answer: str
    distractors: List[str] = field(default_factory=list)

    def options(self) -> List[str]:
        """
        Get the answer choices to present for this question.

        Multiple-choice options are the distractors plus the correct answer,
        with entries that normalize to the same text collapsed into one and
        the result sorted alphabetically.
        """
        if self.kind is QuestionKind.BOOLEAN:
            return list(BOOLEAN_OPTIONS)

        seen = set()
        options = []
        for option in list(self.distractors) + [self.correct_answer]:
            key = normalize_answer(option)
            if not key or key in seen:
                continue
            seen.add(key)
            options.append(option)
        return sorted(options)

    def is_correct(self, answer: Optional[str]) -> bool:
        """Check an answer against the correct one after normalization."""
        normalized = normalize_answer(answer)
        return bool(normalized) and normalized == normalize_answer(self.correct_answer)


@dataclass
class QuizSettings:
    """Runtime settings for hosting quiz sessions."""
    quiz_directory: str = "./quizzes/"
    results_file: str = "./results/last_result.json"
    display_refresh_seconds: int = 10


class SessionPhase(Enum):
    """Lifecycle phases of a quiz session."""
    ACTIVE = "active"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    ABORTED = "aborted"


TERMINAL_PHASES = (SessionPhase.COMPLETED, SessionPhase.ABORTED)


@dataclass(frozen=True)
class Notice:
    """A transient validation message shown to the user until it expires."""
    message: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class SessionResult:
    """Terminal result of a completed quiz session."""
    score: int
    total: int
    timed_out: bool = False

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.score / self.total) * 100
