"""
Question source for QuizPlay.

Quizzes are JSON files in a single directory, one quiz per file, named after
the file stem. Each file holds trivia items in the shape used by Open Trivia
DB style exports:

    {"quiz": [{"type": "multiple", "question": "...", "correct_answer": "...",
               "incorrect_answers": ["...", ...]}, ...]}
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from .models import Question, QuestionKind


MAX_QUIZ_FILE_SIZE = 10 * 1024 * 1024  # 10MB

SAMPLE_QUIZ_NAME = "sample_quiz"
SAMPLE_QUIZ = {
    "quiz": [
        {
            "type": "multiple",
            "question": "What is the capital of France?",
            "correct_answer": "Paris",
            "incorrect_answers": ["London", "Berlin", "Madrid"]
        },
        {
            "type": "boolean",
            "question": "The Python language is named after a snake.",
            "correct_answer": "False"
        },
        {
            "type": "multiple",
            "question": "What is 2 + 2?",
            "correct_answer": "4",
            "incorrect_answers": ["3", "5", "22"]
        }
    ]
}

REQUIRED_ITEM_FIELDS = ("type", "question", "correct_answer")


class QuizFileError(Exception):
    """A quiz file that cannot be turned into questions."""
    pass


def find_item_problems(item: Any, position: int) -> List[str]:
    """List everything wrong with one trivia item; empty when it is usable."""
    if not isinstance(item, dict):
        return [f"item {position} is not an object"]

    problems = [
        f"item {position} needs a text '{field}'"
        for field in REQUIRED_ITEM_FIELDS
        if not isinstance(item.get(field), str)
    ]
    if problems:
        return problems

    if not item["question"].strip():
        problems.append(f"item {position} has a blank question")
    try:
        QuestionKind.parse(item["type"])
    except ValueError as e:
        problems.append(f"item {position}: {e}")

    distractors = item.get("incorrect_answers", [])
    if not isinstance(distractors, list) or any(not isinstance(d, str) for d in distractors):
        problems.append(f"item {position} 'incorrect_answers' must be a list of text")
    return problems


def find_structure_problems(data: Any) -> List[str]:
    """List everything wrong with a parsed quiz document."""
    if not isinstance(data, dict) or "quiz" not in data:
        return ["document must be an object with a 'quiz' list"]
    items = data["quiz"]
    if not isinstance(items, list):
        return ["'quiz' must be a list"]
    if not items:
        return ["'quiz' has no items"]

    problems = []
    for position, item in enumerate(items):
        problems.extend(find_item_problems(item, position))
    return problems


def build_question(item: Dict[str, Any]) -> Question:
    """Turn a validated trivia item into a Question."""
    kind = QuestionKind.parse(item["type"])
    # Boolean items carry their choices implicitly
    distractors = list(item.get("incorrect_answers", [])) if kind is QuestionKind.MULTIPLE_CHOICE else []
    return Question(
        kind=kind,
        prompt=item["question"],
        correct_answer=item["correct_answer"],
        distractors=distractors
    )


def read_quiz_file(path: Path) -> List[Question]:
    """
    Read one quiz file.

    Raises:
        QuizFileError: If the file is unreadable, oversized, not JSON or malformed
    """
    try:
        size = path.stat().st_size
        if size > MAX_QUIZ_FILE_SIZE:
            raise QuizFileError(
                f"file is {size / 1024 / 1024:.1f}MB, limit is {MAX_QUIZ_FILE_SIZE // 1024 // 1024}MB"
            )
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise QuizFileError(f"not valid JSON ({e.msg} at line {e.lineno})") from e
    except UnicodeDecodeError as e:
        raise QuizFileError("not UTF-8 text") from e
    except OSError as e:
        raise QuizFileError(f"cannot be read ({e.strerror or e})") from e

    problems = find_structure_problems(data)
    if problems:
        raise QuizFileError("; ".join(problems))
    return [build_question(item) for item in data["quiz"]]


class DataManager:
    """Loads quiz files from a directory and hands out question lists by name."""

    def __init__(self, quiz_directory: str = "./quizzes/"):
        self.quiz_directory = Path(quiz_directory)
        self.logger = logging.getLogger(__name__)
        self._quizzes: Dict[str, List[Question]] = {}
        self._errors: List[str] = []
        self._sample_created = False

    def load_quiz_files(self) -> Dict[str, List[Question]]:
        """
        (Re)load every ``*.json`` file in the quiz directory.

        Broken files are skipped and described in get_load_errors(). An empty
        directory gets a sample quiz written into it. Nothing is substituted
        when every file is broken.

        Returns:
            Mapping of quiz name to its questions
        """
        self._quizzes = {}
        self._errors = []
        self._sample_created = False

        try:
            self._prepare_directory()
            paths = sorted(self.quiz_directory.glob("*.json"))
        except OSError as e:
            self._record_error(f"Cannot use quiz directory {self.quiz_directory}: {e}")
            return self._quizzes

        if not paths:
            self.logger.warning(f"No quiz files in {self.quiz_directory}, writing a sample quiz")
            self._install_sample_quiz()
            return self._quizzes

        for path in paths:
            try:
                self._quizzes[path.stem] = read_quiz_file(path)
            except QuizFileError as e:
                self._record_error(f"{path.name}: {e}")
            else:
                self.logger.info(f"Loaded quiz '{path.stem}' ({len(self._quizzes[path.stem])} questions)")

        if not self._quizzes:
            self._record_error("All quiz files failed to load")
        elif self._errors:
            self.logger.warning(f"Loaded {len(self._quizzes)} quizzes, skipped {len(self._errors)} files")
        return self._quizzes

    def validate_quiz_structure(self, data: Any) -> bool:
        """
        Check a parsed quiz document without loading it.

        Returns:
            True when every item is usable
        """
        problems = find_structure_problems(data)
        for problem in problems:
            self.logger.error(f"Invalid quiz structure: {problem}")
        return not problems

    def get_available_quizzes(self) -> List[str]:
        return list(self._quizzes)

    def get_quiz_questions(self, quiz_name: str) -> Optional[List[Question]]:
        """
        Get a quiz's questions in file order.

        Returns:
            A fresh list the caller may keep, or None for an unknown quiz
        """
        questions = self._quizzes.get(quiz_name)
        return list(questions) if questions is not None else None

    def quiz_exists(self, quiz_name: str) -> bool:
        return quiz_name in self._quizzes

    def get_quiz_count(self) -> int:
        return len(self._quizzes)

    def get_question_count(self, quiz_name: str) -> int:
        return len(self._quizzes.get(quiz_name, ()))

    def get_load_errors(self) -> List[str]:
        return list(self._errors)

    def has_load_errors(self) -> bool:
        return bool(self._errors)

    def get_loading_summary(self) -> Dict[str, Any]:
        return {
            'total_quizzes': len(self._quizzes),
            'has_errors': self.has_load_errors(),
            'error_count': len(self._errors),
            'errors': self.get_load_errors(),
            'sample_created': self._sample_created,
            'quiz_directory': str(self.quiz_directory),
            'available_quizzes': self.get_available_quizzes()
        }

    def _prepare_directory(self) -> None:
        if not self.quiz_directory.exists():
            self.quiz_directory.mkdir(parents=True, exist_ok=True)
            self.logger.info(f"Created quiz directory: {self.quiz_directory}")
        if not os.access(self.quiz_directory, os.R_OK):
            raise PermissionError(f"no read permission on {self.quiz_directory}")

    def _install_sample_quiz(self) -> None:
        path = self.quiz_directory / f"{SAMPLE_QUIZ_NAME}.json"
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(SAMPLE_QUIZ, f, indent=2, ensure_ascii=False)
            self.logger.info(f"Wrote sample quiz file: {path}")
        except OSError as e:
            # The sample is still playable from memory for this run
            self._record_error(f"Could not write sample quiz: {e}")

        self._quizzes[SAMPLE_QUIZ_NAME] = [build_question(item) for item in SAMPLE_QUIZ["quiz"]]
        self._sample_created = True

    def _record_error(self, message: str) -> None:
        self.logger.error(message)
        self._errors.append(message)
