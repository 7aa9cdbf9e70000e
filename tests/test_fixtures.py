"""
Test fixtures and sample data for QuizPlay tests.
"""
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List
from unittest.mock import Mock, AsyncMock
import discord

from quizplay.models import Question, QuestionKind


class FakeClock:
    """Controllable replacement for datetime.now."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingResultStore:
    """Result store that remembers every score written to it."""

    def __init__(self):
        self.scores: List[int] = []

    def store_result(self, score: int) -> None:
        self.scores.append(score)


class TestFixtures:
    """Centralized test fixtures for all test modules."""

    @staticmethod
    def multiple_choice(prompt: str, correct: str, distractors: List[str] = None) -> Question:
        return Question(QuestionKind.MULTIPLE_CHOICE, prompt, correct, list(distractors or []))

    @staticmethod
    def boolean(prompt: str, correct: str) -> Question:
        return Question(QuestionKind.BOOLEAN, prompt, correct)

    @staticmethod
    def create_sample_questions() -> List[Question]:
        """Three multiple-choice questions."""
        return [
            TestFixtures.multiple_choice("What is the capital of France?", "Paris", ["London", "Berlin", "Madrid"]),
            TestFixtures.multiple_choice("What is 2 + 2?", "4", ["3", "5", "22"]),
            TestFixtures.multiple_choice("What is the largest planet?", "Jupiter", ["Earth", "Mars", "Saturn"]),
        ]

    @staticmethod
    def create_mixed_questions(count: int) -> List[Question]:
        """Alternate multiple-choice and boolean questions with predictable answers."""
        questions = []
        for i in range(count):
            if i % 2 == 0:
                questions.append(TestFixtures.multiple_choice(f"Question {i}?", f"Answer {i}", [f"Wrong {i}"]))
            else:
                questions.append(TestFixtures.boolean(f"Statement {i}.", "True"))
        return questions

    @staticmethod
    def correct_answer_text(question: Question) -> str:
        return question.correct_answer

    @staticmethod
    def create_valid_quiz_json() -> Dict:
        """Create valid quiz JSON structure."""
        return {
            "quiz": [
                {
                    "type": "multiple",
                    "question": "What is the capital of Japan?",
                    "correct_answer": "Tokyo",
                    "incorrect_answers": ["Kyoto", "Osaka", "Nagoya"]
                },
                {
                    "type": "boolean",
                    "question": "Water boils at 100 degrees Celsius at sea level.",
                    "correct_answer": "True"
                },
                {
                    "type": "multiple-choice",
                    "question": "What is 10 + 5?",
                    "correct_answer": "15",
                    "incorrect_answers": []
                }
            ]
        }

    @staticmethod
    def create_invalid_quiz_json_structures() -> List[Dict]:
        """Create various invalid quiz JSON structures for testing."""
        return [
            # Missing 'quiz' key
            {"questions": [{"type": "boolean", "question": "Test?", "correct_answer": "True"}]},
            # 'quiz' is not an array
            {"quiz": "not an array"},
            # Empty quiz array
            {"quiz": []},
            # Missing question field
            {"quiz": [{"type": "boolean", "correct_answer": "True"}]},
            # Missing correct answer
            {"quiz": [{"type": "boolean", "question": "Test?"}]},
            # Unknown type
            {"quiz": [{"type": "essay", "question": "Test?", "correct_answer": "x"}]},
            # Invalid field types
            {"quiz": [{"type": "multiple", "question": 123, "correct_answer": "x"}]},
            # Invalid distractors type
            {"quiz": [{"type": "multiple", "question": "Test?", "correct_answer": "x",
                       "incorrect_answers": "not an array"}]},
        ]

    @staticmethod
    def write_quiz_file(directory: str, name: str, data) -> Path:
        path = Path(directory) / f"{name}.json"
        with open(path, 'w', encoding='utf-8') as f:
            if isinstance(data, str):
                f.write(data)
            else:
                json.dump(data, f)
        return path


class MockDiscordObjects:
    """Mock Discord objects for testing bot functionality."""

    @staticmethod
    def create_mock_interaction(channel_id: int = 12345, user_id: int = 67890) -> Mock:
        """Create mock Discord interaction."""
        interaction = Mock(spec=discord.Interaction)
        interaction.channel_id = channel_id
        interaction.user = Mock()
        interaction.user.id = user_id
        interaction.channel = MockDiscordObjects.create_mock_channel(channel_id)
        interaction.response = Mock()
        interaction.response.is_done.return_value = False
        interaction.response.send_message = AsyncMock()
        interaction.followup = Mock()
        interaction.followup.send = AsyncMock()
        interaction.original_response = AsyncMock(return_value=MockDiscordObjects.create_mock_message())
        return interaction

    @staticmethod
    def create_mock_channel(channel_id: int = 12345) -> Mock:
        """Create mock Discord channel."""
        channel = Mock(spec=discord.TextChannel)
        channel.id = channel_id
        channel.send = AsyncMock()
        return channel

    @staticmethod
    def create_mock_message(message_id: int = 11111) -> Mock:
        """Create mock Discord message."""
        message = Mock(spec=discord.Message)
        message.id = message_id
        message.edit = AsyncMock()
        message.delete = AsyncMock()
        return message
