"""
Integration tests for QuizPlay.
Tests complete quiz flows from quiz files on disk to the stored result.
"""
import json
import shutil
import tempfile
import unittest
from pathlib import Path

from quizplay.data_manager import DataManager
from quizplay.config_manager import ConfigManager
from quizplay.quiz_controller import QuizController
from quizplay.quiz_session import QuizSession, LONG_QUIZ_SECONDS, SHORT_QUIZ_SECONDS
from quizplay.result_store import ResultStore
from quizplay.models import SessionPhase
from tests.test_fixtures import TestFixtures


class TestCompleteQuizFlow(unittest.TestCase):
    """Test complete quiz flow from start to finish."""

    def setUp(self):
        """Set up integration test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.quiz_dir = Path(self.temp_dir) / "quizzes"
        self.quiz_dir.mkdir()
        self.results_file = Path(self.temp_dir) / "results" / "last_result.json"

        self.config_manager = ConfigManager()
        self.config_manager.apply_config({
            'quiz': {
                'quiz_directory': str(self.quiz_dir),
                'results_file': str(self.results_file)
            }
        })
        self.data_manager = DataManager(self.config_manager.get_quiz_directory())
        self.quiz_controller = QuizController(self.data_manager, self.config_manager)

        self._create_test_quiz_files()
        self.data_manager.load_quiz_files()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _create_test_quiz_files(self):
        TestFixtures.write_quiz_file(self.quiz_dir, "geography", TestFixtures.create_valid_quiz_json())

        long_quiz = {"quiz": [
            {"type": "boolean", "question": f"Statement {i} is true.", "correct_answer": "True"}
            for i in range(6)
        ]}
        TestFixtures.write_quiz_file(self.quiz_dir, "statements", long_quiz)

    def test_complete_quiz_session_flow(self):
        """Test answering, navigating and submitting a quiz loaded from disk."""
        channel_id = 12345

        result = self.quiz_controller.start_quiz(channel_id, "geography")
        self.assertTrue(result['success'])
        self.assertEqual(result['session_info']['remaining_seconds'], SHORT_QUIZ_SECONDS)

        self.quiz_controller.record_answer(channel_id, "tokyo")
        self.quiz_controller.next_question(channel_id)
        self.assertEqual(
            self.quiz_controller.get_session_progress(channel_id)['options'],
            ["True", "False"]
        )
        self.quiz_controller.record_answer(channel_id, "False")
        self.quiz_controller.next_question(channel_id)
        self.quiz_controller.record_answer(channel_id, " 15 ")

        submit = self.quiz_controller.submit_quiz(channel_id)

        self.assertTrue(submit['success'])
        self.assertEqual(submit['result'].score, 2)
        self.assertEqual(submit['result'].total, 3)
        self.assertFalse(submit['result'].timed_out)
        self.assertFalse(self.quiz_controller.has_active_session(channel_id))

        with open(self.results_file, 'r', encoding='utf-8') as f:
            stored = json.load(f)
        self.assertEqual(stored['score'], 2)
        self.assertEqual(stored['quiz_name'], "geography")

    def test_long_quiz_gets_long_budget(self):
        result = self.quiz_controller.start_quiz(1, "statements")

        self.assertEqual(result['session_info']['remaining_seconds'], LONG_QUIZ_SECONDS)
        self.assertEqual(result['session_info']['time_left'], "8 M : 00 S")

    def test_expiry_scores_partial_answers(self):
        """Test that running out of time scores what was answered."""
        channel_id = 7
        self.quiz_controller.start_quiz(channel_id, "statements")
        session = self.quiz_controller.get_session(channel_id)
        self.quiz_controller.record_answer(channel_id, "True")
        self.quiz_controller.next_question(channel_id)
        self.quiz_controller.record_answer(channel_id, "true")

        for _ in range(LONG_QUIZ_SECONDS):
            session.tick()

        self.assertEqual(session.phase, SessionPhase.COMPLETED)
        self.assertEqual(session.result.score, 2)
        self.assertTrue(session.result.timed_out)
        self.assertEqual(ResultStore(self.results_file).load_last_result()['score'], 2)

    def test_multiple_concurrent_quiz_sessions(self):
        self.quiz_controller.start_quiz(1, "geography")
        self.quiz_controller.start_quiz(2, "statements")

        self.quiz_controller.record_answer(1, "Tokyo")
        self.quiz_controller.stop_quiz(2)

        self.assertTrue(self.quiz_controller.has_active_session(1))
        self.assertFalse(self.quiz_controller.has_active_session(2))
        self.assertEqual(self.quiz_controller.get_session(1).answered_count, 1)

    def test_snapshot_survives_restart(self):
        """Test restoring an in-progress session from its snapshot."""
        channel_id = 3
        self.quiz_controller.start_quiz(channel_id, "geography")
        self.quiz_controller.record_answer(channel_id, "Tokyo")
        self.quiz_controller.next_question(channel_id)
        session = self.quiz_controller.get_session(channel_id)
        session.tick()

        snapshot = json.loads(json.dumps(session.to_snapshot()))
        restored = QuizSession.from_snapshot(snapshot)

        self.assertEqual(restored.current_index, 1)
        self.assertEqual(restored.get_answer(0), "tokyo")
        self.assertEqual(restored.remaining_seconds, SHORT_QUIZ_SECONDS - 1)
        self.assertEqual(restored.current_question.prompt, session.current_question.prompt)


class TestDataFlowIntegration(unittest.TestCase):
    """Test data loading problems surfacing through the controller."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.data_manager = DataManager(self.temp_dir)
        self.quiz_controller = QuizController(
            self.data_manager,
            ConfigManager(),
            ResultStore(Path(self.temp_dir) / "last_result.json")
        )

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_data_loading_error_handling_flow(self):
        TestFixtures.write_quiz_file(self.temp_dir, "good", TestFixtures.create_valid_quiz_json())
        TestFixtures.write_quiz_file(self.temp_dir, "bad", "{ not json")

        self.data_manager.load_quiz_files()

        self.assertEqual(self.quiz_controller.get_available_quizzes(), ["good"])
        self.assertTrue(self.quiz_controller.start_quiz(1, "good")['success'])
        self.assertEqual(self.quiz_controller.start_quiz(2, "bad")['error'], 'empty_session')

    def test_sample_quiz_is_playable(self):
        self.data_manager.load_quiz_files()

        result = self.quiz_controller.start_quiz(1, "sample_quiz")

        self.assertTrue(result['success'])
        self.assertEqual(result['session_info']['total_questions'], 3)


if __name__ == '__main__':
    unittest.main()
