"""
Unit tests for ConfigManager.
"""
import shutil
import tempfile
import unittest
from pathlib import Path

from quizplay.config_manager import ConfigManager
from quizplay.models import QuizSettings


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        self.config_manager = ConfigManager()
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_default_settings(self):
        settings = self.config_manager.get_quiz_settings()

        self.assertIsInstance(settings, QuizSettings)
        self.assertEqual(settings.quiz_directory, ConfigManager.DEFAULT_QUIZ_DIRECTORY)
        self.assertEqual(settings.results_file, ConfigManager.DEFAULT_RESULTS_FILE)
        self.assertEqual(settings.display_refresh_seconds, 10)

    def test_get_quiz_settings_returns_copy(self):
        settings = self.config_manager.get_quiz_settings()
        settings.display_refresh_seconds = 55

        self.assertEqual(self.config_manager.get_display_refresh_seconds(), 10)

    def test_set_display_refresh_valid(self):
        result = self.config_manager.set_display_refresh_seconds(30)

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_display_refresh_seconds(), 30)

    def test_set_display_refresh_out_of_range(self):
        """Test both bounds of the refresh interval."""
        for value in (ConfigManager.MIN_DISPLAY_REFRESH_SECONDS - 1, ConfigManager.MAX_DISPLAY_REFRESH_SECONDS + 1):
            with self.subTest(value=value):
                result = self.config_manager.set_display_refresh_seconds(value)
                self.assertFalse(result['success'])
                self.assertIn('user_message', result)
        self.assertEqual(self.config_manager.get_display_refresh_seconds(), 10)

    def test_set_display_refresh_wrong_type(self):
        for value in ("10", 10.5, True):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_display_refresh_seconds(value)['success'])

    def test_set_quiz_directory(self):
        result = self.config_manager.set_quiz_directory(self.temp_dir)

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_quiz_directory(), str(Path(self.temp_dir).resolve()))

    def test_set_quiz_directory_invalid(self):
        for value in ("", "   ", 42, "/etc/quizzes"):
            with self.subTest(value=value):
                self.assertFalse(self.config_manager.set_quiz_directory(value)['success'])

    def test_set_results_file(self):
        path = str(Path(self.temp_dir) / "result.json")

        result = self.config_manager.set_results_file(path)

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_results_file(), str(Path(path).resolve()))

    def test_set_results_file_directory_refused(self):
        self.assertFalse(self.config_manager.set_results_file(self.temp_dir)['success'])

    def test_apply_config(self):
        """Test applying the quiz section of config.json."""
        rejected = self.config_manager.apply_config({
            'quiz': {
                'quiz_directory': self.temp_dir,
                'display_refresh_seconds': 15
            }
        })

        self.assertEqual(rejected, [])
        self.assertEqual(self.config_manager.get_display_refresh_seconds(), 15)
        self.assertEqual(self.config_manager.get_quiz_directory(), str(Path(self.temp_dir).resolve()))

    def test_apply_config_starts_from_defaults(self):
        """Test that re-applying a config drops values it no longer sets."""
        self.config_manager.set_display_refresh_seconds(30)

        self.config_manager.apply_config({'quiz': {'quiz_directory': self.temp_dir}})

        self.assertEqual(self.config_manager.get_display_refresh_seconds(), 10)

    def test_apply_config_reports_rejections(self):
        rejected = self.config_manager.apply_config({'quiz': {'display_refresh_seconds': 1}})

        self.assertEqual(len(rejected), 1)
        self.assertEqual(self.config_manager.get_display_refresh_seconds(), 10)

    def test_apply_empty_config(self):
        self.assertEqual(self.config_manager.apply_config({}), [])
        self.assertEqual(self.config_manager.apply_config(None), [])

    def test_reset_to_defaults(self):
        self.config_manager.set_display_refresh_seconds(30)
        self.config_manager.set_quiz_directory(self.temp_dir)

        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_display_refresh_seconds(), 10)
        self.assertEqual(self.config_manager.get_quiz_directory(), ConfigManager.DEFAULT_QUIZ_DIRECTORY)

    def test_validate_settings(self):
        validation = self.config_manager.validate_settings()

        self.assertTrue(validation['valid'])
        self.assertEqual(validation['issues'], [])

    def test_settings_summary(self):
        self.config_manager.set_display_refresh_seconds(20)

        summary = self.config_manager.get_settings_summary()

        self.assertIn("every 20 seconds", summary)
        self.assertIn("Quiz Directory", summary)

    def test_health_check_missing_directory(self):
        self.config_manager.set_quiz_directory(str(Path(self.temp_dir) / "missing"))

        health = self.config_manager.get_configuration_health_check()

        self.assertTrue(health['healthy'])
        self.assertEqual(len(health['warnings']), 1)


if __name__ == '__main__':
    unittest.main()
