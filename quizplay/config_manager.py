"""
Configuration manager for QuizPlay settings.
"""
import logging
from typing import Any, Dict, List
from pathlib import Path
import os

from .models import QuizSettings


class ConfigManager:
    """Manages quiz hosting settings."""

    DEFAULT_QUIZ_DIRECTORY = "./quizzes/"
    DEFAULT_RESULTS_FILE = "./results/last_result.json"
    DEFAULT_DISPLAY_REFRESH_SECONDS = 10

    # Validation limits
    MIN_DISPLAY_REFRESH_SECONDS = 5
    MAX_DISPLAY_REFRESH_SECONDS = 60

    SYSTEM_DIRECTORIES = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._settings = QuizSettings(
            quiz_directory=self.DEFAULT_QUIZ_DIRECTORY,
            results_file=self.DEFAULT_RESULTS_FILE,
            display_refresh_seconds=self.DEFAULT_DISPLAY_REFRESH_SECONDS
        )

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get a copy of the current settings.

        Returns:
            QuizSettings object with current configuration
        """
        return QuizSettings(
            quiz_directory=self._settings.quiz_directory,
            results_file=self._settings.results_file,
            display_refresh_seconds=self._settings.display_refresh_seconds
        )

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the 'quiz' section of a loaded config.json.

        Settings start from their defaults; invalid values are skipped and
        keep them.

        Args:
            config: Parsed configuration dictionary

        Returns:
            User-facing messages for every rejected value
        """
        self.reset_to_defaults()
        quiz_config = (config or {}).get('quiz', {})
        rejected = []

        if 'quiz_directory' in quiz_config:
            result = self.set_quiz_directory(quiz_config['quiz_directory'])
            if not result['success']:
                rejected.append(result['user_message'])

        if 'results_file' in quiz_config:
            result = self.set_results_file(quiz_config['results_file'])
            if not result['success']:
                rejected.append(result['user_message'])

        if 'display_refresh_seconds' in quiz_config:
            result = self.set_display_refresh_seconds(quiz_config['display_refresh_seconds'])
            if not result['success']:
                rejected.append(result['user_message'])

        if rejected:
            self.logger.warning(f"Ignored {len(rejected)} invalid configuration values")
        else:
            self.logger.info("Configuration applied successfully")
        return rejected

    def set_display_refresh_seconds(self, seconds: int) -> Dict[str, Any]:
        """
        Set how often the countdown display is refreshed.

        Args:
            seconds: Refresh interval in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(seconds, int) or isinstance(seconds, bool):
            error_msg = f"Display refresh interval must be an integer, got {type(seconds).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            }

        if seconds < self.MIN_DISPLAY_REFRESH_SECONDS:
            error_msg = f"Display refresh interval must be at least {self.MIN_DISPLAY_REFRESH_SECONDS} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Refresh too frequent: Minimum is {self.MIN_DISPLAY_REFRESH_SECONDS} seconds"
            }

        if seconds > self.MAX_DISPLAY_REFRESH_SECONDS:
            error_msg = f"Display refresh interval cannot exceed {self.MAX_DISPLAY_REFRESH_SECONDS} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Refresh too slow: Maximum is {self.MAX_DISPLAY_REFRESH_SECONDS} seconds"
            }

        self._settings.display_refresh_seconds = seconds
        self.logger.info(f"Display refresh interval set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Display refresh interval set to {seconds} seconds",
            'user_message': f"✅ Countdown display refreshes every {seconds} seconds"
        }

    def get_display_refresh_seconds(self) -> int:
        return self._settings.display_refresh_seconds

    def set_quiz_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory path for quiz files.

        Args:
            directory: Path to quiz files directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        result = self._validate_path(directory, "Quiz directory")
        if not result['success']:
            return result

        normalized_path = result['path']
        self._settings.quiz_directory = normalized_path
        self.logger.info(f"Quiz directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Quiz directory set to {normalized_path}",
            'user_message': f"✅ Quiz directory set to {normalized_path}"
        }

    def get_quiz_directory(self) -> str:
        return self._settings.quiz_directory

    def set_results_file(self, results_file: str) -> Dict[str, Any]:
        """
        Set the file the latest quiz result is written to.

        Args:
            results_file: Path of the JSON results file

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        result = self._validate_path(results_file, "Results file")
        if not result['success']:
            return result

        normalized_path = result['path']
        if Path(normalized_path).is_dir():
            error_msg = f"Results file path is a directory: {normalized_path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Results path must be a file, not a directory: {results_file}"
            }

        self._settings.results_file = normalized_path
        self.logger.info(f"Results file set to {normalized_path}")
        return {
            'success': True,
            'message': f"Results file set to {normalized_path}",
            'user_message': f"✅ Results will be saved to {normalized_path}"
        }

    def get_results_file(self) -> str:
        return self._settings.results_file

    def _validate_path(self, value: Any, label: str) -> Dict[str, Any]:
        """Check a configured path and resolve it."""
        if not isinstance(value, str):
            error_msg = f"{label} must be a string, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a path string, got {type(value).__name__}"
            }

        if not value.strip():
            error_msg = f"{label} cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} path cannot be empty"
            }

        try:
            normalized_path = str(Path(value).resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid {label.lower()} path format: {e}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid path format: {value}"
            }

        if any(normalized_path.startswith(sys_dir) for sys_dir in self.SYSTEM_DIRECTORIES):
            error_msg = f"Cannot use system directory: {normalized_path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Cannot use system directory: {value}"
            }

        return {'success': True, 'path': normalized_path}

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = QuizSettings(
            quiz_directory=self.DEFAULT_QUIZ_DIRECTORY,
            results_file=self.DEFAULT_RESULTS_FILE,
            display_refresh_seconds=self.DEFAULT_DISPLAY_REFRESH_SECONDS
        )
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        refresh = self._settings.display_refresh_seconds
        if (not isinstance(refresh, int) or
                refresh < self.MIN_DISPLAY_REFRESH_SECONDS or
                refresh > self.MAX_DISPLAY_REFRESH_SECONDS):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid display refresh interval: {refresh}")

        if not isinstance(self._settings.quiz_directory, str) or not self._settings.quiz_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid quiz directory: {self._settings.quiz_directory}")

        if not isinstance(self._settings.results_file, str) or not self._settings.results_file.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid results file: {self._settings.results_file}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        return (
            f"Quiz Settings:\n"
            f"• Quiz Directory: {self._settings.quiz_directory}\n"
            f"• Results File: {self._settings.results_file}\n"
            f"• Display Refresh: every {self._settings.display_refresh_seconds} seconds\n"
            f"• Time Budget: 4 minutes for up to 5 questions, 8 minutes otherwise"
        )

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Check the configuration and the quiz directory.

        Returns:
            Dictionary with health status and recommendations
        """
        health_check = {
            'healthy': True,
            'warnings': [],
            'errors': [],
            'recommendations': []
        }

        validation_result = self.validate_settings()
        if not validation_result['valid']:
            health_check['healthy'] = False
            health_check['errors'].extend(f"❌ {issue}" for issue in validation_result['issues'])

        quiz_dir = Path(self._settings.quiz_directory)
        if not quiz_dir.exists():
            health_check['warnings'].append(
                f"⚠️ Quiz directory does not exist: {self._settings.quiz_directory}"
            )
            health_check['recommendations'].append(
                "The quiz directory will be created automatically when loading quiz files."
            )
        elif not os.access(quiz_dir, os.R_OK):
            health_check['healthy'] = False
            health_check['errors'].append(
                f"❌ Cannot read quiz directory: {self._settings.quiz_directory}"
            )
            health_check['recommendations'].append(
                "Check file permissions for the quiz directory."
            )

        return health_check
