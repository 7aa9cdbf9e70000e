"""
Score persistence for completed quiz sessions.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union


class ResultStore:
    """Writes the latest quiz score to a JSON file. Last write wins."""

    def __init__(self, results_file: Union[str, Path] = "./results/last_result.json"):
        """
        Initialize ResultStore with the results file path.

        Args:
            results_file: Path of the JSON file holding the latest result
        """
        self.results_file = Path(results_file)
        self.logger = logging.getLogger(__name__)

    def store_result(self, score: int, total: Optional[int] = None, quiz_name: Optional[str] = None) -> None:
        """
        Persist a score, replacing whatever was stored before.

        Args:
            score: Number of correct answers
            total: Number of questions in the session, if known
            quiz_name: Quiz the score belongs to, if known

        Raises:
            OSError: If the file cannot be written
        """
        record = {
            "score": int(score),
            "total": total,
            "quiz_name": quiz_name,
            "stored_at": datetime.now().isoformat()
        }

        self.results_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.results_file.with_suffix(self.results_file.suffix + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(record, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.results_file)

        self.logger.info(f"Stored quiz result {score}" + (f"/{total}" if total is not None else "")
                         + (f" for '{quiz_name}'" if quiz_name else ""))

    def load_last_result(self) -> Optional[Dict]:
        """
        Read the most recently stored result.

        Returns:
            Result record, or None if nothing valid is stored
        """
        if not self.results_file.exists():
            return None
        try:
            with open(self.results_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {self.results_file}: {e}")
            return None
        except OSError as e:
            self.logger.error(f"Failed to read results file {self.results_file}: {e}")
            return None

        if not isinstance(data, dict) or not isinstance(data.get("score"), int):
            self.logger.error(f"Invalid result record in {self.results_file}")
            return None
        return data

    def for_session(self, quiz_name: Optional[str], total: int) -> "SessionResultWriter":
        """Bind quiz metadata so a session can call store_result(score) alone."""
        return SessionResultWriter(self, quiz_name, total)


class SessionResultWriter:
    """Result store view for a single session."""

    def __init__(self, store: ResultStore, quiz_name: Optional[str], total: int):
        self.store = store
        self.quiz_name = quiz_name
        self.total = total

    def store_result(self, score: int) -> None:
        self.store.store_result(score, total=self.total, quiz_name=self.quiz_name)
