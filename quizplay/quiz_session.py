"""
Quiz session engine for QuizPlay.
Drives one attempt at an ordered question set: navigation, answers,
countdown, validation, scoring and result persistence.
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from .data_manager import build_question, find_item_problems
from .models import (
    Notice,
    Question,
    SessionPhase,
    SessionResult,
    TERMINAL_PHASES,
    normalize_answer,
)

logger = logging.getLogger(__name__)

# Time budget is a step function of quiz size.
SHORT_QUIZ_MAX_QUESTIONS = 5
SHORT_QUIZ_SECONDS = 4 * 60
LONG_QUIZ_SECONDS = 8 * 60

NOTICE_SECONDS = 4
ANSWER_REQUIRED_MESSAGE = "Please select an option or enter an answer."
ALL_ANSWERS_REQUIRED_MESSAGE = "Please answer all questions before submitting."

SNAPSHOT_VERSION = 1


class EmptySessionError(Exception):
    """Raised when a session is requested without any questions."""
    pass


def time_budget_for(question_count: int) -> int:
    """
    Get the countdown budget for a quiz of the given size.

    Args:
        question_count: Number of questions in the session

    Returns:
        Budget in seconds
    """
    if question_count <= SHORT_QUIZ_MAX_QUESTIONS:
        return SHORT_QUIZ_SECONDS
    return LONG_QUIZ_SECONDS


def format_time_left(seconds: int) -> str:
    """Format remaining seconds as shown on the countdown display."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes} M : {secs:02d} S"


class SessionLifecycleLogger:
    """Structured logging for session lifecycle events."""

    @staticmethod
    def log_session_created(session_id: str, question_count: int, time_budget: int) -> None:
        """Log session construction."""
        logger.info(
            f"Session lifecycle: CREATED - Session {session_id}, Questions {question_count}, Budget {time_budget}s",
            extra={
                'event_type': 'session_created',
                'session_id': session_id,
                'question_count': question_count,
                'time_budget': time_budget,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_phase_transition(session_id: str, from_phase: SessionPhase, to_phase: SessionPhase,
                             reason: str = None) -> None:
        """Log phase transitions."""
        logger.info(
            f"Session lifecycle: PHASE_TRANSITION - Session {session_id}, "
            f"{from_phase.value} -> {to_phase.value}" + (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'session_phase_transition',
                'session_id': session_id,
                'from_phase': from_phase.value,
                'to_phase': to_phase.value,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_rejection(session_id: str, operation: str, message: str) -> None:
        """Log a validation rejection surfaced to the user as a notice."""
        logger.debug(
            f"Session lifecycle: REJECTED - Session {session_id}, Operation {operation}: {message}",
            extra={
                'event_type': 'session_rejection',
                'session_id': session_id,
                'operation': operation,
                'notice': message,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_countdown(session_id: str, remaining_seconds: int, total_seconds: int) -> None:
        """Log countdown progress (throttled to avoid spam)."""
        if remaining_seconds % 60 == 0 or remaining_seconds <= 5:
            progress_percent = ((total_seconds - remaining_seconds) / total_seconds) * 100
            logger.debug(
                f"Session lifecycle: COUNTDOWN - Session {session_id}, Remaining {remaining_seconds}s "
                f"({progress_percent:.1f}% elapsed)",
                extra={
                    'event_type': 'session_countdown',
                    'session_id': session_id,
                    'remaining_seconds': remaining_seconds,
                    'total_seconds': total_seconds,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_scored(session_id: str, score: int, total: int, timed_out: bool) -> None:
        """Log the final score."""
        logger.info(
            f"Session lifecycle: SCORED - Session {session_id}, Score {score}/{total}"
            + (" (time expired)" if timed_out else ""),
            extra={
                'event_type': 'session_scored',
                'session_id': session_id,
                'score': score,
                'total': total,
                'timed_out': timed_out,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_persistence_error(session_id: str, error: Exception) -> None:
        """Log a failure reported by the result store."""
        logger.error(
            f"Session lifecycle: PERSISTENCE_ERROR - Session {session_id}, "
            f"Type {type(error).__name__}: {error}",
            extra={
                'event_type': 'session_persistence_error',
                'session_id': session_id,
                'error_type': type(error).__name__,
                'error_message': str(error),
                'timestamp': time.time()
            }
        )


class QuizSession:
    """
    One attempt at answering an ordered question set under a time budget.

    All mutation goes through record_answer, next, previous, tick, submit and
    abort. Validation failures never raise: they set ``last_notice`` and leave
    the session unchanged. The countdown is driven from outside by calling
    tick() once per second.
    """

    def __init__(
        self,
        questions: Optional[Iterable[Question]],
        result_store: Any = None,
        session_id: str = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the session.

        Args:
            questions: Ordered, already materialized questions
            result_store: Object with a store_result(score) method, or None
            session_id: Identifier used in log records
            clock: Source of the current time for notice expiry

        Raises:
            EmptySessionError: If questions is empty or None
        """
        self.questions = tuple(questions or ())
        if not self.questions:
            raise EmptySessionError("Cannot start a quiz session without questions")

        self.session_id = session_id or f"session-{id(self):x}"
        self.current_index = 0
        self.answers: Dict[int, str] = {}
        self.time_budget = time_budget_for(len(self.questions))
        self.remaining_seconds = self.time_budget
        self.phase = SessionPhase.ACTIVE
        self.last_notice: Optional[Notice] = None

        self._result_store = result_store
        self._clock = clock
        self._result: Optional[SessionResult] = None
        self._phase_listeners: List[Callable[[SessionPhase, SessionPhase], Any]] = []

        SessionLifecycleLogger.log_session_created(
            self.session_id, len(self.questions), self.time_budget
        )

    # ------------------------------------------------------------------
    # Read-only views

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def is_active(self) -> bool:
        return self.phase is SessionPhase.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def is_last_question(self) -> bool:
        return self.current_index == self.total - 1

    @property
    def answered_count(self) -> int:
        return sum(1 for index in range(self.total) if self.is_answered(index))

    @property
    def result(self) -> Optional[SessionResult]:
        """Terminal result, available once the session has completed."""
        return self._result

    def is_answered(self, index: int) -> bool:
        return bool(self.answers.get(index))

    def unanswered_indices(self) -> List[int]:
        return [index for index in range(self.total) if not self.is_answered(index)]

    def get_answer(self, index: int) -> Optional[str]:
        return self.answers.get(index)

    def progress_label(self) -> str:
        return f"Question {self.current_index + 1} of {self.total}"

    def time_left_label(self) -> str:
        return format_time_left(self.remaining_seconds)

    def active_notice(self, now: datetime = None) -> Optional[Notice]:
        """
        Get the notice if it is still within its display window.

        An expired notice is cleared as a side effect.
        """
        if self.last_notice is None:
            return None
        now = now or self._clock()
        if self.last_notice.is_expired(now):
            self.last_notice = None
            return None
        return self.last_notice

    def add_phase_listener(self, callback: Callable[[SessionPhase, SessionPhase], Any]) -> None:
        """Register a callback invoked with (old_phase, new_phase) on every transition."""
        self._phase_listeners.append(callback)

    # ------------------------------------------------------------------
    # Operations

    def record_answer(self, index: int, text: Optional[str]) -> bool:
        """
        Store the answer for the question currently displayed.

        Args:
            index: Question index; must equal current_index
            text: Raw answer text

        Returns:
            True if the answer set was updated, False if the write was refused
        """
        if not self.is_active:
            logger.debug(f"Ignoring answer for session {self.session_id} in phase {self.phase.value}")
            return False

        if index != self.current_index:
            logger.warning(
                f"Refusing out-of-order answer for session {self.session_id}: "
                f"index {index}, current {self.current_index}",
                extra={
                    'event_type': 'session_out_of_order_answer',
                    'session_id': self.session_id,
                    'index': index,
                    'current_index': self.current_index,
                    'timestamp': time.time()
                }
            )
            return False

        normalized = normalize_answer(text)
        if normalized:
            self.answers[index] = normalized
        else:
            self.answers.pop(index, None)
        return True

    def next(self) -> bool:
        """
        Move to the next question once the current one is answered.

        Returns:
            True if the current answer passed validation, False on rejection
        """
        if not self.is_active:
            return False

        if not self.is_answered(self.current_index):
            self._set_notice(ANSWER_REQUIRED_MESSAGE, "next")
            return False

        if self.current_index < self.total - 1:
            self.current_index += 1
        return True

    def previous(self) -> bool:
        """
        Move back one question. No validation is needed to go backward.

        Returns:
            True if the index changed
        """
        if not self.is_active or self.current_index == 0:
            return False
        self.current_index -= 1
        return True

    def tick(self) -> bool:
        """
        Advance the countdown by one second.

        Reaching zero submits the session regardless of unanswered questions.

        Returns:
            True if this tick expired the session
        """
        if not self.is_active:
            return False

        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        SessionLifecycleLogger.log_countdown(self.session_id, self.remaining_seconds, self.time_budget)

        if self.remaining_seconds == 0:
            logger.info(f"Time expired for session {self.session_id}, submitting")
            self.submit(bypass_validation=True)
            return True
        return False

    def submit(self, bypass_validation: bool = False) -> Optional[SessionResult]:
        """
        Score and persist the session.

        Args:
            bypass_validation: Skip the all-answered check (timer expiry)

        Returns:
            The session result, or None if submission was rejected
        """
        if not self.is_active:
            return None

        if not bypass_validation and self.unanswered_indices():
            self._set_notice(ALL_ANSWERS_REQUIRED_MESSAGE, "submit")
            return None

        timed_out = bypass_validation and self.remaining_seconds == 0
        self._transition(SessionPhase.SUBMITTING, "time expired" if timed_out else "submit accepted")

        score = self.calculate_score()
        self._result = SessionResult(score=score, total=self.total, timed_out=timed_out)
        SessionLifecycleLogger.log_scored(self.session_id, score, self.total, timed_out)
        self._persist(score)

        self._transition(SessionPhase.COMPLETED, "scoring finished")
        return self._result

    def abort(self) -> bool:
        """
        Cancel the session before any progress has been made.

        Returns:
            True if the session moved to Aborted
        """
        if not self.is_active:
            return False

        if self.answers or self.current_index != 0:
            logger.warning(
                f"Refusing to abort session {self.session_id}: progress already made",
                extra={
                    'event_type': 'session_abort_refused',
                    'session_id': self.session_id,
                    'answered': len(self.answers),
                    'current_index': self.current_index,
                    'timestamp': time.time()
                }
            )
            return False

        self._transition(SessionPhase.ABORTED, "aborted by caller")
        return True

    def calculate_score(self) -> int:
        """Count answers matching the correct answer after normalization."""
        score = 0
        for index, question in enumerate(self.questions):
            # Both kinds share the same exact-match rule.
            if question.is_correct(self.answers.get(index)):
                score += 1
        return score

    # ------------------------------------------------------------------
    # Snapshot

    def to_snapshot(self) -> Dict[str, Any]:
        """Serialize the session into a JSON-compatible dict."""
        return {
            'version': SNAPSHOT_VERSION,
            'session_id': self.session_id,
            'questions': [
                {
                    'type': question.kind.value,
                    'question': question.prompt,
                    'correct_answer': question.correct_answer,
                    'incorrect_answers': list(question.distractors)
                }
                for question in self.questions
            ],
            'current_index': self.current_index,
            'answers': {str(index): answer for index, answer in self.answers.items()},
            'remaining_seconds': self.remaining_seconds,
            'phase': self.phase.value
        }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any], result_store: Any = None,
                      clock: Callable[[], datetime] = datetime.now) -> "QuizSession":
        """
        Restore a session from to_snapshot() output.

        Raises:
            EmptySessionError: If the snapshot holds no questions
            ValueError: If the snapshot is malformed or not active
        """
        if snapshot.get('version') != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {snapshot.get('version')!r}")

        if snapshot.get('phase') != SessionPhase.ACTIVE.value:
            raise ValueError("Only active sessions can be restored")

        items = snapshot.get('questions', [])
        if not isinstance(items, list):
            raise ValueError("Snapshot questions must be a list")
        problems = [problem for position, item in enumerate(items)
                    for problem in find_item_problems(item, position)]
        if problems:
            raise ValueError(f"Malformed snapshot questions: {'; '.join(problems)}")

        session = cls([build_question(item) for item in items], result_store=result_store,
                      session_id=snapshot.get('session_id'), clock=clock)

        answers = snapshot.get('answers', {})
        try:
            current_index = int(snapshot.get('current_index', 0))
            remaining = int(snapshot.get('remaining_seconds', session.time_budget))
            answers = {int(key): answer for key, answer in answers.items()}
        except (TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Malformed snapshot field: {e}") from e

        if not 0 <= current_index < session.total:
            raise ValueError(f"Snapshot index out of range: {current_index}")
        if not 0 < remaining <= session.time_budget:
            raise ValueError(f"Snapshot remaining time out of range: {remaining}")

        session.current_index = current_index
        session.remaining_seconds = remaining
        for index, answer in answers.items():
            normalized = normalize_answer(answer)
            if 0 <= index < session.total and normalized:
                session.answers[index] = normalized
        return session

    # ------------------------------------------------------------------
    # Internals

    def _set_notice(self, message: str, operation: str) -> None:
        self.last_notice = Notice(
            message=message,
            expires_at=self._clock() + timedelta(seconds=NOTICE_SECONDS)
        )
        SessionLifecycleLogger.log_rejection(self.session_id, operation, message)

    def _transition(self, new_phase: SessionPhase, reason: str) -> None:
        old_phase = self.phase
        self.phase = new_phase
        SessionLifecycleLogger.log_phase_transition(self.session_id, old_phase, new_phase, reason)
        for callback in list(self._phase_listeners):
            try:
                callback(old_phase, new_phase)
            except Exception as e:
                logger.error(f"Phase listener failed for session {self.session_id}: {e}")

    def _persist(self, score: int) -> None:
        if self._result_store is None:
            logger.debug(f"No result store configured for session {self.session_id}")
            return
        try:
            self._result_store.store_result(score)
        except Exception as e:
            # Storage failures belong to the store; the session still completes.
            SessionLifecycleLogger.log_persistence_error(self.session_id, e)
