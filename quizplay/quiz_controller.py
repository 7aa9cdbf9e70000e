"""
Quiz session controller for QuizPlay.
Manages active quiz sessions, their countdown timers and result persistence
per Discord channel.
"""
import logging
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .models import SessionResult
from .quiz_session import QuizSession, EmptySessionError
from .session_timer import SessionTimer, DEFAULT_TICK_INTERVAL
from .data_manager import DataManager
from .config_manager import ConfigManager
from .result_store import ResultStore


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when attempting to create a session that conflicts with existing session."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class QuizController:
    """
    Orchestrates quiz sessions across Discord channels.

    Each channel can have at most one session at a time. A session is removed
    from the controller as soon as it reaches a terminal phase; its result is
    handed back to the caller in the response of the operation that ended it.
    """

    def __init__(
        self,
        data_manager: DataManager,
        config_manager: ConfigManager,
        result_store: Optional[ResultStore] = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL
    ):
        """
        Initialize the quiz controller.

        Args:
            data_manager: Question source
            config_manager: Instance for managing configuration
            result_store: Score persistence, built from configuration if None
            tick_interval: Wall-clock seconds between countdown ticks
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.result_store = result_store or ResultStore(config_manager.get_results_file())
        self.tick_interval = tick_interval

        self._active_sessions: Dict[int, QuizSession] = {}
        self._quiz_names: Dict[int, str] = {}
        self._timers: Dict[int, SessionTimer] = {}

        self.logger.info("QuizController initialized")

    # ------------------------------------------------------------------
    # Session lifecycle

    def create_session(self, channel_id: int, quiz_name: str) -> QuizSession:
        """
        Create a new quiz session for the specified channel.

        Args:
            channel_id: Discord channel identifier
            quiz_name: Name of the quiz to load

        Returns:
            The new session

        Raises:
            SessionConflictError: If the channel already has an active session
            EmptySessionError: If the quiz has no questions or does not exist
        """
        if self.has_active_session(channel_id):
            raise SessionConflictError(f"Channel {channel_id} already has an active quiz session")

        questions = self.data_manager.get_quiz_questions(quiz_name)
        session = QuizSession(
            questions,
            result_store=self.result_store.for_session(quiz_name, len(questions or [])),
            session_id=f"{channel_id}:{quiz_name}"
        )
        session.add_phase_listener(
            lambda old, new: self.logger.debug(
                f"Channel {channel_id} session phase {old.value} -> {new.value}",
                extra={
                    'event_type': 'session_phase_changed',
                    'channel_id': channel_id,
                    'from_phase': old.value,
                    'to_phase': new.value,
                    'timestamp': time.time()
                }
            )
        )

        self._active_sessions[channel_id] = session
        self._quiz_names[channel_id] = quiz_name
        self.logger.info(f"Created quiz session for channel {channel_id}: "
                         f"quiz='{quiz_name}', questions={session.total}")
        return session

    def start_quiz(self, channel_id: int, quiz_name: str) -> Dict[str, Any]:
        """
        Start a quiz in a channel.

        Args:
            channel_id: Discord channel identifier
            quiz_name: Name of the quiz to start

        Returns:
            Dictionary with success status, messages and session info
        """
        try:
            self.create_session(channel_id, quiz_name)
        except SessionConflictError as e:
            self.logger.warning(str(e))
            return {
                'success': False,
                'error': 'session_conflict',
                'message': str(e),
                'user_message': "❌ A quiz is already running in this channel. Use `/stop` to end it first."
            }
        except EmptySessionError as e:
            self.logger.warning(f"Cannot start quiz '{quiz_name}' in channel {channel_id}: {e}")
            return {
                'success': False,
                'error': 'empty_session',
                'message': str(e),
                'user_message': f"❌ Quiz **{quiz_name}** has no questions. Pick another quiz with `/quizzes`."
            }

        return {
            'success': True,
            'message': f"Quiz '{quiz_name}' started",
            'user_message': f"🎯 Quiz **{quiz_name}** started!",
            'session_info': self.get_session_progress(channel_id)
        }

    def start_countdown(
        self,
        channel_id: int,
        update_callback: Optional[Callable[[int], Awaitable[Any]]] = None,
        expiry_callback: Optional[Callable[[SessionResult], Awaitable[Any]]] = None
    ) -> asyncio.Task:
        """
        Start ticking the channel's session on the running event loop.

        Args:
            channel_id: Discord channel identifier
            update_callback: Awaited after each tick with remaining seconds
            expiry_callback: Awaited with the result if the time budget runs out

        Returns:
            The countdown task

        Raises:
            SessionNotFoundError: If the channel has no active session
        """
        session = self.get_session(channel_id)
        if session is None or not session.is_active:
            raise SessionNotFoundError(f"No active quiz session in channel {channel_id}")

        existing = self._timers.get(channel_id)
        if existing is not None:
            existing.cancel()

        timer = SessionTimer(session, interval=self.tick_interval)
        self._timers[channel_id] = timer

        async def on_expiry():
            self.logger.info(f"Time budget exhausted in channel {channel_id}")
            self._finish_session(channel_id)
            if expiry_callback is not None:
                await expiry_callback(session.result)

        return timer.start(update_callback, on_expiry)

    def _finish_session(self, channel_id: int) -> Optional[QuizSession]:
        """Cancel the timer and forget the channel's session."""
        timer = self._timers.pop(channel_id, None)
        if timer is not None:
            timer.cancel()
        self._quiz_names.pop(channel_id, None)
        return self._active_sessions.pop(channel_id, None)

    def stop_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Stop the channel's quiz without scoring it.

        A session with no progress is aborted; one with progress is discarded.

        Returns:
            Dictionary with success status and messages
        """
        session = self.get_session(channel_id)
        if session is None:
            return {
                'success': False,
                'error': 'no_session',
                'message': f"No quiz session in channel {channel_id}",
                'user_message': "❌ No quiz is running in this channel."
            }

        quiz_name = self._quiz_names.get(channel_id)
        aborted = session.abort()
        self._finish_session(channel_id)

        self.logger.info(
            f"Stopped quiz session for channel {channel_id} ({'aborted' if aborted else 'discarded'})",
            extra={
                'event_type': 'session_stopped',
                'channel_id': channel_id,
                'aborted': aborted,
                'answered': session.answered_count,
                'timestamp': time.time()
            }
        )
        return {
            'success': True,
            'aborted': aborted,
            'message': f"Quiz '{quiz_name}' stopped",
            'user_message': f"🛑 Quiz **{quiz_name}** stopped. No score was recorded."
        }

    # ------------------------------------------------------------------
    # In-session operations

    def record_answer(self, channel_id: int, text: str) -> Dict[str, Any]:
        """Record an answer for the question currently shown in the channel."""
        session = self.get_session(channel_id)
        if session is None or not session.is_active:
            return self._no_session_response(channel_id)

        stored = session.record_answer(session.current_index, text)
        answer = session.get_answer(session.current_index)
        if answer is None:
            user_message = f"🗑️ Answer cleared for question {session.current_index + 1}."
        else:
            user_message = f"✍️ Answer for question {session.current_index + 1} recorded: **{answer}**"
        return {
            'success': stored,
            'answer': answer,
            'message': f"Answer recorded for question {session.current_index}",
            'user_message': user_message,
            'session_info': self.get_session_progress(channel_id)
        }

    def next_question(self, channel_id: int) -> Dict[str, Any]:
        """Advance the channel's session, surfacing the notice on rejection."""
        session = self.get_session(channel_id)
        if session is None or not session.is_active:
            return self._no_session_response(channel_id)

        accepted = session.next()
        return self._navigation_response(channel_id, session, accepted)

    def previous_question(self, channel_id: int) -> Dict[str, Any]:
        """Move the channel's session back one question."""
        session = self.get_session(channel_id)
        if session is None or not session.is_active:
            return self._no_session_response(channel_id)

        session.previous()
        return self._navigation_response(channel_id, session, True)

    def submit_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Submit the channel's session for scoring.

        Returns:
            Dictionary with success status and, when accepted, the result
        """
        session = self.get_session(channel_id)
        if session is None or not session.is_active:
            return self._no_session_response(channel_id)

        quiz_name = self._quiz_names.get(channel_id)
        result = session.submit()
        if result is None:
            notice = session.active_notice()
            return {
                'success': False,
                'error': 'validation',
                'message': notice.message if notice else "Submission rejected",
                'user_message': f"⚠️ {notice.message}" if notice else "⚠️ Submission rejected",
                'notice': notice,
                'unanswered': [index + 1 for index in session.unanswered_indices()],
                'session_info': self.get_session_progress(channel_id)
            }

        self._finish_session(channel_id)
        return {
            'success': True,
            'quiz_name': quiz_name,
            'result': result,
            'message': f"Quiz '{quiz_name}' completed with score {result.score}/{result.total}",
            'user_message': f"🏁 You scored **{result.score}/{result.total}**!"
        }

    # ------------------------------------------------------------------
    # Queries

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        return self._active_sessions.get(channel_id)

    def has_active_session(self, channel_id: int) -> bool:
        session = self._active_sessions.get(channel_id)
        return session is not None and session.is_active

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get a display-ready snapshot of the channel's session.

        Returns:
            Dictionary describing the current question and countdown, or None
        """
        session = self._active_sessions.get(channel_id)
        if session is None:
            return None

        question = session.current_question
        return {
            'quiz_name': self._quiz_names.get(channel_id),
            'phase': session.phase.value,
            'current_question': session.current_index + 1,
            'total_questions': session.total,
            'progress_label': session.progress_label(),
            'prompt': question.prompt,
            'kind': question.kind.value,
            'options': question.options(),
            'current_answer': session.get_answer(session.current_index),
            'answered_count': session.answered_count,
            'remaining_seconds': session.remaining_seconds,
            'time_left': session.time_left_label(),
            'is_first': session.current_index == 0,
            'is_last': session.is_last_question
        }

    def get_all_active_sessions(self) -> Dict[int, Dict[str, Any]]:
        return {
            channel_id: self.get_session_progress(channel_id)
            for channel_id in list(self._active_sessions.keys())
        }

    def get_available_quizzes(self) -> List[str]:
        return self.data_manager.get_available_quizzes()

    # ------------------------------------------------------------------
    # Helpers

    def _navigation_response(self, channel_id: int, session: QuizSession, accepted: bool) -> Dict[str, Any]:
        notice = session.active_notice() if not accepted else None
        response = {
            'success': accepted,
            'session_info': self.get_session_progress(channel_id)
        }
        if notice is not None:
            response.update({
                'error': 'validation',
                'message': notice.message,
                'user_message': f"⚠️ {notice.message}",
                'notice': notice
            })
        return response

    def _no_session_response(self, channel_id: int) -> Dict[str, Any]:
        return {
            'success': False,
            'error': 'no_session',
            'message': f"No active quiz session in channel {channel_id}",
            'user_message': "❌ No quiz is running in this channel. Use `/start` to begin one."
        }
