"""
Countdown scheduler for quiz sessions.
Calls QuizSession.tick() at a fixed cadence on the running event loop.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from .quiz_session import QuizSession

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 1.0


class SessionTimer:
    """Drives one session's countdown until it leaves the active phase."""

    def __init__(self, session: QuizSession, interval: float = DEFAULT_TICK_INTERVAL):
        """
        Initialize the timer.

        Args:
            session: Session to tick
            interval: Seconds of wall time between ticks
        """
        self._session = session
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._is_cancelled = False
        self._creation_time = time.time()

        logger.debug(
            f"SessionTimer created for session {session.session_id}",
            extra={
                'event_type': 'timer_instance_created',
                'session_id': session.session_id,
                'interval': interval,
                'timestamp': self._creation_time
            }
        )

    def start(
        self,
        update_callback: Optional[Callable[[int], Awaitable[Any]]] = None,
        expiry_callback: Optional[Callable[[], Awaitable[Any]]] = None
    ) -> asyncio.Task:
        """
        Schedule the countdown as a task on the running loop.

        Raises:
            RuntimeError: If the timer is already running
        """
        if self.is_running:
            raise RuntimeError(f"Timer already running for session {self._session.session_id}")

        self._is_cancelled = False
        self._task = asyncio.create_task(self.run(update_callback, expiry_callback))
        return self._task

    async def run(
        self,
        update_callback: Optional[Callable[[int], Awaitable[Any]]] = None,
        expiry_callback: Optional[Callable[[], Awaitable[Any]]] = None
    ) -> None:
        """
        Tick the session until it is no longer active.

        Args:
            update_callback: Awaited after each tick with the remaining seconds
            expiry_callback: Awaited once if a tick expires the session
        """
        session = self._session
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Session {session.session_id}, "
            f"Remaining {session.remaining_seconds}s",
            extra={
                'event_type': 'timer_countdown_start',
                'session_id': session.session_id,
                'remaining_seconds': session.remaining_seconds,
                'timestamp': time.time()
            }
        )

        completion_type = "session_ended"
        try:
            while session.is_active and not self._is_cancelled:
                await asyncio.sleep(self._interval)
                if self._is_cancelled:
                    completion_type = "cancelled"
                    break

                expired = session.tick()

                if update_callback is not None and not expired:
                    try:
                        await update_callback(session.remaining_seconds)
                    except Exception as e:
                        # A failed display update must not stop the countdown.
                        logger.error(f"Timer update callback failed for session {session.session_id}: {e}")

                if expired:
                    completion_type = "natural_expiry"
                    if expiry_callback is not None:
                        try:
                            await expiry_callback()
                        except Exception as e:
                            # The session is already scored; only the announcement failed.
                            logger.error(
                                f"Timer expiry callback failed for session {session.session_id}: {e}",
                                extra={
                                    'event_type': 'timer_expiry_callback_failed',
                                    'session_id': session.session_id,
                                    'error_type': type(e).__name__,
                                    'timestamp': time.time()
                                }
                            )
                    break

            if self._is_cancelled:
                completion_type = "cancelled"

        except asyncio.CancelledError:
            self._is_cancelled = True
            completion_type = "asyncio_cancelled"
            raise
        except Exception as e:
            logger.error(
                f"Timer lifecycle: ERROR - Session {session.session_id}: {e}",
                extra={
                    'event_type': 'timer_error',
                    'session_id': session.session_id,
                    'error_type': type(e).__name__,
                    'error_message': str(e),
                    'timestamp': time.time()
                }
            )
            raise
        finally:
            logger.info(
                f"Timer lifecycle: COMPLETED - Session {session.session_id}, Type {completion_type}",
                extra={
                    'event_type': 'timer_completed',
                    'session_id': session.session_id,
                    'completion_type': completion_type,
                    'timestamp': time.time()
                }
            )

    def cancel(self) -> None:
        """Stop ticking. Safe to call repeatedly or before start."""
        self._is_cancelled = True
        if self._task and not self._task.done():
            # Cancelling from inside the task (e.g. an expiry callback) would
            # abort the callback itself; the flag is enough there.
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if current is not self._task:
                logger.debug(f"Cancelling timer task for session {self._session.session_id}")
                self._task.cancel()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task
