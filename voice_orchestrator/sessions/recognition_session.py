"""
Recognition session: life cycle and result folding for one input engine.

CRITICAL: continuous engines keep their whole result history for a run and
report it on every update. Only entries at or after the engine's cursor are
folded, and a commit cycles the engine (stop, then restart through the normal
auto-restart path) so the next turn starts from an empty history.
"""

from typing import Callable, List, Optional

from ..interfaces.recognition import RecognitionEngineInterface, EngineAlreadyStartedError
from ..models.data_models import RecognitionCallbacks, RecognitionErrorKind, RecognitionResult
from ..utils.error_handling import ErrorHandler, ComponentError, ErrorSeverity
from ..utils.logging_config import get_logger
from ..utils.scheduling import Cancellable, Scheduler, LoopScheduler
from ..utils.silence_timer import SilenceCommitTimer, CALL_SILENCE_WINDOW
from ..utils.transcript_accumulator import TranscriptAccumulator


logger = get_logger("recognition")

DEFAULT_RESTART_DELAY = 0.1


def _kind_value(kind) -> str:
    return getattr(kind, 'value', kind)


class RecognitionSession:
    """
    Wraps a continuous recognition engine.

    Features:
    - Idempotent start (duplicate starts are absorbed)
    - Auto-restart when the engine ends unexpectedly
    - Cursor-based result folding so the transcript never repeats
    - Silence-debounced commits that can be held while a turn is in flight
    """

    def __init__(
        self,
        engine: RecognitionEngineInterface,
        *,
        silence_window: float = CALL_SILENCE_WINDOW,
        restart_delay: float = DEFAULT_RESTART_DELAY,
        max_restart_attempts: int = 2,
        restart_on_commit: bool = True,
        scheduler: Optional[Scheduler] = None,
        error_handler: Optional[ErrorHandler] = None,
        on_transcript: Optional[Callable[[str, str], None]] = None,
        on_commit: Optional[Callable[[str], None]] = None,
        on_listening_change: Optional[Callable[[bool], None]] = None,
    ):
        """
        Args:
            engine: Engine owned exclusively by this session
            silence_window: Seconds of silence after the last final fragment before a commit
            restart_delay: Seconds to wait before restarting an ended engine
            max_restart_attempts: Start attempts per unexpected end before giving up
            restart_on_commit: Cycle the engine after every non-empty commit
            scheduler: Delayed-callback scheduler (defaults to the running loop)
            error_handler: Shared error handler
            on_transcript: Called with (live snapshot, newly heard text) on every update
            on_commit: Called with the committed utterance (may be empty)
            on_listening_change: Called when the listening flag flips
        """
        self._engine = engine
        self._scheduler = scheduler or LoopScheduler()
        self.error_handler = error_handler or ErrorHandler()

        self.restart_delay = restart_delay
        self.max_restart_attempts = max(1, max_restart_attempts)
        self.restart_on_commit = restart_on_commit

        self._on_transcript = on_transcript
        self._on_commit = on_commit
        self._on_listening_change = on_listening_change

        self.accumulator = TranscriptAccumulator()
        self.timer = SilenceCommitTimer(self._on_silence, silence_window, self._scheduler)

        # Read when the engine reports "ended", never captured earlier
        self._should_restart = False
        self._engine_running = False
        self._listening = False
        self._restart_handle: Optional[Cancellable] = None
        self._restart_attempts = 0

        # Index past the last final folded in the current engine run
        self._final_cursor = 0

        self._commits_held = False
        self._commit_deferred = False
        self._closed = False

        self._callbacks = RecognitionCallbacks(
            on_start=self._handle_start,
            on_end=self._handle_end,
            on_result=self._handle_result,
            on_error=self._handle_error,
        )
        engine.attach(self._callbacks)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def should_restart(self) -> bool:
        return self._should_restart

    @property
    def transcript(self) -> str:
        """Live transcript (finals plus current interim)."""
        return self.accumulator.snapshot()

    @property
    def commits_held(self) -> bool:
        return self._commits_held

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start listening for a fresh utterance. Safe to call while running."""
        if self._closed:
            logger.warning("🚫 start() on a closed recognition session ignored")
            return

        self.accumulator.reset()
        self.timer.cancel()
        self._commit_deferred = False
        self._should_restart = True
        self._cancel_restart()

        try:
            self._engine.start()
            logger.debug("Recognition start requested")
        except EngineAlreadyStartedError:
            logger.debug("Recognition already running")
        except Exception as e:
            logger.warning(f"⚠️  Recognition start error (ignored): {e}")
            self.error_handler.handle_error(ComponentError(
                component="recognition",
                severity=ErrorSeverity.TRANSIENT,
                message="Start request failed",
                exception=e
            ))

    def stop(self) -> str:
        """
        Stop listening without auto-restart.

        Returns:
            The finalized text accumulated so far
        """
        # Must be cleared before the engine is asked to stop
        self._should_restart = False
        self._cancel_restart()
        self.timer.cancel()

        try:
            self._engine.stop()
        except Exception as e:
            logger.debug(f"Recognition stop error (ignored): {e}")

        if not self._engine_running:
            self._set_listening(False)

        return self.accumulator.text

    def commit(self) -> str:
        """
        Hand the finalized utterance to the owner and start a fresh one.

        Returns:
            The committed text ("" when nothing was said or commits are held)
        """
        self.timer.cancel()

        if self._commits_held:
            self._commit_deferred = True
            logger.debug("Commit deferred (held)")
            return ""

        text = self.accumulator.text.strip()
        self.accumulator.reset()

        if self._on_commit:
            self._on_commit(text)

        if text and self.restart_on_commit:
            self._cycle_engine()

        return text

    def hold_commits(self) -> None:
        """Suppress commits; speech keeps accumulating."""
        self._commits_held = True
        if self.timer.pending:
            self.timer.cancel()
            self._commit_deferred = True

    def release_commits(self) -> None:
        """Allow commits again, re-arming the timer for anything said meanwhile."""
        if not self._commits_held:
            return
        self._commits_held = False
        self._commit_deferred = False
        if self.accumulator.text:
            self.timer.arm()

    def close(self) -> None:
        """Stop the engine and detach from it for good."""
        if self._closed:
            return
        self.stop()
        self._closed = True
        self._engine.attach(None)
        self.accumulator.reset()

    # ------------------------------------------------------------------
    # Engine callbacks
    # ------------------------------------------------------------------

    def _handle_start(self) -> None:
        logger.info("🎙️  Recognition started")
        self._engine_running = True
        self._restart_attempts = 0
        self._final_cursor = 0
        self._set_listening(True)

    def _handle_end(self) -> None:
        self._engine_running = False
        logger.debug(f"Recognition ended (should_restart={self._should_restart})")

        if self._should_restart:
            self._schedule_restart()
        else:
            self._set_listening(False)

    def _handle_result(self, result_index: int, results: List[RecognitionResult]) -> None:
        finals = []
        interims = []

        for i in range(max(0, result_index), len(results)):
            result = results[i]
            text = (result.transcript or "").strip()
            if result.is_final:
                if i < self._final_cursor:
                    continue
                self._final_cursor = i + 1
                if text:
                    finals.append(text)
            elif text:
                interims.append(text)

        final_text = " ".join(finals)
        interim_text = " ".join(interims)

        self.accumulator.set_interim(interim_text)
        if final_text:
            self.accumulator.append_final(final_text)
            logger.debug(f"📝 Final: {final_text}")

        heard = " ".join(part for part in (final_text, interim_text) if part)
        if heard and self._on_transcript:
            self._on_transcript(self.accumulator.snapshot(), heard)

        if final_text:
            if self._commits_held:
                self._commit_deferred = True
            else:
                self.timer.arm()

    def _handle_error(self, kind) -> None:
        kind = _kind_value(kind)

        if kind == RecognitionErrorKind.NO_SPEECH.value:
            # Normal silence
            return

        if kind in (RecognitionErrorKind.ABORTED.value, RecognitionErrorKind.NETWORK.value):
            self._set_listening(False)
            deliberate = not self._should_restart
            self.error_handler.handle_error(ComponentError(
                component="recognition",
                severity=ErrorSeverity.TRANSIENT if deliberate else ErrorSeverity.RECOVERABLE,
                message=f"Recognition error: {kind}",
                kind=kind
            ))
            return

        logger.warning(f"⚠️  Recognition error: {kind}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_silence(self) -> None:
        logger.info(f"⏱️  Silence window elapsed ({self.timer.duration:.1f}s)")
        self.commit()

    def _cycle_engine(self) -> None:
        # on_end sees should_restart=True and restarts with an empty history
        if not self._should_restart:
            return
        logger.debug("Cycling recognition engine after commit")
        try:
            self._engine.stop()
        except Exception as e:
            logger.debug(f"Engine stop during cycle failed: {e}")

    def _schedule_restart(self) -> None:
        self._cancel_restart()
        self._restart_handle = self._scheduler.call_later(self.restart_delay, self._restart)

    def _cancel_restart(self) -> None:
        if self._restart_handle is not None:
            self._restart_handle.cancel()
            self._restart_handle = None

    def _restart(self) -> None:
        self._restart_handle = None
        if not self._should_restart or self._engine_running:
            return

        logger.info("🔄 Restarting recognition...")
        try:
            self._engine.start()
            return
        except EngineAlreadyStartedError:
            return
        except Exception as e:
            self._restart_attempts += 1
            if self._restart_attempts < self.max_restart_attempts:
                logger.warning(f"⚠️  Restart attempt {self._restart_attempts} failed: {e}")
                self._schedule_restart()
                return
            error = e

        self._restart_attempts = 0
        self._should_restart = False
        self._set_listening(False)
        self.error_handler.handle_error(ComponentError(
            component="recognition",
            severity=ErrorSeverity.RECOVERABLE,
            message="Recognition engine unavailable",
            exception=error,
            kind=RecognitionErrorKind.ENGINE_UNAVAILABLE.value
        ))

    def _set_listening(self, value: bool) -> None:
        if self._listening == value:
            return
        self._listening = value
        if self._on_listening_change:
            self._on_listening_change(value)
