"""
Turn coordinator: the call-mode state machine.

Every input (public calls, engine callbacks, timers, backend completions)
becomes a TurnEvent posted to one queue and handled by one dispatch method.
A post made while an event is being handled is queued, never nested, so each
handler sees a consistent state.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Deque, Dict, List, Optional

from .config_models import OrchestratorConfig
from .interfaces.recognition import RecognitionEngineInterface
from .interfaces.response import ResponseInterface
from .interfaces.synthesis import SynthesisEngineInterface
from .models.data_models import CallSession, StateSnapshot, TurnState
from .sessions.recognition_session import RecognitionSession
from .sessions.speech_output_session import PlaybackOutcome, SpeechOutputSession
from .utils.barge_in import BargeInDetector
from .utils.error_handling import ComponentError, ErrorHandler, ErrorSeverity, safe_cleanup
from .utils.logging_config import get_logger, set_call_context
from .utils.scheduling import Cancellable, LoopScheduler, Scheduler
from .utils.state_machine import TurnStateMachine


logger = get_logger("coordinator")


class EventKind(Enum):
    """Inputs the coordinator reacts to."""
    START_CALL = auto()
    END_CALL = auto()
    TOGGLE_MUTE = auto()
    START_LISTENING = auto()      # Delayed start after call start or playback end
    COMMIT_DUE = auto()           # Recognition committed an utterance
    RESPONSE_READY = auto()       # Backend reply
    RESPONSE_FAILED = auto()
    RESPONSE_RECEIVED = auto()    # Host says the reply arrived elsewhere
    SPEAK_RESPONSE = auto()       # Host-driven reply
    PLAYBACK_STARTED = auto()
    PLAYBACK_ENDED = auto()
    TRANSCRIPT_UPDATED = auto()
    LISTENING_CHANGED = auto()


@dataclass
class TurnEvent:
    """One queued input, tagged with the call it belongs to."""
    kind: EventKind
    call_id: int = 0
    text: str = ""
    payload: Any = None


class TurnCoordinator:
    """
    Drives one voice call: listen, commit, reply, speak, resume.

    The coordinator is the only writer of the CallSession. Recognition and
    speech sessions are created on start_call and discarded on end_call;
    the engines they wrap live as long as the coordinator.
    """

    def __init__(
        self,
        recognition_engine: RecognitionEngineInterface,
        synthesis_engine: SynthesisEngineInterface,
        response: Optional[ResponseInterface] = None,
        *,
        config: Optional[OrchestratorConfig] = None,
        scheduler: Optional[Scheduler] = None,
        error_handler: Optional[ErrorHandler] = None,
        on_committed_utterance: Optional[Callable[[str], None]] = None,
        on_state_change: Optional[Callable[[StateSnapshot], None]] = None,
        on_transcript: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[ComponentError], None]] = None,
    ):
        """
        Args:
            recognition_engine: Continuous speech recognition engine
            synthesis_engine: Speech synthesis engine
            response: Optional reply backend; without one the host answers
                through speak_response() / mark_response_received()
            config: Orchestrator configuration (defaults used when omitted)
            scheduler: Delayed-callback scheduler (defaults to the running loop)
            error_handler: Shared error handler
            on_committed_utterance: Called with every non-empty committed utterance
            on_state_change: Called with each new StateSnapshot
            on_transcript: Called with the live transcript
            on_error: Called with user-visible errors
        """
        self.config = config or OrchestratorConfig()
        self._recognition_engine = recognition_engine
        self._synthesis_engine = synthesis_engine
        self._response = response
        self._scheduler = scheduler or LoopScheduler()

        self.error_handler = error_handler or ErrorHandler()
        self.error_handler.add_listener(self._on_component_error)

        self.on_committed_utterance = on_committed_utterance
        self.on_state_change = on_state_change
        self.on_transcript = on_transcript
        self.on_error = on_error

        self.state_machine = TurnStateMachine()
        self.barge_in = BargeInDetector(self.config.barge_in.to_detector_config())
        self.voice_settings = self.config.voice.to_settings()

        self._call: Optional[CallSession] = None
        self._call_id = 0
        self._recognition: Optional[RecognitionSession] = None
        self._speech: Optional[SpeechOutputSession] = None
        self._playback_id: Optional[int] = None
        self._response_task: Optional[asyncio.Task] = None
        self._pending_actions: List[Cancellable] = []
        self._last_spoken_message_id: Optional[str] = None

        self._queue: Deque[TurnEvent] = deque()
        self._dispatching = False
        self._last_snapshot: Optional[StateSnapshot] = None

        self._handlers: Dict[EventKind, Callable[[TurnEvent], None]] = {
            EventKind.START_CALL: self._on_start_call,
            EventKind.END_CALL: self._on_end_call,
            EventKind.TOGGLE_MUTE: self._on_toggle_mute,
            EventKind.START_LISTENING: self._on_start_listening,
            EventKind.COMMIT_DUE: self._on_commit_due,
            EventKind.RESPONSE_READY: self._on_response_ready,
            EventKind.RESPONSE_FAILED: self._on_response_failed,
            EventKind.RESPONSE_RECEIVED: self._on_response_received,
            EventKind.SPEAK_RESPONSE: self._on_speak_response,
            EventKind.PLAYBACK_STARTED: self._on_playback_started,
            EventKind.PLAYBACK_ENDED: self._on_playback_ended,
            EventKind.TRANSCRIPT_UPDATED: self._on_transcript_updated,
            EventKind.LISTENING_CHANGED: self._on_listening_changed,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> TurnState:
        return self.state_machine.current_state

    @property
    def call(self) -> Optional[CallSession]:
        return self._call

    @property
    def recognition(self) -> Optional[RecognitionSession]:
        return self._recognition

    @property
    def speech(self) -> Optional[SpeechOutputSession]:
        return self._speech

    @property
    def snapshot(self) -> StateSnapshot:
        call = self._call
        return StateSnapshot(
            state=self.state,
            is_listening=bool(call and call.listening),
            is_speaking=bool(call and call.speaking),
            is_processing=bool(call and call.processing_pending),
            is_muted=bool(call and call.muted),
            transcript=self._recognition.transcript if self._recognition else ""
        )

    def start_call(self) -> None:
        """Start a call; listening begins after the call start delay."""
        self._post(TurnEvent(EventKind.START_CALL))

    def end_call(self) -> None:
        """End the call, dropping any in-flight work."""
        self._post(TurnEvent(EventKind.END_CALL, self._call_id))

    def toggle_mute(self) -> None:
        self._post(TurnEvent(EventKind.TOGGLE_MUTE, self._call_id))

    def speak_response(self, text: str) -> None:
        """Speak a reply produced by the host."""
        self._post(TurnEvent(EventKind.SPEAK_RESPONSE, self._call_id, text=text))

    def mark_response_received(self) -> None:
        """Clear the processing flag when the host handles the reply itself."""
        self._post(TurnEvent(EventKind.RESPONSE_RECEIVED, self._call_id))

    def speak_message(self, message_id: str, text: str) -> bool:
        """
        Speak an assistant message once per message id.

        Args:
            message_id: Host identifier of the assistant message
            text: Message content

        Returns:
            True if the message was sent to speech output
        """
        if self._call is None or message_id == self._last_spoken_message_id:
            return False
        self._last_spoken_message_id = message_id
        self.speak_response(text)
        return True

    def reset_conversation(self) -> None:
        """Forget the backend's conversation history."""
        if self._response:
            self._response.reset()

    async def wait_for_response(self) -> None:
        """Wait until the in-flight backend request (if any) settles."""
        task = self._response_task
        if task is not None and not task.done():
            await asyncio.wait([task])

    def get_status(self) -> Dict[str, Any]:
        """Get comprehensive coordinator status."""
        return {
            'snapshot': self.snapshot.to_dict(),
            'call_active': self._call is not None,
            'state_machine': self.state_machine.get_status(),
            'recent_transitions': [
                {
                    'from': t.from_state.value,
                    'to': t.to_state.value,
                    'reason': t.reason,
                    'timestamp': t.timestamp,
                }
                for t in self.state_machine.get_transition_history()
            ],
            'errors': self.error_handler.get_error_summary(),
        }

    async def cleanup(self) -> None:
        """End any call and release engines and the backend."""
        logger.info("🧹 Cleaning up coordinator...")
        if self._call is not None:
            self.end_call()
        if self._response_task is not None and not self._response_task.done():
            await asyncio.wait([self._response_task])

        for name, cleanup in (
            ("recognition", self._recognition_engine.cleanup),
            ("synthesis", self._synthesis_engine.cleanup),
            ("response", self._response.cleanup if self._response else None),
        ):
            if cleanup is None:
                continue
            try:
                await cleanup()
            except Exception as e:
                logger.warning(f"⚠️  {name} cleanup error: {e}")
        logger.info("✅ Coordinator cleaned up")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _post(self, event: TurnEvent) -> None:
        self._queue.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                self._dispatch(self._queue.popleft())
        finally:
            self._dispatching = False

    def _dispatch(self, event: TurnEvent) -> None:
        if event.kind != EventKind.START_CALL and self._is_stale(event):
            logger.debug(f"Dropping stale {event.kind.name} (call {event.call_id})")
            return

        try:
            self._handlers[event.kind](event)
        except Exception as e:
            logger.exception(f"❌ Handler for {event.kind.name} failed: {e}")
        self._emit_snapshot()

    def _is_stale(self, event: TurnEvent) -> bool:
        return self._call is None or event.call_id != self._call_id

    def _emit_snapshot(self) -> None:
        snapshot = self.snapshot
        if snapshot == self._last_snapshot:
            return
        self._last_snapshot = snapshot
        if self.on_state_change:
            self.on_state_change(snapshot)

    def _enter(self, state: TurnState, reason: str) -> bool:
        changed = self.state_machine.transition_to(state, reason)
        set_call_context(self._call_id, state.value)
        if self._recognition is not None:
            if state in (TurnState.PROCESSING, TurnState.SPEAKING):
                self._recognition.hold_commits()
            elif state == TurnState.LISTENING:
                self._recognition.release_commits()
        return changed

    def _schedule(self, delay: float, kind: EventKind) -> None:
        call_id = self._call_id
        handle = self._scheduler.call_later(
            delay, lambda: self._post(TurnEvent(kind, call_id))
        )
        self._pending_actions.append(handle)

    def _cancel_pending_actions(self) -> None:
        for handle in self._pending_actions:
            handle.cancel()
        self._pending_actions.clear()

    def _contract_violation(self, message: str) -> None:
        self.error_handler.handle_error(ComponentError(
            component="coordinator",
            severity=ErrorSeverity.CONTRACT,
            message=message
        ))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_start_call(self, event: TurnEvent) -> None:
        if self._call is not None:
            self._contract_violation("start_call while a call is active")
            return

        self._call_id += 1
        call_id = self._call_id
        self._call = CallSession(active=True)
        self._last_spoken_message_id = None
        logger.info(f"📞 Call {call_id} started")

        recognition_config = self.config.recognition
        self._recognition = RecognitionSession(
            self._recognition_engine,
            silence_window=self.config.turn_taking.call_silence_window,
            restart_delay=recognition_config.restart_delay,
            max_restart_attempts=recognition_config.max_restart_attempts,
            restart_on_commit=recognition_config.restart_on_commit,
            scheduler=self._scheduler,
            error_handler=self.error_handler,
            on_transcript=lambda display, heard: self._post(TurnEvent(
                EventKind.TRANSCRIPT_UPDATED, call_id, text=display, payload=heard
            )),
            on_commit=lambda text: self._post(TurnEvent(EventKind.COMMIT_DUE, call_id, text=text)),
            on_listening_change=lambda value: self._post(TurnEvent(
                EventKind.LISTENING_CHANGED, call_id, payload=value
            )),
        )
        self._speech = SpeechOutputSession(
            self._synthesis_engine,
            settings=self.voice_settings,
            language=recognition_config.language,
            preferred_voices=self.config.voice.preferred_voices,
            error_handler=self.error_handler,
            on_playback_started=lambda playback_id: self._post(TurnEvent(
                EventKind.PLAYBACK_STARTED, call_id, payload=playback_id
            )),
            on_playback_ended=lambda outcome: self._post(TurnEvent(
                EventKind.PLAYBACK_ENDED, call_id, payload=outcome
            )),
        )

        self._enter(TurnState.LISTENING, "start_call")
        self._schedule(self.config.turn_taking.call_start_delay, EventKind.START_LISTENING)

    def _on_end_call(self, event: TurnEvent) -> None:
        logger.info(f"📴 Call {self._call_id} ending")
        self._cancel_pending_actions()

        if self._response_task is not None and not self._response_task.done():
            self._response_task.cancel()
        self._response_task = None

        recognition, speech = self._recognition, self._speech
        self._call = None
        self._recognition = None
        self._speech = None
        self._playback_id = None
        self.barge_in.playback_ended()

        errors = safe_cleanup(
            recognition.close if recognition else (lambda: None),
            speech.close if speech else (lambda: None),
        )
        if errors:
            logger.warning(f"⚠️  {len(errors)} session close errors")

        if self._response:
            self._response.reset()
        self.state_machine.reset("end_call")
        set_call_context(None)

    def _on_toggle_mute(self, event: TurnEvent) -> None:
        call = self._call
        call.muted = not call.muted

        if call.muted:
            logger.info("🔇 Muted")
            self._recognition.stop()
            return

        logger.info("🔊 Unmuted")
        if self.state != TurnState.SPEAKING:
            self._recognition.start()

    def _on_start_listening(self, event: TurnEvent) -> None:
        if self._call.muted or self.state == TurnState.SPEAKING:
            return
        recognition = self._recognition
        if recognition.listening and recognition.should_restart:
            return
        recognition.start()

    def _on_commit_due(self, event: TurnEvent) -> None:
        text = event.text.strip()
        if not text:
            logger.debug("Empty commit discarded")
            return

        if self.state != TurnState.LISTENING:
            self._contract_violation(f"commit while {self.state.value}")
            return

        logger.info(f"💬 User: {text}")
        self._recognition.timer.cancel()
        self._enter(TurnState.PROCESSING, "commit")
        self._call.processing_pending = True

        if self.on_committed_utterance:
            self.on_committed_utterance(text)

        if self._response is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                self._post(TurnEvent(
                    EventKind.RESPONSE_FAILED,
                    self._call_id,
                    payload=RuntimeError("reply generation needs a running asyncio event loop")
                ))
                return
            self._response_task = loop.create_task(self._request_response(self._call_id, text))

    async def _request_response(self, call_id: int, text: str) -> None:
        try:
            reply = await self._response.respond(text)
        except asyncio.CancelledError:
            logger.debug("Backend request cancelled")
            raise
        except Exception as e:
            self._post(TurnEvent(EventKind.RESPONSE_FAILED, call_id, payload=e))
            return
        self._post(TurnEvent(EventKind.RESPONSE_READY, call_id, text=reply or ""))

    def _on_response_ready(self, event: TurnEvent) -> None:
        if self.state != TurnState.PROCESSING:
            logger.debug("Late reply dropped")
            return
        self._response_task = None
        self._speak(event.text)

    def _on_response_failed(self, event: TurnEvent) -> None:
        if self.state != TurnState.PROCESSING:
            return
        self._response_task = None
        self._call.processing_pending = False

        error = event.payload
        self.error_handler.handle_error(ComponentError(
            component="backend",
            severity=ErrorSeverity.BACKEND,
            message=f"Reply generation failed: {error}",
            exception=error if isinstance(error, BaseException) else None
        ))
        self._resume_listening("response_failed", delay=None)

    def _on_response_received(self, event: TurnEvent) -> None:
        if self.state != TurnState.PROCESSING:
            return
        self._call.processing_pending = False
        self._resume_listening("response_received", delay=None)

    def _on_speak_response(self, event: TurnEvent) -> None:
        self._speak(event.text)

    def _speak(self, text: str) -> None:
        self._call.processing_pending = False
        text = (text or "").strip()
        if not text:
            if self.state != TurnState.SPEAKING:
                self._resume_listening("empty_reply", delay=None)
            return

        logger.info(f"🤖 Assistant: {text[:80]}")
        self._enter(TurnState.SPEAKING, "reply")
        self._playback_id = self._speech.speak(text)

    def _on_playback_started(self, event: TurnEvent) -> None:
        if event.payload != self._playback_id:
            return
        self._call.speaking = True
        self.barge_in.playback_started()

    def _on_playback_ended(self, event: TurnEvent) -> None:
        outcome: PlaybackOutcome = event.payload
        if outcome.playback_id != self._playback_id:
            return

        self._playback_id = None
        self._call.speaking = False
        self.barge_in.playback_ended()

        if self.state != TurnState.SPEAKING:
            return

        if outcome.error:
            logger.warning(f"⚠️  Playback ended with error: {outcome.error}")
        self._resume_listening("playback_ended", delay=self.config.turn_taking.resume_listening_delay)

    def _on_transcript_updated(self, event: TurnEvent) -> None:
        if self.on_transcript:
            self.on_transcript(event.text)

        if self.state == TurnState.SPEAKING and self.barge_in.should_interrupt(event.payload or ""):
            logger.info(f"🛑 Barge-in: {event.payload}")
            # Leave SPEAKING first so the cancelled playback's end is not a resume
            self._enter(TurnState.LISTENING, "barge_in")
            self._call.speaking = False
            self.barge_in.playback_ended()
            self._speech.cancel()

    def _on_listening_changed(self, event: TurnEvent) -> None:
        self._call.listening = bool(event.payload)

    def _resume_listening(self, reason: str, delay: Optional[float]) -> None:
        self._enter(TurnState.LISTENING, reason)
        if self._call.muted:
            return
        if delay:
            self._schedule(delay, EventKind.START_LISTENING)
        else:
            self._on_start_listening(TurnEvent(EventKind.START_LISTENING, self._call_id))

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _on_component_error(self, error: ComponentError) -> None:
        if error.is_user_visible and self.on_error:
            self.on_error(error)
