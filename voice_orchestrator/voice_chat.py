"""
Stand-alone voice chat: dictate one message, optionally hear replies.

Unlike a call, listening stops after each committed message and only
resumes when the user asks for it again.
"""

from typing import Callable, List, Optional

from .config_models import OrchestratorConfig
from .interfaces.recognition import RecognitionEngineInterface
from .interfaces.synthesis import SynthesisEngineInterface
from .models.data_models import Voice, VoiceSettings
from .sessions.recognition_session import RecognitionSession
from .sessions.speech_output_session import SpeechOutputSession
from .utils.error_handling import ComponentError, ErrorHandler
from .utils.logging_config import get_logger
from .utils.scheduling import Scheduler, LoopScheduler


logger = get_logger("voice_chat")


class VoiceChat:
    """
    Push-to-talk dictation with spoken replies.

    Args:
        recognition_engine: Continuous speech recognition engine
        synthesis_engine: Speech synthesis engine
        config: Orchestrator configuration (chat silence window, voice settings)
        voice_enabled: Speak replies passed to speak()
        keep_listening_while_speaking: When False, starting to listen
            cancels the current reply
        on_final_transcript: Called with each committed message
        on_transcript: Called with the live transcript
        on_listening_change: Called when listening starts or stops
        on_error: Called with user-visible errors
    """

    def __init__(
        self,
        recognition_engine: RecognitionEngineInterface,
        synthesis_engine: SynthesisEngineInterface,
        *,
        config: Optional[OrchestratorConfig] = None,
        scheduler: Optional[Scheduler] = None,
        error_handler: Optional[ErrorHandler] = None,
        voice_enabled: bool = True,
        keep_listening_while_speaking: bool = False,
        on_final_transcript: Optional[Callable[[str], None]] = None,
        on_transcript: Optional[Callable[[str], None]] = None,
        on_listening_change: Optional[Callable[[bool], None]] = None,
        on_error: Optional[Callable[[ComponentError], None]] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.voice_enabled = voice_enabled
        self.keep_listening_while_speaking = keep_listening_while_speaking

        self.on_final_transcript = on_final_transcript
        self.on_transcript = on_transcript
        self.on_listening_change = on_listening_change
        self.on_error = on_error

        self.error_handler = error_handler or ErrorHandler()
        self.error_handler.add_listener(self._on_component_error)

        self._last_spoken_message_id: Optional[str] = None
        scheduler = scheduler or LoopScheduler()

        self._recognition = RecognitionSession(
            recognition_engine,
            silence_window=self.config.turn_taking.chat_silence_window,
            restart_delay=self.config.recognition.restart_delay,
            max_restart_attempts=self.config.recognition.max_restart_attempts,
            # Listening stops after every message, which already clears the engine
            restart_on_commit=False,
            scheduler=scheduler,
            error_handler=self.error_handler,
            on_transcript=self._handle_transcript,
            on_commit=self._handle_commit,
            on_listening_change=self._handle_listening_change,
        )
        self._speech = SpeechOutputSession(
            synthesis_engine,
            settings=self.config.voice.to_settings(),
            language=self.config.recognition.language,
            preferred_voices=self.config.voice.preferred_voices,
            error_handler=self.error_handler,
        )
        self._recognition_engine = recognition_engine
        self._synthesis_engine = synthesis_engine

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_listening(self) -> bool:
        return self._recognition.listening

    @property
    def is_speaking(self) -> bool:
        return self._speech.speaking

    @property
    def is_supported(self) -> bool:
        return self._recognition_engine.is_supported

    @property
    def transcript(self) -> str:
        return self._recognition.transcript

    @property
    def available_voices(self) -> List[Voice]:
        return self._speech.voices

    @property
    def selected_voice(self) -> Optional[Voice]:
        return self._speech.selected_voice

    @property
    def voice_settings(self) -> VoiceSettings:
        return self._speech.settings

    # ------------------------------------------------------------------
    # Listening
    # ------------------------------------------------------------------

    def start_listening(self) -> None:
        if not self.keep_listening_while_speaking:
            self._speech.cancel()
        self._recognition.start()

    def stop_listening(self) -> str:
        """
        Stop listening.

        Returns:
            Text dictated so far (not committed)
        """
        return self._recognition.stop()

    def toggle_listening(self) -> str:
        """
        Start or stop listening.

        Returns:
            Dictated text when stopping, "" when starting
        """
        if self.is_listening:
            return self.stop_listening()
        self.start_listening()
        return ""

    # ------------------------------------------------------------------
    # Speaking
    # ------------------------------------------------------------------

    def speak(self, text: str) -> Optional[int]:
        """Speak a reply if voice output is enabled."""
        if not self.voice_enabled:
            return None
        return self._speech.speak(text)

    def stop_speaking(self) -> bool:
        return self._speech.cancel()

    def speak_message(self, message_id: str, text: str) -> bool:
        """
        Speak an assistant message once per message id.

        Returns:
            True if the message was spoken
        """
        if message_id == self._last_spoken_message_id:
            return False
        if self.speak(text) is None:
            return False
        self._last_spoken_message_id = message_id
        return True

    def update_voice_settings(self, **changes) -> VoiceSettings:
        return self._speech.update_settings(**changes)

    def select_voice(self, voice: Voice) -> None:
        self._speech.select_voice(voice)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._recognition.close()
        self._speech.close()

    async def cleanup(self) -> None:
        self.close()
        await self._recognition_engine.cleanup()
        await self._synthesis_engine.cleanup()

    # ------------------------------------------------------------------
    # Session callbacks
    # ------------------------------------------------------------------

    def _handle_transcript(self, display: str, heard: str) -> None:
        if self.on_transcript:
            self.on_transcript(display)

    def _handle_commit(self, text: str) -> None:
        if not text:
            return
        logger.info(f"💬 Dictated: {text}")
        self._recognition.stop()
        if self.on_final_transcript:
            self.on_final_transcript(text)

    def _handle_listening_change(self, listening: bool) -> None:
        if self.on_listening_change:
            self.on_listening_change(listening)

    def _on_component_error(self, error: ComponentError) -> None:
        if error.is_user_visible and self.on_error:
            self.on_error(error)
