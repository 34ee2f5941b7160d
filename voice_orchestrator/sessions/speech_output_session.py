"""
Speech output session: one synthesis playback at a time.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

from ..interfaces.synthesis import SynthesisEngineInterface
from ..models.data_models import SynthesisErrorKind, UtteranceCallbacks, Voice, VoiceSettings
from ..utils.error_handling import ErrorHandler, ComponentError, ErrorSeverity
from ..utils.logging_config import get_logger
from ..utils.voice_selection import select_preferred_voice, find_voice


logger = get_logger("speech")

_NORMAL_STOPS = (SynthesisErrorKind.INTERRUPTED.value, SynthesisErrorKind.CANCELED.value)


@dataclass
class PlaybackOutcome:
    """How a playback finished."""
    playback_id: int
    interrupted: bool = False
    error: Optional[str] = None


class _Playback:
    __slots__ = ('id', 'text', 'started', 'ended')

    def __init__(self, playback_id: int, text: str):
        self.id = playback_id
        self.text = text
        self.started = False
        self.ended = False


class SpeechOutputSession:
    """
    Wraps a synthesis engine with clean interruption semantics.

    - speak() always cancels the current playback first
    - every speak() resolves exactly one PlaybackEnded, however it finishes
    - cancel() resolves the pending playback immediately as interrupted, so a
      missing engine callback can never stall the caller
    """

    def __init__(
        self,
        engine: SynthesisEngineInterface,
        *,
        settings: Optional[VoiceSettings] = None,
        language: str = "pt-BR",
        preferred_voices: Optional[List[str]] = None,
        error_handler: Optional[ErrorHandler] = None,
        on_playback_started: Optional[Callable[[int], None]] = None,
        on_playback_ended: Optional[Callable[[PlaybackOutcome], None]] = None,
    ):
        self._engine = engine
        self.settings = settings or VoiceSettings()
        self.language = language
        self._preferred_voices = preferred_voices
        self.error_handler = error_handler or ErrorHandler()
        self._on_playback_started = on_playback_started
        self._on_playback_ended = on_playback_ended

        self._current: Optional[_Playback] = None
        self._next_id = 0
        self._closed = False

        self._voices: List[Voice] = []
        self._selected_voice: Optional[Voice] = None
        self.refresh_voices()

    # ------------------------------------------------------------------
    # Voices and settings
    # ------------------------------------------------------------------

    @property
    def voices(self) -> List[Voice]:
        return list(self._voices)

    @property
    def selected_voice(self) -> Optional[Voice]:
        return self._selected_voice

    def refresh_voices(self) -> Optional[Voice]:
        """
        Reload the engine's voice list and pick a voice.

        An explicit ``settings.voice_name`` wins when the engine has it;
        otherwise the preferred-voice fallback chain decides.

        Returns:
            The selected voice, if any
        """
        try:
            self._voices = list(self._engine.get_voices())
        except Exception as e:
            logger.warning(f"⚠️  Could not list voices: {e}")
            self._voices = []

        voice = None
        if self.settings.voice_name:
            voice = find_voice(self._voices, self.settings.voice_name)
        if voice is None:
            voice = select_preferred_voice(self._voices, self.language, self._preferred_voices)

        self._selected_voice = voice
        if voice:
            logger.info(f"🎤 Selected voice: {voice.name} ({voice.lang})")
        return voice

    def select_voice(self, voice: Voice) -> None:
        self._selected_voice = voice

    def update_settings(self, **changes) -> VoiceSettings:
        """
        Update prosody settings for subsequent utterances.

        Args:
            **changes: Any of pitch, rate, volume, voice_name

        Returns:
            The new settings
        """
        self.settings = self.settings.merged(**changes)
        if changes.get('voice_name'):
            voice = find_voice(self._voices, changes['voice_name'])
            if voice:
                self._selected_voice = voice
        return self.settings

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    @property
    def speaking(self) -> bool:
        return self._current is not None

    @property
    def current_playback_id(self) -> Optional[int]:
        return self._current.id if self._current else None

    def speak(self, text: str) -> Optional[int]:
        """
        Start speaking ``text``, cancelling anything already playing.

        Args:
            text: Reply to speak

        Returns:
            Playback id, or None if there was nothing to say
        """
        if self._closed:
            logger.warning("🚫 speak() on a closed speech session ignored")
            return None

        text = (text or "").strip()
        if not text:
            return None

        if self._current is not None:
            self.cancel()

        self._next_id += 1
        playback = _Playback(self._next_id, text)
        self._current = playback

        settings = self.settings
        if self._selected_voice:
            settings = settings.merged(voice_name=self._selected_voice.name)

        callbacks = UtteranceCallbacks(
            on_start=lambda: self._handle_start(playback),
            on_end=lambda: self._finish(playback),
            on_error=lambda kind: self._handle_error(playback, kind),
        )

        preview = text[:50] + ("..." if len(text) > 50 else "")
        logger.info(f"🔊 Speaking: {preview}")
        try:
            self._engine.speak(text, settings, callbacks)
        except Exception as e:
            self.error_handler.handle_error(ComponentError(
                component="speech",
                severity=ErrorSeverity.RECOVERABLE,
                message="Speech output failed to start",
                exception=e,
                kind=SynthesisErrorKind.SYNTHESIS_FAILED.value
            ))
            self._finish(playback, error=SynthesisErrorKind.SYNTHESIS_FAILED.value)

        return playback.id

    def cancel(self) -> bool:
        """
        Stop the current playback.

        Returns:
            True if something was playing
        """
        playback = self._current
        if playback is None:
            return False

        logger.info("🛑 Cancelling speech output")
        try:
            self._engine.cancel()
        except Exception as e:
            logger.debug(f"Engine cancel error (ignored): {e}")

        self._finish(playback, interrupted=True)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self.cancel()
        self._closed = True

    # ------------------------------------------------------------------
    # Engine callbacks
    # ------------------------------------------------------------------

    def _handle_start(self, playback: _Playback) -> None:
        if playback.ended or playback.started:
            return
        playback.started = True
        if self._on_playback_started:
            self._on_playback_started(playback.id)

    def _handle_error(self, playback: _Playback, kind) -> None:
        kind = getattr(kind, 'value', kind)
        if kind in _NORMAL_STOPS:
            self._finish(playback, interrupted=True)
            return

        if not playback.ended:
            self.error_handler.handle_error(ComponentError(
                component="speech",
                severity=ErrorSeverity.RECOVERABLE,
                message=f"Speech synthesis error: {kind}",
                kind=kind
            ))
        self._finish(playback, error=kind)

    def _finish(self, playback: _Playback, interrupted: bool = False, error: Optional[str] = None) -> None:
        if playback.ended:
            return
        playback.ended = True
        if self._current is playback:
            self._current = None

        if self._on_playback_ended:
            self._on_playback_ended(PlaybackOutcome(
                playback_id=playback.id,
                interrupted=interrupted,
                error=error
            ))
