"""
Abstract interface for speech synthesis engines.
"""

from abc import ABC, abstractmethod
from typing import List
from ..models.data_models import UtteranceCallbacks, Voice, VoiceSettings


class SynthesisEngineInterface(ABC):
    """Abstract base class for all speech synthesis engines."""

    @abstractmethod
    def speak(self, text: str, settings: VoiceSettings, callbacks: UtteranceCallbacks) -> None:
        """
        Queue ``text`` for playback.

        The engine reports on_start when audio begins, then either on_end or
        on_error(kind). A cancelled utterance reports on_error("interrupted")
        or on_error("canceled").

        Args:
            text: Text to speak
            settings: Pitch, rate, volume and voice to use
            callbacks: Callbacks for this utterance only
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop the current utterance and drop anything queued."""
        pass

    def get_voices(self) -> List[Voice]:
        """
        List the voices this engine can use.

        Returns:
            List of available voices (may be empty)
        """
        return []

    async def cleanup(self) -> None:
        """Release engine resources."""
        pass
