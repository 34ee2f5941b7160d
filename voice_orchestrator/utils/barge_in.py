"""
Barge-in detection for voice interruption during playback.

Recognition keeps running while the assistant speaks; any new speech the
recognizer reports is treated as the user starting to talk, subject to the
thresholds below.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class BargeInMode(Enum):
    """Barge-in detection modes."""
    TRANSCRIPT = "transcript"  # Any recognized speech above the threshold
    DISABLED = "disabled"      # Playback always runs to completion


@dataclass
class BargeInConfig:
    """Configuration for barge-in detection."""
    mode: BargeInMode = BargeInMode.TRANSCRIPT
    min_chars: int = 1  # Minimum stripped length of newly heard text
    cooldown_after_playback_start: float = 0.0  # Ignore speech for the first N seconds


class BargeInDetector:
    """Decides whether newly heard text should interrupt playback."""

    def __init__(self, config: Optional[BargeInConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config or BargeInConfig()
        self._clock = clock
        self._playback_started_at: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self.config.mode != BargeInMode.DISABLED

    def playback_started(self) -> None:
        self._playback_started_at = self._clock()

    def playback_ended(self) -> None:
        self._playback_started_at = None

    def should_interrupt(self, heard_text: str) -> bool:
        """
        Check newly heard text against the configured thresholds.

        Args:
            heard_text: Text from the latest recognition update (interim or final)

        Returns:
            True if playback should be cancelled
        """
        if not self.enabled:
            return False

        text = (heard_text or "").strip()
        if len(text) < max(1, self.config.min_chars):
            return False

        cooldown = self.config.cooldown_after_playback_start
        if cooldown > 0 and self._playback_started_at is not None:
            if self._clock() - self._playback_started_at < cooldown:
                return False

        return True
