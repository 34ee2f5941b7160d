"""
Restartable silence debounce timer.
"""

from typing import Callable, Optional

from .scheduling import Cancellable, Scheduler, LoopScheduler


# Silence windows in seconds
CHAT_SILENCE_WINDOW = 1.5
CALL_SILENCE_WINDOW = 2.0


class SilenceCommitTimer:
    """
    Fires ``on_commit_due`` once after a quiet period.

    Arming while a countdown is pending replaces it (last arm wins), so the
    timer always measures silence since the most recent final fragment.
    """

    def __init__(
        self,
        on_commit_due: Callable[[], None],
        duration: float = CHAT_SILENCE_WINDOW,
        scheduler: Optional[Scheduler] = None
    ):
        self._on_commit_due = on_commit_due
        self.duration = duration
        self._scheduler = scheduler or LoopScheduler()
        self._handle: Optional[Cancellable] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self, duration: Optional[float] = None) -> None:
        """
        (Re)start the countdown.

        Args:
            duration: Override for this arm only; defaults to ``self.duration``
        """
        self.cancel()
        self._generation += 1
        generation = self._generation
        self._handle = self._scheduler.call_later(
            self.duration if duration is None else duration,
            lambda: self._expire(generation)
        )

    def cancel(self) -> None:
        """Clear a pending countdown; no-op when idle."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _expire(self, generation: int) -> None:
        # A handle that slipped past cancel() belongs to an older arm
        if generation != self._generation or self._handle is None:
            return
        self._handle = None
        self._on_commit_due()
