"""
Abstract interface for continuous speech recognition engines.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from ..models.data_models import RecognitionCallbacks, RecognitionResult


class EngineAlreadyStartedError(RuntimeError):
    """Raised by an engine when start() is called while it is running."""


class RecognitionEngineInterface(ABC):
    """
    Abstract base class for continuous recognition engines.

    Engines report through the attached callbacks:
    - on_start() once audio capture is live
    - on_result(result_index, results) where ``results`` is the engine's
      full result list for the current run and ``result_index`` is the first
      entry that changed since the previous event (monotonic within a run)
    - on_error(kind) with a RecognitionErrorKind value or engine-specific string
    - on_end() whenever the engine stops, requested or not

    Callbacks must be invoked on the event loop thread.
    """

    def __init__(self):
        self._callbacks: Optional[RecognitionCallbacks] = None

    def attach(self, callbacks: Optional[RecognitionCallbacks]) -> None:
        """
        Attach (or detach with None) the callback set.

        Args:
            callbacks: Callbacks owned by the session wrapping this engine
        """
        self._callbacks = callbacks

    @abstractmethod
    def start(self) -> None:
        """
        Start recognition.

        Raises:
            EngineAlreadyStartedError: If the engine is already running
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Request the engine to stop; on_end follows asynchronously."""
        pass

    @property
    def is_supported(self) -> bool:
        """Whether the engine can run in this environment."""
        return True

    async def cleanup(self) -> None:
        """Release engine resources (connections, devices)."""
        pass

    def _emit_start(self) -> None:
        if self._callbacks:
            self._callbacks.on_start()

    def _emit_end(self) -> None:
        if self._callbacks:
            self._callbacks.on_end()

    def _emit_result(self, result_index: int, results: List[RecognitionResult]) -> None:
        if self._callbacks:
            self._callbacks.on_result(result_index, results)

    def _emit_error(self, kind: str) -> None:
        if self._callbacks:
            self._callbacks.on_error(kind)
