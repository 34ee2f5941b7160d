"""
Pytest configuration and shared fixtures for voice orchestrator tests.

Engines are replaced by in-memory fakes and time by a manual scheduler, so
every test drives recognition results, playback completion and the clock
explicitly.
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from voice_orchestrator.interfaces import (  # noqa: E402
    EngineAlreadyStartedError,
    RecognitionEngineInterface,
    ResponseInterface,
    SynthesisEngineInterface,
)
from voice_orchestrator.models import RecognitionResult, UtteranceCallbacks, Voice, VoiceSettings  # noqa: E402


class FakeHandle:
    def __init__(self, when: float, seq: int, callback):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock: callbacks run only inside advance()."""

    def __init__(self):
        self.now = 0.0
        self._handles: List[FakeHandle] = []
        self._seq = 0

    def call_later(self, delay, callback):
        self._seq += 1
        handle = FakeHandle(self.now + max(0.0, delay), self._seq, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback()
        self.now = target
        self._handles = [h for h in self._handles if not h.cancelled]


class FakeRecognitionEngine(RecognitionEngineInterface):
    """Continuous recognizer that reports synchronously."""

    def __init__(self):
        super().__init__()
        self.running = False
        self.start_calls = 0
        self.stop_calls = 0
        self.fail_next_starts = 0
        self.results: List[RecognitionResult] = []

    def start(self):
        self.start_calls += 1
        if self.fail_next_starts:
            self.fail_next_starts -= 1
            raise RuntimeError("microphone unavailable")
        if self.running:
            raise EngineAlreadyStartedError("already started")
        self.running = True
        self.results = []
        self._emit_start()

    def stop(self):
        self.stop_calls += 1
        if not self.running:
            return
        self.running = False
        self._emit_end()

    def crash(self):
        """End without being asked to."""
        self.running = False
        self._emit_end()

    def hear(self, text: str, final: bool = True) -> None:
        """Report speech; a final replaces a pending interim at the same index."""
        if self.results and not self.results[-1].is_final:
            index = len(self.results) - 1
            self.results[index] = RecognitionResult(transcript=text, is_final=final)
        else:
            index = len(self.results)
            self.results.append(RecognitionResult(transcript=text, is_final=final))
        self._emit_result(index, list(self.results))

    def replay(self) -> None:
        """Re-report the whole history from index 0."""
        self._emit_result(0, list(self.results))

    def error(self, kind: str) -> None:
        self._emit_error(kind)


class FakeSynthesisEngine(SynthesisEngineInterface):
    """Synthesizer whose utterances finish only when the test says so."""

    def __init__(self, voices: Optional[List[Voice]] = None):
        self.voices = voices or []
        self.spoken: List[str] = []
        self.settings: List[VoiceSettings] = []
        self.current: Optional[UtteranceCallbacks] = None
        self.last_callbacks: Optional[UtteranceCallbacks] = None
        self.cancel_calls = 0
        self.fail_speak = False
        self.auto_start = True
        self.report_cancel = True

    def speak(self, text, settings, callbacks):
        if self.fail_speak:
            raise RuntimeError("audio device busy")
        self.spoken.append(text)
        self.settings.append(settings)
        self.current = callbacks
        self.last_callbacks = callbacks
        if self.auto_start:
            callbacks.on_start()

    def cancel(self):
        self.cancel_calls += 1
        callbacks, self.current = self.current, None
        if callbacks and self.report_cancel:
            callbacks.on_error("interrupted")

    def finish(self):
        callbacks, self.current = self.current, None
        callbacks.on_end()

    def fail(self, kind: str):
        callbacks, self.current = self.current, None
        callbacks.on_error(kind)

    def get_voices(self):
        return list(self.voices)


class FakeResponse(ResponseInterface):
    """Backend with canned replies, optional failure and an optional gate."""

    def __init__(self, replies: Optional[Dict[str, str]] = None,
                 fail_with: Optional[Exception] = None,
                 gated: bool = False):
        self.replies = replies or {}
        self.fail_with = fail_with
        self.gate = asyncio.Event() if gated else None
        self.received: List[str] = []
        self.reset_calls = 0
        self.cleaned_up = False

    async def initialize(self):
        return True

    async def respond(self, text):
        self.received.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return self.replies.get(text, f"eco: {text}")

    def reset(self):
        self.reset_calls += 1

    async def cleanup(self):
        self.cleaned_up = True


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def recognition_engine():
    return FakeRecognitionEngine()


@pytest.fixture
def synthesis_engine():
    return FakeSynthesisEngine()


@pytest.fixture
def portuguese_voices():
    return [
        Voice(name="Google US English", lang="en-US", id="en-1"),
        Voice(name="Joana", lang="pt-PT", id="pt-pt-1"),
        Voice(name="Luciana", lang="pt-BR", id="pt-br-1"),
    ]


@pytest.fixture
def voiced_synthesis_engine(portuguese_voices):
    return FakeSynthesisEngine(voices=portuguese_voices)
