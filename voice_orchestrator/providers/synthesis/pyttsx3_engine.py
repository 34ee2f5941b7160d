"""
Offline speech synthesis with pyttsx3.

pyttsx3.init() hands back one cached engine per driver, and that engine runs a
single loop at a time. All engine calls therefore happen on one long-lived
worker thread that plays queued utterances in order.
"""

import asyncio
import queue
import threading
from typing import Any, Dict, List, Optional

import pyttsx3

from ...interfaces.synthesis import SynthesisEngineInterface
from ...models.data_models import SynthesisErrorKind, UtteranceCallbacks, Voice, VoiceSettings
from ...utils.logging_config import get_logger


logger = get_logger("pyttsx3")

_SHUTDOWN = object()


class _Utterance:
    __slots__ = ('text', 'settings', 'callbacks', 'loop', 'cancelled')

    def __init__(self, text: str, settings: VoiceSettings, callbacks: UtteranceCallbacks,
                 loop: asyncio.AbstractEventLoop):
        self.text = text
        self.settings = settings
        self.callbacks = callbacks
        self.loop = loop
        self.cancelled = threading.Event()

    def post(self, callback, *args) -> None:
        try:
            self.loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop closed during shutdown
            pass


class Pyttsx3SynthesisEngine(SynthesisEngineInterface):
    """
    Local TTS using pyttsx3.

    Features:
    - Zero latency (no API calls)
    - Offline operation
    - Instant interruption via engine.stop()

    pyttsx3 callbacks fire on the worker thread; they are marshalled onto the
    event loop with call_soon_threadsafe before reaching the caller.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Args:
            config: Configuration dictionary containing:
                - base_rate_wpm: Words per minute at rate 1.0 (default: 175)
                - init_timeout: Seconds to wait for the engine to start (default: 5.0)
        """
        config = config or {}
        self.base_rate_wpm = config.get('base_rate_wpm', 175)
        self.init_timeout = config.get('init_timeout', 5.0)

        self._lock = threading.Lock()
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._engine_ready = threading.Event()
        self._init_error: Optional[BaseException] = None
        self._engine = None

        self._current: Optional[_Utterance] = None  # Latest request, queued or playing
        self._playing: Optional[_Utterance] = None  # Inside runAndWait
        self._voices: Optional[List[Voice]] = None

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._engine_ready.clear()
                self._init_error = None
                self._worker = threading.Thread(
                    target=self._run_worker,
                    name="pyttsx3-worker",
                    daemon=True
                )
                self._worker.start()

        if not self._engine_ready.wait(self.init_timeout):
            raise RuntimeError("pyttsx3 engine did not start")
        if self._init_error is not None:
            raise RuntimeError(f"pyttsx3 engine failed to start: {self._init_error}")

    def _run_worker(self) -> None:
        try:
            engine = pyttsx3.init()
            self._voices = [self._to_voice(v) for v in engine.getProperty('voices') or []]
            token = engine.connect('started-utterance', self._on_started)
        except Exception as e:
            logger.error(f"❌ pyttsx3 init failed: {e}")
            self._init_error = e
            self._engine_ready.set()
            return

        self._engine = engine
        self._engine_ready.set()
        logger.debug(f"pyttsx3 worker ready, {len(self._voices)} voices")

        try:
            while True:
                item = self._queue.get()
                if item is _SHUTDOWN:
                    break
                self._play(engine, item)
        finally:
            engine.disconnect(token)
            self._engine = None

    def _on_started(self, name) -> None:
        with self._lock:
            utterance = self._playing
        if utterance is not None and not utterance.cancelled.is_set():
            utterance.post(utterance.callbacks.on_start)

    def _play(self, engine, utterance: _Utterance) -> None:
        if utterance.cancelled.is_set():
            utterance.post(utterance.callbacks.on_error, SynthesisErrorKind.CANCELED.value)
            return

        with self._lock:
            self._playing = utterance
        try:
            settings = utterance.settings
            engine.setProperty('rate', int(self.base_rate_wpm * settings.rate))
            engine.setProperty('volume', settings.volume)
            voice_id = self._voice_id(settings.voice_name)
            if voice_id:
                engine.setProperty('voice', voice_id)

            engine.say(utterance.text)
            if utterance.cancelled.is_set():
                # Drops the queued text before the loop ever runs it
                engine.stop()
            else:
                engine.runAndWait()
        except Exception as e:
            logger.error(f"❌ pyttsx3 playback failed: {e}")
            utterance.post(utterance.callbacks.on_error, SynthesisErrorKind.SYNTHESIS_FAILED.value)
            return
        finally:
            with self._lock:
                self._playing = None
                if self._current is utterance:
                    self._current = None

        if utterance.cancelled.is_set():
            utterance.post(utterance.callbacks.on_error, SynthesisErrorKind.INTERRUPTED.value)
        else:
            utterance.post(utterance.callbacks.on_end)

    # ------------------------------------------------------------------
    # Voices
    # ------------------------------------------------------------------

    def get_voices(self) -> List[Voice]:
        if self._voices is None:
            self._ensure_worker()
        return list(self._voices or [])

    @staticmethod
    def _to_voice(raw) -> Voice:
        languages = getattr(raw, 'languages', None) or []
        lang = ""
        if languages:
            lang = languages[0]
            if isinstance(lang, bytes):
                # espeak reports e.g. b'\x05pt-br'
                lang = lang.decode('utf-8', errors='ignore').lstrip('\x05')
        return Voice(name=raw.name, lang=str(lang).replace('_', '-'), id=raw.id)

    def _voice_id(self, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        for voice in self._voices or []:
            if voice.name == name:
                return voice.id
        return None

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def speak(self, text: str, settings: VoiceSettings, callbacks: UtteranceCallbacks) -> None:
        loop = asyncio.get_running_loop()
        self.cancel()
        self._ensure_worker()

        utterance = _Utterance(text, settings, callbacks, loop)
        with self._lock:
            self._current = utterance
        self._queue.put(utterance)

    def cancel(self) -> None:
        with self._lock:
            utterance = self._current
            self._current = None
            playing = self._playing
        if utterance is None:
            return

        utterance.cancelled.set()
        engine = self._engine
        if playing is utterance and engine is not None:
            try:
                engine.stop()
            except Exception as e:
                logger.debug(f"pyttsx3 stop error: {e}")

    async def cleanup(self) -> None:
        self.cancel()
        worker = self._worker
        if worker is not None and worker.is_alive():
            self._queue.put(_SHUTDOWN)
            await asyncio.get_running_loop().run_in_executor(None, worker.join, 2.0)
        self._worker = None
