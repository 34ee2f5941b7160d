"""
AssemblyAI v3 streaming recognition engine.

Audio is captured with a sounddevice callback stream and sent over an aiohttp
websocket. AssemblyAI reports "Turn" messages keyed by ``turn_order``; they
are mapped onto a growing result list so sessions see the same
``(result_index, results)`` shape as any continuous recognizer.

CRITICAL: the audio callback runs on PortAudio's thread. It only hands bytes
to the event loop with call_soon_threadsafe and never touches engine state.
"""

import asyncio
import json
import threading
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import aiohttp

from ...interfaces.recognition import RecognitionEngineInterface, EngineAlreadyStartedError
from ...models.data_models import RecognitionErrorKind, RecognitionResult
from ...utils.logging_config import get_logger


logger = get_logger("assemblyai")

STREAMING_URL = "wss://streaming.assemblyai.com/v3/ws"

# Refuse immediate restarts after repeated connection failures
MAX_CONNECT_FAILURES = 2
CONNECT_BACKOFF = 5.0


class AssemblyAIRecognitionEngine(RecognitionEngineInterface):
    """
    Continuous recognition over AssemblyAI's streaming API.

    start() schedules a run task on the current loop; the run emits on_start
    once both the websocket and the microphone are live, and on_end when it
    finishes for any reason.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary containing:
                - api_key: AssemblyAI API key (required)
                - sample_rate: Capture rate in Hz (default: 16000)
                - frames_per_buffer: Capture block size (default: 1024)
                - language: BCP-47 tag (default: "pt-BR")
                - device_index: Input device (default: system default)
                - latency: sounddevice latency hint (default: "high")
        """
        super().__init__()
        self.api_key = config.get('api_key')
        if not self.api_key:
            raise ValueError("AssemblyAI API key is required")

        self.sample_rate = config.get('sample_rate', 16000)
        self.frames_per_buffer = config.get('frames_per_buffer', 1024)
        self.language = config.get('language', 'pt-BR')
        self.format_turns = config.get('format_turns', True)
        self._device_index = config.get('device_index')
        self._latency = config.get('latency', 'high')

        params = {
            "sample_rate": self.sample_rate,
            "format_turns": str(self.format_turns).lower(),
        }
        if not self.language.lower().startswith("en"):
            params["speech_model"] = "universal-streaming-multilingual"
        self.api_endpoint = f"{STREAMING_URL}?{urlencode(params)}"

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._audio_stream = None
        self._audio_queue: Optional[asyncio.Queue] = None
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_flag = threading.Event()

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        self._results: List[RecognitionResult] = []
        self._turn_positions: Dict[int, int] = {}
        self.session_id: Optional[str] = None

        self._connect_failures = 0
        self._last_failure = 0.0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_supported(self) -> bool:
        try:
            import sounddevice  # noqa: F401
        except (ImportError, OSError):
            return False
        return True

    # ------------------------------------------------------------------
    # Engine interface
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.is_running:
            raise EngineAlreadyStartedError("AssemblyAI stream already running")

        if (self._connect_failures >= MAX_CONNECT_FAILURES
                and time.monotonic() - self._last_failure < CONNECT_BACKOFF):
            raise ConnectionError("AssemblyAI unreachable, backing off")

        self._stop_event = asyncio.Event()
        self._task = asyncio.ensure_future(self._run())

    def stop(self) -> None:
        if self.is_running and self._stop_event is not None:
            self._stop_event.set()

    async def cleanup(self) -> None:
        """Stop streaming and close the persistent HTTP session."""
        self.stop()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Turn messages
    # ------------------------------------------------------------------

    def reset_results(self) -> None:
        self._results = []
        self._turn_positions = {}

    def apply_turn(self, data: Dict[str, Any]) -> Optional[int]:
        """
        Fold one "Turn" message into the result list.

        Args:
            data: Decoded Turn message

        Returns:
            Index of the updated entry, or None if the message carried no text
        """
        transcript = data.get('transcript', '') or ''
        if not transcript.strip():
            return None

        turn_order = data.get('turn_order', len(self._turn_positions))
        end_of_turn = bool(data.get('end_of_turn', False))
        formatted = bool(data.get('turn_is_formatted', False))
        # With formatting on, the unformatted end-of-turn is followed by a formatted copy
        is_final = end_of_turn and (formatted or not self.format_turns)

        index = self._turn_positions.get(turn_order)
        if index is None:
            index = len(self._results)
            self._turn_positions[turn_order] = index
            self._results.append(RecognitionResult(transcript=transcript, is_final=is_final))
        elif self._results[index].is_final:
            return None
        else:
            self._results[index] = RecognitionResult(transcript=transcript, is_final=is_final)

        return index

    def handle_message(self, raw: str) -> bool:
        """
        Process one websocket text frame.

        Returns:
            False when the server terminated the session
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"⚠️  JSON decode error: {e}")
            return True

        msg_type = data.get('type')
        if msg_type == "Begin":
            self.session_id = data.get('id')
            logger.info(f"📝 Session started: {self.session_id}")
        elif msg_type == "Turn":
            index = self.apply_turn(data)
            if index is not None:
                self._emit_result(index, list(self._results))
        elif msg_type == "Termination":
            logger.info("📝 Session terminated")
            return False
        elif msg_type == "Error" or 'error' in data:
            logger.warning(f"⚠️  AssemblyAI error: {data.get('error', data)}")
        return True

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        self.reset_results()
        started = False
        try:
            await self._connect()
            self._open_audio()
            self._connect_failures = 0
            started = True
            self._emit_start()

            sender = asyncio.ensure_future(self._send_audio())
            receiver = asyncio.ensure_future(self._receive())
            stopper = asyncio.ensure_future(self._stop_event.wait())
            try:
                await asyncio.wait({receiver, stopper}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (sender, receiver, stopper):
                    task.cancel()
                await asyncio.gather(sender, receiver, stopper, return_exceptions=True)

        except asyncio.CancelledError:
            raise
        except aiohttp.ClientError as e:
            logger.warning(f"🌐 AssemblyAI connection error: {e}")
            self._record_failure(started)
            self._emit_error(RecognitionErrorKind.NETWORK.value)
        except Exception as e:
            logger.warning(f"🎙️  Audio capture error: {e}")
            self._record_failure(started)
            self._emit_error(RecognitionErrorKind.AUDIO_CAPTURE.value)
        finally:
            await self._close_stream()
            self._emit_end()

    def _record_failure(self, started: bool) -> None:
        if not started:
            self._connect_failures += 1
            self._last_failure = time.monotonic()

    async def _connect(self) -> None:
        if not self._session or self._session.closed:
            self._session = aiohttp.ClientSession()
        logger.info("🌐 Connecting to AssemblyAI...")
        self._ws = await self._session.ws_connect(
            self.api_endpoint,
            headers={"Authorization": self.api_key},
            heartbeat=30
        )
        logger.info("✅ WebSocket connected")

    def _open_audio(self) -> None:
        import sounddevice as sd

        self._event_loop = asyncio.get_running_loop()
        self._shutdown_flag.clear()
        # Created before the stream opens; the callback may fire immediately
        self._audio_queue = asyncio.Queue(maxsize=50)
        self._audio_stream = sd.RawInputStream(
            device=self._device_index,
            samplerate=self.sample_rate,
            channels=1,
            dtype='int16',
            blocksize=self.frames_per_buffer,
            latency=self._latency,
            callback=self._audio_callback
        )
        self._audio_stream.start()
        logger.info(f"🎙️  Microphone open ({self.sample_rate}Hz, block {self.frames_per_buffer})")

    def _audio_callback(self, indata, frames, time_info, status) -> None:
        if self._shutdown_flag.is_set():
            return
        if status:
            logger.debug(f"Audio callback status: {status}")
        loop = self._event_loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self._queue_audio, bytes(indata))
        except RuntimeError:
            # Loop closed during shutdown
            pass

    def _queue_audio(self, chunk: bytes) -> None:
        queue = self._audio_queue
        if queue is None or self._shutdown_flag.is_set():
            return
        try:
            queue.put_nowait(chunk)
        except asyncio.QueueFull:
            # Drop the oldest chunk
            queue.get_nowait()
            queue.put_nowait(chunk)

    async def _send_audio(self) -> None:
        while not self._shutdown_flag.is_set():
            chunk = await self._audio_queue.get()
            if self._ws is None or self._ws.closed:
                break
            await self._ws.send_bytes(chunk)

    async def _receive(self) -> None:
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                if not self.handle_message(msg.data):
                    break
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning(f"❌ WebSocket error: {msg.data}")
                self._emit_error(RecognitionErrorKind.NETWORK.value)
                break
            elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.CLOSE):
                break

    async def _close_stream(self) -> None:
        self._shutdown_flag.set()

        if self._audio_stream is not None:
            try:
                self._audio_stream.stop()
                self._audio_stream.close()
            except Exception as e:
                logger.debug(f"Audio stream close error: {e}")
            self._audio_stream = None

        if self._ws is not None and not self._ws.closed:
            try:
                await self._ws.send_json({"type": "Terminate"})
                await self._ws.close()
            except Exception as e:
                logger.debug(f"WebSocket close error: {e}")
        self._ws = None

        self._audio_queue = None
        self._event_loop = None
        self.session_id = None
