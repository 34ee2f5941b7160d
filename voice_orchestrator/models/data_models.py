"""
Common data structures for the voice orchestrator.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Callable, Dict, Any, List
from datetime import datetime
from enum import Enum


class MessageRole(str, Enum):
    """Enum for message roles."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class TurnState(str, Enum):
    """Conversation turn states."""
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"


class RecognitionErrorKind(str, Enum):
    """Error kinds reported by recognition engines."""
    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    NETWORK = "network"
    AUDIO_CAPTURE = "audio-capture"
    NOT_ALLOWED = "not-allowed"
    ENGINE_UNAVAILABLE = "engine-unavailable"


class SynthesisErrorKind(str, Enum):
    """Error kinds reported by synthesis engines."""
    INTERRUPTED = "interrupted"
    CANCELED = "canceled"
    SYNTHESIS_FAILED = "synthesis-failed"
    AUDIO_BUSY = "audio-busy"


@dataclass
class RecognitionResult:
    """One entry of a recognition engine's result list."""
    transcript: str
    is_final: bool
    confidence: Optional[float] = None

    def __str__(self) -> str:
        return f"{'[FINAL]' if self.is_final else '[PARTIAL]'} {self.transcript}"


@dataclass
class RecognitionCallbacks:
    """Callbacks a recognition engine reports into."""
    on_start: Callable[[], None]
    on_end: Callable[[], None]
    on_result: Callable[[int, List[RecognitionResult]], None]
    on_error: Callable[[str], None]


@dataclass
class UtteranceCallbacks:
    """Per-utterance callbacks a synthesis engine reports into."""
    on_start: Callable[[], None]
    on_end: Callable[[], None]
    on_error: Callable[[str], None]


@dataclass(frozen=True)
class Voice:
    """A synthesis voice offered by an engine."""
    name: str
    lang: str
    id: Optional[str] = None


@dataclass
class VoiceSettings:
    """Prosody settings applied to every utterance."""
    pitch: float = 1.0
    rate: float = 0.95
    volume: float = 1.0
    voice_name: Optional[str] = None

    def merged(self, **changes) -> 'VoiceSettings':
        """Return a copy with the given fields replaced (None values ignored)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


@dataclass
class CallSession:
    """Flags describing one active call."""
    active: bool = False
    muted: bool = False
    listening: bool = False
    speaking: bool = False
    processing_pending: bool = False
    started_at: float = field(default_factory=lambda: datetime.now().timestamp())


@dataclass(frozen=True)
class StateSnapshot:
    """Read-only view of the coordinator for presentation layers."""
    state: TurnState
    is_listening: bool
    is_speaking: bool
    is_processing: bool
    is_muted: bool
    transcript: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            'state': self.state.value,
            'isListening': self.is_listening,
            'isSpeaking': self.is_speaking,
            'isProcessing': self.is_processing,
            'isMuted': self.is_muted,
            'transcript': self.transcript,
        }


@dataclass
class ConversationMessage:
    """Represents a message in conversation history."""
    role: MessageRole
    content: str
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format compatible with chat APIs."""
        return {
            'role': self.role.value,
            'content': self.content
        }
