"""
Data models for the voice orchestrator.
"""

from .data_models import (
    MessageRole,
    TurnState,
    RecognitionErrorKind,
    SynthesisErrorKind,
    RecognitionResult,
    RecognitionCallbacks,
    UtteranceCallbacks,
    Voice,
    VoiceSettings,
    CallSession,
    StateSnapshot,
    ConversationMessage
)

__all__ = [
    'MessageRole',
    'TurnState',
    'RecognitionErrorKind',
    'SynthesisErrorKind',
    'RecognitionResult',
    'RecognitionCallbacks',
    'UtteranceCallbacks',
    'Voice',
    'VoiceSettings',
    'CallSession',
    'StateSnapshot',
    'ConversationMessage'
]
