# Utils package

from .logging_config import setup_logging, get_logger, set_call_context
from .error_handling import ErrorHandler, ComponentError, ErrorSeverity, safe_cleanup
from .state_machine import TurnStateMachine, StateTransition
from .scheduling import LoopScheduler
from .silence_timer import SilenceCommitTimer, CHAT_SILENCE_WINDOW, CALL_SILENCE_WINDOW
from .transcript_accumulator import TranscriptAccumulator
from .barge_in import BargeInConfig, BargeInDetector, BargeInMode
from .voice_selection import select_preferred_voice, find_voice

__all__ = [
    "setup_logging",
    "get_logger",
    "set_call_context",
    "ErrorHandler",
    "ComponentError",
    "ErrorSeverity",
    "safe_cleanup",
    "TurnStateMachine",
    "StateTransition",
    "LoopScheduler",
    "SilenceCommitTimer",
    "CHAT_SILENCE_WINDOW",
    "CALL_SILENCE_WINDOW",
    "TranscriptAccumulator",
    "BargeInConfig",
    "BargeInDetector",
    "BargeInMode",
    "select_preferred_voice",
    "find_voice",
]
