"""
Session wrappers that own one engine each.
"""

from .recognition_session import RecognitionSession
from .speech_output_session import SpeechOutputSession, PlaybackOutcome

__all__ = ['RecognitionSession', 'SpeechOutputSession', 'PlaybackOutcome']
