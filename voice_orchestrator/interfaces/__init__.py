"""
Abstract interfaces for the engines and backend the orchestrator drives.
"""

from .recognition import RecognitionEngineInterface, EngineAlreadyStartedError
from .synthesis import SynthesisEngineInterface
from .response import ResponseInterface

__all__ = [
    'RecognitionEngineInterface',
    'EngineAlreadyStartedError',
    'SynthesisEngineInterface',
    'ResponseInterface'
]
