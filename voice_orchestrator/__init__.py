"""
Voice Orchestrator - turn-taking for spoken conversations with an agent.

This package provides:
- Continuous recognition with silence-debounced commits (AssemblyAI)
- Reply generation through a pluggable backend (OpenAI chat)
- Speech output with barge-in interruption (pyttsx3)
- A call-mode state machine and a stand-alone dictation mode

Usage:
    from voice_orchestrator import TurnCoordinator, ProviderFactory, get_framework_config

    config = get_framework_config()
    providers = ProviderFactory.create_all_providers(config)
    coordinator = TurnCoordinator(
        providers['recognition'], providers['synthesis'], providers['response'],
        config=config,
    )
    coordinator.start_call()
"""

from .orchestrator import TurnCoordinator, TurnEvent, EventKind
from .voice_chat import VoiceChat
from .factory import ProviderFactory
from .config import get_framework_config
from .config_models import OrchestratorConfig
from . import interfaces
from . import models

__version__ = "1.0.0"

__all__ = [
    'TurnCoordinator',
    'TurnEvent',
    'EventKind',
    'VoiceChat',
    'ProviderFactory',
    'get_framework_config',
    'OrchestratorConfig',
    'interfaces',
    'models',
]
