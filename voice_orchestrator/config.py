"""
Configuration for the voice orchestrator.
Organized into discrete feature sections for clarity.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv

from .config_models import (
    OrchestratorConfig,
    VoiceSettingsConfig,
    RecognitionConfig,
    TurnTakingConfig,
    BargeInSettings,
    ResponseConfig,
    ProviderSelection,
)


# =============================================================================
# SECTION 1: ENVIRONMENT & CREDENTIALS
# =============================================================================

parent_dir = Path(__file__).parent.parent
env_path = parent_dir / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# SECTION 2: PROVIDER SELECTION
# =============================================================================

RECOGNITION_PROVIDER = os.getenv("RECOGNITION_PROVIDER", "assemblyai")
SYNTHESIS_PROVIDER = os.getenv("SYNTHESIS_PROVIDER", "pyttsx3")
RESPONSE_PROVIDER = os.getenv("RESPONSE_PROVIDER", "openai_chat")  # Options: "openai_chat", "echo"


# =============================================================================
# SECTION 3: RECOGNITION (AssemblyAI streaming)
# =============================================================================

VOICE_LANGUAGE = os.getenv("VOICE_LANGUAGE", "pt-BR")

ASSEMBLYAI_CONFIG = {
    "api_key": os.getenv("ASSEMBLYAI_API_KEY"),
    "sample_rate": 16000,
    "frames_per_buffer": 1024,  # 64ms at 16kHz
    "language": VOICE_LANGUAGE,
}


# =============================================================================
# SECTION 4: RESPONSE BACKEND (OpenAI chat)
# =============================================================================

SYSTEM_PROMPT = os.getenv(
    "SYSTEM_PROMPT",
    "Você é a Monalisa, uma assistente virtual pessoal inteligente e carismática. "
    "Fale português do Brasil de forma natural, educada e prestativa. "
    "Suas respostas serão faladas em voz alta: seja breve e evite listas, "
    "markdown e emojis."
)

OPENAI_CHAT_CONFIG = {
    "api_key": os.getenv("OPENAI_API_KEY"),
    "model": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
    "max_tokens": 400,
    "temperature": 0.7,
    "system_prompt": SYSTEM_PROMPT,
    "max_history_messages": 20,
    "timeout": 30.0,
}


# =============================================================================
# SECTION 5: SPEECH OUTPUT (pyttsx3)
# =============================================================================

PYTTSX3_CONFIG = {
    "base_rate_wpm": 175,  # pyttsx3 words per minute at rate=1.0
}

VOICE_SETTINGS = {
    "pitch": _env_float("VOICE_PITCH", 1.0),
    "rate": _env_float("VOICE_RATE", 0.95),
    "volume": _env_float("VOICE_VOLUME", 1.0),
    "voice_name": os.getenv("VOICE_NAME") or None,
}


# =============================================================================
# SECTION 6: TURN TAKING & BARGE-IN
# =============================================================================

TURN_TAKING_CONFIG = {
    "chat_silence_window": _env_float("CHAT_SILENCE_WINDOW", 1.5),
    "call_silence_window": _env_float("CALL_SILENCE_WINDOW", 2.0),
    "call_start_delay": 0.5,
    "resume_listening_delay": 0.3,
}

RECOGNITION_CONFIG = {
    "language": VOICE_LANGUAGE,
    "restart_delay": 0.1,
    "max_restart_attempts": 2,
    "restart_on_commit": _env_bool("RESTART_ON_COMMIT", True),
}

BARGE_IN_CONFIG = {
    "enabled": _env_bool("BARGE_IN_ENABLED", True),
    "min_chars": int(os.getenv("BARGE_IN_MIN_CHARS", "1")),
    "cooldown_after_playback_start": _env_float("BARGE_IN_COOLDOWN", 0.0),
}


# =============================================================================
# SECTION 7: ASSEMBLY
# =============================================================================

_PROVIDER_CONFIGS = {
    "assemblyai": ASSEMBLYAI_CONFIG,
    "pyttsx3": PYTTSX3_CONFIG,
}


def get_framework_config() -> OrchestratorConfig:
    """
    Assemble the complete orchestrator configuration.

    Returns:
        Validated OrchestratorConfig
    """
    return OrchestratorConfig(
        voice=VoiceSettingsConfig(**VOICE_SETTINGS),
        recognition=RecognitionConfig(**RECOGNITION_CONFIG),
        turn_taking=TurnTakingConfig(**TURN_TAKING_CONFIG),
        barge_in=BargeInSettings(**BARGE_IN_CONFIG),
        response=ResponseConfig(provider=RESPONSE_PROVIDER, **OPENAI_CHAT_CONFIG),
        providers=ProviderSelection(
            recognition=RECOGNITION_PROVIDER,
            synthesis=SYNTHESIS_PROVIDER,
            recognition_config=dict(_PROVIDER_CONFIGS.get(RECOGNITION_PROVIDER, {})),
            synthesis_config=dict(_PROVIDER_CONFIGS.get(SYNTHESIS_PROVIDER, {})),
        )
    )


def validate_environment(config: Optional[OrchestratorConfig] = None) -> Dict[str, Any]:
    """
    Check credentials needed by the selected providers.

    Returns:
        Dict with ``valid``, ``errors`` and ``warnings``
    """
    config = config or get_framework_config()
    errors = []
    warnings = []

    if config.providers.recognition == "assemblyai" and not config.providers.recognition_config.get("api_key"):
        errors.append("ASSEMBLYAI_API_KEY is required for assemblyai recognition")

    if config.response.provider == "openai_chat" and not config.response.api_key:
        errors.append("OPENAI_API_KEY is required for openai_chat responses")

    if not config.barge_in.enabled:
        warnings.append("Barge-in disabled: replies always play to the end")

    if not config.recognition.restart_on_commit:
        warnings.append("restart_on_commit disabled: relying on engine result cursors only")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def print_config_summary(config: Optional[OrchestratorConfig] = None):
    """Print a summary of the current configuration."""
    config = config or get_framework_config()

    print("=" * 60)
    print("🔧 Voice Orchestrator Configuration")
    print("=" * 60)
    print(f"Recognition: {config.providers.recognition} ({config.recognition.language})")
    print(f"Synthesis:   {config.providers.synthesis}")
    print(f"Response:    {config.response.provider}")
    print()
    print(f"Silence window: chat {config.turn_taking.chat_silence_window}s, "
          f"call {config.turn_taking.call_silence_window}s")
    print(f"Barge-in: {'✅' if config.barge_in.enabled else '❌'} "
          f"(min chars: {config.barge_in.min_chars})")
    print(f"Voice: pitch={config.voice.pitch} rate={config.voice.rate} volume={config.voice.volume}")
    print()

    validation = validate_environment(config)
    if validation["valid"]:
        print("✅ Configuration Valid")
    else:
        print("❌ Configuration Issues:")
        for error in validation["errors"]:
            print(f"  - {error}")

    if validation["warnings"]:
        print("\n⚠️  Warnings:")
        for warning in validation["warnings"]:
            print(f"  - {warning}")

    print("=" * 60)
