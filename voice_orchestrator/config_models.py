"""
Pydantic configuration models with validation.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any

from .models.data_models import VoiceSettings
from .utils.barge_in import BargeInConfig, BargeInMode
from .utils.voice_selection import PREFERRED_VOICES


class VoiceSettingsConfig(BaseModel):
    """Synthesis prosody. Natural pitch, slightly slow rate for clarity."""
    pitch: float = Field(1.0, ge=0.0, le=2.0, description="Pitch multiplier")
    rate: float = Field(0.95, ge=0.1, le=10.0, description="Speaking rate multiplier")
    volume: float = Field(1.0, ge=0.0, le=1.0, description="Volume")
    voice_name: Optional[str] = Field(None, description="Exact voice name to force")
    preferred_voices: List[str] = Field(default_factory=lambda: list(PREFERRED_VOICES))

    def to_settings(self) -> VoiceSettings:
        return VoiceSettings(
            pitch=self.pitch,
            rate=self.rate,
            volume=self.volume,
            voice_name=self.voice_name
        )


class RecognitionConfig(BaseModel):
    """Recognition session behaviour."""
    language: str = Field("pt-BR", description="BCP-47 recognition language")
    restart_delay: float = Field(0.1, ge=0.0, le=5.0, description="Delay before auto-restart")
    max_restart_attempts: int = Field(2, ge=1, le=10, description="Start attempts per unexpected end")
    restart_on_commit: bool = Field(True, description="Cycle the engine after each commit")

    @field_validator('language')
    @classmethod
    def validate_language(cls, v):
        if not v or len(v) < 2:
            raise ValueError('Invalid language tag')
        return v


class TurnTakingConfig(BaseModel):
    """Timing of the conversational turn cycle, in seconds."""
    chat_silence_window: float = Field(1.5, gt=0.0, le=30.0)
    call_silence_window: float = Field(2.0, gt=0.0, le=30.0)
    call_start_delay: float = Field(0.5, ge=0.0, le=10.0)
    resume_listening_delay: float = Field(0.3, ge=0.0, le=10.0)


class BargeInSettings(BaseModel):
    """Barge-in thresholds."""
    enabled: bool = Field(True, description="Allow the user to interrupt playback")
    min_chars: int = Field(1, ge=1, le=200, description="Minimum heard characters to interrupt")
    cooldown_after_playback_start: float = Field(0.0, ge=0.0, le=10.0)

    def to_detector_config(self) -> BargeInConfig:
        return BargeInConfig(
            mode=BargeInMode.TRANSCRIPT if self.enabled else BargeInMode.DISABLED,
            min_chars=self.min_chars,
            cooldown_after_playback_start=self.cooldown_after_playback_start
        )


class ResponseConfig(BaseModel):
    """Reply backend settings."""
    provider: str = Field("openai_chat", description="Registered response provider name")
    api_key: Optional[str] = Field(None, description="Backend API key")
    model: str = Field("gpt-4o-mini", description="Chat model")
    system_prompt: Optional[str] = Field(None, description="Persona prompt")
    max_tokens: int = Field(400, ge=1, le=16000)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_history_messages: int = Field(20, ge=0, le=500)
    timeout: float = Field(30.0, gt=0.0, le=600.0)

    def to_provider_config(self) -> Dict[str, Any]:
        """Keyword config for the provider constructor."""
        return self.model_dump(exclude={'provider'})


class ProviderSelection(BaseModel):
    """Which registered engine to build for each input/output collaborator."""
    recognition: str = "assemblyai"
    synthesis: str = "pyttsx3"
    recognition_config: Dict[str, Any] = Field(default_factory=dict)
    synthesis_config: Dict[str, Any] = Field(default_factory=dict)


class OrchestratorConfig(BaseModel):
    """Complete orchestrator configuration."""
    voice: VoiceSettingsConfig = Field(default_factory=VoiceSettingsConfig)
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    turn_taking: TurnTakingConfig = Field(default_factory=TurnTakingConfig)
    barge_in: BargeInSettings = Field(default_factory=BargeInSettings)
    response: ResponseConfig = Field(default_factory=ResponseConfig)
    providers: ProviderSelection = Field(default_factory=ProviderSelection)

    @model_validator(mode='after')
    def validate_windows(self):
        """A call waits at least as long as stand-alone chat before committing."""
        if self.turn_taking.call_silence_window < self.turn_taking.chat_silence_window:
            raise ValueError('call_silence_window must not be shorter than chat_silence_window')
        return self
