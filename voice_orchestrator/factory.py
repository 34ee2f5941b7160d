"""
Factory for creating provider instances based on configuration.
"""

from typing import Any, Dict

from .config_models import OrchestratorConfig
from .interfaces import RecognitionEngineInterface, ResponseInterface, SynthesisEngineInterface
from .providers.recognition import AssemblyAIRecognitionEngine
from .providers.response import EchoResponseProvider, OpenAIChatResponseProvider
from .providers.synthesis import Pyttsx3SynthesisEngine


class ProviderFactory:
    """Factory for creating provider instances."""

    # Provider registries
    RECOGNITION_PROVIDERS = {
        'assemblyai': AssemblyAIRecognitionEngine,
    }

    SYNTHESIS_PROVIDERS = {
        'pyttsx3': Pyttsx3SynthesisEngine,
    }

    RESPONSE_PROVIDERS = {
        'openai_chat': OpenAIChatResponseProvider,
        'echo': EchoResponseProvider,
    }

    @staticmethod
    def _create(registry: Dict[str, type], kind: str, provider_name: str, config: Dict[str, Any]):
        if provider_name not in registry:
            available = ', '.join(registry.keys())
            raise ValueError(f"Unsupported {kind} provider: {provider_name}. Available: {available}")
        return registry[provider_name](config)

    @classmethod
    def create_recognition_engine(cls,
                                  provider_name: str,
                                  config: Dict[str, Any]) -> RecognitionEngineInterface:
        """
        Create a recognition engine instance.

        Args:
            provider_name: Name of the provider to create
            config: Configuration for the provider

        Returns:
            RecognitionEngineInterface: Engine instance

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create(cls.RECOGNITION_PROVIDERS, "recognition", provider_name, config)

    @classmethod
    def create_synthesis_engine(cls,
                                provider_name: str,
                                config: Dict[str, Any]) -> SynthesisEngineInterface:
        """
        Create a synthesis engine instance.

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create(cls.SYNTHESIS_PROVIDERS, "synthesis", provider_name, config)

    @classmethod
    def create_response_provider(cls,
                                 provider_name: str,
                                 config: Dict[str, Any]) -> ResponseInterface:
        """
        Create a response provider instance.

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create(cls.RESPONSE_PROVIDERS, "response", provider_name, config)

    @classmethod
    def create_all_providers(cls, config: OrchestratorConfig, include_response: bool = True) -> Dict[str, Any]:
        """
        Create all providers based on configuration.

        Args:
            config: Full orchestrator configuration
            include_response: Also build the reply backend

        Returns:
            Dictionary with 'recognition', 'synthesis' and (optionally) 'response'
        """
        selection = config.providers
        recognition_config = dict(selection.recognition_config)
        recognition_config.setdefault('language', config.recognition.language)

        providers = {
            'recognition': cls.create_recognition_engine(selection.recognition, recognition_config),
            'synthesis': cls.create_synthesis_engine(selection.synthesis, dict(selection.synthesis_config)),
        }
        if include_response:
            providers['response'] = cls.create_response_provider(
                config.response.provider, config.response.to_provider_config()
            )
        return providers

    @classmethod
    def get_available_providers(cls) -> Dict[str, list]:
        """
        Get list of all available providers by type.

        Returns:
            Dictionary mapping provider types to available provider names
        """
        return {
            'recognition': list(cls.RECOGNITION_PROVIDERS.keys()),
            'synthesis': list(cls.SYNTHESIS_PROVIDERS.keys()),
            'response': list(cls.RESPONSE_PROVIDERS.keys()),
        }
