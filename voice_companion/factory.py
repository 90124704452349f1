"""
Factory for creating provider instances and assembling a session controller.
"""

from typing import Dict, Any, Optional

from .config_models import FrameworkConfig
from .interfaces import (
    AudioCaptureInterface,
    TranscriptionInterface,
    ResponseInterface,
    TextToSpeechInterface,
    KeyValueStoreInterface
)
from .providers.capture import SoundDeviceCaptureProvider
from .providers.transcription import GeminiTranscriptionProvider
from .providers.response import GeminiResponseProvider
from .providers.tts import LocalTTSProvider
from .providers.storage import JsonFileKeyValueStore, InMemoryKeyValueStore
from .session_controller import SessionController
from .utils.error_handling import ErrorHandler
from .utils.logging_config import get_logger
from .utils.persistent_memory import PersistentMemoryStore
from .utils.speech_output import SpeechOutputController


logger = get_logger("factory")


class ProviderFactory:
    """Factory for creating provider instances."""

    CAPTURE_PROVIDERS = {
        'sounddevice': SoundDeviceCaptureProvider,
    }

    TRANSCRIPTION_PROVIDERS = {
        'gemini': GeminiTranscriptionProvider,
    }

    RESPONSE_PROVIDERS = {
        'gemini': GeminiResponseProvider,
    }

    TTS_PROVIDERS = {
        'local_tts': LocalTTSProvider,
    }

    STORAGE_PROVIDERS = {
        'json_file': JsonFileKeyValueStore,
        'in_memory': InMemoryKeyValueStore,
    }

    @classmethod
    def _registries(cls) -> Dict[str, Dict[str, type]]:
        return {
            'capture': cls.CAPTURE_PROVIDERS,
            'transcription': cls.TRANSCRIPTION_PROVIDERS,
            'response': cls.RESPONSE_PROVIDERS,
            'tts': cls.TTS_PROVIDERS,
            'storage': cls.STORAGE_PROVIDERS,
        }

    @classmethod
    def create_provider(cls, provider_type: str, provider_name: str, config: Dict[str, Any]):
        """
        Create a provider instance.

        Args:
            provider_type: One of 'capture', 'transcription', 'response', 'tts', 'storage'
            provider_name: Name of the provider to create
            config: Configuration for the provider

        Raises:
            ValueError: If the type or provider name is not supported
        """
        registries = cls._registries()
        if provider_type not in registries:
            available = ', '.join(registries.keys())
            raise ValueError(f"Invalid provider type: {provider_type}. Available: {available}")

        registry = registries[provider_type]
        if provider_name not in registry:
            available = ', '.join(registry.keys())
            raise ValueError(f"Unsupported {provider_type} provider: {provider_name}. Available: {available}")

        return registry[provider_name](config)

    @classmethod
    def create_capture_provider(cls, provider_name: str, config: Dict[str, Any]) -> AudioCaptureInterface:
        return cls.create_provider('capture', provider_name, config)

    @classmethod
    def create_transcription_provider(cls, provider_name: str, config: Dict[str, Any]) -> TranscriptionInterface:
        return cls.create_provider('transcription', provider_name, config)

    @classmethod
    def create_response_provider(cls, provider_name: str, config: Dict[str, Any]) -> ResponseInterface:
        return cls.create_provider('response', provider_name, config)

    @classmethod
    def create_tts_provider(cls, provider_name: str, config: Dict[str, Any]) -> TextToSpeechInterface:
        return cls.create_provider('tts', provider_name, config)

    @classmethod
    def create_storage_provider(cls, provider_name: str, config: Dict[str, Any]) -> KeyValueStoreInterface:
        return cls.create_provider('storage', provider_name, config)

    @classmethod
    def create_all_providers(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create every provider named in the configuration.

        Args:
            config: Full configuration dictionary

        Returns:
            Dictionary mapping provider type to instance
        """
        providers = {}
        for provider_type in cls._registries():
            section = config.get(provider_type)
            if not section or not section.get('provider'):
                continue
            providers[provider_type] = cls.create_provider(
                provider_type, section['provider'], section.get('config', {})
            )
        return providers

    @classmethod
    def get_available_providers(cls) -> Dict[str, list]:
        """
        Get list of all available providers by type.
        """
        return {kind: list(registry.keys()) for kind, registry in cls._registries().items()}


def create_memory_store(config: Dict[str, Any],
                        store: Optional[KeyValueStoreInterface] = None) -> PersistentMemoryStore:
    """Wrap the configured key-value store for conversation memory."""
    if store is None:
        storage = config['storage']
        store = ProviderFactory.create_storage_provider(storage['provider'], storage.get('config', {}))
    return PersistentMemoryStore(store, config.get('memory', {}))


def create_session_controller(config: Dict[str, Any],
                              validate: bool = True,
                              error_handler: Optional[ErrorHandler] = None) -> SessionController:
    """
    Build a SessionController from a `get_framework_config()` style dictionary.

    Args:
        config: Full configuration dictionary
        validate: Validate with the pydantic models first

    Raises:
        pydantic.ValidationError: If validation is on and the config is invalid
        ValueError: If a provider name is not supported
    """
    if validate:
        FrameworkConfig.from_dict(config)

    providers = ProviderFactory.create_all_providers(config)
    speech = SpeechOutputController(providers['tts'], config.get('speech', {}))
    memory_store = PersistentMemoryStore(providers['storage'], config.get('memory', {}))

    session_config = dict(config.get('session', {}))
    session_config.update(config.get('memory', {}))

    logger.info("🏭 Providers: " + ", ".join(
        f"{kind}={config[kind]['provider']}" for kind in providers
    ))
    return SessionController(
        capture_device=providers['capture'],
        transcriber=providers['transcription'],
        responder=providers['response'],
        speech=speech,
        memory_store=memory_store,
        config=session_config,
        error_handler=error_handler
    )
