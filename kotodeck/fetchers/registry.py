"""
Fetcher Registry - runtime selection of audio and sentence providers.

Providers are looked up by name so the builder never imports a concrete
fetcher class.
"""

from typing import Callable, Dict, List, Optional, Type

from .base import AudioFetcher, SentenceFetcher


class FetcherRegistry:
    """
    Registry for audio and sentence fetchers.

    Usage:
        # Register a fetcher
        FetcherRegistry.register_audio("jpod101", JPod101AudioFetcher)

        # Get a fetcher instance
        fetcher = FetcherRegistry.get_audio_fetcher("jpod101")
    """

    _audio_fetchers: Dict[str, Type[AudioFetcher]] = {}
    _sentence_fetchers: Dict[str, Type[SentenceFetcher]] = {}

    # Factory functions for fetchers that need constructor args
    _audio_factories: Dict[str, Callable[..., AudioFetcher]] = {}
    _sentence_factories: Dict[str, Callable[..., SentenceFetcher]] = {}

    # Default providers
    _default_audio: str = "jpod101"
    _default_sentences: str = "tatoeba"

    @classmethod
    def register_audio(
        cls,
        name: str,
        fetcher_class: Type[AudioFetcher],
        factory: Optional[Callable[..., AudioFetcher]] = None,
        set_default: bool = False
    ) -> None:
        """
        Register an audio fetcher provider.

        Args:
            name: Provider name (e.g., "jpod101", "edge-tts")
            fetcher_class: Class implementing AudioFetcher
            factory: Optional factory function for custom instantiation
            set_default: If True, set this as the default provider
        """
        cls._audio_fetchers[name] = fetcher_class
        if factory:
            cls._audio_factories[name] = factory
        if set_default:
            cls._default_audio = name

    @classmethod
    def register_sentences(
        cls,
        name: str,
        fetcher_class: Type[SentenceFetcher],
        factory: Optional[Callable[..., SentenceFetcher]] = None,
        set_default: bool = False
    ) -> None:
        """Register a sentence lookup provider."""
        cls._sentence_fetchers[name] = fetcher_class
        if factory:
            cls._sentence_factories[name] = factory
        if set_default:
            cls._default_sentences = name

    @classmethod
    def get_audio_fetcher(cls, name: Optional[str] = None, **kwargs) -> AudioFetcher:
        """
        Get an audio fetcher instance.

        Args:
            name: Provider name (uses default if None)
            **kwargs: Constructor options such as retries and timeout

        Raises:
            KeyError: If provider not found
        """
        provider = name or cls._default_audio

        if provider not in cls._audio_fetchers:
            available = list(cls._audio_fetchers.keys())
            raise KeyError(f"Audio provider '{provider}' not found. Available: {available}")

        if provider in cls._audio_factories:
            return cls._audio_factories[provider](**kwargs)
        return cls._audio_fetchers[provider](**kwargs)

    @classmethod
    def get_sentence_fetcher(cls, name: Optional[str] = None, **kwargs) -> SentenceFetcher:
        """
        Get a sentence fetcher instance.

        Raises:
            KeyError: If provider not found
        """
        provider = name or cls._default_sentences

        if provider not in cls._sentence_fetchers:
            available = list(cls._sentence_fetchers.keys())
            raise KeyError(f"Sentence provider '{provider}' not found. Available: {available}")

        if provider in cls._sentence_factories:
            return cls._sentence_factories[provider](**kwargs)
        return cls._sentence_fetchers[provider](**kwargs)

    @classmethod
    def list_audio_providers(cls) -> List[str]:
        """List all registered audio providers."""
        return list(cls._audio_fetchers.keys())

    @classmethod
    def list_sentence_providers(cls) -> List[str]:
        """List all registered sentence providers."""
        return list(cls._sentence_fetchers.keys())

    @classmethod
    def get_default_audio_provider(cls) -> str:
        return cls._default_audio

    @classmethod
    def set_default_audio_provider(cls, name: str) -> None:
        """Set the default audio provider."""
        if name not in cls._audio_fetchers:
            raise KeyError(f"Audio provider '{name}' not registered")
        cls._default_audio = name


def _register_default_fetchers() -> None:
    """Register built-in fetchers on module load."""
    # Import here to avoid circular imports
    from .audio import EdgeTTSAudioFetcher, JPod101AudioFetcher
    from .sentences import TatoebaSentenceFetcher

    FetcherRegistry.register_audio("jpod101", JPod101AudioFetcher, set_default=True)
    FetcherRegistry.register_audio("edge-tts", EdgeTTSAudioFetcher)
    FetcherRegistry.register_sentences("tatoeba", TatoebaSentenceFetcher, set_default=True)


# Auto-register default fetchers when module is imported
_register_default_fetchers()
