"""Fetchers module - audio and sentence collaborators."""

from .base import AudioFetcher, BaseFetcher, HttpFetcher, SentenceFetcher
from .registry import FetcherRegistry
from .audio import EdgeTTSAudioFetcher, JPod101AudioFetcher
from .sentences import TatoebaSentenceFetcher, transcription_to_kana

__all__ = [
    'AudioFetcher',
    'BaseFetcher',
    'HttpFetcher',
    'SentenceFetcher',
    'FetcherRegistry',
    'EdgeTTSAudioFetcher',
    'JPod101AudioFetcher',
    'TatoebaSentenceFetcher',
    'transcription_to_kana',
]
