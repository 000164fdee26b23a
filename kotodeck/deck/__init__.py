"""Deck building module."""

from .attachers import AttachReport, AudioAttacher, ExampleAttacher, ExampleCorpus
from .builder import BuildReport, DeckBuilder
from .cache import FetchIndex

__all__ = [
    'AttachReport',
    'AudioAttacher',
    'ExampleAttacher',
    'ExampleCorpus',
    'BuildReport',
    'DeckBuilder',
    'FetchIndex',
]
