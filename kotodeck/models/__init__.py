"""Data models for kotodeck."""

from .card import Card, CardKey, KanjiBreakdown
from .entries import (
    DictionaryEntry,
    ExampleSentence,
    JlptLevel,
    KanjiEntry,
    LevelAnnotation,
    LoadedSources,
    Sense,
)

__all__ = [
    'Card',
    'CardKey',
    'KanjiBreakdown',
    'DictionaryEntry',
    'ExampleSentence',
    'JlptLevel',
    'KanjiEntry',
    'LevelAnnotation',
    'LoadedSources',
    'Sense',
]
