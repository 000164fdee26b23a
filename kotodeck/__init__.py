"""kotodeck - Japanese vocabulary deck builder"""

__version__ = "1.0.0"

from .config import Config, SettingsManager
from .core import Merger, MergeResult, rank_cards
from .deck import DeckBuilder, FetchIndex
from .errors import DeckError, InconsistentEntryError, MalformedSourceError, TransportFailure
from .loaders import DictionaryLoader
from .models import Card, CardKey, JlptLevel
from .templates import CardTemplates

__all__ = [
    'Config',
    'SettingsManager',
    'Merger',
    'MergeResult',
    'rank_cards',
    'DeckBuilder',
    'FetchIndex',
    'DeckError',
    'InconsistentEntryError',
    'MalformedSourceError',
    'TransportFailure',
    'DictionaryLoader',
    'Card',
    'CardKey',
    'JlptLevel',
    'CardTemplates',
]
