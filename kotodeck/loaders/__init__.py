"""Source loaders."""

from .dictionary import DictionaryLoader, source_id
from .examples import read_example_corpus
from .jlpt import read_jlpt_lists
from .jmdict import read_jmdict
from .yomitan import flatten_glossary, read_archive

__all__ = [
    'DictionaryLoader',
    'source_id',
    'read_example_corpus',
    'read_jlpt_lists',
    'read_jmdict',
    'flatten_glossary',
    'read_archive',
]
