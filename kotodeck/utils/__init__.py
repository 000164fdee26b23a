"""Utils module."""

from .helpers import ensure_dir, get_file_size_mb
from .japanese import (
    furigana_or_fallback,
    furigana_to_kana,
    furigana_to_kanji,
    is_kanji,
    kanji_in,
    split_kanji_reading,
    to_furigana,
    to_hiragana,
    to_katakana,
)
from .parsing import TextParser
from .paths import MediaPathGenerator
from .logger import setup_logger

__all__ = [
    'ensure_dir',
    'get_file_size_mb',
    'furigana_or_fallback',
    'furigana_to_kana',
    'furigana_to_kanji',
    'is_kanji',
    'kanji_in',
    'split_kanji_reading',
    'to_furigana',
    'to_hiragana',
    'to_katakana',
    'TextParser',
    'MediaPathGenerator',
    'setup_logger',
]
