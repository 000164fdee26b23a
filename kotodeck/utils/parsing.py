"""Text normalization used for every join between sources."""

import html
import re
import unicodedata
from typing import Iterable, List, Tuple

from .japanese import to_hiragana


class TextParser:
    """
    Centralized text normalization.

    All loaders pass their text through here so that later exact-match joins
    (headwords, readings, gloss text) compare like with like.
    """

    HTML_TAG_PATTERN = re.compile(r'<[^>]+>')

    WHITESPACE_PATTERN = re.compile(r'\s+')

    @classmethod
    def normalize_unicode(cls, text: str) -> str:
        """
        Normalize text to NFKC and trim it.

        NFKC folds full-width Latin letters and digits to half-width and
        half-width katakana to full-width, giving one canonical width form.
        """
        if not text:
            return ""
        return unicodedata.normalize('NFKC', str(text)).strip()

    @classmethod
    def normalize_headword(cls, text: str) -> str:
        """Canonical headword: NFKC, no internal whitespace."""
        return cls.WHITESPACE_PATTERN.sub('', cls.normalize_unicode(text))

    @classmethod
    def normalize_reading(cls, text: str) -> str:
        """Canonical reading: NFKC, no whitespace, katakana folded to hiragana."""
        return to_hiragana(cls.normalize_headword(text))

    @classmethod
    def normalize_gloss(cls, text: str) -> str:
        """Display form of a gloss: unescaped, tag-free, single-spaced."""
        if not text:
            return ""
        text = html.unescape(str(text))
        text = cls.HTML_TAG_PATTERN.sub('', text)
        text = cls.WHITESPACE_PATTERN.sub(' ', text)
        return cls.normalize_unicode(text)

    @classmethod
    def gloss_key(cls, glosses: Iterable[str]) -> Tuple[str, ...]:
        """Comparison key for a sense: normalized, casefolded gloss texts."""
        return tuple(cls.normalize_gloss(g).casefold() for g in glosses if g)

    @classmethod
    def unique(cls, items: Iterable[str]) -> List[str]:
        """Drop empty strings and repeats, keeping first-appearance order."""
        out: List[str] = []
        for item in items:
            if item and item not in out:
                out.append(item)
        return out

    @classmethod
    def strip_html(cls, text: str) -> str:
        if not text:
            return ""
        return cls.HTML_TAG_PATTERN.sub('', str(text))

    @classmethod
    def sentence_key(cls, text: str) -> str:
        """Duplicate-detection key for example sentences."""
        return cls.WHITESPACE_PATTERN.sub('', cls.normalize_unicode(cls.strip_html(text)))
