"""Canonical records produced by the dictionary loaders."""

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import FrozenSet, Optional, Tuple


class JlptLevel(IntEnum):
    """JLPT tier. Lower values are more basic (N5 is the easiest)."""

    N5 = 1
    N4 = 2
    N3 = 3
    N2 = 4
    N1 = 5

    @property
    def label(self) -> str:
        return self.name

    @property
    def tag(self) -> str:
        """Anki tag for the level, e.g. ``JLPT-N5``."""
        return f"JLPT-{self.name}"

    @classmethod
    def parse(cls, value) -> Optional["JlptLevel"]:
        """
        Parse a level from the spellings found in the sources.

        Accepts ``"N5"``, ``"n5"``, ``"jlpt-N5"``, ``"JLPT-N5"`` and the
        numeric N-number (``5`` means N5). Returns None for anything else.
        """
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            number = value
        else:
            match = re.fullmatch(r"(?:jlpt[-_ ]?)?n?([1-5])", str(value).strip(), re.IGNORECASE)
            if not match:
                return None
            number = int(match.group(1))
        if not 1 <= number <= 5:
            return None
        return cls[f"N{number}"]


@dataclass(frozen=True)
class Sense:
    """One glossary sense: its gloss strings and part-of-speech tags."""

    glosses: Tuple[str, ...]
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DictionaryEntry:
    """
    A word entry from one source, already normalized.

    ``readings[0]`` is the primary reading used for card identity.
    ``frequency_rank`` is a commonness rank where lower means more common.
    """

    headword: str
    readings: Tuple[str, ...]
    senses: Tuple[Sense, ...]
    source: str
    forms: Tuple[str, ...] = ()
    frequency_rank: Optional[int] = None
    sequence: Optional[int] = None

    @property
    def primary_reading(self) -> Optional[str]:
        return self.readings[0] if self.readings else None


@dataclass(frozen=True)
class KanjiEntry:
    """A single kanji with its readings and meanings."""

    character: str
    onyomi: FrozenSet[str] = frozenset()
    kunyomi: FrozenSet[str] = frozenset()
    meanings: Tuple[str, ...] = ()
    strokes: Optional[int] = None
    source: str = ""

    def readings(self) -> FrozenSet[str]:
        """All readings as hiragana with okurigana and affix markers removed."""
        from ..utils.japanese import split_kanji_reading, to_hiragana

        out = set()
        for raw in self.onyomi | self.kunyomi:
            parts = split_kanji_reading(raw)
            if parts is not None:
                out.add(to_hiragana(parts.reading))
        return frozenset(out)


@dataclass(frozen=True)
class LevelAnnotation:
    """JLPT level for a headword, optionally narrowed to one reading."""

    headword: str
    level: JlptLevel
    reading: Optional[str] = None
    source: str = ""


@dataclass(frozen=True)
class ExampleSentence:
    """An example sentence owned by the example corpus."""

    sentence_id: str
    text: str
    translation: str = ""
    score: float = 0.0
    transcription: Optional[str] = None
    source: str = ""


@dataclass
class LoadedSources:
    """Everything Stage 1 hands to the Merger and the Example Attacher."""

    entries: Tuple[DictionaryEntry, ...] = ()
    kanji: Tuple[KanjiEntry, ...] = ()
    levels: Tuple[LevelAnnotation, ...] = ()
    examples: Tuple[ExampleSentence, ...] = ()
    source_order: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.entries
