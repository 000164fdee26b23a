"""Unified study card created by the Merger."""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Set

from .entries import JlptLevel, KanjiEntry, Sense


class CardKey(NamedTuple):
    """Card identity: normalized headword and primary reading."""

    headword: str
    reading: str

    def as_string(self) -> str:
        """Stable string form used by the fetch index and note guids."""
        return f"{self.headword}|{self.reading}"

    @classmethod
    def from_string(cls, value: str) -> "CardKey":
        headword, _, reading = value.partition("|")
        return cls(headword, reading)


@dataclass(frozen=True)
class KanjiBreakdown:
    """One constituent character of a headword; ``entry`` is None when unknown."""

    character: str
    entry: Optional[KanjiEntry] = None

    @property
    def known(self) -> bool:
        return self.entry is not None


@dataclass
class Card:
    """
    One headword/reading pair with everything merged onto it.

    ``key`` is fixed at creation. Later stages only fill ``rank``,
    ``audio`` and ``examples``.
    """

    key: CardKey
    senses: List[Sense] = field(default_factory=list)
    kanji: List[KanjiBreakdown] = field(default_factory=list)
    level: Optional[JlptLevel] = None
    frequency_rank: Optional[int] = None
    furigana: str = ""
    sources: List[str] = field(default_factory=list)
    rank: Optional[int] = None
    audio: Optional[str] = None
    examples: List[str] = field(default_factory=list)

    def __setattr__(self, name, value):
        if name == "key" and "key" in self.__dict__:
            raise AttributeError("card identity is immutable")
        super().__setattr__(name, value)

    @property
    def headword(self) -> str:
        return self.key.headword

    @property
    def reading(self) -> str:
        return self.key.reading

    @property
    def kanji_characters(self) -> Set[str]:
        """Constituent kanji, known or not."""
        return {item.character for item in self.kanji}

    @property
    def tags(self) -> List[str]:
        """Anki tags: level first, then part-of-speech tags in sense order."""
        out: List[str] = []
        if self.level is not None:
            out.append(self.level.tag)
        for sense in self.senses:
            for tag in sense.tags:
                tag = tag.replace(" ", "_")
                if tag and tag not in out:
                    out.append(tag)
        return out

    def __str__(self) -> str:
        return f"{self.headword} ({self.reading})"
