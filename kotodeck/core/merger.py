"""
Stage 2 ("add"): join dictionary entries, kanji and JLPT levels into cards.

Two entries are the same card exactly when their normalized headword and
normalized primary reading are identical. Sources are visited in a fixed
priority order so the merged sense order is reproducible.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import Config
from ..errors import InconsistentEntryError
from ..models import (
    Card,
    CardKey,
    DictionaryEntry,
    JlptLevel,
    KanjiBreakdown,
    KanjiEntry,
    LevelAnnotation,
    LoadedSources,
    Sense,
)
from ..utils.japanese import furigana_or_fallback, is_kanji, readings_index
from ..utils.parsing import TextParser

logger = logging.getLogger(__name__)

NUMERAL_PATTERN = re.compile(r"[〇0-9０-９]")
COMPOUND_TAG = "comp"
FORMS_TAG = "forms"


@dataclass
class MergeResult:
    """Cards in first-seen order, the entries that could not be keyed and the keys left out of the deck."""

    cards: List[Card] = field(default_factory=list)
    skipped: List[InconsistentEntryError] = field(default_factory=list)
    out_of_scope: List[CardKey] = field(default_factory=list)


@dataclass(frozen=True)
class DeckScope:
    """
    Which merged words become cards.

    A word is kept when its level is at most ``max_level``, or when it is a
    compound (a sense tagged ``comp``) at most ``compound_level``. Words
    without a level are kept only with ``include_unleveled``, and words
    without any sense never are. ``exclude_numerals`` drops words written
    with a digit or 〇.
    """

    max_level: JlptLevel = JlptLevel.N1
    compound_level: JlptLevel = JlptLevel.N1
    include_unleveled: bool = True
    exclude_numerals: bool = True

    @classmethod
    def from_config(cls, settings=None) -> "DeckScope":
        """Scope from a SettingsManager, or from Config when none is given."""
        get = settings.get if settings is not None else (lambda name: getattr(Config, name))
        return cls(
            max_level=JlptLevel.parse(get("MAX_LEVEL")) or JlptLevel.N1,
            compound_level=JlptLevel.parse(get("COMPOUND_LEVEL")) or JlptLevel.N1,
            include_unleveled=bool(get("INCLUDE_UNLEVELED")),
            exclude_numerals=bool(get("EXCLUDE_NUMERALS")),
        )

    def admits(self, key: CardKey, level: Optional[JlptLevel], senses: Sequence[Sense]) -> bool:
        if not senses:
            return False
        if self.exclude_numerals and NUMERAL_PATTERN.search(key.headword + key.reading):
            return False
        if level is None:
            return self.include_unleveled
        if level <= self.max_level:
            return True
        is_compound = any(COMPOUND_TAG in sense.tags for sense in senses)
        return is_compound and level <= self.compound_level


@dataclass
class _Group:
    senses: List[Sense] = field(default_factory=list)
    sense_index: Dict[Tuple[str, ...], int] = field(default_factory=dict)
    sources: List[str] = field(default_factory=list)
    frequency_rank: Optional[int] = None

    def add(self, entry: DictionaryEntry) -> None:
        if entry.source not in self.sources:
            self.sources.append(entry.source)
        if entry.frequency_rank is not None:
            if self.frequency_rank is None or entry.frequency_rank < self.frequency_rank:
                self.frequency_rank = entry.frequency_rank

        for sense in entry.senses:
            key = TextParser.gloss_key(sense.glosses)
            # inflected-form listings are not meanings
            if not key or FORMS_TAG in sense.tags:
                continue
            if key in self.sense_index:
                position = self.sense_index[key]
                first = self.senses[position]
                tags = tuple(TextParser.unique(first.tags + sense.tags))
                self.senses[position] = Sense(first.glosses, tags)
            else:
                self.sense_index[key] = len(self.senses)
                self.senses.append(sense)


class LevelIndex:
    """Lowest JLPT level per (headword, reading) and per headword-only annotation."""

    def __init__(self, annotations: Iterable[LevelAnnotation]):
        self.exact: Dict[Tuple[str, str], JlptLevel] = {}
        self.headword_only: Dict[str, JlptLevel] = {}
        for item in annotations:
            headword = TextParser.normalize_headword(item.headword)
            if item.reading:
                key = (headword, TextParser.normalize_reading(item.reading))
                self.exact[key] = min(item.level, self.exact.get(key, item.level))
            else:
                self.headword_only[headword] = min(item.level, self.headword_only.get(headword, item.level))

    def lookup(self, key: CardKey) -> Optional[JlptLevel]:
        found = [
            level for level in (
                self.exact.get((key.headword, key.reading)),
                self.headword_only.get(key.headword),
            )
            if level is not None
        ]
        return min(found) if found else None


class Merger:
    """
    Builds the deduplicated card set.

    Usage:
        result = Merger(["jitendex", "jmdict", "jlpt"]).merge(loaded)
    """

    def __init__(self, source_priority: Optional[Sequence[str]] = None, scope: Optional[DeckScope] = None):
        self.source_priority = list(source_priority if source_priority is not None else Config.SOURCE_PRIORITY)
        self.scope = scope if scope is not None else DeckScope.from_config()

    def _priority(self, entry: DictionaryEntry) -> int:
        try:
            return self.source_priority.index(entry.source)
        except ValueError:
            return len(self.source_priority)

    @staticmethod
    def card_key(entry: DictionaryEntry) -> CardKey:
        """
        Identity of the card an entry belongs to.

        Raises:
            InconsistentEntryError: the entry has no reading or no headword
        """
        if not entry.readings:
            raise InconsistentEntryError(entry)
        headword = TextParser.normalize_headword(entry.headword)
        reading = TextParser.normalize_reading(entry.readings[0])
        if not headword or not reading:
            raise InconsistentEntryError(entry, "entry has an empty headword or reading")
        return CardKey(headword, reading)

    @staticmethod
    def kanji_breakdown(headword: str, kanji: Dict[str, KanjiEntry]) -> List[KanjiBreakdown]:
        """One item per distinct kanji of the headword; kana are not broken down."""
        out: List[KanjiBreakdown] = []
        seen = set()
        for char in headword:
            if char in seen or not (is_kanji(char) or char in kanji):
                continue
            seen.add(char)
            out.append(KanjiBreakdown(char, kanji.get(char)))
        return out

    def merge(self, loaded: LoadedSources) -> MergeResult:
        result = MergeResult()
        groups: Dict[CardKey, _Group] = {}

        # sorted() is stable: unlisted sources keep their input order
        for entry in sorted(loaded.entries, key=self._priority):
            try:
                key = self.card_key(entry)
            except InconsistentEntryError as e:
                logger.warning("Skipping entry: %s", e)
                result.skipped.append(e)
                continue
            groups.setdefault(key, _Group()).add(entry)

        kanji = {entry.character: entry for entry in loaded.kanji}
        kanji_readings = readings_index(loaded.kanji)
        levels = LevelIndex(loaded.levels)

        for key, group in groups.items():
            level = levels.lookup(key)
            if not self.scope.admits(key, level, group.senses):
                logger.debug("Out of scope: %s (%s)", key.as_string(), level.label if level else "no level")
                result.out_of_scope.append(key)
                continue
            result.cards.append(Card(
                key=key,
                senses=list(group.senses),
                kanji=self.kanji_breakdown(key.headword, kanji),
                level=level,
                frequency_rank=group.frequency_rank,
                furigana=furigana_or_fallback(key.headword, key.reading, kanji_readings),
                sources=list(group.sources),
            ))

        logger.info(
            "Merged %d entries into %d cards (%d skipped, %d out of scope)",
            len(loaded.entries), len(result.cards), len(result.skipped), len(result.out_of_scope),
        )
        return result


def merge_entries(
    loaded: LoadedSources,
    source_priority: Optional[Sequence[str]] = None,
    scope: Optional[DeckScope] = None,
) -> MergeResult:
    """Convenience wrapper around ``Merger(source_priority, scope).merge(loaded)``."""
    return Merger(source_priority, scope).merge(loaded)
