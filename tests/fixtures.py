"""Builders and in-memory collaborators shared by the test modules."""

import asyncio
import json
import os
import zipfile
from typing import Dict, Iterable, List, Optional, Set

from kotodeck.errors import TransportFailure
from kotodeck.fetchers.base import AudioFetcher, SentenceFetcher
from kotodeck.models import (
    Card,
    CardKey,
    DictionaryEntry,
    ExampleSentence,
    JlptLevel,
    KanjiBreakdown,
    KanjiEntry,
    Sense,
)
from kotodeck.utils import kanji_in


def entry(headword: str, reading: Optional[str], senses: Iterable, source: str = "jmdict", **kwargs) -> DictionaryEntry:
    """``senses`` is a list of gloss lists, or of (glosses, tags) pairs."""
    built = []
    for sense in senses:
        if isinstance(sense, tuple):
            glosses, tags = sense
            built.append(Sense(tuple(glosses), tuple(tags)))
        else:
            built.append(Sense(tuple(sense)))
    return DictionaryEntry(
        headword=headword,
        readings=(reading,) if reading else (),
        senses=tuple(built),
        source=source,
        **kwargs,
    )


def kanji(character: str, onyomi=(), kunyomi=(), meanings=()) -> KanjiEntry:
    return KanjiEntry(
        character=character,
        onyomi=frozenset(onyomi),
        kunyomi=frozenset(kunyomi),
        meanings=tuple(meanings),
        source="kanjidic",
    )


def card(headword: str, reading: str, level: Optional[JlptLevel] = None, frequency: Optional[int] = None) -> Card:
    return Card(
        key=CardKey(headword, reading),
        senses=[Sense(("gloss",))],
        kanji=[KanjiBreakdown(char) for char in kanji_in(headword)],
        level=level,
        frequency_rank=frequency,
        furigana=f"{headword}[{reading}]",
    )


def write_yomitan_zip(path: str, terms=None, metas=None, kanji_rows=None, title: str = "Test") -> str:
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("index.json", json.dumps({"title": title, "format": 3, "revision": "1"}))
        if terms is not None:
            archive.writestr("term_bank_1.json", json.dumps(terms, ensure_ascii=False))
        if metas is not None:
            archive.writestr("term_meta_bank_1.json", json.dumps(metas, ensure_ascii=False))
        if kanji_rows is not None:
            archive.writestr("kanji_bank_1.json", json.dumps(kanji_rows, ensure_ascii=False))
    return path


class FakeAudioFetcher(AudioFetcher):
    """Writes a small file per request; headwords can be marked missing or made to raise."""

    name = "fake"

    def __init__(
        self,
        missing: Set[str] = frozenset(),
        failing: Set[str] = frozenset(),
        delay: float = 0.0,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.missing = set(missing)
        self.failing = set(failing)
        self.errors = dict(errors or {})
        self.delay = delay
        self.calls: List[CardKey] = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def fetch(self, key: CardKey, output_path: str) -> bool:
        self.calls.append(key)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if key.headword in self.failing:
                raise TransportFailure(key.as_string(), "fake: connection refused after 5 attempts")
            if key.headword in self.errors:
                raise self.errors[key.headword]
            if key.headword in self.missing:
                return False
            os.makedirs(os.path.dirname(output_path), exist_ok=True)
            with open(output_path, "wb") as f:
                f.write(b"ID3" + key.as_string().encode("utf-8"))
            return True
        finally:
            self.active -= 1

    async def close(self) -> None:
        self.closed = True


class GatedAudioFetcher(FakeAudioFetcher):
    """Blocks every request until ``gate`` is set; ``started`` fires once ``expected`` requests are waiting."""

    def __init__(self, expected: int):
        super().__init__()
        self.expected = expected
        self.gate = asyncio.Event()
        self.started = asyncio.Event()

    async def fetch(self, key: CardKey, output_path: str) -> bool:
        if len(self.calls) + 1 >= self.expected:
            self.started.set()
        self.calls.append(key)
        await self.gate.wait()
        with open(output_path, "wb") as f:
            f.write(b"ID3")
        return True


class FakeSentenceFetcher(SentenceFetcher):
    """Returns up to ``wanted`` canned sentences per headword."""

    name = "fake-sentences"

    def __init__(self, results: Optional[Dict[str, List[ExampleSentence]]] = None, failing: Set[str] = frozenset()):
        self.results = results or {}
        self.failing = set(failing)
        self.calls: List[CardKey] = []
        self.wanted: List[int] = []

    async def fetch(self, key: CardKey, wanted: int) -> List[ExampleSentence]:
        self.calls.append(key)
        self.wanted.append(wanted)
        if key.headword in self.failing:
            raise TransportFailure(key.as_string(), "fake: timeout after 5 attempts")
        return list(self.results.get(key.headword, []))[:wanted]


class StaticLoader:
    """Stands in for DictionaryLoader."""

    def __init__(self, loaded=None, error: Optional[Exception] = None):
        self.loaded = loaded
        self.error = error

    def load(self):
        if self.error is not None:
            raise self.error
        return self.loaded
