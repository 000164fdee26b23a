"""
jmdict-simplified JSON (https://github.com/scriptin/jmdict-simplified).

Only the fields the deck uses are read:
``words[].kanji[].text``, ``words[].kana[].text``,
``words[].sense[].gloss[].text``, ``words[].sense[].partOfSpeech`` and
``words[].sense[].misc``.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Tuple

from ..errors import MalformedSourceError
from ..models import DictionaryEntry, Sense
from ..utils.parsing import TextParser

logger = logging.getLogger(__name__)

# "usually written using kana alone"
KANA_ONLY_MISC = "uk"


@dataclass(frozen=True)
class JmdictWord:
    """One ``words[]`` item, reduced to the fields above."""

    word_id: str
    kanji: Tuple[str, ...]
    kana: Tuple[str, ...]
    senses: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...], Tuple[str, ...]], ...]

    @classmethod
    def from_json(cls, item: Any, where: str) -> "JmdictWord":
        if not isinstance(item, dict):
            raise MalformedSourceError(where, "word must be an object")
        try:
            kanji = tuple(k["text"] for k in item.get("kanji", []))
            kana = tuple(k["text"] for k in item.get("kana", []))
            senses = tuple(
                (
                    tuple(g["text"] for g in sense.get("gloss", [])),
                    tuple(sense.get("partOfSpeech", [])),
                    tuple(sense.get("misc", [])),
                )
                for sense in item.get("sense", [])
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedSourceError(where, f"unexpected word layout: {e!r}") from e
        return cls(str(item.get("id", "")), kanji, kana, senses)

    @property
    def usually_kana(self) -> bool:
        return bool(self.senses) and all(KANA_ONLY_MISC in misc for _, _, misc in self.senses)

    def to_entry(self, source: str) -> DictionaryEntry:
        readings = tuple(TextParser.unique(TextParser.normalize_reading(k) for k in self.kana))
        forms = tuple(TextParser.unique(TextParser.normalize_headword(k) for k in self.kanji))

        if forms and not self.usually_kana:
            headword = forms[0]
        elif self.kana:
            headword = TextParser.normalize_headword(self.kana[0])
        else:
            headword = forms[0] if forms else ""

        senses = []
        for glosses, pos, _ in self.senses:
            glosses = TextParser.unique(TextParser.normalize_gloss(g) for g in glosses)
            if glosses:
                senses.append(Sense(tuple(glosses), tuple(TextParser.unique(pos))))

        try:
            sequence = int(self.word_id)
        except ValueError:
            sequence = None

        return DictionaryEntry(
            headword=headword,
            readings=readings,
            senses=tuple(senses),
            source=source,
            forms=forms,
            sequence=sequence,
        )


def read_jmdict(path: Path, source: str) -> List[DictionaryEntry]:
    """
    Read a jmdict-simplified file into entries.

    Raises:
        MalformedSourceError: invalid JSON or unexpected layout
    """
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedSourceError(str(path), f"invalid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("words"), list):
        raise MalformedSourceError(str(path), 'expected an object with a "words" array')

    entries = [
        JmdictWord.from_json(item, f"{path}:words[{index}]").to_entry(source)
        for index, item in enumerate(data["words"])
    ]
    logger.info("Read %s: %d words", path.name, len(entries))
    return entries
