"""
Stage 1: read every configured source into one normalized record set.

Word dictionaries live in one folder (Yomitan ``.zip`` archives and
jmdict-simplified ``.json`` files), kanji dictionaries in another. The JLPT
lists and the example corpus are optional.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from ..config import Config
from ..models import (
    DictionaryEntry,
    ExampleSentence,
    KanjiEntry,
    LevelAnnotation,
    LoadedSources,
)
from .examples import read_example_corpus
from .jlpt import read_jlpt_lists
from .jmdict import read_jmdict
from .yomitan import (
    FrequencyIndex,
    apply_frequencies,
    convert_kanji,
    convert_levels,
    convert_terms,
    frequency_index,
    read_archive,
)

logger = logging.getLogger(__name__)


def source_id(path: Path) -> str:
    """
    Source identifier derived from a file name.

    ``jitendex-yomitan.zip`` -> ``jitendex``, ``jmdict_eng.json`` -> ``jmdict``.
    """
    match = re.match(r"[a-z0-9]+", path.stem.lower())
    return match.group(0) if match else path.stem.lower()


class DictionaryLoader:
    """
    Loads dictionaries, kanji, JLPT lists and the example corpus.

    Any MalformedSourceError propagates: a partial load is never returned.
    """

    def __init__(
        self,
        dictionary_dir: Optional[str] = None,
        kanji_dir: Optional[str] = None,
        jlpt_dir: Optional[str] = None,
        examples_file: Optional[str] = None,
    ):
        self.dictionary_dir = Path(dictionary_dir or Config.DICTIONARY_DIR)
        self.kanji_dir = Path(kanji_dir or Config.KANJI_DIR)
        self.jlpt_dir = Path(jlpt_dir or Config.JLPT_DIR)
        self.examples_file = Path(examples_file or Config.EXAMPLES_FILE)

    def load(self) -> LoadedSources:
        entries: List[DictionaryEntry] = []
        kanji: Dict[str, KanjiEntry] = {}
        levels: List[LevelAnnotation] = []
        harvested: List[ExampleSentence] = []
        frequencies: FrequencyIndex = {}
        order: List[str] = []

        def note_source(name: str) -> None:
            if name not in order:
                order.append(name)

        for path in self._files(self.dictionary_dir, (".zip", ".json")):
            source = source_id(path)
            note_source(source)
            if path.suffix.lower() == ".json":
                entries.extend(read_jmdict(path, source))
                continue

            banks = read_archive(path)
            # frequency-only archives (jpdb, novels) rank entries of other sources
            frequency_index(banks, into=frequencies)
            terms, examples = convert_terms(banks, source)
            entries.extend(terms)
            harvested.extend(examples)
            levels.extend(convert_levels(banks, source))
            self._add_kanji(kanji, convert_kanji(banks, source))

        for path in self._files(self.kanji_dir, (".zip",)):
            banks = read_archive(path)
            source = source_id(path)
            self._add_kanji(kanji, convert_kanji(banks, source))
            levels.extend(convert_levels(banks, source))

        jlpt_entries, jlpt_levels = read_jlpt_lists(self.jlpt_dir)
        if jlpt_entries or jlpt_levels:
            note_source("jlpt")
        entries.extend(jlpt_entries)
        levels.extend(jlpt_levels)
        entries = apply_frequencies(entries, frequencies)

        examples = read_example_corpus(self.examples_file)
        corpus_ids = {s.sentence_id for s in examples}
        examples.extend(s for s in harvested if s.sentence_id not in corpus_ids)

        loaded = LoadedSources(
            entries=tuple(entries),
            kanji=tuple(kanji.values()),
            levels=tuple(levels),
            examples=tuple(examples),
            source_order=tuple(order),
        )
        logger.info(
            "Loaded %d entries, %d kanji, %d level annotations, %d example sentences from %s",
            len(loaded.entries), len(loaded.kanji), len(loaded.levels),
            len(loaded.examples), ", ".join(order) or "no sources",
        )
        return loaded

    @staticmethod
    def _files(folder: Path, suffixes) -> List[Path]:
        if not folder.is_dir():
            logger.info("Source folder %s does not exist, skipping", folder)
            return []
        return sorted(p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in suffixes)

    @staticmethod
    def _add_kanji(target: Dict[str, KanjiEntry], found: List[KanjiEntry]) -> None:
        # first source to describe a character wins
        for entry in found:
            target.setdefault(entry.character, entry)
