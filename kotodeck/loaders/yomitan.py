"""
Yomitan dictionary archives (Jitendex, JMdict, KANJIDIC and JLPT frequency lists).

An archive is a zip holding ``index.json`` plus numbered bank files:

* ``term_bank_N.json``: ``[expression, reading, definition_tags, rules, score, glossary, sequence, term_tags]``
* ``term_meta_bank_N.json``: ``[term, mode, data]``; only ``freq`` rows are used
* ``kanji_bank_N.json``: ``[character, onyomi, kunyomi, tags, meanings, stats]``

Rows are parsed into tagged record variants first and converted into the
canonical entry types afterwards, so format quirks stay in this module.
"""

import json
import logging
import re
import zipfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import MalformedSourceError
from ..models import (
    DictionaryEntry,
    ExampleSentence,
    JlptLevel,
    KanjiEntry,
    LevelAnnotation,
    Sense,
)
from ..utils.parsing import TextParser

logger = logging.getLogger(__name__)

JLPT_TAG_PATTERN = re.compile(r"(?:jlpt[-_]?)?n([1-5])", re.IGNORECASE)
NEWS_TAG_PATTERN = re.compile(r"news(\d+)k")
NF_TAG_PATTERN = re.compile(r"nf(\d{2})")


@dataclass(frozen=True)
class YomitanTermRow:
    """One row of a term bank (one sense of one entry)."""

    expression: str
    reading: str
    definition_tags: Tuple[str, ...]
    rules: Tuple[str, ...]
    score: float
    glossary: Tuple[Any, ...]
    sequence: int
    term_tags: Tuple[str, ...]

    @classmethod
    def from_row(cls, row: Any, where: str) -> "YomitanTermRow":
        if not isinstance(row, list) or len(row) < 6:
            raise MalformedSourceError(where, f"term row must be a list of 8 items, got {row!r:.80}")
        expression, reading, def_tags, rules, score, glossary = row[:6]
        sequence = row[6] if len(row) > 6 else 0
        term_tags = row[7] if len(row) > 7 else ""
        if not isinstance(expression, str) or not isinstance(reading, str):
            raise MalformedSourceError(where, f"term row has non-text expression/reading: {row[:2]!r}")
        if not isinstance(glossary, list):
            raise MalformedSourceError(where, f"term row glossary must be a list: {expression}")
        if not isinstance(score, (int, float)) or not isinstance(sequence, int):
            raise MalformedSourceError(where, f"term row has non-numeric score/sequence: {expression}")
        return cls(
            expression=expression,
            reading=reading,
            definition_tags=_split_tags(def_tags),
            rules=_split_tags(rules),
            score=float(score),
            glossary=tuple(glossary),
            sequence=sequence,
            term_tags=_split_tags(term_tags),
        )


@dataclass(frozen=True)
class YomitanFrequencyRow:
    """A ``freq`` row of a term meta bank."""

    term: str
    reading: Optional[str]
    value: Optional[float]
    display: Optional[str]

    @property
    def level(self) -> Optional[JlptLevel]:
        if self.display and JLPT_TAG_PATTERN.fullmatch(self.display.strip()):
            return JlptLevel.parse(self.display)
        return None

    @classmethod
    def from_row(cls, row: Any, where: str) -> Optional["YomitanFrequencyRow"]:
        if not isinstance(row, list) or len(row) < 3 or not isinstance(row[0], str):
            raise MalformedSourceError(where, f"meta row must be [term, mode, data], got {row!r:.80}")
        term, mode, data = row[:3]
        if mode != "freq":
            return None

        reading = None
        if isinstance(data, dict) and "frequency" in data:
            reading = data.get("reading")
            data = data["frequency"]

        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return cls(term, reading, float(data), None)
        if isinstance(data, dict):
            value = data.get("value")
            if value is not None and not isinstance(value, (int, float)):
                raise MalformedSourceError(where, f"frequency value must be numeric: {term}")
            return cls(term, reading, value, data.get("displayValue"))
        if isinstance(data, str):
            return cls(term, reading, None, data)
        raise MalformedSourceError(where, f"unrecognized frequency data for {term}: {data!r:.80}")


@dataclass(frozen=True)
class YomitanKanjiRow:
    """One row of a kanji bank."""

    character: str
    onyomi: Tuple[str, ...]
    kunyomi: Tuple[str, ...]
    tags: Tuple[str, ...]
    meanings: Tuple[str, ...]
    stats: Dict[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_row(cls, row: Any, where: str) -> "YomitanKanjiRow":
        if not isinstance(row, list) or len(row) < 5:
            raise MalformedSourceError(where, f"kanji row must be a list of 6 items, got {row!r:.80}")
        character, onyomi, kunyomi, tags, meanings = row[:5]
        stats = row[5] if len(row) > 5 else {}
        if not isinstance(character, str) or len(character) != 1:
            raise MalformedSourceError(where, f"kanji row must start with one character: {character!r}")
        if not isinstance(meanings, list) or not isinstance(stats, dict):
            raise MalformedSourceError(where, f"kanji row {character} has malformed meanings/stats")
        return cls(
            character=character,
            onyomi=_split_tags(onyomi),
            kunyomi=_split_tags(kunyomi),
            tags=_split_tags(tags),
            meanings=tuple(str(m) for m in meanings),
            stats=stats,
        )

    @property
    def strokes(self) -> Optional[int]:
        try:
            return int(self.stats["strokes"])
        except (KeyError, TypeError, ValueError):
            return None


@dataclass
class YomitanBanks:
    """Raw rows of one archive."""

    title: str
    terms: List[YomitanTermRow] = field(default_factory=list)
    frequencies: List[YomitanFrequencyRow] = field(default_factory=list)
    kanji: List[YomitanKanjiRow] = field(default_factory=list)


def _split_tags(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, list):
        return tuple(str(v) for v in value if v)
    return tuple(t for t in str(value).split() if t)


# ---------------------------------------------------------------------------
# Glossary flattening

def _data_content(node: Dict[str, Any]) -> Optional[str]:
    data = node.get("data")
    if isinstance(data, dict):
        return data.get("content")
    return None


def _node_text(node: Any, with_readings: bool = False) -> str:
    """
    Plain text of a structured-content node.

    Example sentences and ``rt`` annotations are left out. With
    ``with_readings`` each ruby base is replaced by its ``rt`` text instead.
    """
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(_node_text(child, with_readings) for child in node)
    if not isinstance(node, dict):
        return ""

    tag = node.get("tag")
    if tag == "rt" or tag == "rp":
        return ""
    if _data_content(node) == "example-sentence":
        return ""
    if tag == "ruby" and with_readings:
        content = node.get("content")
        children = content if isinstance(content, list) else [content]
        readings = [
            _node_text(child.get("content"))
            for child in children
            if isinstance(child, dict) and child.get("tag") == "rt"
        ]
        if readings:
            return "".join(readings)
    if node.get("type") == "image" or tag == "img":
        return ""
    return _node_text(node.get("content"), with_readings)


def _find(node: Any, content: str) -> Optional[Dict[str, Any]]:
    if isinstance(node, list):
        for child in node:
            found = _find(child, content)
            if found is not None:
                return found
    elif isinstance(node, dict):
        if _data_content(node) == content:
            return node
        return _find(node.get("content"), content)
    return None


def _walk_structured(node: Any, glosses: List[str], examples: List[Tuple[str, str, str]]) -> None:
    if isinstance(node, list):
        for child in node:
            _walk_structured(child, glosses, examples)
        return
    if not isinstance(node, dict):
        return

    kind = _data_content(node)
    if kind == "glossary":
        content = node.get("content")
        items = content if isinstance(content, list) else [content]
        for item in items:
            text = _node_text(item)
            if text.strip():
                glosses.append(text)
        return
    if kind == "example-sentence":
        japanese = node.get("content")
        part_a = _find(japanese, "example-sentence-a")
        part_b = _find(japanese, "example-sentence-b")
        if part_a is not None:
            examples.append((
                _node_text(part_a.get("content")),
                _node_text(part_b.get("content")) if part_b is not None else "",
                _node_text(part_a.get("content"), with_readings=True),
            ))
        return
    _walk_structured(node.get("content"), glosses, examples)


def flatten_glossary(glossary: Tuple[Any, ...]) -> Tuple[List[str], List[Tuple[str, str, str]]]:
    """
    Turn a term row's glossary into gloss strings and example sentences.

    Returns:
        (glosses, examples) where each example is (text, translation, transcription)
    """
    glosses: List[str] = []
    examples: List[Tuple[str, str, str]] = []

    for item in glossary:
        if isinstance(item, str):
            glosses.append(item)
        elif isinstance(item, dict):
            kind = item.get("type")
            if kind == "text":
                glosses.append(str(item.get("text", "")))
            elif kind == "structured-content":
                found: List[str] = []
                _walk_structured(item.get("content"), found, examples)
                if not found:
                    text = _node_text(item.get("content"))
                    if text.strip():
                        found.append(text)
                glosses.extend(found)
        # deinflection rows ([term, [rules]]) and images carry no glosses

    glosses = TextParser.unique(TextParser.normalize_gloss(g) for g in glosses)
    return glosses, examples


# ---------------------------------------------------------------------------
# Reading archives

def read_archive(path: Path) -> YomitanBanks:
    """
    Read every bank of a Yomitan zip archive.

    Raises:
        MalformedSourceError: unreadable zip, invalid JSON or malformed rows
    """
    source = str(path)
    try:
        archive = zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as e:
        raise MalformedSourceError(source, f"not a readable zip archive: {e}") from e

    with archive:
        title = path.stem
        banks = YomitanBanks(title=title)

        for name in sorted(archive.namelist(), key=_bank_sort_key):
            filename = Path(name).name
            if filename == "index.json":
                index = _load_json(archive, name, source)
                if isinstance(index, dict) and index.get("title"):
                    banks.title = str(index["title"])
                continue
            if not filename.endswith(".json"):
                logger.debug("Ignoring %s in %s", name, source)
                continue

            if filename.startswith("term_meta_bank_"):
                parser = YomitanFrequencyRow.from_row
                target = banks.frequencies
            elif filename.startswith("term_bank_"):
                parser = YomitanTermRow.from_row
                target = banks.terms
            elif filename.startswith("kanji_bank_"):
                parser = YomitanKanjiRow.from_row
                target = banks.kanji
            else:
                logger.debug("Ignoring %s in %s", name, source)
                continue

            rows = _load_json(archive, name, source)
            if not isinstance(rows, list):
                raise MalformedSourceError(f"{source}:{name}", "bank must be a JSON array")
            for index, row in enumerate(rows):
                parsed = parser(row, f"{source}:{name}[{index}]")
                if parsed is not None:
                    target.append(parsed)

    logger.info(
        "Read %s: %d term rows, %d frequency rows, %d kanji",
        path.name, len(banks.terms), len(banks.frequencies), len(banks.kanji),
    )
    return banks


def _bank_sort_key(name: str) -> Tuple[str, int]:
    match = re.search(r"(\d+)\.json$", name)
    prefix = re.sub(r"\d+\.json$", "", name)
    return prefix, int(match.group(1)) if match else 0


def _load_json(archive: zipfile.ZipFile, name: str, source: str) -> Any:
    try:
        with archive.open(name) as f:
            return json.loads(f.read().decode("utf-8-sig"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedSourceError(f"{source}:{name}", f"invalid JSON: {e}") from e


# ---------------------------------------------------------------------------
# Conversion to canonical records

def _tag_frequency_rank(tags: Tuple[str, ...]) -> Optional[int]:
    ranks = []
    for tag in tags:
        match = NEWS_TAG_PATTERN.fullmatch(tag)
        if match:
            ranks.append(int(match.group(1)) * 1000)
            continue
        match = NF_TAG_PATTERN.fullmatch(tag)
        if match:
            ranks.append(int(match.group(1)) * 500)
    return min(ranks) if ranks else None


def _tag_level(tags: Tuple[str, ...]) -> Optional[JlptLevel]:
    levels = [JlptLevel.parse(t) for t in tags if JLPT_TAG_PATTERN.fullmatch(t)]
    levels = [level for level in levels if level is not None]
    return min(levels) if levels else None


def convert_kanji(banks: YomitanBanks, source: str) -> List[KanjiEntry]:
    """Kanji rows as canonical KanjiEntry records."""
    out = []
    for row in banks.kanji:
        out.append(KanjiEntry(
            character=TextParser.normalize_unicode(row.character),
            onyomi=frozenset(TextParser.normalize_unicode(r) for r in row.onyomi),
            kunyomi=frozenset(TextParser.normalize_unicode(r) for r in row.kunyomi),
            meanings=tuple(TextParser.unique(TextParser.normalize_gloss(m) for m in row.meanings)),
            strokes=row.strokes,
            source=source,
        ))
    return out


def convert_levels(banks: YomitanBanks, source: str) -> List[LevelAnnotation]:
    """JLPT annotations from frequency rows and from term tags."""
    out: List[LevelAnnotation] = []
    for row in banks.frequencies:
        level = row.level
        if level is None:
            continue
        out.append(LevelAnnotation(
            headword=TextParser.normalize_headword(row.term),
            reading=TextParser.normalize_reading(row.reading) if row.reading else None,
            level=level,
            source=source,
        ))
    for row in banks.terms:
        level = _tag_level(row.term_tags + row.definition_tags)
        if level is None:
            continue
        out.append(LevelAnnotation(
            headword=TextParser.normalize_headword(row.expression),
            reading=TextParser.normalize_reading(row.reading or row.expression),
            level=level,
            source=source,
        ))
    return out


FrequencyIndex = Dict[Tuple[str, Optional[str]], int]


def frequency_index(banks: YomitanBanks, into: Optional[FrequencyIndex] = None) -> FrequencyIndex:
    """
    Numeric frequency ranks keyed by (headword, reading).

    A reading of None applies to every reading of the headword. Passing
    ``into`` extends an index built from other archives, keeping the lowest rank.
    """
    index: FrequencyIndex = {} if into is None else into
    for row in banks.frequencies:
        if row.level is not None or row.value is None:
            continue
        key = (
            TextParser.normalize_headword(row.term),
            TextParser.normalize_reading(row.reading) if row.reading else None,
        )
        rank = int(row.value)
        index[key] = min(rank, index.get(key, rank))
    return index


def apply_frequencies(entries: List[DictionaryEntry], index: FrequencyIndex) -> List[DictionaryEntry]:
    """
    Lower each entry's frequency rank to the best matching index value.

    An entry matches on (headword, primary reading) and on headword alone.
    """
    if not index:
        return entries
    out = []
    for entry in entries:
        ranks = [
            index[key]
            for key in ((entry.headword, entry.primary_reading), (entry.headword, None))
            if key in index
        ]
        if entry.frequency_rank is not None:
            ranks.append(entry.frequency_rank)
        if ranks and min(ranks) != entry.frequency_rank:
            entry = replace(entry, frequency_rank=min(ranks))
        out.append(entry)
    return out


def convert_terms(
    banks: YomitanBanks,
    source: str,
) -> Tuple[List[DictionaryEntry], List[ExampleSentence]]:
    """
    Group term rows into entries and harvest embedded example sentences.

    Rows sharing (sequence, expression, reading) are the senses of one entry,
    ordered by score, highest first.
    """
    groups: Dict[Tuple[int, str, str], List[YomitanTermRow]] = {}
    for row in banks.terms:
        headword = TextParser.normalize_headword(row.expression)
        reading = TextParser.normalize_reading(row.reading or row.expression)
        groups.setdefault((row.sequence, headword, reading), []).append(row)

    frequencies = frequency_index(banks)
    entries: List[DictionaryEntry] = []
    examples: List[ExampleSentence] = []

    for (sequence, headword, reading), rows in groups.items():
        rows = sorted(rows, key=lambda r: -r.score)
        senses: List[Sense] = []
        ranks: List[int] = []

        for row in rows:
            glosses, found = flatten_glossary(row.glossary)
            if glosses:
                tags = TextParser.unique(row.definition_tags + row.rules)
                senses.append(Sense(glosses=tuple(glosses), tags=tuple(tags)))
            tag_rank = _tag_frequency_rank(row.term_tags)
            if tag_rank is not None:
                ranks.append(tag_rank)
            for text, translation, transcription in found:
                text = TextParser.normalize_unicode(text)
                if not text:
                    continue
                examples.append(ExampleSentence(
                    sentence_id=f"{source}:{sequence}:{len(examples)}",
                    text=text,
                    translation=TextParser.normalize_gloss(translation),
                    score=1.0,
                    transcription=TextParser.normalize_reading(transcription) or None,
                    source=source,
                ))

        for key in ((headword, reading), (headword, None)):
            if key in frequencies:
                ranks.append(frequencies[key])

        if not senses:
            continue
        entries.append(DictionaryEntry(
            headword=headword,
            readings=(reading,) if reading else (),
            senses=tuple(senses),
            source=source,
            forms=(headword,),
            frequency_rank=min(ranks) if ranks else None,
            sequence=sequence,
        ))

    return entries, examples
