"""
Japanese script helpers: kana conversion, kanji detection and furigana.

Furigana strings use the Anki markup ``気[き]の 毒[どく]``: every kanji run is
followed by its reading in brackets, and a space separates a kanji run from
preceding kana.
"""

import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

_KATAKANA_START = 0x30A1
_KATAKANA_END = 0x30F6
_HIRAGANA_START = 0x3041
_HIRAGANA_END = 0x3096
_KANA_OFFSET = 0x60

_KANJI_RANGES = (
    (0x4E00, 0x9FFF),
    (0x3400, 0x4DBF),
    (0xF900, 0xFAFF),
    (0x20000, 0x2A6DF),
)

FURIGANA_PATTERN = re.compile(r" ?(?P<kanji>[^\s\[\]]+?)\[(?P<kana>[^\s\[\]]+?)\]")

KANJI_READING_PATTERN = re.compile(
    r"^(?:(?P<prefix>[^\-. \t]*)-)?"
    r"(?P<reading>[^\-. \t]+)"
    r"(?:\.(?P<okurigana>[^\-. \t]+))?"
    r"(?:-(?P<suffix>[^\-. \t]*))?$"
)


class KanjiReading(NamedTuple):
    """A dictionary kanji reading split into its parts."""

    prefix: Optional[str]
    reading: str
    okurigana: Optional[str]
    suffix: Optional[str]


def is_kanji(char: str) -> bool:
    """True for a single CJK ideograph."""
    if len(char) != 1:
        return False
    code = ord(char)
    return any(start <= code <= end for start, end in _KANJI_RANGES)


def kanji_in(text: str) -> List[str]:
    """Kanji of ``text`` in order of first appearance, without repeats."""
    seen: List[str] = []
    for char in text:
        if is_kanji(char) and char not in seen:
            seen.append(char)
    return seen


def to_hiragana(text: str) -> str:
    """Convert full-width katakana to hiragana; other characters pass through."""
    return "".join(
        chr(ord(c) - _KANA_OFFSET) if _KATAKANA_START <= ord(c) <= _KATAKANA_END else c
        for c in text
    )


def to_katakana(text: str) -> str:
    """Convert hiragana to full-width katakana; other characters pass through."""
    return "".join(
        chr(ord(c) + _KANA_OFFSET) if _HIRAGANA_START <= ord(c) <= _HIRAGANA_END else c
        for c in text
    )


def furigana_to_kana(text: str) -> str:
    """``気[き]の 毒[どく]`` -> ``きのどく``"""
    return FURIGANA_PATTERN.sub(r"\g<kana>", text)


def furigana_to_kanji(text: str) -> str:
    """``気[き]の 毒[どく]`` -> ``気の毒``"""
    return FURIGANA_PATTERN.sub(r"\g<kanji>", text)


def split_kanji_reading(reading: str) -> Optional[KanjiReading]:
    """
    Split a kanjidic-style reading such as ``-ち.らす`` into its parts.

    ``-`` marks a prefix or suffix position and ``.`` separates okurigana.
    Returns None when the string does not follow that format.
    """
    match = KANJI_READING_PATTERN.match(reading)
    if not match:
        return None
    return KanjiReading(
        prefix=match.group("prefix"),
        reading=match.group("reading"),
        okurigana=match.group("okurigana"),
        suffix=match.group("suffix"),
    )


# (surface text, is kanji, regex pattern for its reading)
_Block = Tuple[str, bool, str]


def _blocks_for(headword: str, kanji_readings: Dict[str, Set[str]]) -> List[_Block]:
    blocks: List[_Block] = []
    for char in headword:
        readings = kanji_readings.get(char)
        if readings:
            ordered = sorted(readings, key=lambda r: (-len(r), r))
            pattern = "(" + "|".join(re.escape(r) for r in ordered) + ")"
            blocks.append((char, True, pattern))
        elif is_kanji(char):
            blocks.append((char, True, "(.+?)"))
        else:
            blocks.append((char, False, "(" + re.escape(to_hiragana(char)) + ")"))
    return blocks


def _group_runs(blocks: List[_Block]) -> List[_Block]:
    """Merge consecutive kanji blocks (and consecutive kana blocks) into runs."""
    runs: List[_Block] = []
    for text, kanji, pattern in blocks:
        if runs and runs[-1][1] == kanji:
            prev_text, _, prev_pattern = runs[-1]
            runs[-1] = (prev_text + text, kanji, prev_pattern + pattern)
        else:
            runs.append((text, kanji, pattern))
    return [
        (text, kanji, "(" + pattern.replace("(", "(?:") + ")")
        for text, kanji, pattern in runs
    ]


def _match_blocks(kana: str, blocks: List[_Block]) -> Optional[str]:
    """
    Fit ``kana`` onto the blocks, allowing one kanji block to take any reading.

    The first attempt uses no wildcard; each later attempt replaces one kanji
    block's pattern with ``(.+)`` to absorb irregular readings.
    """
    for wildcard in range(len(blocks) + 1):
        if wildcard and not blocks[wildcard - 1][1]:
            continue
        pattern = "".join(
            "(.+)" if index + 1 == wildcard else block[2]
            for index, block in enumerate(blocks)
        )
        match = re.fullmatch(pattern, kana)
        if not match:
            continue

        out = ""
        preceded_by_kanji = True
        for (text, kanji, _), reading in zip(blocks, match.groups()):
            if kanji:
                if not preceded_by_kanji:
                    out += " "
                out += f"{text}[{reading}]"
            else:
                out += text
            preceded_by_kanji = kanji
        return out
    return None


def to_furigana(
    headword: str,
    reading: str,
    kanji_readings: Dict[str, Set[str]],
) -> Optional[str]:
    """
    Build the furigana string for ``headword`` read as ``reading``.

    Each kanji is tried against its known readings first; if no per-character
    alignment exists the kanji runs are aligned as wholes (``今日[きょう]``).
    Returns None when the reading cannot be aligned at all.
    """
    if not headword:
        return None
    blocks = _blocks_for(headword, kanji_readings)
    if not any(kanji for _, kanji, _ in blocks):
        return headword if to_hiragana(headword) == to_hiragana(reading) else None

    # per-character alignment needs readings for every kanji
    if all(kanji_readings.get(c) for c in headword if is_kanji(c)):
        out = _match_blocks(reading, blocks)
        if out is not None:
            return out
    return _match_blocks(reading, _group_runs(blocks))


def furigana_or_fallback(
    headword: str,
    reading: str,
    kanji_readings: Dict[str, Set[str]],
) -> str:
    """``to_furigana`` with ``headword[reading]`` as the fallback."""
    out = to_furigana(headword, reading, kanji_readings)
    if out is not None:
        return out
    if to_hiragana(headword) == to_hiragana(reading):
        return headword
    return f"{headword}[{reading}]"


def readings_index(entries: Iterable) -> Dict[str, Set[str]]:
    """Map each kanji character to its hiragana readings."""
    return {entry.character: set(entry.readings()) for entry in entries}
