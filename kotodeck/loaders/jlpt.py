"""
JLPT vocabulary lists: a folder holding ``n5.csv`` ... ``n1.csv``.

Columns: ``kana`` (required), ``kanji``, ``jmdict_seq``, ``waller_definition``.
Each row yields a level annotation and, when it carries a definition,
a dictionary entry of its own.
"""

import logging
import re
from pathlib import Path
from typing import List, Tuple

from ..models import DictionaryEntry, JlptLevel, LevelAnnotation, Sense
from ..utils.parsing import TextParser
from .tables import read_table

logger = logging.getLogger(__name__)

LEVEL_FILES = ("n5", "n4", "n3", "n2", "n1")

DEFINITION_SPLIT = re.compile(r"\s*[;]\s*")


def read_jlpt_lists(
    folder: Path,
    source: str = "jlpt",
) -> Tuple[List[DictionaryEntry], List[LevelAnnotation]]:
    """
    Read every level file present in ``folder``.

    A missing folder or missing level files load as empty.
    """
    entries: List[DictionaryEntry] = []
    levels: List[LevelAnnotation] = []

    if not folder.is_dir():
        logger.info("No JLPT lists at %s", folder)
        return entries, levels

    for name in LEVEL_FILES:
        csv_path = folder / f"{name}.csv"
        if not csv_path.exists():
            continue

        level = JlptLevel.parse(name)
        df = read_table(csv_path, required=["kana"])

        for row in df.to_dict("records"):
            reading = TextParser.normalize_reading(row["kana"])
            headword = TextParser.normalize_headword(row.get("kanji", "")) or TextParser.normalize_headword(row["kana"])
            if not headword:
                continue

            levels.append(LevelAnnotation(
                headword=headword,
                reading=reading or None,
                level=level,
                source=source,
            ))

            definition = TextParser.normalize_gloss(row.get("waller_definition", ""))
            if not definition:
                continue
            glosses = TextParser.unique(DEFINITION_SPLIT.split(definition))
            seq = str(row.get("jmdict_seq", "")).strip()
            entries.append(DictionaryEntry(
                headword=headword,
                readings=(reading,) if reading else (),
                senses=(Sense(tuple(glosses)),),
                source=source,
                forms=(headword,),
                sequence=int(seq) if seq.isdigit() else None,
            ))

        logger.info("Read %s: %d rows at %s", csv_path.name, len(df), level.label)

    return entries, levels
