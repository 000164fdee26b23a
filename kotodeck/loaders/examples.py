"""Example sentence corpus: a TSV with ``id``, ``japanese``, ``english``, ``score``, ``transcription``."""

import logging
from pathlib import Path
from typing import List

from ..errors import MalformedSourceError
from ..models import ExampleSentence
from ..utils.parsing import TextParser
from .tables import read_table

logger = logging.getLogger(__name__)


def read_example_corpus(path: Path, source: str = "corpus") -> List[ExampleSentence]:
    """
    Read the corpus in file order. A missing file loads as empty.

    Raises:
        MalformedSourceError: missing columns, unparseable scores or repeated ids
    """
    if not path.exists():
        logger.info("No example corpus at %s", path)
        return []

    df = read_table(path, required=["id", "japanese"], sep="\t")

    sentences: List[ExampleSentence] = []
    seen = set()
    for index, row in enumerate(df.to_dict("records")):
        sentence_id = str(row["id"]).strip()
        text = TextParser.normalize_unicode(row["japanese"])
        if not sentence_id or not text:
            continue
        if sentence_id in seen:
            raise MalformedSourceError(str(path), f"row {index + 2}: duplicate id {sentence_id}")
        seen.add(sentence_id)

        raw_score = str(row.get("score", "")).strip()
        try:
            score = float(raw_score) if raw_score else 0.0
        except ValueError as e:
            raise MalformedSourceError(str(path), f"row {index + 2}: bad score {raw_score!r}") from e

        transcription = TextParser.normalize_reading(row.get("transcription", ""))
        sentences.append(ExampleSentence(
            sentence_id=sentence_id,
            text=text,
            translation=TextParser.normalize_gloss(row.get("english", "")),
            score=score,
            transcription=transcription or None,
            source=source,
        ))

    logger.info("Read %s: %d sentences", path.name, len(sentences))
    return sentences
