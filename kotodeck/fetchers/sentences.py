"""Tatoeba sentence lookup (https://api.tatoeba.org/unstable)."""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Set

from ..config import Config
from ..errors import TransportFailure
from ..models import CardKey, ExampleSentence
from ..utils.parsing import TextParser
from .base import HttpFetcher, SentenceFetcher

logger = logging.getLogger(__name__)

# "[食|た]べる" ruby markup used by Tatoeba's Japanese transcriptions
RUBY_PATTERN = re.compile(r"\[([^\[\]]+)\]")
LATIN_PATTERN = re.compile(r"[A-Za-z]")


def transcription_to_kana(text: str) -> Optional[str]:
    """
    Reading of a Tatoeba furigana transcription as hiragana.

    ``[食|た]べる`` -> ``たべる``. Romanized transcriptions give None.
    """
    if not text or LATIN_PATTERN.search(text):
        return None

    def reading(match: "re.Match") -> str:
        parts = match.group(1).split("|")
        return "".join(parts[1:]) or parts[0]

    return TextParser.normalize_reading(RUBY_PATTERN.sub(reading, text)) or None


class TatoebaSentenceFetcher(HttpFetcher, SentenceFetcher):
    """
    Japanese sentences with English translations from Tatoeba.

    Searches run strictest first; each later tier drops filters until enough
    distinct sentences are found. Only the first page (``limit`` results,
    shortest first) of each tier is read.
    """

    name = "tatoeba"

    # Seconds between tier requests, to stay polite
    REQUEST_DELAY = 0.33

    def __init__(
        self,
        url: Optional[str] = None,
        limit: Optional[int] = None,
        retries: Optional[int] = None,
        timeout: Optional[int] = None,
    ):
        super().__init__(retries=retries, timeout=timeout)
        self.url = url or Config.TATOEBA_URL
        self.limit = limit or Config.TATOEBA_LIMIT

    def search_tiers(self) -> List[Dict[str, str]]:
        strict = {
            "lang": "jpn",
            "word_count": "3-30",
            "is_orphan": "no",
            "is_unapproved": "no",
            "is_native": "yes",
            "origin": "original",
            "trans:lang": "eng",
            "trans:is_direct": "yes",
            "trans:is_orphan": "no",
            "trans:is_unapproved": "no",
            "trans:count": "!0",
            "showtrans": "eng",
            "sort": "words",
            "limit": str(self.limit),
        }
        any_origin = {k: v for k, v in strict.items() if k != "origin"}
        unreviewed = {
            k: v for k, v in strict.items()
            if k not in ("is_orphan", "is_unapproved", "trans:is_orphan", "trans:is_unapproved")
        }
        unreviewed_any_origin = {k: v for k, v in unreviewed.items() if k != "origin"}
        any_speaker = {k: v for k, v in unreviewed_any_origin.items() if k != "is_native"}
        return [strict, any_origin, unreviewed, unreviewed_any_origin, any_speaker]

    @staticmethod
    def parse_sentence(item: Dict[str, Any]) -> Optional[ExampleSentence]:
        """One ``data[]`` item as an ExampleSentence, or None when it has no translation."""
        text = TextParser.normalize_unicode(item.get("text", ""))
        # translations arrive grouped: [[direct...], [indirect...]]
        translations = [
            t.get("text", "")
            for group in item.get("translations") or []
            for t in (group if isinstance(group, list) else [group])
            if isinstance(t, dict)
        ]
        translations = [TextParser.normalize_gloss(t) for t in translations if t]
        if not text or not translations:
            return None

        transcriptions = [
            transcription_to_kana(t.get("text", ""))
            for t in item.get("transcriptions") or []
            if isinstance(t, dict)
        ]
        transcriptions = sorted((t for t in transcriptions if t), key=len, reverse=True)

        return ExampleSentence(
            sentence_id=f"tatoeba:{item.get('id')}",
            text=text,
            translation=max(translations, key=len),
            transcription=transcriptions[0] if transcriptions else None,
            source="tatoeba",
        )

    async def fetch(self, key: CardKey, wanted: int) -> List[ExampleSentence]:
        found: List[ExampleSentence] = []
        seen: Set[str] = set()

        for index, tier in enumerate(self.search_tiers()):
            if len(found) >= wanted:
                break
            if index and self.REQUEST_DELAY:
                await asyncio.sleep(self.REQUEST_DELAY)

            status, body = await self._get(self.url, {"q": key.headword, **tier}, key)
            if status == 404:
                break
            try:
                data = json.loads(body.decode("utf-8")).get("data", [])
            except (ValueError, AttributeError) as e:
                raise TransportFailure(key.as_string(), f"tatoeba: unreadable response: {e}") from e

            for item in data:
                sentence = self.parse_sentence(item) if isinstance(item, dict) else None
                if sentence is None or key.headword not in sentence.text:
                    continue
                filter_key = TextParser.sentence_key(sentence.text)
                if filter_key in seen:
                    continue
                seen.add(filter_key)
                found.append(sentence)
                if len(found) >= wanted:
                    break

        logger.debug("tatoeba %s: %d sentences", key.as_string(), len(found))
        return found
