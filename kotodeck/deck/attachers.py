"""
Stages 4 and 5: attach audio and example sentences to ranked cards.

Both stages fan out one request per card, bounded by a semaphore. Each
worker touches only its own card. On cancellation no new requests are
launched, requests already in flight are awaited and recorded, and the
cancellation is re-raised.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from ..config import Config
from ..errors import TransportFailure
from ..fetchers.base import AudioFetcher, SentenceFetcher
from ..models import Card, CardKey, ExampleSentence
from ..utils.parsing import TextParser
from ..utils.paths import MediaPathGenerator
from .cache import FetchIndex

logger = logging.getLogger(__name__)


@dataclass
class AttachReport:
    """Outcome of one attacher run."""

    attached: int = 0
    restored: int = 0
    skipped: int = 0
    gaps: List[CardKey] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def requested(self) -> int:
        return self.attached + len(self.gaps) + len(self.failures)


class ExampleCorpus:
    """
    Example sentences indexed by character.

    Corpus order is insertion order; it breaks ties between equally short,
    equally scored sentences.
    """

    def __init__(self, sentences: Iterable[ExampleSentence] = ()):
        self._sentences: Dict[str, ExampleSentence] = {}
        self._position: Dict[str, int] = {}
        self._by_char: Dict[str, List[str]] = {}
        for sentence in sentences:
            self.add(sentence)

    def __len__(self) -> int:
        return len(self._sentences)

    def __contains__(self, sentence_id: str) -> bool:
        return sentence_id in self._sentences

    def get(self, sentence_id: str) -> Optional[ExampleSentence]:
        return self._sentences.get(sentence_id)

    def add(self, sentence: ExampleSentence) -> bool:
        """Add a sentence; returns False if its id is already present."""
        if sentence.sentence_id in self._sentences:
            return False
        self._position[sentence.sentence_id] = len(self._sentences)
        self._sentences[sentence.sentence_id] = sentence
        for char in set(sentence.text):
            self._by_char.setdefault(char, []).append(sentence.sentence_id)
        return True

    @staticmethod
    def matches(sentence: ExampleSentence, key: CardKey) -> bool:
        """Text contains the headword and, when transcribed, the transcription contains the reading."""
        if key.headword not in sentence.text:
            return False
        if sentence.transcription:
            return key.reading in sentence.transcription
        return True

    def candidates(self, headword: str) -> List[ExampleSentence]:
        """Sentences containing every character of ``headword``, via its rarest character."""
        if not headword:
            return []
        postings = [self._by_char.get(char, []) for char in set(headword)]
        rarest = min(postings, key=len)
        return [self._sentences[sentence_id] for sentence_id in rarest]

    def sort_key(self, sentence: ExampleSentence):
        return len(sentence.text), -sentence.score, self._position[sentence.sentence_id]

    def select(self, key: CardKey, limit: int) -> List[ExampleSentence]:
        """
        Up to ``limit`` matching sentences: shortest first, then highest score,
        then corpus order. Sentences with the same normalized text count once.
        """
        matching = [s for s in self.candidates(key.headword) if self.matches(s, key)]
        matching.sort(key=self.sort_key)

        out: List[ExampleSentence] = []
        seen: Set[str] = set()
        for sentence in matching:
            if len(out) >= limit:
                break
            filter_key = TextParser.sentence_key(sentence.text)
            if filter_key in seen:
                continue
            seen.add(filter_key)
            out.append(sentence)
        return out


class CardAttacher:
    """Bounded per-card fan-out shared by the audio and example stages."""

    stage = "enrichment"

    def __init__(
        self,
        index: FetchIndex,
        concurrency: Optional[int] = None,
        retry_gaps: Optional[bool] = None,
        progress: Optional[Callable[[int, int], None]] = None,
    ):
        self.index = index
        self.concurrency = max(1, concurrency or Config.CONCURRENCY)
        self.retry_gaps = Config.RETRY_GAPS if retry_gaps is None else retry_gaps
        self.progress = progress

    def needs_request(self, card: Card, report: AttachReport) -> bool:
        raise NotImplementedError

    async def attach_one(self, card: Card, report: AttachReport) -> None:
        raise NotImplementedError

    async def _run_one(
        self,
        card: Card,
        report: AttachReport,
        semaphore: asyncio.Semaphore,
        counter: List[int],
        total: int,
    ) -> None:
        try:
            await self.attach_one(card, report)
        except TransportFailure as e:
            report.failures[card.key.as_string()] = e.detail
            logger.warning("%s failed for %s: %s", self.stage, card, e.detail)
        except Exception as e:
            report.failures[card.key.as_string()] = f"{type(e).__name__}: {e}"
            logger.exception("%s failed for %s", self.stage, card)
        finally:
            semaphore.release()
            counter[0] += 1
            if self.progress:
                self.progress(counter[0], total)

    async def attach(self, cards: Sequence[Card]) -> AttachReport:
        """Process ``cards`` in the given (rank) order."""
        report = AttachReport()
        todo = [card for card in cards if self.needs_request(card, report)]
        logger.info(
            "%s: %d cards to request, %d restored, %d skipped, %d known gaps",
            self.stage, len(todo), report.restored, report.skipped, len(report.gaps),
        )

        semaphore = asyncio.Semaphore(self.concurrency)
        in_flight: Set[asyncio.Task] = set()
        counter = [0]

        try:
            for card in todo:
                await semaphore.acquire()
                task = asyncio.create_task(self._run_one(card, report, semaphore, counter, len(todo)))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)
            if in_flight:
                await asyncio.wait(set(in_flight))
        except asyncio.CancelledError:
            logger.warning("%s cancelled; waiting for %d requests in flight", self.stage, len(in_flight))
            if in_flight:
                await asyncio.wait(set(in_flight))
            raise
        finally:
            self.index.flush()

        return report


class AudioAttacher(CardAttacher):
    """
    Attaches pronunciation audio.

    Cards that already carry audio, or whose audio is recorded in the fetch
    index, are never requested again.
    """

    stage = "audio"

    def __init__(
        self,
        fetcher: AudioFetcher,
        index: FetchIndex,
        media_dir: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(index, **kwargs)
        self.fetcher = fetcher
        self.media_dir = media_dir or index.media_dir

    def needs_request(self, card: Card, report: AttachReport) -> bool:
        if card.audio:
            report.skipped += 1
            return False
        restored = self.index.audio_file(card.key)
        if restored:
            card.audio = restored
            report.restored += 1
            return False
        if self.index.is_audio_gap(card.key, self.fetcher.name) and not self.retry_gaps:
            report.gaps.append(card.key)
            return False
        return True

    async def attach_one(self, card: Card, report: AttachReport) -> None:
        filename = MediaPathGenerator.audio(card.key, self.fetcher.name)
        path = os.path.join(self.media_dir, filename)

        if await self.fetcher.fetch(card.key, path):
            card.audio = filename
            self.index.record_audio(card.key, filename, self.fetcher.name)
            report.attached += 1
        else:
            self.index.record_audio_gap(card.key, self.fetcher.name)
            report.gaps.append(card.key)
            logger.debug("No audio for %s", card)


class ExampleAttacher(CardAttacher):
    """
    Attaches example sentence ids from the corpus, topped up from the
    sentence lookup service when the corpus has fewer than ``max_examples``.
    """

    stage = "examples"
    FETCH_SURPLUS = 2

    def __init__(
        self,
        corpus: ExampleCorpus,
        index: FetchIndex,
        fetcher: Optional[SentenceFetcher] = None,
        max_examples: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(index, **kwargs)
        self.corpus = corpus
        self.fetcher = fetcher
        self.max_examples = max_examples if max_examples is not None else Config.MAX_EXAMPLES

        for sentence in index.known_sentences():
            corpus.add(sentence)

    def needs_request(self, card: Card, report: AttachReport) -> bool:
        if card.examples:
            report.skipped += 1
            return False
        restored = self.index.example_ids(card.key)
        if restored and all(sentence_id in self.corpus for sentence_id in restored):
            card.examples = restored
            report.restored += 1
            return False
        if self.index.is_examples_gap(card.key) and not self.retry_gaps:
            report.gaps.append(card.key)
            return False
        return True

    async def attach_one(self, card: Card, report: AttachReport) -> None:
        selected = self.corpus.select(card.key, self.max_examples)

        if len(selected) < self.max_examples and self.fetcher is not None:
            try:
                selected = await self._top_up(card.key, selected)
            except TransportFailure as e:
                # keep the corpus selection but leave the index alone so the
                # lookup is tried again on the next build
                if selected:
                    card.examples = [s.sentence_id for s in selected]
                report.failures[card.key.as_string()] = e.detail
                logger.warning("%s lookup failed for %s, kept %d corpus sentences: %s",
                               self.stage, card, len(selected), e.detail)
                return

        if selected:
            card.examples = [s.sentence_id for s in selected]
            self.index.record_examples(card.key, card.examples)
            report.attached += 1
        else:
            self.index.record_examples_gap(card.key)
            report.gaps.append(card.key)

    async def _top_up(self, key: CardKey, selected: List[ExampleSentence]) -> List[ExampleSentence]:
        # fetched sentences are filtered below, so request a surplus
        wanted = self.max_examples - len(selected) + self.FETCH_SURPLUS
        fetched = await self.fetcher.fetch(key, wanted)

        selected = list(selected)
        seen = {TextParser.sentence_key(s.text) for s in selected}
        added = []
        for sentence in fetched:
            if len(selected) >= self.max_examples:
                break
            filter_key = TextParser.sentence_key(sentence.text)
            if filter_key in seen or not self.corpus.matches(sentence, key):
                continue
            seen.add(filter_key)
            if self.corpus.add(sentence):
                added.append(sentence)
            selected.append(self.corpus.get(sentence.sentence_id))
        if added:
            self.index.remember_sentences(added)
        return selected
