"""Main Anki deck builder: runs the five stages and exports the deck."""

import html
import os
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

import genanki

from ..config import Config, SettingsManager
from ..core import DeckScope, Merger, rank_cards, verify_dense_ranks
from ..errors import InconsistentEntryError, MalformedSourceError
from ..fetchers import AudioFetcher, FetcherRegistry, SentenceFetcher
from ..loaders import DictionaryLoader
from ..models import Card, LoadedSources
from ..templates import CardTemplates
from ..utils import ensure_dir, get_file_size_mb
from .attachers import AttachReport, AudioAttacher, ExampleAttacher, ExampleCorpus
from .cache import FetchIndex


class ThreadSafeStats:
    """Thread-safe statistics counter for concurrent updates."""

    def __init__(self):
        self._lock = Lock()
        self._counters = Counter()
        self._start_time = time.time()

    def increment(self, key: str, value: int = 1) -> None:
        """Increment a counter atomically."""
        with self._lock:
            self._counters[key] += value

    def get(self, key: str, default: Any = 0) -> Any:
        with self._lock:
            return self._counters.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a value (for non-counter items)."""
        with self._lock:
            self._counters[key] = value

    def get_all(self) -> Dict[str, Any]:
        """Get all statistics as a dictionary."""
        with self._lock:
            return {**dict(self._counters), 'start_time': self._start_time}


@dataclass
class BuildReport:
    """Per-entry and per-card problems collected over a run."""

    skipped_entries: List[InconsistentEntryError] = field(default_factory=list)
    audio: AttachReport = field(default_factory=AttachReport)
    examples: AttachReport = field(default_factory=AttachReport)

    @property
    def failed_cards(self) -> Dict[str, List[str]]:
        """Card key -> failure details from both enrichment stages."""
        out: Dict[str, List[str]] = {}
        for stage in (self.audio, self.examples):
            for key, detail in stage.failures.items():
                out.setdefault(key, []).append(detail)
        return out


class DeckBuilder:
    """
    Builds the Japanese vocabulary deck.

    Usage:
        builder = DeckBuilder()
        if await builder.build():
            builder.export()
    """

    FIELDS = ["Word", "Headword", "Reading", "Meaning", "Kanji", "Audio", "Sentences", "Level", "Rank", "Key"]

    def __init__(
        self,
        settings: Optional[SettingsManager] = None,
        progress_callback: Optional[Callable[[Dict[str, Any]], None]] = None,
        loader: Optional[DictionaryLoader] = None,
        audio_fetcher: Optional[AudioFetcher] = None,
        sentence_fetcher: Optional[SentenceFetcher] = None,
        index: Optional[FetchIndex] = None,
    ) -> None:
        """
        Initialize deck builder.

        Args:
            settings: Tunables; the shared SettingsManager when omitted
            progress_callback: Optional callback for progress updates.
                              Payload schema: {"event": "log"|"progress", "message": str, "value": float}
            loader, audio_fetcher, sentence_fetcher, index: Collaborators; built from
                              settings when omitted
        """
        self.progress_callback = progress_callback or self._default_callback
        self._settings = settings or SettingsManager()

        self.media_dir = self._settings.get("MEDIA_DIR", Config.MEDIA_DIR)
        self.cache_dir = self._settings.get("CACHE_DIR", Config.CACHE_DIR)
        self.output_dir = self._settings.get("OUTPUT_DIR", Config.OUTPUT_DIR)
        self.concurrency = self._settings.get("CONCURRENCY", Config.CONCURRENCY)
        self.max_examples = self._settings.get("MAX_EXAMPLES", Config.MAX_EXAMPLES)
        self.retry_gaps = self._settings.get("RETRY_GAPS", Config.RETRY_GAPS)
        self._ensure_dirs()

        self.loader = loader or DictionaryLoader(
            dictionary_dir=self._settings.get("DICTIONARY_DIR", Config.DICTIONARY_DIR),
            kanji_dir=self._settings.get("KANJI_DIR", Config.KANJI_DIR),
            jlpt_dir=self._settings.get("JLPT_DIR", Config.JLPT_DIR),
            examples_file=self._settings.get("EXAMPLES_FILE", Config.EXAMPLES_FILE),
        )
        self.index = index or FetchIndex(os.path.join(self.cache_dir, "fetch_index.json"), self.media_dir)

        fetcher_options = {
            "retries": self._settings.get("RETRIES", Config.RETRIES),
            "timeout": self._settings.get("TIMEOUT", Config.TIMEOUT),
        }
        audio_provider = self._settings.get("AUDIO_PROVIDER", Config.AUDIO_PROVIDER)
        sentence_provider = self._settings.get("SENTENCE_PROVIDER", Config.SENTENCE_PROVIDER)
        if audio_fetcher is None and audio_provider:
            audio_fetcher = FetcherRegistry.get_audio_fetcher(audio_provider, **fetcher_options)
        if sentence_fetcher is None and sentence_provider:
            sentence_fetcher = FetcherRegistry.get_sentence_fetcher(sentence_provider, **fetcher_options)
        self.audio_fetcher = audio_fetcher
        self.sentence_fetcher = sentence_fetcher

        self.model = self._create_model()
        self.deck_name = self._settings.get("DECK_NAME", Config.DECK_NAME)

        self.cards: List[Card] = []
        self.corpus = ExampleCorpus()
        self.report = BuildReport()
        self.stats = ThreadSafeStats()

    @staticmethod
    def _default_callback(payload: Dict[str, Any]) -> None:
        """Default callback that prints to console (for CLI compatibility)."""
        if payload.get("event") == "log":
            print(payload.get("message", ""))
        elif payload.get("event") == "progress":
            value = payload.get("value", 0)
            message = payload.get("message", "")
            if message:
                print(f"[{value:.1f}%] {message}")

    def _emit(self, event: str, message: str = "", value: float = 0.0) -> None:
        """
        Emit a progress event via the callback.

        Args:
            event: Event type ('log' or 'progress')
            message: Human-readable message
            value: Progress value (0-100 for progress events)
        """
        self.progress_callback({"event": event, "message": message, "value": value})

    def _ensure_dirs(self) -> None:
        ensure_dir(self.media_dir)
        ensure_dir(self.cache_dir)
        ensure_dir(self.output_dir)

    def _progress_reporter(self, stage: str) -> Callable[[int, int], None]:
        # emit at most ~100 progress updates per stage
        def report(done: int, total: int) -> None:
            step = max(1, total // 100)
            if done == total or done % step == 0:
                self._emit("progress", f"{stage}: {done}/{total}", done / total * 100 if total else 100.0)
        return report

    def _create_model(self) -> genanki.Model:
        style = self._settings.get("CARD_STYLE", None)
        return genanki.Model(
            Config.MODEL_ID,
            Config.MODEL_NAME,
            fields=[{"name": name} for name in self.FIELDS],
            templates=CardTemplates.get_templates(),
            css=CardTemplates.get_css(style),
        )

    # Stages

    def load(self) -> LoadedSources:
        """Stage 1. Raises MalformedSourceError."""
        loaded = self.loader.load()
        self.stats.set('entries_loaded', len(loaded.entries))
        self.stats.set('kanji_loaded', len(loaded.kanji))
        self.corpus = ExampleCorpus(loaded.examples)
        self._emit("log", f"Loaded {len(loaded.entries)} entries, {len(loaded.kanji)} kanji, "
                          f"{len(loaded.levels)} level annotations, {len(loaded.examples)} example sentences")
        return loaded

    def merge(self, loaded: LoadedSources) -> List[Card]:
        """Stage 2."""
        priority = self._settings.get("SOURCE_PRIORITY", list(Config.SOURCE_PRIORITY))
        result = Merger(priority, DeckScope.from_config(self._settings)).merge(loaded)
        self.cards = result.cards
        self.report.skipped_entries = result.skipped
        self.stats.set('cards_merged', len(result.cards))
        self.stats.set('entries_skipped', len(result.skipped))
        self.stats.set('out_of_scope', len(result.out_of_scope))
        self._emit("log", f"Merged into {len(result.cards)} cards ({len(result.skipped)} entries skipped, "
                          f"{len(result.out_of_scope)} out of scope)")
        return self.cards

    def rank(self) -> List[Card]:
        """Stage 3."""
        self.cards = rank_cards(self.cards)
        if not verify_dense_ranks(self.cards):
            raise RuntimeError("ranks are not a dense permutation")
        self._emit("log", f"Ranked {len(self.cards)} cards")
        return self.cards

    async def attach_audio(self) -> AttachReport:
        """Stage 4."""
        if self.audio_fetcher is None:
            self._emit("log", "Audio provider disabled, skipping audio")
            return self.report.audio
        attacher = AudioAttacher(
            self.audio_fetcher,
            self.index,
            media_dir=self.media_dir,
            concurrency=self.concurrency,
            retry_gaps=self.retry_gaps,
            progress=self._progress_reporter("audio"),
        )
        self.report.audio = await attacher.attach(self.cards)
        return self.report.audio

    async def attach_examples(self) -> AttachReport:
        """Stage 5."""
        attacher = ExampleAttacher(
            self.corpus,
            self.index,
            fetcher=self.sentence_fetcher,
            max_examples=self.max_examples,
            concurrency=self.concurrency,
            retry_gaps=self.retry_gaps,
            progress=self._progress_reporter("examples"),
        )
        self.report.examples = await attacher.attach(self.cards)
        return self.report.examples

    async def build(self) -> bool:
        """
        Run stages 1 to 5.

        Returns:
            True if successful, False when a source is malformed
        """
        self._emit("progress", "Starting build...", 0.0)
        try:
            loaded = self.load()
            self.merge(loaded)
            self.rank()
            await self.attach_audio()
            await self.attach_examples()
        except MalformedSourceError as e:
            self._emit("log", f"ERROR: malformed source {e.source}: {e.detail}")
            return False
        finally:
            # Ensure fetchers are properly closed
            for fetcher in (self.audio_fetcher, self.sentence_fetcher):
                if fetcher is not None:
                    await fetcher.close()
            self.index.flush()

        self._emit("progress", "Build complete", 100.0)
        return True

    # Note rendering

    def _meaning_html(self, card: Card) -> str:
        items = []
        for sense in card.senses:
            pos = f'<span class="pos">{html.escape(", ".join(sense.tags))}</span>' if sense.tags else ""
            items.append(f"<li>{pos}{html.escape('; '.join(sense.glosses))}</li>")
        return f"<ol>{''.join(items)}</ol>" if items else ""

    def _kanji_html(self, card: Card) -> str:
        rows = []
        for item in card.kanji:
            char = html.escape(item.character)
            if not item.known:
                rows.append(f'<div class="kanji-row kanji-unknown"><span class="kanji-char">{char}</span>?</div>')
                continue
            entry = item.entry
            readings = " / ".join(
                part for part in ("・".join(sorted(entry.onyomi)), "・".join(sorted(entry.kunyomi))) if part
            )
            meanings = ", ".join(entry.meanings[:4])
            rows.append(
                f'<div class="kanji-row"><span class="kanji-char">{char}</span>'
                f'<span class="kanji-readings">{html.escape(readings)}</span> {html.escape(meanings)}</div>'
            )
        return "".join(rows)

    def _sentences_html(self, card: Card) -> str:
        blocks = []
        for sentence_id in card.examples:
            sentence = self.corpus.get(sentence_id)
            if sentence is None:
                continue
            text = html.escape(sentence.text).replace(
                html.escape(card.headword), f"<b>{html.escape(card.headword)}</b>"
            )
            blocks.append(
                f'<div class="sentence"><div class="sentence-text">{text}</div>'
                f'<div class="sentence-translation">{html.escape(sentence.translation)}</div></div>'
            )
        return "".join(blocks)

    def make_note(self, card: Card) -> genanki.Note:
        """One note per card; its guid derives from the card identity only."""
        key = card.key.as_string()
        fields = [
            card.furigana,
            card.headword,
            card.reading,
            self._meaning_html(card),
            self._kanji_html(card),
            f"[sound:{card.audio}]" if card.audio else "",
            self._sentences_html(card),
            card.level.label if card.level is not None else "",
            str(card.rank + 1) if card.rank is not None else "",
            key,
        ]
        note = genanki.Note(
            model=self.model,
            fields=fields,
            tags=card.tags,
            guid=genanki.guid_for(key),
        )
        if card.rank is not None:
            note.due = card.rank + 1
        return note

    # Export

    def export(self, output_file: Optional[str] = None) -> str:
        """
        Write the cards, in rank order, to an APKG file.

        Args:
            output_file: Output filename (defaults to kotodeck.apkg in the output directory)

        Returns:
            Path of the written file
        """
        if output_file is None:
            output_file = os.path.join(self.output_dir, "kotodeck.apkg")

        deck = genanki.Deck(Config.DECK_ID, self.deck_name)
        media_files = []
        for card in sorted(self.cards, key=lambda c: (c.rank is None, c.rank or 0)):
            deck.add_note(self.make_note(card))
            if card.audio:
                path = os.path.join(self.media_dir, card.audio)
                if os.path.exists(path):
                    media_files.append(path)

        total_size = sum(os.path.getsize(f) for f in media_files)
        self.stats.set('notes_written', len(self.cards))
        self.stats.set('total_bytes', total_size)

        # Backup old file
        if os.path.exists(output_file):
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            backup_file = output_file.replace(".apkg", f"_{timestamp}.apkg")
            os.replace(output_file, backup_file)
            self._emit("log", f"[*] Backup created: {backup_file}")

        package = genanki.Package(deck)
        package.media_files = media_files
        package.write_to_file(output_file)

        self._print_statistics(output_file, total_size)
        self._cleanup_old_backups(output_file)
        return output_file

    def _print_statistics(self, filename: str, total_size: int) -> None:
        """Emit build statistics via callback."""
        stats = self.stats.get_all()
        elapsed = time.time() - stats.get('start_time', time.time())
        minutes, seconds = divmod(int(elapsed), 60)
        audio, examples = self.report.audio, self.report.examples

        self._emit("log", "\n" + "=" * 60)
        self._emit("log", "BUILD STATISTICS")
        self._emit("log", "=" * 60)
        self._emit("log", f"[OK] Entries loaded:     {stats.get('entries_loaded', 0)}")
        self._emit("log", f"[OK] Cards merged:       {stats.get('cards_merged', 0)}")
        self._emit("log", f"[OK] Entries skipped:    {stats.get('entries_skipped', 0)}")
        self._emit("log", f"[OK] Out of scope:     {stats.get('out_of_scope', 0)}")
        self._emit("log", f"[AUDIO] Attached:        {audio.attached} new, {audio.restored} from index")
        self._emit("log", f"[AUDIO] Gaps/failures:   {len(audio.gaps)}/{len(audio.failures)}")
        self._emit("log", f"[EXAMPLES] Attached:     {examples.attached} new, {examples.restored} from index")
        self._emit("log", f"[EXAMPLES] Gaps/failures:{len(examples.gaps)}/{len(examples.failures)}")
        self._emit("log", f"[TIME] Execution time:   {minutes}m {seconds}s")
        self._emit("log", f"[SIZE] Media size:       {total_size / (1024 * 1024):.1f} MB")
        self._emit("log", f"[FILE] Output file:      {get_file_size_mb(filename):.1f} MB -> {filename}")

        for error in self.report.skipped_entries[:10]:
            self._emit("log", f"[WARN] Skipped entry: {error}")
        if len(self.report.skipped_entries) > 10:
            self._emit("log", f"[WARN] ... and {len(self.report.skipped_entries) - 10} more skipped entries")

        failed = self.report.failed_cards
        if failed:
            names = list(failed)
            self._emit("log", f"[WARN] Cards with failed enrichment: {len(failed)}")
            self._emit("log", f"[WARN] {', '.join(names[:10])}{'...' if len(names) > 10 else ''}")

        self._emit("log", "=" * 60)

    def _cleanup_old_backups(self, current_file: str, keep_count: int = 3) -> None:
        """Keep only the newest ``keep_count`` backups of ``current_file``."""
        current = Path(current_file)
        backups = sorted(
            current.parent.glob(f"{current.stem}_*{current.suffix}"),
            key=lambda p: (os.path.getmtime(p), p.name),
            reverse=True,
        )
        for old_backup in backups[keep_count:]:
            try:
                old_backup.unlink()
            except OSError as e:
                self._emit("log", f"[WARN] Could not remove old backup {old_backup}: {e}")
