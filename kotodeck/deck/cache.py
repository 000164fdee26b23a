"""Persisted record of what has already been fetched for each card."""

import json
import logging
import os
import uuid
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from ..config import Config
from ..models import CardKey, ExampleSentence

logger = logging.getLogger(__name__)


class FetchIndex:
    """
    Already-fetched index keyed by card identity (``headword|reading``).

    For every card it records the attached audio file or an audio gap, and
    the selected example ids or an examples gap. Sentences fetched from the
    lookup service are kept too, so ids selected in an earlier run still
    resolve. Writes are batched; call flush() when a stage ends.

    Layout::

        {"cards": {"食べる|たべる": {"audio": {"file": ..., "provider": ..., "at": ...},
                                    "examples": {"gap": true, "at": ...}}},
         "sentences": {"tatoeba:1234": {...}}}
    """

    def __init__(self, index_file: Optional[str] = None, media_dir: Optional[str] = None):
        """
        Args:
            index_file: Path to the JSON file (defaults to data/cache/fetch_index.json)
            media_dir: Folder holding attached audio files
        """
        if index_file is None:
            index_file = os.path.join(Config.CACHE_DIR, "fetch_index.json")

        self.index_file = index_file
        self.media_dir = media_dir or Config.MEDIA_DIR
        self._lock = Lock()
        self.data: Dict[str, Dict[str, Any]] = self._load()

        # Batch pending writes to reduce I/O
        self._pending_writes = 0
        self._batch_size = 10  # Write to disk every N records

    def _load(self) -> Dict[str, Dict[str, Any]]:
        empty: Dict[str, Dict[str, Any]] = {"cards": {}, "sentences": {}}
        if not os.path.exists(self.index_file):
            return empty
        try:
            with open(self.index_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Fetch index %s is unreadable (%s), starting empty", self.index_file, e)
            return empty
        if not isinstance(data, dict):
            logger.warning("Fetch index %s has an unexpected layout, starting empty", self.index_file)
            return empty
        data.setdefault("cards", {})
        data.setdefault("sentences", {})
        return data

    def _save_internal(self) -> None:
        """Write the index (caller must hold lock)."""
        Path(self.index_file).parent.mkdir(parents=True, exist_ok=True)
        # Atomic write: temp file + rename
        temp_file = f"{self.index_file}.{uuid.uuid4().hex[:8]}.tmp"
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(self.data, f, ensure_ascii=False, indent=2)
            os.replace(temp_file, self.index_file)
            temp_file = None
        finally:
            if temp_file and os.path.exists(temp_file):
                os.remove(temp_file)
        self._pending_writes = 0

    def _record(self, key: CardKey, field: str, value: Dict[str, Any]) -> None:
        with self._lock:
            value["at"] = datetime.now().isoformat(timespec="seconds")
            self.data["cards"].setdefault(key.as_string(), {})[field] = value
            self._pending_writes += 1
            if self._pending_writes >= self._batch_size:
                self._save_internal()

    def _get(self, key: CardKey, field: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self.data["cards"].get(key.as_string(), {}).get(field)

    # Audio

    def audio_file(self, key: CardKey) -> Optional[str]:
        """
        Recorded audio filename, if the file is still on disk.

        A record whose file has disappeared is dropped.
        """
        entry = self._get(key, "audio")
        if not entry or not entry.get("file"):
            return None
        path = os.path.join(self.media_dir, entry["file"])
        if os.path.exists(path) and os.path.getsize(path) > 0:
            return entry["file"]
        with self._lock:
            del self.data["cards"][key.as_string()]["audio"]
            self._pending_writes += 1
        return None

    def is_audio_gap(self, key: CardKey, provider: Optional[str] = None) -> bool:
        """A gap counts only for the provider that reported it, when one is given."""
        entry = self._get(key, "audio")
        if not entry or not entry.get("gap"):
            return False
        return provider is None or entry.get("provider") == provider

    def record_audio(self, key: CardKey, filename: str, provider: str) -> None:
        self._record(key, "audio", {"file": filename, "provider": provider})

    def record_audio_gap(self, key: CardKey, provider: str) -> None:
        self._record(key, "audio", {"gap": True, "provider": provider})

    # Examples

    def example_ids(self, key: CardKey) -> Optional[List[str]]:
        entry = self._get(key, "examples")
        if not entry or entry.get("gap"):
            return None
        return list(entry.get("ids", []))

    def is_examples_gap(self, key: CardKey) -> bool:
        entry = self._get(key, "examples")
        return bool(entry and entry.get("gap"))

    def record_examples(self, key: CardKey, sentence_ids: List[str]) -> None:
        self._record(key, "examples", {"ids": list(sentence_ids)})

    def record_examples_gap(self, key: CardKey) -> None:
        self._record(key, "examples", {"gap": True})

    # Fetched sentences

    def remember_sentences(self, sentences: List[ExampleSentence]) -> None:
        with self._lock:
            for sentence in sentences:
                self.data["sentences"][sentence.sentence_id] = asdict(sentence)
            self._pending_writes += len(sentences)

    def known_sentences(self) -> List[ExampleSentence]:
        with self._lock:
            stored = list(self.data["sentences"].values())
        return [ExampleSentence(**item) for item in stored]

    def flush(self) -> None:
        """Flush any pending writes to disk."""
        with self._lock:
            if self._pending_writes:
                self._save_internal()

    def clear(self) -> None:
        with self._lock:
            self.data = {"cards": {}, "sentences": {}}
            self._save_internal()

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            cards = self.data["cards"].values()
            return {
                'cards': len(self.data["cards"]),
                'audio_files': sum(1 for c in cards if c.get("audio", {}).get("file")),
                'audio_gaps': sum(1 for c in cards if c.get("audio", {}).get("gap")),
                'example_gaps': sum(1 for c in cards if c.get("examples", {}).get("gap")),
                'sentences': len(self.data["sentences"]),
                'index_file': self.index_file,
            }
