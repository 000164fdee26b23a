"""
Media path generation utilities - single source of truth for file naming.

Used by the audio fetchers, the fetch index and the deck exporter.
"""

import hashlib
from pathlib import Path
from typing import Optional

from ..config import Config
from ..models import CardKey


class MediaPathGenerator:
    """
    Centralized media file path generator.

    File names derive from the card identity only, so a re-run finds the
    files written by an earlier run.
    """

    # Version suffix for cache invalidation on format changes
    VERSION = "v1"

    AUDIO_EXT = ".mp3"

    @classmethod
    def card_hash(cls, key: CardKey) -> str:
        """Deterministic short hash of a card identity."""
        return hashlib.sha256(key.as_string().encode("utf-8")).hexdigest()[:16]

    @classmethod
    def audio(cls, key: CardKey, provider: str) -> str:
        """
        Filename for a card's pronunciation audio.

        Returns:
            Filename like "_kotodeck_0f1e2d3c4b5a6978_jpod101_v1.mp3"
        """
        return f"_kotodeck_{cls.card_hash(key)}_{provider}_{cls.VERSION}{cls.AUDIO_EXT}"

    @classmethod
    def audio_path(cls, key: CardKey, provider: str, media_dir: Optional[str] = None) -> str:
        """Full path for a card's pronunciation audio."""
        return str(Path(media_dir or Config.MEDIA_DIR) / cls.audio(key, provider))
