"""Global settings and configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class Config:
    """Application-wide configuration."""

    # Deck identity
    DECK_ID: int = _env_int("KOTODECK_DECK_ID", 1742061190)
    MODEL_ID: int = _env_int("KOTODECK_MODEL_ID", 1742061191)
    DECK_NAME: str = os.environ.get("KOTODECK_DECK_NAME", "Japanese::Vocabulary")
    MODEL_NAME: str = "Kotodeck JP Card"

    # Sources are merged in this order; sources not listed come after.
    SOURCE_PRIORITY: tuple = ("jitendex", "jmdict", "jlpt")

    # Deck scope: words up to MAX_LEVEL, compounds up to COMPOUND_LEVEL
    MAX_LEVEL: str = os.environ.get("KOTODECK_MAX_LEVEL", "N1")
    COMPOUND_LEVEL: str = os.environ.get("KOTODECK_COMPOUND_LEVEL", "N1")
    INCLUDE_UNLEVELED: bool = _env_bool("KOTODECK_INCLUDE_UNLEVELED", True)
    EXCLUDE_NUMERALS: bool = _env_bool("KOTODECK_EXCLUDE_NUMERALS", True)

    # Audio collaborators
    AUDIO_PROVIDER: str = os.environ.get("KOTODECK_AUDIO_PROVIDER", "jpod101")
    JPOD_AUDIO_URL: str = "https://assets.languagepod101.com/dictionary/japanese/audiomp3.php"
    # MD5 of the "clip not available" placeholder JapanesePod101 returns
    JPOD_MISSING_AUDIO_MD5: str = "7e2c2f954ef6051373ba916f000168dc"
    EDGE_VOICE: str = os.environ.get("KOTODECK_EDGE_VOICE", "ja-JP-NanamiNeural")

    # Sentence collaborator
    SENTENCE_PROVIDER: str = os.environ.get("KOTODECK_SENTENCE_PROVIDER", "tatoeba")
    TATOEBA_URL: str = "https://api.tatoeba.org/unstable/sentences"
    TATOEBA_LIMIT: int = 25
    MAX_EXAMPLES: int = _env_int("KOTODECK_MAX_EXAMPLES", 5)

    # Async settings
    CONCURRENCY: int = _env_int("KOTODECK_CONCURRENCY", 4)
    RETRIES: int = _env_int("KOTODECK_RETRIES", 5)
    TIMEOUT: int = _env_int("KOTODECK_TIMEOUT", 30)
    RETRY_GAPS: bool = _env_bool("KOTODECK_RETRY_GAPS", False)

    # BASE_DIR is the project root (parent of kotodeck/)
    BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()

    INPUT_DIR: str = str(BASE_DIR / "data" / "input")
    DICTIONARY_DIR: str = str(BASE_DIR / "data" / "input" / "dictionaries")
    KANJI_DIR: str = str(BASE_DIR / "data" / "input" / "kanji")
    JLPT_DIR: str = str(BASE_DIR / "data" / "input" / "jlpt")
    EXAMPLES_FILE: str = str(BASE_DIR / "data" / "input" / "examples.tsv")
    MEDIA_DIR: str = str(BASE_DIR / "media")
    CACHE_DIR: str = str(BASE_DIR / "data" / "cache")
    OUTPUT_DIR: str = str(BASE_DIR / "data" / "output")
