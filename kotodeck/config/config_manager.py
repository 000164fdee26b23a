"""Persistent settings manager with JSON storage and environment fallback."""

import copy
import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .settings import Config

_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)

logger = logging.getLogger(__name__)


class SettingsManager:
    """
    Manages pipeline tunables with JSON persistence.

    Settings are layered: built-in defaults, then the JSON file, then
    environment variables (highest priority). Changes are persisted to disk.

    Usage:
        settings = SettingsManager()
        limit = settings.get("MAX_EXAMPLES", 5)
        settings.set("CONCURRENCY", 8)
    """

    _instance: Optional["SettingsManager"] = None
    _lock: Lock = Lock()

    DEFAULT_SETTINGS_FILE: str = "settings.json"

    DEFAULTS: Dict[str, Any] = {
        # Deck
        "DECK_NAME": Config.DECK_NAME,

        # Merge order of dictionary sources
        "SOURCE_PRIORITY": list(Config.SOURCE_PRIORITY),

        # Deck scope
        "MAX_LEVEL": Config.MAX_LEVEL,
        "COMPOUND_LEVEL": Config.COMPOUND_LEVEL,
        "INCLUDE_UNLEVELED": Config.INCLUDE_UNLEVELED,
        "EXCLUDE_NUMERALS": Config.EXCLUDE_NUMERALS,

        # Enrichment
        "AUDIO_PROVIDER": Config.AUDIO_PROVIDER,
        "SENTENCE_PROVIDER": Config.SENTENCE_PROVIDER,
        "MAX_EXAMPLES": Config.MAX_EXAMPLES,
        "RETRY_GAPS": Config.RETRY_GAPS,

        # Performance settings
        "CONCURRENCY": Config.CONCURRENCY,
        "RETRIES": Config.RETRIES,
        "TIMEOUT": Config.TIMEOUT,

        # Paths
        "DICTIONARY_DIR": Config.DICTIONARY_DIR,
        "KANJI_DIR": Config.KANJI_DIR,
        "JLPT_DIR": Config.JLPT_DIR,
        "EXAMPLES_FILE": Config.EXAMPLES_FILE,
        "MEDIA_DIR": Config.MEDIA_DIR,
        "CACHE_DIR": Config.CACHE_DIR,
        "OUTPUT_DIR": Config.OUTPUT_DIR,
    }

    def __new__(cls, settings_file: Optional[str] = None) -> "SettingsManager":
        """Singleton pattern to ensure only one instance exists."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._initialized = False
                    cls._instance = instance
        return cls._instance

    def __init__(self, settings_file: Optional[str] = None) -> None:
        """
        Initialize the settings manager.

        Args:
            settings_file: Path to the settings JSON file.
                          Defaults to 'settings.json' in current directory.
        """
        if getattr(self, "_initialized", False):
            return

        self._settings_file: Path = Path(settings_file or self.DEFAULT_SETTINGS_FILE)
        self._settings: Dict[str, Any] = {}
        self._file_lock: Lock = Lock()

        self._load_settings()
        self._initialized = True

    def _load_settings(self) -> None:
        """Load settings from JSON file with environment variable fallback."""
        self._settings = copy.deepcopy(self.DEFAULTS)

        if self._settings_file.exists():
            try:
                with open(self._settings_file, "r", encoding="utf-8") as f:
                    file_settings = json.load(f)
                    self._settings.update(file_settings)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning("Could not load settings file %s: %s", self._settings_file, e)

        # Environment variables win
        for key in self.DEFAULTS:
            env_value = os.environ.get(key)
            if env_value is not None:
                self._settings[key] = self._parse_env_value(env_value, key)

        self._save_settings()

    def _parse_env_value(self, value: str, key: str) -> Any:
        """
        Parse environment variable value to appropriate type.

        Args:
            value: The string value from environment
            key: The setting key (used to infer expected type)

        Returns:
            Parsed value in appropriate type
        """
        default = self.DEFAULTS.get(key)

        if isinstance(default, bool):
            return value.lower() in ("true", "1", "yes", "on")
        elif isinstance(default, int):
            try:
                return int(value)
            except ValueError:
                return default
        elif isinstance(default, list):
            return [item.strip() for item in value.split(",") if item.strip()]
        else:
            return value

    def _save_settings(self) -> None:
        """Save current settings to JSON file."""
        with self._file_lock:
            try:
                self._settings_file.parent.mkdir(parents=True, exist_ok=True)

                with open(self._settings_file, "w", encoding="utf-8") as f:
                    json.dump(self._settings, f, indent=2, ensure_ascii=False)
            except IOError as e:
                logger.warning("Could not save settings file %s: %s", self._settings_file, e)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Mutable values (dict, list) are returned as deep copies.
        """
        value = self._settings.get(key, default)
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def set(self, key: str, value: Any, persist: bool = True) -> None:
        """Set a setting value and, by default, persist it to disk."""
        self._settings[key] = value
        if persist:
            self._save_settings()

    def get_all(self) -> Dict[str, Any]:
        """Get a copy of all current settings."""
        return copy.deepcopy(self._settings)

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset settings to defaults.

        Args:
            key: Specific key to reset. If None, resets all settings.
        """
        if key is not None:
            if key in self.DEFAULTS:
                self._settings[key] = copy.deepcopy(self.DEFAULTS[key])
        else:
            self._settings = copy.deepcopy(self.DEFAULTS)

        self._save_settings()

    def reload(self) -> None:
        """Reload settings from disk."""
        self._load_settings()

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance. Useful for testing."""
        with cls._lock:
            cls._instance = None
