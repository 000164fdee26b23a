"""Exception types shared by the pipeline stages."""

from typing import Any, Optional


class DeckError(Exception):
    """Base class for all kotodeck errors."""


class MalformedSourceError(DeckError):
    """
    A source file does not match its expected schema.

    Fatal for the whole run: later stages assume every source loaded completely.
    """

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"{source}: {detail}")


class InconsistentEntryError(DeckError):
    """A dictionary entry cannot be keyed into a card (it has no reading)."""

    def __init__(self, entry: Any, reason: str = "entry has no readings"):
        self.entry = entry
        self.reason = reason
        headword = getattr(entry, "headword", entry)
        source = getattr(entry, "source", "?")
        super().__init__(f"{headword} ({source}): {reason}")


class TransportFailure(DeckError):
    """
    A collaborator could not be reached after exhausting its retry budget.

    Fatal only for the enrichment of the card identified by ``key``.
    """

    def __init__(self, key: Optional[str], detail: str):
        self.key = key
        self.detail = detail
        super().__init__(f"{key}: {detail}" if key else detail)
