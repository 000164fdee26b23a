"""Base fetcher classes."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..config import Config
from ..errors import TransportFailure
from ..models import CardKey, ExampleSentence

logger = logging.getLogger(__name__)


class BaseFetcher(ABC):
    """
    Abstract base class for all fetchers.

    Provides lifecycle management and async context manager support.
    Subclasses should implement fetch() and optionally override close().
    """

    name: str = ""

    async def close(self) -> None:
        """
        Close any open resources (sessions, connections, etc.).

        Subclasses should override this to clean up their resources.
        """
        pass

    async def __aenter__(self) -> "BaseFetcher":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - ensure resources are closed."""
        await self.close()


class AudioFetcher(BaseFetcher):
    """Pronunciation audio collaborator."""

    @abstractmethod
    async def fetch(self, key: CardKey, output_path: str) -> bool:
        """
        Fetch audio for a card and save it to ``output_path``.

        Returns:
            True when audio was written, False when the provider has none

        Raises:
            TransportFailure: the provider could not be reached within the retry budget
        """
        pass


class SentenceFetcher(BaseFetcher):
    """Example sentence lookup collaborator."""

    @abstractmethod
    async def fetch(self, key: CardKey, wanted: int) -> List[ExampleSentence]:
        """
        Look up to ``wanted`` candidate sentences for a card.

        Returns:
            Candidates, possibly empty

        Raises:
            TransportFailure: the service could not be reached within the retry budget
        """
        pass


class HttpFetcher(BaseFetcher):
    """
    Shared aiohttp session with retries and exponential backoff.

    404 is an answer (not found). 429, 5xx, timeouts and connection errors are
    retried; any other status fails at once.
    """

    # Seconds; the n-th retry waits BACKOFF * 2**n
    BACKOFF = 1.0

    def __init__(self, retries: Optional[int] = None, timeout: Optional[int] = None):
        self.retries = max(1, retries or Config.RETRIES)
        self.timeout = timeout or Config.TIMEOUT
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create a shared aiohttp session (connection pooling)."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=Config.CONCURRENCY * 2,  # Connection pool size
                    limit_per_host=Config.CONCURRENCY,
                )
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    headers={"User-Agent": "kotodeck"},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                )
            return self._session

    async def close(self) -> None:
        """Close the aiohttp session. Call this when done with the fetcher."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
                self._session = None

    async def _get(
        self,
        url: str,
        params: Dict[str, Any],
        key: CardKey,
    ) -> Tuple[int, bytes]:
        """
        GET with retries.

        Returns:
            (200, body) or (404, b"")

        Raises:
            TransportFailure: retries exhausted or an unexpected status
        """
        session = await self._get_session()
        problem = ""

        for attempt in range(self.retries):
            delay = self.BACKOFF * (2 ** attempt)
            try:
                async with session.get(url, params=params) as response:
                    if response.status == 200:
                        return 200, await response.read()
                    if response.status == 404:
                        return 404, b""
                    if response.status == 429:
                        problem = "rate limited (429)"
                        delay *= 5
                    elif response.status >= 500:
                        problem = f"server error {response.status}"
                    else:
                        raise TransportFailure(key.as_string(), f"{self.name}: HTTP {response.status}")
            except asyncio.TimeoutError:
                problem = "timeout"
            except aiohttp.ClientError as e:
                problem = f"{type(e).__name__}: {e}"

            logger.debug("%s %s attempt %d/%d: %s", self.name, key.as_string(), attempt + 1, self.retries, problem)
            if attempt < self.retries - 1:
                await asyncio.sleep(delay)

        raise TransportFailure(key.as_string(), f"{self.name}: {problem} after {self.retries} attempts")
