"""Audio fetchers - recorded clips and TTS."""

import asyncio
import hashlib
import logging
import os
import uuid
from typing import Optional

import aiofiles
import aiohttp
import edge_tts
from edge_tts.exceptions import EdgeTTSException, NoAudioReceived

from ..config import Config
from ..errors import TransportFailure
from ..models import CardKey
from .base import AudioFetcher, HttpFetcher

logger = logging.getLogger(__name__)


async def write_atomic(output_path: str, content: bytes) -> None:
    """Write to a temp file next to ``output_path``, then rename over it."""
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    temp_path = f"{output_path}.{uuid.uuid4().hex[:8]}.tmp"
    try:
        async with aiofiles.open(temp_path, 'wb') as f:
            await f.write(content)
        os.replace(temp_path, output_path)
        temp_path = None
    finally:
        if temp_path and os.path.exists(temp_path):
            os.remove(temp_path)


class JPod101AudioFetcher(HttpFetcher, AudioFetcher):
    """
    Native speaker clips from JapanesePod101.

    The service answers every request with 200; a word without a recording
    gets a fixed placeholder clip, recognized here by its MD5.
    """

    name = "jpod101"

    def __init__(
        self,
        url: Optional[str] = None,
        retries: Optional[int] = None,
        timeout: Optional[int] = None,
    ):
        super().__init__(retries=retries, timeout=timeout)
        self.url = url or Config.JPOD_AUDIO_URL
        self.missing_md5 = Config.JPOD_MISSING_AUDIO_MD5

    def is_placeholder(self, content: bytes) -> bool:
        return not content or hashlib.md5(content).hexdigest() == self.missing_md5

    async def fetch(self, key: CardKey, output_path: str) -> bool:
        status, content = await self._get(self.url, {"kanji": key.headword, "kana": key.reading}, key)
        if status == 404 or self.is_placeholder(content):
            return False
        await write_atomic(output_path, content)
        return True


class EdgeTTSAudioFetcher(AudioFetcher):
    """Synthesized pronunciation of the reading via Edge TTS."""

    name = "edge-tts"

    # Seconds; the n-th retry waits BACKOFF * 2**n
    BACKOFF = 1.0

    def __init__(
        self,
        voice: Optional[str] = None,
        retries: Optional[int] = None,
        timeout: Optional[int] = None,
    ):
        self.voice = voice or Config.EDGE_VOICE
        self.retries = max(1, retries or Config.RETRIES)
        self.timeout = timeout or Config.TIMEOUT

    async def fetch(self, key: CardKey, output_path: str) -> bool:
        # the kana reading avoids misread kanji
        text = key.reading or key.headword
        if not text:
            return False

        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        problem = ""
        for attempt in range(self.retries):
            temp_path = f"{output_path}.{uuid.uuid4().hex[:8]}.tmp"
            try:
                communicate = edge_tts.Communicate(text, self.voice)
                await asyncio.wait_for(communicate.save(temp_path), self.timeout)
                if os.path.exists(temp_path) and os.path.getsize(temp_path) > 0:
                    os.replace(temp_path, output_path)
                    return True
                return False
            except NoAudioReceived:
                return False
            except (EdgeTTSException, aiohttp.ClientError, asyncio.TimeoutError) as e:
                problem = f"{type(e).__name__}: {e}"
                logger.debug("edge-tts %s attempt %d/%d: %s", key.as_string(), attempt + 1, self.retries, problem)
            finally:
                if os.path.exists(temp_path):
                    os.remove(temp_path)

            if attempt < self.retries - 1:
                await asyncio.sleep(self.BACKOFF * (2 ** attempt))

        raise TransportFailure(key.as_string(), f"edge-tts: {problem} after {self.retries} attempts")
