"""Artifact downloads with bounded, linearly backed-off retries."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from packer_updater.errors import DownloadFailed

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


class ArtifactFetcher:
    """Downloads release files into an install session.

    The delay before retry ``n`` is ``n * retry_delay_sec``, which keeps the
    worst-case wait bounded for an interactive command.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_attempts: int = 3,
        retry_delay_sec: float = 2.0,
        connect_timeout_sec: float = 30.0,
        download_timeout_sec: float = 300.0
    ):
        """Initialize fetcher.

        Args:
            client: Shared HTTP client
            max_attempts: Attempts per file before giving up
            retry_delay_sec: Base delay between attempts
            connect_timeout_sec: Connect timeout per attempt
            download_timeout_sec: Overall timeout per attempt
        """
        self.client = client
        self.max_attempts = max_attempts
        self.retry_delay_sec = retry_delay_sec
        self.download_timeout_sec = download_timeout_sec
        self.timeout = httpx.Timeout(download_timeout_sec, connect=connect_timeout_sec)

    async def fetch(self, url: str, destination: Path) -> Path:
        """Download ``url`` to ``destination``.

        Args:
            url: File URL
            destination: Path inside the session directory

        Returns:
            The destination path

        Raises:
            DownloadFailed: If every attempt failed
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            logger.info(f"Download attempt {attempt}/{self.max_attempts}: {url}")

            try:
                await asyncio.wait_for(
                    self._download(url, destination), timeout=self.download_timeout_sec
                )
                logger.info(f"Successfully downloaded: {destination}")
                return destination

            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(
                    f"Download attempt {attempt} timed out after "
                    f"{self.download_timeout_sec:g}s"
                )
                destination.unlink(missing_ok=True)

            except (httpx.HTTPError, OSError) as e:
                last_error = e
                logger.warning(f"Download attempt {attempt} failed: {e}")
                destination.unlink(missing_ok=True)

            if attempt < self.max_attempts:
                delay = self.retry_delay_sec * attempt
                logger.info(f"Retrying in {delay:g} seconds...")
                await asyncio.sleep(delay)

        logger.error(f"Failed to download after {self.max_attempts} attempts: {url}")
        raise DownloadFailed(url, self.max_attempts, last_error)

    async def _download(self, url: str, destination: Path) -> None:
        async with self.client.stream(
            "GET", url, timeout=self.timeout, follow_redirects=True
        ) as response:
            response.raise_for_status()

            downloaded = 0
            with open(destination, "wb") as f:
                async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
                    downloaded += len(chunk)

        logger.debug(f"Downloaded {downloaded} bytes from {url}")
