"""Version resolution against the installed binary and the release host."""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

import httpx

from packer_updater.config import UpdaterConfig
from packer_updater.version import Version, extract_version, newest_first

logger = logging.getLogger(__name__)

# Upper bound accepted by the releases API for a single page.
INDEX_PAGE_LIMIT = 20


class InstallState(str, Enum):
    """What was found at the target path."""

    INSTALLED = "installed"
    NOT_INSTALLED = "not installed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class InstalledVersion:
    """Result of asking the installed binary for its version."""

    state: InstallState
    version: Optional[Version] = None

    def __str__(self) -> str:
        if self.version is not None:
            return str(self.version)
        return self.state.value


async def query_binary_version(binary: Path, timeout: float) -> Optional[Version]:
    """Run ``<binary> --version`` and parse its output.

    Returns:
        The reported version, or None if the binary failed, timed out or
        printed something unparseable
    """
    try:
        process = await asyncio.create_subprocess_exec(
            str(binary),
            "--version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        logger.warning(f"Failed to run {binary}: {e}")
        return None

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{binary.name} --version timed out after {timeout:g}s")
        return None
    finally:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    if process.returncode != 0:
        logger.warning(f"{binary.name} --version exited with code {process.returncode}")
        return None

    lines = stdout.decode("utf-8", errors="replace").strip().splitlines()
    return extract_version(lines[0]) if lines else None


class VersionResolver:
    """Answers which version is installed and which ones exist upstream."""

    def __init__(self, client: httpx.AsyncClient, config: UpdaterConfig):
        self.client = client
        self.config = config
        self.timeout = httpx.Timeout(config.query_timeout_sec)

    async def current_version(self) -> InstalledVersion:
        """Determine the installed version. Never raises."""
        target = self.config.target_path

        if not target.is_file():
            return InstalledVersion(InstallState.NOT_INSTALLED)

        version = await query_binary_version(target, self.config.smoke_test_timeout_sec)

        if version is None:
            return InstalledVersion(InstallState.UNKNOWN)

        return InstalledVersion(InstallState.INSTALLED, version)

    async def list_latest(self, n: Optional[int] = None) -> List[Version]:
        """List the newest ``n`` versions, newest first.

        Falls back to scraping the release listing page when the index API
        is unavailable. Returns an empty list when both fail.
        """
        if n is None:
            n = self.config.latest_count
        if n <= 0:
            return []

        logger.info("Fetching available versions from release index")

        try:
            candidates = await self._query_index(n)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch from API, falling back to releases page: {e}")
            try:
                candidates = await self._scrape_listing()
            except httpx.HTTPError as e:
                logger.warning(f"Failed to fetch releases page: {e}")
                return []

        return newest_first(candidates, n)

    async def exists(self, version: Version) -> bool:
        """Check the artifact URL for ``version`` with a HEAD request.

        Network errors count as "does not exist".
        """
        url = self.config.artifact_url(version)
        logger.info(f"Checking if version {version} exists")

        try:
            response = await self.client.head(
                url, timeout=self.timeout, follow_redirects=True
            )
        except httpx.HTTPError as e:
            logger.warning(f"Existence check for {version} failed: {e}")
            return False

        return response.is_success

    async def _query_index(self, n: int) -> List[str]:
        """Collect at least ``n`` release entries, newest first.

        The API returns at most :data:`INDEX_PAGE_LIMIT` releases per call;
        later pages are requested with the ``after`` cursor, the creation
        timestamp of the last release seen.
        """
        found: List[str] = []
        after: Optional[str] = None

        while len(found) < n:
            limit = min(n - len(found), INDEX_PAGE_LIMIT)
            params = {"limit": limit}
            if after:
                params["after"] = after

            response = await self.client.get(
                self.config.index_url, params=params, timeout=self.timeout
            )
            response.raise_for_status()

            page = response.json()
            if not isinstance(page, list):
                raise ValueError("release index did not return a list")

            releases = [
                item for item in page if isinstance(item, dict) and "version" in item
            ]
            found.extend(str(item["version"]) for item in releases)

            cursor = releases[-1].get("timestamp_created") if releases else None
            if len(page) < limit or not cursor or cursor == after:
                break
            after = str(cursor)

        return found

    async def _scrape_listing(self) -> List[str]:
        response = await self.client.get(
            f"{self.config.base_url.rstrip('/')}/",
            timeout=self.timeout,
            follow_redirects=True,
        )
        response.raise_for_status()

        pattern = re.compile(
            rf"{re.escape(self.config.product)}_(\d+\.\d+\.\d+(?:-[A-Za-z0-9]+)?)"
        )
        return pattern.findall(response.text)
