"""Install orchestration with backup and rollback.

One call to :meth:`Installer.install` walks a single attempt through

    RESOLVING -> FETCHING -> VERIFYING -> BACKING_UP -> EXTRACTING
    -> PLACING -> SMOKE_TESTING -> SUCCESS

and stops at the first failure, ending in FAILED or ROLLED_BACK. The
attempt's state lives in an :class:`InstallContext` handed from step to
step. Cancellation rolls back and cleans up like any other failure but is
re-raised instead of being reported as a result.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import httpx

from packer_updater import integrity
from packer_updater.backup import BackupManager, BackupRecord
from packer_updater.config import UpdaterConfig
from packer_updater.errors import (
    PlacementFailed,
    RestoreFailed,
    SmokeTestFailure,
    UpdateError,
    VersionNotFound,
)
from packer_updater.fetcher import ArtifactFetcher
from packer_updater.resolver import InstalledVersion, VersionResolver, query_binary_version
from packer_updater.session import InstallSession
from packer_updater.version import Version

logger = logging.getLogger(__name__)


class InstallPhase(str, Enum):
    """Install attempt states."""

    RESOLVING = "resolving"
    FETCHING = "fetching"
    VERIFYING = "verifying"
    BACKING_UP = "backing_up"
    EXTRACTING = "extracting"
    PLACING = "placing"
    SMOKE_TESTING = "smoke_testing"
    SUCCESS = "success"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


@dataclass
class InstallContext:
    """Mutable state of one install attempt."""

    requested: Version
    phase: InstallPhase = InstallPhase.RESOLVING
    current: Optional[InstalledVersion] = None
    session: Optional[InstallSession] = None
    archive: Optional[Path] = None
    manifest: Optional[Path] = None
    extracted: Optional[Path] = None
    backup: Optional[BackupRecord] = None
    placed: bool = False
    up_to_date: bool = False
    rolled_back: bool = False
    restore_error: Optional[RestoreFailed] = None


@dataclass
class InstallResult:
    """Outcome of an install attempt."""

    requested: Version
    state: InstallPhase
    previous: Optional[InstalledVersion] = None
    failed_phase: Optional[InstallPhase] = None
    error: Optional[UpdateError] = None
    restore_error: Optional[RestoreFailed] = None
    backup_path: Optional[Path] = None
    up_to_date: bool = False

    @property
    def success(self) -> bool:
        return self.state is InstallPhase.SUCCESS

    @property
    def dual_failure(self) -> bool:
        """Both the install and the restore of the original failed."""
        return self.restore_error is not None


class Installer:
    """Drives resolution, download, verification and placement."""

    def __init__(
        self,
        config: UpdaterConfig,
        client: httpx.AsyncClient,
        resolver: Optional[VersionResolver] = None,
        fetcher: Optional[ArtifactFetcher] = None,
        backups: Optional[BackupManager] = None,
        session_factory: Callable[[], InstallSession] = InstallSession,
        progress_callback: Optional[Callable[[InstallPhase, InstallContext], None]] = None
    ):
        """Initialize installer.

        Args:
            config: Updater configuration
            client: Shared HTTP client
            resolver: Version resolver (built from config if omitted)
            fetcher: Artifact fetcher (built from config if omitted)
            backups: Backup manager
            session_factory: Creates the per-attempt session directory
            progress_callback: Optional callback invoked on each phase change
        """
        self.config = config
        self.resolver = resolver or VersionResolver(client, config)
        self.fetcher = fetcher or ArtifactFetcher(
            client,
            max_attempts=config.max_attempts,
            retry_delay_sec=config.retry_delay_sec,
            connect_timeout_sec=config.connect_timeout_sec,
            download_timeout_sec=config.download_timeout_sec,
        )
        self.backups = backups or BackupManager()
        self.session_factory = session_factory
        self.progress_callback = progress_callback
        self.context: Optional[InstallContext] = None

    async def install(self, requested: Version) -> InstallResult:
        """Install ``requested`` over the configured target.

        Returns:
            Result describing the terminal state

        Raises:
            asyncio.CancelledError, KeyboardInterrupt: After rolling back.
                The attempt stays available as :attr:`context`, including
                any restore failure.
        """
        ctx = InstallContext(requested=requested)
        self.context = ctx

        try:
            ctx = await self._resolve(ctx)
            if ctx.up_to_date:
                return self._result(ctx)

            self._enter(ctx, InstallPhase.FETCHING)
            with self.session_factory() as session:
                ctx.session = session
                ctx = await self._fetch(ctx)
                ctx = self._verify(ctx)
                ctx = await self._apply(ctx)

        except UpdateError as e:
            return self._failure(ctx, e)

        return self._result(ctx)

    async def _resolve(self, ctx: InstallContext) -> InstallContext:
        self._enter(ctx, InstallPhase.RESOLVING)
        ctx.current = await self.resolver.current_version()

        if ctx.current.version == ctx.requested:
            logger.info(f"{self.config.product} {ctx.requested} is already installed")
            ctx.up_to_date = True
            ctx.phase = InstallPhase.SUCCESS
            return ctx

        if not await self.resolver.exists(ctx.requested):
            raise VersionNotFound(ctx.requested)

        return ctx

    async def _fetch(self, ctx: InstallContext) -> InstallContext:
        version = ctx.requested

        ctx.archive = await self.fetcher.fetch(
            self.config.artifact_url(version),
            ctx.session.file(self.config.artifact_name(version)),
        )
        ctx.manifest = await self.fetcher.fetch(
            self.config.manifest_url(version),
            ctx.session.file(self.config.manifest_name(version)),
        )
        return ctx

    def _verify(self, ctx: InstallContext) -> InstallContext:
        self._enter(ctx, InstallPhase.VERIFYING)
        integrity.verify(ctx.archive, ctx.manifest)
        return ctx

    async def _apply(self, ctx: InstallContext) -> InstallContext:
        """Back up, extract, place and smoke test, rolling back on any exit."""
        try:
            ctx = self._backup(ctx)
            ctx = self._extract(ctx)
            ctx = self._place(ctx)
            ctx = await self._smoke_test(ctx)
        except BaseException:
            self._rollback(ctx)
            raise

        if ctx.backup is not None:
            self.backups.discard(ctx.backup)
            ctx.backup = None

        ctx.phase = InstallPhase.SUCCESS
        logger.info(f"Installed {self.config.product} {ctx.requested}")
        return ctx

    def _backup(self, ctx: InstallContext) -> InstallContext:
        self._enter(ctx, InstallPhase.BACKING_UP)
        ctx.backup = self.backups.backup(self.config.target_path)
        return ctx

    def _extract(self, ctx: InstallContext) -> InstallContext:
        self._enter(ctx, InstallPhase.EXTRACTING)
        ctx.extracted = ctx.session.extract(ctx.archive, self.config.binary_name)
        return ctx

    def _place(self, ctx: InstallContext) -> InstallContext:
        self._enter(ctx, InstallPhase.PLACING)
        target = self.config.target_path
        staging = target.with_name(f".{target.name}.{os.getpid()}.new")

        logger.info(f"Installing {target.name}")

        try:
            shutil.copy2(ctx.extracted, staging)
            staging.chmod(0o755)
            os.replace(staging, target)
            ctx.placed = True
        except OSError as e:
            raise PlacementFailed(f"Failed to install {target.name}: {e}") from e
        finally:
            staging.unlink(missing_ok=True)

        return ctx

    async def _smoke_test(self, ctx: InstallContext) -> InstallContext:
        self._enter(ctx, InstallPhase.SMOKE_TESTING)
        target = self.config.target_path

        reported = await query_binary_version(target, self.config.smoke_test_timeout_sec)

        if reported is None:
            raise SmokeTestFailure(f"Installed {target.name} is not working correctly")

        if reported != ctx.requested:
            raise SmokeTestFailure(
                f"Installed {target.name} reports version {reported}, "
                f"expected {ctx.requested}"
            )

        logger.info(f"Smoke test passed: {target.name} reports {reported}")
        return ctx

    def _rollback(self, ctx: InstallContext) -> None:
        target = self.config.target_path

        if ctx.backup is None:
            if ctx.placed:
                logger.warning(f"Removing unverified {target.name}")
                try:
                    target.unlink(missing_ok=True)
                except OSError as e:
                    logger.error(f"Failed to remove {target}: {e}")
            return

        try:
            self.backups.restore(ctx.backup)
        except RestoreFailed as e:
            logger.critical(
                f"Rollback failed, manual intervention required. "
                f"Original binary preserved at {ctx.backup.backup_path}"
            )
            ctx.restore_error = e
            return

        ctx.backup = None
        ctx.rolled_back = True

    def _enter(self, ctx: InstallContext, phase: InstallPhase) -> None:
        ctx.phase = phase
        logger.debug(f"Entering phase: {phase.value}")

        if self.progress_callback:
            self.progress_callback(phase, ctx)

    def _failure(self, ctx: InstallContext, error: UpdateError) -> InstallResult:
        logger.error(f"Install failed while {ctx.phase.value}: {error}")

        failed_phase = ctx.phase
        ctx.phase = InstallPhase.ROLLED_BACK if ctx.rolled_back else InstallPhase.FAILED

        result = self._result(ctx)
        result.failed_phase = failed_phase
        result.error = error
        return result

    def _result(self, ctx: InstallContext) -> InstallResult:
        return InstallResult(
            requested=ctx.requested,
            state=ctx.phase,
            previous=ctx.current,
            restore_error=ctx.restore_error,
            backup_path=ctx.backup.backup_path if ctx.backup else None,
            up_to_date=ctx.up_to_date,
        )
