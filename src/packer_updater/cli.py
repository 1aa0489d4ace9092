"""Command-line interface for the Packer updater.

Usage:
    packer-update            show the installed and latest available versions
    packer-update 1.9.4      install a specific version
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
import httpx
from pydantic import ValidationError

from packer_updater import __version__
from packer_updater.config import UpdaterConfig
from packer_updater.errors import InvalidInput, VersionNotFound
from packer_updater.installer import InstallContext, Installer, InstallPhase, InstallResult
from packer_updater.interrupt import InterruptHandler
from packer_updater.logging_config import configure_logging
from packer_updater.resolver import VersionResolver
from packer_updater.version import Version, parse_and_validate

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def info(message: str) -> None:
    click.secho(message, fg="blue")
    logger.info(message)


def success(message: str) -> None:
    click.secho(message, fg="green")
    logger.info(message)


def warning(message: str) -> None:
    click.secho(message, fg="yellow", err=True)
    logger.warning(message)


def error(message: str) -> None:
    click.secho(message, fg="red", err=True)
    logger.error(message)


def reset_terminal() -> None:
    """Emit an ANSI reset so an interrupted run never leaves colours behind."""
    click.echo(click.style("", reset=True), nl=False)


def _client(config: UpdaterConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers={"User-Agent": f"packer-update/{__version__}"},
        timeout=config.query_timeout_sec,
    )


def _print_versions(versions: List[Version], count: int) -> None:
    info(f"Available versions (latest {count}):")

    if not versions:
        warning("Could not retrieve the list of available versions")
        return

    for version in versions:
        click.echo(f"  {version}")


async def show_versions(config: UpdaterConfig) -> int:
    """Print the installed version and the latest releases."""
    async with _client(config) as client:
        resolver = VersionResolver(client, config)
        current = await resolver.current_version()

        click.echo("Current version: " + click.style(str(current), fg="green"))
        click.echo()

        versions = await resolver.list_latest(config.latest_count)
        _print_versions(versions, config.latest_count)

    return EXIT_OK


def _report_progress(config: UpdaterConfig):
    name = config.product.capitalize()

    def callback(phase: InstallPhase, ctx: InstallContext) -> None:
        if phase is InstallPhase.FETCHING:
            click.echo()
            info(f"Current version: {ctx.current}")
            info(f"Requested version: {ctx.requested}")
            click.echo()
            info(f"==> Downloading {name} {ctx.requested}...")
        elif phase is InstallPhase.VERIFYING:
            info("==> Verifying SHA256 checksum...")
        elif phase is InstallPhase.EXTRACTING:
            info(f"==> Extracting {name}...")
        elif phase is InstallPhase.PLACING:
            info(f"==> Installing {name}...")

    return callback


async def install_version(config: UpdaterConfig, requested: Version) -> int:
    """Install ``requested`` and report the outcome."""
    name = config.product.capitalize()

    async with _client(config) as client:
        with InterruptHandler():
            installer = Installer(
                config, client, progress_callback=_report_progress(config)
            )
            try:
                result = await installer.install(requested)
            except (asyncio.CancelledError, KeyboardInterrupt):
                ctx = installer.context
                if ctx is not None and ctx.restore_error is not None:
                    _report_dual_failure(
                        "installation was interrupted",
                        ctx.restore_error,
                        ctx.backup.backup_path if ctx.backup else None,
                    )
                raise

            if result.up_to_date:
                success(f"{name} {requested} is already installed.")
                return EXIT_OK

            if result.success:
                click.echo()
                success(f"✓ Successfully updated {name} to version {requested}")
                success(f"✓ Verify with: {config.target_path} --version")
                return EXIT_OK

            _report_failure(result)

            if isinstance(result.error, VersionNotFound):
                click.echo()
                versions = await installer.resolver.list_latest(config.latest_count)
                _print_versions(versions, config.latest_count)

    return EXIT_FAILURE


def _report_failure(result: InstallResult) -> None:
    error(str(result.error))

    if result.dual_failure:
        _report_dual_failure("installation failed", result.restore_error, result.backup_path)
    elif result.state is InstallPhase.ROLLED_BACK:
        warning("Previous version restored from backup")

    error("✗ Installation failed")


def _report_dual_failure(
    cause: str, restore_error: Exception, backup_path: Optional[Path]
) -> None:
    error("!" * 60)
    error(f"FATAL: {cause} AND the previous binary could not be restored.")
    error(f"Restore error: {restore_error}")
    if backup_path:
        error(f"The original binary is preserved at: {backup_path}")
    error("Manual intervention is required.")
    error("!" * 60)


def _run(coro) -> int:
    try:
        return asyncio.run(coro)
    except (KeyboardInterrupt, asyncio.CancelledError):
        warning("Interrupted")
        return EXIT_INTERRUPTED
    finally:
        reset_terminal()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("version", required=False)
@click.option(
    "--install-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory containing the binary (default: current directory)"
)
@click.option("--os", "os_name", help="Artifact operating system (default: windows)")
@click.option("--arch", help="Artifact architecture (default: amd64)")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Append-only log file"
)
@click.option(
    "--latest",
    "latest_count",
    type=click.IntRange(1, 100),
    help="Number of versions to list (default: 10)"
)
@click.option("-v", "--verbose", is_flag=True, help="Mirror debug logging to stderr")
def cli(
    version: Optional[str],
    install_dir: Optional[Path],
    os_name: Optional[str],
    arch: Optional[str],
    log_file: Optional[Path],
    latest_count: Optional[int],
    verbose: bool
):
    """Download and install a specific version of HashiCorp Packer.

    Without VERSION, prints the installed version and the latest
    available releases without changing anything.

    \b
    Examples:
        packer-update 1.9.4
        packer-update 1.9.4-beta1

    \b
    Notes:
        - Creates automatic backups of the existing binary
        - Verifies downloads using SHA256 checksums
        - Retries downloads on network failures
    """
    try:
        config = UpdaterConfig.from_env(
            install_dir=install_dir,
            os_name=os_name,
            arch=arch,
            log_file=log_file,
            latest_count=latest_count,
        )
    except ValidationError as e:
        click.secho(f"Invalid configuration: {e}", fg="red", err=True)
        sys.exit(EXIT_FAILURE)

    configure_logging(config.log_file, verbose=verbose)
    logger.info("Starting packer-update")

    if version is None:
        sys.exit(_run(show_versions(config)))

    try:
        requested = parse_and_validate(version)
    except InvalidInput as e:
        error(str(e))
        sys.exit(EXIT_FAILURE)

    exit_code = _run(install_version(config, requested))

    if exit_code == EXIT_OK:
        logger.info("Installation completed successfully")
    elif exit_code == EXIT_FAILURE:
        logger.error("Installation failed")

    sys.exit(exit_code)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
