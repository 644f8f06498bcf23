"""Command-line interface for folderlink."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys
from pathlib import Path

import click

from folderlink import (
    AssetStoreClient,
    ConfigError,
    FolderUploader,
    OperationResult,
    OperationStatus,
    Settings,
    load_settings,
)
from folderlink.renderer import render_tree

_FAILING = (OperationStatus.INVALID, OperationStatus.ERROR, OperationStatus.PARTIAL)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _load(**overrides: object) -> Settings:
    try:
        return load_settings(**overrides)
    except ConfigError as e:
        click.echo(click.style(f"Configuration error: {e}", fg="red"), err=True)
        sys.exit(1)


async def _run_upload(settings: Settings, path: str, anchor: str) -> OperationResult:
    async with AssetStoreClient(settings.base_url, timeout=settings.timeout) as store:
        uploader = await FolderUploader.from_provider(store, settings)
        loop = asyncio.get_running_loop()
        # signal handlers are unavailable on some platforms
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signal.SIGINT, uploader.cancel)
        try:
            return await uploader.run_operation(path, anchor)
        finally:
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(signal.SIGINT)


def _preview(settings: Settings, path: str) -> None:
    """Scan ``path`` and print the tree with every file unlinked."""
    uploader = FolderUploader(_NoTransport(), settings)

    try:
        result = asyncio.run(uploader.scan(path))
    except OSError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if result.error is not None:
        click.echo(click.style(f"Cannot scan {path!r}: {result.error.value}", fg="red"), err=True)
        sys.exit(1)

    for node in result.iter_file_nodes():
        node.mark_failed()
    root_name = os.path.basename(os.path.abspath(path))
    click.echo(render_tree(result.tree, root_name))
    click.echo(f"\n{len(result.file_paths)} file(s) would be uploaded.")
    for failed in uploader.failures:
        click.echo(click.style("✗ ", fg="red") + str(failed), err=True)


@click.group()
@click.version_option(package_name="folderlink")
def main() -> None:
    """folderlink - Upload a local folder as assets and insert a linked tree."""
    pass


@main.command()
@click.argument("path", type=click.Path(path_type=str))
@click.option("--anchor", "-a", required=True, help="Block ID to insert the tree after")
@click.option("--base-url", "-u", default=None, help="Kernel API base URL")
@click.option("--assets-dir", default=None, help="Destination assets directory")
@click.option(
    "--protected-root",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory that must never be uploaded (default: kernel workspace)",
)
@click.option("--batch-size", type=int, default=None, help="Files per upload request")
@click.option("--max-depth", type=int, default=None, help="Maximum directory depth")
@click.option("--dry-run", is_flag=True, help="Show the tree without uploading anything")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def upload(
    path: str,
    anchor: str,
    base_url: str | None,
    assets_dir: str | None,
    protected_root: Path | None,
    batch_size: int | None,
    max_depth: int | None,
    dry_run: bool,
    verbose: bool,
) -> None:
    """Upload every file under PATH and insert the linked tree.

    PATH: Local folder to upload.

    Examples:

        folderlink upload ~/Pictures/trip --anchor 20240101120000-abcdefg

        folderlink upload ./docs -a 20240101120000-abcdefg --batch-size 5

        folderlink upload ./docs -a 20240101120000-abcdefg --dry-run
    """
    _configure_logging(verbose)
    settings = _load(
        base_url=base_url,
        assets_dir=assets_dir,
        protected_root=str(protected_root) if protected_root else None,
        batch_size=batch_size,
        max_depth=max_depth,
    )

    if dry_run:
        _preview(settings, path)
        return

    try:
        result = asyncio.run(_run_upload(settings, path, anchor))
    except Exception as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if result.status in _FAILING:
        click.echo(click.style(result.summary(), fg="red"), err=True)
    else:
        click.echo(click.style(result.summary(), fg="green"))

    for failed in result.failed_files:
        click.echo(click.style("✗ ", fg="red") + str(failed), err=True)

    if result.status in _FAILING:
        sys.exit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option(
    "--protected-root",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory that must never be uploaded",
)
@click.option("--max-depth", type=int, default=None, help="Maximum directory depth")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def scan(path: str, protected_root: Path | None, max_depth: int | None, verbose: bool) -> None:
    """Preview the tree that would be uploaded from PATH.

    Nothing is uploaded; every file is shown unlinked.

    Examples:

        folderlink scan ~/Pictures/trip
    """
    _configure_logging(verbose)
    settings = _load(
        protected_root=str(protected_root) if protected_root else None,
        max_depth=max_depth,
    )
    _preview(settings, path)


class _NoTransport:
    """Stand-in collaborator for scan-only runs."""

    async def upload_assets(self, assets_dir: str, files: object) -> dict[str, str]:
        raise RuntimeError("scan does not upload")

    async def insert_markdown(self, markdown: str, anchor_id: str) -> None:
        raise RuntimeError("scan does not insert")


if __name__ == "__main__":
    main()
