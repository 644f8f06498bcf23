"""Main FolderUploader class: scan, upload, render and insert a folder."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path

from folderlink.cancellation import CancellationToken
from folderlink.config import Settings
from folderlink.exceptions import OperationInProgressError
from folderlink.models import (
    BatchUploadResult,
    ErrorKind,
    FailureLog,
    OperationResult,
    OperationStatus,
    ScanResult,
)
from folderlink.names import NameCache
from folderlink.renderer import render_tree
from folderlink.scanner import DirectoryScanner
from folderlink.transport import InsertionTransport, UploadTransport, WorkspaceRootProvider
from folderlink.uploader import BatchUploader
from folderlink.validator import PathValidator

logger = logging.getLogger(__name__)


class FolderUploader:
    """Uploads a local folder to the asset store and inserts a linked tree.

    One operation runs at a time per instance; ``cancel()`` stops it
    cooperatively and never raises.

    Example:
        async with AssetStoreClient(settings.base_url) as store:
            uploader = await FolderUploader.from_provider(store, settings)
            result = await uploader.run_operation("/data/photos", "20240101-abc")
            print(result.summary())
    """

    def __init__(
        self,
        transport: UploadTransport,
        settings: Settings | None = None,
        *,
        inserter: InsertionTransport | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            transport: Upload collaborator, also used for insertion unless
                ``inserter`` is given
            settings: Limits and protected root (defaults if omitted)
            inserter: Insertion collaborator
        """
        self._transport = transport
        self._inserter = inserter if inserter is not None else transport
        self._settings = settings or Settings()
        self._validator = PathValidator(
            self._settings.protected_root, self._settings.sensitive_dirs
        )
        self.failures = FailureLog()
        self._names = NameCache()
        self._cancel_token: CancellationToken | None = None

    @classmethod
    async def from_provider(
        cls,
        transport: UploadTransport,
        settings: Settings | None = None,
        *,
        provider: WorkspaceRootProvider | None = None,
        inserter: InsertionTransport | None = None,
    ) -> FolderUploader:
        """Build an uploader whose protected root comes from ``provider``.

        An explicit ``settings.protected_root`` wins. The transport is used
        as provider when it implements ``get_workspace_dir``.
        """
        settings = settings or Settings()
        if settings.protected_root is None:
            if provider is None and isinstance(transport, WorkspaceRootProvider):
                provider = transport
            if provider is not None:
                workspace = await provider.get_workspace_dir()
                if workspace:
                    settings = settings.with_overrides(protected_root=workspace)
                else:
                    logger.warning("Workspace directory unavailable; no root is protected")
        return cls(transport, settings, inserter=inserter)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def validator(self) -> PathValidator:
        return self._validator

    @property
    def is_running(self) -> bool:
        return self._cancel_token is not None

    def cancel(self) -> bool:
        """Cancel the running operation.

        Returns:
            True if an operation was running and is now cancelled
        """
        token = self._cancel_token
        if token is None or not token.cancel():
            return False
        logger.info("Upload cancelled")
        return True

    async def scan(self, root_path: str | Path) -> ScanResult:
        """Validate and scan ``root_path`` without uploading anything."""
        validation = self._validator.validate(root_path)
        if not validation.valid:
            return ScanResult(error=validation.reason)
        self.failures.clear()
        scanner = DirectoryScanner(self._validator, self._settings, failures=self.failures)
        return await scanner.scan(os.path.abspath(root_path))

    async def run_operation(self, root_path: str | Path, anchor_id: str) -> OperationResult:
        """Scan ``root_path``, upload its files and insert the rendered tree.

        A cancelled operation still renders the tree built so far into
        ``result.markdown`` but does not insert it; callers that want the
        partial tree in the document insert it themselves.

        Args:
            root_path: Local folder to upload
            anchor_id: Block after which the tree is inserted

        Returns:
            OperationResult describing the outcome

        Raises:
            OperationInProgressError: If this uploader is already running
        """
        if self._cancel_token is not None:
            raise OperationInProgressError("An upload is already in progress")

        started = time.monotonic()
        token = CancellationToken()
        self._cancel_token = token
        self._names.clear()
        self.failures.clear()
        try:
            return await self._run(root_path, anchor_id, token, started)
        finally:
            self._names.clear()
            self._cancel_token = None

    async def _run(
        self, root_path: str | Path, anchor_id: str, token: CancellationToken, started: float
    ) -> OperationResult:
        root = Path(root_path)
        validation = self._validator.validate(root_path)
        if not validation.valid:
            logger.warning(f"Rejected {root}: {validation.message}")
            return OperationResult(
                status=OperationStatus.INVALID,
                root_path=root,
                message=validation.message,
                error=validation.reason,
            )

        if not await asyncio.to_thread(os.path.isdir, root):
            return OperationResult(
                status=OperationStatus.INVALID,
                root_path=root,
                message="Only folders can be uploaded",
                error=ErrorKind.NOT_A_DIRECTORY,
            )

        root = Path(os.path.abspath(root))
        logger.info(f"Scanning {root}")
        scanner = DirectoryScanner(
            self._validator,
            self._settings,
            failures=self.failures,
            cancel_token=token,
            names=self._names,
        )
        try:
            scan = await scanner.scan(root)
        except OSError as e:
            logger.error(f"Failed to scan {root}: {e}")
            return self._finish(
                OperationStatus.ERROR,
                root,
                started,
                error=ErrorKind.UNREADABLE,
                message=f"Failed to read folder: {e}",
            )

        if scan.error is ErrorKind.DEPTH_EXCEEDED:
            return self._finish(
                OperationStatus.ERROR,
                root,
                started,
                error=scan.error,
                message=f"Directory depth exceeds the limit ({self._settings.max_depth})",
            )

        total = len(scan.file_paths)
        if total == 0:
            status = OperationStatus.CANCELLED if token.cancelled else OperationStatus.EMPTY
            return self._finish(status, root, started)

        logger.info(f"Uploading {total} file(s) from {root}")
        uploader = BatchUploader(
            self._transport,
            self._settings,
            failures=self.failures,
            cancel_token=token,
            names=self._names,
        )
        uploaded = await uploader.upload(scan.file_paths)
        apply_urls(scan, uploaded)
        markdown = render_tree(scan.tree, self._names.get(root))

        if token.cancelled:
            return self._finish(
                OperationStatus.CANCELLED,
                root,
                started,
                total=total,
                uploaded=len(uploaded.url_map),
                markdown=markdown,
            )

        await self._insert(markdown, anchor_id)
        status = OperationStatus.PARTIAL if len(self.failures) else OperationStatus.SUCCEEDED
        return self._finish(
            status, root, started, total=total, uploaded=len(uploaded.url_map), markdown=markdown
        )

    async def _insert(self, markdown: str, anchor_id: str) -> None:
        try:
            await self._inserter.insert_markdown(markdown, anchor_id)
        except Exception as e:
            logger.error(f"Failed to insert content: {e}")

    def _finish(
        self,
        status: OperationStatus,
        root: Path,
        started: float,
        *,
        total: int = 0,
        uploaded: int = 0,
        markdown: str | None = None,
        error: ErrorKind | None = None,
        message: str | None = None,
    ) -> OperationResult:
        result = OperationResult(
            status=status,
            root_path=root,
            total_files=total,
            uploaded=uploaded,
            failed_files=self.failures.paths,
            elapsed=time.monotonic() - started,
            markdown=markdown,
            message=message,
            error=error,
        )
        logger.info(result.summary())
        return result


def apply_urls(scan: ScanResult, uploaded: BatchUploadResult) -> None:
    """Back-fill upload results into the file nodes of ``scan``."""
    for node in scan.iter_file_nodes():
        if node.source_path is None:
            continue
        url = uploaded.url_map.get(node.source_path)
        if url:
            node.assign_url(url)
        else:
            node.mark_failed()
