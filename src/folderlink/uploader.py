"""Batch upload of scanned files to the asset store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from folderlink.cancellation import CancellationToken
from folderlink.config import Settings
from folderlink.models import BatchUploadResult, ErrorKind, FailureLog, UploadFile
from folderlink.names import NameCache, upload_names
from folderlink.transport import UploadTransport

logger = logging.getLogger(__name__)


def partition(items: Sequence[Path], size: int) -> list[list[Path]]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BatchUploader:
    """Uploads files in fixed-size batches, one transport call per batch.

    Batches run one after another in index order. Inside a batch, file
    reads run concurrently up to ``max_concurrent_reads``. Every failure is
    appended to the shared FailureLog; nothing here raises for a single
    file or a single batch.
    """

    def __init__(
        self,
        transport: UploadTransport,
        settings: Settings | None = None,
        *,
        failures: FailureLog | None = None,
        cancel_token: CancellationToken | None = None,
        names: NameCache | None = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or Settings()
        self.failures = failures if failures is not None else FailureLog()
        self._cancel = cancel_token or CancellationToken()
        self._names = names or NameCache()

    async def upload(self, file_paths: Sequence[Path]) -> BatchUploadResult:
        """Upload all ``file_paths``.

        Args:
            file_paths: Absolute paths, usually ``ScanResult.file_paths``

        Returns:
            BatchUploadResult mapping each uploaded path to its URL
        """
        result = BatchUploadResult()
        batches = partition(list(file_paths), self._settings.batch_size)

        for number, batch in enumerate(batches, start=1):
            if self._cancel.cancelled:
                logger.info(f"Upload cancelled before batch {number}/{len(batches)}")
                result.cancelled = True
                break
            urls, attempted = await self._upload_batch(batch, number)
            result.url_map.update(urls)
            result.attempted += attempted

        if self._cancel.cancelled:
            result.cancelled = True
        return result

    async def _upload_batch(self, batch: list[Path], number: int) -> tuple[dict[Path, str], int]:
        """Read and send one batch. Returns the path->URL map and the number of files sent."""
        names = upload_names(batch, self._names)
        files = await self._read_files(batch, names)
        if not files or self._cancel.cancelled:
            return {}, 0

        try:
            answer = await self._transport.upload_assets(self._settings.assets_dir, files)
        except Exception as e:
            logger.error(f"Batch upload failed (batch {number}): {e}")
            answer = {}

        urls: dict[Path, str] = {}
        for upload in files:
            url = answer.get(upload.name)
            if url:
                urls[upload.path] = url
            else:
                self.failures.append(upload.path, ErrorKind.UPLOAD_REJECTED)
        logger.info(f"Batch {number}: uploaded {len(urls)}/{len(files)} file(s)")
        return urls, len(files)

    async def _read_files(self, batch: list[Path], names: list[str]) -> list[UploadFile]:
        """Read file contents with bounded concurrency, keeping batch order."""
        semaphore = asyncio.Semaphore(self._settings.max_concurrent_reads)

        async def read(path: Path, name: str) -> UploadFile | None:
            async with semaphore:
                if self._cancel.cancelled:
                    return None
                try:
                    content = await asyncio.to_thread(path.read_bytes)
                except OSError as e:
                    self.failures.append(path, ErrorKind.UNREADABLE)
                    logger.warning(f"Failed to read {path}: {e}")
                    return None
                return UploadFile(name=name, content=content, path=path)

        results = await asyncio.gather(*(read(p, n) for p, n in zip(batch, names)))
        return [upload for upload in results if upload is not None]
