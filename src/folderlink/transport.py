"""Collaborator contracts and the HTTP asset store client."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field, ValidationError

from folderlink.config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from folderlink.exceptions import InsertionError, TransportError, UploadError
from folderlink.models import UploadFile

logger = logging.getLogger(__name__)

UPLOAD_ENDPOINT = "/api/asset/upload"
INSERT_ENDPOINT = "/api/block/insertBlock"
CONF_ENDPOINT = "/api/system/getConf"


@runtime_checkable
class UploadTransport(Protocol):
    """Persists named blobs and answers with a name -> URL map."""

    async def upload_assets(self, assets_dir: str, files: Sequence[UploadFile]) -> dict[str, str]:
        """Upload ``files`` into ``assets_dir``.

        Returns:
            Mapping from submitted name to URL for every accepted file

        Raises:
            UploadError: If the whole call was rejected
        """
        ...


@runtime_checkable
class InsertionTransport(Protocol):
    """Inserts rendered markup after an anchor in the host document."""

    async def insert_markdown(self, markdown: str, anchor_id: str) -> None: ...


@runtime_checkable
class WorkspaceRootProvider(Protocol):
    """Supplies the protected root once at startup."""

    async def get_workspace_dir(self) -> str | None: ...


class ApiResponse(BaseModel):
    """Envelope returned by every kernel API endpoint."""

    code: int
    msg: str = ""
    data: Any = None


class UploadData(BaseModel):
    succ_map: dict[str, str] = Field(default_factory=dict, alias="succMap")
    err_files: list[str] | None = Field(default=None, alias="errFiles")


class AssetStoreClient:
    """Async HTTP client for the note application's kernel API.

    Implements all three collaborator contracts. Can be used as an async
    context manager; an injected ``httpx.AsyncClient`` is left open.

    Example:
        async with AssetStoreClient("http://127.0.0.1:6806") as client:
            urls = await client.upload_assets("/assets/", files)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def __aenter__(self) -> AssetStoreClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, endpoint: str, error_cls: type[TransportError], **kwargs: Any) -> Any:
        """POST to ``endpoint`` and return the ``data`` field of a successful answer."""
        url = f"{self.base_url}{endpoint}"
        try:
            response = await self._client.post(url, **kwargs)
            response.raise_for_status()
            envelope = ApiResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise error_cls(
                f"{endpoint} returned HTTP {e.response.status_code}",
                code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise error_cls(f"{endpoint} request failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise error_cls(f"{endpoint} returned an invalid response: {e}") from e

        if envelope.code != 0:
            raise error_cls(envelope.msg or f"{endpoint} failed", code=envelope.code)
        return envelope.data

    async def upload_assets(self, assets_dir: str, files: Sequence[UploadFile]) -> dict[str, str]:
        """Upload one batch as a multipart form.

        Raises:
            UploadError: On a non-zero status code or a transport failure
        """
        multipart = [("file[]", (f.name, f.content, "application/octet-stream")) for f in files]
        data = await self._post(
            UPLOAD_ENDPOINT,
            UploadError,
            data={"assetsDirPath": assets_dir},
            files=multipart,
        )
        try:
            parsed = UploadData.model_validate(data or {})
        except ValidationError as e:
            raise UploadError(f"Unexpected upload answer: {e}") from e
        if parsed.err_files:
            logger.warning(f"Asset store rejected {len(parsed.err_files)} file(s)")
        return parsed.succ_map

    async def insert_markdown(self, markdown: str, anchor_id: str) -> None:
        """Insert ``markdown`` as a new block after ``anchor_id``.

        Raises:
            InsertionError: On a non-zero status code or a transport failure
        """
        await self._post(
            INSERT_ENDPOINT,
            InsertionError,
            json={"dataType": "markdown", "data": markdown, "previousID": anchor_id},
        )

    async def get_workspace_dir(self) -> str | None:
        """Ask the kernel for its workspace directory; None if unavailable."""
        try:
            data = await self._post(CONF_ENDPOINT, TransportError, json={})
        except TransportError as e:
            logger.warning(f"Failed to fetch workspace directory: {e}")
            return None
        try:
            workspace = data["conf"]["system"]["workspaceDir"]
        except (KeyError, TypeError):
            logger.warning("Workspace directory missing from kernel configuration")
            return None
        return workspace or None
