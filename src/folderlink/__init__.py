"""folderlink - Upload a local folder to an asset store and render it as a linked tree.

Example usage:
    import asyncio
    from folderlink import AssetStoreClient, FolderUploader, load_settings

    async def main():
        settings = load_settings()
        async with AssetStoreClient(settings.base_url) as store:
            uploader = await FolderUploader.from_provider(store, settings)
            result = await uploader.run_operation("/data/photos", "20240101120000-abcdefg")
            print(result.summary())

    asyncio.run(main())
"""

from folderlink.cancellation import CancellationToken
from folderlink.client import FolderUploader
from folderlink.config import Settings, load_settings
from folderlink.exceptions import (
    ConfigError,
    FolderlinkError,
    InsertionError,
    OperationInProgressError,
    TransportError,
    UploadError,
)
from folderlink.models import (
    ErrorKind,
    FailureLog,
    NodeKind,
    OperationResult,
    OperationStatus,
    ScanResult,
    TreeNode,
    UploadFile,
    ValidationResult,
)
from folderlink.names import NameCache, disambiguate, upload_names
from folderlink.renderer import render_tree
from folderlink.scanner import DirectoryScanner
from folderlink.transport import (
    AssetStoreClient,
    InsertionTransport,
    UploadTransport,
    WorkspaceRootProvider,
)
from folderlink.uploader import BatchUploader
from folderlink.validator import PathValidator

__version__ = "0.1.0"

__all__ = [
    # Main entry point
    "FolderUploader",
    # Pipeline components
    "PathValidator",
    "DirectoryScanner",
    "BatchUploader",
    "CancellationToken",
    "NameCache",
    "disambiguate",
    "upload_names",
    "render_tree",
    # Transports
    "AssetStoreClient",
    "UploadTransport",
    "InsertionTransport",
    "WorkspaceRootProvider",
    # Configuration
    "Settings",
    "load_settings",
    # Models
    "TreeNode",
    "NodeKind",
    "ScanResult",
    "FailureLog",
    "ErrorKind",
    "ValidationResult",
    "UploadFile",
    "OperationResult",
    "OperationStatus",
    # Exceptions
    "FolderlinkError",
    "ConfigError",
    "TransportError",
    "UploadError",
    "InsertionError",
    "OperationInProgressError",
]
