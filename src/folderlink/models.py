"""Data models for the folderlink library."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

DEPTH_PLACEHOLDER_NAME = "(depth exceeded, skipped)"


class NodeKind(str, Enum):
    """Kind of filesystem entry a tree node stands for."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


class ErrorKind(str, Enum):
    """Tagged error carried through results instead of raised."""

    TRAVERSAL = "traversal"
    EMPTY_PATH = "empty_path"
    PROTECTED_ANCESTOR = "protected_ancestor"
    PROTECTED_DESCENDANT = "protected_descendant"
    NOT_A_DIRECTORY = "not_a_directory"
    DEPTH_EXCEEDED = "depth_exceeded"
    UNREADABLE = "unreadable"
    TOO_LARGE = "too_large"
    UPLOAD_REJECTED = "upload_rejected"

    @property
    def aborts_operation(self) -> bool:
        """True for errors that stop the whole operation."""
        return self in _ABORTING


_ABORTING = frozenset(
    {
        ErrorKind.TRAVERSAL,
        ErrorKind.EMPTY_PATH,
        ErrorKind.PROTECTED_ANCESTOR,
        ErrorKind.PROTECTED_DESCENDANT,
        ErrorKind.NOT_A_DIRECTORY,
    }
)


@dataclass
class TreeNode:
    """One filesystem entry discovered during a scan.

    A file node starts with ``source_path`` set. Once the upload outcome is
    known the path is cleared and ``url`` is set on success, so a rendered
    file is either linked or unlinked.
    """

    name: str
    kind: NodeKind
    source_path: Path | None = None
    url: str | None = None
    children: list[TreeNode] | None = None
    link_target: str | None = None
    target_safe: bool | None = None
    error: ErrorKind | None = None

    @classmethod
    def file(cls, name: str, source_path: Path | None = None) -> TreeNode:
        return cls(name=name, kind=NodeKind.FILE, source_path=source_path)

    @classmethod
    def directory(
        cls,
        name: str,
        children: list[TreeNode] | None = None,
        error: ErrorKind | None = None,
    ) -> TreeNode:
        return cls(
            name=name,
            kind=NodeKind.DIRECTORY,
            children=children if children is not None else [],
            error=error,
        )

    @classmethod
    def symlink(
        cls, name: str, link_target: str | None, target_safe: bool | None = None
    ) -> TreeNode:
        return cls(
            name=name,
            kind=NodeKind.SYMLINK,
            link_target=link_target,
            target_safe=target_safe,
        )

    @classmethod
    def placeholder(cls, name: str) -> TreeNode:
        """Directory node whose subtree was cut off at the depth limit."""
        return cls.directory(
            name,
            children=[cls.file(DEPTH_PLACEHOLDER_NAME)],
            error=ErrorKind.DEPTH_EXCEEDED,
        )

    @property
    def is_linked(self) -> bool:
        return self.kind is NodeKind.FILE and self.url is not None

    def assign_url(self, url: str) -> None:
        """Record a successful upload."""
        self.url = url
        self.source_path = None

    def mark_failed(self) -> None:
        """Record a failed or skipped upload."""
        self.url = None
        self.source_path = None


def iter_file_nodes(tree: list[TreeNode]) -> Iterator[TreeNode]:
    """Yield every file node of ``tree`` in pre-order."""
    for node in tree:
        if node.kind is NodeKind.FILE:
            yield node
        elif node.kind is NodeKind.DIRECTORY and node.children:
            yield from iter_file_nodes(node.children)


@dataclass
class ScanResult:
    """Tree plus the flat list of file paths found in it."""

    tree: list[TreeNode] = field(default_factory=list)
    file_paths: list[Path] = field(default_factory=list)
    error: ErrorKind | None = None

    def iter_file_nodes(self) -> Iterator[TreeNode]:
        return iter_file_nodes(self.tree)


# Absolute path -> name used for the upload, colliding paths only.
RenameMap = dict[Path, str]


class FailureLog:
    """Append-only record of paths that failed at any stage.

    Entries are not de-duplicated; ordering across concurrent workers is
    not guaranteed.
    """

    def __init__(self) -> None:
        self._entries: list[tuple[Path, ErrorKind]] = []
        self._lock = threading.Lock()

    def append(self, path: Path | str, kind: ErrorKind) -> None:
        with self._lock:
            self._entries.append((Path(path), kind))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def paths(self) -> list[Path]:
        with self._lock:
            return [path for path, _ in self._entries]

    def entries(self) -> list[tuple[Path, ErrorKind]]:
        with self._lock:
            return list(self._entries)

    def count(self, path: Path | str) -> int:
        target = Path(path)
        with self._lock:
            return sum(1 for p, _ in self._entries if p == target)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[Path]:
        return iter(self.paths)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a user-supplied root path."""

    valid: bool
    reason: ErrorKind | None = None
    message: str | None = None


VALID = ValidationResult(valid=True)


@dataclass(frozen=True)
class UploadFile:
    """A file read from disk, ready to be sent under ``name``."""

    name: str
    content: bytes
    path: Path


@dataclass
class BatchUploadResult:
    """Aggregate outcome of uploading all batches."""

    url_map: dict[Path, str] = field(default_factory=dict)
    attempted: int = 0
    cancelled: bool = False


class OperationStatus(str, Enum):
    """Final status of one upload-and-insert operation."""

    INVALID = "invalid"
    EMPTY = "empty"
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass(frozen=True)
class OperationResult:
    """Result of ``FolderUploader.run_operation``."""

    status: OperationStatus
    root_path: Path
    total_files: int = 0
    uploaded: int = 0
    failed_files: list[Path] = field(default_factory=list)
    elapsed: float = 0.0
    markdown: str | None = None
    message: str | None = None
    error: ErrorKind | None = None

    @property
    def success(self) -> bool:
        return self.status in (OperationStatus.SUCCEEDED, OperationStatus.EMPTY)

    def summary(self) -> str:
        """Terse one-line status for the user."""
        if self.status is OperationStatus.INVALID or self.status is OperationStatus.ERROR:
            return self.message or "Operation failed"
        if self.status is OperationStatus.EMPTY:
            return "Folder is empty or has no uploadable files"
        if self.status is OperationStatus.SUCCEEDED:
            return f"Uploaded {self.uploaded} file(s) in {self.elapsed:.1f}s"
        prefix = "Cancelled: uploaded" if self.status is OperationStatus.CANCELLED else "Uploaded"
        return (
            f"{prefix} {self.uploaded}/{self.total_files} file(s), "
            f"{len(self.failed_files)} failed in {self.elapsed:.1f}s"
        )
