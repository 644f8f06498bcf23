"""Path safety checks against a protected root."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable

from folderlink.config import DEFAULT_SENSITIVE_DIRS
from folderlink.models import VALID, ErrorKind, ValidationResult

logger = logging.getLogger(__name__)


def _normalize(path: str | os.PathLike[str]) -> str:
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def _is_within(path: str, root: str) -> bool:
    """True if ``path`` equals ``root`` or lies below it (both normalized)."""
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


def has_traversal(path: str | os.PathLike[str]) -> bool:
    """True if any component of the raw path is ``..``."""
    raw = os.fspath(path)
    parts = raw.replace("\\", "/").split("/")
    return any(part == ".." for part in parts)


class PathValidator:
    """Validates user-supplied paths against a protected root.

    The protected root (the host application's own data store) is
    normalized once here. When it is None only the traversal and
    empty-path rules apply.
    """

    def __init__(
        self,
        protected_root: str | os.PathLike[str] | None = None,
        sensitive_dirs: Iterable[str] = DEFAULT_SENSITIVE_DIRS,
    ) -> None:
        if protected_root is not None and os.fspath(protected_root).strip():
            self._protected_root: str | None = _normalize(protected_root)
        else:
            self._protected_root = None
        self._sensitive_dirs = tuple(sensitive_dirs)

    @property
    def protected_root(self) -> str | None:
        return self._protected_root

    def validate(self, path: str | os.PathLike[str]) -> ValidationResult:
        """Check that ``path`` may be used as an upload source.

        Rules, first match wins: parent traversal, empty path, the path is
        the protected root or one of its ancestors, the path lies inside
        the protected root.
        """
        raw = os.fspath(path)
        if has_traversal(raw):
            return ValidationResult(False, ErrorKind.TRAVERSAL, "Path contains '..'")
        if not raw.strip():
            return ValidationResult(False, ErrorKind.EMPTY_PATH, "Path is empty")
        if self._protected_root is None:
            return VALID

        normalized = _normalize(raw)
        if _is_within(self._protected_root, normalized):
            return ValidationResult(
                False,
                ErrorKind.PROTECTED_ANCESTOR,
                "Path contains the workspace directory",
            )
        if _is_within(normalized, self._protected_root):
            return ValidationResult(
                False,
                ErrorKind.PROTECTED_DESCENDANT,
                "Uploading files from the workspace directory is not allowed",
            )
        return VALID

    def is_protected(self, path: str | os.PathLike[str]) -> bool:
        """True if ``path`` is the protected root or lies inside it."""
        if self._protected_root is None:
            return False
        return _is_within(_normalize(path), self._protected_root)

    def symlink_target_is_safe(self, target: str, source_dir: str | os.PathLike[str]) -> bool:
        """Check where a symlink found in ``source_dir`` points.

        The raw target is resolved relative to the directory holding the
        link. Targets inside the protected root or under a sensitive system
        directory are unsafe. The result is advisory only.
        """
        try:
            resolved = os.path.normpath(os.path.join(_normalize(source_dir), target))
        except (TypeError, ValueError) as e:
            logger.debug(f"Cannot resolve symlink target {target!r}: {e}")
            return False

        if self.is_protected(resolved):
            return False
        resolved = os.path.normcase(resolved)
        for sensitive in self._sensitive_dirs:
            if _is_within(resolved, os.path.normcase(sensitive.rstrip("/\\"))):
                return False
        return True

    def __repr__(self) -> str:
        return f"PathValidator(protected_root={self._protected_root!r})"

