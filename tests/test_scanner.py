"""Tests for directory scanning."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from types import SimpleNamespace

import pytest
from helpers import make_tree, nested_dirs

from folderlink import (
    CancellationToken,
    DirectoryScanner,
    ErrorKind,
    FailureLog,
    NodeKind,
    PathValidator,
    Settings,
    TreeNode,
)
from folderlink.models import DEPTH_PLACEHOLDER_NAME


def listing_order(scanner: DirectoryScanner, path: Path) -> list[str]:
    with os.scandir(path) as it:
        return [entry.name for entry in it if scanner.include(entry.name)]


def by_name(nodes: list[TreeNode]) -> dict[str, TreeNode]:
    return {node.name: node for node in nodes}


class TestScanBasics:
    """Tests for the shape of a scan result."""

    @pytest.mark.asyncio
    async def test_builds_tree_and_flat_list(self, make_scanner, sample_folder: Path) -> None:
        """Files, folders and empty folders all appear; file paths are flattened."""
        result = await make_scanner().scan(sample_folder)

        assert result.error is None
        nodes = by_name(result.tree)
        assert set(nodes) == {"a.txt", "b.md", "sub", "empty"}
        assert nodes["empty"].kind is NodeKind.DIRECTORY
        assert nodes["empty"].children == []
        assert {n.name for n in nodes["sub"].children} == {"a.txt", "c.png"}
        assert set(result.file_paths) == {
            sample_folder / "a.txt",
            sample_folder / "b.md",
            sample_folder / "sub" / "a.txt",
            sample_folder / "sub" / "c.png",
        }

    @pytest.mark.asyncio
    async def test_file_paths_match_file_nodes(self, make_scanner, sample_folder: Path) -> None:
        """The flat list is exactly the source paths reachable from the tree, in tree order."""
        result = await make_scanner().scan(sample_folder)

        assert [node.source_path for node in result.iter_file_nodes()] == result.file_paths
        assert all(node.url is None for node in result.iter_file_nodes())

    @pytest.mark.asyncio
    async def test_hidden_entries_filtered(self, make_scanner, sample_folder: Path) -> None:
        """Dotfiles, '~' files and tooling folders are not scanned."""
        (sample_folder / ".git").mkdir()
        (sample_folder / ".vscode").mkdir()

        result = await make_scanner().scan(sample_folder)

        names = {node.name for node in result.tree}
        assert not names & {".hidden", "~lock.txt", "node_modules", ".git", ".vscode"}

    @pytest.mark.asyncio
    async def test_children_follow_listing_order(self, make_scanner, sample_folder: Path) -> None:
        scanner = make_scanner()

        result = await scanner.scan(sample_folder)

        assert [node.name for node in result.tree] == listing_order(scanner, sample_folder)

    @pytest.mark.asyncio
    async def test_missing_root_raises(self, make_scanner, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await make_scanner().scan(tmp_path / "nope")


class TestLimits:
    """Tests for size, count and depth limits."""

    @pytest.mark.asyncio
    async def test_oversized_file_logged_and_skipped(
        self, make_scanner, failures: FailureLog, tmp_path: Path
    ) -> None:
        root = make_tree(tmp_path / "root", {"big.bin": b"x" * 64, "small.txt": "ok"})

        result = await make_scanner(Settings(max_file_size=32)).scan(root)

        assert [node.name for node in result.tree] == ["small.txt"]
        assert result.file_paths == [root / "small.txt"]
        assert failures.entries() == [(root / "big.bin", ErrorKind.TOO_LARGE)]

    @pytest.mark.asyncio
    async def test_file_count_ceiling_drops_silently(
        self, make_scanner, failures: FailureLog, tmp_path: Path
    ) -> None:
        root = make_tree(tmp_path / "root", {f"f{i}.txt": str(i) for i in range(5)})
        scanner = make_scanner(Settings(max_file_count=2))

        result = await scanner.scan(root)

        assert len(result.file_paths) == 2
        assert scanner.file_count == 2
        assert len(failures) == 0

    @pytest.mark.asyncio
    async def test_depth_below_limit_succeeds(self, make_scanner, tmp_path: Path) -> None:
        """Nesting up to max_depth - 1 levels under the root is scanned fully."""
        root = tmp_path / "root"
        root.mkdir()
        nested_dirs(root, 2)

        result = await make_scanner(Settings(max_depth=3)).scan(root)

        d1 = result.tree[0]
        d2 = by_name(d1.children)["d2"]
        assert d2.error is None
        assert {n.name for n in d2.children} == {"f2.txt"}
        assert len(result.file_paths) == 2

    @pytest.mark.asyncio
    async def test_depth_exceeded_becomes_placeholder(
        self, make_scanner, failures: FailureLog, tmp_path: Path
    ) -> None:
        """One level too deep is cut off; shallower siblings are unaffected."""
        root = make_tree(tmp_path / "root", {"sibling": {"s.txt": "s"}})
        nested_dirs(root, 3)

        result = await make_scanner(Settings(max_depth=3)).scan(root)

        nodes = by_name(result.tree)
        d2 = by_name(nodes["d1"].children)["d2"]
        d3 = by_name(d2.children)["d3"]
        assert d3.kind is NodeKind.DIRECTORY
        assert d3.error is ErrorKind.DEPTH_EXCEEDED
        assert [child.name for child in d3.children] == [DEPTH_PLACEHOLDER_NAME]
        assert d3.children[0].source_path is None
        assert {n.name for n in nodes["sibling"].children} == {"s.txt"}
        assert tmp_path / "root" / "d1" / "d2" / "d3" / "f3.txt" not in result.file_paths
        assert len(failures) == 0

    @pytest.mark.asyncio
    async def test_scan_at_limit_reports_depth_exceeded(self, make_scanner, tmp_path: Path) -> None:
        result = await make_scanner(Settings(max_depth=2)).scan(tmp_path, depth=2)

        assert result.error is ErrorKind.DEPTH_EXCEEDED
        assert result.tree == []


class TestSymlinks:
    """Symlinks are recorded and never followed."""

    @pytest.mark.asyncio
    async def test_symlinks_recorded_inert(self, make_scanner, tmp_path: Path) -> None:
        root = make_tree(tmp_path / "root", {"real.txt": "r", "dir": {"inner.txt": "i"}})
        os.symlink("real.txt", root / "file-link")
        os.symlink("dir", root / "dir-link")

        result = await make_scanner().scan(root)

        nodes = by_name(result.tree)
        assert nodes["file-link"].kind is NodeKind.SYMLINK
        assert nodes["file-link"].link_target == "real.txt"
        assert nodes["dir-link"].kind is NodeKind.SYMLINK
        assert nodes["dir-link"].children is None
        assert nodes["dir-link"].target_safe is True
        assert set(result.file_paths) == {root / "real.txt", root / "dir" / "inner.txt"}

    @pytest.mark.asyncio
    async def test_self_referencing_link_does_not_loop(self, make_scanner, tmp_path: Path) -> None:
        root = make_tree(tmp_path / "root", {"a.txt": "a"})
        os.symlink(".", root / "loop")

        result = await make_scanner().scan(root)

        assert by_name(result.tree)["loop"].link_target == "."
        assert result.file_paths == [root / "a.txt"]

    @pytest.mark.asyncio
    async def test_unsafe_target_flagged(self, make_scanner, tmp_path: Path) -> None:
        root = make_tree(tmp_path / "root", {})
        os.symlink("/etc/passwd", root / "passwd")

        result = await make_scanner().scan(root)

        node = by_name(result.tree)["passwd"]
        assert node.target_safe is False
        assert node.link_target == "/etc/passwd"


class TestRecoverableFailures:
    """Per-entry problems are logged and skipped."""

    @pytest.mark.asyncio
    async def test_unreadable_subdirectory_skipped(
        self, make_scanner, failures: FailureLog, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        root = make_tree(tmp_path / "root", {"ok": {"a.txt": "a"}, "locked": {"b.txt": "b"}})
        scanner = make_scanner()
        original = scanner._read_directory

        def read_directory(path: Path):
            if path.name == "locked":
                raise PermissionError(13, "Permission denied", str(path))
            return original(path)

        monkeypatch.setattr(scanner, "_read_directory", read_directory)

        result = await scanner.scan(root)

        assert [node.name for node in result.tree] == ["ok"]
        assert failures.entries() == [(root / "locked", ErrorKind.UNREADABLE)]

    @pytest.mark.asyncio
    async def test_directory_identity_seen_twice_skipped(
        self, make_scanner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Two directory entries with the same device and inode are scanned once."""
        root = make_tree(tmp_path / "root", {"one": {"a.txt": "a"}, "two": {"b.txt": "b"}})
        monkeypatch.setattr(os, "lstat", lambda path: SimpleNamespace(st_dev=1, st_ino=42))

        result = await make_scanner().scan(root)

        assert len(result.tree) == 1
        assert len(result.file_paths) == 1

    @pytest.mark.asyncio
    async def test_protected_subdirectory_skipped(
        self, make_scanner, failures: FailureLog, tmp_path: Path, workspace: Path
    ) -> None:
        make_tree(tmp_path / "photos", {"p.jpg": b"jpg"})

        result = await make_scanner(protected_root=workspace).scan(tmp_path)

        names = {node.name for node in result.tree}
        assert "workspace" not in names
        assert "photos" in names
        assert len(failures) == 0


class TestConcurrencyAndCancellation:
    """Tests for the subdirectory worker pool and cancellation."""

    @pytest.mark.asyncio
    async def test_worker_bound_and_order(self, tmp_path: Path) -> None:
        """At most three subdirectories are in flight; order ignores completion."""
        root = make_tree(tmp_path / "root", {f"d{i}": {} for i in range(8)})

        class TrackingScanner(DirectoryScanner):
            active = 0
            peak = 0

            async def scan_child(self, path: Path, name: str, depth: int):
                type(self).active += 1
                type(self).peak = max(type(self).peak, type(self).active)
                try:
                    # later entries finish first
                    await asyncio.sleep((8 - int(name[1:])) * 0.005)
                    return await super().scan_child(path, name, depth)
                finally:
                    type(self).active -= 1

        scanner = TrackingScanner(PathValidator(None), Settings())

        result = await scanner.scan(root)

        assert TrackingScanner.peak == 3
        assert [node.name for node in result.tree] == listing_order(scanner, root)

    @pytest.mark.asyncio
    async def test_cancelled_before_scan_returns_empty(
        self, make_scanner, cancel_token: CancellationToken, sample_folder: Path
    ) -> None:
        cancel_token.cancel()

        result = await make_scanner().scan(sample_folder)

        assert result.tree == []
        assert result.file_paths == []
        assert result.error is None

    @pytest.mark.asyncio
    async def test_cancel_during_scan_stops_new_directories(self, tmp_path: Path) -> None:
        """Directories not yet started when cancel arrives are left out."""
        root = make_tree(tmp_path / "root", {f"d{i}": {"f.txt": "x"} for i in range(6)})
        token = CancellationToken()

        class CancellingScanner(DirectoryScanner):
            started = 0

            async def scan_child(self, path: Path, name: str, depth: int):
                type(self).started += 1
                token.cancel()
                return await super().scan_child(path, name, depth)

        scanner = CancellingScanner(PathValidator(None), Settings(), cancel_token=token)

        result = await scanner.scan(root)

        assert CancellingScanner.started <= 3
        assert len(result.tree) <= 3
        assert result.file_paths == []
