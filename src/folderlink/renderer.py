"""Markdown rendering of a scanned (and uploaded) tree."""

from __future__ import annotations

from collections.abc import Sequence

from folderlink.models import NodeKind, TreeNode

FOLDER_GLYPH = "📁"
LINK_GLYPH = "🔗"
ARROW = "→"
UNKNOWN_TARGET = "unknown target"
INDENT = "  "


def render_tree(tree: Sequence[TreeNode], root_name: str) -> str:
    """Render ``tree`` as a nested Markdown list under ``root_name``.

    Every node yields exactly one line, in pre-order, indented two spaces
    per level. Files with a URL become links; files without one are shown
    in a code span. The result has no trailing newline.

    Example:
        >>> a = TreeNode.directory("A", [TreeNode.file("x.txt")])
        >>> a.children[0].assign_url("/assets/x.txt")
        >>> print(render_tree([a], "Root"))
        - 📁 **Root**
          - 📁 **A**
            - [x.txt](/assets/x.txt)
    """
    lines = [f"- {FOLDER_GLYPH} **{root_name}**"]
    _render_nodes(tree, 1, lines)
    return "\n".join(lines)


def _render_nodes(nodes: Sequence[TreeNode], level: int, lines: list[str]) -> None:
    for node in nodes:
        lines.append(INDENT * level + "- " + render_node(node))
        if node.kind is NodeKind.DIRECTORY and node.children:
            _render_nodes(node.children, level + 1, lines)


def render_node(node: TreeNode) -> str:
    """Label for a single node, without indentation or bullet."""
    if node.kind is NodeKind.DIRECTORY:
        return f"{FOLDER_GLYPH} **{node.name}**"
    if node.kind is NodeKind.SYMLINK:
        target = node.link_target or UNKNOWN_TARGET
        return f"{LINK_GLYPH} {node.name} {ARROW} `{target}`"
    if node.url:
        return f"[{node.name}]({node.url})"
    return f"`{node.name}`"
