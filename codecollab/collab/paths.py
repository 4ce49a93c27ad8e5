from __future__ import annotations

"""
Slash-delimited path addressing over a project tree.

Paths are relative to the room root.  ``""`` (or any run of slashes) is the
root folder; leading and trailing slashes are ignored.  An empty interior
segment such as ``src//app.js`` never resolves.
"""

from typing import List, Optional, Tuple

from .nodes import FileNode, FolderNode, Node

SEPARATOR = "/"


def split_path(path: str) -> Optional[List[str]]:
    """Return the path segments, or ``None`` when the path is malformed."""
    if not isinstance(path, str):
        return None
    trimmed = path.strip(SEPARATOR)
    if not trimmed:
        return []
    segments = trimmed.split(SEPARATOR)
    if any(not segment for segment in segments):
        return None
    return segments


def join_path(*parts: str) -> str:
    return SEPARATOR.join(part.strip(SEPARATOR) for part in parts if part.strip(SEPARATOR))


def _walk(root: FolderNode, segments: List[str]) -> Optional[Node]:
    node: Node = root
    for segment in segments:
        if isinstance(node, FolderNode):
            child = node.children.get(segment)
            if child is None:
                return None
            node = child
        elif isinstance(node, FileNode):
            return None
        else:  # pragma: no cover - Node union is closed
            raise TypeError(f"unsupported node type {type(node)!r}")
    return node


def resolve(root: FolderNode, path: str) -> Optional[Node]:
    """Resolve ``path`` to a node; ``None`` means not found."""
    segments = split_path(path)
    if segments is None:
        return None
    return _walk(root, segments)


def resolve_parent(root: FolderNode, path: str) -> Optional[Tuple[FolderNode, str]]:
    """Return ``(parent_folder, final_name)`` for ``path``; root has no parent."""
    segments = split_path(path)
    if not segments:
        return None
    parent = _walk(root, segments[:-1])
    if not isinstance(parent, FolderNode):
        return None
    return parent, segments[-1]


def remove(root: FolderNode, path: str) -> bool:
    """Delete the entry at ``path``; ``False`` when missing or when ``path`` is the root."""
    located = resolve_parent(root, path)
    if located is None:
        return False
    parent, name = located
    if name not in parent.children:
        return False
    del parent.children[name]
    return True


__all__ = [
    "SEPARATOR",
    "join_path",
    "remove",
    "resolve",
    "resolve_parent",
    "split_path",
]
