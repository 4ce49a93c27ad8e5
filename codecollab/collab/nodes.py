from __future__ import annotations

"""
Tagged node variants for the project tree.

A tree is made of ``FolderNode`` and ``FileNode`` instances only.  The wire
form mirrors what clients render::

    {"type": "file", "content": "..."}
    {"type": "folder", "children": {"name": {...}}}

A room snapshot is the root folder's ``children`` mapping in wire form.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Union

FILE = "file"
FOLDER = "folder"


@dataclass(slots=True)
class FileNode:
    content: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {"type": FILE, "content": self.content}


@dataclass(slots=True)
class FolderNode:
    children: Dict[str, "Node"] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"type": FOLDER, "children": children_as_dict(self.children)}


Node = Union[FileNode, FolderNode]


def children_as_dict(children: Mapping[str, Node]) -> Dict[str, Any]:
    return {name: child.as_dict() for name, child in children.items()}


def copy_node(node: Node) -> Node:
    """Deep copy without sharing any child between the two trees."""
    if isinstance(node, FileNode):
        return FileNode(node.content)
    if isinstance(node, FolderNode):
        return FolderNode({name: copy_node(child) for name, child in node.children.items()})
    raise TypeError(f"unsupported node type {type(node)!r}")


def node_from_dict(raw: Any) -> Node:
    """Build a node from its wire form; raises ``ValueError`` on malformed input."""
    if not isinstance(raw, Mapping):
        raise ValueError("node must be an object")
    kind = raw.get("type")
    if kind == FILE:
        content = raw.get("content", "")
        if not isinstance(content, str):
            raise ValueError("file content must be a string")
        return FileNode(content)
    if kind == FOLDER:
        return FolderNode(children_from_dict(raw.get("children") or {}))
    raise ValueError(f"unknown node type: {kind!r}")


def children_from_dict(raw: Any) -> Dict[str, Node]:
    if not isinstance(raw, Mapping):
        raise ValueError("folder children must be an object")
    children: Dict[str, Node] = {}
    for name, child in raw.items():
        if not isinstance(name, str) or not name or "/" in name:
            raise ValueError(f"invalid node name: {name!r}")
        children[name] = node_from_dict(child)
    return children


__all__ = [
    "FILE",
    "FOLDER",
    "FileNode",
    "FolderNode",
    "Node",
    "children_as_dict",
    "children_from_dict",
    "copy_node",
    "node_from_dict",
]
