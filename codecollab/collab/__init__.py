"""
Room-scoped project state for codecollab.

The file-tree model, canonical hashing, room registry and the real-time
protocol handler live here so the FastAPI server and the CLI share the same
data contracts.
"""

from __future__ import annotations

from .canonical import canonical_bytes, canonical_json, fingerprint
from .errors import (
    AlreadyExists,
    InvalidName,
    NodeNotFound,
    NotAFile,
    ParentNotFolder,
    ParentNotFound,
    StructuralError,
)
from .nodes import FileNode, FolderNode, Node
from .protocol import CommitRecord, SyncProtocolHandler
from .room import ClientSession, Room, RoomRegistry
from .tree import DEFAULT_TREE, FileTree, default_tree

__all__ = [
    "AlreadyExists",
    "ClientSession",
    "CommitRecord",
    "DEFAULT_TREE",
    "FileNode",
    "FileTree",
    "FolderNode",
    "InvalidName",
    "Node",
    "NodeNotFound",
    "NotAFile",
    "ParentNotFolder",
    "ParentNotFound",
    "Room",
    "RoomRegistry",
    "StructuralError",
    "SyncProtocolHandler",
    "canonical_bytes",
    "canonical_json",
    "default_tree",
    "fingerprint",
]
