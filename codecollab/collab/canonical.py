from __future__ import annotations

"""
Canonical serialization and fingerprinting of project trees.

Every mapping is emitted with its keys in ascending code-point order at every
depth, without whitespace, so two trees with the same content always produce
the same bytes no matter how they were built.  File content passes through
untouched apart from the escapes JSON itself requires.
"""

import hashlib
import json
from typing import Any, Mapping, Union

from .nodes import FileNode, FolderNode, Node, children_as_dict

Serializable = Union[Node, Mapping[str, Any]]


def _plain(tree: Serializable) -> Any:
    if isinstance(tree, (FileNode, FolderNode)):
        return tree.as_dict()
    if isinstance(tree, Mapping):
        return {
            key: _plain(value) if isinstance(value, (FileNode, FolderNode)) else value
            for key, value in tree.items()
        }
    raise TypeError(f"cannot canonicalise {type(tree)!r}")


def canonical_json(tree: Serializable) -> str:
    return json.dumps(
        _plain(tree),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def canonical_bytes(tree: Serializable) -> bytes:
    return canonical_json(tree).encode("utf-8")


def fingerprint(tree: Serializable) -> str:
    """SHA-256 hex digest of the canonical bytes."""
    return hashlib.sha256(canonical_bytes(tree)).hexdigest()


def snapshot_fingerprint(root: FolderNode) -> str:
    """Fingerprint of a room snapshot (the root's children mapping)."""
    return fingerprint(children_as_dict(root.children))


__all__ = [
    "canonical_bytes",
    "canonical_json",
    "fingerprint",
    "snapshot_fingerprint",
]
