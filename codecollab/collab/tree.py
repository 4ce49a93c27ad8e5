from __future__ import annotations

"""
Hierarchical project document owned by a single room.

Each mutation validates everything it needs before touching the tree, so a
failed call raises a ``StructuralError`` and leaves the tree exactly as it
was.  ``revision`` counts successful mutations.
"""

from typing import Any, Dict, Optional

from . import paths
from .canonical import snapshot_fingerprint
from .errors import (
    AlreadyExists,
    InvalidName,
    NodeNotFound,
    NotAFile,
    ParentNotFolder,
    ParentNotFound,
)
from .nodes import FileNode, FolderNode, Node, children_as_dict, copy_node

DEFAULT_TREE = FolderNode(
    {
        "src": FolderNode(
            {
                "app.js": FileNode(
                    "// Welcome to your new project!\n"
                    "console.log('Hello, JuliaCode Collab!');"
                ),
                "styles.css": FileNode(
                    "/* Add your styles here */\n"
                    "body { background-color: #1e1e1e; }"
                ),
            }
        ),
        "package.json": FileNode('{ "name": "new-project", "version": "1.0.0" }'),
    }
)


def default_tree() -> FolderNode:
    return FolderNode({name: copy_node(child) for name, child in DEFAULT_TREE.children.items()})


def _check_name(name: Any, parent_path: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidName("Name must be a non-empty string", path=parent_path)
    if paths.SEPARATOR in name:
        raise InvalidName(f"Name may not contain '{paths.SEPARATOR}': {name}", path=parent_path)
    return name


class FileTree:
    def __init__(self, root: Optional[FolderNode] = None) -> None:
        self.root: FolderNode = root if root is not None else default_tree()
        self.revision = 0

    # Reads --------------------------------------------------------------------
    def get(self, path: str) -> Optional[Node]:
        return paths.resolve(self.root, path)

    def snapshot(self) -> Dict[str, Any]:
        return children_as_dict(self.root.children)

    def fingerprint(self) -> str:
        return snapshot_fingerprint(self.root)

    # Mutations ----------------------------------------------------------------
    def _parent_folder(self, parent_path: str) -> FolderNode:
        parent = paths.resolve(self.root, parent_path)
        if parent is None:
            raise ParentNotFound(f"Parent path not found: {parent_path}", path=parent_path)
        if not isinstance(parent, FolderNode):
            raise ParentNotFolder(f"Parent is not a folder: {parent_path}", path=parent_path)
        return parent

    def _create(self, parent_path: str, name: str, node: Node) -> str:
        name = _check_name(name, parent_path)
        parent = self._parent_folder(parent_path)
        target = paths.join_path(parent_path, name)
        if name in parent.children:
            raise AlreadyExists(f"Item already exists: {target}", path=target)
        parent.children[name] = node
        self.revision += 1
        return target

    def create_file(self, parent_path: str, name: str) -> str:
        """Create an empty file; returns the new item's path."""
        return self._create(parent_path, name, FileNode(""))

    def create_folder(self, parent_path: str, name: str) -> str:
        """Create an empty folder; returns the new item's path."""
        return self._create(parent_path, name, FolderNode())

    def delete_item(self, path: str) -> None:
        if not paths.remove(self.root, path):
            raise NodeNotFound(f"Cannot delete item at path: {path}", path=path)
        self.revision += 1

    def update_file_content(self, path: str, new_content: str) -> None:
        node = paths.resolve(self.root, path)
        if node is None:
            raise NodeNotFound(f"File not found: {path}", path=path)
        if isinstance(node, FolderNode):
            raise NotAFile(f"Path is a folder, not a file: {path}", path=path)
        if not isinstance(new_content, str):
            raise TypeError("file content must be a string")
        node.content = new_content
        self.revision += 1


__all__ = ["DEFAULT_TREE", "FileTree", "default_tree"]
