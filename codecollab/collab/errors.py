from __future__ import annotations


class StructuralError(Exception):
    """Raised when a tree operation would violate the project structure."""

    code = "structural_error"

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def as_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message, "path": self.path}


class NodeNotFound(StructuralError):
    code = "not_found"


class AlreadyExists(StructuralError):
    code = "already_exists"


class ParentNotFound(StructuralError):
    code = "parent_not_found"


class ParentNotFolder(StructuralError):
    code = "parent_not_folder"


class NotAFile(StructuralError):
    code = "not_a_file"


class InvalidName(StructuralError):
    code = "invalid_name"


__all__ = [
    "AlreadyExists",
    "InvalidName",
    "NodeNotFound",
    "NotAFile",
    "ParentNotFolder",
    "ParentNotFound",
    "StructuralError",
]
