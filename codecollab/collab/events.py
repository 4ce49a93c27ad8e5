from __future__ import annotations

"""Inbound and outbound event names plus payload models for the room protocol."""

from typing import Annotated, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints

# client -> server
JOIN_ROOM = "join-room"
FILE_CONTENT_UPDATE = "file-content-update"
CREATE_FILE = "create-file"
CREATE_FOLDER = "create-folder"
DELETE_ITEM = "delete-item"
COMMIT_MILESTONE = "commit-milestone"
INVOKE_TASK_MASTER = "invoke-task-master"
PING = "ping"

# server -> client
PROJECT_STATE_UPDATE = "project-state-update"
AGENT_FEEDBACK = "agent-feedback"
MILESTONE_COMMITTED = "milestone-committed"
TASK_MASTER_RESPONSE = "task-master-response"
OPERATION_ERROR = "operation-error"
COMMIT_ERROR = "commit-error"
PONG = "pong"
ERROR = "error"

RoomKey = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=256)]


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinRoomEvent(_Event):
    room: RoomKey


class FileContentUpdateEvent(_Event):
    room: RoomKey
    file_path: str = Field(..., min_length=1, alias="filePath")
    new_content: str = Field(..., alias="newContent")


class CreateItemEvent(_Event):
    room: RoomKey
    path: str = ""
    name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("name", "fileName", "folderName"),
    )


class DeleteItemEvent(_Event):
    room: RoomKey
    item_path: str = Field(..., alias="itemPath")


class CommitMilestoneEvent(_Event):
    room: RoomKey
    wallet_address: str = Field(..., min_length=1, alias="walletAddress")


class AskTaskMasterEvent(_Event):
    question: str = Field(..., min_length=1)
    room: Optional[str] = None


__all__ = [
    "AGENT_FEEDBACK",
    "AskTaskMasterEvent",
    "COMMIT_ERROR",
    "COMMIT_MILESTONE",
    "CREATE_FILE",
    "CREATE_FOLDER",
    "CommitMilestoneEvent",
    "CreateItemEvent",
    "DELETE_ITEM",
    "DeleteItemEvent",
    "ERROR",
    "FILE_CONTENT_UPDATE",
    "FileContentUpdateEvent",
    "INVOKE_TASK_MASTER",
    "JOIN_ROOM",
    "JoinRoomEvent",
    "MILESTONE_COMMITTED",
    "OPERATION_ERROR",
    "PING",
    "PONG",
    "PROJECT_STATE_UPDATE",
    "RoomKey",
    "TASK_MASTER_RESPONSE",
]
