"""Models for raw comment records returned by the Figma REST API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _scalar_to_str(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class CommentUser(BaseModel):
    """Author block of a comment."""

    model_config = ConfigDict(extra="ignore")

    handle: str = Field("Unknown", description="Display handle")
    id: Optional[str] = Field(None, description="User id")

    @field_validator("handle", mode="before")
    @classmethod
    def _missing_handle(cls, value):
        # Deleted accounts come back with a null handle
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Unknown"
        return _scalar_to_str(value)

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return _scalar_to_str(value)


class ClientMeta(BaseModel):
    """Pin location of a comment on the canvas."""

    model_config = ConfigDict(extra="ignore")

    node_id: Optional[str] = Field(None, description="Pinned node id")

    @field_validator("node_id", mode="before")
    @classmethod
    def _normalize_node_id(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return _scalar_to_str(value)


class RawComment(BaseModel):
    """Loosely typed comment record.

    Every field except ``id`` tolerates absence. Unknown fields are ignored
    so newer API versions do not break parsing.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Comment id")
    message: str = Field("", description="Comment body")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    resolved_at: Optional[datetime] = Field(None, description="Resolution timestamp")
    parent_id: Optional[str] = Field(None, description="Thread root for replies")
    user: CommentUser = Field(default_factory=CommentUser)
    client_meta: ClientMeta = Field(default_factory=ClientMeta)

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("message", mode="before")
    @classmethod
    def _none_message(cls, value):
        return "" if value is None else value

    @field_validator("parent_id", mode="before")
    @classmethod
    def _blank_parent(cls, value):
        if value in ("", 0):
            return None
        return _scalar_to_str(value)

    @field_validator("user", "client_meta", mode="before")
    @classmethod
    def _none_block(cls, value):
        # Figma returns client_meta as a list for region pins on some files
        if value is None or isinstance(value, list):
            return {}
        return value

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None
