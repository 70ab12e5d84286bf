"""Comment schemas."""

from pydantic import BaseModel

from taskboard.schemas.base import RecordRead


class CommentCreate(BaseModel):
    comment: str = ""


class CommentRead(RecordRead):
    task_id: int
    user_id: int
    comment: str
