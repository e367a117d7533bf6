from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Like(BaseModel):
    user: str


class Comment(BaseModel):
    id: str
    user: str
    text: str
    # Snapshot of the commenter's profile when the comment was written
    name: str
    avatar: Optional[str] = None
    created_at: datetime


class Post(BaseModel):
    id: str
    user: str
    text: str
    # Snapshot of the author's profile when the post was created
    name: str
    avatar: Optional[str] = None
    created_at: datetime
    likes: List[Like] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)


class PostRequest(BaseModel):
    # Presence is checked by the service so that missing and blank text
    # produce the same 400 response
    text: Optional[str] = None


class CommentRequest(BaseModel):
    text: Optional[str] = None


class DeleteResponse(BaseModel):
    msg: str
