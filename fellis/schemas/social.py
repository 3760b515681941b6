from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ProfileResponse(BaseModel):
    id: int
    name: str
    handle: str
    initials: Optional[str] = None
    bio: str = ""
    location: Optional[str] = None
    join_date: Optional[str] = None
    avatar_url: Optional[str] = None
    friend_count: int
    post_count: int
    photo_count: int


class PostCreate(BaseModel):
    text: str = Field(..., max_length=5000)


class CommentCreate(BaseModel):
    text: str = Field(..., max_length=2000)


class CommentResponse(BaseModel):
    id: int
    author_id: int
    author: str
    text: str
    created_at: datetime


class PostResponse(BaseModel):
    id: int
    author_id: int
    author: str
    text: str
    media: Optional[list[dict[str, Any]]] = None
    source: Optional[str] = None
    likes: int = 0
    liked: bool = False
    created_at: datetime
    comments: list[CommentResponse] = []


class FeedResponse(BaseModel):
    posts: list[PostResponse]
    total: int
    page: int
    limit: int


class LikeResponse(BaseModel):
    liked: bool
    likes: int


class FriendResponse(BaseModel):
    id: int
    name: str
    avatar_url: Optional[str] = None
    mutual: int = 0
    online: bool = False
    source: Optional[str] = None


class MessageCreate(BaseModel):
    text: str = Field(..., max_length=5000)


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    sender: str
    text: str
    created_at: datetime


class ThreadResponse(BaseModel):
    friend_id: int
    friend: str
    messages: list[MessageResponse]
    unread: int
