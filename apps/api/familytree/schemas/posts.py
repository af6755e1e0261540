from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1, max_length=10000)
    visibility: str = Field(default="family", pattern="^(public|family|admin)$")
    family_id: int | None = None
    image_url: str | None = Field(default=None, max_length=500)


class PostUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    content: str | None = Field(default=None, min_length=1, max_length=10000)
    visibility: str | None = Field(default=None, pattern="^(public|family|admin)$")
    family_id: int | None = None
    image_url: str | None = Field(default=None, max_length=500)


class PostResponse(BaseModel):
    id: int
    title: str
    content: str
    image_url: str | None
    visibility: str
    author_id: int
    family_id: int | None
    likes_count: int
    comment_count: int = 0
    created_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class PostListResponse(BaseModel):
    items: list[PostResponse]
    pagination: Pagination


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)
    parent_comment_id: int | None = None


class CommentResponse(BaseModel):
    id: int
    content: str
    post_id: int
    author_id: int
    parent_comment_id: int | None
    created_at: datetime


class CommentNode(CommentResponse):
    replies: list[CommentNode] = Field(default_factory=list)


class PostDetailResponse(PostResponse):
    comments: list[CommentNode]


CommentNode.model_rebuild()
