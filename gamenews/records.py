"""
Value objects handed out by the stores.

Both store backends return these instead of ORM rows so the services never
depend on which engine is plugged in. They are frozen; counters change by the
store replacing the record, never by callers mutating it.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"
STATUSES = (STATUS_DRAFT, STATUS_PUBLISHED)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class User:
    id: int
    name: str
    email: str
    password_hash: str
    role: str
    avatar: str
    created_at: datetime

    def public(self):
        # Never includes the credential.
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
            "role": self.role,
        }


@dataclass(frozen=True)
class Article:
    id: int
    title: str
    slug: str
    category: Optional[str]
    content: str
    excerpt: Optional[str]
    image: Optional[str]
    author_id: int
    status: str
    featured: bool
    like_count: int
    view_count: int
    created_at: datetime
    updated_at: datetime

    @property
    def is_published(self) -> bool:
        return self.status == STATUS_PUBLISHED

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "category": self.category,
            "content": self.content,
            "excerpt": self.excerpt,
            "image": self.image,
            "author": self.author_id,
            "status": self.status,
            "featured": self.featured,
            "likes": self.like_count,
            "views": self.view_count,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class Comment:
    id: int
    article_id: int
    user_id: int
    content: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self):
        return {
            "id": self.id,
            "articleId": self.article_id,
            "userId": self.user_id,
            "content": self.content,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class Like:
    id: int
    article_id: int
    user_id: int
    created_at: datetime


@dataclass(frozen=True)
class LikeState:
    liked: bool
    like_count: int


@dataclass(frozen=True)
class Video:
    id: int
    title: str
    description: Optional[str]
    external_id: str
    thumbnail: str
    duration: Optional[str]
    view_count: int
    status: str
    created_at: datetime

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "externalId": self.external_id,
            "thumbnail": self.thumbnail,
            "duration": self.duration,
            "views": self.view_count,
            "status": self.status,
            "createdAt": _iso(self.created_at),
        }


@dataclass(frozen=True)
class Subscription:
    id: int
    email: str
    created_at: datetime

    def to_dict(self):
        return {"id": self.id, "email": self.email, "createdAt": _iso(self.created_at)}
