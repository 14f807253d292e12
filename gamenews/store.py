"""
Abstract persistence contract plus the in-memory backend.

The services only talk to a :class:`Store`. Two backends exist:
:class:`MemoryStore` below and ``gamenews.sql_store.SqlStore`` on top of
Flask-SQLAlchemy. Backends own the atomicity of the two contended mutations,
``toggle_like`` and ``record_view``, and enforce email uniqueness by raising
:class:`~gamenews.errors.ConflictError`.
"""
import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from .errors import ConflictError
from .locks import KeyedLocks
from .records import Article, Comment, Like, LikeState, Subscription, User, Video


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Store(ABC):

    # ---------------------------
    # Users
    # ---------------------------
    @abstractmethod
    def add_user(self, *, name, email, password_hash, role, avatar) -> User:
        ...

    @abstractmethod
    def get_user(self, user_id) -> Optional[User]:
        ...

    @abstractmethod
    def get_user_by_email(self, email) -> Optional[User]:
        ...

    @abstractmethod
    def count_users(self) -> int:
        ...

    # ---------------------------
    # Articles
    # ---------------------------
    @abstractmethod
    def add_article(self, *, title, slug, category, content, excerpt, image,
                    author_id, status, featured) -> Article:
        ...

    @abstractmethod
    def get_article(self, article_id) -> Optional[Article]:
        ...

    @abstractmethod
    def find_published_by_slug(self, slug) -> Optional[Article]:
        """Lowest-id published article carrying ``slug``."""

    @abstractmethod
    def list_articles(self) -> List[Article]:
        """Every article, drafts included, in insertion order."""

    @abstractmethod
    def delete_article(self, article_id) -> bool:
        """Remove the article with its comments and likes. False if absent."""

    @abstractmethod
    def record_view(self, article_id) -> Optional[Article]:
        """Atomically add one view; returns the updated article or None."""

    @abstractmethod
    def toggle_like(self, article_id, user_id) -> Optional[LikeState]:
        """Add or remove the (article, user) like together with the counter.

        Returns None when the article does not exist.
        """

    @abstractmethod
    def count_likes(self, article_id) -> int:
        """Number of stored like rows for the article."""

    # ---------------------------
    # Comments
    # ---------------------------
    @abstractmethod
    def add_comment(self, *, article_id, user_id, content) -> Optional[Comment]:
        """None when the article does not exist."""

    @abstractmethod
    def list_comments(self, article_id) -> List[Comment]:
        ...

    @abstractmethod
    def count_comments(self) -> int:
        ...

    # ---------------------------
    # Videos & newsletter
    # ---------------------------
    @abstractmethod
    def add_video(self, *, title, description, external_id, thumbnail,
                  duration, status) -> Video:
        ...

    @abstractmethod
    def list_videos(self) -> List[Video]:
        ...

    @abstractmethod
    def add_subscription(self, email) -> Subscription:
        ...

    @abstractmethod
    def count_subscriptions(self) -> int:
        ...


class MemoryStore(Store):
    """Dict-backed store indexed for O(1) lookups by id, email, slug and like pair.

    ``_lock`` guards the indexes; per-article locks serialize counter updates.
    """

    def __init__(self, clock=None):
        self._clock = clock or utcnow
        self._lock = threading.RLock()
        self._article_locks = KeyedLocks()
        self._sequences = {}

        self._users = {}
        self._user_ids_by_email = {}
        self._articles = {}
        self._article_ids_by_slug = {}
        self._comments = {}
        self._comment_ids_by_article = {}
        self._likes = {}
        self._videos = {}
        self._subscriptions = {}

    def _next_id(self, name):
        with self._lock:
            counter = self._sequences.setdefault(name, itertools.count(1))
            return next(counter)

    # ---------------------------
    # Users
    # ---------------------------
    def add_user(self, *, name, email, password_hash, role, avatar):
        with self._lock:
            if email in self._user_ids_by_email:
                raise ConflictError("Email already registered")
            user = User(
                id=self._next_id("users"),
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
                avatar=avatar,
                created_at=self._clock(),
            )
            self._users[user.id] = user
            self._user_ids_by_email[email] = user.id
            return user

    def get_user(self, user_id):
        return self._users.get(user_id)

    def get_user_by_email(self, email):
        with self._lock:
            user_id = self._user_ids_by_email.get(email)
            return self._users.get(user_id) if user_id is not None else None

    def count_users(self):
        return len(self._users)

    # ---------------------------
    # Articles
    # ---------------------------
    def add_article(self, *, title, slug, category, content, excerpt, image,
                    author_id, status, featured):
        now = self._clock()
        with self._lock:
            article = Article(
                id=self._next_id("articles"),
                title=title,
                slug=slug,
                category=category,
                content=content,
                excerpt=excerpt,
                image=image,
                author_id=author_id,
                status=status,
                featured=featured,
                like_count=0,
                view_count=0,
                created_at=now,
                updated_at=now,
            )
            self._articles[article.id] = article
            self._article_ids_by_slug.setdefault(slug, []).append(article.id)
            return article

    def get_article(self, article_id):
        return self._articles.get(article_id)

    def find_published_by_slug(self, slug):
        with self._lock:
            for article_id in self._article_ids_by_slug.get(slug, ()):
                article = self._articles[article_id]
                if article.is_published:
                    return article
        return None

    def list_articles(self):
        with self._lock:
            return list(self._articles.values())

    def delete_article(self, article_id):
        with self._article_locks.hold(article_id):
            with self._lock:
                article = self._articles.pop(article_id, None)
                if article is None:
                    return False
                ids = self._article_ids_by_slug.get(article.slug, [])
                ids.remove(article_id)
                if not ids:
                    del self._article_ids_by_slug[article.slug]
                for comment_id in self._comment_ids_by_article.pop(article_id, []):
                    del self._comments[comment_id]
                for key in [k for k in self._likes if k[0] == article_id]:
                    del self._likes[key]
        self._article_locks.discard(article_id)
        return True

    def record_view(self, article_id):
        with self._article_locks.hold(article_id):
            with self._lock:
                article = self._articles.get(article_id)
                if article is None:
                    return None
                article = replace(article, view_count=article.view_count + 1)
                self._articles[article_id] = article
                return article

    def toggle_like(self, article_id, user_id):
        with self._article_locks.hold(article_id):
            article = self._articles.get(article_id)
            if article is None:
                return None
            key = (article_id, user_id)
            with self._lock:
                existing = self._likes.pop(key, None)
                if existing is None:
                    self._likes[key] = Like(
                        id=self._next_id("likes"),
                        article_id=article_id,
                        user_id=user_id,
                        created_at=self._clock(),
                    )
                    delta = 1
                else:
                    delta = -1
                article = replace(article, like_count=article.like_count + delta)
                self._articles[article_id] = article
            return LikeState(liked=existing is None, like_count=article.like_count)

    def count_likes(self, article_id):
        with self._lock:
            return sum(1 for key in self._likes if key[0] == article_id)

    # ---------------------------
    # Comments
    # ---------------------------
    def add_comment(self, *, article_id, user_id, content):
        now = self._clock()
        with self._lock:
            if article_id not in self._articles:
                return None
            comment = Comment(
                id=self._next_id("comments"),
                article_id=article_id,
                user_id=user_id,
                content=content,
                created_at=now,
                updated_at=now,
            )
            self._comments[comment.id] = comment
            self._comment_ids_by_article.setdefault(article_id, []).append(comment.id)
            return comment

    def list_comments(self, article_id):
        with self._lock:
            return [self._comments[i] for i in self._comment_ids_by_article.get(article_id, ())]

    def count_comments(self):
        return len(self._comments)

    # ---------------------------
    # Videos & newsletter
    # ---------------------------
    def add_video(self, *, title, description, external_id, thumbnail,
                  duration, status):
        with self._lock:
            video = Video(
                id=self._next_id("videos"),
                title=title,
                description=description,
                external_id=external_id,
                thumbnail=thumbnail,
                duration=duration,
                view_count=0,
                status=status,
                created_at=self._clock(),
            )
            self._videos[video.id] = video
            return video

    def list_videos(self):
        with self._lock:
            return list(self._videos.values())

    def add_subscription(self, email):
        with self._lock:
            if email in self._subscriptions:
                raise ConflictError("Email already subscribed")
            subscription = Subscription(
                id=self._next_id("subscriptions"),
                email=email,
                created_at=self._clock(),
            )
            self._subscriptions[email] = subscription
            return subscription

    def count_subscriptions(self):
        return len(self._subscriptions)
