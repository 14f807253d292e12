"""
Article, comment, like, video and newsletter mutations.

Validation and slug derivation live here; atomic counter updates are
delegated to the store, which applies them under the article's lock.
"""
import logging
import re
import unicodedata

from .errors import NotFoundError, ValidationError
from .identity import normalize_email
from .records import STATUS_DRAFT, STATUS_PUBLISHED, STATUSES

logger = logging.getLogger(__name__)

COMMENT_MAX_LENGTH = 4000
THUMBNAIL_URL = "https://img.youtube.com/vi/{external_id}/maxresdefault.jpg"
TRUTHY = {"true", "1", "yes", "on"}


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text or "")
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"\s+", "-", text)
    return text or "article"


def as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY


def thumbnail_for(external_id: str) -> str:
    return THUMBNAIL_URL.format(external_id=external_id)


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _status(value, default):
    status = _clean(value) or default
    if status not in STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(STATUSES)}")
    return status


class ContentRepository:

    def __init__(self, store):
        self._store = store

    # ---------------------------
    # Articles
    # ---------------------------
    def create_article(self, author_id, fields, image=None):
        title = _clean(fields.get("title"))
        if not title:
            raise ValidationError("Title is required")

        article = self._store.add_article(
            title=title,
            slug=slugify(title),
            category=_clean(fields.get("category")),
            content=fields.get("content") or "",
            excerpt=_clean(fields.get("excerpt")),
            image=image,
            author_id=author_id,
            status=_status(fields.get("status"), STATUS_DRAFT),
            featured=as_bool(fields.get("featured")),
        )
        logger.info("Article %s created by user %s (%s)", article.id, author_id, article.status)
        return article

    def delete_article(self, article_id):
        if not self._store.delete_article(article_id):
            raise NotFoundError("Article not found")
        logger.info("Article %s deleted", article_id)

    def get_article_by_slug(self, slug):
        # Every successful fetch counts as a view, repeats included.
        article = self._store.find_published_by_slug(slug)
        if article is None:
            raise NotFoundError("Article not found")
        viewed = self._store.record_view(article.id)
        if viewed is None:
            raise NotFoundError("Article not found")
        return viewed

    # ---------------------------
    # Comments & likes
    # ---------------------------
    def add_comment(self, article_id, user_id, content):
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment content is required")
        if len(content) > COMMENT_MAX_LENGTH:
            raise ValidationError("Comment too long")

        comment = self._store.add_comment(article_id=article_id, user_id=user_id, content=content)
        if comment is None:
            raise NotFoundError("Article not found")
        return comment

    def toggle_like(self, article_id, user_id):
        state = self._store.toggle_like(article_id, user_id)
        if state is None:
            raise NotFoundError("Article not found")
        logger.debug("User %s %s article %s", user_id, "liked" if state.liked else "unliked", article_id)
        return state

    # ---------------------------
    # Videos & newsletter
    # ---------------------------
    def create_video(self, fields):
        title = _clean(fields.get("title"))
        external_id = _clean(fields.get("externalId") or fields.get("youtubeId"))
        if not title or not external_id:
            raise ValidationError("Title and video id are required")

        duration = fields.get("duration")
        return self._store.add_video(
            title=title,
            description=_clean(fields.get("description")),
            external_id=external_id,
            thumbnail=thumbnail_for(external_id),
            duration=str(duration) if duration is not None else None,
            status=_status(fields.get("status"), STATUS_PUBLISHED),
        )

    def subscribe(self, email):
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")
        if "@" not in email:
            raise ValidationError("Invalid email address")
        return self._store.add_subscription(email)

    # ---------------------------
    # Dashboard
    # ---------------------------
    def compute_stats(self):
        articles = self._store.list_articles()
        return {
            "articleCount": len(articles),
            "publishedCount": sum(1 for a in articles if a.is_published),
            "userCount": self._store.count_users(),
            "commentCount": self._store.count_comments(),
            "totalViews": sum(a.view_count for a in articles),
            "totalLikes": sum(a.like_count for a in articles),
            "subscriberCount": self._store.count_subscriptions(),
        }
