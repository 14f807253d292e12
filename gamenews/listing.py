from .errors import NotFoundError, ValidationError
from .records import STATUS_PUBLISHED

UNKNOWN_AUTHOR = "Unknown"
UNKNOWN_COMMENTER = "User"


class ArticleListing:
    """Read-side queries with author/user display fields attached."""

    def __init__(self, store):
        self._store = store

    def with_author(self, article, avatar=True):
        author = self._store.get_user(article.author_id)
        data = article.to_dict()
        data["authorName"] = author.name if author else UNKNOWN_AUTHOR
        if avatar:
            data["authorAvatar"] = author.avatar if author else None
        return data

    def list_articles(self, category=None, featured_only=False, search=None, limit=None):
        if limit is not None and limit < 0:
            raise ValidationError("Limit must not be negative")

        articles = [a for a in self._store.list_articles() if a.status == STATUS_PUBLISHED]

        if category:
            articles = [a for a in articles if a.category == category]

        if featured_only:
            articles = [a for a in articles if a.featured]

        if search:
            needle = search.lower()
            articles = [
                a for a in articles
                if needle in a.title.lower() or needle in (a.content or "").lower()
            ]

        # newest first; equal timestamps fall back to id ascending
        articles.sort(key=lambda a: a.id)
        articles.sort(key=lambda a: a.created_at, reverse=True)

        if limit is not None:
            articles = articles[:limit]

        return [self.with_author(a) for a in articles]

    def list_all_articles(self):
        return [self.with_author(a, avatar=False) for a in self._store.list_articles()]

    def list_comments(self, article_id):
        if self._store.get_article(article_id) is None:
            raise NotFoundError("Article not found")

        return [self.with_user(c) for c in self._store.list_comments(article_id)]

    def with_user(self, comment):
        user = self._store.get_user(comment.user_id)
        data = comment.to_dict()
        data["userName"] = user.name if user else UNKNOWN_COMMENTER
        data["userAvatar"] = user.avatar if user else None
        return data

    def list_videos(self):
        return [v.to_dict() for v in self._store.list_videos() if v.status == STATUS_PUBLISHED]
