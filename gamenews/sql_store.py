"""
Flask-SQLAlchemy backend for :class:`gamenews.store.Store`.

Every method runs on ``db.session`` and therefore needs an application
context. Counter updates are issued as ``UPDATE ... SET n = n + delta`` so the
database applies them against the current value, and like toggles run as one
transaction inside the article's process-local lock. The unique constraint on
``likes(article_id, user_id)`` is the backstop across processes.
"""
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from .errors import ConflictError
from .locks import KeyedLocks
from .models import ArticleRow, CommentRow, LikeRow, SubscriptionRow, UserRow, VideoRow
from .records import STATUS_PUBLISHED, LikeState
from .store import Store, utcnow

logger = logging.getLogger(__name__)


class SqlStore(Store):

    def __init__(self, db, clock=None):
        self._db = db
        self._clock = clock or utcnow
        self._article_locks = KeyedLocks()

    @property
    def _session(self):
        return self._db.session

    def _insert(self, row, conflict_message=None):
        self._session.add(row)
        try:
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            if conflict_message is None:
                raise
            raise ConflictError(conflict_message)
        return row.to_record()

    # ---------------------------
    # Users
    # ---------------------------
    def add_user(self, *, name, email, password_hash, role, avatar):
        row = UserRow(
            name=name,
            email=email,
            password_hash=password_hash,
            role=role,
            avatar=avatar,
            created_at=self._clock(),
        )
        return self._insert(row, "Email already registered")

    def get_user(self, user_id):
        row = self._session.get(UserRow, user_id)
        return row.to_record() if row else None

    def get_user_by_email(self, email):
        row = UserRow.query.filter_by(email=email).first()
        return row.to_record() if row else None

    def count_users(self):
        return UserRow.query.count()

    # ---------------------------
    # Articles
    # ---------------------------
    def add_article(self, *, title, slug, category, content, excerpt, image,
                    author_id, status, featured):
        now = self._clock()
        row = ArticleRow(
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
        return self._insert(row)

    def get_article(self, article_id):
        row = self._session.get(ArticleRow, article_id)
        return row.to_record() if row else None

    def find_published_by_slug(self, slug):
        row = (
            ArticleRow.query
            .filter_by(slug=slug, status=STATUS_PUBLISHED)
            .order_by(ArticleRow.id.asc())
            .first()
        )
        return row.to_record() if row else None

    def list_articles(self):
        return [row.to_record() for row in ArticleRow.query.order_by(ArticleRow.id.asc()).all()]

    def delete_article(self, article_id):
        with self._article_locks.hold(article_id):
            row = self._session.get(ArticleRow, article_id)
            if row is None:
                return False
            self._session.delete(row)
            self._session.commit()
        self._article_locks.discard(article_id)
        return True

    def _bump(self, article_id, **deltas):
        values = {name: getattr(ArticleRow, name) + delta for name, delta in deltas.items()}
        result = self._session.execute(
            update(ArticleRow).where(ArticleRow.id == article_id).values(**values)
        )
        return result.rowcount

    def record_view(self, article_id):
        with self._article_locks.hold(article_id):
            if not self._bump(article_id, view_count=1):
                self._session.rollback()
                return None
            self._session.commit()
            return self.get_article(article_id)

    def _find_like(self, article_id, user_id):
        return LikeRow.query.filter_by(article_id=article_id, user_id=user_id).first()

    def toggle_like(self, article_id, user_id):
        with self._article_locks.hold(article_id):
            session = self._session
            if session.get(ArticleRow, article_id) is None:
                session.rollback()
                return None
            try:
                existing = self._find_like(article_id, user_id)
                if existing is None:
                    session.add(LikeRow(article_id=article_id, user_id=user_id, created_at=self._clock()))
                    delta = 1
                else:
                    session.delete(existing)
                    delta = -1
                self._bump(article_id, like_count=delta)
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.warning("Concurrent like on article %s by user %s rejected", article_id, user_id)
                raise ConflictError("Like already recorded")
            article = self.get_article(article_id)
            return LikeState(liked=delta > 0, like_count=article.like_count)

    def count_likes(self, article_id):
        return LikeRow.query.filter_by(article_id=article_id).count()

    # ---------------------------
    # Comments
    # ---------------------------
    def add_comment(self, *, article_id, user_id, content):
        if self._session.get(ArticleRow, article_id) is None:
            return None
        now = self._clock()
        row = CommentRow(
            article_id=article_id,
            user_id=user_id,
            content=content,
            created_at=now,
            updated_at=now,
        )
        return self._insert(row)

    def list_comments(self, article_id):
        rows = (
            CommentRow.query
            .filter_by(article_id=article_id)
            .order_by(CommentRow.id.asc())
            .all()
        )
        return [row.to_record() for row in rows]

    def count_comments(self):
        return CommentRow.query.count()

    # ---------------------------
    # Videos & newsletter
    # ---------------------------
    def add_video(self, *, title, description, external_id, thumbnail,
                  duration, status):
        row = VideoRow(
            title=title,
            description=description,
            external_id=external_id,
            thumbnail=thumbnail,
            duration=duration,
            view_count=0,
            status=status,
            created_at=self._clock(),
        )
        return self._insert(row)

    def list_videos(self):
        return [row.to_record() for row in VideoRow.query.order_by(VideoRow.id.asc()).all()]

    def add_subscription(self, email):
        row = SubscriptionRow(email=email, created_at=self._clock())
        return self._insert(row, "Email already subscribed")

    def count_subscriptions(self):
        return SubscriptionRow.query.count()
