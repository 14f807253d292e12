from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

from . import records

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


def _aware(value):
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserRow(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), default=records.ROLE_USER, nullable=False)
    avatar = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_record(self):
        return records.User(
            id=self.id,
            name=self.name,
            email=self.email,
            password_hash=self.password_hash,
            role=self.role,
            avatar=self.avatar,
            created_at=_aware(self.created_at),
        )


class ArticleRow(db.Model):
    __tablename__ = "articles"
    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(200), nullable=False)
    # Not unique: the first published match by id wins on lookup.
    slug = db.Column(db.String(240), nullable=False, index=True)
    category = db.Column(db.String(80), nullable=True, index=True)

    content = db.Column(db.Text, nullable=False, default="")
    excerpt = db.Column(db.Text, nullable=True)
    image = db.Column(db.String(500), nullable=True)

    # Soft reference; users are never deleted.
    author_id = db.Column(db.Integer, nullable=False, index=True)

    status = db.Column(db.String(20), default=records.STATUS_DRAFT, nullable=False)
    featured = db.Column(db.Boolean, default=False, nullable=False)

    like_count = db.Column(db.Integer, default=0, nullable=False)
    view_count = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    comments = db.relationship(
        "CommentRow",
        backref="article",
        lazy="dynamic",
        cascade="all, delete-orphan"
    )
    likes = db.relationship(
        "LikeRow",
        backref="article",
        lazy="dynamic",
        cascade="all, delete-orphan"
    )

    def to_record(self):
        return records.Article(
            id=self.id,
            title=self.title,
            slug=self.slug,
            category=self.category,
            content=self.content,
            excerpt=self.excerpt,
            image=self.image,
            author_id=self.author_id,
            status=self.status,
            featured=bool(self.featured),
            like_count=self.like_count,
            view_count=self.view_count,
            created_at=_aware(self.created_at),
            updated_at=_aware(self.updated_at),
        )


class CommentRow(db.Model):
    __tablename__ = "comments"
    id = db.Column(db.Integer, primary_key=True)

    article_id = db.Column(db.Integer, db.ForeignKey("articles.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    content = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_record(self):
        return records.Comment(
            id=self.id,
            article_id=self.article_id,
            user_id=self.user_id,
            content=self.content,
            created_at=_aware(self.created_at),
            updated_at=_aware(self.updated_at),
        )


class LikeRow(db.Model):
    __tablename__ = "likes"
    id = db.Column(db.Integer, primary_key=True)

    article_id = db.Column(db.Integer, db.ForeignKey("articles.id"), nullable=False)
    user_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    # one like per user and article
    __table_args__ = (db.UniqueConstraint("article_id", "user_id", name="uq_like_article_user"),)


class VideoRow(db.Model):
    __tablename__ = "videos"
    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    external_id = db.Column(db.String(64), nullable=False)
    thumbnail = db.Column(db.String(500), nullable=False)
    duration = db.Column(db.String(32), nullable=True)

    view_count = db.Column(db.Integer, default=0, nullable=False)
    status = db.Column(db.String(20), default=records.STATUS_PUBLISHED, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_record(self):
        return records.Video(
            id=self.id,
            title=self.title,
            description=self.description,
            external_id=self.external_id,
            thumbnail=self.thumbnail,
            duration=self.duration,
            view_count=self.view_count,
            status=self.status,
            created_at=_aware(self.created_at),
        )


class SubscriptionRow(db.Model):
    __tablename__ = "newsletter_subscriptions"
    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_record(self):
        return records.Subscription(
            id=self.id,
            email=self.email,
            created_at=_aware(self.created_at),
        )
