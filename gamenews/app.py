import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from flask import Flask, g, jsonify, request, send_from_directory
from flask.logging import default_handler
from flask_login import LoginManager, current_user
from werkzeug.exceptions import HTTPException

from .config import Config
from .content import ContentRepository, as_bool
from .errors import AuthError, ServiceError, ValidationError
from .guard import Action, Caller, requires
from .identity import IdentityService
from .listing import ArticleListing
from .models import db
from .sql_store import SqlStore
from .store import MemoryStore, Store
from .uploads import discard_upload, save_upload


@dataclass
class Services:
    store: Store
    identity: IdentityService
    content: ContentRepository
    listing: ArticleListing


def create_app(config_object=Config, store: Store | None = None, overrides=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    if store is None:
        store = build_store(app)

    identity = IdentityService(
        store,
        secret=app.config["JWT_SECRET"],
        token_ttl=timedelta(days=app.config["TOKEN_TTL_DAYS"]),
        hash_method=app.config["PASSWORD_HASH_METHOD"],
    )
    content = ContentRepository(store)
    listing = ArticleListing(store)
    app.extensions["gamenews"] = Services(store, identity, content, listing)

    login_manager = LoginManager()
    login_manager.session_protection = None
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_caller(req):
        header = req.headers.get("Authorization")
        if not header:
            return None
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            g.auth_failure = "Invalid token"
            return None
        try:
            claims = identity.verify_token(token.strip())
        except AuthError as e:
            g.auth_failure = e.message
            return None
        return Caller(claims.user_id, claims.role)

    if app.config["SEED_ADMIN"]:
        with app.app_context():
            ensure_default_admin(app, identity)

    register_error_handlers(app)

    # ---------------------------
    # Public routes
    # ---------------------------
    @app.get("/")
    def index():
        return jsonify({
            "message": "GameNews API running",
            "version": "1.0.0",
            "endpoints": {
                "articles": "/api/articles",
                "auth": "/api/auth/login",
                "videos": "/api/videos",
                "admin": "/api/admin/stats",
            },
        })

    @app.get("/api/articles")
    @requires(Action.LIST_ARTICLES)
    def list_articles():
        limit = request.args.get("limit")
        if limit is not None:
            try:
                limit = int(limit)
            except ValueError:
                raise ValidationError("Limit must be an integer")

        return jsonify(listing.list_articles(
            category=request.args.get("category") or None,
            featured_only=as_bool(request.args.get("featured")),
            search=request.args.get("search") or None,
            limit=limit,
        ))

    @app.get("/api/articles/<slug>")
    @requires(Action.READ_ARTICLE)
    def article_detail(slug: str):
        article = content.get_article_by_slug(slug)
        return jsonify(listing.with_author(article))

    @app.get("/api/articles/<int:article_id>/comments")
    @requires(Action.LIST_COMMENTS)
    def get_comments(article_id: int):
        return jsonify(listing.list_comments(article_id))

    @app.get("/api/videos")
    @requires(Action.LIST_VIDEOS)
    def list_videos():
        return jsonify(listing.list_videos())

    @app.post("/api/newsletter/subscribe")
    @requires(Action.SUBSCRIBE_NEWSLETTER)
    def subscribe():
        content.subscribe(_text(_payload(), "email"))
        return jsonify({"message": "Subscribed to the newsletter"})

    # Serve uploaded files
    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename: str):
        return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

    # ---------------------------
    # Auth routes
    # ---------------------------
    @app.post("/api/auth/register")
    def register():
        data = _payload()
        token, user = identity.register(_text(data, "name"), _text(data, "email"), _text(data, "password"))
        return jsonify({"message": "User created successfully", "token": token, "user": user}), 201

    @app.post("/api/auth/login")
    def login():
        data = _payload()
        token, user = identity.login(_text(data, "email"), _text(data, "password"))
        return jsonify({"token": token, "user": user})

    @app.get("/api/auth/me")
    @requires(Action.VIEW_PROFILE)
    def me():
        return jsonify(identity.current_user(current_user.id))

    # ---------------------------
    # Member routes
    # ---------------------------
    @app.post("/api/articles/<int:article_id>/comments")
    @requires(Action.CREATE_COMMENT)
    def add_comment(article_id: int):
        comment = content.add_comment(article_id, current_user.id, _text(_payload(), "content"))
        return jsonify({"message": "Comment created successfully", "comment": listing.with_user(comment)}), 201

    @app.post("/api/articles/<int:article_id>/like")
    @requires(Action.TOGGLE_LIKE)
    def toggle_like(article_id: int):
        state = content.toggle_like(article_id, current_user.id)
        return jsonify({
            "message": "Like added" if state.liked else "Like removed",
            "liked": state.liked,
            "likes": state.like_count,
        })

    # ---------------------------
    # Admin routes
    # ---------------------------
    @app.post("/api/admin/articles")
    @requires(Action.CREATE_ARTICLE)
    def admin_create_article():
        data = _payload()

        image = None
        image_file = request.files.get("image")
        if image_file and image_file.filename:
            image = save_upload(app, image_file)

        try:
            article = content.create_article(current_user.id, data, image=image)
        except ValidationError:
            if image:
                discard_upload(app, image)
            raise

        return jsonify({"message": "Article created successfully", "article": article.to_dict()}), 201

    @app.delete("/api/admin/articles/<int:article_id>")
    @requires(Action.DELETE_ARTICLE)
    def admin_delete_article(article_id: int):
        content.delete_article(article_id)
        return jsonify({"message": "Article deleted successfully"})

    @app.get("/api/admin/articles")
    @requires(Action.LIST_ALL_ARTICLES_ADMIN)
    def admin_articles():
        return jsonify(listing.list_all_articles())

    @app.post("/api/admin/videos")
    @requires(Action.CREATE_VIDEO)
    def admin_create_video():
        video = content.create_video(_payload())
        return jsonify({"message": "Video created successfully", "video": video.to_dict()}), 201

    @app.get("/api/admin/stats")
    @requires(Action.VIEW_ADMIN_STATS)
    def admin_stats():
        return jsonify(content.compute_stats())

    return app


# ---------------------------
# Helpers
# ---------------------------
def configure_logging(app: Flask):
    # Share Flask's handler with the service loggers under "gamenews".
    package_logger = logging.getLogger("gamenews")
    package_logger.setLevel(app.config["LOG_LEVEL"])
    if default_handler not in package_logger.handlers:
        package_logger.addHandler(default_handler)


def build_store(app: Flask) -> Store:
    backend = app.config["STORE_BACKEND"]
    if backend == "memory":
        return MemoryStore()
    if backend != "sql":
        raise ValueError(f"Unknown STORE_BACKEND: {backend}")

    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if uri.startswith("sqlite:///"):
        Path(uri[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    db.init_app(app)
    with app.app_context():
        db.create_all()
    return SqlStore(db)


def ensure_default_admin(app: Flask, identity: IdentityService):
    identity.ensure_admin(
        app.config["ADMIN_NAME"],
        app.config["ADMIN_EMAIL"],
        app.config["ADMIN_PASSWORD"],
    )


def register_error_handlers(app: Flask):

    @app.errorhandler(ServiceError)
    def handle_service_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        if err.code is None or err.code < 400:
            return err
        return jsonify({"error": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def _payload():
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data
    return request.form.to_dict()


def _text(data, key):
    # Form values are always str; JSON ones may be anything.
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"Field '{key}' must be a string")
    return value


def main():
    create_app().run(debug=True)
