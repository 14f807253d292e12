from enum import Enum
from functools import wraps

from flask import g
from flask_login import UserMixin, current_user

from .errors import AuthError, ForbiddenError
from .records import ROLE_ADMIN


class Action(str, Enum):
    CREATE_ARTICLE = "create-article"
    DELETE_ARTICLE = "delete-article"
    CREATE_VIDEO = "create-video"
    VIEW_ADMIN_STATS = "view-admin-stats"
    LIST_ALL_ARTICLES_ADMIN = "list-all-articles-admin"

    CREATE_COMMENT = "create-comment"
    TOGGLE_LIKE = "toggle-like"
    VIEW_PROFILE = "view-profile"

    READ_ARTICLE = "read-article"
    LIST_ARTICLES = "list-articles"
    LIST_VIDEOS = "list-videos"
    LIST_COMMENTS = "list-comments"
    SUBSCRIBE_NEWSLETTER = "subscribe-newsletter"


ADMIN_ONLY = frozenset({
    Action.CREATE_ARTICLE,
    Action.DELETE_ARTICLE,
    Action.CREATE_VIDEO,
    Action.VIEW_ADMIN_STATS,
    Action.LIST_ALL_ARTICLES_ADMIN,
})

AUTHENTICATED = frozenset({
    Action.CREATE_COMMENT,
    Action.TOGGLE_LIKE,
    Action.VIEW_PROFILE,
})


def authorize(role, action, auth_failure=None):
    """Allow or deny ``action`` for a caller holding ``role``.

    ``role`` is None for anonymous callers. Anonymous callers on a protected
    action get :class:`AuthError` (with ``auth_failure`` as the message when
    the request carried a bad token); authenticated callers lacking the role
    get :class:`ForbiddenError`.
    """
    action = Action(action)
    if action not in ADMIN_ONLY and action not in AUTHENTICATED:
        return
    if role is None:
        raise AuthError(auth_failure or "Token not provided")
    if action in ADMIN_ONLY and role != ROLE_ADMIN:
        raise ForbiddenError()


class Caller(UserMixin):
    """The identity resolved from a bearer token: id and role claim only."""

    def __init__(self, user_id, role):
        self.id = user_id
        self.role = role

    def get_id(self):
        return str(self.id)


def caller_role():
    return current_user.role if current_user.is_authenticated else None


def requires(action):
    """View decorator running :func:`authorize` against ``current_user``."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            role = caller_role()
            authorize(role, action, g.get("auth_failure"))
            return view(*args, **kwargs)
        return wrapped
    return decorator
