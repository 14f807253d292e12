"""
Registration, login and bearer session tokens.

Tokens are stateless HS256 JWTs carrying only the user id (``sub``) and role.
Everything else about the caller is re-read from the store per request, but
the role claim is trusted until the token expires: promoting or demoting a
user takes effect on their next login.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AuthError, NotFoundError, ValidationError
from .records import ROLE_ADMIN, ROLE_USER, ROLES

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
AVATAR_URL = "https://ui-avatars.com/api/?name={name}&background=dc2626&color=fff"
INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class SessionClaims:
    user_id: int
    role: str


def normalize_email(email) -> str:
    return (email or "").strip().lower()


def avatar_for(name: str) -> str:
    return AVATAR_URL.format(name=quote(name))


class IdentityService:

    def __init__(self, store, secret: str, token_ttl: timedelta = timedelta(days=7),
                 hash_method: str | None = None):
        if not secret:
            raise ValueError("A signing secret is required for session tokens")
        self._store = store
        self._secret = secret
        self._token_ttl = token_ttl
        self._hash_method = hash_method
        # compared against when the email is unknown so both failure paths hash
        self._dummy_hash = self._hash("not-a-real-password")

    def _hash(self, password):
        if self._hash_method:
            return generate_password_hash(password, method=self._hash_method)
        return generate_password_hash(password)

    # ---------------------------
    # Tokens
    # ---------------------------
    def issue_token(self, user) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "role": user.role,
            "iat": int(now.timestamp()),
            "exp": int((now + self._token_ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def verify_token(self, token) -> SessionClaims:
        if not token:
            raise AuthError("Token not provided")
        try:
            data = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthError("Token expired")
        except jwt.InvalidTokenError:
            raise AuthError("Invalid token")

        role = data.get("role")
        try:
            user_id = int(data["sub"])
        except (TypeError, ValueError):
            raise AuthError("Invalid token")
        if role not in ROLES:
            raise AuthError("Invalid token")
        return SessionClaims(user_id=user_id, role=role)

    # ---------------------------
    # Accounts
    # ---------------------------
    def _create_user(self, name, email, password, role):
        return self._store.add_user(
            name=name,
            email=email,
            password_hash=self._hash(password),
            role=role,
            avatar=avatar_for(name),
        )

    def register(self, name, email, password):
        name = (name or "").strip()
        email = normalize_email(email)
        if not name or not email or not password:
            raise ValidationError("Name, email and password are required")
        if "@" not in email:
            raise ValidationError("Invalid email address")

        user = self._create_user(name, email, password, ROLE_USER)
        logger.info("Registered user %s", user.id)
        return self.issue_token(user), user.public()

    def login(self, email, password):
        user = self._store.get_user_by_email(normalize_email(email))
        if user is None:
            check_password_hash(self._dummy_hash, password or "")
            logger.info("Failed login attempt")
            raise AuthError(INVALID_CREDENTIALS)
        if not check_password_hash(user.password_hash, password or ""):
            logger.info("Failed login attempt")
            raise AuthError(INVALID_CREDENTIALS)
        return self.issue_token(user), user.public()

    def current_user(self, user_id):
        user = self._store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user.public()

    def ensure_admin(self, name, email, password):
        """Create the default administrator unless the email is taken."""
        email = normalize_email(email)
        existing = self._store.get_user_by_email(email)
        if existing is not None:
            return existing
        user = self._create_user(name, email, password, ROLE_ADMIN)
        logger.warning("Default admin created. CHANGE ADMIN_PASSWORD in production.")
        return user
