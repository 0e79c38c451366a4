"""Admin session guard.

Exactly one admin identity exists. A successful login issues a signed,
expiring access token in an HttpOnly cookie; the token carries the ``is_admin``
flag and the admin record's current session nonce. Logout rotates the nonce,
so a captured cookie stops working at once rather than at expiry.
"""

import logging
from functools import wraps
from typing import Dict, Optional
from uuid import uuid4

import bcrypt
from flask_jwt_extended import (
    JWTManager,
    create_access_token,
    get_jwt,
    set_access_cookies,
    unset_jwt_cookies,
    verify_jwt_in_request,
)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from .config import Settings
from .errors import AuthError, StorageError, ValidationError
from .store import RecordStore

logger = logging.getLogger(__name__)

ADMIN_IDENTITY = "admin"
# Stored on the admin record and copied into each token; rotating it revokes
# every token issued before.
SESSION_NONCE_FIELD = "sessionNonce"
SESSION_NONCE_CLAIM = "nonce"


def normalize_email(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def configure_session_cookies(app, settings: Settings) -> JWTManager:
    app.config["JWT_SECRET_KEY"] = settings.session_secret
    app.config["JWT_TOKEN_LOCATION"] = ["cookies"]
    app.config["JWT_ACCESS_COOKIE_NAME"] = settings.session_cookie_name
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = settings.session_ttl
    app.config["JWT_COOKIE_SECURE"] = settings.is_production
    app.config["JWT_COOKIE_SAMESITE"] = "Strict"
    app.config["JWT_COOKIE_CSRF_PROTECT"] = False
    app.config["JWT_SESSION_COOKIE"] = False
    return JWTManager(app)


class SessionGuard:
    def __init__(self, store: RecordStore, settings: Settings):
        self.store = store
        self.settings = settings
        self._configured_admin: Dict[str, str] = {}

    def ensure_admin_from_config(self) -> None:
        """Persist the configured admin when no admin has been stored yet."""
        if not (self.settings.admin_email and self.settings.admin_password):
            return

        self._configured_admin = {
            "email": self.settings.admin_email,
            "hash": hash_password(self.settings.admin_password),
        }
        try:
            if self.store.load_admin().get("email"):
                return
            self.store.save_admin(self._configured_admin)
            logger.info("Admin created from configuration")
        except StorageError as exc:
            logger.error("Unable to persist configured admin, keeping it in memory: %s", exc)

    def get_admin(self) -> Dict[str, str]:
        stored = self.store.load_admin()
        if stored.get("email"):
            return stored
        return dict(self._configured_admin)

    def admin_configured(self) -> bool:
        return bool(self.get_admin().get("email"))

    def setup(self, token: Optional[str], email: Optional[str], password: Optional[str]) -> None:
        expected = self.settings.setup_token
        if not expected or token != expected:
            raise AuthError("Invalid setup token")
        if self.admin_configured():
            raise ValidationError("Admin already created")
        email = str(email or "").strip()
        if not email or not password:
            raise ValidationError("Missing")
        self.store.save_admin({"email": email, "hash": hash_password(str(password))})
        logger.info("Admin created through setup token")

    def login(self, email: Optional[str], password: Optional[str], response) -> None:
        admin = self.get_admin()
        if not admin.get("email"):
            raise ValidationError("Admin not set up")

        password_ok = check_password(str(password or ""), admin.get("hash", ""))
        if not password_ok or normalize_email(email) != normalize_email(admin["email"]):
            logger.warning("Rejected admin login for %s", normalize_email(email) or "<blank>")
            raise AuthError("Invalid")

        nonce = admin.get(SESSION_NONCE_FIELD)
        if not nonce:
            nonce = self._rotate_session_nonce(admin)
        token = create_access_token(
            identity=ADMIN_IDENTITY,
            additional_claims={"is_admin": True, SESSION_NONCE_CLAIM: nonce},
        )
        set_access_cookies(response, token)

    def logout(self, response) -> None:
        """Clear the cookie and, for a live session, revoke every token issued so far."""
        if self.is_authenticated():
            self._rotate_session_nonce(self.get_admin())
            logger.info("Admin session revoked")
        unset_jwt_cookies(response)

    def _rotate_session_nonce(self, admin: Dict[str, str]) -> str:
        nonce = uuid4().hex
        updated = {**admin, SESSION_NONCE_FIELD: nonce}
        self.store.save_admin(updated)
        if normalize_email(self._configured_admin.get("email")) == normalize_email(admin.get("email")):
            self._configured_admin = dict(updated)
        return nonce

    def is_authenticated(self) -> bool:
        try:
            verify_jwt_in_request(optional=True)
            claims = get_jwt()
        except (JWTExtendedException, PyJWTError):
            return False
        except RuntimeError:
            # Exempt methods (OPTIONS) skip verification entirely.
            return False
        if not claims.get("is_admin"):
            return False
        nonce = self.get_admin().get(SESSION_NONCE_FIELD)
        return bool(nonce) and claims.get(SESSION_NONCE_CLAIM) == nonce

    def require_admin(self) -> None:
        if not self.is_authenticated():
            raise AuthError("Unauthorized")

    def admin_required(self, view):
        @wraps(view)
        def guarded(*args, **kwargs):
            self.require_admin()
            return view(*args, **kwargs)

        return guarded
