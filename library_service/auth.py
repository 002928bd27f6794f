"""
Password hashing, JWT issue/verification and the user account operations.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from flask_bcrypt import Bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from .errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from .models import User
from .validation import require_name

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class AuthPayload:
    user_id: int
    email: str
    is_admin: bool

    @classmethod
    def for_user(cls, user):
        return cls(user_id=user.id, email=user.email, is_admin=bool(user.is_admin))


def normalize_email(email):
    return email.strip().casefold()


def user_view(user):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "isAdmin": bool(user.is_admin),
    }


class AuthService:
    def __init__(
        self,
        session_factory,
        bcrypt: Bcrypt,
        secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self.session_factory = session_factory
        self.bcrypt = bcrypt
        self.secret = secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    # ----------------- passwords -----------------

    def hash_password(self, password: str) -> str:
        return self.bcrypt.generate_password_hash(password).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return self.bcrypt.check_password_hash(password_hash, password)
        except (TypeError, ValueError):
            # malformed hash or salt
            return False

    # ----------------- tokens -----------------

    def _encode(self, payload: AuthPayload, token_type: str, secret: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "userId": payload.user_id,
            "email": payload.email,
            "isAdmin": payload.is_admin,
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(claims, secret, algorithm=self.algorithm)

    def _decode(self, token, token_type: str, secret: str) -> Optional[AuthPayload]:
        if not isinstance(token, str) or not token:
            return None
        try:
            claims = jwt.decode(token, secret, algorithms=[self.algorithm])
        except jwt.PyJWTError:
            return None
        if claims.get("type") != token_type:
            return None
        try:
            return AuthPayload(
                user_id=int(claims["userId"]),
                email=str(claims["email"]),
                is_admin=bool(claims["isAdmin"]),
            )
        except (KeyError, TypeError, ValueError):
            return None

    def generate_access_token(self, payload: AuthPayload) -> str:
        return self._encode(payload, "access", self.secret, self.access_ttl)

    def generate_refresh_token(self, payload: AuthPayload) -> str:
        return self._encode(payload, "refresh", self.refresh_secret, self.refresh_ttl)

    def verify_access_token(self, token) -> Optional[AuthPayload]:
        return self._decode(token, "access", self.secret)

    def verify_refresh_token(self, token) -> Optional[AuthPayload]:
        return self._decode(token, "refresh", self.refresh_secret)

    # ----------------- accounts -----------------

    def register_user(self, email, name, password):
        if not isinstance(email, str) or "@" not in email:
            raise ValidationError("A valid email address is required")
        name = require_name(name)
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        email = normalize_email(email)

        session = self.session_factory()
        try:
            existing = session.execute(
                select(User).where(User.email == email)
            ).scalar_one_or_none()
            if existing:
                raise ConflictError("Email address is already registered")

            user = User(
                email=email,
                name=name,
                password_hash=self.hash_password(password),
                is_admin=False,
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise ConflictError("Email address is already registered")

            logger.info("Registered user %s (%s)", user.id, email)
            return user_view(user)
        finally:
            session.close()

    def login_user(self, email, password):
        if not isinstance(email, str) or not isinstance(password, str):
            raise AuthenticationError(INVALID_CREDENTIALS)

        session = self.session_factory()
        try:
            user = session.execute(
                select(User).where(User.email == normalize_email(email))
            ).scalar_one_or_none()

            if not user or user.is_deleted or not self.verify_password(
                password, user.password_hash
            ):
                logger.warning("Rejected login for %s", email)
                raise AuthenticationError(INVALID_CREDENTIALS)

            payload = AuthPayload.for_user(user)
            return {
                "accessToken": self.generate_access_token(payload),
                "refreshToken": self.generate_refresh_token(payload),
                "user": user_view(user),
            }
        finally:
            session.close()

    def refresh_access_token(self, refresh_token):
        payload = self.verify_refresh_token(refresh_token)
        if payload is None:
            logger.warning("Rejected refresh token")
            raise AuthenticationError("Invalid or expired refresh token")

        session = self.session_factory()
        try:
            user = session.get(User, payload.user_id)
            if not user or user.is_deleted:
                raise NotFoundError("User not found")
            # Re-read so a changed admin flag or email lands in the new token
            return {"accessToken": self.generate_access_token(AuthPayload.for_user(user))}
        finally:
            session.close()

    def get_user(self, user_id):
        session = self.session_factory()
        try:
            user = session.get(User, user_id)
            if not user or user.is_deleted:
                raise NotFoundError("User not found")
            return user_view(user)
        finally:
            session.close()

    def update_profile(self, user_id, name):
        name = require_name(name)

        session = self.session_factory()
        try:
            user = session.get(User, user_id)
            if not user or user.is_deleted:
                raise NotFoundError("User not found")
            user.name = name
            session.commit()
            logger.info("Updated profile of user %s", user_id)
            return user_view(user)
        finally:
            session.close()

    def create_admin(self, email, name, password):
        """Create an administrator, or promote the account if the email exists."""
        session = self.session_factory()
        try:
            existing = session.execute(
                select(User).where(User.email == normalize_email(email))
            ).scalar_one_or_none()
            if existing:
                existing.is_admin = True
                existing.is_deleted = False
                session.commit()
                logger.info("Promoted user %s to admin", existing.id)
                return user_view(existing)
        finally:
            session.close()

        view = self.register_user(email, name, password)

        session = self.session_factory()
        try:
            user = session.get(User, view["id"])
            user.is_admin = True
            session.commit()
            logger.info("Created admin user %s", user.id)
            return user_view(user)
        finally:
            session.close()
