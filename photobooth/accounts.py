"""
Accounts: signup, login and bearer-token handling.

Access tokens are HS256 JWTs carrying ``user_id`` and ``is_admin``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

import jwt
from passlib.context import CryptContext

from photobooth.db import DbClient, DbError, UserRecord, utcnow
from photobooth.errors import Conflict, PersistFailed, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Requester:
    """Identity resolved from a bearer token."""

    user_id: str
    is_admin: bool = False


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Malformed or unknown hash format.
        return False


def create_access_token(
    user: UserRecord, secret: str, expires_in: timedelta = timedelta(hours=72)
) -> str:
    now = utcnow()
    payload = {
        "user_id": user.id,
        "is_admin": user.is_admin,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, secret: str) -> Requester:
    """
    Validate a token and return the requester it names.

    Raises:
        Unauthorized: If the token is invalid, expired, or lacks a string user_id.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")

    user_id = payload.get("user_id")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Token user_id claim is not a string: %r", type(user_id))
        raise Unauthorized("Invalid user_id in token")
    return Requester(user_id=user_id, is_admin=bool(payload.get("is_admin", False)))


@dataclass
class AccountService:
    db: DbClient
    jwt_secret: str
    token_lifetime: timedelta = timedelta(hours=72)

    def signup(
        self, username: str, email: str, password: str, *, is_admin: bool = False
    ) -> UserRecord:
        if not username or not email or not password:
            raise ValidationError("Username, email and password are required")
        try:
            if self.db.get_user_by_email(email):
                raise Conflict("Email already in use")
            if self.db.get_user_by_username(username):
                raise Conflict("Username already taken")
            user = UserRecord(
                id=str(uuid.uuid4()),
                username=username,
                email=email,
                password_hash=hash_password(password),
                is_admin=is_admin,
            )
            self.db.create_user(user)
        except DbError:
            logger.exception("signup: failed to create user username=%s", username)
            raise PersistFailed("Failed to create account")
        logger.info("Created user %s (admin=%s)", user.id, is_admin)
        return user

    def login(self, identifier: str, password: str) -> tuple[str, UserRecord]:
        try:
            user = self.db.get_user_by_identifier(identifier)
        except DbError:
            logger.exception("login: lookup failed")
            raise PersistFailed("Failed to log in")
        if user is None or not verify_password(password, user.password_hash):
            raise Unauthorized()
        token = create_access_token(user, self.jwt_secret, self.token_lifetime)
        return token, user

    def resolve_requester(self, token: str) -> Requester:
        return decode_access_token(token, self.jwt_secret)
