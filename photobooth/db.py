"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Union

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    create_engine,
    or_,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class DbError(Exception):
    """Raised when the metadata store fails a read or write."""


@dataclass(frozen=True)
class Guest:
    expires_at: datetime


@dataclass(frozen=True)
class Owned:
    owner_id: str


Ownership = Union[Guest, Owned]


@dataclass
class StripRecord:
    id: str
    ownership: Ownership
    file_url: str
    title: str = ""
    caption: str = ""
    created_at: datetime = field(default_factory=utcnow)

    @property
    def owner_id(self) -> Optional[str]:
        if isinstance(self.ownership, Owned):
            return self.ownership.owner_id
        return None

    @property
    def is_guest(self) -> bool:
        return isinstance(self.ownership, Guest)

    @property
    def expires_at(self) -> Optional[datetime]:
        if isinstance(self.ownership, Guest):
            return self.ownership.expires_at
        return None

    def is_expired(self, now: datetime) -> bool:
        return self.is_guest and self.expires_at < now

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "title": self.title,
            "caption": self.caption,
            "file_url": self.file_url,
            "is_guest": self.is_guest,
            "expires_at": self.expires_at,
            "created_at": self.created_at,
        }


@dataclass
class UserRecord:
    id: str
    username: str
    email: str
    password_hash: str
    is_admin: bool = False
    created_at: datetime = field(default_factory=utcnow)


class DbClient(Protocol):
    """Interface for database access."""

    def create_strip(self, record: StripRecord) -> None:
        ...

    def get_strip(self, strip_id: str) -> Optional[StripRecord]:
        ...

    def list_strips_by_owner(self, owner_id: str) -> list[StripRecord]:
        ...

    def update_strip(self, record: StripRecord) -> None:
        ...

    def delete_strip(self, strip_id: str) -> None:
        ...

    def list_expired_guest_strips(self, now: datetime) -> list[StripRecord]:
        ...

    def create_user(self, record: UserRecord) -> None:
        ...

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        ...

    def get_user_by_identifier(self, identifier: str) -> Optional[UserRecord]:
        ...


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.strips: Dict[str, StripRecord] = {}
        self.users: Dict[str, UserRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.strips.clear()
        self.users.clear()

    def create_strip(self, record: StripRecord) -> None:
        if record.id in self.strips:
            raise DbError(f"strip {record.id} already exists")
        self.strips[record.id] = replace(record)

    def get_strip(self, strip_id: str) -> Optional[StripRecord]:
        stored = self.strips.get(strip_id)
        return replace(stored) if stored else None

    def list_strips_by_owner(self, owner_id: str) -> list[StripRecord]:
        owned = [
            replace(strip)
            for strip in self.strips.values()
            if strip.owner_id == owner_id
        ]
        return sorted(owned, key=lambda strip: strip.created_at, reverse=True)

    def update_strip(self, record: StripRecord) -> None:
        if record.id not in self.strips:
            raise DbError(f"strip {record.id} does not exist")
        self.strips[record.id] = replace(record)

    def delete_strip(self, strip_id: str) -> None:
        self.strips.pop(strip_id, None)

    def list_expired_guest_strips(self, now: datetime) -> list[StripRecord]:
        return [
            replace(strip) for strip in self.strips.values() if strip.is_expired(now)
        ]

    def create_user(self, record: UserRecord) -> None:
        if record.id in self.users:
            raise DbError(f"user {record.id} already exists")
        for user in self.users.values():
            if user.email == record.email or user.username == record.username:
                raise DbError("duplicate email or username")
        self.users[record.id] = replace(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.username == username:
                return user
        return None

    def get_user_by_identifier(self, identifier: str) -> Optional[UserRecord]:
        return self.get_user_by_email(identifier) or self.get_user_by_username(
            identifier
        )


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    Every SQLAlchemy failure is re-raised as DbError so callers only deal with
    one exception type per store.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_strip_record(self, row: "StripRow") -> StripRecord:
        if row.is_guest:
            ownership: Ownership = Guest(expires_at=_as_utc(row.expires_at))
        else:
            ownership = Owned(owner_id=row.user_id)
        return StripRecord(
            id=row.id,
            ownership=ownership,
            file_url=row.file_url,
            title=row.title or "",
            caption=row.caption or "",
            created_at=_as_utc(row.created_at),
        )

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            username=row.username,
            email=row.email,
            password_hash=row.password_hash,
            is_admin=bool(row.is_admin),
            created_at=_as_utc(row.created_at),
        )

    @staticmethod
    def _apply_ownership(row: "StripRow", record: StripRecord) -> None:
        row.user_id = record.owner_id
        row.is_guest = record.is_guest
        row.expires_at = record.expires_at

    def create_strip(self, record: StripRecord) -> None:
        try:
            with self.Session() as session:
                row = StripRow(
                    id=record.id,
                    title=record.title,
                    caption=record.caption,
                    file_url=record.file_url,
                    created_at=record.created_at,
                )
                self._apply_ownership(row, record)
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise DbError(str(exc)) from exc

    def get_strip(self, strip_id: str) -> Optional[StripRecord]:
        try:
            with self.Session() as session:
                row = session.get(StripRow, strip_id)
                if not row:
                    return None
                return self._to_strip_record(row)
        except SQLAlchemyError as exc:
            raise DbError(str(exc)) from exc

    def list_strips_by_owner(self, owner_id: str) -> list[StripRecord]:
        try:
            with self.Session() as session:
                stmt = (
                    select(StripRow)
                    .where(StripRow.user_id == owner_id)
                    .order_by(StripRow.created_at.desc())
                )
                rows = session.execute(stmt).scalars().all()
                return [self._to_strip_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise DbError(str(exc)) from exc

    def update_strip(self, record: StripRecord) -> None:
        try:
            with self.Session() as session:
                row = session.get(StripRow, record.id)
                if not row:
                    raise DbError(f"strip {record.id} does not exist")
                row.title = record.title
                row.caption = record.caption
                self._apply_ownership(row, record)
                session.commit()
        except SQLAlchemyError as exc:
            raise DbError(str(exc)) from exc

    def delete_strip(self, strip_id: str) -> None:
        try:
            with self.Session() as session:
                row = session.get(StripRow, strip_id)
                if not row:
                    return
                session.delete(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise DbError(str(exc)) from exc

    def list_expired_guest_strips(self, now: datetime) -> list[StripRecord]:
        try:
            with self.Session() as session:
                stmt = select(StripRow).where(
                    StripRow.is_guest.is_(True),
                    StripRow.expires_at < now,
                )
                rows = session.execute(stmt).scalars().all()
                return [self._to_strip_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise DbError(str(exc)) from exc

    def create_user(self, record: UserRecord) -> None:
        try:
            with self.Session() as session:
                session.add(
                    UserRow(
                        id=record.id,
                        username=record.username,
                        email=record.email,
                        password_hash=record.password_hash,
                        is_admin=record.is_admin,
                        created_at=record.created_at,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise DbError(str(exc)) from exc

    def _find_user(self, *criteria) -> Optional[UserRecord]:
        try:
            with self.Session() as session:
                stmt = select(UserRow).where(*criteria).limit(1)
                row = session.execute(stmt).scalar_one_or_none()
                return self._to_user_record(row) if row else None
        except SQLAlchemyError as exc:
            raise DbError(str(exc)) from exc

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._find_user(UserRow.id == user_id)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        return self._find_user(UserRow.email == email)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        return self._find_user(UserRow.username == username)

    def get_user_by_identifier(self, identifier: str) -> Optional[UserRecord]:
        return self._find_user(
            or_(UserRow.email == identifier, UserRow.username == identifier)
        )


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    username = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class StripRow(Base):
    __tablename__ = "strips"
    __table_args__ = (
        CheckConstraint(
            "(is_guest AND user_id IS NULL AND expires_at IS NOT NULL)"
            " OR (NOT is_guest AND user_id IS NOT NULL AND expires_at IS NULL)",
            name="strips_ownership_consistent",
        ),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String, nullable=False, default="")
    caption = Column(String, nullable=False, default="")
    file_url = Column(String, nullable=False)
    is_guest = Column(Boolean, nullable=False, default=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
