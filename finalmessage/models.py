# finalmessage/models.py
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Index, text
from sqlalchemy.types import TypeDecorator
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores datetimes as UTC and hands them back timezone-aware.

    SQLite keeps no offset, so values are normalised to UTC on the way in
    and tagged with UTC on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class UserActivity(SQLModel, table=True):
    user_id: str = Field(primary_key=True)
    last_activity_seen: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    inactivity_threshold_days: Optional[int] = None


class Verifier(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    verifier_id: str = Field(index=True)
    user_id: str = Field(index=True)
    name: str
    email: str | None = None
    phone: str | None = None
    relationship: str | None = None
    channel: str = "email"
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class StoredMessage(SQLModel, table=True):
    user_id: str = Field(primary_key=True)
    # sealed AES-GCM blob when is_encrypted
    content: str
    is_encrypted: bool = False
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class MessageAnchor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    message_hash: str
    previous_hash: str
    chain_hash: str
    nonce: int
    anchored_at: int
    tx_hash: str | None = None
    block_number: int | None = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class VerificationProcessRecord(SQLModel, table=True):
    # at most one pending process per user
    __table_args__ = (
        Index(
            "uq_pending_process_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    process_id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    start_date: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    status: str = "pending"
    verifiers: list = Field(default_factory=list, sa_column=Column(JSON))
    notifications: list = Field(default_factory=list, sa_column=Column(JSON))
    completed_verifications: list = Field(default_factory=list, sa_column=Column(JSON))
    completed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    release_status: str = "pending"
    release_error: str | None = None
    released_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    revision: int = 0


class DeliveryRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    verification_process_id: str = Field(unique=True)
    delivered_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    message_hash: str | None = None
    recipients: list = Field(default_factory=list, sa_column=Column(JSON))
    outcomes: list = Field(default_factory=list, sa_column=Column(JSON))


class WalletRecord(SQLModel, table=True):
    user_email: str = Field(primary_key=True)
    encrypted_info: str
    encrypted_private_key: str
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
