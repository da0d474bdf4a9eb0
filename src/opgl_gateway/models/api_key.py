import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from opgl_gateway.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # store hashed key only
    key_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    # optional for display/debug (no secret)
    key_prefix: Mapped[str] = mapped_column(String(16), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    rate_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=100)   # requests
    rate_window_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=60) # seconds

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class RateLimitRecord(Base):
    __tablename__ = "rate_limit_records"
    __table_args__ = (UniqueConstraint("api_key_id", "window_start", name="uq_rate_limit_window"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    api_key_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("api_keys.id", ondelete="CASCADE"), nullable=False
    )

    # aligned to a multiple of the key's window since the epoch
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
