import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from opgl_gateway.models.api_key import ApiKey, RateLimitRecord


class ApiKeyStore:
    """
    API key records and their per-window request counters.

    Every method runs in its own short session; the store holds no state
    besides the session factory, so one instance is shared by all request
    threads.
    """

    def __init__(self, sessions: sessionmaker[Session]):
        self._sessions = sessions

    def get_active_by_hash(self, key_hash: str) -> ApiKey | None:
        with self._sessions() as session:
            res = session.execute(
                select(ApiKey).where(ApiKey.key_hash == key_hash, ApiKey.is_active.is_(True))
            )
            return res.scalar_one_or_none()

    def get(self, key_id: uuid.UUID) -> ApiKey | None:
        with self._sessions() as session:
            return session.get(ApiKey, key_id)

    def create(
        self,
        name: str,
        key_hash: str,
        key_prefix: str,
        rate_limit: int,
        rate_window_seconds: int,
    ) -> ApiKey:
        api_key = ApiKey(
            name=name,
            key_hash=key_hash,
            key_prefix=key_prefix,
            rate_limit=rate_limit,
            rate_window_seconds=rate_window_seconds,
            is_active=True,
            created_at=datetime.now(timezone.utc),
        )
        with self._sessions.begin() as session:
            session.add(api_key)
        return api_key

    def list(self) -> list[ApiKey]:
        with self._sessions() as session:
            res = session.execute(select(ApiKey).order_by(ApiKey.created_at.desc()))
            return list(res.scalars().all())

    def deactivate(self, key_id: uuid.UUID) -> bool:
        """Soft delete. Returns False when no such key exists."""
        with self._sessions.begin() as session:
            res = session.execute(
                update(ApiKey).where(ApiKey.id == key_id).values(is_active=False)
            )
            return res.rowcount > 0

    def set_limits(self, key_id: uuid.UUID, rate_limit: int, rate_window_seconds: int) -> ApiKey | None:
        with self._sessions.begin() as session:
            api_key = session.get(ApiKey, key_id)
            if api_key is None:
                return None
            api_key.rate_limit = rate_limit
            api_key.rate_window_seconds = rate_window_seconds
        return api_key

    def touch_last_used(self, key_id: uuid.UUID) -> None:
        with self._sessions.begin() as session:
            session.execute(
                update(ApiKey)
                .where(ApiKey.id == key_id)
                .values(last_used_at=datetime.now(timezone.utc))
            )

    def increment_window(self, key_id: uuid.UUID, window_start: datetime) -> int:
        """
        Add one request to the (key, window) counter and return the new count.

        A single INSERT .. ON CONFLICT DO UPDATE .. RETURNING statement, so
        concurrent callers on the same window never lose an update.
        """
        with self._sessions.begin() as session:
            stmt = _dialect_insert(session)(RateLimitRecord).values(
                id=uuid.uuid4(),
                api_key_id=key_id,
                window_start=window_start,
                request_count=1,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[RateLimitRecord.api_key_id, RateLimitRecord.window_start],
                set_={"request_count": RateLimitRecord.request_count + 1},
            ).returning(RateLimitRecord.request_count)
            return session.execute(stmt).scalar_one()

    def get_window_count(self, key_id: uuid.UUID, window_start: datetime) -> int:
        with self._sessions() as session:
            res = session.execute(
                select(RateLimitRecord.request_count).where(
                    RateLimitRecord.api_key_id == key_id,
                    RateLimitRecord.window_start == window_start,
                )
            )
            return res.scalar_one_or_none() or 0

    def delete_windows_before(self, key_id: uuid.UUID, cutoff: datetime) -> int:
        with self._sessions.begin() as session:
            res = session.execute(
                delete(RateLimitRecord).where(
                    RateLimitRecord.api_key_id == key_id,
                    RateLimitRecord.window_start < cutoff,
                )
            )
            return res.rowcount


def _dialect_insert(session: Session):
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Atomic counter upsert is not supported on {dialect_name}")
