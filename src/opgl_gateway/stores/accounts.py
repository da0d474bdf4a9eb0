import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from opgl_gateway.models.account import Account


class EmailAlreadyExists(Exception):
    pass


class AccountStore:
    """Account records (email + password hash)."""

    def __init__(self, sessions: sessionmaker[Session]):
        self._sessions = sessions

    def get_by_email(self, email: str) -> Account | None:
        with self._sessions() as session:
            res = session.execute(select(Account).where(Account.email == email))
            return res.scalar_one_or_none()

    def get_by_id(self, account_id: uuid.UUID) -> Account | None:
        with self._sessions() as session:
            return session.get(Account, account_id)

    def create(self, email: str, password_hash: str) -> Account:
        if self.get_by_email(email) is not None:
            raise EmailAlreadyExists(email)

        now = datetime.now(timezone.utc)
        account = Account(email=email, password_hash=password_hash, created_at=now, updated_at=now)
        try:
            with self._sessions.begin() as session:
                session.add(account)
        except IntegrityError as exc:
            # lost a race with a concurrent registration
            raise EmailAlreadyExists(email) from exc
        return account
