"""
Account store backed by SQLite (or any SQLAlchemy URL).

Holds the tracked accounts, their access tokens and the last usage
snapshot per account.
"""

import json
from pathlib import Path
from typing import Any, Iterable, Optional

from sqlalchemy import Boolean, Column, DateTime, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from quotawake.core.config import Settings, get_settings
from quotawake.core.logging import get_logger
from quotawake.core.timeutil import now_utc, to_utc
from quotawake.domain.models import Account, UsageSnapshot
from quotawake.services.interfaces import AccountStore, TokenProvider

logger = get_logger("persistence")

Base = declarative_base()


class AccountRecord(Base):
    """Database model for a tracked account."""

    __tablename__ = "accounts"

    id = Column(String(100), primary_key=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    scopes = Column(Text, nullable=False, default="")
    proxy_url = Column(String(500), nullable=True)
    access_token = Column(Text, nullable=True)
    usage_json = Column(Text, nullable=True)
    usage_updated_at = Column(DateTime, nullable=True)  # naive UTC

    def to_account(self) -> Account:
        return Account(
            id=self.id,
            name=self.name,
            is_active=bool(self.is_active),
            scopes=frozenset(self.scopes.split()) if self.scopes else frozenset(),
            proxy_url=self.proxy_url,
        )


class SQLiteAccountStore(AccountStore, TokenProvider):
    """
    SQLAlchemy-based account store.

    Snapshots are stored as JSON next to the account row.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.database_url = database_url or settings.database_url

        # Ensure data directory exists
        if self.database_url.startswith("sqlite:///"):
            db_path = Path(self.database_url.replace("sqlite:///", ""))
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(self.database_url)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine)

        logger.info(f"Initialized account store: {self.database_url}")

    def list_accounts(self) -> list[Account]:
        session = self.Session()
        try:
            records = session.query(AccountRecord).order_by(AccountRecord.name).all()
            return [r.to_account() for r in records]
        finally:
            session.close()

    def get_account(self, account_id: str) -> Optional[Account]:
        session = self.Session()
        try:
            record = session.get(AccountRecord, account_id)
            return record.to_account() if record else None
        finally:
            session.close()

    def get_usage_snapshot(self, account_id: str) -> Optional[UsageSnapshot]:
        session = self.Session()
        try:
            record = session.get(AccountRecord, account_id)
            if record is None or not record.usage_json:
                return None
            return UsageSnapshot.from_dict(json.loads(record.usage_json))
        finally:
            session.close()

    def put_usage_snapshot(self, account_id: str, snapshot: UsageSnapshot) -> None:
        session = self.Session()
        try:
            record = session.get(AccountRecord, account_id)
            if record is None:
                raise KeyError(f"Unknown account: {account_id}")
            record.usage_json = json.dumps(snapshot.to_dict())
            record.usage_updated_at = to_utc(snapshot.fetched_at or now_utc()).replace(tzinfo=None)
            session.commit()
            logger.debug(f"Saved usage snapshot for {account_id}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_access_token(self, account_id: str) -> Optional[str]:
        session = self.Session()
        try:
            record = session.get(AccountRecord, account_id)
            if record is None or not record.access_token:
                return None
            return record.access_token
        finally:
            session.close()

    def upsert_account(
        self,
        account: Account,
        access_token: Optional[str] = None,
    ) -> None:
        """
        Insert or update an account.

        An existing token is kept unless a new one is given.
        """
        session = self.Session()
        try:
            record = session.get(AccountRecord, account.id)
            if record is None:
                record = AccountRecord(id=account.id)
                session.add(record)
            record.name = account.name
            record.is_active = account.is_active
            record.scopes = " ".join(sorted(account.scopes))
            record.proxy_url = account.proxy_url
            if access_token is not None:
                record.access_token = access_token
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to save account {account.id}: {e}")
            raise
        finally:
            session.close()

    def import_accounts(self, entries: Iterable[dict[str, Any]]) -> int:
        """
        Seed accounts from plain dicts (e.g. a YAML list).

        Each entry takes the Account.from_dict fields plus ``access_token``.

        Returns:
            Number of accounts written
        """
        count = 0
        for entry in entries:
            account = Account.from_dict(entry)
            self.upsert_account(account, access_token=entry.get("access_token"))
            count += 1
        logger.info(f"Imported {count} accounts")
        return count


def create_account_store(settings: Optional[Settings] = None) -> SQLiteAccountStore:
    """Create the account store from settings."""
    return SQLiteAccountStore(settings=settings)
