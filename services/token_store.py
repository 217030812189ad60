"""
Refresh-token record stores.

Both stores keep at most one record per owner: save() is an upsert keyed by
owner id, so a rotated or re-issued token overwrites the previous one instead
of adding a row.

- SqlRefreshTokenStore: refresh_tokens table through DBStorage
- InMemoryRefreshTokenStore: dict keyed by owner id (tests, single process)
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from models.refresh_token import RefreshToken
from services.exceptions import StoreUnavailableError


@dataclass(frozen=True)
class RefreshTokenRecord:
    owner_id: str
    value: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def rotated(self, value: str, expires_at: datetime) -> "RefreshTokenRecord":
        return replace(self, value=value, expires_at=expires_at)


class InMemoryRefreshTokenStore:
    def __init__(self):
        self._records: Dict[str, RefreshTokenRecord] = {}
        self._lock = threading.Lock()

    def find_by_token(self, value: str) -> Optional[RefreshTokenRecord]:
        with self._lock:
            for record in self._records.values():
                if record.value == value:
                    return record
        return None

    def find_by_owner(self, owner_id: str) -> Optional[RefreshTokenRecord]:
        with self._lock:
            return self._records.get(owner_id)

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        with self._lock:
            self._records[record.owner_id] = record
        return record

    def delete_by_owner(self, owner_id: str) -> int:
        with self._lock:
            return 1 if self._records.pop(owner_id, None) else 0

    def delete_by_token(self, value: str) -> int:
        with self._lock:
            owners = [o for o, r in self._records.items() if r.value == value]
            for owner in owners:
                del self._records[owner]
        return len(owners)

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            owners = [o for o, r in self._records.items() if r.expires_at < now]
            for owner in owners:
                del self._records[owner]
        return len(owners)

    def count(self) -> int:
        with self._lock:
            return len(self._records)


class SqlRefreshTokenStore:
    """Refresh-token store over the refresh_tokens table."""

    def __init__(self, storage):
        self.storage = storage

    @contextmanager
    def _guard(self):
        try:
            yield self.storage.get_session()
        except SQLAlchemyError as exc:
            self.storage.rollback()
            raise StoreUnavailableError() from exc

    @staticmethod
    def _to_record(row: Optional[RefreshToken]) -> Optional[RefreshTokenRecord]:
        if row is None:
            return None
        return RefreshTokenRecord(owner_id=row.user_id, value=row.token, expires_at=row.expires_at)

    def find_by_token(self, value: str) -> Optional[RefreshTokenRecord]:
        with self._guard() as session:
            row = session.query(RefreshToken).filter(RefreshToken.token == value).first()
            return self._to_record(row)

    def find_by_owner(self, owner_id: str) -> Optional[RefreshTokenRecord]:
        with self._guard() as session:
            row = session.query(RefreshToken).filter(RefreshToken.user_id == owner_id).first()
            return self._to_record(row)

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        values = {"token": record.value, "expires_at": record.expires_at}
        with self._guard() as session:
            # single UPDATE statement; a row removed concurrently matches nothing and is re-inserted
            updated = session.query(RefreshToken).filter(
                RefreshToken.user_id == record.owner_id
            ).update(values, synchronize_session="evaluate")
            if not updated:
                self.storage.new(RefreshToken(user_id=record.owner_id, **values))
            self.storage.save()
        return record

    def delete_by_owner(self, owner_id: str) -> int:
        with self._guard() as session:
            deleted = session.query(RefreshToken).filter(
                RefreshToken.user_id == owner_id
            ).delete(synchronize_session=False)
            self.storage.save()
        return deleted

    def delete_by_token(self, value: str) -> int:
        with self._guard() as session:
            deleted = session.query(RefreshToken).filter(
                RefreshToken.token == value
            ).delete(synchronize_session=False)
            self.storage.save()
        return deleted

    def delete_expired(self, now: datetime) -> int:
        with self._guard() as session:
            deleted = session.query(RefreshToken).filter(
                RefreshToken.expires_at < now
            ).delete(synchronize_session=False)
            self.storage.save()
        return deleted

    def count(self) -> int:
        with self._guard():
            return self.storage.count(RefreshToken)
