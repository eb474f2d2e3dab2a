"""Row-oriented record store over the users, sessions and chat_history tables.

Rows go in and come out as plain dicts so services never hold ORM objects.
Every table has one key column; lookups on it (and on the other indexed
lookup columns) go through SQL indexes instead of scanning the table.
Writes commit immediately. There is no coordination between concurrent
writers: the last write wins.
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from family6.models.user import User
from family6.models.session import UserSession
from family6.models.chat import ChatMessage

logger = logging.getLogger(__name__)

# table name -> (model, key column, insertion-order column)
TABLES = {
    "users": (User, "email", "id"),
    "sessions": (UserSession, "token", "created_at"),
    "chat_history": (ChatMessage, "id", "row_id"),
}


class RecordStoreError(Exception):
    """Unknown table or column."""


class RecordStore:
    def __init__(self, db: Session):
        self.db = db

    # ─── helpers ───

    @staticmethod
    def _table(table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise RecordStoreError(f"Unknown table: {table}")

    @staticmethod
    def _column(model, field: str):
        if field not in model.__table__.columns:
            raise RecordStoreError(f"Unknown field '{field}' on {model.__tablename__}")
        return getattr(model, field)

    @staticmethod
    def _to_row(obj) -> dict:
        return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}

    def _get(self, table: str, key: Any):
        model, key_field, _ = self._table(table)
        return self.db.query(model).filter(self._column(model, key_field) == key).first()

    # ─── operations ───

    def append(self, table: str, row: dict) -> dict:
        model, _, _ = self._table(table)
        for field in row:
            self._column(model, field)
        obj = model(**row)
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return self._to_row(obj)

    def scan(self, table: str) -> list[dict]:
        model, _, order_field = self._table(table)
        rows = self.db.query(model).order_by(self._column(model, order_field)).all()
        return [self._to_row(r) for r in rows]

    def find(self, table: str, key: Any) -> Optional[dict]:
        obj = self._get(table, key)
        return self._to_row(obj) if obj is not None else None

    def find_by(self, table: str, field: str, value: Any) -> Optional[dict]:
        model, _, order_field = self._table(table)
        obj = (
            self.db.query(model)
            .filter(self._column(model, field) == value)
            .order_by(self._column(model, order_field))
            .first()
        )
        return self._to_row(obj) if obj is not None else None

    def filter_by(self, table: str, field: str, value: Any) -> list[dict]:
        model, _, order_field = self._table(table)
        rows = (
            self.db.query(model)
            .filter(self._column(model, field) == value)
            .order_by(self._column(model, order_field))
            .all()
        )
        return [self._to_row(r) for r in rows]

    def update_fields(self, table: str, key: Any, values: dict) -> bool:
        """Write several fields of one row in a single commit. No-op if the key is absent."""
        model, _, _ = self._table(table)
        for field in values:
            self._column(model, field)
        obj = self._get(table, key)
        if obj is None:
            logger.debug("update on %s skipped: key %r not found", table, key)
            return False
        for field, value in values.items():
            setattr(obj, field, value)
        self.db.commit()
        return True

    def update_field(self, table: str, key: Any, field: str, value: Any) -> bool:
        return self.update_fields(table, key, {field: value})

    def delete_row(self, table: str, key: Any) -> bool:
        obj = self._get(table, key)
        if obj is None:
            return False
        self.db.delete(obj)
        self.db.commit()
        return True
