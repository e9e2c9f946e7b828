"""Store and update-log backends for session documents.

A Store is keyed by game code and holds plain dicts (``GameState.to_dict``
output). Every backend copies on the way in and out so callers can never
mutate a stored document without a ``put``.
"""

import copy
import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from color_namer import db
from color_namer.models import GameRecord, GameUpdate
from .errors import TransientStoreError

DEFAULT_UPDATE_LOG_SIZE = 50


class MemoryStore:
    def __init__(self):
        self._docs: Dict[str, dict] = {}
        self._guard = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        with self._guard:
            doc = self._docs.get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def put(self, key: str, doc: dict) -> None:
        with self._guard:
            self._docs[key] = copy.deepcopy(doc)

    def delete(self, key: str) -> None:
        with self._guard:
            self._docs.pop(key, None)

    def keys(self) -> List[str]:
        with self._guard:
            return list(self._docs)


class SqlStore:
    """Documents as JSON text in the ``game`` table. Needs an app context."""

    def _record(self, key: str) -> Optional[GameRecord]:
        return GameRecord.query.filter_by(game_code=key).first()

    def get(self, key: str) -> Optional[dict]:
        try:
            record = self._record(key)
            return record.load() if record else None
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStoreError(f'Could not read game {key}') from exc

    def put(self, key: str, doc: dict) -> None:
        try:
            record = self._record(key)
            if record is None:
                record = GameRecord(game_code=key)
            record.store(doc)
            db.session.add(record)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStoreError(f'Could not save game {key}') from exc

    def delete(self, key: str) -> None:
        try:
            record = self._record(key)
            if record is not None:
                GameUpdate.query.filter_by(game_id=record.id).delete(synchronize_session=False)
                db.session.delete(record)
                db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStoreError(f'Could not delete game {key}') from exc

    def keys(self) -> List[str]:
        try:
            return [code for (code,) in db.session.query(GameRecord.game_code).all()]
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStoreError('Could not list games') from exc


class MemoryUpdateLog:
    def __init__(self, size: int = DEFAULT_UPDATE_LOG_SIZE):
        self.size = size
        self._entries: Dict[str, Deque[dict]] = {}
        self._guard = threading.Lock()

    def append(self, key: str, entry: dict) -> None:
        with self._guard:
            self._entries.setdefault(key, deque(maxlen=self.size)).append(dict(entry))

    def since(self, key: str, timestamp: float = 0.0) -> List[dict]:
        with self._guard:
            return [dict(e) for e in self._entries.get(key, ()) if e['timestamp'] > timestamp]

    def drop(self, key: str) -> None:
        with self._guard:
            self._entries.pop(key, None)


class SqlUpdateLog:
    def __init__(self, size: int = DEFAULT_UPDATE_LOG_SIZE):
        self.size = size

    def append(self, key: str, entry: dict) -> None:
        try:
            record = GameRecord.query.filter_by(game_code=key).first()
            if record is None:
                return
            db.session.add(GameUpdate(
                game_id=record.id,
                timestamp=entry['timestamp'],
                type=entry['type'],
                player_id=entry.get('player_id'),
            ))
            db.session.flush()
            stale = (
                GameUpdate.query.filter_by(game_id=record.id)
                .order_by(GameUpdate.id.desc())
                .offset(self.size)
                .all()
            )
            for row in stale:
                db.session.delete(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStoreError(f'Could not log update for game {key}') from exc

    def since(self, key: str, timestamp: float = 0.0) -> List[dict]:
        try:
            record = GameRecord.query.filter_by(game_code=key).first()
            if record is None:
                return []
            rows: Iterable[GameUpdate] = (
                GameUpdate.query.filter(GameUpdate.game_id == record.id, GameUpdate.timestamp > timestamp)
                .order_by(GameUpdate.id)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStoreError(f'Could not read updates for game {key}') from exc
        return [row.to_dict() for row in rows]

    def drop(self, key: str) -> None:
        # Rows are removed together with the game record in SqlStore.delete
        pass


def build_store(kind: str, update_log_size: int = DEFAULT_UPDATE_LOG_SIZE):
    """Return a ``(store, update_log)`` pair for the configured backend."""
    if kind == 'memory':
        return MemoryStore(), MemoryUpdateLog(update_log_size)
    if kind == 'sql':
        return SqlStore(), SqlUpdateLog(update_log_size)
    raise ValueError(f'Unknown GAME_STORE backend: {kind}')
