"""Document store contract and its SQLAlchemy implementation

The workflow core reads and writes plain ``dict`` documents through this
contract. Partial updates distinguish a field sent as ``None`` (written as
NULL) from a field that is absent (left untouched).
"""
import copy
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import JSON
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from clipdesk.core.exceptions import AssetNotFoundError
from clipdesk.models import Integration, Project, Video

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "videos": Video,
    "projects": Project,
    "integrations": Integration,
}

SubscriptionCallback = Callable[[List[Dict[str, Any]]], None]


class Subscription:
    """Handle returned by ``subscribe``"""

    def __init__(self, hub: "SubscriptionHub", sub_id: int, collection: str,
                 filters: Dict[str, Any], callback: SubscriptionCallback):
        self._hub = hub
        self.id = sub_id
        self.collection = collection
        self.filters = dict(filters or {})
        self.callback = callback

    @property
    def active(self) -> bool:
        return self._hub.get(self.id) is self

    def unsubscribe(self) -> None:
        self._hub.remove(self.id)


class SubscriptionHub:
    """Process-wide registry of live query subscriptions"""

    def __init__(self):
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def add(self, collection: str, filters: Dict[str, Any], callback: SubscriptionCallback) -> Subscription:
        with self._lock:
            sub = Subscription(self, next(self._ids), collection, filters, callback)
            self._subscriptions[sub.id] = sub
        return sub

    def get(self, sub_id: int) -> Optional[Subscription]:
        return self._subscriptions.get(sub_id)

    def remove(self, sub_id: int) -> None:
        with self._lock:
            self._subscriptions.pop(sub_id, None)

    def for_collection(self, collection: str) -> List[Subscription]:
        with self._lock:
            return [s for s in self._subscriptions.values() if s.collection == collection]


subscription_hub = SubscriptionHub()


class DocumentStore(ABC):
    """Persistence contract consumed by the workflow core"""

    @abstractmethod
    def create(self, collection: str, doc: Dict[str, Any]) -> str:
        pass

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        pass

    @abstractmethod
    def subscribe(self, collection: str, filters: Optional[Dict[str, Any]],
                  callback: SubscriptionCallback) -> Subscription:
        pass


def _as_utc(value):
    # SQLite drops tzinfo on the way back
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlAlchemyStore(DocumentStore):
    """DocumentStore backed by the SQLAlchemy models"""

    def __init__(self, session_factory=None, hub: Optional[SubscriptionHub] = None):
        if session_factory is None:
            from clipdesk.db.session import SessionLocal
            session_factory = SessionLocal
        self._session_factory = session_factory
        self._hub = hub or subscription_hub

    # --- helpers ---

    @staticmethod
    def _model(collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection '{collection}'")

    @staticmethod
    def _columns(model) -> Dict[str, Any]:
        return {c.name: c for c in model.__table__.columns}

    def _check_fields(self, model, collection: str, fields: Dict[str, Any]) -> None:
        columns = self._columns(model)
        for key in fields:
            if key not in columns:
                raise ValueError(f"Unknown field '{key}' for {collection}")

    def _to_dict(self, obj) -> Dict[str, Any]:
        return {
            c.name: _as_utc(copy.deepcopy(getattr(obj, c.name)))
            for c in obj.__table__.columns
        }

    def _notify(self, collection: str) -> None:
        for sub in self._hub.for_collection(collection):
            self._deliver(sub)

    def _deliver(self, sub: Subscription) -> None:
        try:
            sub.callback(self.query(sub.collection, sub.filters))
        except Exception as e:
            logger.error(f"Subscription {sub.id} callback failed for {sub.collection}: {e}", exc_info=True)

    # --- contract ---

    def create(self, collection: str, doc: Dict[str, Any]) -> str:
        model = self._model(collection)
        self._check_fields(model, collection, doc)
        db: Session = self._session_factory()
        try:
            obj = model(**copy.deepcopy(doc))
            db.add(obj)
            db.commit()
            db.refresh(obj)
            doc_id = obj.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        self._notify(collection)
        return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        model = self._model(collection)
        db: Session = self._session_factory()
        try:
            obj = db.get(model, doc_id)
            return self._to_dict(obj) if obj is not None else None
        finally:
            db.close()

    def query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Equality filters; a list value means membership"""
        model = self._model(collection)
        filters = filters or {}
        self._check_fields(model, collection, filters)
        db: Session = self._session_factory()
        try:
            q = db.query(model)
            for field, value in filters.items():
                column = getattr(model, field)
                if isinstance(value, (list, tuple, set)):
                    q = q.filter(column.in_(list(value)))
                elif value is None:
                    q = q.filter(column.is_(None))
                else:
                    q = q.filter(column == value)
            q = q.order_by(model.created_at.desc(), model.id)
            return [self._to_dict(obj) for obj in q.all()]
        finally:
            db.close()

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        model = self._model(collection)
        self._check_fields(model, collection, fields)
        columns = self._columns(model)
        db: Session = self._session_factory()
        try:
            obj = db.get(model, doc_id)
            if obj is None:
                raise AssetNotFoundError(collection, doc_id)
            for key, value in fields.items():
                setattr(obj, key, copy.deepcopy(value))
                if isinstance(columns[key].type, JSON):
                    flag_modified(obj, key)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> bool:
        model = self._model(collection)
        db: Session = self._session_factory()
        try:
            obj = db.get(model, doc_id)
            if obj is None:
                return False
            db.delete(obj)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        self._notify(collection)
        return True

    def subscribe(self, collection: str, filters: Optional[Dict[str, Any]],
                  callback: SubscriptionCallback) -> Subscription:
        model = self._model(collection)
        self._check_fields(model, collection, filters or {})
        sub = self._hub.add(collection, filters or {}, callback)
        self._deliver(sub)
        return sub


_store = None


def get_store() -> DocumentStore:
    """Get or create the process-wide store (FastAPI dependency)"""
    global _store
    if _store is None:
        _store = SqlAlchemyStore()
    return _store
