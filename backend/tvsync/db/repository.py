"""
Generic repository over a SQLAlchemy model.

Writes go through ``UpdateHandle``: a scoped acquisition that holds a named
lock for the logical key of the row, loads or creates the entity in its own
session, lets the caller mutate it and commits under the lock. The lock and
the session are released on every exit path, including exceptions raised
before ``commit()``.

@example
    with repo.begin_add_or_update_by(series_id=81797) as upd:
        upd.entity.series_name = "One Piece"
        series = upd.commit()
"""
import logging
import threading
from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Dict, Generic, Hashable, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyedLock:
    """Registry of per-key locks. At most one holder per key at a time."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._holders: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[key] -= 1
                if not self._holders[key]:
                    del self._holders[key]
                    del self._locks[key]


class UpdateHandle(Generic[T]):
    """
    Mutable view of one row while its key lock is held.

    ``original`` is None when the row did not exist and ``entity`` is a new,
    not yet persisted instance.
    """

    def __init__(self, session: Session, model: Type[T], original: Optional[T]):
        self.session = session
        self.original = original
        self.entity: T = original if original is not None else model()
        self.committed = False

    def commit(self) -> T:
        if self.original is None:
            self.session.add(self.entity)
        self.session.commit()
        self.session.refresh(self.entity)
        self.committed = True
        return self.entity


class Repository(Generic[T]):
    def __init__(self, session_factory: sessionmaker, model: Type[T], locks: Optional[KeyedLock] = None):
        self.session_factory = session_factory
        self.model = model
        self.locks = locks or KeyedLock()

    # --- Reads ---

    def get_by(self, **filters) -> Optional[T]:
        with self.session_factory() as db:
            return db.query(self.model).filter_by(**filters).first()

    def list_by(self, **filters) -> List[T]:
        with self.session_factory() as db:
            return db.query(self.model).filter_by(**filters).all()

    def get_all(self) -> List[T]:
        with self.session_factory() as db:
            return db.query(self.model).all()

    def count_by(self, **filters) -> int:
        with self.session_factory() as db:
            return db.query(self.model).filter_by(**filters).count()

    # --- Writes ---

    def _row_key(self, pk: int) -> Hashable:
        return self.model.__tablename__, ("pk", pk)

    @contextmanager
    def begin_add_or_update_with_lock(self, key: Hashable, locator: Callable[[Session], Optional[T]]) -> Iterator[UpdateHandle[T]]:
        """
        Hold the lock for ``key``, then load the row with ``locator`` (or start
        a new one) inside a fresh session.

        An existing row is also held under its primary key lock, the one
        ``begin_update`` and ``delete`` take, so every writer of a row is
        serialized whatever key it came in by.
        """
        lock_key = (self.model.__tablename__, key)
        with ExitStack() as held:
            held.enter_context(self.locks.hold(lock_key))
            db = self.session_factory()
            try:
                original = locator(db)
                if original is not None and self._row_key(original.id) != lock_key:
                    held.enter_context(self.locks.hold(self._row_key(original.id)))
                    # Reload what the previous holder may have written
                    db.expire_all()
                    original = locator(db)
                handle = UpdateHandle(db, self.model, original)
                yield handle
                if not handle.committed:
                    db.rollback()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def begin_add_or_update_by(self, **natural_key) -> Any:
        """Shortcut keyed and located by equality on ``natural_key``."""
        key = tuple(sorted(natural_key.items()))
        return self.begin_add_or_update_with_lock(
            key, lambda db: db.query(self.model).filter_by(**natural_key).first()
        )

    def begin_update(self, existing: Optional[T]) -> Any:
        """Update a row previously read from this repository, or add one when None."""
        if existing is None:
            return self.begin_add_or_update_with_lock(("new", id(self)), lambda db: None)
        pk = existing.id
        return self.begin_add_or_update_with_lock(("pk", pk), lambda db: db.get(self.model, pk))

    def delete(self, entity_id: int) -> bool:
        with self.locks.hold(self._row_key(entity_id)):
            with self.session_factory() as db:
                item = db.get(self.model, entity_id)
                if not item:
                    return False
                db.delete(item)
                db.commit()
                return True

    def delete_by(self, **filters) -> int:
        with self.session_factory() as db:
            deleted = db.query(self.model).filter_by(**filters).delete(synchronize_session=False)
            db.commit()
            return deleted
