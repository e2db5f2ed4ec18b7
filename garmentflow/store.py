"""Factory-scoped persistence.

``FactoryStore`` is the only object services use to reach the database.  One
instance is built per request (or per script run) for one factory and passed
into each service, so no service holds module-level state.
"""

from contextlib import contextmanager

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import DependencyError, DuplicateRecord


def ci_equals(column, value: str):
    """Portable case-insensitive equality for Postgres/SQLite."""
    return func.lower(column) == (value or "").lower()


def ci_like(column, term: str):
    """Portable case-insensitive LIKE for Postgres/SQLite. Pass a pattern like '%foo%'."""
    return func.lower(column).like(term.lower())


class FactoryStore:
    def __init__(self, session, factory_id: str):
        if not factory_id:
            raise ValueError("Factory ID cannot be empty.")
        self.session = session
        self.factory_id = factory_id

    def __repr__(self):
        return f"<FactoryStore {self.factory_id}>"

    # -- queries -------------------------------------------------------------

    def query(self, model, *conditions):
        """A ``select`` over ``model`` already filtered to this factory."""
        return select(model).where(model.factory_id == self.factory_id, *conditions)

    def scalars(self, stmt) -> list:
        try:
            return list(self.session.execute(stmt).scalars())
        except SQLAlchemyError as e:
            self._fail("query", e)

    def first(self, stmt):
        try:
            return self.session.execute(stmt.limit(1)).scalars().first()
        except SQLAlchemyError as e:
            self._fail("query", e)

    def scalar(self, stmt):
        try:
            return self.session.execute(stmt).scalar_one()
        except SQLAlchemyError as e:
            self._fail("query", e)

    def rows(self, stmt) -> list:
        try:
            return self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            self._fail("query", e)

    def list_all(self, model, *conditions, order_by=None) -> list:
        stmt = self.query(model, *conditions)
        if order_by is not None:
            stmt = stmt.order_by(*order_by) if isinstance(order_by, (list, tuple)) else stmt.order_by(order_by)
        return self.scalars(stmt)

    def get(self, model, key, key_column=None):
        column = key_column if key_column is not None else model.id
        return self.first(self.query(model, column == key))

    def count(self, model, *conditions) -> int:
        stmt = (
            select(func.count())
            .select_from(model)
            .where(model.factory_id == self.factory_id, *conditions)
        )
        return int(self.scalar(stmt) or 0)

    def next_sequential_id(self, model, prefix: str, width: int = 3) -> str:
        """Next ``PREFIX-###`` id for ``model`` inside this factory."""
        existing = self.scalars(
            select(model.id).where(model.factory_id == self.factory_id, model.id.like(f"{prefix}-%"))
        )
        numbers = [int(i.rsplit("-", 1)[1]) for i in existing if i.rsplit("-", 1)[1].isdigit()]
        return f"{prefix}-{(max(numbers) + 1 if numbers else 1):0{width}d}"

    # -- writes --------------------------------------------------------------

    def insert(self, obj):
        obj.factory_id = self.factory_id
        self.session.add(obj)
        return obj

    def update(self, obj, **values):
        for key, value in values.items():
            setattr(obj, key, value)
        self.session.add(obj)
        return obj

    def delete(self, obj):
        self.session.delete(obj)

    def commit(self):
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            current_app.logger.warning("integrity error in %s: %s", self, e.orig)
            raise DuplicateRecord("A record with the same key already exists.")
        except SQLAlchemyError as e:
            self._fail("commit", e)

    def rollback(self):
        self.session.rollback()

    @contextmanager
    def transaction(self):
        """Commit everything done in the block, or nothing at all."""
        try:
            yield self
        except Exception:
            self.session.rollback()
            raise
        self.commit()

    def _fail(self, operation: str, e: Exception):
        self.session.rollback()
        current_app.logger.error("store %s failed for factory %s: %s", operation, self.factory_id, e)
        raise DependencyError("The database is unavailable, please retry.") from e
