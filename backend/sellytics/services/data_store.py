# Overview: Table-scoped CRUD boundary between the sales core and the database.

"""
Sellytics DataStore contract (authoritative)

- Tables are addressed by name (the model's __tablename__).
- Filters are equality predicates; a list/tuple/set value means IN.
- Every write call commits on its own. No call is transactional with any
  other call, so multi-step operations must compensate on failure.
- Reads do not commit. A select(..., for_update=True) keeps its row lock
  until the next write call commits.
- Any SQLAlchemy failure is rolled back and surfaced as PersistenceError.
- adjust() is the only way counters change: a single conditional UPDATE
  whose floors turn "would go negative" into zero affected rows.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..errors import PersistenceError
from .concurrency import lock_for_update


class DataStore:
    def __init__(self, db):
        self.db = db
        self._tables: dict[str, Any] = {}

    @property
    def session(self):
        return self.db.session

    def model_for(self, table: str):
        if table not in self._tables:
            self._tables = {
                mapper.class_.__tablename__: mapper.class_
                for mapper in self.db.Model.registry.mappers
            }
        try:
            return self._tables[table]
        except KeyError:
            raise ValueError(f"unknown table {table!r}") from None

    def _filtered(self, model, filters: dict | None):
        query = self.session.query(model)
        for key, value in (filters or {}).items():
            column = getattr(model, key)
            if isinstance(value, (list, tuple, set, frozenset)):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)
        return query

    def _fail(self, table: str, operation: str, exc: SQLAlchemyError) -> PersistenceError:
        self.session.rollback()
        return PersistenceError(
            f"{operation} on {table} failed",
            details={"table": table, "operation": operation, "cause": str(exc)},
            transient=isinstance(exc, OperationalError),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        filters: dict | None = None,
        *,
        order_by: Iterable[str] | None = None,
        limit: int | None = None,
        for_update: bool = False,
    ) -> list:
        """Return model rows matching `filters`. "-col" in order_by sorts descending."""
        model = self.model_for(table)
        query = self._filtered(model, filters)
        for key in order_by or ():
            if key.startswith("-"):
                query = query.order_by(getattr(model, key[1:]).desc())
            else:
                query = query.order_by(getattr(model, key).asc())
        if limit is not None:
            query = query.limit(limit)
        if for_update:
            query = lock_for_update(query)
        try:
            return query.all()
        except SQLAlchemyError as exc:
            raise self._fail(table, "select", exc) from exc

    def get(self, table: str, row_id: int, *, for_update: bool = False):
        rows = self.select(table, {"id": row_id}, for_update=for_update)
        return rows[0] if rows else None

    def release(self) -> None:
        """End the current read without writing, dropping any row locks."""
        self.session.rollback()

    # ------------------------------------------------------------------
    # Writes (each commits independently)
    # ------------------------------------------------------------------

    def insert(self, table: str, rows: list[dict]) -> list:
        model = self.model_for(table)
        objs = [model(**row) for row in rows]
        try:
            self.session.add_all(objs)
            self.session.flush()
            ids = [obj.id for obj in objs]
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, "insert", exc) from exc
        # Reload so callers see server defaults (created_at etc.)
        return [self.session.get(model, row_id) for row_id in ids]

    def update(self, table: str, patch: dict, filters: dict) -> int:
        model = self.model_for(table)
        try:
            affected = self._filtered(model, filters).update(patch, synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, "update", exc) from exc
        return affected

    def delete(self, table: str, filters: dict) -> int:
        model = self.model_for(table)
        try:
            affected = self._filtered(model, filters).delete(synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, "delete", exc) from exc
        return affected

    def adjust(
        self,
        table: str,
        deltas: dict[str, int],
        filters: dict,
        *,
        floors: dict[str, int] | None = None,
        patch: dict | None = None,
    ) -> int:
        """
        Atomically add `deltas` to integer columns of the matching rows.

        For every column named in `floors`, the row only matches when the
        column would stay >= the floor after the delta, i.e.

            UPDATE t SET c = c + :d WHERE ... AND c + :d >= :floor

        Returns the number of affected rows; 0 means no row matched or a
        floor would have been crossed.
        """
        model = self.model_for(table)
        query = self._filtered(model, filters)
        values = {}
        for key, delta in deltas.items():
            column = getattr(model, key)
            values[column] = column + delta
            if floors and key in floors:
                query = query.filter(column + delta >= floors[key])
        for key, value in (patch or {}).items():
            values[getattr(model, key)] = value
        try:
            affected = query.update(values, synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, "adjust", exc) from exc
        return affected
