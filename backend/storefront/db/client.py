"""
Generic Data-Access Client

Schema-agnostic insert / find / update / delete addressed by table name.
Records go in and come out as plain dicts keyed by column name; the services
validate them into Pydantic models.

Every call opens its own session and commits before returning, so readers
always see the last committed state of the database and nothing is cached.
"""
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from sqlalchemy import select, update as sa_update, delete as sa_delete, inspect, literal_column
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import logging

from .models import Base, UserModel, OrderModel, PaymentTransactionModel

logger = logging.getLogger(__name__)

OrderSpec = Union[str, Tuple[str, str]]

# SQLite rowid: grows with every insert, usable as an ordering tie-breaker
INSERTION_ORDER = "rowid"

# table name -> (ORM model, ID prefix)
DEFAULT_TABLES: Dict[str, Tuple[Type[Base], str]] = {
    UserModel.__tablename__: (UserModel, "usr"),
    OrderModel.__tablename__: (OrderModel, "ord"),
    PaymentTransactionModel.__tablename__: (PaymentTransactionModel, "txn"),
}


class RecordNotFoundError(LookupError):
    """Update or delete addressed a record that does not exist."""

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table}/{record_id} not found")


class StaleRecordError(RuntimeError):
    """Conditional update found the record but its expected values had changed."""

    def __init__(self, table: str, record_id: str, expected: Mapping[str, Any]):
        self.table = table
        self.record_id = record_id
        self.expected = dict(expected)
        super().__init__(f"{table}/{record_id} no longer matches {self.expected}")


class DatabaseClient:
    """
    Table-name addressed access to the ORM models.

    Args:
        session_factory: async_sessionmaker bound to the engine
        tables: Optional override of the table registry
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tables: Optional[Dict[str, Tuple[Type[Base], str]]] = None
    ):
        self._session_factory = session_factory
        self._tables = dict(tables or DEFAULT_TABLES)

    # ========================================================================
    # Helpers
    # ========================================================================

    def _model(self, table: str) -> Type[Base]:
        try:
            return self._tables[table][0]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    def _new_id(self, table: str) -> str:
        prefix = self._tables[table][1]
        return f"{prefix}_{uuid.uuid4().hex[:16]}"

    @staticmethod
    def _to_dict(row: Base) -> Dict[str, Any]:
        return {attr.key: getattr(row, attr.key) for attr in inspect(row).mapper.column_attrs}

    def _where(self, model: Type[Base], criteria: Optional[Mapping[str, Any]]) -> List[Any]:
        clauses = []
        for column, value in (criteria or {}).items():
            if not hasattr(model, column):
                raise ValueError(f"Unknown column for {model.__tablename__}: {column}")
            clauses.append(getattr(model, column) == value)
        return clauses

    def _order(self, model: Type[Base], order_by: Optional[Iterable[OrderSpec]]) -> List[Any]:
        """
        Accepts "column", "-column" or ("column", "asc" | "desc").
        INSERTION_ORDER orders by the SQLite rowid.
        """
        ordering = []
        for spec in order_by or ():
            if isinstance(spec, tuple):
                column, direction = spec
            elif spec.startswith("-"):
                column, direction = spec[1:], "desc"
            else:
                column, direction = spec, "asc"

            attr = literal_column(INSERTION_ORDER) if column == INSERTION_ORDER else getattr(model, column)
            ordering.append(attr.desc() if direction.lower() == "desc" else attr.asc())
        return ordering

    # ========================================================================
    # Operations
    # ========================================================================

    async def insert(self, table: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a record, assigning its ID. Returns the full stored record."""
        model = self._model(table)
        values = dict(data)
        values.setdefault("id", self._new_id(table))

        async with self._session_factory() as session:
            row = model(**values)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            record = self._to_dict(row)

        logger.debug(f"Inserted {table}/{record['id']}")
        return record

    async def find_by_id(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        model = self._model(table)
        async with self._session_factory() as session:
            row = await session.get(model, record_id)
            return self._to_dict(row) if row is not None else None

    async def find_one(self, table: str, criteria: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        records = await self.find_many(table, criteria, limit=1)
        return records[0] if records else None

    async def find_many(
        self,
        table: str,
        criteria: Optional[Mapping[str, Any]] = None,
        order_by: Optional[Sequence[OrderSpec]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Find records whose columns equal every value in criteria.

        Args:
            table: Table name
            criteria: Column -> value equality filters
            order_by: Ordering specs, applied in sequence
            limit: Max results
            offset: Pagination offset
        """
        model = self._model(table)
        stmt = select(model).where(*self._where(model, criteria)).order_by(*self._order(model, order_by))
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_dict(row) for row in result.scalars().all()]

    async def update(
        self,
        table: str,
        record_id: str,
        data: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Update a record by ID and return it as stored.

        Args:
            table: Table name
            record_id: Record identifier
            data: Columns to set
            expected: Column values the record must still hold for the
                update to apply (optimistic check)

        Raises:
            RecordNotFoundError: No record with that ID
            StaleRecordError: Record exists but no longer matches expected
        """
        model = self._model(table)
        stmt = (
            sa_update(model)
            .where(model.id == record_id, *self._where(model, expected))
            .values(**dict(data))
            .execution_options(synchronize_session=False)
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                exists = await session.get(model, record_id)
                if exists is None:
                    raise RecordNotFoundError(table, record_id)
                raise StaleRecordError(table, record_id, expected or {})

            await session.commit()
            row = await session.get(model, record_id, populate_existing=True)
            record = self._to_dict(row)

        logger.debug(f"Updated {table}/{record_id}: {sorted(data)}")
        return record

    async def delete(self, table: str, record_id: str) -> None:
        model = self._model(table)
        async with self._session_factory() as session:
            result = await session.execute(sa_delete(model).where(model.id == record_id))
            if result.rowcount == 0:
                await session.rollback()
                raise RecordNotFoundError(table, record_id)
            await session.commit()

        logger.debug(f"Deleted {table}/{record_id}")
