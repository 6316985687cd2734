"""Relational store for the property-sale table."""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Generator, Iterable, Optional, Union

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    bindparam,
    create_engine,
    delete,
    event,
    func,
    insert,
    inspect,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.types import TypeEngine

from housing_cleanup.config import get_settings
from housing_cleanup.errors import ColumnNotFoundError
from housing_cleanup.transform.normalize import ID_FIELD, record_schema

logger = logging.getLogger(__name__)

COLUMN_TYPES = {
    "string": String,
    "date": Date,
    "datetime": DateTime,
    "integer": Integer,
    "float": Float,
    "boolean": Boolean,
}

# Keeps IN (...) lists under SQLite's bound-parameter limit
DELETE_CHUNK_SIZE = 500


def get_engine(database_url: str) -> Engine:
    """Create an engine; SQLite engines get transactional DDL.

    pysqlite only opens a transaction before DML, so ALTER TABLE would
    otherwise autocommit outside the stage transaction.
    """
    engine = create_engine(database_url)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def resolve_type(type_: Union[str, TypeEngine, type]) -> TypeEngine:
    """Turn a semantic type name (``"date"``, ``"string"``, ...) into a SQLAlchemy type."""
    if isinstance(type_, str):
        try:
            type_ = COLUMN_TYPES[type_.lower()]
        except KeyError:
            raise ValueError(f"Unknown column type: {type_}")
    if isinstance(type_, type):
        type_ = type_()
    return type_


def infer_type(values: Iterable[Any]) -> TypeEngine:
    """Pick a column type from the first non-null value."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, bool):
            return Boolean()
        if isinstance(value, int):
            return Integer()
        if isinstance(value, float):
            return Float()
        if isinstance(value, datetime):
            return DateTime()
        if isinstance(value, date):
            return Date()
        return String()
    return String()


class TableTransaction:
    """Schema and row operations on the sales table inside one transaction."""

    def __init__(self, connection: Connection, table_name: str, id_field: str = ID_FIELD):
        self.connection = connection
        self.table_name = table_name
        self.id_field = id_field

    def _table(self) -> Table:
        # Reflected on every call; stages change the schema mid-run
        return Table(self.table_name, MetaData(), autoload_with=self.connection)

    def _quote(self, name: str) -> str:
        return self.connection.dialect.identifier_preparer.quote(name)

    def columns(self) -> list[str]:
        """Column names in schema order."""
        return [c["name"] for c in inspect(self.connection).get_columns(self.table_name)]

    def has_column(self, name: str) -> bool:
        return name in self.columns()

    def count(self) -> int:
        table = self._table()
        return self.connection.execute(select(func.count()).select_from(table)).scalar_one()

    def read_records(self) -> list[dict]:
        """Full scan of the table as a list of dicts."""
        table = self._table()
        return [dict(row._mapping) for row in self.connection.execute(select(table))]

    def add_column(self, name: str, type_: Union[str, TypeEngine, type] = "string") -> bool:
        """Add a column unless it already exists.

        Returns:
            True if the column was added
        """
        if self.has_column(name):
            return False

        type_sql = resolve_type(type_).compile(dialect=self.connection.dialect)
        self.connection.exec_driver_sql(
            f"ALTER TABLE {self._quote(self.table_name)} ADD COLUMN {self._quote(name)} {type_sql}"
        )
        logger.info(
            f"Added column {name} ({type_sql})",
            extra={"table": self.table_name, "column": name},
        )
        return True

    def drop_column(self, name: str, missing_ok: bool = True) -> bool:
        """Drop a column.

        Returns:
            True if the column was dropped, False if it was already absent

        Raises:
            ColumnNotFoundError: If the column is absent and ``missing_ok``
                is False
        """
        if not self.has_column(name):
            if not missing_ok:
                raise ColumnNotFoundError(name, self.table_name)
            return False

        self.connection.exec_driver_sql(
            f"ALTER TABLE {self._quote(self.table_name)} DROP COLUMN {self._quote(name)}"
        )
        logger.info(
            f"Dropped column {name}",
            extra={"table": self.table_name, "column": name},
        )
        return True

    def update_column(self, name: str, values_by_id: dict[Any, Any]) -> int:
        """Set ``name`` per row, keyed by unique id.

        Returns:
            Number of rows written
        """
        table = self._table()
        if name not in table.c:
            raise ColumnNotFoundError(name, self.table_name)
        if not values_by_id:
            return 0

        stmt = (
            update(table)
            .where(table.c[self.id_field] == bindparam("_row_id"))
            .values({name: bindparam("_row_value")})
        )
        self.connection.execute(
            stmt,
            [{"_row_id": row_id, "_row_value": value} for row_id, value in values_by_id.items()],
        )
        return len(values_by_id)

    def delete_rows(self, unique_ids: Iterable[Any]) -> int:
        """Delete rows by unique id.

        Returns:
            Number of rows deleted
        """
        table = self._table()
        ids = list(unique_ids)
        deleted = 0

        for start in range(0, len(ids), DELETE_CHUNK_SIZE):
            chunk = ids[start:start + DELETE_CHUNK_SIZE]
            result = self.connection.execute(
                delete(table).where(table.c[self.id_field].in_(chunk))
            )
            deleted += result.rowcount

        if deleted:
            logger.info(
                f"Deleted {deleted} rows",
                extra={"table": self.table_name, "deleted_count": deleted},
            )
        return deleted


class SaleTable:
    """Property-sale table held in a relational database.

    Every stage works through ``transaction()`` so that a failure rolls the
    table back to where the stage started.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        table_name: Optional[str] = None,
        engine: Optional[Engine] = None,
        id_field: str = ID_FIELD,
    ):
        """Initialize the table store.

        Args:
            database_url: SQLAlchemy URL (or from env: DATABASE_URL)
            table_name: Table name (or from env: SALES_TABLE)
            engine: Existing engine, takes precedence over ``database_url``
            id_field: Unique row identifier column
        """
        if engine is None or table_name is None:
            settings = get_settings()
            database_url = database_url or settings.database_url
            table_name = table_name or settings.sales_table

        self.table_name = table_name
        self.id_field = id_field
        self.engine = engine or get_engine(database_url)

    @contextmanager
    def transaction(self) -> Generator[TableTransaction, None, None]:
        """Open a transaction; commits on success, rolls back on error."""
        with self.engine.begin() as conn:
            yield TableTransaction(conn, self.table_name, self.id_field)

    def exists(self) -> bool:
        return inspect(self.engine).has_table(self.table_name)

    def create(self, records: list[dict], replace: bool = False) -> int:
        """Create the table from records and insert them.

        Column types are inferred from the values; the unique id column is
        the primary key.

        Returns:
            Number of rows inserted
        """
        column_names = record_schema(records)
        if self.id_field not in column_names:
            raise ColumnNotFoundError(self.id_field, self.table_name)

        columns = [
            Column(
                name,
                infer_type(r.get(name) for r in records),
                primary_key=(name == self.id_field),
            )
            for name in column_names
        ]
        table = Table(self.table_name, MetaData(), *columns)

        with self.engine.begin() as conn:
            if replace:
                table.drop(conn, checkfirst=True)
            table.create(conn)
            if records:
                conn.execute(
                    insert(table),
                    [{name: r.get(name) for name in column_names} for r in records],
                )

        logger.info(
            f"Created table {self.table_name} with {len(records)} rows",
            extra={
                "table": self.table_name,
                "row_count": len(records),
                "column_count": len(column_names),
            },
        )
        return len(records)

    def columns(self) -> list[str]:
        with self.transaction() as tx:
            return tx.columns()

    def has_column(self, name: str) -> bool:
        with self.transaction() as tx:
            return tx.has_column(name)

    def read_records(self) -> list[dict]:
        with self.transaction() as tx:
            return tx.read_records()

    def count(self) -> int:
        with self.transaction() as tx:
            return tx.count()
