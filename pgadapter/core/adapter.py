"""
QUERY FACADE - PostgreSQL adapter

One PostgresAdapter owns the active relational model and the page cache.
Build it once, share it between requests, and rebuild the schema
(get_schema) only when no other request is using the adapter.

Data Flow:
    page(table, args) -> cache? -> select * -> filters -> where -> pagination -> engine
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import column, func, insert, literal_column, select, table, text, update
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql.expression import Executable, TableClause

from pgadapter.core import predicates, types
from pgadapter.core.cache import ResultCache, generate_cache_key
from pgadapter.core.exceptions import AdapterError, UnknownTableError
from pgadapter.core.introspect import SchemaIntrospector, get_exclude_condition
from pgadapter.core.schemas import Schema, Table

logger = logging.getLogger(__name__)


class PostgresAdapter:
    def __init__(
        self,
        engine: AsyncEngine,
        schema: Optional[Schema] = None,
        cache: Optional[ResultCache] = None,
        schemaname: Optional[str] = None,
    ):
        self.engine = engine
        self.schemaname = schemaname or (schema.namespace if schema else "public")
        self.schema = schema or Schema(namespace=self.schemaname)
        self.cache = cache if cache is not None else ResultCache()
        self.introspector = SchemaIntrospector(self.run_raw_query)

    # =========================
    # TYPES
    # =========================
    @staticmethod
    def get_available_types() -> List[str]:
        return types.get_available_types()

    def map_db_column_to_graphql_type(self, columnname: str, attrs: Any) -> str:
        return types.map_db_column_to_graphql_type(columnname, attrs).value

    # =========================
    # READS
    # =========================
    async def page(self, tablename: str, args: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Get a page of the table.

        Served from the cache unless args["_cache"] is False; a fresh
        result always refreshes the cache entry.
        """
        args = args or {}
        key = self.get_cache_key(tablename, "page", [], args)
        if args.get("_cache") is not False and self.cache.peek(key):
            items = self.cache.get(key)
            # Expired between peek and get: treat as a miss
            if items is not None:
                if args.get("_debug"):
                    logger.info("cache hit: %s", key)
                return [dict(row) for row in items]

        stmt = select(literal_column("*")).select_from(self._table(tablename))
        stmt = predicates.apply_args(tablename, stmt, args, self.schema.tables.get(tablename))
        if args.get("_debug"):
            self._log_statement("db hit:", stmt)

        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            items = [dict(row) for row in result.mappings()]

        self.cache.set(key, items)
        return [dict(row) for row in items]

    async def page_total(self, tablename: str, args: Optional[Mapping[str, Any]] = None) -> int:
        args = args or {}
        stmt = select(func.count()).select_from(self._table(tablename))
        stmt = predicates.apply_filters(tablename, stmt, args, self.schema.tables.get(tablename))
        if args.get("_debug"):
            self._log_statement("db hit:", stmt)

        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return int(result.scalar_one())

    async def first_of(
        self, tablename: str, args: Optional[Mapping[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        args = args or {}
        stmt = select(literal_column("*")).select_from(self._table(tablename))
        stmt = predicates.apply_filters(tablename, stmt, args, self.schema.tables.get(tablename))
        stmt = stmt.limit(1)
        if args.get("_debug"):
            self._log_statement("db hit:", stmt)

        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
        return dict(row) if row is not None else None

    # =========================
    # WRITES
    # =========================
    async def upsert(self, tablename: str, data: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """
        Insert or update one record keyed by the table's primary key.

        data = {"input": {...}, "_debug": bool}

        The existence check and the write run separately, so two concurrent
        upserts of the same new key can both insert. Rely on a unique
        constraint if that matters.

        Returns:
            [{<pk>: value}] of the inserted or updated row.
        """
        pk = self.get_primary_key_from_schema(tablename)
        if pk is None:
            raise AdapterError(f"Table {tablename} has no primary key")

        values = dict(data["input"])
        pk_value = values.get(pk)

        # Check exists
        count = 0
        if pk_value:
            exists_stmt = (
                select(func.count())
                .select_from(self._table(tablename, [pk]))
                .where(column(pk) == pk_value)
            )
            async with self.engine.connect() as conn:
                count = (await conn.execute(exists_stmt)).scalar_one()

        # Insert or update
        if not count:
            # Absent or zero-valued key: let the database generate one
            if not pk_value:
                values.pop(pk, None)
            tbl = self._table(tablename, [*values, pk])
            stmt = insert(tbl).values(**values).returning(tbl.c[pk])
            label = "db insert:"
        else:
            tbl = self._table(tablename, [*values, pk])
            stmt = (
                update(tbl)
                .where(tbl.c[pk] == pk_value)
                .values(**values)
                .returning(tbl.c[pk])
            )
            label = "db update:"

        if data.get("_debug"):
            self._log_statement(label, stmt)

        async with self.engine.begin() as conn:
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings()]

    # =========================
    # RAW SQL
    # =========================
    async def run_raw_query(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Run a raw SQL string with :named bound parameters."""
        async with self.engine.begin() as conn:
            result = await conn.execute(text(sql), dict(params or {}))
            rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
        return {"rows": rows}

    # =========================
    # SCHEMA
    # =========================
    async def get_schema(
        self, schemaname: str = "public", exclude: Optional[Sequence[str]] = None
    ) -> Schema:
        """
        Build the relational model and make it the active one.

        Not safe to call while other requests use this adapter.
        """
        # A failed build leaves the active model and namespace untouched
        schema = await self.introspector.build_schema(schemaname, exclude)
        self.schema, self.schemaname = schema, schemaname
        return schema

    def get_tables_from_schema(self) -> List[str]:
        return list(self.schema.tables)

    def get_table_columns_from_schema(self, tablename: str) -> List[str]:
        return list(self._schema_table(tablename).columns)

    def get_primary_key_from_schema(self, tablename: str) -> Optional[str]:
        return self._schema_table(tablename).primary_key

    # =========================
    # HELPERS
    # =========================
    def get_cache_key(
        self,
        tablename: str,
        operation: str,
        ids: Iterable[Any],
        args: Optional[Mapping[str, Any]],
    ) -> str:
        return generate_cache_key(self._fullname(tablename), operation, ids, args)

    @staticmethod
    def get_exclude_condition(exclude: Optional[Sequence[str]]) -> str:
        return get_exclude_condition(exclude)

    def _fullname(self, tablename: str) -> str:
        return ".".join([self.schemaname, tablename])

    def _table(self, tablename: str, columns: Iterable[str] = ()) -> TableClause:
        return table(tablename, *[column(c) for c in dict.fromkeys(columns)], schema=self.schemaname)

    def _schema_table(self, tablename: str) -> Table:
        if tablename not in self.schema:
            raise UnknownTableError(tablename)
        return self.schema[tablename]

    def _log_statement(self, label: str, stmt: Executable) -> None:
        compiled = stmt.compile(dialect=self.engine.dialect)
        logger.info("%s %s %s", label, compiled, compiled.params)
