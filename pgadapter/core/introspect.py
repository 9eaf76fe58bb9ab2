"""
SCHEMA INTROSPECTOR - Read information_schema into a relational model

Data Flow:
    discover_tables() -> discover_primary_key() + discover_columns()   (pass 1)
                      -> discover_foreign_keys() -> reverse relations   (pass 2)

Pass 2 only starts once every table exists in the model: a foreign key can
point at a table that comes later in the listing, and its reverse relation
is stored on that referenced table.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from pgadapter.core.exceptions import ReferentialIntegrityError
from pgadapter.core.schemas import (
    Column,
    ForeignKey,
    ForeignKeyTarget,
    ReverseRelation,
    Schema,
    Table,
)

logger = logging.getLogger(__name__)

# run_query(sql, params) -> {"rows": [{...}, ...]}
QueryRunner = Callable[[str, Dict[str, Any]], Awaitable[Dict[str, List[Dict[str, Any]]]]]


TABLES_SQL = """
    SELECT table_name AS name
    FROM information_schema.tables
    WHERE table_schema = :schemaname
    {exclude}
"""

COLUMNS_SQL = """
    SELECT column_name AS name, is_nullable, data_type
    FROM information_schema.columns
    WHERE table_schema = :schemaname AND table_name = :tablename
"""

FOREIGN_KEYS_SQL = """
    SELECT
        tc.table_schema AS schemaname,
        tc.constraint_name,
        tc.table_name AS tablename,
        kcu.column_name AS columnname,
        ccu.table_schema AS ftableschema,
        ccu.table_name AS ftablename,
        ccu.column_name AS fcolumnname
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage AS ccu
        ON ccu.constraint_name = tc.constraint_name
        AND ccu.table_schema = tc.table_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
        AND tc.table_schema = :schemaname
        AND tc.table_name = :tablename
"""

PRIMARY_KEY_SQL = """
    SELECT kcu.column_name AS columnname
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    WHERE tc.constraint_type = 'PRIMARY KEY'
        AND tc.table_schema = :schemaname
        AND tc.table_name = :tablename
"""


def get_exclude_condition(exclude: Optional[Sequence[str]]) -> str:
    """
    SQL fragment excluding table names when listing tables.

    Example:
        get_exclude_condition([])          -> ""
        get_exclude_condition(["a", "b"])  -> "AND table_name NOT IN (:exclude_0, :exclude_1)"
    """
    if not exclude:
        return ""
    placeholders = ", ".join(f":exclude_{i}" for i in range(len(exclude)))
    return f"AND table_name NOT IN ({placeholders})"


def get_exclude_params(exclude: Optional[Sequence[str]]) -> Dict[str, str]:
    return {f"exclude_{i}": name for i, name in enumerate(exclude or [])}


class SchemaIntrospector:
    """Builds a Schema through a raw query runner (see PostgresAdapter.run_raw_query)."""

    def __init__(self, run_query: QueryRunner):
        self.run_query = run_query

    async def discover_tables(
        self, schemaname: str, exclude: Optional[Sequence[str]] = None
    ) -> List[str]:
        sql = TABLES_SQL.format(exclude=get_exclude_condition(exclude))
        params = {"schemaname": schemaname, **get_exclude_params(exclude)}
        res = await self.run_query(sql, params)
        return [row["name"] for row in res["rows"]]

    async def discover_columns(self, schemaname: str, tablename: str) -> List[Column]:
        res = await self.run_query(
            COLUMNS_SQL, {"schemaname": schemaname, "tablename": tablename}
        )
        return [
            Column(
                name=row["name"],
                is_nullable=row["is_nullable"],
                data_type=row["data_type"],
            )
            for row in res["rows"]
        ]

    async def discover_primary_key(self, schemaname: str, tablename: str) -> Optional[str]:
        res = await self.run_query(
            PRIMARY_KEY_SQL, {"schemaname": schemaname, "tablename": tablename}
        )
        rows = res["rows"]
        return rows[0]["columnname"] if rows else None

    async def discover_foreign_keys(self, schemaname: str, tablename: str) -> List[ForeignKey]:
        res = await self.run_query(
            FOREIGN_KEYS_SQL, {"schemaname": schemaname, "tablename": tablename}
        )
        return [ForeignKey(**row) for row in res["rows"]]

    async def build_schema(
        self, schemaname: str = "public", exclude: Optional[Sequence[str]] = None
    ) -> Schema:
        """
        Build the relational model of one schema namespace.

        Raises:
            ReferentialIntegrityError: a foreign key targets a table that is
                not in the model (e.g. it was excluded).
        """
        tables: Dict[str, Table] = {}

        # Pass 1: every table with its primary key and columns
        for tablename in await self.discover_tables(schemaname, exclude):
            primary_key = await self.discover_primary_key(schemaname, tablename)
            columns = await self.discover_columns(schemaname, tablename)
            tables[tablename] = Table(
                name=tablename,
                primary_key=primary_key,
                columns={c.name: c for c in columns},
                reverse_relations=[],
            )

        # Pass 2: foreign keys and their reverse edges
        for tablename, table in tables.items():
            for fkey in await self.discover_foreign_keys(schemaname, tablename):
                link_foreign_key(tables, table, fkey)

        logger.info(
            "Built schema %s: %d tables, %d foreign keys",
            schemaname,
            len(tables),
            sum(len(t.reverse_relations) for t in tables.values()),
        )
        return Schema(namespace=schemaname, tables=tables)


def link_foreign_key(tables: Dict[str, Table], table: Table, fkey: ForeignKey) -> None:
    referenced = tables.get(fkey.ftablename)
    if referenced is None:
        raise ReferentialIntegrityError(
            f"Foreign key {fkey.constraint_name or ''} on "
            f"{fkey.tablename}.{fkey.columnname} references table "
            f"{fkey.ftableschema}.{fkey.ftablename} which is not in the schema"
        )
    column = table.columns.get(fkey.columnname)
    if column is None:
        raise ReferentialIntegrityError(
            f"Foreign key column {fkey.tablename}.{fkey.columnname} is not in the schema"
        )

    column.foreign = ForeignKeyTarget(
        schemaname=fkey.ftableschema,
        tablename=fkey.ftablename,
        columnname=fkey.fcolumnname,
    )
    referenced.reverse_relations.append(
        ReverseRelation(
            foreign_schema=fkey.schemaname,
            foreign_table=fkey.tablename,
            foreign_column=fkey.columnname,
            local_column=fkey.fcolumnname,
        )
    )
