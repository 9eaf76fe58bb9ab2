import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pgadapter.main import app
from pgadapter.core.adapter import PostgresAdapter
from pgadapter.core.database import get_adapter
from pgadapter.core.schemas import Column, Schema, Table


# =========================
# Fake information_schema
# =========================
CATALOG = {
    # Listed before the tables they reference on purpose
    "comments": {
        "pk": "id",
        "columns": [
            ("id", "integer", "NO"),
            ("post_id", "integer", "NO"),
            ("user_id", "bigint", "YES"),
            ("body", "text", "YES"),
        ],
        "fkeys": [("post_id", "posts", "id"), ("user_id", "users", "id")],
    },
    "posts": {
        "pk": "id",
        "columns": [
            ("id", "integer", "NO"),
            ("author_id", "integer", "NO"),
            ("editor_id", "integer", "YES"),
            ("title", "character varying", "NO"),
            ("published", "boolean", "NO"),
        ],
        "fkeys": [("author_id", "users", "id"), ("editor_id", "users", "id")],
    },
    "users": {
        "pk": "id",
        "columns": [
            ("id", "integer", "NO"),
            ("email", "character varying", "NO"),
            ("score", "double precision", "YES"),
        ],
        "fkeys": [],
    },
    "audit_log": {
        "pk": None,
        "columns": [("message", "text", "YES")],
        "fkeys": [],
    },
}


class FakeCatalog:
    """Answers the introspection queries from CATALOG and records them."""

    def __init__(self, catalog=None, schemaname="public"):
        self.catalog = catalog if catalog is not None else CATALOG
        self.schemaname = schemaname
        self.calls = []

    async def __call__(self, sql, params):
        self.calls.append((sql, params))
        if "information_schema.tables" in sql:
            excluded = {v for k, v in params.items() if k.startswith("exclude_")}
            return {
                "rows": [{"name": name} for name in self.catalog if name not in excluded]
            }

        table = self.catalog[params["tablename"]]
        if "FOREIGN KEY" in sql:
            return {
                "rows": [
                    {
                        "schemaname": self.schemaname,
                        "constraint_name": f"{params['tablename']}_{col}_fkey",
                        "tablename": params["tablename"],
                        "columnname": col,
                        "ftableschema": self.schemaname,
                        "ftablename": ftable,
                        "fcolumnname": fcol,
                    }
                    for col, ftable, fcol in table["fkeys"]
                ]
            }
        if "PRIMARY KEY" in sql:
            return {"rows": [{"columnname": table["pk"]}] if table["pk"] else []}
        if "information_schema.columns" in sql:
            return {
                "rows": [
                    {"name": name, "data_type": data_type, "is_nullable": nullable}
                    for name, data_type, nullable in table["columns"]
                ]
            }
        raise AssertionError(f"Unexpected catalog query: {sql}")


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


# =========================
# In-memory database
# =========================
ITEMS_SCHEMA = Schema(
    namespace="public",
    tables={
        "items": Table(
            name="items",
            primary_key="id",
            columns={
                "id": Column(name="id", data_type="integer", is_nullable="NO"),
                "status": Column(name="status", data_type="text"),
                "name": Column(name="name", data_type="character varying"),
                "qty": Column(name="qty", data_type="integer"),
            },
        )
    },
)


# SQLite stands in for postgres: one shared connection with "public" attached
@pytest_asyncio.fixture(scope="function")
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def attach_public(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("ATTACH DATABASE ':memory:' AS public")
        cursor.close()

    async with engine.begin() as conn:
        await conn.exec_driver_sql(
            "CREATE TABLE public.items ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "status TEXT, name TEXT, qty INTEGER)"
        )
        await conn.exec_driver_sql(
            "INSERT INTO public.items (id, status, name, qty) VALUES "
            "(1, 'active', 'foo bar', 5), "
            "(2, 'done', 'Food Barn', 3), "
            "(3, 'archived', 'bar foo', 7)"
        )

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def adapter(engine):
    return PostgresAdapter(engine, schema=ITEMS_SCHEMA.model_copy(deep=True))


# Client
@pytest_asyncio.fixture(scope="function")
async def client(adapter):
    async def override_get_adapter():
        return adapter

    app.dependency_overrides[get_adapter] = override_get_adapter

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
