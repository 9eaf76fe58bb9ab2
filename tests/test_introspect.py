import pytest

from pgadapter.core.adapter import PostgresAdapter
from pgadapter.core.exceptions import ReferentialIntegrityError, UnknownTableError
from pgadapter.core.introspect import (
    SchemaIntrospector,
    get_exclude_condition,
    get_exclude_params,
)
from pgadapter.core.schemas import ReverseRelation


def test_exclude_condition_empty():
    assert get_exclude_condition([]) == ""
    assert get_exclude_condition(None) == ""
    assert get_exclude_params(None) == {}


def test_exclude_condition_names_each_table():
    assert get_exclude_condition(["a", "b"]) == "AND table_name NOT IN (:exclude_0, :exclude_1)"
    assert get_exclude_params(["a", "b"]) == {"exclude_0": "a", "exclude_1": "b"}


@pytest.mark.asyncio
async def test_discover_tables_binds_namespace_and_exclusions(fake_catalog):
    introspector = SchemaIntrospector(fake_catalog)
    names = await introspector.discover_tables("public", ["audit_log"])

    assert names == ["comments", "posts", "users"]
    sql, params = fake_catalog.calls[0]
    assert "NOT IN (:exclude_0)" in sql
    assert params == {"schemaname": "public", "exclude_0": "audit_log"}


@pytest.mark.asyncio
async def test_discover_columns_and_keys(fake_catalog):
    introspector = SchemaIntrospector(fake_catalog)

    columns = await introspector.discover_columns("public", "users")
    assert [c.name for c in columns] == ["id", "email", "score"]
    assert columns[0].is_nullable == "NO"
    assert columns[2].data_type == "double precision"

    assert await introspector.discover_primary_key("public", "users") == "id"
    assert await introspector.discover_primary_key("public", "audit_log") is None

    fkeys = await introspector.discover_foreign_keys("public", "posts")
    assert [(f.columnname, f.ftablename, f.fcolumnname) for f in fkeys] == [
        ("author_id", "users", "id"),
        ("editor_id", "users", "id"),
    ]


@pytest.mark.asyncio
async def test_build_schema_tables_and_columns(fake_catalog):
    schema = await SchemaIntrospector(fake_catalog).build_schema("public")

    assert schema.namespace == "public"
    assert set(schema.tables) == {"comments", "posts", "users", "audit_log"}
    assert schema["posts"].primary_key == "id"
    assert schema["audit_log"].primary_key is None
    assert list(schema["posts"].columns) == ["id", "author_id", "editor_id", "title", "published"]


@pytest.mark.asyncio
async def test_build_schema_foreign_keys_and_reverse_relations(fake_catalog):
    schema = await SchemaIntrospector(fake_catalog).build_schema("public")

    # Forward reference: comments is built before posts exists in the listing
    post_fk = schema["comments"].columns["post_id"].foreign
    assert (post_fk.schemaname, post_fk.tablename, post_fk.columnname) == ("public", "posts", "id")
    assert schema["comments"].columns["body"].foreign is None

    assert schema["posts"].reverse_relations == [
        ReverseRelation(
            foreign_schema="public",
            foreign_table="comments",
            foreign_column="post_id",
            local_column="id",
        )
    ]
    users_reverse = [(r.foreign_table, r.foreign_column) for r in schema["users"].reverse_relations]
    assert users_reverse == [
        ("comments", "user_id"),
        ("posts", "author_id"),
        ("posts", "editor_id"),
    ]
    assert schema["comments"].reverse_relations == []


@pytest.mark.asyncio
async def test_every_foreign_key_has_one_reverse_relation(fake_catalog):
    schema = await SchemaIntrospector(fake_catalog).build_schema("public")

    for table in schema.tables.values():
        for column in table.columns.values():
            if column.foreign is None:
                continue
            matches = [
                r
                for r in schema[column.foreign.tablename].reverse_relations
                if r.foreign_table == table.name and r.foreign_column == column.name
            ]
            assert len(matches) == 1
            assert matches[0].local_column == column.foreign.columnname


@pytest.mark.asyncio
async def test_build_schema_is_idempotent(fake_catalog):
    introspector = SchemaIntrospector(fake_catalog)
    first = await introspector.build_schema("public")
    second = await introspector.build_schema("public")

    assert first == second
    assert first is not second


@pytest.mark.asyncio
async def test_excluding_a_referenced_table_fails(fake_catalog):
    with pytest.raises(ReferentialIntegrityError) as excinfo:
        await SchemaIntrospector(fake_catalog).build_schema("public", ["users"])
    assert "users" in str(excinfo.value)


@pytest.mark.asyncio
async def test_excluding_an_unreferenced_table(fake_catalog):
    schema = await SchemaIntrospector(fake_catalog).build_schema("public", ["audit_log"])
    assert "audit_log" not in schema


@pytest.mark.asyncio
async def test_adapter_get_schema_sets_active_schema(fake_catalog):
    adapter = PostgresAdapter(engine=None)
    adapter.introspector = SchemaIntrospector(fake_catalog)

    schema = await adapter.get_schema("public", ["audit_log"])

    assert adapter.schema is schema
    assert adapter.schemaname == "public"
    assert sorted(adapter.get_tables_from_schema()) == ["comments", "posts", "users"]
    assert adapter.get_table_columns_from_schema("users") == ["id", "email", "score"]
    assert adapter.get_primary_key_from_schema("comments") == "id"

    with pytest.raises(UnknownTableError):
        adapter.get_primary_key_from_schema("audit_log")


@pytest.mark.asyncio
async def test_every_introspected_column_maps_to_a_type(fake_catalog):
    adapter = PostgresAdapter(engine=None)
    adapter.introspector = SchemaIntrospector(fake_catalog)
    schema = await adapter.get_schema("public")

    kinds = {
        name: adapter.map_db_column_to_graphql_type(name, column)
        for name, column in schema["posts"].columns.items()
    }
    assert kinds == {
        "id": "Int",
        "author_id": "Int",
        "editor_id": "Int",
        "title": "String",
        "published": "Boolean",
    }
