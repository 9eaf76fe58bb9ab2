from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


# =========================
# RELATIONAL MODEL
# =========================
class ForeignKeyTarget(BaseModel):
    schemaname: str
    tablename: str
    columnname: str


class Column(BaseModel):
    name: str
    data_type: str
    is_nullable: str = "YES"  # information_schema keeps YES / NO
    foreign: Optional[ForeignKeyTarget] = None


class ReverseRelation(BaseModel):
    """
    Another table holds a foreign key pointing at this table.

    foreign_* describe the referencing side, local_column is the
    referenced column on this table.
    """

    foreign_schema: str
    foreign_table: str
    foreign_column: str
    local_column: str


class Table(BaseModel):
    name: str
    primary_key: Optional[str] = None
    columns: Dict[str, Column] = {}
    reverse_relations: List[ReverseRelation] = []


class Schema(BaseModel):
    namespace: str = "public"
    tables: Dict[str, Table] = {}

    def __contains__(self, table_name: str) -> bool:
        return table_name in self.tables

    def __getitem__(self, table_name: str) -> Table:
        return self.tables[table_name]


# =========================
# CATALOG ROWS
# =========================
class ForeignKey(BaseModel):
    """One row of the foreign key catalog query."""

    schemaname: str
    constraint_name: Optional[str] = None
    tablename: str
    columnname: str
    ftableschema: str
    ftablename: str
    fcolumnname: str


# =========================
# REQUESTS
# =========================
class WhereFragment(BaseModel):
    sql: str
    val: Dict[str, Any] = {}


class QueryArgs(BaseModel):
    filter: Optional[Dict[str, List[List[Any]]]] = None
    where: Optional[WhereFragment] = None
    pagination: Optional[Dict[str, List[List[Any]]]] = None
    debug: bool = Field(default=False, alias="_debug")
    cache: bool = Field(default=True, alias="_cache")

    model_config = ConfigDict(populate_by_name=True)

    def to_args(self) -> Dict[str, Any]:
        """Plain argument bag as the adapter expects it."""
        return self.model_dump(by_alias=True, exclude_none=True)


class UpsertRequest(BaseModel):
    input: Dict[str, Any]
    debug: bool = Field(default=False, alias="_debug")

    model_config = ConfigDict(populate_by_name=True)

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class TotalResponse(BaseModel):
    total: int
