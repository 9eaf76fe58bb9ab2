"""
PREDICATE TRANSLATOR - Turn a data-driven argument bag into SQL predicates

Argument bag:
    {
        "filter":     {"<table>": [[op, column, value], ...]},
        "where":      {"sql": "status = :status", "val": {"status": "active"}},
        "pagination": {"<table>": [["limit", 10], ["orderby", "id desc"]]},
    }

Order of application:
    filter conditions -> raw where fragment -> pagination (as supplied)

SECURITY:
    The "<=>" operator writes `column = value` straight into the SQL text,
    and the "where" fragment is used as-is (only its "val" is bound).
    Column names in every condition are also trusted. Comparison operators
    must be one of COMPARISON_OPERATORS. Never pass filter input from
    untrusted clients without allow-listing it first.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence

from sqlalchemy import asc, column, desc, text
from sqlalchemy.sql.expression import Select

from pgadapter.core.exceptions import InvalidConditionError, UnsupportedTypeError
from pgadapter.core.schemas import Table
from pgadapter.core.types import AbstractType, map_db_column_to_graphql_type


class ConditionKind(Enum):
    FUZZY = "~"
    MEMBERSHIP = "#"
    RAW_EQUALITY = "<=>"
    COMPARISON = "comparison"


# Operators accepted for a plain column <op> value comparison
COMPARISON_OPERATORS = frozenset(
    ["=", "<", ">", "<=", ">=", "<>", "!=", "like", "ilike", "not like", "not ilike", "is", "is not"]
)


class PaginationKind(Enum):
    LIMIT = "limit"
    OFFSET = "offset"
    ORDER_BY = "orderby"


class Condition(NamedTuple):
    kind: ConditionKind
    operator: str
    column: str
    value: Any

    @classmethod
    def from_sequence(cls, condition: Sequence[Any]) -> "Condition":
        op, col, value = condition[0], condition[1], condition[2]
        try:
            kind = ConditionKind(op)
        except ValueError:
            # Any other token is a direct comparison operator
            kind = ConditionKind.COMPARISON
        return cls(kind, op, col, value)


class PaginationDirective(NamedTuple):
    kind: PaginationKind
    value: Any

    @classmethod
    def from_sequence(cls, directive: Sequence[Any]) -> Optional["PaginationDirective"]:
        try:
            kind = PaginationKind(directive[0])
        except ValueError:
            return None
        # An orderby without a column is ignored like an unknown operator
        if kind is PaginationKind.ORDER_BY and not str(directive[1]).split():
            return None
        return cls(kind, directive[1])


def fuzzy_pattern(value: Any) -> str:
    # Only the first space becomes a wildcard
    return "%" + str(value).replace(" ", "%", 1) + "%"


def coerce_value(value: Any, kind: Optional[AbstractType] = None) -> Any:
    # asyncpg binds strictly, so numeric columns need numeric values
    if not isinstance(value, str) or kind not in (AbstractType.INT, AbstractType.FLOAT):
        return value
    try:
        return int(value) if kind is AbstractType.INT else float(value)
    except ValueError:
        raise InvalidConditionError(f"Value {value!r} is not a valid {kind.value}")


def member_values(value: Any, kind: Optional[AbstractType] = None) -> List[Any]:
    values = list(value) if isinstance(value, (list, tuple)) else str(value).split(",")
    return [coerce_value(v, kind) for v in values]


def comparison_operator(operator: Any) -> str:
    op = " ".join(str(operator).lower().split())
    if op not in COMPARISON_OPERATORS:
        raise InvalidConditionError(f"Unsupported comparison operator: {operator!r}")
    return op


def column_kind(model: Optional[Table], name: str) -> Optional[AbstractType]:
    if model is None or name not in model.columns:
        return None
    try:
        return map_db_column_to_graphql_type(name, model.columns[name])
    except UnsupportedTypeError:
        return None


def apply_condition(
    stmt: Select, condition: Condition, model: Optional[Table] = None
) -> Select:
    """
    Add one condition to a statement.

    `model` is the table being queried; when known, membership and
    comparison values are converted to the column's numeric kind.

    WARNING: RAW_EQUALITY embeds the value unbound, trusted input only.
    """
    if condition.kind is ConditionKind.FUZZY:
        return stmt.where(column(condition.column).ilike(fuzzy_pattern(condition.value)))
    if condition.kind is ConditionKind.MEMBERSHIP:
        values = member_values(condition.value, column_kind(model, condition.column))
        return stmt.where(column(condition.column).in_(values))
    if condition.kind is ConditionKind.RAW_EQUALITY:
        # Escaped colons keep text() from reading ":word" as a bind parameter
        sql = f"{condition.column} = {condition.value}".replace(":", r"\:")
        return stmt.where(text(sql))
    if condition.kind is ConditionKind.COMPARISON:
        op = comparison_operator(condition.operator)
        value = condition.value
        if "like" not in op:
            value = coerce_value(value, column_kind(model, condition.column))
        return stmt.where(column(condition.column).op(op)(value))
    raise ValueError(f"Unhandled condition kind: {condition.kind}")


def apply_pagination_directive(stmt: Select, directive: PaginationDirective) -> Select:
    if directive.kind is PaginationKind.LIMIT:
        return stmt.limit(int(directive.value))
    if directive.kind is PaginationKind.OFFSET:
        return stmt.offset(int(directive.value))
    if directive.kind is PaginationKind.ORDER_BY:
        parts = str(directive.value).split()
        col = column(parts[0])
        direction = parts[1].lower() if len(parts) > 1 else "asc"
        return stmt.order_by(desc(col) if direction == "desc" else asc(col))
    raise ValueError(f"Unhandled pagination kind: {directive.kind}")


def add_where_from_args(
    table: str, stmt: Select, args: Mapping[str, Any], model: Optional[Table] = None
) -> Select:
    """Apply the per-table filter conditions."""
    filters = args.get("filter")
    if not filters:
        return stmt
    conditions = filters.get(table)
    if not conditions:
        return stmt

    for condition in conditions:
        stmt = apply_condition(stmt, Condition.from_sequence(condition), model)
    return stmt


def add_where_from_args_where(stmt: Select, args: Mapping[str, Any]) -> Select:
    """Apply the raw where fragment; only its parameters are bound."""
    where = args.get("where")
    if not where:
        return stmt

    clause = text(where["sql"])
    params: Dict[str, Any] = where.get("val") or {}
    if params:
        clause = clause.bindparams(**params)
    return stmt.where(clause)


def add_pagination_from_args(table: str, stmt: Select, args: Mapping[str, Any]) -> Select:
    pagination = args.get("pagination")
    if not pagination:
        return stmt
    directives = pagination.get(table)
    if not directives:
        return stmt

    for raw in directives:
        directive = PaginationDirective.from_sequence(raw)
        # Unknown pagination operators are ignored
        if directive is None:
            continue
        stmt = apply_pagination_directive(stmt, directive)
    return stmt


def apply_filters(
    table: str,
    stmt: Select,
    args: Optional[Mapping[str, Any]],
    model: Optional[Table] = None,
) -> Select:
    if not args:
        return stmt
    stmt = add_where_from_args(table, stmt, args, model)
    return add_where_from_args_where(stmt, args)


def apply_args(
    table: str,
    stmt: Select,
    args: Optional[Mapping[str, Any]],
    model: Optional[Table] = None,
) -> Select:
    """filter -> where -> pagination, each one a no-op when absent."""
    if not args:
        return stmt
    stmt = apply_filters(table, stmt, args, model)
    return add_pagination_from_args(table, stmt, args)
