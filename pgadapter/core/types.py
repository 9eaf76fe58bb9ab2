from enum import Enum
from typing import Any, List, Mapping, Union

from pgadapter.core.exceptions import UnsupportedTypeError
from pgadapter.core.schemas import Column


class AbstractType(str, Enum):
    BOOLEAN = "Boolean"
    FLOAT = "Float"
    INT = "Int"
    STRING = "String"


# information_schema.columns.data_type -> abstract scalar
NATIVE_TYPES = {
    "boolean": AbstractType.BOOLEAN,
    "numeric": AbstractType.FLOAT,
    "double precision": AbstractType.FLOAT,
    "integer": AbstractType.INT,
    "bigint": AbstractType.INT,
    "timestamp with time zone": AbstractType.STRING,
    "character varying": AbstractType.STRING,
    "text": AbstractType.STRING,
    "binary": AbstractType.STRING,
    "bytea": AbstractType.STRING,
    "USER-DEFINED": AbstractType.STRING,  # enums, domains, extension types
}


def get_available_types() -> List[str]:
    return [t.value for t in AbstractType]


def map_db_column_to_graphql_type(
    column_name: str, attrs: Union[Column, Mapping[str, Any]]
) -> AbstractType:
    """
    Map a column's native data type to its abstract scalar kind.

    Raises:
        UnsupportedTypeError: the native type is not recognized.
    """
    if isinstance(attrs, Column):
        data_type = attrs.data_type
    else:
        data_type = attrs.get("data_type")

    try:
        return NATIVE_TYPES[data_type]
    except (KeyError, TypeError):
        raise UnsupportedTypeError(column_name, str(data_type))
