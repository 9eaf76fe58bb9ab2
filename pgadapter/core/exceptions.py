class AdapterError(Exception):
    """Base class for errors raised by the adapter itself."""


class UnsupportedTypeError(AdapterError):
    """A native column type has no abstract scalar mapping."""

    def __init__(self, column_name: str, data_type: str):
        self.column_name = column_name
        self.data_type = data_type
        super().__init__(
            f"Undefined column type: {data_type} of column {column_name}"
        )


class ReferentialIntegrityError(AdapterError):
    """A foreign key points at a table or column missing from the model."""


class UnknownTableError(AdapterError):
    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Unknown table: {table}")


class InvalidConditionError(AdapterError):
    """A filter condition uses an operator or value that cannot be translated."""
