import logging
from typing import Annotated, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from pgadapter.core import schemas
from pgadapter.core.adapter import PostgresAdapter
from pgadapter.core.config import settings
from pgadapter.core.database import get_adapter
from pgadapter.core.exceptions import (
    ReferentialIntegrityError,
    UnknownTableError,
    UnsupportedTypeError,
)

router = APIRouter(prefix="/schema", tags=["Schema"])

adapter_dep = Annotated[PostgresAdapter, Depends(get_adapter)]


@router.get("", response_model=schemas.Schema)
async def get_active_schema(adapter: adapter_dep):
    return adapter.schema


# Rebuild the model from the catalog. Run it outside live traffic.
@router.post("/refresh", response_model=schemas.Schema)
async def refresh_schema(adapter: adapter_dep):
    try:
        return await adapter.get_schema(settings.DB_SCHEMA, settings.DB_EXCLUDE_TABLES)
    except ReferentialIntegrityError as error:
        logging.error(f"Schema build failed: {error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error)
        )


@router.get("/types", response_model=List[str])
async def get_available_types(adapter: adapter_dep):
    return adapter.get_available_types()


@router.get("/{table}/types", response_model=Dict[str, str])
async def get_table_types(table: str, adapter: adapter_dep):
    """Abstract scalar type of every column of a table."""
    try:
        columns = adapter.get_table_columns_from_schema(table)
        return {
            name: adapter.map_db_column_to_graphql_type(name, adapter.schema[table].columns[name])
            for name in columns
        }
    except UnknownTableError as error:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(error))
    except UnsupportedTypeError as error:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, str(error))
