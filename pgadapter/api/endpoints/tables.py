from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from pgadapter.core import schemas
from pgadapter.core.adapter import PostgresAdapter
from pgadapter.core.database import get_adapter
from pgadapter.core.exceptions import AdapterError, InvalidConditionError, UnknownTableError

router = APIRouter(prefix="/tables", tags=["Tables"])

adapter_dep = Annotated[PostgresAdapter, Depends(get_adapter)]


def ensure_table(adapter: PostgresAdapter, table: str):
    if table not in adapter.schema:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Unknown table: {table}")


# Page of rows (cached)
@router.post("/{table}/page", response_model=List[Dict[str, Any]])
async def get_page(table: str, args: schemas.QueryArgs, adapter: adapter_dep):
    ensure_table(adapter, table)
    try:
        return await adapter.page(table, args.to_args())
    except InvalidConditionError as error:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(error))


@router.post("/{table}/total", response_model=schemas.TotalResponse)
async def get_page_total(table: str, args: schemas.QueryArgs, adapter: adapter_dep):
    ensure_table(adapter, table)
    try:
        total = await adapter.page_total(table, args.to_args())
    except InvalidConditionError as error:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(error))
    return {"total": total}


@router.post("/{table}/first", response_model=Dict[str, Any])
async def get_first(table: str, args: schemas.QueryArgs, adapter: adapter_dep):
    ensure_table(adapter, table)
    try:
        row = await adapter.first_of(table, args.to_args())
    except InvalidConditionError as error:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(error))
    if row is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No matching row")
    return row


# Insert or update by primary key
@router.put("/{table}", response_model=List[Dict[str, Any]])
async def put_item(table: str, payload: schemas.UpsertRequest, adapter: adapter_dep):
    try:
        return await adapter.upsert(table, payload.to_data())
    except UnknownTableError as error:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(error))
    except AdapterError as error:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(error))
