from fastapi import APIRouter
from pgadapter.api.endpoints import schema, tables

api_router = APIRouter()

# Combine all sub-routers into one
api_router.include_router(schema.router)
api_router.include_router(tables.router)
