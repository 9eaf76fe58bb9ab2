import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pgadapter.api.router import api_router
from pgadapter.core.config import settings
from pgadapter.core.database import create_adapter, create_engine_from_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Build the schema once at startup and close the engine once everything is done
@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = create_engine_from_settings()
    adapter = create_adapter(engine)
    await adapter.get_schema(settings.DB_SCHEMA, settings.DB_EXCLUDE_TABLES)
    logger.info("Loaded %d tables from %s", len(adapter.schema.tables), settings.DB_SCHEMA)
    app.state.adapter = adapter

    yield
    await engine.dispose()


app = FastAPI(title="PostgreSQL Adapter API", lifespan=lifespan)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "PostgreSQL adapter is running"}
