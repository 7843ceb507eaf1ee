from contextlib import asynccontextmanager
from fastapi import FastAPI
from balog.api.routes import router

from balog.config import load_config
from balog.db.database import create_db_engine, create_session_factory
from balog.utils.logging import setup_logging

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    config = load_config()
    engine = create_db_engine(config.db_filepath)
    app.state.config = config
    app.state.session_factory = create_session_factory(engine)
    yield
    engine.dispose()

app = FastAPI(
    title="balog",
    lifespan=lifespan
)
app.include_router(router)
