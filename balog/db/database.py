from pathlib import Path
from typing import Generator
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from balog.errors import StoreError

#the engine is the connection to the sqlite file, the session factory creates isolated transaction scopes,
# get_db is the dependency for the database session.

Base = declarative_base()


def create_db_engine(db_path: Path) -> Engine:
    """open (and migrate) the sqlite database at `db_path`."""
    db_path = Path(db_path).expanduser()

    # tables are registered on Base by the models module
    from balog.db import models  # noqa: F401

    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine( #create the engine
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(bind=engine)
    except (OSError, SQLAlchemyError) as e:
        raise StoreError(f"failed to open database '{db_path}': {e}") from e
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """database session dependency for fastapi."""
    db = request.app.state.session_factory()#create the session
    try:
        yield db#yield the session
    finally:
        db.close()#close the session
