"""Database engine and session management."""

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from utils.tiny_file_handler import load_json_file

DEFAULT_DATABASE_URL = "sqlite:///parcel_feedback.db"

Base = declarative_base()


def get_database_url() -> str:
    """DATABASE_URL env var wins over config.json, then the local SQLite default."""
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    config = load_json_file("config.json")
    return config.get("database_url", DEFAULT_DATABASE_URL)


def create_db_engine(database_url: str | None = None) -> Engine:
    url = database_url or get_database_url()
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


def init_db(engine: Engine) -> None:
    """Create all tables."""
    # Registers the mapped classes on Base.metadata
    from storage import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
