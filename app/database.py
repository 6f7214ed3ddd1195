import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

load_dotenv(Path(__file__).parent.parent / ".env")

DEV_DB_PATH = Path(__file__).parent.parent / "shortlinks_dev.db"

Base = declarative_base()


def build_engine(url: str | None = None) -> Engine:
    """Create the engine for the configured environment.

    ``prod`` requires ``DATABASE_URL`` and gets a pooled engine; anything else
    falls back to a local SQLite file unless a URL is given.
    """
    environment = os.getenv("ENVIRONMENT", "dev")
    url = url or os.getenv("DATABASE_URL")
    if environment == "prod":
        if not url:
            raise RuntimeError("DATABASE_URL must be set in production")
        return create_engine(
            url,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
        )

    url = url or f"sqlite:///{DEV_DB_PATH}"
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _):
        # SQLite leaves foreign keys off per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_session_factory(request: Request) -> sessionmaker:
    # Set up once by the app lifespan; background work also needs it after the request ends.
    return request.app.state.session_factory


def get_db(session_factory: sessionmaker = Depends(get_session_factory)):
    db: Session = session_factory()
    try:
        yield db
    finally:
        db.close()
