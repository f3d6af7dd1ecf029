from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from sharegate.core.config import settings


def build_engine(database_uri: str) -> Engine:
    # SQLite specific configuration for multi-threading
    is_sqlite = database_uri.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}

    engine = create_engine(
        database_uri,
        pool_pre_ping=True,
        connect_args=connect_args
    )

    if is_sqlite:
        # ON DELETE CASCADE and file references need enforced foreign keys
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.SQLALCHEMY_DATABASE_URI)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
