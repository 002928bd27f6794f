import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(database_uri, echo=False):
    """
    Build the engine and session factory for ``database_uri`` and create any
    missing tables. The returned factory is what the services are given.
    """
    engine = create_engine(database_uri, echo=echo, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    # Create tables if not present
    Base.metadata.create_all(engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    return engine, SessionLocal
