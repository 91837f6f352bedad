# questionnaire_api/db/session.py
import re

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker

from questionnaire_api.core.config import settings
from questionnaire_api.core.logging import get_logger

log = get_logger("db")


def _mask(u: str) -> str:
    """Masks the password in the URL for logs"""
    return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", u)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 5,            # 5 concurrent connections
        "max_overflow": 10,        # up to 15 on peaks
        "pool_timeout": 30,        # 30s to obtain a connection
        "pool_recycle": 1800,      # recycle every 30 min
        "pool_pre_ping": True,     # check the connection is alive
    }


def enable_sqlite_foreign_keys(engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


db_url = settings.db_url
log.info("Using database %s", _mask(db_url))

engine = create_engine(db_url, echo=False, **_engine_kwargs(db_url))
if db_url.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def get_db():
    """Dependency for FastAPI / the GraphQL context"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connection() -> bool:
    """Checks that the connection works"""
    try:
        with engine.connect() as conn:
            row = conn.execute(text("SELECT 1")).fetchone()
            if row and row[0] == 1:
                log.info("Connection successful")
                return True
            return False
    except Exception as e:
        log.error("Connection failed: %s", e)
        return False
