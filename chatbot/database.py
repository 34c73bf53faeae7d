from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from chatbot.config import get_settings

settings = get_settings()
_is_sqlite = settings.database_url.startswith("sqlite")

# Tools write from the stream worker thread, so SQLite connections cross threads
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    pool_pre_ping=not _is_sqlite,
)

if _is_sqlite:
    @event.listens_for(engine, "connect")
    def _sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(bind=engine, autoflush=False)
Base = declarative_base()


def get_db():
    """Request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
