# unimeet/db/session.py
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from unimeet.config import get_settings

settings = get_settings()

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# For SQLite, `check_same_thread=False` is needed for FastAPI dev usage
engine = create_engine(
    settings.DATABASE_URL,
    connect_args=(
        {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS}
        if _is_sqlite
        else {}
    ),
)

if _is_sqlite:
    # pysqlite defers BEGIN until the first write, so two bookings could both
    # read "no conflict" before either writes. Take over transaction control
    # and start every transaction as IMMEDIATE so writers serialize.
    @event.listens_for(engine, "connect")
    def _sqlite_disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    from sqlalchemy.orm import Session
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
