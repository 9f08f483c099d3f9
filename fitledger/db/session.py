from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from fitledger.core.config import SQLALCHEMY_DATABASE_URI


def enable_sqlite_write_locks(sqlite_engine: Engine) -> Engine:
    """
    SQLite ignores SELECT ... FOR UPDATE, and pysqlite only sends BEGIN before
    the first write, so a balance check could read before another writer
    commits. Take over transaction control from the driver and open every
    transaction with BEGIN IMMEDIATE: the reserved lock is held from the
    first read until commit or rollback.
    """
    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


# SQLite connections are shared across threads by the session pool
connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URI.startswith("sqlite") else {}

engine = create_engine(SQLALCHEMY_DATABASE_URI, pool_pre_ping=True, connect_args=connect_args)
if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
    enable_sqlite_write_locks(engine)

# Sessions for scripts and jobs that run outside a caller-provided session, e.g. db_transaction()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
