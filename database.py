# database.py
"""
SQLAlchemy database connection and session management.

This module provides:
- Engine construction for SQL Server (production, mssql+pymssql) and SQLite (development, tests)
- Session factory shared by the services
- A transactional scope that commits or rolls back as a unit

Usage:
     from database import SessionLocal, session_scope

     with session_scope(SessionLocal) as db:
          db.add(rental)
     """
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

import config
from exceptions import PersistenceError

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False) -> Engine:
     """
     Create an engine for the given URL.

     SQLite has no row-level locks, so every transaction is opened with
     BEGIN IMMEDIATE: write transactions on the file are serialized, which
     gives the equipment lock the same check-then-insert guarantee that
     SELECT ... FOR UPDATE (UPDLOCK) gives on SQL Server.
     """
     if url.startswith("sqlite"):
          engine = create_engine(
               url,
               echo=echo,
               connect_args={"check_same_thread": False, "timeout": 30},
          )

          @event.listens_for(engine, "connect")
          def _sqlite_connect(dbapi_connection, connection_record):
               # let SQLAlchemy emit BEGIN itself
               dbapi_connection.isolation_level = None
               cursor = dbapi_connection.cursor()
               cursor.execute("PRAGMA foreign_keys=ON")
               cursor.close()

          @event.listens_for(engine, "begin")
          def _sqlite_begin(conn):
               conn.exec_driver_sql("BEGIN IMMEDIATE")

          return engine

     return create_engine(
          url,
          pool_size=5,
          max_overflow=10,
          pool_timeout=30,
          pool_recycle=1800,  # Recycle connections after 30 minutes
          pool_pre_ping=True,
          echo=echo,
     )


def build_session_factory(engine: Engine) -> sessionmaker:
     return sessionmaker(
          bind=engine,
          autocommit=False,
          autoflush=False,
          expire_on_commit=False,
     )


# Create SQLAlchemy engine
engine = build_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

# Session factory
SessionLocal = build_session_factory(engine)


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
     """
     Run a unit of work in one transaction.

     Commits when the block exits normally. Any exception rolls the whole
     transaction back; SQLAlchemy failures are re-raised as PersistenceError
     so callers can retry, business errors propagate unchanged.

     Yields:
          Session: SQLAlchemy database session
     """
     session = (factory or SessionLocal)()
     try:
          yield session
          session.commit()
     except SQLAlchemyError as exc:
          session.rollback()
          logger.error("Transaction rolled back: %s", exc, exc_info=True)
          raise PersistenceError(f"Error: transaction failed ({exc.__class__.__name__})") from exc
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


def init_db(bind: Optional[Engine] = None) -> None:
     """
     Initialize database tables.

     Creates all tables defined in the models if they don't exist.
     For production, use Alembic migrations instead.
     """
     from models import Base
     Base.metadata.create_all(bind=bind or engine)


def check_connection(bind: Optional[Engine] = None) -> bool:
     """
     Test database connectivity.

     Returns:
          bool: True if connection successful, False otherwise
     """
     try:
          with (bind or engine).connect() as conn:
               conn.execute(text("SELECT 1"))
          return True
     except SQLAlchemyError as e:
          logger.error("Database connection failed: %s", e)
          return False
