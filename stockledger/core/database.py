"""
Stock Ledger Database Configuration
SQLAlchemy engine, session factory and declarative base
"""
from datetime import datetime, timezone
from sqlalchemy import create_engine, MetaData, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings
from .logging import get_logger

logger = get_logger("database")


def build_engine(url: str = None, **kwargs) -> Engine:
    """
    Create an engine for the given URL

    SQLite connections are shared across worker threads and wait on
    locked databases instead of failing immediately.
    """
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", settings.SQLITE_BUSY_TIMEOUT)
        return create_engine(url, connect_args=connect_args, echo=settings.DEBUG, **kwargs)

    kwargs.setdefault("pool_size", settings.DATABASE_POOL_SIZE)
    kwargs.setdefault("max_overflow", settings.DATABASE_MAX_OVERFLOW)
    return create_engine(
        url,
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,
        echo=settings.DEBUG,
        **kwargs
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    # Objects handed out by stores outlive their session
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = build_engine()

SessionLocal = build_session_factory(engine)

# Metadata with naming convention for constraints
Base = declarative_base(metadata=MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}))


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db(bind: Engine = None):
    """
    Initialize database tables

    This function creates all tables defined in models
    """
    try:
        # Register every model with Base
        from stockledger.models import stock, allocation  # noqa: F401

        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created successfully")

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


def check_db_connection(bind: Engine = None) -> bool:
    """
    Check if database connection is working

    Returns:
        True if connection is successful, False otherwise
    """
    try:
        with (bind or engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
