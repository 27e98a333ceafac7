import os
import logging
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool

# Configure logging
logger = logging.getLogger(__name__)

# =============================================================================
# Connection settings
# =============================================================================
# DATABASE_URL selects the backend. PostgreSQL is used in production; SQLite
# is the default for local development and the test suite.
# =============================================================================

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./institute.db")
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

IS_SQLITE = DATABASE_URL.startswith("sqlite")


def _build_engine(url: str):
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads
        poolclass = StaticPool if ":memory:" in url else None
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": DB_ECHO, "future": True}
        if poolclass:
            kwargs["poolclass"] = poolclass
        new_engine = create_engine(url, **kwargs)

        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        logger.info("Using SQLite database")
        return new_engine

    # Small pool, the chatbot workload is many short transactions
    new_engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "5")),
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=DB_ECHO,
        pool_reset_on_return='rollback',
        future=True
    )
    logger.info("Using pooled database connection (QueuePool)")
    return new_engine


engine = _build_engine(DATABASE_URL)

# Create a session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Define a base class for the models
Base = declarative_base()


def get_db():
    """
    Database dependency with rollback on error and guaranteed cleanup
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        # Rollback any pending transaction
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.error(f"Error during rollback: {rollback_error}")
        raise
    finally:
        # CRITICAL: Always close the session
        try:
            db.close()
        except Exception as close_error:
            logger.error(f"Error closing database session: {close_error}")


def test_db_connection():
    """Test database connection - useful for health checks"""
    db = None
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection test failed: {e}")
        return False
    finally:
        if db:
            try:
                db.close()
            except Exception as close_error:
                logger.error(f"Error closing test database connection: {close_error}")


def get_pool_status():
    """Return current connection pool status for monitoring"""
    if IS_SQLITE:
        return {"pool_status": "not pooled (sqlite)"}
    try:
        pool = engine.pool
        total_capacity = pool.size() + pool._max_overflow
        return {
            "pool_size": pool.size(),
            "checked_out": pool.checkedout(),
            "overflow": pool.overflow(),
            "checked_in": pool.checkedin(),
            "total_capacity": total_capacity,
            "pool_status": "healthy" if pool.checkedout() < total_capacity * 0.8 else "warning"
        }
    except Exception as e:
        logger.error(f"Error getting pool status: {e}")
        return {"error": "Could not retrieve pool status"}
