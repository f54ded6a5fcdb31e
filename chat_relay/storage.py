import logging
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from chat_relay.config import settings

logger = logging.getLogger(__name__)

# check_same_thread is only meaningful (and only accepted) for SQLite
engine_args = {"connect_args": {"check_same_thread": False}} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, echo=False, **engine_args)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from chat_relay.models import Application  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and the apps table exists, False otherwise.
    """
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        if not inspect(engine).has_table("apps"):
            logger.error("Database schema not applied: 'apps' table not found")
            return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Application Repository Functions
# =============================================================================

def find_application_by_chat_id(db: Session, chat_id: str):
    """
    Retrieve the application record bound to a chat session.

    Args:
        db: Database session
        chat_id: External chat session identifier

    Returns:
        Application object if found, None otherwise
    """
    from chat_relay.models import Application

    result = db.query(Application).filter(Application.chat_id == chat_id).first()
    logger.debug(f"Application lookup for chat {chat_id}: {'found' if result else 'not found'}")
    return result


def update_application(db: Session, app_id: str, patch: dict[str, Any]) -> Optional[Any]:
    """
    Apply a partial update to an application record and commit it.

    Args:
        db: Database session
        app_id: Application primary key
        patch: Column name to new value mapping

    Returns:
        The updated Application, or None if no row has that id

    Raises:
        Any database error, after the session has been rolled back
    """
    from chat_relay.models import Application

    try:
        application = db.query(Application).filter(Application.id == app_id).first()
        if application is None:
            logger.warning(f"Application not found for update: {app_id}")
            return None

        for column, value in patch.items():
            setattr(application, column, value)

        db.commit()
        logger.debug(f"Application updated: {app_id}, fields={sorted(patch)}")
        return application

    except Exception:
        db.rollback()
        raise
