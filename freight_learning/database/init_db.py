"""Create, verify and reset the learning store."""

from pathlib import Path
from typing import Optional

from sqlalchemy.engine import make_url

from freight_learning.database.models import Base
from freight_learning.database.operations import DatabaseOperations
from freight_learning.utils.logger import get_logger

logger = get_logger(__name__)


def get_database_ops(database_url: Optional[str] = None) -> DatabaseOperations:
    """
    Open the store without touching its schema.

    Args:
        database_url: SQLAlchemy URL; defaults to ``settings.database.url``.
    """
    if database_url is None:
        from freight_learning.config.settings import settings
        database_url = settings.database.url
    return DatabaseOperations(database_url)


def _backend(db_ops: DatabaseOperations) -> str:
    return make_url(db_ops.database_url).get_backend_name()


def init_database(database_url: Optional[str] = None) -> DatabaseOperations:
    """
    Create any missing learning tables.

    A file-backed SQLite database gets its parent directory created first.

    Returns:
        DatabaseOperations bound to the initialized store.
    """
    db_ops = get_database_ops(database_url)
    url = make_url(db_ops.database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    try:
        db_ops.init_database()
    except Exception as e:
        logger.error("Failed to create learning tables", backend=_backend(db_ops), error=str(e))
        raise

    logger.info("Learning tables ready", backend=_backend(db_ops))
    return db_ops


def check_database(database_url: Optional[str] = None) -> bool:
    """True if every learning table exists."""
    db_ops = get_database_ops(database_url)
    ready = db_ops.check_database()
    if not ready:
        logger.warning("Learning tables missing; run init-db", backend=_backend(db_ops))
    return ready


def reset_database(database_url: Optional[str] = None) -> DatabaseOperations:
    """
    Drop and recreate every learning table. All learned data is lost.
    """
    db_ops = get_database_ops(database_url)
    logger.warning("Dropping all learning tables", backend=_backend(db_ops))
    Base.metadata.drop_all(db_ops.engine)
    db_ops.init_database()
    return db_ops
