"""Create all tables and check storage reachability. Run on app startup."""
import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmacy.core.exceptions import InternalStorageError
from pharmacy.db.base import Base
from pharmacy.db.session import engine as default_engine
from pharmacy.models import Medicine, Prescription, SequenceCounter  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db(bind: Engine = None):
    bind = bind or default_engine
    Base.metadata.create_all(bind=bind)
    logger.info(f"Storage ready at {bind.url.render_as_string(hide_password=True)}")


def storage_health(db: Session) -> bool:
    """Round-trip a trivial query against the storage partition."""
    try:
        ok = db.execute(text("SELECT 1")).scalar() == 1
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalStorageError("Storage health check failed") from e
    return ok
