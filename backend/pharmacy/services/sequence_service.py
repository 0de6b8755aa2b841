"""Sequential human-facing ids per entity kind, backed by counter documents."""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pharmacy.core.exceptions import InternalStorageError, ValidationError
from pharmacy.db.repository import CounterRepository
from pharmacy.models import MEDICINE, PRESCRIPTION

logger = logging.getLogger(__name__)

SEQUENCE_KINDS = (MEDICINE, PRESCRIPTION)


def next_sequence(db: Session, kind: str) -> int:
    """
    Allocate the next id for `kind` and commit it.

    The counter row is created lazily at 0 on first use. If two callers race
    to create it, the loser hits the unique constraint, rolls back and retries
    the increment. Allocated values are never handed back, so gaps are
    possible when the caller fails afterwards.

    Raises:
        ValidationError: unknown kind
        InternalStorageError: the increment could not be performed
    """
    if kind not in SEQUENCE_KINDS:
        raise ValidationError(f"Unknown sequence kind {kind!r}", kind=kind)

    counters = CounterRepository(db)
    try:
        for _ in range(2):
            value = counters.increment_and_fetch(kind)
            if value is not None:
                db.commit()
                logger.debug(f"Allocated {kind} sequence {value}")
                return value

            try:
                counters.create(kind)
                db.commit()
                logger.info(f"Created sequence counter for {kind}")
            except IntegrityError:
                # Another caller created it first
                db.rollback()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalStorageError(f"Could not allocate {kind} sequence", kind=kind) from e

    raise InternalStorageError(f"Could not allocate {kind} sequence", kind=kind)
