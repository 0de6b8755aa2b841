"""Kind-scoped repositories over the shared document partition.

Every query built here filters on the `kind` discriminator, so a medicine
lookup or a stock update can never match a prescription or a counter even
when identifiers coincide. Services go through these classes only.
"""
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple, Union

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmacy.core.exceptions import InternalStorageError, ValidationError
from pharmacy.models import MAX_INT, Medicine, Prescription, SequenceCounter

Ref = Union[int, str]

_STORAGE_ID_RE = re.compile(r"[0-9a-f]{32}")
_SEQUENCE_ID_RE = re.compile(r"[0-9]{1,19}")  # MAX_INT has 19 digits


def parse_ref(ref: Any, resource: str = "medicine") -> Tuple[str, Union[int, str]]:
    """
    Classify a reference as a sequence id or a storage id.

    Positive integers and digit strings address `sequence_id`; 32-character
    hex strings address `storage_id`.

    Returns:
        ("sequence_id", int) or ("storage_id", str)

    Raises:
        ValidationError: anything else (including booleans, zero, and sequence
            ids beyond the column range)
    """
    if isinstance(ref, bool):
        raise ValidationError(f"Malformed {resource} reference {ref!r}", ref=ref)

    if isinstance(ref, int):
        if 0 < ref <= MAX_INT:
            return "sequence_id", ref
        raise ValidationError(f"Malformed {resource} reference {ref!r}", ref=ref)

    if isinstance(ref, str):
        value = ref.strip().lower()
        if _SEQUENCE_ID_RE.fullmatch(value) and 0 < int(value) <= MAX_INT:
            return "sequence_id", int(value)
        if _STORAGE_ID_RE.fullmatch(value):
            return "storage_id", value

    raise ValidationError(f"Malformed {resource} reference {ref!r}", ref=ref)


@contextmanager
def storage_errors(db: Session, action: str, **context):
    """Roll back and re-raise any SQLAlchemy failure as InternalStorageError."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalStorageError(f"Storage failure while {action}", **context) from e


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KindRepository:
    model = None

    def __init__(self, db: Session):
        self.db = db

    def query(self):
        return self.db.query(self.model).filter(self.model.kind == self.model.KIND)

    def get(self, ref: Ref):
        field, value = parse_ref(ref, self.model.KIND)
        # populate_existing: reads must not be served from a stale identity map
        return self.query().filter(getattr(self.model, field) == value).populate_existing().first()

    def add(self, document):
        document.kind = self.model.KIND
        self.db.add(document)
        self.db.flush()
        return document

    def list(self) -> List:
        return self.query().order_by(self.model.sequence_id.asc()).populate_existing().all()


class MedicineRepository(KindRepository):
    model = Medicine

    def search(self, search: Optional[str] = None) -> List[Medicine]:
        q = self.query()
        if search:
            # Wildcards in the search text match literally
            term = search.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            like = f"%{term}%"
            q = q.filter(or_(Medicine.name.ilike(like, escape="\\"), Medicine.sku.ilike(like, escape="\\")))
        return q.order_by(Medicine.sequence_id.asc()).populate_existing().all()

    def low_stock(self, threshold: int) -> List[Medicine]:
        return (
            self.query()
            .filter(Medicine.stock_quantity < threshold)
            .order_by(Medicine.stock_quantity.asc(), Medicine.sequence_id.asc())
            .populate_existing()
            .all()
        )

    def current_stock(self, storage_id: str) -> Optional[int]:
        """Fresh read of one record's stock, bypassing the identity map."""
        return (
            self.db.query(Medicine.stock_quantity)
            .filter(Medicine.kind == Medicine.KIND, Medicine.storage_id == storage_id)
            .scalar()
        )

    # Each mutation below is one UPDATE statement; the guard lives in its
    # WHERE clause so the storage engine linearizes competing writers.

    def decrement_if_available(self, storage_id: str, quantity: int) -> bool:
        rows = (
            self.query()
            .filter(Medicine.storage_id == storage_id, Medicine.stock_quantity >= quantity)
            .update(
                {
                    Medicine.stock_quantity: Medicine.stock_quantity - quantity,
                    Medicine.updated_at: _utcnow(),
                },
                synchronize_session=False,
            )
        )
        return rows == 1

    def increment(self, storage_id: str, quantity: int, ceiling: int) -> bool:
        rows = (
            self.query()
            .filter(Medicine.storage_id == storage_id, Medicine.stock_quantity <= ceiling - quantity)
            .update(
                {
                    Medicine.stock_quantity: Medicine.stock_quantity + quantity,
                    Medicine.updated_at: _utcnow(),
                },
                synchronize_session=False,
            )
        )
        return rows == 1

    def set_stock(self, storage_id: str, quantity: int) -> bool:
        rows = (
            self.query()
            .filter(Medicine.storage_id == storage_id)
            .update(
                {Medicine.stock_quantity: quantity, Medicine.updated_at: _utcnow()},
                synchronize_session=False,
            )
        )
        return rows == 1


class PrescriptionRepository(KindRepository):
    model = Prescription

    def filter_by(self, patient_ref: Optional[str] = None, doctor_ref: Optional[str] = None) -> List[Prescription]:
        q = self.query()
        if patient_ref is not None:
            q = q.filter(Prescription.patient_ref == patient_ref)
        if doctor_ref is not None:
            q = q.filter(Prescription.doctor_ref == doctor_ref)
        return q.order_by(Prescription.sequence_id.asc()).populate_existing().all()


class CounterRepository(KindRepository):
    model = SequenceCounter

    def increment_and_fetch(self, name: str) -> Optional[int]:
        """Atomically bump the named counter. None when the counter row does not exist yet."""
        stmt = (
            update(SequenceCounter)
            .where(SequenceCounter.kind == SequenceCounter.KIND, SequenceCounter.counter_name == name)
            .values(value=SequenceCounter.value + 1)
            .returning(SequenceCounter.value)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create(self, name: str) -> SequenceCounter:
        return self.add(SequenceCounter(counter_name=name, value=0))

    def peek(self, name: str) -> Optional[int]:
        return (
            self.db.query(SequenceCounter.value)
            .filter(SequenceCounter.kind == SequenceCounter.KIND, SequenceCounter.counter_name == name)
            .scalar()
        )
