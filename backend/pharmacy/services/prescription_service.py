"""Prescription fulfillment.

A prescription consumes stock from several medicine documents. The storage
partition has no multi-document transaction, so fulfillment runs as a saga:

    validate -> resolve -> pre-check -> decrement (per line item) -> persist

Each decrement is an independent conditional update. If any one of them
fails, or the prescription cannot be written afterwards, every decrement that
already succeeded is reversed before the error is returned. The caller sees
either the whole prescription fulfilled or no net stock change.
"""
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from pharmacy.core.audit import AuditLog
from pharmacy.core.config import settings
from pharmacy.core.exceptions import (
    InsufficientStock,
    InternalStorageError,
    NotFound,
    UnknownMedicine,
    ValidationError,
)
from pharmacy.db.repository import MedicineRepository, PrescriptionRepository, Ref, parse_ref, storage_errors
from pharmacy.models import PRESCRIPTION, Medicine, Prescription
from pharmacy.services.inventory_service import adjust_stock
from pharmacy.services.sequence_service import next_sequence
from pharmacy.services.validators import MAX_QUANTITY, optional_text, require_external_ref, require_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItem:
    medicine_ref: Ref
    quantity: int
    key: tuple  # parsed reference, used to collapse duplicates


@dataclass
class _Consumed:
    """A line item whose decrement has been applied and may need reversing."""
    storage_id: str
    sequence_id: int
    name: str
    quantity: int

    def as_dict(self) -> dict:
        return {
            "medicine_ref": self.storage_id,
            "sequence_id": self.sequence_id,
            "name": self.name,
            "quantity": self.quantity,
        }


def _field(item: Any, *names: str) -> Any:
    for name in names:
        if isinstance(item, dict):
            if name in item:
                return item[name]
        elif hasattr(item, name):
            return getattr(item, name)
    return None


def _validate_line_items(line_items: Any) -> List[LineItem]:
    if line_items is None or isinstance(line_items, (str, bytes, dict)):
        raise ValidationError("line_items must be a non-empty list", field="line_items")
    try:
        items = list(line_items)
    except TypeError:
        raise ValidationError("line_items must be a non-empty list", field="line_items")
    if not items:
        raise ValidationError("line_items must be a non-empty list", field="line_items")

    parsed = []
    for index, raw in enumerate(items):
        ref = _field(raw, "medicine_ref", "medicineRef")
        quantity = _field(raw, "quantity")
        if ref is None:
            raise ValidationError(f"line_items[{index}].medicine_ref is required", index=index)
        key = parse_ref(ref, "medicine")
        quantity = require_int(quantity, f"line_items[{index}].quantity", minimum=1, maximum=MAX_QUANTITY)
        parsed.append(LineItem(medicine_ref=ref, quantity=quantity, key=key))
    return parsed


def _resolve(db: Session, items: List[LineItem]) -> "OrderedDict[tuple, Medicine]":
    medicines = MedicineRepository(db)
    resolved: "OrderedDict[tuple, Medicine]" = OrderedDict()
    with storage_errors(db, "resolving prescription medicines"):
        for item in items:
            if item.key in resolved:
                continue
            medicine = medicines.get(item.medicine_ref)
            if medicine is None:
                raise UnknownMedicine(item.medicine_ref)
            resolved[item.key] = medicine
    return resolved


def _precheck(items: List[LineItem], resolved: "OrderedDict[tuple, Medicine]"):
    """
    Snapshot check against the stock read during resolve.

    Demand is summed per medicine, so two line items for the same medicine are
    checked together. This only rejects requests that cannot succeed; the
    decrement phase is still guarded per record.
    """
    demand: "OrderedDict[str, int]" = OrderedDict()
    first_ref = {}
    by_storage_id = {}
    for item in items:
        medicine = resolved[item.key]
        demand[medicine.storage_id] = demand.get(medicine.storage_id, 0) + item.quantity
        first_ref.setdefault(medicine.storage_id, item.medicine_ref)
        by_storage_id[medicine.storage_id] = medicine

    for storage_id, requested in demand.items():
        medicine = by_storage_id[storage_id]
        if medicine.stock_quantity < requested:
            raise InsufficientStock(
                first_ref[storage_id], requested, medicine.stock_quantity, name=medicine.name
            )


def _restore(db: Session, consumed: _Consumed) -> Optional[bool]:
    """
    Put one decrement back, retrying storage failures.

    Returns True when restored, None when the medicine no longer exists
    (nothing to put back), False when every attempt failed.
    """
    attempts = max(1, settings.COMPENSATION_MAX_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        try:
            adjust_stock(db, consumed.storage_id, delta=consumed.quantity)
            return True
        except NotFound:
            logger.warning(
                f"Medicine {consumed.storage_id} ({consumed.name!r}) was deleted mid-fulfillment; "
                f"{consumed.quantity} units not restored"
            )
            return None
        except (InternalStorageError, ValidationError) as e:
            logger.error(
                f"Restore attempt {attempt}/{attempts} failed for {consumed.name!r} "
                f"(+{consumed.quantity}): {e}"
            )
            if attempt < attempts:
                time.sleep(settings.COMPENSATION_RETRY_DELAY_SECONDS)
    return False


def _compensate(db: Session, consumed: List[_Consumed], reason: str, cause: Optional[BaseException] = None):
    """
    Reverse every applied decrement, most recent first.

    Runs to completion even if individual restores fail. Stock that could not
    be restored is stranded; that is raised as InternalStorageError rather
    than hidden behind the original failure.
    """
    if not consumed:
        return

    restored, skipped, stranded = [], [], []
    for item in reversed(consumed):
        outcome = _restore(db, item)
        if outcome is True:
            restored.append(item.as_dict())
        elif outcome is None:
            skipped.append(item.as_dict())
        else:
            stranded.append(item.as_dict())

    AuditLog.log_compensation(reason, restored + skipped, stranded)

    if stranded:
        logger.critical(
            f"Compensation incomplete after {reason}: {len(stranded)} item(s) stranded: {stranded}"
        )
        raise InternalStorageError(
            "Stock could not be restored after a failed fulfillment",
            reason=reason,
            stranded=stranded,
        ) from cause

    logger.warning(f"Compensated {len(restored)} decrement(s) after {reason}")


def _persist(
    db: Session,
    patient_ref: str,
    doctor_ref: str,
    consumed: List[_Consumed],
    notes: Optional[str],
) -> Prescription:
    sequence_id = next_sequence(db, PRESCRIPTION)
    with storage_errors(db, "persisting prescription", sequence_id=sequence_id):
        prescription = PrescriptionRepository(db).add(
            Prescription(
                sequence_id=sequence_id,
                patient_ref=patient_ref,
                doctor_ref=doctor_ref,
                line_items=[
                    {"medicine_ref": c.storage_id, "sequence_id": c.sequence_id, "quantity": c.quantity}
                    for c in consumed
                ],
                notes=notes,
                created_at=datetime.now(timezone.utc),
            )
        )
        db.commit()
        db.refresh(prescription)
    return prescription


def create_prescription(
    db: Session,
    patient_ref: Any,
    doctor_ref: Any,
    line_items: Iterable[Any],
    notes: Optional[str] = None,
) -> Prescription:
    """
    Fulfill a prescription: consume stock for every line item and record it.

    Line items may be dicts or objects with `medicine_ref` and `quantity`.
    Line items are decremented one at a time, in request order, so that the
    set of applied decrements is known exactly when one fails.

    Raises:
        ValidationError: bad input, before any storage access
        UnknownMedicine: a line item references no medicine
        InsufficientStock: stock short at pre-check, or lost to a concurrent
            consumer during decrement (after compensation)
        InternalStorageError: storage failure (after compensation), or a
            compensation that could not restore stock
    """
    patient_ref = require_external_ref(patient_ref, "patient_ref")
    doctor_ref = require_external_ref(doctor_ref, "doctor_ref")
    items = _validate_line_items(line_items)
    notes = optional_text(notes, "notes", max_length=2000)

    resolved = _resolve(db, items)
    _precheck(items, resolved)

    # Snapshot identities now; later commits expire the resolved objects
    plan = [
        (item, resolved[item.key].storage_id, resolved[item.key].sequence_id, resolved[item.key].name)
        for item in items
    ]

    consumed: List[_Consumed] = []
    for item, storage_id, sequence_id, name in plan:
        try:
            adjust_stock(db, storage_id, delta=-item.quantity)
        except (InsufficientStock, NotFound) as e:
            logger.info(f"Lost stock race on {name!r} (requested {item.quantity}); rolling back")
            _compensate(db, consumed, reason=f"insufficient stock for {name!r}", cause=e)
            raise InsufficientStock(
                item.medicine_ref, item.quantity, e.context.get("available", 0), name=name
            ) from e
        except InternalStorageError as e:
            _compensate(db, consumed, reason=f"storage failure decrementing {name!r}", cause=e)
            raise
        consumed.append(_Consumed(storage_id, sequence_id, name, item.quantity))

    try:
        prescription = _persist(db, patient_ref, doctor_ref, consumed, notes)
    except InternalStorageError as e:
        _compensate(db, consumed, reason="storage failure persisting prescription", cause=e)
        raise

    logger.info(
        f"Created prescription #{prescription.sequence_id} for patient {patient_ref} "
        f"with {len(consumed)} line item(s)"
    )
    AuditLog.log_prescription_created(
        prescription.storage_id,
        prescription.sequence_id,
        patient_ref,
        doctor_ref,
        prescription.line_items,
    )
    return prescription


def get_prescription(db: Session, ref: Ref) -> Prescription:
    prescriptions = PrescriptionRepository(db)
    with storage_errors(db, "reading prescription", ref=ref):
        prescription = prescriptions.get(ref)
    if prescription is None:
        raise NotFound("Prescription", ref)
    return prescription


def list_prescriptions(db: Session, patient_ref: Any = None, doctor_ref: Any = None) -> List[Prescription]:
    """Prescriptions ordered by sequence id, optionally filtered by patient and/or doctor."""
    if patient_ref is not None:
        patient_ref = require_external_ref(patient_ref, "patient_ref")
    if doctor_ref is not None:
        doctor_ref = require_external_ref(doctor_ref, "doctor_ref")
    with storage_errors(db, "listing prescriptions"):
        return PrescriptionRepository(db).filter_by(patient_ref, doctor_ref)
