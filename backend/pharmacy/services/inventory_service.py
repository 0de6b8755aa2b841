"""Medicine catalogue and stock adjustment.

Stock only changes through `adjust_stock` (and the fulfillment saga, which
calls it). Every change is a single conditional UPDATE; there is no
read-modify-write of stock_quantity anywhere.
"""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy.orm import Session

from pharmacy.core.audit import AuditLog
from pharmacy.core.config import settings
from pharmacy.core.exceptions import InsufficientStock, NotFound, ValidationError
from pharmacy.db.repository import MedicineRepository, Ref, storage_errors
from pharmacy.models import MEDICINE, Medicine
from pharmacy.services.sequence_service import next_sequence
from pharmacy.services.validators import MAX_QUANTITY, optional_text, require_int, require_price, require_text

logger = logging.getLogger(__name__)

DEFAULT_UNIT_LABEL = "unit"


def register_medicine(
    db: Session,
    name: str,
    unit_price: Any,
    stock_quantity: Any = 0,
    sku: Optional[str] = None,
    unit_label: Optional[str] = None,
) -> Medicine:
    """Validate, allocate a sequence id, and store a new medicine."""
    name = require_text(name, "name", max_length=255)
    price = require_price(unit_price)
    stock = require_int(stock_quantity, "stock_quantity", minimum=0, maximum=MAX_QUANTITY)
    sku = optional_text(sku, "sku", max_length=64)
    unit_label = optional_text(unit_label, "unit_label", max_length=32) or DEFAULT_UNIT_LABEL

    sequence_id = next_sequence(db, MEDICINE)

    with storage_errors(db, "registering medicine", name=name):
        now = datetime.now(timezone.utc)
        medicine = MedicineRepository(db).add(
            Medicine(
                sequence_id=sequence_id,
                name=name,
                sku=sku,
                unit_price=price,
                unit_label=unit_label,
                stock_quantity=stock,
                created_at=now,
                updated_at=now,
            )
        )
        db.commit()
        db.refresh(medicine)

    logger.info(f"Registered medicine #{medicine.sequence_id} {medicine.name!r} with stock {stock}")
    AuditLog.log_medicine_event(
        "registered",
        medicine.storage_id,
        medicine.sequence_id,
        changes={"name": name, "unit_price": str(price), "stock_quantity": stock},
    )
    return medicine


def list_medicines(db: Session, search: Optional[str] = None) -> List[Medicine]:
    """All medicines ordered by sequence id, optionally filtered by name/SKU substring."""
    with storage_errors(db, "listing medicines"):
        return MedicineRepository(db).search(search)


def list_low_stock(db: Session, threshold: Optional[int] = None) -> List[Medicine]:
    """Medicines below the threshold, lowest stock first."""
    if threshold is None:
        threshold = settings.LOW_STOCK_THRESHOLD
    threshold = require_int(threshold, "threshold", minimum=0)
    with storage_errors(db, "listing low stock"):
        return MedicineRepository(db).low_stock(threshold)


def get_medicine(db: Session, ref: Ref) -> Medicine:
    medicines = MedicineRepository(db)
    with storage_errors(db, "reading medicine", ref=ref):
        medicine = medicines.get(ref)
    if medicine is None:
        raise NotFound("Medicine", ref)
    return medicine


def update_medicine(
    db: Session,
    ref: Ref,
    name: Optional[str] = None,
    sku: Optional[str] = None,
    unit_price: Any = None,
    unit_label: Optional[str] = None,
) -> Medicine:
    """Edit catalogue fields. Stock is not touched here; use adjust_stock."""
    changes = {}
    if name is not None:
        changes["name"] = require_text(name, "name", max_length=255)
    if sku is not None:
        changes["sku"] = optional_text(sku, "sku", max_length=64)
    if unit_price is not None:
        changes["unit_price"] = require_price(unit_price)
    if unit_label is not None:
        changes["unit_label"] = optional_text(unit_label, "unit_label", max_length=32) or DEFAULT_UNIT_LABEL

    medicine = get_medicine(db, ref)
    if not changes:
        return medicine

    with storage_errors(db, "updating medicine", ref=ref):
        for field, value in changes.items():
            setattr(medicine, field, value)
        medicine.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(medicine)

    AuditLog.log_medicine_event(
        "updated",
        medicine.storage_id,
        medicine.sequence_id,
        changes={k: str(v) if v is not None else None for k, v in changes.items()},
    )
    return medicine


def delete_medicine(db: Session, ref: Ref) -> Medicine:
    """
    Remove a medicine document.

    Prescriptions that reference it keep their line items unchanged; those
    references become dangling.
    """
    medicine = get_medicine(db, ref)
    storage_id, sequence_id, name = medicine.storage_id, medicine.sequence_id, medicine.name

    with storage_errors(db, "deleting medicine", ref=ref):
        db.delete(medicine)
        db.commit()

    logger.info(f"Deleted medicine #{sequence_id} {name!r}")
    AuditLog.log_medicine_event("deleted", storage_id, sequence_id, changes={"name": name})
    return medicine


def _validate_adjustment(delta: Any, absolute: Any) -> Tuple[str, int]:
    if (delta is None) == (absolute is None):
        raise ValidationError("Provide exactly one of delta or absolute")
    if absolute is not None:
        return "absolute", require_int(absolute, "absolute", minimum=0, maximum=MAX_QUANTITY)
    delta = require_int(delta, "delta", maximum=MAX_QUANTITY)
    if delta == 0:
        raise ValidationError("delta must be non-zero", field="delta")
    return "delta", delta


def adjust_stock(db: Session, ref: Ref, delta: Any = None, absolute: Any = None) -> Medicine:
    """
    Change a medicine's stock by `delta` or set it to `absolute`.

    A negative delta is applied as "decrement only if stock >= |delta|" in a
    single UPDATE, so two concurrent consumers can never both pass the check
    and drive the quantity negative. The existence check runs first so that a
    rejected decrement can be reported as InsufficientStock rather than
    NotFound.

    Raises:
        ValidationError: bad arguments (no storage access happens), or an
            increment that would take stock past MAX_QUANTITY
        NotFound: no medicine matches `ref`
        InsufficientStock: the decrement would go below zero
        InternalStorageError: storage failure
    """
    mode, amount = _validate_adjustment(delta, absolute)
    medicines = MedicineRepository(db)

    with storage_errors(db, "adjusting stock", ref=ref):
        medicine = medicines.get(ref)
        if medicine is None:
            raise NotFound("Medicine", ref)
        storage_id, name = medicine.storage_id, medicine.name

        if mode == "absolute":
            applied = medicines.set_stock(storage_id, amount)
        elif amount < 0:
            applied = medicines.decrement_if_available(storage_id, -amount)
        else:
            applied = medicines.increment(storage_id, amount, MAX_QUANTITY)

        if not applied:
            db.rollback()
            if mode == "delta" and amount < 0:
                available = medicines.current_stock(storage_id)
                logger.info(f"Rejected decrement of {-amount} for {name!r}: available {available}")
                raise InsufficientStock(ref, -amount, available, name=name)
            if mode == "delta" and medicines.current_stock(storage_id) is not None:
                raise ValidationError(
                    f"Stock for {name!r} cannot exceed {MAX_QUANTITY}", field="delta", value=amount
                )
            # The record vanished between the existence check and the update
            raise NotFound("Medicine", ref)

        db.commit()
        db.refresh(medicine)

    logger.debug(f"Stock for {name!r} now {medicine.stock_quantity} ({mode} {amount})")
    AuditLog.log_stock_adjusted(storage_id, mode, amount, medicine.stock_quantity)
    return medicine
