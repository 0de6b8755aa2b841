"""Medicines: catalogue CRUD and stock adjustment for the pharmacy admin UI."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmacy.api.deps import get_db
from pharmacy.schemas.medicine import MedicineCreate, MedicineRecord, MedicineUpdate, StockAdjustment
from pharmacy.services import inventory_service

router = APIRouter()


@router.get("", response_model=List[MedicineRecord])
def list_medicines(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Inventory list ordered by sequence id, with name/SKU search."""
    return inventory_service.list_medicines(db, search=search)


@router.get("/low-stock", response_model=List[MedicineRecord])
def list_low_stock(
    threshold: Optional[int] = Query(None, description="Stock threshold for low stock alert"),
    db: Session = Depends(get_db),
):
    """Medicines below the threshold, lowest stock first."""
    return inventory_service.list_low_stock(db, threshold=threshold)


@router.get("/{ref}", response_model=MedicineRecord)
def get_medicine(ref: str, db: Session = Depends(get_db)):
    return inventory_service.get_medicine(db, ref)


@router.post("", response_model=MedicineRecord, status_code=201)
def register_medicine(item: MedicineCreate, db: Session = Depends(get_db)):
    """Add a new medicine to inventory."""
    return inventory_service.register_medicine(
        db,
        name=item.name,
        sku=item.sku,
        unit_price=item.unit_price,
        unit_label=item.unit_label,
        stock_quantity=item.stock_quantity,
    )


@router.put("/{ref}", response_model=MedicineRecord)
def update_medicine(ref: str, updates: MedicineUpdate, db: Session = Depends(get_db)):
    """Update catalogue fields. Stock changes go through /stock."""
    return inventory_service.update_medicine(
        db,
        ref,
        name=updates.name,
        sku=updates.sku,
        unit_price=updates.unit_price,
        unit_label=updates.unit_label,
    )


@router.post("/{ref}/stock", response_model=MedicineRecord)
def adjust_stock(ref: str, adjustment: StockAdjustment, db: Session = Depends(get_db)):
    """Relative (delta) or absolute stock change."""
    return inventory_service.adjust_stock(db, ref, delta=adjustment.delta, absolute=adjustment.absolute)


@router.delete("/{ref}", response_model=dict)
def delete_medicine(ref: str, db: Session = Depends(get_db)):
    medicine = inventory_service.delete_medicine(db, ref)
    return {
        "message": f"Deleted {medicine.name}",
        "storage_id": medicine.storage_id,
        "sequence_id": medicine.sequence_id,
    }
