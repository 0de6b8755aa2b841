"""Seed pharmacy inventory with a starter set of medicines."""
from typing import Iterable, List

from sqlalchemy.orm import Session

from pharmacy.db.init_db import init_db
from pharmacy.db.session import SessionLocal
from pharmacy.models import Medicine
from pharmacy.services.inventory_service import list_medicines, register_medicine

MEDICINES = [
    {"name": "Paracetamol 500mg", "sku": "PARA-500", "unit_price": 2.50, "unit_label": "tablet", "stock_quantity": 200},
    {"name": "Ibuprofen 400mg", "sku": "IBU-400", "unit_price": 3.10, "unit_label": "tablet", "stock_quantity": 150},
    {"name": "Amoxicillin 500mg", "sku": "AMOX-500", "unit_price": 8.75, "unit_label": "capsule", "stock_quantity": 80},
    {"name": "Cetirizine 10mg", "sku": "CET-10", "unit_price": 1.90, "unit_label": "tablet", "stock_quantity": 120},
    {"name": "Omeprazole 20mg", "sku": "OME-20", "unit_price": 4.20, "unit_label": "capsule", "stock_quantity": 90},
    {"name": "Metformin 850mg", "sku": "MET-850", "unit_price": 2.05, "unit_label": "tablet", "stock_quantity": 60},
    {"name": "Salbutamol Inhaler 100mcg", "sku": "SALB-100", "unit_price": 12.40, "unit_label": "inhaler", "stock_quantity": 15},
    {"name": "ORS Sachet", "sku": "ORS-21", "unit_price": 0.80, "unit_label": "sachet", "stock_quantity": 300},
]


def seed_inventory(db: Session, medicines: Iterable[dict] = MEDICINES) -> List[Medicine]:
    """Register each medicine whose name is not already in inventory."""
    existing = {m.name.lower() for m in list_medicines(db)}
    created = []
    for entry in medicines:
        if entry["name"].lower() in existing:
            continue
        created.append(register_medicine(db, **entry))
        existing.add(entry["name"].lower())
    return created


if __name__ == "__main__":
    init_db()
    db = SessionLocal()
    try:
        created = seed_inventory(db)
        print(f"✅ Seeded {len(created)} medicines")
        for m in created:
            print(f"   #{m.sequence_id} {m.name}: {m.stock_quantity} {m.unit_label}")
    finally:
        db.close()
