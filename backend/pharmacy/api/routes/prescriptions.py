"""Prescriptions: fulfillment and read-only listing."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmacy.api.deps import get_db
from pharmacy.schemas.prescription import PrescriptionCreate, PrescriptionRecord
from pharmacy.services import prescription_service

router = APIRouter()


@router.get("", response_model=List[PrescriptionRecord])
def list_prescriptions(
    patient_ref: Optional[str] = Query(None),
    doctor_ref: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return prescription_service.list_prescriptions(db, patient_ref=patient_ref, doctor_ref=doctor_ref)


@router.get("/{ref}", response_model=PrescriptionRecord)
def get_prescription(ref: str, db: Session = Depends(get_db)):
    return prescription_service.get_prescription(db, ref)


@router.post("", response_model=PrescriptionRecord, status_code=201)
def create_prescription(payload: PrescriptionCreate, db: Session = Depends(get_db)):
    """Consume stock for every line item and record the prescription, or change nothing."""
    return prescription_service.create_prescription(
        db,
        patient_ref=payload.patient_ref,
        doctor_ref=payload.doctor_ref,
        line_items=payload.line_items,
        notes=payload.notes,
    )
