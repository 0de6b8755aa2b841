from sqlalchemy import JSON, Column, String
from pharmacy.models.document import PRESCRIPTION, PharmacyDocument


class Prescription(PharmacyDocument):
    """Fulfilled prescription. Immutable once written."""
    KIND = PRESCRIPTION

    patient_ref = Column(String(64), index=True)
    doctor_ref = Column(String(64), index=True)
    # [{"medicine_ref": <storage_id>, "sequence_id": <int>, "quantity": <int>}, ...] in request order
    line_items = Column(JSON)
    notes = Column(String(2000), nullable=True)

    __mapper_args__ = {"polymorphic_identity": PRESCRIPTION}

    def __repr__(self):
        return f"<Prescription #{self.sequence_id} patient={self.patient_ref} items={len(self.line_items or [])}>"
