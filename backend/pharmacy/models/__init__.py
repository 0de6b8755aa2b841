from pharmacy.models.document import PharmacyDocument, MEDICINE, PRESCRIPTION, COUNTER, MAX_INT
from pharmacy.models.medicine import Medicine
from pharmacy.models.prescription import Prescription
from pharmacy.models.counter import SequenceCounter

__all__ = [
    "PharmacyDocument",
    "Medicine",
    "Prescription",
    "SequenceCounter",
    "MEDICINE",
    "PRESCRIPTION",
    "COUNTER",
    "MAX_INT",
]
