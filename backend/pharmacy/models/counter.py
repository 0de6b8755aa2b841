from sqlalchemy import Column, Integer, String
from pharmacy.models.document import COUNTER, PharmacyDocument


class SequenceCounter(PharmacyDocument):
    """Holds the last value handed out for a named sequence (one per entity kind)."""
    KIND = COUNTER

    counter_name = Column(String(32), unique=True)
    value = Column(Integer, default=0)

    __mapper_args__ = {"polymorphic_identity": COUNTER}
