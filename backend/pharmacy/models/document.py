import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, UniqueConstraint
from pharmacy.db.base import Base

# Discriminator values. Every document in the partition carries one.
MEDICINE = "medicine"
PRESCRIPTION = "prescription"
COUNTER = "counter"

# Largest value an Integer column holds (signed 64-bit)
MAX_INT = 2**63 - 1


def new_storage_id() -> str:
    return uuid.uuid4().hex


class PharmacyDocument(Base):
    """
    Shared storage partition for medicines, prescriptions and sequence counters.

    Single-table inheritance: each kind is its own mapped class, `kind` is the
    discriminator. Kind-specific columns are nullable at the table level.
    """
    __tablename__ = "pharmacy_documents"
    __table_args__ = (
        UniqueConstraint("kind", "sequence_id", name="uq_documents_kind_sequence"),
        CheckConstraint("stock_quantity >= 0", name="ck_documents_stock_non_negative"),
    )

    storage_id = Column(String(32), primary_key=True, default=new_storage_id)
    kind = Column(String(16), nullable=False, index=True)
    sequence_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"polymorphic_on": kind}
