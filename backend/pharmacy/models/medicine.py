from sqlalchemy import Column, DateTime, Integer, Numeric, String
from pharmacy.models.document import MEDICINE, PharmacyDocument


class Medicine(PharmacyDocument):
    """
    Pharmacy inventory item.

    INVARIANT: stock_quantity never goes negative. Consumption goes through the
    conditional decrement in MedicineRepository, never a read-modify-write.
    """
    KIND = MEDICINE

    name = Column(String(255))
    sku = Column(String(64), nullable=True)  # not unique
    unit_price = Column(Numeric(10, 2))
    unit_label = Column(String(32), default="unit")
    stock_quantity = Column(Integer, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"polymorphic_identity": MEDICINE}

    def __repr__(self):
        return f"<Medicine #{self.sequence_id} {self.name!r} stock={self.stock_quantity}>"
