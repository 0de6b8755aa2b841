from pydantic import BaseModel
from typing import List, Optional, Union
from datetime import datetime


class LineItemIn(BaseModel):
    medicine_ref: Union[int, str]  # sequence id or storage id
    quantity: int


class PrescriptionCreate(BaseModel):
    patient_ref: Union[int, str]
    doctor_ref: Union[int, str]
    line_items: List[LineItemIn]
    notes: Optional[str] = None


class LineItemRecord(BaseModel):
    medicine_ref: str
    sequence_id: int
    quantity: int


class PrescriptionRecord(BaseModel):
    storage_id: str
    sequence_id: int
    patient_ref: str
    doctor_ref: str
    line_items: List[LineItemRecord]
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
