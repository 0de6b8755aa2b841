"""Input checks shared by the inventory and prescription services.

All of these run before any storage access and raise ValidationError.
"""
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pharmacy.core.exceptions import ValidationError
from pharmacy.models import MAX_INT

# Numeric(10, 2)
MAX_PRICE = Decimal("100000000")

# Ceiling for stock levels and any single quantity or delta. Far enough below
# MAX_INT that stock + delta cannot overflow the column.
MAX_QUANTITY = 2**31 - 1


def require_text(value: Any, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    # Collapse internal whitespace runs
    value = " ".join(value.strip().split())
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field=field)
    return value


def optional_text(value: Any, field: str, max_length: int) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field=field)
    return value


def require_int(value: Any, field: str, minimum: Optional[int] = None, maximum: int = MAX_INT) -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", field=field, value=value)
    if value > maximum or value < -maximum:
        raise ValidationError(f"{field} is out of range (max {maximum})", field=field, value=str(value))
    return value


def require_price(value: Any, field: str = "unit_price") -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{field} must be finite", field=field)
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field, value=str(value))
    if not price.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    if price < 0:
        raise ValidationError(f"{field} cannot be negative", field=field, value=str(value))
    if price >= MAX_PRICE:
        raise ValidationError(f"{field} must be below {MAX_PRICE}", field=field, value=str(value))
    return price.quantize(Decimal("0.01"))


def require_external_ref(value: Any, field: str) -> str:
    """Patient/doctor identifiers are opaque; only presence and shape are checked."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, int):
        return str(value)
    return require_text(value, field, max_length=64)
