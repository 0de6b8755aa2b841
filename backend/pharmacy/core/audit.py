"""
Audit logging for inventory-changing operations.

One JSON line per business event on the `audit` logger, so stock movements and
fulfillment outcomes can be shipped to centralized logging and reconciled.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for stock and prescription events."""

    @staticmethod
    def log_medicine_event(
        action: str,  # "registered", "updated", "deleted"
        storage_id: str,
        sequence_id: int,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Usage:
            AuditLog.log_medicine_event("registered", med.storage_id, med.sequence_id, {"stock": 100})
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"medicine.{action}",
            "storage_id": storage_id,
            "sequence_id": sequence_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_stock_adjusted(
        storage_id: str,
        mode: str,  # "delta" or "absolute"
        amount: int,
        stock_after: int,
    ):
        log_entry = {
            "timestamp": _now(),
            "event_type": "stock.adjusted",
            "storage_id": storage_id,
            "mode": mode,
            "amount": amount,
            "stock_after": stock_after,
        }
        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_prescription_created(
        storage_id: str,
        sequence_id: int,
        patient_ref: str,
        doctor_ref: str,
        line_items: List[dict],
    ):
        log_entry = {
            "timestamp": _now(),
            "event_type": "prescription.created",
            "storage_id": storage_id,
            "sequence_id": sequence_id,
            "patient_ref": patient_ref,
            "doctor_ref": doctor_ref,
            "line_items": line_items,
        }
        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_compensation(
        reason: str,
        restored: List[dict],
        stranded: Optional[List[dict]] = None,
    ):
        """
        Log the outcome of a fulfillment rollback.

        Stranded items are stock that was decremented but could not be put
        back; they need manual reconciliation, so they are logged at CRITICAL.
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": "prescription.compensated",
            "reason": reason,
            "restored": restored,
        }

        if stranded:
            log_entry["event_type"] = "prescription.compensation_failed"
            log_entry["stranded"] = stranded
            audit_logger.critical(json.dumps(log_entry))
            return

        audit_logger.warning(json.dumps(log_entry))
