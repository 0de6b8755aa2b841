"""
Pharmacy API: medicine inventory and prescription fulfillment.

ARCHITECTURE:
- FastAPI routers are a thin binding over the services in pharmacy.services
- SQLAlchemy storage: one document table shared by medicines, prescriptions
  and sequence counters, distinguished by `kind`
- Stock consistency comes from per-record conditional updates plus a
  compensating rollback in prescription fulfillment, not from locks
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from pharmacy.api.deps import get_db
from pharmacy.api.routes import medicines, prescriptions
from pharmacy.core.config import settings
from pharmacy.core.exceptions import PharmacyError, ValidationError, error_payload
from pharmacy.db.init_db import init_db, storage_health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    logger.info(f"Starting {settings.SERVICE_NAME} ({settings.ENVIRONMENT})")
    init_db()
    yield
    logger.info(f"Stopping {settings.SERVICE_NAME}")


app = FastAPI(
    title="Pharmacy API",
    description="Medicine inventory and prescription fulfillment.",
    version="0.1.0",
    lifespan=lifespan,
)

# Restrict CORS to specific origins, methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
    max_age=600,
)


@app.exception_handler(PharmacyError)
async def pharmacy_error_handler(request: Request, exc: PharmacyError):
    return JSONResponse(status_code=exc.http_status, content=error_payload(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies get the same 400 shape as engine-side validation."""
    errors = [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    error = ValidationError("Request validation failed", errors=errors)
    return JSONResponse(status_code=error.http_status, content=error_payload(error))


app.include_router(medicines.router, prefix="/medicines", tags=["medicines"])
app.include_router(prescriptions.router, prefix="/prescriptions", tags=["prescriptions"])


@app.get("/health")
def health():
    return {"status": "ok", "service": settings.SERVICE_NAME}


@app.get("/db/health")
def db_health(db: Session = Depends(get_db)):
    return {"ok": storage_health(db)}
