"""Shared fixtures: a fresh file-backed SQLite database per test.

File-backed (not :memory:) so that several sessions on separate connections,
including from separate threads, see the same data.
"""
import pytest

from pharmacy.core.config import settings
from pharmacy.db.base import Base
from pharmacy.db.repository import MedicineRepository
from pharmacy.db.session import create_engine_for, create_session_factory
from pharmacy.services.inventory_service import register_medicine
import pharmacy.models  # noqa: F401 - register models


@pytest.fixture
def engine(tmp_path):
    engine = create_engine_for(f"sqlite:///{tmp_path / 'pharmacy_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(settings, "COMPENSATION_RETRY_DELAY_SECONDS", 0)


@pytest.fixture
def make_medicine(db):
    """Register a medicine and return its storage id."""
    def _make(name="Paracetamol 500mg", stock=10, price=2.5, **extra):
        medicine = register_medicine(db, name=name, unit_price=price, stock_quantity=stock, **extra)
        return medicine.storage_id
    return _make


@pytest.fixture
def stock_of(session_factory):
    """Read a medicine's stock through an independent session."""
    def _stock(storage_id):
        session = session_factory()
        try:
            return MedicineRepository(session).current_stock(storage_id)
        finally:
            session.close()
    return _stock
