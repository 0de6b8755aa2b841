"""
HTTP surface tests: routing, status codes and error bodies.
"""
import pytest
from fastapi.testclient import TestClient

from pharmacy.api.deps import get_db
from pharmacy.core.exceptions import InternalStorageError
from pharmacy.main import app
from pharmacy.services import inventory_service


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # Not entered as a context manager: the startup hook would create tables
    # in the configured database instead of the test one.
    yield TestClient(app)
    app.dependency_overrides.clear()


def _register(client, name="Paracetamol 500mg", stock=10, price="2.50"):
    response = client.post(
        "/medicines",
        json={"name": name, "unit_price": price, "stock_quantity": stock, "unit_label": "tablet"},
    )
    assert response.status_code == 201, response.text
    return response.json()


# ── Health ───────────────────────────────────────────────────

class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_db_health(self, client):
        assert client.get("/db/health").json() == {"ok": True}


# ── Medicines ────────────────────────────────────────────────

class TestMedicineRoutes:
    def test_register_and_list(self, client):
        created = _register(client)
        assert created["sequence_id"] == 1
        assert created["stock_quantity"] == 10
        assert created["unit_price"] == "2.50"
        assert len(created["storage_id"]) == 32

        second = _register(client, name="Ibuprofen 400mg")
        listed = client.get("/medicines").json()
        assert [m["sequence_id"] for m in listed] == [1, 2]
        assert second["sequence_id"] == 2

    def test_search_and_low_stock(self, client):
        _register(client, name="Metformin 850mg", stock=50)
        _register(client, name="Salbutamol Inhaler", stock=3)
        assert [m["name"] for m in client.get("/medicines", params={"search": "metf"}).json()] == [
            "Metformin 850mg"
        ]
        low = client.get("/medicines/low-stock", params={"threshold": 10}).json()
        assert [m["name"] for m in low] == ["Salbutamol Inhaler"]

    def test_get_by_either_id(self, client):
        created = _register(client)
        assert client.get(f"/medicines/{created['storage_id']}").json()["sequence_id"] == 1
        assert client.get("/medicines/1").json()["storage_id"] == created["storage_id"]

    def test_invalid_registration_is_400(self, client):
        response = client.post("/medicines", json={"name": "  ", "unit_price": "1.00"})
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_adjust_stock(self, client):
        _register(client, stock=10)
        response = client.post("/medicines/1/stock", json={"delta": -4})
        assert response.status_code == 200
        assert response.json()["stock_quantity"] == 6

        response = client.post("/medicines/1/stock", json={"absolute": 30})
        assert response.json()["stock_quantity"] == 30

    def test_insufficient_stock_is_409_with_context(self, client):
        _register(client, stock=3)
        response = client.post("/medicines/1/stock", json={"delta": -5})
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "insufficient_stock"
        assert body["context"]["requested"] == 5
        assert body["context"]["available"] == 3
        assert client.get("/medicines/1").json()["stock_quantity"] == 3

    def test_missing_medicine_is_404(self, client):
        response = client.get("/medicines/42")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_malformed_ref_is_400(self, client):
        assert client.get("/medicines/not-a-ref").status_code == 400

    def test_out_of_range_ref_is_400(self, client):
        response = client.get("/medicines/99999999999999999999")
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_update_and_delete(self, client):
        _register(client, name="Dolo", stock=9)
        updated = client.put("/medicines/1", json={"name": "Dolo 650", "unit_price": "3.00"}).json()
        assert updated["name"] == "Dolo 650"
        assert updated["stock_quantity"] == 9

        response = client.delete("/medicines/1")
        assert response.status_code == 200
        assert response.json()["sequence_id"] == 1
        assert client.get("/medicines/1").status_code == 404

    def test_storage_error_body_is_generic(self, client, monkeypatch):
        def broken(db, search=None):
            raise InternalStorageError("Storage failure while listing medicines", table="pharmacy_documents")

        monkeypatch.setattr(inventory_service, "list_medicines", broken)
        response = client.get("/medicines")
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "internal_storage_error"
        assert body["context"] == {}
        assert "pharmacy_documents" not in response.text


# ── Prescriptions ────────────────────────────────────────────

class TestPrescriptionRoutes:
    def test_create_get_and_list(self, client):
        x = _register(client, name="X", stock=5)
        _register(client, name="Y", stock=5)

        response = client.post(
            "/prescriptions",
            json={
                "patient_ref": 7,
                "doctor_ref": "dr-lee",
                "line_items": [
                    {"medicine_ref": x["storage_id"], "quantity": 2},
                    {"medicine_ref": 2, "quantity": 1},
                ],
            },
        )
        assert response.status_code == 201, response.text
        prescription = response.json()
        assert prescription["sequence_id"] == 1
        assert prescription["patient_ref"] == "7"
        assert [i["sequence_id"] for i in prescription["line_items"]] == [1, 2]

        assert client.get("/medicines/1").json()["stock_quantity"] == 3
        assert client.get("/prescriptions/1").json()["storage_id"] == prescription["storage_id"]
        assert len(client.get("/prescriptions", params={"patient_ref": "7"}).json()) == 1
        assert client.get("/prescriptions", params={"doctor_ref": "someone-else"}).json() == []

    def test_shortfall_changes_nothing(self, client):
        _register(client, name="X", stock=5)
        _register(client, name="Y", stock=1)

        response = client.post(
            "/prescriptions",
            json={
                "patient_ref": "p",
                "doctor_ref": "d",
                "line_items": [{"medicine_ref": 1, "quantity": 2}, {"medicine_ref": 2, "quantity": 2}],
            },
        )
        assert response.status_code == 409
        assert response.json()["context"]["medicine_ref"] == 2
        assert client.get("/medicines/1").json()["stock_quantity"] == 5
        assert client.get("/prescriptions").json() == []

    def test_unknown_medicine_is_422(self, client):
        response = client.post(
            "/prescriptions",
            json={"patient_ref": "p", "doctor_ref": "d", "line_items": [{"medicine_ref": 9, "quantity": 1}]},
        )
        assert response.status_code == 422
        assert response.json()["error"] == "unknown_medicine"

    def test_malformed_body_is_400_with_engine_shape(self, client):
        response = client.post(
            "/prescriptions",
            json={"doctor_ref": "d", "line_items": [{"medicine_ref": 1, "quantity": "many"}]},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        locs = [error["loc"] for error in body["context"]["errors"]]
        assert ["body", "patient_ref"] in locs
        assert ["body", "line_items", "0", "quantity"] in locs

    def test_missing_prescription_is_404(self, client):
        assert client.get("/prescriptions/3").status_code == 404
