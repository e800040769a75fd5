# tests/test_locations.py
import pytest

from exceptions import ConflictError, LocationNotFoundError
from models import Location
from services import locations, workflow
from tests.conftest import auth_headers


def test_create_autogenerates_sequential_codes(db):
    a = locations.create_location(db, name="North", code=None)
    b = locations.create_location(db, name="South", code="auto", type="store")
    c = locations.create_location(db, name="East", code="east-1")
    assert (a.code, b.code, c.code) == ("LOC0001", "LOC0002", "EAST-1")
    assert b.type == "store"

    with pytest.raises(ConflictError):
        locations.create_location(db, name="Dup", code="loc0001")


def test_list_is_ordered_by_name_and_hides_inactive(db):
    locations.create_location(db, name="Zeta", code=None)
    beta = locations.create_location(db, name="Beta", code=None)
    locations.create_location(db, name="Alpha", code=None)
    locations.update_location(db, beta.id, {"is_active": False})

    assert [x.name for x in locations.list_locations(db)] == ["Alpha", "Zeta"]
    assert [x.name for x in locations.list_locations(db, include_inactive=True)] == ["Alpha", "Beta", "Zeta"]


def test_update_keeps_code_on_auto_and_rejects_taken_code(db):
    a = locations.create_location(db, name="A", code=None)
    locations.create_location(db, name="B", code=None)

    a = locations.update_location(db, a.id, {"code": "", "address": "1 Crank St"})
    assert a.code == "LOC0001"
    assert a.address == "1 Crank St"
    with pytest.raises(ConflictError):
        locations.update_location(db, a.id, {"code": "LOC0002"})
    with pytest.raises(LocationNotFoundError):
        locations.update_location(db, 999, {"name": "x"})


def test_delete_refused_while_in_use(db, warehouse, location, other_location, inward_bin):
    with pytest.raises(ConflictError):
        locations.delete_location(db, location.id)

    workflow.inward_bike(db, actor=warehouse, barcode="L1", model_sku="M", location_id=other_location.id)
    with pytest.raises(ConflictError):
        locations.delete_location(db, other_location.id)

    empty = locations.create_location(db, name="Pop-up", code=None)
    locations.delete_location(db, empty.id)
    assert db.get(Location, empty.id) is None


def test_location_endpoints(client, supervisor, warehouse):
    r = client.post("/api/assembly/locations", json={"name": "  Depot  "}, headers=auth_headers(supervisor))
    assert r.status_code == 200
    loc = r.json()["data"]
    assert loc["name"] == "Depot"
    assert loc["code"] == "LOC0001"

    r = client.post("/api/assembly/locations", json={"name": "Shop"}, headers=auth_headers(warehouse))
    assert r.status_code == 403

    r = client.put(f"/api/assembly/locations/{loc['id']}", json={"address": "Dock 4"},
                   headers=auth_headers(supervisor))
    assert r.json()["data"]["address"] == "Dock 4"

    r = client.get("/api/assembly/locations", headers=auth_headers(warehouse))
    assert [x["code"] for x in r.json()["data"]] == ["LOC0001"]

    r = client.delete(f"/api/assembly/locations/{loc['id']}", headers=auth_headers(supervisor))
    assert r.json() == {"success": True, "data": None, "message": "Location deleted"}
    r = client.delete(f"/api/assembly/locations/{loc['id']}", headers=auth_headers(supervisor))
    assert r.status_code == 404
    assert r.json()["code"] == "LOCATION_NOT_FOUND"
