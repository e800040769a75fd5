# tests/conftest.py
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db, make_engine
from deps.auth import create_access_token, get_password_hash
from main import app
from models import Bin, BinZone, Location, Role, UserProfile

PASSWORD = "secret123"


@pytest.fixture()
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture()
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------- people ----------
@pytest.fixture()
def make_user(db):
    _hash = get_password_hash(PASSWORD)

    def _make(role: Role, name: str, email: str | None = None, is_active: bool = True) -> UserProfile:
        u = UserProfile(
            email=email or f"{name.lower().replace(' ', '.')}@buildline.test",
            full_name=name,
            role=role.value,
            is_active=is_active,
            password_hash=_hash,
        )
        db.add(u)
        db.commit()
        db.refresh(u)
        return u

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user(Role.ADMIN, "Ada Admin")


@pytest.fixture()
def supervisor(make_user):
    return make_user(Role.SUPERVISOR, "Sam Supervisor")


@pytest.fixture()
def warehouse(make_user):
    return make_user(Role.WAREHOUSE_STAFF, "Wes Warehouse")


@pytest.fixture()
def tech(make_user):
    return make_user(Role.TECHNICIAN, "Tara Tech")


@pytest.fixture()
def tech2(make_user):
    return make_user(Role.TECHNICIAN, "Theo Tech")


def auth_headers(user: UserProfile) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


# ---------- places ----------
@pytest.fixture()
def location(db):
    loc = Location(name="Main Warehouse", code="LOC0001", type="warehouse")
    db.add(loc)
    db.commit()
    db.refresh(loc)
    return loc


@pytest.fixture()
def other_location(db):
    loc = Location(name="City Store", code="LOC0002", type="store")
    db.add(loc)
    db.commit()
    db.refresh(loc)
    return loc


@pytest.fixture()
def make_bin(db):
    def _make(location: Location, code: str, zone: BinZone = BinZone.INWARD, capacity: int = 2) -> Bin:
        b = Bin(location_id=location.id, bin_code=code, bin_name=f"Bin {code}",
                status_zone=zone.value, capacity=capacity, current_occupancy=0)
        db.add(b)
        db.commit()
        db.refresh(b)
        return b

    return _make


@pytest.fixture()
def inward_bin(make_bin, location):
    return make_bin(location, "B0001", BinZone.INWARD, capacity=2)


@pytest.fixture()
def ready_bin(make_bin, location):
    return make_bin(location, "B0009", BinZone.READY, capacity=1)
