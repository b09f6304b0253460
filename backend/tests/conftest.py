import os
import tempfile
from datetime import date, time, timedelta
from types import SimpleNamespace

# settings and engine are built at import time: environment first
_TMP = tempfile.mkdtemp(prefix="dockbook-tests-")
os.environ["APP_ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DB_URL"] = f"sqlite:///{os.path.join(_TMP, 'dockbook.db')}"
os.environ["RESCHEDULER_ENABLED"] = "false"
for _k in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REFRESH_TOKEN", "EMAIL_FROM"):
    os.environ.pop(_k, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from dockbook.core.context import RequestContext  # noqa: E402
from dockbook.core.permissions import Role  # noqa: E402
from dockbook.core.security import create_access_token, hash_password  # noqa: E402
from dockbook.database import Base, SessionLocal, engine  # noqa: E402
from dockbook.database_init import import_models  # noqa: E402
from dockbook.models.company import Company  # noqa: E402
from dockbook.models.slot import SlotType, TimeSlot  # noqa: E402
from dockbook.models.user import User  # noqa: E402
from dockbook.models.warehouse import Warehouse, WarehouseZone  # noqa: E402

PASSWORD = "dock-pass-123"
_PASSWORD_HASH = hash_password(PASSWORD)

# far enough ahead that "today" never interferes
DAY = date.today() + timedelta(days=30)


@pytest.fixture(autouse=True)
def schema():
    import_models()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db(schema):
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def _user(db, email, role, company_id=None, name=None):
    u = User(
        email=email,
        password_hash=_PASSWORD_HASH,
        full_name=name or email.split("@")[0].title(),
        user_type=role,
        company_id=company_id,
        is_active=True,
    )
    db.add(u)
    return u


@pytest.fixture
def seed(db):
    acme = Company(name="Acme Freight", requires_approval=False)
    strict = Company(name="Strict Haulage", requires_approval=True)
    db.add_all([acme, strict])
    db.flush()

    wh = Warehouse(name="Central DC", address="Dock Street 1", company_id=acme.id)
    other_wh = Warehouse(name="North DC", address="Harbour 7", company_id=acme.id)
    db.add_all([wh, other_wh])
    db.flush()
    zone = WarehouseZone(warehouse_id=wh.id, name="Gate A")
    foreign_zone = WarehouseZone(warehouse_id=other_wh.id, name="Gate N")
    db.add_all([zone, foreign_zone])

    root = _user(db, "root@dockbook.io", Role.SUPER_ADMIN)
    admin = _user(db, "admin@dockbook.io", Role.ADMIN, acme.id)
    logistics = _user(db, "logistics@dockbook.io", Role.LOGISTICS, acme.id)
    driver = _user(db, "driver@dockbook.io", Role.DRIVER, acme.id, name="Dana Driver")
    other_driver = _user(db, "driver2@dockbook.io", Role.DRIVER, acme.id, name="Otto Other")
    strict_admin = _user(db, "boss@strict.dockbook.io", Role.ADMIN, strict.id)
    db.commit()

    return SimpleNamespace(
        acme=acme, strict=strict, wh=wh, other_wh=other_wh, zone=zone, foreign_zone=foreign_zone,
        root=root, admin=admin, logistics=logistics, driver=driver, other_driver=other_driver,
        strict_admin=strict_admin,
    )


def ctx_for(user) -> RequestContext:
    return RequestContext(user_id=user.id, user_type=user.user_type, company_id=user.company_id, ip_address="127.0.0.1")


@pytest.fixture
def admin_ctx(seed):
    return ctx_for(seed.admin)


@pytest.fixture
def driver_ctx(seed):
    return ctx_for(seed.driver)


@pytest.fixture
def make_slot(db, seed):
    """Insert a slot directly (no service checks) and return it."""

    def _make(start="08:00", end="09:00", capacity=1, slot_date=DAY, slot_type=SlotType.UNIVERSAL,
              warehouse=None, is_blocked=False):
        s = TimeSlot(
            warehouse_id=(warehouse or seed.wh).id,
            slot_date=slot_date,
            time_start=time.fromisoformat(start),
            time_end=time.fromisoformat(end),
            slot_type=slot_type,
            capacity=capacity,
            is_blocked=is_blocked,
        )
        db.add(s)
        db.commit()
        return s

    return _make


@pytest.fixture
def client(seed):
    from dockbook.main import app

    with TestClient(app) as c:
        yield c


def auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(sub=user.email)}"}


@pytest.fixture
def ctx_of():
    return ctx_for


@pytest.fixture
def headers():
    return auth


@pytest.fixture
def day():
    return DAY
