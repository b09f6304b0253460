from fastapi.testclient import TestClient

from dockbook.config import settings
from dockbook.jobs.scheduler import scheduler
from dockbook.main import app


def test_scheduler_runs_for_the_lifetime_of_the_app(monkeypatch):
    monkeypatch.setattr(settings, "RESCHEDULER_ENABLED", True)

    with TestClient(app) as c:
        assert scheduler.running
        assert scheduler.get_job("reschedule_delayed") is not None
        assert c.get("/ping").status_code == 200

    assert not scheduler.running


def test_disabled_scheduler_is_not_started():
    with TestClient(app) as c:
        assert c.get("/ping").json() == {"ok": True}
        assert not scheduler.running


def test_startup_creates_missing_tables():
    from dockbook.database import Base, engine

    Base.metadata.drop_all(bind=engine)
    with TestClient(app) as c:
        assert c.post("/auth/login", json={"email": "nobody@dockbook.io", "password": "x"}).status_code == 401
