import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ticket_scanner.config import Settings
from ticket_scanner.db import get_db
from ticket_scanner.main import app
from ticket_scanner.models import Base
from ticket_scanner.services.dashboard import Dashboard
from ticket_scanner.services.scanner import ScannerService

from .helpers import FakeDecoder


@pytest.fixture()
def settings():
    return Settings(database_url="sqlite://", scan_fps=1000, scan_timeout_seconds=1)


@pytest.fixture()
def engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_engine(
        f"sqlite+pysqlite:///{db_path}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def SessionLocal(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(SessionLocal):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def dashboard(settings):
    return Dashboard(settings)


@pytest.fixture()
def client(SessionLocal, settings):
    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    dashboard = Dashboard(settings)
    app.state.dashboard = dashboard
    app.state.scanner = ScannerService(
        settings,
        decoder_factory=lambda: FakeDecoder(),
        on_redeemed=dashboard.cache.patch,
    )
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
