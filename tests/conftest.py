import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.database.database import build_engine, get_db
from app.database.migration import run_migration
from app.integrations.currency_service import get_currency_converter
from app.integrations.email_service import get_notifier
from factories import FixedRateConverter, RecordingNotifier
from main import app


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'expenses.db'}")
    run_migration(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def converter():
    return FixedRateConverter()


@pytest.fixture
def client(session_factory, notifier, converter):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_currency_converter] = lambda: converter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
