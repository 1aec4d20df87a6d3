# tests/conftest.py

import os
import shutil
import tempfile
import time

# Configure the service for tests before any jgpnr module reads settings.
from tests.utils.qr import TEST_QR_KEY

_TMP_DIR = tempfile.mkdtemp(prefix="jgpnr-tests-")

os.environ["ENV"] = "local"
os.environ["DATABASE_URL_LOCAL"] = f"sqlite:///{_TMP_DIR}/jgpnr_test.db"
os.environ["TRANSACTION_ISOLATION_LEVEL"] = ""
os.environ["QR_ENCRYPTION_KEY"] = TEST_QR_KEY
os.environ["QR_CODE_DIR"] = os.path.join(_TMP_DIR, "qrcodes")
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_secret"

import pytest
from unittest.mock import MagicMock
from starlette.testclient import TestClient
from sqlalchemy_utils import create_database, database_exists, drop_database

from jgpnr.api import deps
from jgpnr.core import kafka_producer
from jgpnr.core.limiter import limiter
from jgpnr.db.session import SessionLocal, engine
from jgpnr.main import app
from jgpnr.models import Base
from jgpnr.schemas.token import TokenPayload
from jgpnr.services.orders.order_service import OrderService
from jgpnr.services.ticket_management.qr_crypto import QRCipher
from jgpnr.services.ticket_management.settings_provider import TicketSettingsProvider
from jgpnr.services.ticket_management.ticket_service import TicketService
from jgpnr.utils.cache import CacheService


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    if database_exists(engine.url):
        drop_database(engine.url)
    create_database(engine.url)
    yield
    engine.dispose()
    drop_database(engine.url)
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture(scope="function")
def db():
    """A session on a freshly created schema; tables are dropped afterwards."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


# --- External services ---
@pytest.fixture(autouse=True)
def mock_kafka(monkeypatch):
    """Replaces the Kafka producer so email jobs never leave the process."""
    producer = MagicMock()
    monkeypatch.setattr(kafka_producer, "_producer", producer)
    return producer


@pytest.fixture(autouse=True)
def mock_redis(monkeypatch):
    from jgpnr.utils.cache import cache_service

    client = MagicMock()
    client.get.return_value = None
    client.scan_iter.return_value = iter([])
    monkeypatch.setattr(cache_service, "client", client)
    return client


# --- Domain fixtures ---
@pytest.fixture
def cipher():
    return QRCipher(TEST_QR_KEY)


@pytest.fixture
def settings_provider(db):
    provider = TicketSettingsProvider()
    provider.load(db)
    return provider


@pytest.fixture
def cache():
    client = MagicMock()
    client.get.return_value = None
    client.scan_iter.return_value = iter([])
    return CacheService(client)


@pytest.fixture
def order_service(db, settings_provider, cipher, cache):
    return OrderService(db, settings_provider, cipher=cipher, cache=cache)


@pytest.fixture
def ticket_service(db, cipher, cache):
    return TicketService(db, cipher=cipher, cache=cache)


# --- Test Client Fixtures ---
def override_get_current_user():
    return TokenPayload(sub="staff_123", role="staff", exp=int(time.time()) + 3600)


@pytest.fixture(scope="function")
def test_client(db):
    """
    TestClient against the live SQLite test database with auth mocked.
    The app lifespan runs, so the QR cipher and settings provider are real.
    """
    app.dependency_overrides[deps.get_current_user] = override_get_current_user
    limiter.enabled = False

    with TestClient(app) as client:
        yield client

    limiter.enabled = True
    app.dependency_overrides.clear()
