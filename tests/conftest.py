import os

# Must be set before trustedlinks.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OTP_STORE_BACKEND", "memory")
os.environ.setdefault("ENV", "test")

import pytest

from trustedlinks.database import build_engine, create_db_and_tables
from tests.fakes import FakeBusinessRepo, FakeClock, FakeGateway, RecordingAudit


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sql_engine():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def business_repo():
    return FakeBusinessRepo()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def audit():
    return RecordingAudit()
