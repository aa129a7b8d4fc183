import pytest
from fastapi.testclient import TestClient

from mond.server import create_app
from mond.store import open_store

SAMPLE_LINE = (
    '10.129.38.1 - - [02/Jul/2021:22:50:59 +0200] "GET /futures HTTP/1.1" 200 7280 "-" '
    '"Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) '
    'Chrome/91.0.4472.124 Safari/537.36" "92.104.237.155"'
)


@pytest.fixture
def sample_line():
    return SAMPLE_LINE


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "apps.db.json"


@pytest.fixture
def store(db_path):
    return open_store(db_path)


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


@pytest.fixture
def auth_client(store):
    return TestClient(create_app(store, credentials=("admin", "s3cret")))
