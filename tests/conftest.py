import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from errors import StorageError
from storage import MemoryStorage


@pytest.fixture
def mongo(monkeypatch):
    mock_db = mongomock.MongoClient()["sustain_sports_test"]
    monkeypatch.setattr(database, "db", mock_db)
    monkeypatch.setattr(main, "db", mock_db)
    return mock_db


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


@pytest.fixture
def storage():
    return MemoryStorage()


class LockedKeysStorage(MemoryStorage):
    """MemoryStorage that refuses writes to the keys in `locked`."""

    def __init__(self):
        super().__init__()
        self.locked = set()

    def set_item(self, key, value):
        if key in self.locked:
            raise StorageError(f"Write to {key!r} refused")
        super().set_item(key, value)


@pytest.fixture
def locked_storage():
    return LockedKeysStorage()


def register(client, name, email, password="green-secret"):
    resp = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


@pytest.fixture
def admin(client, mongo):
    headers, user = register(client, "Ada Admin", "admin@sustainsports.org")
    mongo["user"].update_one({"email": "admin@sustainsports.org"}, {"$set": {"is_admin": True}})
    return headers, user


@pytest.fixture
def shopper(client):
    return register(client, "Sam Shopper", "sam@greenmail.org")


@pytest.fixture
def make_user(client):
    def _make(name, email):
        return register(client, name, email)
    return _make
