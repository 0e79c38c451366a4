import re
from datetime import timedelta

import cloudinary
import cloudinary.uploader
import pytest

from carryluxe import Settings, create_app

ADMIN_EMAIL = "owner@carryluxe.test"
ADMIN_PASSWORD = "C@rryLuxe_2025#"


class RecordingNotifier:
    def __init__(self):
        self.orders = []

    def notify_new_order(self, order):
        self.orders.append(order)
        return True, None


def _matches(document, query):
    for field_name, expected in query.items():
        actual = document.get(field_name)
        if isinstance(expected, dict) and "$in" in expected:
            if actual not in expected["$in"]:
                return False
        elif isinstance(expected, dict) and "$regex" in expected:
            flags = re.IGNORECASE if "i" in expected.get("$options", "") else 0
            if not isinstance(actual, str) or not re.search(expected["$regex"], actual, flags):
                return False
        elif actual != expected:
            return False
    return True


def _project(document, projection):
    if projection and projection.get("_id") == 0:
        return {k: v for k, v in document.items() if k != "_id"}
    return dict(document)


class FakeCursor:
    def __init__(self, documents):
        self.documents = documents

    def sort(self, key, direction):
        return sorted(self.documents, key=lambda d: d.get(key) or 0, reverse=direction < 0)


class FakeCollection:
    """In-memory stand-in for the subset of the pymongo collection API the store uses."""

    def __init__(self):
        self.documents = []
        self.calls = []
        self.indexes = []

    def create_index(self, key, **kwargs):
        self.indexes.append((key, kwargs))

    def find_one(self, query, projection=None):
        self.calls.append(("find_one", query))
        for document in self.documents:
            if _matches(document, query):
                return _project(document, projection)
        return None

    def find(self, query, projection=None):
        self.calls.append(("find", query))
        return FakeCursor([_project(d, projection) for d in self.documents if _matches(d, query)])

    def replace_one(self, query, document, upsert=False):
        self.calls.append(("replace_one", query))
        for index, existing in enumerate(self.documents):
            if _matches(existing, query):
                self.documents[index] = dict(document)
                return
        if upsert:
            self.documents.append(dict(document))

    def delete_one(self, query):
        self.calls.append(("delete_one", query))
        for index, existing in enumerate(self.documents):
            if _matches(existing, query):
                del self.documents[index]
                return

    def count_documents(self, query):
        return len([d for d in self.documents if _matches(d, query)])


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / "data"),
        uploads_dir=str(tmp_path / "uploads"),
        session_secret="test-secret-key-that-is-long-enough-for-hs256",
        session_ttl=timedelta(hours=24),
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        seed_catalog=False,
        trusted_proxy_hops=0,
    )


@pytest.fixture
def fake_database():
    return FakeDatabase()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(settings, notifier):
    flask_app = create_app(settings, notifier=notifier)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    response = client.post(
        "/api/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def create_product(admin_client):
    def _create(**fields):
        payload = {"brand": "Acme", "name": "Bag", "price": 100}
        payload.update(fields)
        response = admin_client.post("/api/admin/products", json=payload)
        assert response.status_code == 200, response.get_json()
        return response.get_json()["product"]

    return _create


@pytest.fixture
def cloudinary_calls(monkeypatch):
    """Record ``cloudinary.uploader.upload`` calls and keep the SDK config test-local."""
    monkeypatch.setenv("CLOUDINARY_URL", "")
    calls = []

    def fake_upload(source, **options):
        calls.append((source, options))
        return {"secure_url": "https://res.cloudinary.com/demo-cloud/bag.png"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    yield calls
    monkeypatch.undo()
    cloudinary.reset_config()
