import json
import logging
import os
import re
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, List, Mapping, Optional

from flask_pymongo import PyMongo
from pymongo.errors import PyMongoError

from .errors import StorageError
from .seed import seed_documents

logger = logging.getLogger(__name__)

PRODUCTS = "products"
ORDERS = "orders"
RECORD_KINDS = (PRODUCTS, ORDERS)

ADMIN_DOCUMENT_ID = "admin"


class AnyOf:
    """Membership filter. ``None`` among the values also matches a missing field."""

    def __init__(self, *values):
        self.values = tuple(values)

    def __repr__(self) -> str:
        return f"AnyOf{self.values!r}"


class IgnoreCase:
    """Case-insensitive exact match on a text field."""

    def __init__(self, text: str):
        self.text = str(text)

    def __repr__(self) -> str:
        return f"IgnoreCase({self.text!r})"


def record_matches(record: Mapping, where: Optional[Mapping]) -> bool:
    for field_name, expected in (where or {}).items():
        actual = record.get(field_name)
        if isinstance(expected, AnyOf):
            if actual not in expected.values:
                return False
        elif isinstance(expected, IgnoreCase):
            if not isinstance(actual, str) or actual.lower() != expected.text.lower():
                return False
        elif actual != expected:
            return False
    return True


def _id_sort_key(record: Mapping) -> int:
    try:
        return int(record.get("id") or 0)
    except (TypeError, ValueError):
        return 0


class RecordStore(ABC):
    """Persistence for products, orders and the singleton admin credential.

    Records are plain dicts keyed by an integer ``id``. Listings are returned
    newest first (descending id).
    """

    name = ""

    def __init__(self):
        self._id_lock = threading.Lock()
        self._last_issued_id = 0

    def new_id(self) -> int:
        """Time-based id in milliseconds, strictly increasing within the process."""
        with self._id_lock:
            candidate = int(time.time() * 1000)
            if candidate <= self._last_issued_id:
                candidate = self._last_issued_id + 1
            self._last_issued_id = candidate
            return candidate

    def describe(self) -> str:
        return self.name

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in RECORD_KINDS:
            raise ValueError(f"Unknown record kind: {kind}")

    @abstractmethod
    def get(self, kind: str, record_id: int) -> Optional[Dict]:
        ...

    @abstractmethod
    def list(self, kind: str, where: Optional[Mapping] = None) -> List[Dict]:
        ...

    @abstractmethod
    def put(self, kind: str, record: Mapping) -> Dict:
        ...

    @abstractmethod
    def delete(self, kind: str, record_id: int) -> None:
        ...

    @abstractmethod
    def count(self, kind: str) -> int:
        ...

    @abstractmethod
    def load_admin(self) -> Dict:
        ...

    @abstractmethod
    def save_admin(self, record: Mapping) -> None:
        ...


class JsonFileRecordStore(RecordStore):
    """One JSON array per record kind plus ``admin.json``.

    Every write rewrites the whole file through a temporary file and a rename,
    so readers only ever see complete snapshots. There is no locking between
    writers: two concurrent read-modify-write cycles may lose an update.
    """

    name = "json"

    def __init__(self, data_dir: str, seed_catalog: bool = True):
        super().__init__()
        self.data_dir = data_dir
        self.paths = {kind: os.path.join(data_dir, f"{kind}.json") for kind in RECORD_KINDS}
        self.admin_path = os.path.join(data_dir, "admin.json")
        self._ensure_files(seed_catalog)

    def _ensure_files(self, seed_catalog: bool) -> None:
        try:
            os.makedirs(self.data_dir, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create data directory {self.data_dir}: {exc}") from exc

        if not os.path.exists(self.paths[PRODUCTS]):
            initial_products = seed_documents() if seed_catalog else []
            self._write_json(self.paths[PRODUCTS], initial_products)
            if initial_products:
                logger.info("Seeded %s sample products into %s", len(initial_products), self.paths[PRODUCTS])
        if not os.path.exists(self.paths[ORDERS]):
            self._write_json(self.paths[ORDERS], [])
        if not os.path.exists(self.admin_path):
            self._write_json(self.admin_path, {})

    def _read_json(self, path: str, empty):
        try:
            with open(path, "r", encoding="utf-8") as handle:
                text = handle.read()
        except FileNotFoundError:
            return empty
        except OSError as exc:
            raise StorageError(f"Cannot read {path}: {exc}") from exc

        if not text.strip():
            return empty
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt JSON in {path}: {exc}") from exc
        if not isinstance(data, type(empty)):
            raise StorageError(f"Unexpected JSON document in {path}")
        return data

    def _write_json(self, path: str, data) -> None:
        directory = os.path.dirname(path) or "."
        try:
            descriptor, temp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, indent=2, ensure_ascii=False)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(temp_path, path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise
        except OSError as exc:
            raise StorageError(f"Cannot write {path}: {exc}") from exc

    def _read_collection(self, kind: str) -> List[Dict]:
        self._check_kind(kind)
        return self._read_json(self.paths[kind], [])

    def _rewrite(self, kind: str, mutate: Callable[[List[Dict]], List[Dict]]) -> None:
        records = self._read_collection(kind)
        self._write_json(self.paths[kind], mutate(records))

    def get(self, kind: str, record_id: int) -> Optional[Dict]:
        for record in self._read_collection(kind):
            if record.get("id") == record_id:
                return record
        return None

    def list(self, kind: str, where: Optional[Mapping] = None) -> List[Dict]:
        records = [r for r in self._read_collection(kind) if record_matches(r, where)]
        return sorted(records, key=_id_sort_key, reverse=True)

    def put(self, kind: str, record: Mapping) -> Dict:
        stored = dict(record)

        def replace_or_insert(records: List[Dict]) -> List[Dict]:
            for index, existing in enumerate(records):
                if existing.get("id") == stored["id"]:
                    records[index] = stored
                    return records
            records.insert(0, stored)
            return records

        self._rewrite(kind, replace_or_insert)
        return stored

    def delete(self, kind: str, record_id: int) -> None:
        records = self._read_collection(kind)
        remaining = [r for r in records if r.get("id") != record_id]
        if len(remaining) != len(records):
            self._write_json(self.paths[kind], remaining)

    def count(self, kind: str) -> int:
        return len(self._read_collection(kind))

    def load_admin(self) -> Dict:
        return self._read_json(self.admin_path, {})

    def save_admin(self, record: Mapping) -> None:
        self._write_json(self.admin_path, dict(record))


class DocumentRecordStore(RecordStore):
    """MongoDB collections ``products``, ``orders`` and ``admin``."""

    name = "mongo"

    def __init__(self, database):
        super().__init__()
        self.collections = {kind: database[kind] for kind in RECORD_KINDS}
        self.admin_collection = database["admin"]

    @contextmanager
    def _driver_errors(self, action: str):
        try:
            yield
        except PyMongoError as exc:
            raise StorageError(f"MongoDB {action} failed: {exc}") from exc

    def _collection(self, kind: str):
        self._check_kind(kind)
        return self.collections[kind]

    def ensure_indexes(self) -> None:
        for kind, collection in self.collections.items():
            try:
                collection.create_index("id", unique=True)
            except PyMongoError as exc:
                logger.warning("Unable to ensure id index for %s: %s", kind, exc)

    @staticmethod
    def build_query(where: Optional[Mapping]) -> Dict:
        query: Dict[str, object] = {}
        for field_name, expected in (where or {}).items():
            if isinstance(expected, AnyOf):
                query[field_name] = {"$in": list(expected.values)}
            elif isinstance(expected, IgnoreCase):
                query[field_name] = {
                    "$regex": f"^{re.escape(expected.text)}$",
                    "$options": "i",
                }
            else:
                query[field_name] = expected
        return query

    def get(self, kind: str, record_id: int) -> Optional[Dict]:
        with self._driver_errors("read"):
            return self._collection(kind).find_one({"id": record_id}, {"_id": 0})

    def list(self, kind: str, where: Optional[Mapping] = None) -> List[Dict]:
        with self._driver_errors("query"):
            cursor = self._collection(kind).find(self.build_query(where), {"_id": 0})
            return list(cursor.sort("id", -1))

    def put(self, kind: str, record: Mapping) -> Dict:
        stored = dict(record)
        stored.pop("_id", None)
        with self._driver_errors("write"):
            self._collection(kind).replace_one({"id": stored["id"]}, dict(stored), upsert=True)
        return stored

    def delete(self, kind: str, record_id: int) -> None:
        with self._driver_errors("delete"):
            self._collection(kind).delete_one({"id": record_id})

    def count(self, kind: str) -> int:
        with self._driver_errors("count"):
            return self._collection(kind).count_documents({})

    def load_admin(self) -> Dict:
        with self._driver_errors("read"):
            document = self.admin_collection.find_one({"_id": ADMIN_DOCUMENT_ID}, {"_id": 0})
        return document or {}

    def save_admin(self, record: Mapping) -> None:
        document = {"_id": ADMIN_DOCUMENT_ID, **dict(record)}
        with self._driver_errors("write"):
            self.admin_collection.replace_one({"_id": ADMIN_DOCUMENT_ID}, document, upsert=True)


def create_record_store(app, settings) -> RecordStore:
    """Pick the storage adapter once, at startup.

    MongoDB is used when ``MONGODB_URI`` is configured and the server answers a
    ping; otherwise the JSON files under ``settings.data_dir`` are used.
    """
    if settings.mongo_uri:
        app.config["MONGO_URI"] = settings.mongo_uri
        try:
            mongo = PyMongo(app, serverSelectionTimeoutMS=5000)
            database = mongo.db if mongo.db is not None else mongo.cx["carryluxe"]
            database.command("ping")
        except PyMongoError as exc:
            app.logger.error(
                "MongoDB connection failed, falling back to JSON files: %s", exc
            )
        else:
            store = DocumentRecordStore(database)
            store.ensure_indexes()
            app.logger.info("Connected to MongoDB")
            return store

    return JsonFileRecordStore(settings.data_dir, seed_catalog=settings.seed_catalog)
