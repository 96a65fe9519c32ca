import secrets
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from errors import Conflict

# This file acts as an in-process document database.
# Each collection stores plain dictionaries keyed by their "_id", and queries
# are equality matches on document fields, the subset of a document store
# that the services need. Swap `Database` for a real ODM-backed store in
# production; the services only talk to the methods below.

# A sort order is a list of (field, direction) pairs, 1 = ascending, -1 = descending
SortSpec = List[Tuple[str, int]]


def new_object_id() -> str:
    # 24 hex characters, the same shape as a MongoDB ObjectId
    return secrets.token_hex(12)


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    return all(document.get(field) == value for field, value in query.items())


class DuplicateKeyError(Conflict):
    def __init__(self, collection: str, field: str):
        super().__init__(f"Duplicate {field} in {collection}")
        self.field = field


class Collection:
    def __init__(self, name: str, unique: Sequence[str] = ()):
        self.name = name
        self.unique = tuple(unique)
        self._documents: Dict[str, Dict[str, Any]] = {}
        # Handlers run in a threadpool; every read and write goes through this lock
        self._lock = threading.RLock()

    def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(document)
        stored.setdefault("_id", new_object_id())
        with self._lock:
            for field in self.unique:
                if any(d.get(field) == stored.get(field) for d in self._documents.values()):
                    raise DuplicateKeyError(self.name, field)
            self._documents[stored["_id"]] = stored
            return dict(stored)

    def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            # Lookups by id don't need a scan
            if "_id" in query:
                document = self._documents.get(query["_id"])
                if document is None or not _matches(document, query):
                    return None
                return dict(document)
            for document in self._documents.values():
                if _matches(document, query):
                    return dict(document)
            return None

    def find(
        self,
        query: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            documents = [dict(d) for d in self._documents.values() if _matches(d, query)]
        # Python's sort is stable, so sorting by the keys in reverse order
        # gives a multi-key sort with per-key direction.
        for field, direction in reversed(sort or []):
            documents.sort(key=lambda d: d[field], reverse=direction < 0)
        end = None if limit is None else skip + limit
        return documents[skip:end]

    def count(self, query: Dict[str, Any]) -> int:
        with self._lock:
            return sum(1 for d in self._documents.values() if _matches(d, query))

    def update_one(self, query: Dict[str, Any], values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self.find_one(query)
            if document is None:
                return None
            stored = self._documents[document["_id"]]
            stored.update(values)
            return dict(stored)

    def delete_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self.find_one(query)
            if document is None:
                return None
            return self._documents.pop(document["_id"])


class Database:
    def __init__(self):
        # Users are looked up by their normalised email
        self.users = Collection("users", unique=("email",))
        # Tasks reference their owner through the "user" field
        self.tasks = Collection("tasks")


# The database shared by the running application
db = Database()


def get_db() -> Database:
    return db
