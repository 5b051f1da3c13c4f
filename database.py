"""
Record Store

Every collection (users, projects, tasks, resources) lives in one JSON
file holding a top-level array. Reads load the whole file, writes replace
the whole file.

Read-modify-write cycles must go through `JsonDatabase.editing`, which
holds a per-collection lock for the whole cycle. Separate processes
sharing the same data directory are still last-write-wins.
"""

import copy
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from bson import ObjectId
from dotenv import load_dotenv

logger = logging.getLogger("tracker.store")

COLLECTIONS = ("users", "projects", "tasks", "resources")


class StoreError(Exception):
    """Base class for record store failures."""


class StoreUnavailable(StoreError):
    """A collection file is missing, unreadable or could not be written."""

    def __init__(self, collection: str, reason: str = ""):
        self.collection = collection
        self.reason = reason
        super().__init__(f"{collection} data is unavailable" + (f": {reason}" if reason else ""))


def new_id() -> str:
    # timestamp + random + counter, 24 hex chars
    return str(ObjectId())


class JsonDatabase:
    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self._locks = {name: threading.Lock() for name in COLLECTIONS}

    @property
    def name(self) -> str:
        return str(self.data_dir)

    def path_for(self, collection: str) -> Path:
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection: {collection}")
        return self.data_dir / f"{collection}.json"

    def read(self, collection: str) -> List[Dict[str, Any]]:
        path = self.path_for(collection)
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Error reading %s: %s", path.name, e)
            raise StoreUnavailable(collection, str(e)) from e
        if not isinstance(data, list):
            logger.error("Error reading %s: top-level value is not an array", path.name)
            raise StoreUnavailable(collection, "top-level value is not an array")
        return data

    def write(self, collection: str, records: List[Dict[str, Any]]) -> None:
        path = self.path_for(collection)
        tmp = path.with_name(path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, allow_nan=False)
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error writing %s: %s", path.name, e)
            raise StoreUnavailable(collection, str(e)) from e
        logger.debug("Wrote %d record(s) to %s", len(records), path.name)

    @contextmanager
    def editing(self, collection: str) -> Iterator[List[Dict[str, Any]]]:
        """Yield the collection for in-place mutation and write it back.

        Writes back only when the block changed the collection; nothing is
        written if the block raises.
        """
        with self._locks[collection]:
            records = self.read(collection)
            before = copy.deepcopy(records)
            yield records
            if records != before:
                self.write(collection, records)


load_dotenv()


def _resolve_data_dir() -> Path:
    return Path(os.getenv("DATA_DIR", Path(__file__).resolve().parent / "data"))


db = JsonDatabase(_resolve_data_dir())


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  database: Optional[JsonDatabase] = None) -> List[Dict[str, Any]]:
    """Full-collection read followed by an equality filter on the given fields."""
    store = database or db
    filt = {k: v for k, v in (filter_dict or {}).items() if v is not None}
    docs = [d for d in store.read(collection_name) if all(d.get(k) == v for k, v in filt.items())]
    return docs


def create_document(collection_name: str, data: Dict[str, Any], database: Optional[JsonDatabase] = None) -> str:
    """Append a record and return its id, assigning one if missing."""
    store = database or db
    record = dict(data)
    record.setdefault("id", new_id())
    with store.editing(collection_name) as records:
        records.append(record)
    return record["id"]
