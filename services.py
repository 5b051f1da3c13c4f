"""
Entity Services

One service per collection, each a thin layer over the record store:
full-collection read, in-memory filter, whole-file write.

Field precedence when a record is written:

    field          create                 update
    -------------  ---------------------  ------------------------------
    id             server (new id)        stored value
    createdAt      server (now)           stored value
    updatedAt      server (now)           server (now)
    anything else  caller                 caller, else stored value

Merges are shallow: a list or object sent by the caller replaces the
stored one wholesale. Resource allocations have no updatedAt.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from database import JsonDatabase, create_document, get_documents, new_id
from reports import parse_date, utilization

logger = logging.getLogger("tracker.services")

UNKNOWN_USER = "Unknown User"


class InvalidRecord(ValueError):
    """The merged record breaks a rule no single field can check on its own."""


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def merge_for_create(data: Dict[str, Any], now: str, track_updates: bool = True) -> Dict[str, Any]:
    record = {**data, "id": new_id(), "createdAt": now}
    if track_updates:
        record["updatedAt"] = now
    else:
        record.pop("updatedAt", None)
    return record


def merge_for_update(existing: Dict[str, Any], changes: Dict[str, Any], now: str,
                     track_updates: bool = True) -> Dict[str, Any]:
    record = {**existing, **changes}
    record["id"] = existing["id"]
    if "createdAt" in existing:
        record["createdAt"] = existing["createdAt"]
    else:
        record.pop("createdAt", None)
    if track_updates:
        record["updatedAt"] = now
    elif "updatedAt" not in existing:
        record.pop("updatedAt", None)
    return record


class EntityService:
    collection = ""
    entity = "Record"
    track_updates = True
    # (start field, end field) that must stay ordered
    date_range = None

    def __init__(self, database: JsonDatabase):
        self.db = database

    def list(self, **filters) -> List[Dict[str, Any]]:
        return get_documents(self.collection, filters, database=self.db)

    def get_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        return next((r for r in self.db.read(self.collection) if r.get("id") == record_id), None)

    def prepare(self, record: Dict[str, Any], changes: Dict[str, Any],
                previous: Optional[Dict[str, Any]], now: str) -> Dict[str, Any]:
        """Fill in derived fields before a write; `previous` is None on create."""
        return record

    def check(self, record: Dict[str, Any]) -> None:
        if not self.date_range:
            return
        start_field, end_field = self.date_range
        start, end = parse_date(record.get(start_field)), parse_date(record.get(end_field))
        if start and end and end < start:
            raise InvalidRecord(f"{end_field} must not be before {start_field}")

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now()
        record = self.prepare(merge_for_create(data, now, self.track_updates), data, None, now)
        self.check(record)
        create_document(self.collection, record, database=self.db)
        logger.info("Created %s %s", self.entity.lower(), record["id"])
        return record

    def update(self, record_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        now = utc_now()
        with self.db.editing(self.collection) as records:
            index = next((i for i, r in enumerate(records) if r.get("id") == record_id), None)
            if index is None:
                return None
            existing = records[index]
            record = merge_for_update(existing, changes, now, self.track_updates)
            self.check(record)
            records[index] = self.prepare(record, changes, existing, now)
        logger.info("Updated %s %s", self.entity.lower(), record_id)
        return records[index]

    def delete(self, record_id: str) -> bool:
        with self.db.editing(self.collection) as records:
            kept = [r for r in records if r.get("id") != record_id]
            if len(kept) == len(records):
                return False
            records[:] = kept
        logger.info("Deleted %s %s", self.entity.lower(), record_id)
        return True


class ProjectService(EntityService):
    collection = "projects"
    entity = "Project"
    date_range = ("startDate", "endDate")

    def list(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return super().list(status=status)


class TaskService(EntityService):
    collection = "tasks"
    entity = "Task"
    date_range = ("startDate", "dueDate")

    def list(self, project_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return super().list(projectId=project_id, status=status)

    def prepare(self, record, changes, previous, now):
        if record.get("status") != "completed":
            record["completedDate"] = None
        elif previous is None or previous.get("status") != "completed":
            record["completedDate"] = now
        else:
            record["completedDate"] = previous.get("completedDate")
        return record


class UserService(EntityService):
    """Read-only: users come from seed data and never leave without their password stripped."""

    collection = "users"
    entity = "User"

    @staticmethod
    def public(user: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in user.items() if k != "password"}

    def list(self) -> List[Dict[str, Any]]:
        return [self.public(u) for u in super().list()]

    def get_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        user = super().get_by_id(record_id)
        return self.public(user) if user else None

    def display_name(self, user_id: Optional[str]) -> str:
        user = self.get_by_id(user_id) if user_id else None
        if user is None:
            return UNKNOWN_USER
        return user.get("fullName") or user.get("username")

    def authenticate(self, username: str, password: str) -> Optional[Dict[str, Any]]:
        """Exact, case-sensitive match on both fields. No hashing, no session."""
        if not username or password is None:
            return None
        for user in self.db.read(self.collection):
            if user.get("username") == username and user.get("password") == password:
                return self.public(user)
        return None


class ResourceService(EntityService):
    collection = "resources"
    entity = "Resource"
    track_updates = False
    date_range = ("startDate", "endDate")

    def __init__(self, database: JsonDatabase, users: Optional[UserService] = None):
        super().__init__(database)
        self.users = users or UserService(database)

    def list(self, project_id: Optional[str] = None, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return super().list(projectId=project_id, userId=user_id)

    def prepare(self, record, changes, previous, now):
        # userName is a copy taken at write time; later renames do not reach it
        if "userId" in changes:
            record["userName"] = self.users.display_name(record.get("userId"))
        record["utilizationPercentage"] = utilization(record.get("usedHours"), record.get("allocatedHours"))
        return record
