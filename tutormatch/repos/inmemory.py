# tutormatch/repos/inmemory.py
import asyncio
import uuid
from datetime import datetime
from typing import Optional, List, Dict

from tutormatch.core.states import PENDING_STATES, is_pending

def _id() -> str:
    return uuid.uuid4().hex

def _copy(doc: Optional[dict]) -> Optional[dict]:
    return dict(doc) if doc is not None else None

class InMemoryRepo:
    """Dict-backed store; approval commits are serialized by one lock."""

    def __init__(self):
        self.students: Dict[str, dict] = {}
        self.volunteers: Dict[str, dict] = {}
        self.matches: Dict[str, dict] = {}
        self.pairs: Dict[tuple, str] = {}
        self.settings: Dict[str, str] = {}
        self.scans: List[dict] = []
        self.events: List[dict] = []
        self.webhooks: Dict[str, dict] = {}
        self.outbox: Dict[str, dict] = {}
        self.audit: List[dict] = []
        self._lock = asyncio.Lock()

    async def ensure_indexes(self):
        return None

    async def close(self):
        return None

    # Students
    async def create_student(self, doc: dict) -> dict:
        doc = dict(doc)
        doc["_id"] = doc.get("_id") or _id()
        doc.setdefault("is_matched", False)
        doc.setdefault("created_at", datetime.utcnow())
        self.students[doc["_id"]] = doc
        return _copy(doc)

    async def get_student(self, student_id: str) -> Optional[dict]:
        return _copy(self.students.get(student_id))

    async def list_students(self, is_matched: Optional[bool] = None) -> List[dict]:
        return [_copy(s) for s in self.students.values()
                if is_matched is None or bool(s.get("is_matched")) == is_matched]

    # Volunteers
    async def create_volunteer(self, doc: dict) -> dict:
        doc = dict(doc)
        doc["_id"] = doc.get("_id") or _id()
        doc.setdefault("current_matches", 0)
        doc.setdefault("is_active", True)
        doc.setdefault("created_at", datetime.utcnow())
        self.volunteers[doc["_id"]] = doc
        return _copy(doc)

    async def get_volunteer(self, volunteer_id: str) -> Optional[dict]:
        return _copy(self.volunteers.get(volunteer_id))

    async def list_volunteers(self, is_active: Optional[bool] = None) -> List[dict]:
        return [_copy(v) for v in self.volunteers.values()
                if is_active is None or bool(v.get("is_active", True)) == is_active]

    # Matches
    async def find_match_by_pair(self, student_id: str, volunteer_id: str) -> Optional[dict]:
        mid = self.pairs.get((student_id, volunteer_id))
        return _copy(self.matches.get(mid)) if mid else None

    async def insert_match(self, doc: dict) -> Optional[dict]:
        """Returns None when the (student, volunteer) pair already has a row."""
        key = (doc["student_id"], doc["volunteer_id"])
        if key in self.pairs:
            return None
        doc = {"_id": _id(), **doc}
        doc.setdefault("created_at", datetime.utcnow())
        self.matches[doc["_id"]] = doc
        self.pairs[key] = doc["_id"]
        return _copy(doc)

    async def get_match(self, match_id: str) -> Optional[dict]:
        return _copy(self.matches.get(match_id))

    async def list_matches(self, status: Optional[str] = None) -> List[dict]:
        wanted = PENDING_STATES if status == "pending" else (status,)
        rows = [m for m in self.matches.values() if status is None or m["status"] in wanted]
        rows.sort(key=lambda m: m["created_at"], reverse=True)
        return [_copy(m) for m in rows]

    async def commit_approval(self, match_id: str, approved_at: datetime) -> bool:
        async with self._lock:
            m = self.matches.get(match_id)
            if m is None or not is_pending(m.get("status")):
                return False
            v = self.volunteers.get(m.get("volunteer_id"))
            s = self.students.get(m.get("student_id"))
            if v is None or s is None:
                return False
            if v.get("current_matches", 0) >= v.get("capacity", 0):
                return False
            if s.get("is_matched"):
                return False
            m["status"] = "approved"
            m["approved_at"] = approved_at
            v["current_matches"] = v.get("current_matches", 0) + 1
            s["is_matched"] = True
            return True

    async def commit_rejection(self, match_id: str) -> bool:
        async with self._lock:
            m = self.matches.get(match_id)
            if m is None or not is_pending(m.get("status")):
                return False
            m["status"] = "rejected"
            return True

    # Settings
    async def get_settings(self) -> Dict[str, str]:
        return dict(self.settings)

    async def put_settings(self, values: Dict[str, str]):
        self.settings.update(values)

    # Scan history
    async def insert_scan(self, doc: dict) -> dict:
        doc = {"_id": _id(), **doc}
        self.scans.append(doc)
        return _copy(doc)

    async def list_scans(self, limit: int = 20) -> List[dict]:
        return [_copy(s) for s in reversed(self.scans[-limit:])]

    # Events / webhooks / outbox / audit
    async def insert_event(self, doc: dict) -> dict:
        doc = {"_id": _id(), **doc}
        self.events.append(doc)
        return _copy(doc)

    async def create_webhook(self, url: str, enabled: bool = True) -> dict:
        doc = {"_id": _id(), "url": url, "enabled": enabled}
        self.webhooks[doc["_id"]] = doc
        return _copy(doc)

    async def list_webhooks(self, enabled: Optional[bool] = None) -> List[dict]:
        return [_copy(h) for h in self.webhooks.values()
                if enabled is None or h["enabled"] == enabled]

    async def delete_webhook(self, hook_id: str) -> bool:
        return self.webhooks.pop(hook_id, None) is not None

    async def enqueue_outbox(self, doc: dict) -> dict:
        doc = {"_id": _id(), **doc}
        self.outbox[doc["_id"]] = doc
        return _copy(doc)

    async def claim_outbox(self, now: datetime) -> Optional[dict]:
        async with self._lock:
            for rec in self.outbox.values():
                if rec["status"] == "pending" and rec["next_try_at"] <= now:
                    rec["status"] = "delivering"
                    return _copy(rec)
        return None

    async def update_outbox(self, rec_id: str, fields: dict):
        if rec_id in self.outbox:
            self.outbox[rec_id].update(fields)

    async def insert_audit(self, doc: dict) -> dict:
        doc = {"_id": _id(), **doc}
        self.audit.append(doc)
        return _copy(doc)

    async def list_audit(self, match_id: Optional[str] = None) -> List[dict]:
        return [_copy(a) for a in self.audit if match_id is None or a.get("match_id") == match_id]
