# tutormatch/repos/mongo.py
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, List, Dict

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from tutormatch.core.errors import StorageError
from tutormatch.core.states import PENDING_STATES

def oid() -> str:
    return str(ObjectId())

@contextmanager
def _storage_errors(what: str):
    try:
        yield
    except PyMongoError as ex:
        raise StorageError(f"Storage failure while {what}: {ex}") from ex

class _Rollback(Exception):
    pass

class MongoRepo:
    """
    Motor-backed store. Approval commits need a replica set (multi-document
    transactions); everything else works against a standalone server.
    """

    def __init__(self, client: AsyncIOMotorClient, db_name: str):
        self.client = client
        self.db = client[db_name]

    async def ensure_indexes(self):
        async def ensure_index(col, keys, name: str, **kwargs):
            existing = [ix["name"] async for ix in col.list_indexes()]
            if name in existing:
                return
            await col.create_index(keys, name=name, **kwargs)

        with _storage_errors("creating indexes"):
            await ensure_index(self.db.matches, [("student_id", ASCENDING), ("volunteer_id", ASCENDING)],
                               "student_volunteer_unique", unique=True)
            await ensure_index(self.db.matches, [("status", ASCENDING)], "status_1")
            await ensure_index(self.db.students, [("is_matched", ASCENDING)], "is_matched_1")
            await ensure_index(self.db.volunteers, [("is_active", ASCENDING)], "is_active_1")
            await ensure_index(self.db.outbox, [("status", ASCENDING), ("next_try_at", ASCENDING)],
                               "status_next_try_1")

    async def close(self):
        self.client.close()

    # Students
    async def create_student(self, doc: dict) -> dict:
        doc = dict(doc)
        doc["_id"] = doc.get("_id") or oid()
        doc.setdefault("is_matched", False)
        doc.setdefault("created_at", datetime.utcnow())
        with _storage_errors("inserting student"):
            await self.db.students.insert_one(doc)
        return doc

    async def get_student(self, student_id: str) -> Optional[dict]:
        with _storage_errors("loading student"):
            return await self.db.students.find_one({"_id": student_id})

    async def list_students(self, is_matched: Optional[bool] = None) -> List[dict]:
        q = {}
        if is_matched is True:
            q["is_matched"] = True
        elif is_matched is False:
            q["is_matched"] = {"$ne": True}
        with _storage_errors("listing students"):
            return [s async for s in self.db.students.find(q)]

    # Volunteers
    async def create_volunteer(self, doc: dict) -> dict:
        doc = dict(doc)
        doc["_id"] = doc.get("_id") or oid()
        doc.setdefault("current_matches", 0)
        doc.setdefault("is_active", True)
        doc.setdefault("created_at", datetime.utcnow())
        with _storage_errors("inserting volunteer"):
            await self.db.volunteers.insert_one(doc)
        return doc

    async def get_volunteer(self, volunteer_id: str) -> Optional[dict]:
        with _storage_errors("loading volunteer"):
            return await self.db.volunteers.find_one({"_id": volunteer_id})

    async def list_volunteers(self, is_active: Optional[bool] = None) -> List[dict]:
        q = {} if is_active is None else {"is_active": is_active}
        with _storage_errors("listing volunteers"):
            return [v async for v in self.db.volunteers.find(q)]

    # Matches
    async def find_match_by_pair(self, student_id: str, volunteer_id: str) -> Optional[dict]:
        with _storage_errors("looking up match pair"):
            return await self.db.matches.find_one({"student_id": student_id, "volunteer_id": volunteer_id})

    async def insert_match(self, doc: dict) -> Optional[dict]:
        doc = {"_id": oid(), **doc}
        doc.setdefault("created_at", datetime.utcnow())
        try:
            with _storage_errors("inserting match"):
                await self.db.matches.insert_one(doc)
        except StorageError as ex:
            # unique (student_id, volunteer_id): another run got there first
            if isinstance(ex.__cause__, DuplicateKeyError):
                return None
            raise
        return doc

    async def get_match(self, match_id: str) -> Optional[dict]:
        with _storage_errors("loading match"):
            return await self.db.matches.find_one({"_id": match_id})

    async def list_matches(self, status: Optional[str] = None) -> List[dict]:
        if status is None:
            q = {}
        elif status == "pending":
            q = {"status": {"$in": list(PENDING_STATES)}}
        else:
            q = {"status": status}
        with _storage_errors("listing matches"):
            return [m async for m in self.db.matches.find(q).sort("created_at", DESCENDING)]

    async def commit_approval(self, match_id: str, approved_at: datetime) -> bool:
        """
        Flip the match and move both counters in one transaction. Every write
        is conditional; a filter that matches nothing rolls the lot back.
        """
        with _storage_errors("committing approval"):
            async with await self.client.start_session() as session:
                try:
                    async with session.start_transaction():
                        m = await self.db.matches.find_one_and_update(
                            {"_id": match_id, "status": {"$in": list(PENDING_STATES)}},
                            {"$set": {"status": "approved", "approved_at": approved_at}},
                            return_document=ReturnDocument.AFTER,
                            session=session,
                        )
                        if m is None:
                            raise _Rollback()
                        res = await self.db.volunteers.update_one(
                            {"_id": m.get("volunteer_id"),
                             "$expr": {"$lt": ["$current_matches", "$capacity"]}},
                            {"$inc": {"current_matches": 1}},
                            session=session,
                        )
                        if res.modified_count == 0:
                            raise _Rollback()
                        res = await self.db.students.update_one(
                            {"_id": m.get("student_id"), "is_matched": {"$ne": True}},
                            {"$set": {"is_matched": True}},
                            session=session,
                        )
                        if res.modified_count == 0:
                            raise _Rollback()
                except _Rollback:
                    return False
                except OperationFailure as ex:
                    # concurrent writer on the same documents
                    if ex.has_error_label("TransientTransactionError"):
                        return False
                    raise
        return True

    async def commit_rejection(self, match_id: str) -> bool:
        with _storage_errors("committing rejection"):
            res = await self.db.matches.update_one(
                {"_id": match_id, "status": {"$in": list(PENDING_STATES)}},
                {"$set": {"status": "rejected"}},
            )
        return res.modified_count == 1

    # Settings
    async def get_settings(self) -> Dict[str, str]:
        with _storage_errors("loading settings"):
            return {s["key"]: s["value"] async for s in self.db.settings.find({})}

    async def put_settings(self, values: Dict[str, str]):
        with _storage_errors("saving settings"):
            for key, value in values.items():
                await self.db.settings.update_one(
                    {"key": key},
                    {"$set": {"value": value, "updated_at": datetime.utcnow()}},
                    upsert=True,
                )

    # Scan history
    async def insert_scan(self, doc: dict) -> dict:
        doc = {"_id": oid(), **doc}
        with _storage_errors("recording scan"):
            await self.db.scan_history.insert_one(doc)
        return doc

    async def list_scans(self, limit: int = 20) -> List[dict]:
        with _storage_errors("listing scans"):
            cur = self.db.scan_history.find().sort("created_at", DESCENDING).limit(limit)
            return [s async for s in cur]

    # Events / webhooks / outbox / audit
    async def insert_event(self, doc: dict) -> dict:
        doc = {"_id": oid(), **doc}
        with _storage_errors("recording event"):
            await self.db.events.insert_one(doc)
        return doc

    async def create_webhook(self, url: str, enabled: bool = True) -> dict:
        doc = {"_id": oid(), "url": url, "enabled": enabled}
        with _storage_errors("creating webhook"):
            await self.db.webhooks.insert_one(doc)
        return doc

    async def list_webhooks(self, enabled: Optional[bool] = None) -> List[dict]:
        q = {} if enabled is None else {"enabled": enabled}
        with _storage_errors("listing webhooks"):
            return [h async for h in self.db.webhooks.find(q)]

    async def delete_webhook(self, hook_id: str) -> bool:
        with _storage_errors("deleting webhook"):
            res = await self.db.webhooks.delete_one({"_id": hook_id})
        return res.deleted_count == 1

    async def enqueue_outbox(self, doc: dict) -> dict:
        doc = {"_id": oid(), **doc}
        with _storage_errors("queueing notification"):
            await self.db.outbox.insert_one(doc)
        return doc

    async def claim_outbox(self, now: datetime) -> Optional[dict]:
        with _storage_errors("claiming notification"):
            return await self.db.outbox.find_one_and_update(
                {"status": "pending", "next_try_at": {"$lte": now}},
                {"$set": {"status": "delivering"}},
            )

    async def update_outbox(self, rec_id: str, fields: dict):
        with _storage_errors("updating notification"):
            await self.db.outbox.update_one({"_id": rec_id}, {"$set": fields})

    async def insert_audit(self, doc: dict) -> dict:
        doc = {"_id": oid(), **doc}
        with _storage_errors("writing audit entry"):
            await self.db.audit.insert_one(doc)
        return doc

    async def list_audit(self, match_id: Optional[str] = None) -> List[dict]:
        q = {} if match_id is None else {"match_id": match_id}
        with _storage_errors("listing audit entries"):
            return [a async for a in self.db.audit.find(q).sort("created_at", ASCENDING)]
