from dotenv import load_dotenv
load_dotenv()

from tutormatch.core.config import settings

if settings.use_mongo:
    from motor.motor_asyncio import AsyncIOMotorClient
    from .repos.mongo import MongoRepo
    _client = AsyncIOMotorClient(settings.mongo_uri, uuidRepresentation="standard")
    _repo_singleton = MongoRepo(_client, settings.mongo_db)
else:
    from .repos.inmemory import InMemoryRepo
    _repo_singleton = InMemoryRepo()

def get_repo():
    return _repo_singleton
