# Populates the configured store (set USE_MONGO=1 to seed MongoDB).
import asyncio
from tutormatch.deps import get_repo

STUDENTS = [
    {"_id": "S1", "full_name": "Anna K.", "city": "Haifa", "native_language": "Russian",
     "gender": "F", "special_requests": "prefers a Russian speaker", "latitude": 32.7940, "longitude": 34.9896},
    {"_id": "S2", "full_name": "Yonas T.", "city": "Tel Aviv", "native_language": "Amharic",
     "gender": "M", "special_requests": None, "latitude": None, "longitude": None},
    {"_id": "S3", "full_name": "Lina H.", "city": "Nazareth", "native_language": "Arabic",
     "gender": "F", "special_requests": "דוברת ערבית", "latitude": 32.6992, "longitude": 35.3035},
]

VOLUNTEERS = [
    {"_id": "V1", "full_name": "Olga P.", "city": "Haifa", "native_language": "Russian", "gender": "F",
     "capacity": 2, "current_matches": 0, "is_active": True, "latitude": 32.7940, "longitude": 34.9896},
    {"_id": "V2", "full_name": "Dawit M.", "city": "Tel Aviv", "native_language": "Amharic", "gender": "M",
     "capacity": 1, "current_matches": 0, "is_active": True, "latitude": None, "longitude": None},
    {"_id": "V3", "full_name": "Rana S.", "city": "Acre", "native_language": "Arabic", "gender": "F",
     "capacity": 1, "current_matches": 0, "is_active": True, "latitude": 32.9275, "longitude": 35.0831},
]

async def main():
    repo = get_repo()
    await repo.ensure_indexes()
    for s in STUDENTS:
        await repo.create_student(dict(s))
    for v in VOLUNTEERS:
        await repo.create_volunteer(dict(v))
    print("Seeded:", ", ".join(d["_id"] for d in STUDENTS + VOLUNTEERS))

if __name__ == "__main__":
    asyncio.run(main())
