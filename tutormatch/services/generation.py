# tutormatch/services/generation.py
"""
One matching run: load the pools, score, allocate greedily, persist new
pending rows, and leave a scan-history record behind.

Nothing here touches volunteer or student counters; those move only when a
match is approved (see services.approval).
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, Optional

from tutormatch.core.errors import StorageError
from tutormatch.core.messages import msg
from tutormatch.services.matching import (
    eligible_volunteers,
    filter_volunteers,
    generate_candidates,
    greedy_allocate,
    remaining_capacity,
)
from tutormatch.services.tuning import load_scoring_settings

logger = logging.getLogger(__name__)


async def persist_allocations(repo, allocations: Iterable[dict]) -> Dict[str, int]:
    """
    Insert each allocated pair as a pending match unless the pair already has
    a row (any status). Inserts are independent: one failure is logged and
    the loop moves on, earlier rows stay committed.
    """
    stats = {"created": 0, "skipped": 0, "failed": 0}
    for a in allocations:
        try:
            if await repo.find_match_by_pair(a["student_id"], a["volunteer_id"]):
                stats["skipped"] += 1
                continue
            saved = await repo.insert_match({
                "student_id": a["student_id"],
                "volunteer_id": a["volunteer_id"],
                "confidence_score": int(a["score"]),
                "match_reason": a["reason"],
                "status": "pending",
                "approved_at": None,
                "created_at": datetime.utcnow(),
            })
        except StorageError:
            logger.exception("could not insert match %s/%s", a["student_id"], a["volunteer_id"])
            stats["failed"] += 1
            continue
        if saved is None:
            stats["skipped"] += 1
        else:
            stats["created"] += 1
    return stats


async def run_generation(
    repo,
    min_score: Optional[int] = None,
    limit: Optional[int] = None,
    max_distance: Optional[int] = None,
    city_filter: Optional[str] = None,
    language_filter: Optional[str] = None,
    match_gender: bool = True,
) -> dict:
    weights = await load_scoring_settings(repo)
    final_min_score = min_score if min_score is not None else weights["min_match_score"]
    final_limit = limit if limit is not None else weights["max_matches_limit"]
    final_max_distance = max_distance if max_distance is not None else weights["nearby_city_distance_km"]

    logger.info(
        "starting match generation min_score=%s limit=%s max_distance=%s",
        final_min_score, final_limit, final_max_distance,
    )

    students = await repo.list_students(is_matched=False)
    volunteers = await repo.list_volunteers(is_active=True)
    pool = filter_volunteers(eligible_volunteers(volunteers), city=city_filter, language=language_filter)

    logger.info("unmatched students=%d active volunteers=%d eligible=%d",
                len(students), len(volunteers), len(pool))

    if not students:
        return {"suggestedCount": 0, "message": msg("no_students")}
    if not pool:
        return {"suggestedCount": 0, "message": msg("no_volunteers", count=len(volunteers))}

    candidates = generate_candidates(
        students, pool, weights,
        min_score=final_min_score,
        max_distance_km=final_max_distance,
        match_gender=match_gender,
    )
    remaining = {v["_id"]: remaining_capacity(v) for v in pool}
    allocated = greedy_allocate(candidates, remaining, final_limit)
    stats = await persist_allocations(repo, allocated)

    logger.info("allocated=%d created=%d skipped_existing=%d failed=%d",
                len(allocated), stats["created"], stats["skipped"], stats["failed"])

    scan = {
        "scan_type": "manual" if (min_score is not None or limit is not None) else "automatic",
        "parameters": {
            "minScore": final_min_score,
            "limit": final_limit,
            "maxDistance": final_max_distance,
            "cityFilter": city_filter,
            "languageFilter": language_filter,
            "matchGender": match_gender,
            **{k: v for k, v in weights.items() if k.endswith("_points")},
        },
        "results": {
            "suggestedCount": stats["created"],
            "studentsScanned": len(students),
            "volunteersAvailable": len(pool),
            "possibleMatchesFound": len(candidates),
            "failedInserts": stats["failed"],
        },
        "created_by": "system",
        "created_at": datetime.utcnow(),
    }
    try:
        await repo.insert_scan(scan)
    except StorageError:
        logger.exception("could not record scan history")

    return {"suggestedCount": stats["created"], "message": msg("generated", count=stats["created"])}
