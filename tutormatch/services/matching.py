# tutormatch/services/matching.py
import logging
from math import radians, sin, cos, atan2
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from tutormatch.core.messages import msg

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# generic "wants a speaker of ..." markers looked for in special requests
SPEAKER_MARKERS = ("דובר", "speaker")


def haversine(a: dict, b: dict) -> float:
    """
    a, b: dicts like {"lat": float, "lng": float}
    returns distance in km
    """
    dlat = radians(b["lat"] - a["lat"])
    dlon = radians(b["lng"] - a["lng"])
    s = sin(dlat/2)**2 + cos(radians(a["lat"])) * cos(radians(b["lat"])) * sin(dlon/2)**2
    return 2 * EARTH_RADIUS_KM * atan2(s**0.5, (1 - s)**0.5)


def coords_of(doc: Mapping) -> Optional[dict]:
    lat, lng = doc.get("latitude"), doc.get("longitude")
    if lat is None or lng is None:
        return None
    return {"lat": float(lat), "lng": float(lng)}


def distance_between(student: Mapping, volunteer: Mapping) -> float:
    """Great-circle km between two records; 0 when either side is not geocoded yet."""
    a, b = coords_of(student), coords_of(volunteer)
    if a is None or b is None:
        return 0.0
    return haversine(a, b)


def quality_label(score: int) -> str:
    if score >= 90:
        return msg("quality_excellent")
    if score >= 80:
        return msg("quality_very_good")
    if score >= 70:
        return msg("quality_good")
    return msg("quality_fair")


def _wants_speaker(request: str, language: str) -> bool:
    if not language:
        return False
    text = request.lower()
    if language.lower() in text:
        return True
    return any(marker in text for marker in SPEAKER_MARKERS)


def score_pair(
    student: Mapping,
    volunteer: Mapping,
    distance: float,
    weights: Mapping[str, int],
    match_gender: bool = True,
) -> Tuple[int, str]:
    """
    Additive rule-based compatibility score in [0, 100] plus a readable reason.

    Only one locality tier applies: distance 0 (same city, or coordinates
    unknown) or within the nearby threshold. Pairs beyond the threshold get a
    note in the reason but no points.
    """
    score = 0
    reasons: List[str] = []

    language = student.get("native_language") or ""
    if language and language == volunteer.get("native_language"):
        score += weights["language_match_points"]
        reasons.append(msg("reason_language", language=language))

    nearby = weights["nearby_city_distance_km"]
    if distance == 0:
        score += weights["same_city_points"]
        reasons.append(msg("reason_same_city", city=student.get("city") or ""))
    elif distance <= nearby:
        score += weights["nearby_city_points"]
        reasons.append(msg("reason_distance", km=f"{distance:.0f}"))
    else:
        reasons.append(msg("reason_far", km=f"{distance:.0f}"))

    s_gender, v_gender = student.get("gender"), volunteer.get("gender")
    if match_gender and s_gender and v_gender and s_gender == v_gender:
        score += weights["gender_match_points"]
        reasons.append(msg("reason_gender"))

    request = student.get("special_requests")
    if request and _wants_speaker(request, volunteer.get("native_language") or ""):
        score += weights["special_requests_points"]
        reasons.append(msg("reason_request"))

    score = min(score, 100)

    if reasons:
        reason = msg(
            "reason_summary",
            quality=quality_label(score),
            score=score,
            clauses=" • ".join(reasons),
        )
    else:
        reason = msg("reason_score_only", score=score)
    return score, reason


def remaining_capacity(volunteer: Mapping) -> int:
    return int(volunteer.get("capacity") or 0) - int(volunteer.get("current_matches") or 0)


def eligible_volunteers(volunteers: Iterable[Mapping]) -> List[Mapping]:
    """Active volunteers with spare capacity; a scholarship flag only excludes when explicitly False."""
    return [
        v for v in volunteers
        if v.get("is_active", True)
        and v.get("scholarship_active") is not False
        and remaining_capacity(v) > 0
    ]


def filter_volunteers(
    volunteers: Iterable[Mapping],
    city: Optional[str] = None,
    language: Optional[str] = None,
) -> List[Mapping]:
    city = (city or "").strip().lower()
    language = (language or "").strip().lower()
    out = []
    for v in volunteers:
        if city and city not in (v.get("city") or "").lower():
            continue
        if language and language not in (v.get("native_language") or "").lower():
            continue
        out.append(v)
    return out


def generate_candidates(
    students: Iterable[Mapping],
    volunteers: List[Mapping],
    weights: Mapping[str, int],
    min_score: int,
    max_distance_km: float,
    match_gender: bool = True,
) -> List[dict]:
    """
    Score every (student, volunteer) pair and keep the ones inside the
    distance ceiling and at or above min_score. Order is not meaningful.
    """
    candidates: List[dict] = []
    checked = skipped_distance = skipped_score = 0

    for st in students:
        for v in volunteers:
            checked += 1
            if st["_id"] == v["_id"]:
                logger.warning("skipping pair with identical ids: %s", st["_id"])
                continue

            distance = distance_between(st, v)
            if distance != 0 and distance > max_distance_km:
                skipped_distance += 1
                continue

            score, reason = score_pair(st, v, distance, weights, match_gender=match_gender)
            if score < min_score:
                skipped_score += 1
                continue

            candidates.append({
                "student_id": st["_id"],
                "volunteer_id": v["_id"],
                "score": score,
                "reason": reason,
                "distance": distance,
            })

    logger.info(
        "pairs checked=%d skipped_by_distance=%d skipped_by_score=%d candidates=%d",
        checked, skipped_distance, skipped_score, len(candidates),
    )
    return candidates


def greedy_allocate(
    candidates: Iterable[dict],
    remaining: Dict[str, int],
    limit: int,
) -> List[dict]:
    """
    Best-score-first allocation without backtracking.

    remaining: volunteer_id -> slots left; a local copy is decremented, the
    caller's dict and storage are never touched. Each student is used at most
    once. Equal scores keep their input order (sorted() is stable).
    """
    slots = dict(remaining)
    used_students = set()
    results: List[dict] = []
    if limit <= 0:
        return results

    for c in sorted(candidates, key=lambda c: c["score"], reverse=True):
        if c["student_id"] in used_students:
            continue
        if slots.get(c["volunteer_id"], 0) <= 0:
            continue
        used_students.add(c["student_id"])
        slots[c["volunteer_id"]] -= 1
        results.append(c)
        if len(results) >= limit:
            break
    return results
