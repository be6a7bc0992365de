# tutormatch/services/tuning.py
"""
Runtime-tunable scoring settings.

Values live in the `settings` collection as key/value strings (so an admin
screen can edit them without a deploy) and are overlaid on the defaults
below. Everything handed to the matching code is a plain ``int``.
"""
from typing import Dict, Mapping

from tutormatch.core.config import settings
from tutormatch.core.errors import ValidationError

DEFAULTS: Dict[str, int] = {
    "nearby_city_distance_km": settings.nearby_city_distance_km,
    "min_match_score": settings.min_match_score,
    "max_matches_limit": settings.max_matches_limit,
    "language_match_points": 60,
    "same_city_points": 40,
    "nearby_city_points": 20,
    "gender_match_points": 15,
    "special_requests_points": 5,
}


def _as_int(key: str, value) -> int:
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Setting '{key}' must be an integer")
    if n < 0:
        raise ValidationError(f"Setting '{key}' must not be negative")
    return n


def merge_settings(stored: Mapping[str, str]) -> Dict[str, int]:
    out = dict(DEFAULTS)
    for key, value in stored.items():
        if key not in DEFAULTS:
            continue
        try:
            out[key] = _as_int(key, value)
        except ValidationError:
            # a hand-edited bad row must not take the matcher down
            continue
    return out


async def load_scoring_settings(repo) -> Dict[str, int]:
    return merge_settings(await repo.get_settings())


async def update_scoring_settings(repo, patch: Mapping[str, object]) -> Dict[str, int]:
    unknown = sorted(set(patch) - set(DEFAULTS))
    if unknown:
        raise ValidationError(f"Unknown setting(s): {', '.join(unknown)}")
    clean = {k: str(_as_int(k, v)) for k, v in patch.items()}
    await repo.put_settings(clean)
    return await load_scoring_settings(repo)


async def reset_scoring_settings(repo) -> Dict[str, int]:
    await repo.put_settings({k: str(v) for k, v in DEFAULTS.items()})
    return dict(DEFAULTS)
