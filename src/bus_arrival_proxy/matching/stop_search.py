import re
import unicodedata
from collections.abc import Iterable
from functools import lru_cache

from rapidfuzz import fuzz

from bus_arrival_proxy.models.datamall import BusStop

DEFAULT_MIN_SCORE = 60.0

# Road names are a weaker signal than the stop description
ROAD_NAME_WEIGHT = 0.9

# DataMall description abbreviations (lowercase token -> expanded)
ABBREVIATIONS: dict[str, str] = {
    "opp": "opposite",
    "bef": "before",
    "aft": "after",
    "blk": "block",
    "stn": "station",
    "int": "interchange",
    "ter": "terminal",
    "ctr": "centre",
    "jln": "jalan",
    "lor": "lorong",
    "rd": "road",
    "st": "street",
    "ave": "avenue",
    "dr": "drive",
    "cres": "crescent",
    "sch": "school",
    "pr": "primary",
    "sec": "secondary",
    "hosp": "hospital",
}

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


@lru_cache(maxsize=8192)
def normalize_stop_text(text: str) -> str:
    """Lowercase, strip accents and punctuation, expand abbreviations.

    Example: "Opp Blk 123, Jln Bt Merah" -> "opposite block 123 jalan bt merah"
    """
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    cleaned = _WHITESPACE.sub(" ", _NON_WORD.sub(" ", stripped.lower())).strip()
    return " ".join(ABBREVIATIONS.get(token, token) for token in cleaned.split(" ") if token)


def score_stop(query_normalized: str, stop: BusStop) -> float:
    """Score a stop against a normalized query (0-100).

    Blends token_set_ratio (word order) with partial_ratio (substrings).
    """
    description = normalize_stop_text(stop.description)
    token_score = fuzz.token_set_ratio(query_normalized, description)
    partial_score = fuzz.partial_ratio(query_normalized, description)
    score = token_score * 0.7 + partial_score * 0.3

    if stop.road_name:
        road = normalize_stop_text(stop.road_name)
        road_score = fuzz.token_set_ratio(query_normalized, road) * ROAD_NAME_WEIGHT
        score = max(score, road_score)

    return min(100.0, score)


def search_stops(
    stops: Iterable[BusStop],
    query: str,
    limit: int = 10,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[tuple[BusStop, float]]:
    """Rank directory stops against a free-text query.

    An exact stop code match always scores 100.

    Returns:
        (stop, score) pairs, best first, ties broken by stop code.
    """
    raw = query.strip()
    normalized = normalize_stop_text(raw)
    if not normalized:
        return []

    matches: list[tuple[BusStop, float]] = []
    for stop in stops:
        if stop.code == raw:
            matches.append((stop, 100.0))
            continue
        score = score_stop(normalized, stop)
        if score >= min_score:
            matches.append((stop, round(score, 1)))

    matches.sort(key=lambda m: (-m[1], m[0].code))
    return matches[: max(0, limit)]
