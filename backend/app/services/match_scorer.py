"""Match scorer: rule-based compatibility score for a (speaker, event) pair.

Content-based plus rule-based scoring, 100 points max:
- Specialization match to event category/tags:  30
- Past speaking record relevance:               15
- Average rating from reviews:                  20
- Session experience (completed sessions):      10
- Reliability (completion rate):                10
- Recency (recent activity):                    10
- Bio keyword match:                             5

``score_match`` is a pure function of its signals: the recency window is
anchored on ``signals.as_of``, never on the wall clock.
"""
import math
import re
from collections import Counter
from datetime import datetime, time, timedelta
from typing import Any, Iterable

from app.exceptions import ValidationError
from app.schemas.scoring import MatchResult, ScoringSignals
from app.utils import as_utc

WEIGHTS = {
    "specialization_match": 30,
    "past_record_relevance": 15,
    "rating": 20,
    "session_experience": 10,
    "reliability": 10,
    "recency": 10,
    "bio_keyword_match": 5,
}

MAX_SCORE = 100
CATEGORY_BONUS = 5
UNRATED_SHARE = 0.25
NEW_SPEAKER_RELIABILITY_SHARE = 0.5
RECENCY_WINDOW = timedelta(days=182)
EVENT_KEYWORD_LIMIT = 30

STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "shall", "and", "or", "but", "if",
    "while", "of", "at", "by", "for", "with", "about", "against", "between",
    "through", "during", "before", "after", "above", "below", "to", "from",
    "up", "down", "in", "out", "on", "off", "over", "under", "this", "that",
    "these", "those", "it", "its", "event", "join", "us", "all", "each",
    "every", "both", "few", "more", "most", "other", "some", "such", "no",
    "not", "only", "same", "so", "than", "too", "very", "just", "because",
    "as", "until", "into", "also", "how", "where", "when", "who", "which",
    "what", "there", "their", "here", "our", "your", "we", "you", "they",
    "students", "participants", "come", "get", "learn", "day",
})

_NON_KEYWORD_CHARS = re.compile(r"[^a-z0-9\s\-]")


def extract_keywords(text: str) -> list[str]:
    """Lower-cased words longer than two characters, stop words removed."""
    if not text:
        return []
    cleaned = _NON_KEYWORD_CHARS.sub(" ", text.lower())
    return [w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS]


def top_keywords(text: str, n: int = 25) -> list[str]:
    """Most frequent keywords, first occurrence wins ties."""
    return [word for word, _ in Counter(extract_keywords(text)).most_common(n)]


def _normalize(terms: Iterable[str]) -> list[str]:
    return [t.lower().strip() for t in terms if t and t.strip()]


def _related(a: str, b: str) -> bool:
    return a == b or a in b or b in a


def count_overlap(left: Iterable[str], right: Iterable[str]) -> int:
    """Count terms of ``left`` related to any term of ``right`` (each counted once)."""
    right_terms = _normalize(right)
    return sum(1 for a in _normalize(left) if any(_related(a, b) for b in right_terms))


def _round1(value: float) -> float:
    # half-up, so 12.25 -> 12.3
    return math.floor(value * 10 + 0.5) / 10


def event_terms(signals: ScoringSignals) -> list[str]:
    """Category, tags and top title/description keywords, de-duplicated in order."""
    event = signals.event
    candidates = [event.category, *event.tags, *top_keywords(f"{event.title} {event.description}", EVENT_KEYWORD_LIMIT)]
    return list(dict.fromkeys(_normalize(candidates)))


def _specialization_match(signals: ScoringSignals, terms: list[str]) -> dict[str, Any]:
    specs = _normalize(signals.speaker.specializations)
    category = signals.event.category.lower().strip()
    max_points = WEIGHTS["specialization_match"]

    overlap = count_overlap(specs, terms)
    score = min(overlap / max(len(specs), 1) * max_points, max_points)
    direct_category_match = bool(category) and any(_related(s, category) for s in specs)
    if direct_category_match:
        score = min(score + CATEGORY_BONUS, max_points)

    return {
        "score": score,
        "max": max_points,
        "matched_count": overlap,
        "total_specializations": len(specs),
        "direct_category_match": direct_category_match,
    }


def _past_record_relevance(signals: ScoringSignals, terms: list[str]) -> dict[str, Any]:
    records = signals.speaker.past_speaking_records
    max_points = WEIGHTS["past_record_relevance"]
    score = 0.0
    if records:
        texts = [r.topic.lower() for r in records] + [r.event_name.lower() for r in records]
        relevant = sum(
            1 for text in texts
            if any(_related(k, t) for k in extract_keywords(text) for t in terms)
        )
        score = min(relevant / len(texts) * max_points, max_points)
    return {"score": score, "max": max_points, "total_records": len(records)}


def _rating(signals: ScoringSignals) -> dict[str, Any]:
    ratings = signals.history.ratings
    max_points = WEIGHTS["rating"]
    avg = sum(ratings) / len(ratings) if ratings else 0.0
    score = avg / 5 * max_points if ratings else max_points * UNRATED_SHARE
    return {"score": score, "max": max_points, "avg_rating": _round1(avg), "total_reviews": len(ratings)}


def _session_experience(signals: ScoringSignals) -> dict[str, Any]:
    sessions = signals.history.sessions
    records = signals.speaker.past_speaking_records
    max_points = WEIGHTS["session_experience"]

    completed = sum(1 for s in sessions if s.status == "completed")
    # log scale: 1 session = 3, 3 sessions = 6, 5+ sessions ~ max
    experience = min(math.log2(completed + 1) * 3, max_points)
    past_bonus = min(len(records) * 0.5, 3)
    return {
        "score": min(experience + past_bonus, max_points),
        "max": max_points,
        "completed_sessions": completed,
        "total_sessions": len(sessions),
        "past_record_count": len(records),
    }


def _reliability(signals: ScoringSignals) -> dict[str, Any]:
    sessions = signals.history.sessions
    max_points = WEIGHTS["reliability"]
    score = max_points * NEW_SPEAKER_RELIABILITY_SHARE
    completion_rate = None
    if sessions:
        total = len(sessions)
        completion_rate = sum(1 for s in sessions if s.status == "completed") / total
        penalty_rate = sum(1 for s in sessions if s.status in ("cancelled", "rejected")) / total
        score = max(0.0, (completion_rate - penalty_rate * 0.5) * max_points)
    return {
        "score": score,
        "max": max_points,
        "completion_rate": _round1(completion_rate) if completion_rate is not None else None,
    }


def _recency(signals: ScoringSignals) -> dict[str, Any]:
    max_points = WEIGHTS["recency"]
    cutoff = as_utc(signals.as_of) - RECENCY_WINDOW

    recent_sessions = sum(1 for s in signals.history.sessions if as_utc(s.created_at) > cutoff)
    recent_records = sum(
        1 for r in signals.speaker.past_speaking_records
        if r.date is not None and as_utc(datetime.combine(r.date, time.min)) > cutoff
    )
    activity = recent_sessions + recent_records
    return {"score": min(activity * 2.5, max_points), "max": max_points, "recent_activity": activity}


def _bio_keyword_match(signals: ScoringSignals, terms: list[str]) -> dict[str, Any]:
    max_points = WEIGHTS["bio_keyword_match"]
    keywords = extract_keywords(signals.speaker.bio)
    score = 0.0
    if keywords:
        hits = sum(1 for k in keywords if any(_related(k, t) for t in terms))
        score = min(hits / len(keywords) * max_points * 3, max_points)
    return {"score": score, "max": max_points}


def score_match(signals: ScoringSignals) -> MatchResult:
    """Compute the match score and per-component breakdown for one pair."""
    terms = event_terms(signals)
    breakdown = {
        "specialization_match": _specialization_match(signals, terms),
        "past_record_relevance": _past_record_relevance(signals, terms),
        "rating": _rating(signals),
        "session_experience": _session_experience(signals),
        "reliability": _reliability(signals),
        "recency": _recency(signals),
        "bio_keyword_match": _bio_keyword_match(signals, terms),
    }

    total = min(sum(part["score"] for part in breakdown.values()), MAX_SCORE)
    if not math.isfinite(total):
        raise ValidationError("Scoring signals produced a non-finite score", field="scoring_signals")

    for part in breakdown.values():
        part["score"] = _round1(part["score"])
    return MatchResult(score=_round1(max(total, 0.0)), breakdown=breakdown)
