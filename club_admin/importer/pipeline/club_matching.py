"""
Club name matching for imported events.

Free-text club names are scored against the known clubs: an exact match on
the normalized name scores 100, containment in either direction scores up to
99, and otherwise the share of overlapping words decides. Scores at or below
the threshold are discarded. Ranked suggestions for manual assignment use
rapidfuzz token-set similarity.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from rapidfuzz import fuzz, utils

from club_admin.importer.models import Club, ClubMatchSuggestion

EXACT_CONFIDENCE = 100.0
CONTAINS_WEIGHT = 80.0
WORD_OVERLAP_WEIGHT = 60.0
MATCH_THRESHOLD = 30.0
# Only an exact match may report full confidence.
NON_EXACT_CEILING = 99.0

# Lower bounds for the labels shown next to a suggestion, highest first.
CONFIDENCE_TIERS: Sequence[tuple[str, float]] = (
    ("exact", 100.0),
    ("high", 80.0),
    ("medium", 60.0),
    ("low", MATCH_THRESHOLD),
)

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_club_name(value: object | None) -> str:
    """Lowercase and drop punctuation, keeping word characters and spaces."""
    if value is None:
        return ""
    return _NON_WORD.sub("", str(value).lower()).strip()


def _words(normalized: str) -> list[str]:
    return [word for word in _WHITESPACE.split(normalized) if word]


def _contains_score(normalized_input: str, normalized_club: str) -> float | None:
    if normalized_club in normalized_input or normalized_input in normalized_club:
        ratio = max(
            len(normalized_input) / len(normalized_club),
            len(normalized_club) / len(normalized_input),
        )
        return min(ratio * CONTAINS_WEIGHT, NON_EXACT_CEILING)
    return None


def _word_overlap(normalized_input: str, normalized_club: str) -> tuple[float, int] | None:
    input_words = _words(normalized_input)
    club_words = _words(normalized_club)
    if not input_words or not club_words:
        return None
    matching = [
        word for word in input_words if any(club_word in word or word in club_word for club_word in club_words)
    ]
    if not matching:
        return None
    score = len(matching) / max(len(input_words), len(club_words)) * WORD_OVERLAP_WEIGHT
    return score, len(matching)


def find_best_club_match(
    club_name: str | None,
    clubs: Iterable[Club],
    *,
    threshold: float = MATCH_THRESHOLD,
) -> ClubMatchSuggestion | None:
    """
    Pick the known club that best matches a free-text club name.

    Scoring, strongest first: exact normalized equality (100, returned
    immediately), containment in either direction (length ratio x 80), and word
    overlap (share of matching words x 60). Only a best score strictly above
    ``threshold`` counts as a match.
    """

    normalized_input = normalize_club_name(club_name)
    if not normalized_input:
        return None

    best: ClubMatchSuggestion | None = None
    best_score = 0.0

    for club in clubs:
        normalized_club = normalize_club_name(club.name)
        if not normalized_club:
            continue

        if normalized_club == normalized_input:
            return ClubMatchSuggestion(
                club_id=club.id,
                club_name=club.name,
                confidence=EXACT_CONFIDENCE,
                reason="Exact match",
            )

        contains = _contains_score(normalized_input, normalized_club)
        if contains is not None and contains > best_score:
            best_score = contains
            best = ClubMatchSuggestion(
                club_id=club.id,
                club_name=club.name,
                confidence=contains,
                reason="Contains match",
            )

        overlap = _word_overlap(normalized_input, normalized_club)
        if overlap is not None and overlap[0] > best_score:
            best_score, matched_words = overlap
            best = ClubMatchSuggestion(
                club_id=club.id,
                club_name=club.name,
                confidence=best_score,
                reason=f"{matched_words} word matches",
            )

    return best if best_score > threshold else None


def confidence_tier(confidence: float | None) -> str:
    if confidence is None:
        return "none"
    for label, lower_bound in CONFIDENCE_TIERS:
        if confidence >= lower_bound:
            return label
    return "none"


def suggest_club_matches(
    club_name: str | None,
    clubs: Iterable[Club],
    *,
    limit: int = 5,
    threshold: float = MATCH_THRESHOLD,
) -> list[ClubMatchSuggestion]:
    """
    Rank candidate clubs for manual assignment of an unmatched event.

    Uses token-set similarity so reordered or abbreviated names still surface,
    which the single best-match heuristic above does not attempt.
    """

    query = utils.default_process(str(club_name or ""))
    if not query:
        return []

    scored: list[ClubMatchSuggestion] = []
    for club in clubs:
        candidate = utils.default_process(club.name or "")
        if not candidate:
            continue
        if candidate == query:
            score = EXACT_CONFIDENCE
        else:
            # Subset token sets score 100 too; keep that label for identical names.
            score = min(float(fuzz.token_set_ratio(query, candidate)), NON_EXACT_CEILING)
        if score < threshold:
            continue
        scored.append(
            ClubMatchSuggestion(
                club_id=club.id,
                club_name=club.name,
                confidence=round(score, 1),
                reason=f"{confidence_tier(score).capitalize()} similarity",
            )
        )

    scored.sort(key=lambda suggestion: (-suggestion.confidence, suggestion.club_name))
    return scored[: max(0, limit)]


__all__ = [
    "CONFIDENCE_TIERS",
    "MATCH_THRESHOLD",
    "confidence_tier",
    "find_best_club_match",
    "normalize_club_name",
    "suggest_club_matches",
]
