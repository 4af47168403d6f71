"""
Title ambiguity scoring.

Short, common-word and first-name titles ("Ten", "Her", "Carol", "1917")
collide with many unrelated catalog entries. The score decides how much
metadata the matcher needs before it may auto-match such a title.
"""

import re
from dataclasses import dataclass, field

COMMON_WORD_TITLES = frozenset({
    "crash", "evolution", "her", "him", "it", "us", "them", "room", "the room",
    "gift", "the gift", "host", "the host", "drive", "arrival", "contact", "life",
    "heat", "prey", "taken", "buried", "flight", "gravity", "salt", "up", "brave",
    "frozen", "tangled", "raw", "shame", "click", "signs", "split", "run", "safe",
    "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten",
    "eleven", "twelve", "thirteen",
})

COMMON_NAME_TITLES = frozenset({
    "anna", "carol", "carrie", "emma", "frances", "jane", "julia", "maria", "mary",
    "rebecca", "sophie", "victoria", "alan", "arthur", "charlie", "david", "frank",
    "jack", "james", "john", "michael", "paul", "peter", "richard", "robert",
    "thomas", "william",
})

YEAR_TITLE_RE = re.compile(r"^(19|20)\d{2}$")

REVIEW_THRESHOLD = 0.5
HIGH_AMBIGUITY_THRESHOLD = 0.8


@dataclass(frozen=True)
class AmbiguityScore:
    score: float  # 0-1, higher is more ambiguous
    reasons: list[str] = field(default_factory=list)
    requires_review: bool = False


def analyze_title_ambiguity(title: str) -> AmbiguityScore:
    """
    Score how likely a canonical title is to collide with unrelated films.

    Args:
        title: Canonical film title

    Returns:
        AmbiguityScore with the score capped at 1.0 and de-duplicated reasons
    """
    normalized = title.lower().strip()
    words = normalized.split()
    word_count = len(words)

    score = 0.0
    reasons: list[str] = []

    if word_count == 1:
        score += 0.5
        reasons.append("Single-word title")
    elif word_count == 2:
        score += 0.3
        reasons.append("Short title (2 words)")

    if len(normalized) <= 5:
        score += 0.3
        reasons.append("Very short title (≤5 chars)")
    elif len(normalized) <= 10:
        score += 0.1
        reasons.append("Short title (≤10 chars)")

    if normalized in COMMON_WORD_TITLES:
        score += 0.4
        reasons.append("Common English word")

    if word_count <= 2:
        for word in words:
            if word in COMMON_WORD_TITLES:
                score += 0.2
                reasons.append(f'Contains common word: "{word}"')
                break

    if normalized in COMMON_NAME_TITLES:
        score += 0.4
        reasons.append("Common first name")

    if words and words[0] in COMMON_NAME_TITLES:
        score += 0.2
        reasons.append(f'Starts with common name: "{words[0]}"')

    if YEAR_TITLE_RE.match(normalized):
        score += 0.3
        reasons.append("Year-based title")

    if word_count == 2 and words[0] == "the":
        score += 0.2
        reasons.append("'The X' pattern with single noun")

    score = min(score, 1.0)

    return AmbiguityScore(
        score=score,
        reasons=list(dict.fromkeys(reasons)),
        requires_review=score >= REVIEW_THRESHOLD or word_count == 1,
    )


def is_ambiguous_title(title: str) -> bool:
    return analyze_title_ambiguity(title).requires_review


def has_sufficient_metadata(title: str, has_year: bool, has_director: bool) -> bool:
    """
    Check whether the available hints are enough to auto-match a title.

    Highly ambiguous titles need both a year and a director, moderately
    ambiguous ones need a year, everything else can be matched as is.
    """
    ambiguity = analyze_title_ambiguity(title)

    if not ambiguity.requires_review:
        return True

    if ambiguity.score >= HIGH_AMBIGUITY_THRESHOLD:
        return has_year and has_director

    if ambiguity.score >= REVIEW_THRESHOLD:
        return has_year

    return True
