"""Cleaning of raw listing titles into display and canonical film titles."""

import enum
import html
import logging
import re
from dataclasses import dataclass, replace

from cinecatalog.services.text_classifier import ClassifierResult, TextClassifier
from cinecatalog.utils.text import title_key

logger = logging.getLogger(__name__)

QUOTE_CHARS = "\"'“”‘’«»„"

# Trailing cruft, stripped repeatedly until nothing else matches
TITLE_SUFFIXES = [
    re.compile(r"\s*\((U|PG|12A?|15|18)\*?\)\s*$", re.IGNORECASE),  # BBFC certificate
    re.compile(r"\s*\[[^\]]*\]\s*$"),  # "[is a Christmas Movie]"
    re.compile(r"\s*[-–]\s*(35mm|70mm|4k|imax)\s*$", re.IGNORECASE),
    re.compile(r"\s*\+\s*(q\s*&\s*a|discussion|intro)\s*$", re.IGNORECASE),
]

# Event framing in front of the film title. Order matters: at most one is stripped.
# Words that can also open a real title ("Marathon Man") need a ":" or "|".
EVENT_PREFIXES = [
    # Kids/family events
    re.compile(r"^saturday\s+morning\s+picture\s+club[:\s]+", re.IGNORECASE),
    re.compile(r"^kids['’\s]*club[:\s]+", re.IGNORECASE),
    re.compile(r"^family\s+film[:\s]+", re.IGNORECASE),
    re.compile(r"^toddler\s+time[:\s]+", re.IGNORECASE),
    re.compile(r"^big\s+scream[:\s]+", re.IGNORECASE),
    re.compile(r"^baby\s+club[:\s]+", re.IGNORECASE),
    # Premieres and previews
    re.compile(r"^uk\s+premiere\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^world\s+premiere\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^preview\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^sneak\s+preview[:\s]+", re.IGNORECASE),
    re.compile(r"^advance\s+screening[:\s]+", re.IGNORECASE),
    re.compile(r"^special\s+screening[:\s]+", re.IGNORECASE),
    re.compile(r"^member['’\s]*s?\s+screening[:\s]+", re.IGNORECASE),
    # Formats
    re.compile(r"^35mm[:\s]+", re.IGNORECASE),
    re.compile(r"^70mm\s+imax[:\s]+", re.IGNORECASE),
    re.compile(r"^70mm[:\s]+", re.IGNORECASE),
    re.compile(r"^imax[:\s]+", re.IGNORECASE),
    re.compile(r"^4k\s+restoration[:\s]+", re.IGNORECASE),
    re.compile(r"^restoration\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^director['’\s]*s?\s+cut[:\s]+", re.IGNORECASE),
    # Seasons and series
    re.compile(r"^cult\s+classics?\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^classics?\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^throwback\s+thursday[:\s]+", re.IGNORECASE),
    re.compile(r"^flashback\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^film\s+club[:\s]+", re.IGNORECASE),
    re.compile(r"^cinema\s+club[:\s]+", re.IGNORECASE),
    re.compile(r"^late\s+night\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^midnight\s+madness\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^double\s+bill[:\s]+", re.IGNORECASE),
    re.compile(r"^double\s+feature[:\s]+", re.IGNORECASE),
    re.compile(r"^triple\s+bill[:\s]+", re.IGNORECASE),
    re.compile(r"^marathon\s*[:|]\s*", re.IGNORECASE),
    re.compile(r"^retrospective\s*[:|]\s*", re.IGNORECASE),
    # Q&As and intros
    re.compile(r"^q\s*&\s*a[:\s]+", re.IGNORECASE),
    re.compile(r"^live\s+q\s*&\s*a[:\s]+", re.IGNORECASE),
    re.compile(r"^with\s+q\s*&\s*a[:\s]+", re.IGNORECASE),
    re.compile(r"^intro\s+by[^:]*:\s*", re.IGNORECASE),
    re.compile(r"^introduced\s+by[^:]*:\s*", re.IGNORECASE),
    # Sing-alongs
    re.compile(r"^sing[\s-]*a[\s-]*long[:\s]+", re.IGNORECASE),
    re.compile(r"^quote[\s-]*a[\s-]*long[:\s]+", re.IGNORECASE),
    re.compile(r"^singalong[:\s]+", re.IGNORECASE),
    # Seasonal
    re.compile(r"^christmas\s+classics?[:\s]+", re.IGNORECASE),
    re.compile(r"^holiday\s+film[:\s]+", re.IGNORECASE),
    re.compile(r"^festive\s+film[:\s]+", re.IGNORECASE),
]

FRANCHISE_RE = re.compile(
    r"^(star\s+wars|indiana\s+jones|harry\s+potter|lord\s+of\s+the\s+rings|"
    r"mission\s*:?\s*impossible|pirates\s+of\s+the\s+caribbean|fast\s+(&|and)\s+furious|"
    r"jurassic\s+(park|world)|the\s+matrix|batman|spider[\s-]?man|x[\s-]?men|avengers|"
    r"guardians\s+of\s+the\s+galaxy|toy\s+story|shrek|finding\s+(nemo|dory)|"
    r"the\s+dark\s+knight|alien|terminator|mad\s+max|back\s+to\s+the\s+future|die\s+hard|"
    r"lethal\s+weapon|home\s+alone|rocky|rambo|the\s+godfather)\b",
    re.IGNORECASE,
)

SERIES_RE = re.compile(r"^(part|series|season|volume|vol\.?|chapter|episode)\b", re.IGNORECASE)
YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")
COLON_RE = re.compile(r"^([^:]+):\s*(.+)$")

_VERSIONS = (
    r"(?:The\s+)?Final\s+Cut|Director['’]?s?\s+Cut|Extended\s+(?:Edition|Cut)"
    r"|Original\s+(?:Edition|Cut)|Theatrical\s+(?:Edition|Cut)|Ultimate\s+(?:Edition|Cut)"
    r"|Special\s+Edition|Uncut|Redux|Remastered|Restored|Re-?release"
)
VERSION_SUFFIXES = [
    re.compile(rf"\s*:\s*(?P<version>{_VERSIONS})$", re.IGNORECASE),
    re.compile(
        r"\s+[-–]\s*(?P<version>(?:The\s+)?Final\s+Cut|Director['’]?s?\s+Cut"
        r"|Extended\s+(?:Edition|Cut)|Redux|Remastered|Restored)$",
        re.IGNORECASE,
    ),
]

QUOTED_PHRASE_RE = re.compile(r"[\"“„«][^\"“”„«»]+[\"”»]")
SPECIAL_WORDING_RE = re.compile(
    r"\b(anniversary|in\s+concert|concert|live\s+broadcast|broadcast|encore|"
    r"live\s+from|nt\s+live|met\s+opera)\b",
    re.IGNORECASE,
)
MAX_CONFIDENT_LENGTH = 60

# Listings that are events rather than films; never sent to the catalog
NON_FILM_PATTERNS = [
    re.compile(r"\bquiz\b", re.IGNORECASE),
    re.compile(r"\breading\s+group\b", re.IGNORECASE),
    re.compile(r"\bcaf[ée]s?\s+philo\b", re.IGNORECASE),
    re.compile(r"\bcompetition\b", re.IGNORECASE),
    re.compile(r"\bstory\s+time\b", re.IGNORECASE),
    re.compile(r"\bbaby\s+comptines\b", re.IGNORECASE),
    re.compile(r"\blanguage\s+activity\b", re.IGNORECASE),
    re.compile(r"\bin\s+conversation\s+with\b", re.IGNORECASE),
    re.compile(r"\bcome\s+and\s+sing\b", re.IGNORECASE),
    re.compile(r"\bmarathon$", re.IGNORECASE),
    re.compile(r"\borgan\s+trio\b", re.IGNORECASE),
    re.compile(r"\bcomedy:", re.IGNORECASE),
    re.compile(r"\bvinyl\s+(reggae|sisters)\b", re.IGNORECASE),
    re.compile(r"\banimated\s+shorts\s+for\b", re.IGNORECASE),
]


class TitleConfidence(str, enum.Enum):
    HIGH = "high"
    LOW = "low"


@dataclass(frozen=True)
class NormalizedTitle:
    """
    Result of cleaning one raw listing title.

    display_title keeps a version suffix ("Apocalypse Now : Final Cut"),
    canonical_title does not ("Apocalypse Now"). Both keep accents;
    match_key is the folded form used for deduplication.
    """

    display_title: str
    canonical_title: str
    version: str | None
    confidence: TitleConfidence
    year: int | None = None
    classified: bool = False

    @property
    def match_key(self) -> str:
        return title_key(self.canonical_title)

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence is TitleConfidence.LOW


def _collapse(title: str) -> str:
    return re.sub(r"\s+", " ", html.unescape(title)).strip()


def _strip_surrounding_quotes(title: str) -> str:
    if len(title) > 2 and title[0] in QUOTE_CHARS and title[-1] in QUOTE_CHARS:
        return title.strip(QUOTE_CHARS).strip()
    return title


def strip_suffixes(title: str) -> str:
    """Strip trailing certificates, bracketed notes and format/Q&A suffixes."""
    previous = None
    while previous != title:
        previous = title
        for pattern in TITLE_SUFFIXES:
            title = pattern.sub("", title).strip()
    return title


def _strip_event_prefix(title: str) -> str:
    for prefix in EVENT_PREFIXES:
        if prefix.search(title):
            stripped = prefix.sub("", title, count=1).strip()
            # Only one prefix, and never the whole title
            return stripped or title
    return title


def split_version(title: str) -> tuple[str, str | None]:
    """
    Split a trailing version marker off a title.

    Returns:
        (canonical title, version) or (title, None) when no marker ends it
    """
    for pattern in VERSION_SUFFIXES:
        match = pattern.search(title)
        if match:
            base = title[: match.start()].strip()
            if base:
                return base, match.group("version").strip()
    return title, None


def _resolve_colon(title: str) -> tuple[str, bool]:
    """
    Decide whether the part before a colon is event framing.

    Returns:
        (title, resolved). resolved is False when the colon could not be
        explained by a franchise, a series pattern or a short prefix.
    """
    match = COLON_RE.match(title)
    if not match:
        return title, True

    before = match.group(1).strip()
    after = match.group(2).strip()

    if FRANCHISE_RE.match(title) or SERIES_RE.match(before) or SERIES_RE.match(after):
        return title, True

    if len(before.split()) <= 2 and not YEAR_RE.search(before) and len(after) > 3:
        return after, True

    return title, False


def normalize_title(raw_title: str) -> NormalizedTitle:
    """
    Clean a raw listing title.

    Pure and synchronous. Confidence is LOW when the title still looks
    suspicious after every rule has run; callers may then ask a classifier.

    Examples:
        "Apocalypse Now : Final Cut (15)"
            → display "Apocalypse Now : Final Cut", canonical "Apocalypse Now"
        "Saturday Morning Picture Club: Paddington 2"
            → display/canonical "Paddington 2"
    """
    title = _strip_surrounding_quotes(_collapse(raw_title))
    title = strip_suffixes(title)
    title = _strip_event_prefix(title)

    colon_resolved = True
    if not any(pattern.search(title) for pattern in VERSION_SUFFIXES):
        title, colon_resolved = _resolve_colon(title)

    display = strip_suffixes(title)
    canonical, version = split_version(display)

    suspicious = (
        not display
        or not colon_resolved
        or len(display) > MAX_CONFIDENT_LENGTH
        or QUOTED_PHRASE_RE.search(display) is not None
        or SPECIAL_WORDING_RE.search(display) is not None
    )

    return NormalizedTitle(
        display_title=display,
        canonical_title=canonical,
        version=version,
        confidence=TitleConfidence.LOW if suspicious else TitleConfidence.HIGH,
    )


def is_non_film(raw_title: str) -> bool:
    """True for quizzes, talks, reading groups and other non-film events."""
    title = _collapse(raw_title)
    return any(pattern.search(title) for pattern in NON_FILM_PATTERNS)


class ClassificationCache:
    """Normalization results keyed by raw title, owned by one ingestion run."""

    def __init__(self) -> None:
        self._entries: dict[str, NormalizedTitle] = {}

    def get(self, raw_title: str) -> NormalizedTitle | None:
        return self._entries.get(raw_title)

    def put(self, raw_title: str, result: NormalizedTitle) -> None:
        self._entries[raw_title] = result

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, raw_title: object) -> bool:
        return raw_title in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class TitleNormalizer:
    """
    Two-stage title normalization: regex rules, then an optional classifier.

    The classifier is only consulted for LOW confidence titles and its
    failures are not errors: the regex result is kept.
    """

    def __init__(
        self,
        classifier: TextClassifier | None = None,
        cache: ClassificationCache | None = None,
    ) -> None:
        self.classifier = classifier
        self.cache = cache if cache is not None else ClassificationCache()

    async def normalize(self, raw_title: str) -> NormalizedTitle:
        cached = self.cache.get(raw_title)
        if cached is not None:
            return cached

        result = normalize_title(raw_title)
        if result.is_low_confidence and self.classifier is not None:
            outcome = await self.classifier.classify(raw_title)
            if isinstance(outcome, ClassifierResult):
                result = self._apply_classification(result, outcome)
            else:
                logger.info(f"Classifier unavailable for '{raw_title}': {outcome.reason}")

        self.cache.put(raw_title, result)
        return result

    def _apply_classification(
        self, regex_result: NormalizedTitle, outcome: ClassifierResult
    ) -> NormalizedTitle:
        display = strip_suffixes(_collapse(outcome.clean_title))
        if not display:
            return regex_result

        canonical, version = split_version(display)
        confidence = (
            TitleConfidence.HIGH if outcome.confidence == "high" else TitleConfidence.LOW
        )
        logger.debug(f"Classifier override: '{regex_result.display_title}' -> '{display}'")
        return replace(
            regex_result,
            display_title=display,
            canonical_title=canonical,
            version=version,
            confidence=confidence,
            year=outcome.year,
            classified=True,
        )
