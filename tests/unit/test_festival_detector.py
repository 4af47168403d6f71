"""Unit tests for festival rules and inline festival detection."""

from datetime import date, datetime, timezone

from cinecatalog.models.festival import ConfidenceStrategy
from cinecatalog.services.festivals.detector import FestivalCache, FestivalDetector
from cinecatalog.services.festivals.rules import (
    FestivalRule,
    festival_matches,
    in_detection_window,
    matches_title_signals,
)
from tests.fakes import LONDON_TZ, make_festival


def frightfest() -> FestivalRule:
    return FestivalRule.from_model(
        make_festival(
            "frightfest-2026",
            venues=["prince-charles", "cineworld-leicester-square"],
            start_date=date(2026, 8, 27),
            end_date=date(2026, 8, 31),
            strategy=ConfidenceStrategy.AUTO,
            typical_months=[8],
        )
    )


def lff() -> FestivalRule:
    return FestivalRule.from_model(
        make_festival(
            "lff-2026",
            venues=["bfi-southbank", "prince-charles"],
            start_date=date(2026, 10, 7),
            end_date=date(2026, 10, 18),
            strategy=ConfidenceStrategy.TITLE,
            title_keywords=["LFF", "London Film Festival"],
            url_patterns=[r"whatson\.bfi\.org\.uk/lff/"],
            typical_months=[10],
        )
    )


def at(day: date, hour: int = 19) -> datetime:
    return datetime(day.year, day.month, day.day, hour, 0, tzinfo=LONDON_TZ)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


class TestFestivalRule:
    def test_from_model_lowercases_keywords(self) -> None:
        assert lff().title_keywords == ("lff", "london film festival")

    def test_invalid_url_pattern_is_skipped(self) -> None:
        rule = FestivalRule.from_model(make_festival(url_patterns=["(unclosed", r"/ff\d+/"]))
        assert len(rule.url_patterns) == 1

    def test_window_pads_festival_dates(self) -> None:
        rule = frightfest()
        assert rule.window_start == date(2026, 8, 24)
        assert rule.window_end == date(2026, 9, 1)

    def test_in_detection_window_inclusive(self) -> None:
        rule = frightfest()
        assert in_detection_window(rule, date(2026, 8, 24))
        assert in_detection_window(rule, date(2026, 9, 1))
        assert not in_detection_window(rule, date(2026, 8, 23))
        assert not in_detection_window(rule, date(2026, 9, 2))


class TestMatchesTitleSignals:
    def test_keyword_substring_case_insensitive(self) -> None:
        assert matches_title_signals(lff(), "Hamnet - LFF Gala", None)

    def test_url_pattern(self) -> None:
        url = "https://whatson.bfi.org.uk/lff/Online/default.asp?id=1"
        assert matches_title_signals(lff(), "Hamnet", url)

    def test_no_signal(self) -> None:
        assert not matches_title_signals(lff(), "Hamnet", "https://bfi.org.uk/book/1")


class TestFestivalMatches:
    def test_auto_matches_any_title_in_window(self) -> None:
        assert festival_matches(frightfest(), "prince-charles", "Anything", at(date(2026, 8, 28)), None, LONDON_TZ)

    def test_wrong_venue(self) -> None:
        assert not festival_matches(frightfest(), "barbican", "Anything", at(date(2026, 8, 28)), None, LONDON_TZ)

    def test_outside_window(self) -> None:
        assert not festival_matches(frightfest(), "prince-charles", "Anything", at(date(2026, 8, 10)), None, LONDON_TZ)

    def test_window_uses_local_date(self) -> None:
        # 23:30 UTC on 1 Sept is 00:30 on 2 Sept in London (BST)
        late = datetime(2026, 9, 1, 23, 30, tzinfo=timezone.utc)
        assert not festival_matches(frightfest(), "prince-charles", "Anything", late, None, LONDON_TZ)

    def test_title_strategy_needs_signal(self) -> None:
        start = at(date(2026, 10, 10))
        assert not festival_matches(lff(), "bfi-southbank", "Hamnet", start, None, LONDON_TZ)
        assert festival_matches(lff(), "bfi-southbank", "Hamnet (LFF)", start, None, LONDON_TZ)


# ---------------------------------------------------------------------------
# FestivalCache
# ---------------------------------------------------------------------------


class TestFestivalCache:
    def test_load_and_get(self) -> None:
        cache = FestivalCache(ttl_seconds=600)
        cache.load([frightfest(), lff()])

        assert cache.get("lff-2026").name == "lff-2026"
        assert cache.get("unknown") is None
        assert len(cache.rules()) == 2

    def test_staleness_follows_ttl(self) -> None:
        now = [1000.0]
        cache = FestivalCache(ttl_seconds=600, clock=lambda: now[0])
        assert cache.is_stale

        cache.load([frightfest()])
        assert not cache.is_stale

        now[0] += 600
        assert cache.is_stale

    def test_clear(self) -> None:
        cache = FestivalCache(ttl_seconds=600)
        cache.load([frightfest()])

        cache.clear()

        assert cache.rules() == []
        assert cache.is_stale


# ---------------------------------------------------------------------------
# FestivalDetector
# ---------------------------------------------------------------------------


def make_detector(*rules: FestivalRule) -> FestivalDetector:
    cache = FestivalCache(ttl_seconds=600)
    cache.load(list(rules))
    return FestivalDetector(cache, LONDON_TZ)


class TestFestivalDetector:
    def test_auto_festival_tags_screening_at_its_venue(self) -> None:
        detector = make_detector(frightfest(), lff())

        rule = detector.detect("prince-charles", "The Shining", at(date(2026, 8, 29)))

        assert rule is not None
        assert rule.slug == "frightfest-2026"

    def test_auto_festival_never_tags_outside_its_venues(self) -> None:
        detector = make_detector(frightfest())
        assert detector.detect("bfi-southbank", "The Shining", at(date(2026, 8, 29))) is None

    def test_title_festival_at_shared_venue_needs_keyword(self) -> None:
        detector = make_detector(frightfest(), lff())
        start = at(date(2026, 10, 10))

        assert detector.detect("prince-charles", "Hamnet", start) is None
        assert detector.detect("prince-charles", "Hamnet + LFF Q&A", start).slug == "lff-2026"

    def test_title_festival_url_signal(self) -> None:
        detector = make_detector(lff())
        url = "https://whatson.bfi.org.uk/lff/Online/default.asp?id=42"

        assert detector.detect("bfi-southbank", "Hamnet", at(date(2026, 10, 10)), url).slug == "lff-2026"

    def test_month_outside_typical_months_is_skipped(self) -> None:
        # Detection window opens 29 Aug, but the festival only runs in September
        rule = FestivalRule.from_model(
            make_festival(
                "late-fest",
                start_date=date(2026, 9, 1),
                end_date=date(2026, 9, 3),
                typical_months=[9],
            )
        )
        detector = make_detector(rule)

        assert detector.detect("prince-charles", "Anything", at(date(2026, 8, 30))) is None
        assert detector.detect("prince-charles", "Anything", at(date(2026, 9, 2))).slug == "late-fest"

    def test_known_hint_wins(self) -> None:
        detector = make_detector(frightfest(), lff())

        rule = detector.detect("barbican", "Anything", at(date(2026, 3, 1)), slug_hint="lff-2026")

        assert rule.slug == "lff-2026"

    def test_unknown_hint_falls_back_to_rules(self) -> None:
        detector = make_detector(frightfest())

        rule = detector.detect("prince-charles", "Anything", at(date(2026, 8, 28)), slug_hint="nope")

        assert rule.slug == "frightfest-2026"

    def test_no_festivals(self) -> None:
        assert make_detector().detect("prince-charles", "Anything", at(date(2026, 8, 28))) is None
