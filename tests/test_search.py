"""Tests for search module."""
import pytest

from quicksearch.config import SearchOptions
from quicksearch.index import build_index
from quicksearch.models import FUZZY, PRECISE, EntryKind, MatchField
from quicksearch.query import MODE_BOOKMARKS, MODE_FOLDERS, MODE_SEARCH, MODE_TAGS, parse_query
from quicksearch.search import (
    FuzzyMatcher,
    HybridMatcher,
    PreciseMatcher,
    get_matcher,
    search,
)


NO_ENGINES = SearchOptions(enable_search_engines=False)


def bookmarks(*specs):
    records = []
    for title, url, *folder in specs:
        records.append({"url": url, "title": title, "folder": list(folder[0]) if folder else []})
    return records


def hit_set(matches):
    return {pos: {(m.field, m.term) for m in hits} for pos, hits in matches.items()}


def all_fields():
    return list(MatchField)


@pytest.fixture
def small_index():
    return build_index(
        NO_ENGINES,
        bookmarks=bookmarks(
            ("Python Docs", "https://docs.python.org"),
            ("Rust Book", "https://doc.rust-lang.org/book"),
        ),
    )


class TestParseQuery:
    def test_terms_lowercased_and_deduped(self, options):
        query = parse_query("  Jira jira  Board ", options)
        assert query.terms == ("jira", "board")
        assert query.typed == "Jira jira  Board"

    def test_source_prefix(self, options):
        query = parse_query("b Jira", options)
        assert query.mode == MODE_BOOKMARKS
        assert query.terms == ("jira",)
        assert query.typed == "Jira"

    def test_search_engine_prefix(self, options):
        assert parse_query("s Hello", options).mode == MODE_SEARCH

    def test_tag_mode(self, options):
        query = parse_query("#work #Team", options)
        assert query.mode == MODE_TAGS
        assert query.terms == ("work", "team")
        assert query.is_browse

    def test_folder_mode(self, options):
        query = parse_query("~Work", options)
        assert query.mode == MODE_FOLDERS
        assert query.terms == ("work",)

    def test_tag_mode_disabled(self):
        query = parse_query("#work", SearchOptions(display_tags=False))
        assert query.mode != MODE_TAGS
        assert query.terms == ("#work",)

    def test_short_terms_dropped(self):
        query = parse_query("a go python", SearchOptions(search_min_match_char_length=3))
        assert query.terms == ("python",)


class TestPreciseMatcher:
    def test_starts_with_tokens(self, small_index):
        matches = PreciseMatcher("startsWith").match(["doc"], small_index, [0, 1], all_fields())
        assert hit_set(matches) == {
            0: {(MatchField.TITLE, "doc")},
            1: {(MatchField.URL, "doc")},
        }

    def test_starts_with_url_segments(self, small_index):
        matcher = PreciseMatcher("startsWith")
        matches = matcher.match(["lang"], small_index, [0, 1], all_fields())
        assert hit_set(matches) == {1: {(MatchField.URL, "lang")}}
        url = small_index.entries[1].url
        start, end = matches[1][0].span
        assert url[start:end] == "lang"

    def test_starts_with_url_skips_scheme(self, small_index):
        matches = PreciseMatcher("startsWith").match(["http", "ocs"], small_index, [0, 1], all_fields())
        assert matches == {}

    def test_includes(self, small_index):
        matches = PreciseMatcher("includes").match(["doc"], small_index, [0, 1], all_fields())
        assert hit_set(matches) == {
            0: {(MatchField.TITLE, "doc"), (MatchField.URL, "doc")},
            1: {(MatchField.URL, "doc")},
        }

    def test_span(self, small_index):
        matches = PreciseMatcher("startsWith").match(["docs"], small_index, [0], [MatchField.TITLE])
        assert matches[0][0].span == (7, 11)

    def test_every_field_recorded(self, sample_index):
        jira = [e.position for e in sample_index if e.title == "Jira Board"][0]
        matches = PreciseMatcher("startsWith").match(["work", "jira"], sample_index, [jira], all_fields())
        assert hit_set(matches)[jira] == {
            (MatchField.TITLE, "jira"),
            (MatchField.TAG, "work"),
            (MatchField.FOLDER, "work"),
        }

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError, match="endsWith"):
            PreciseMatcher("endsWith")


class TestFuzzyMatcher:
    def test_tolerates_typo(self, small_index):
        matches = FuzzyMatcher(0.3).match(["pyhton"], small_index, [0, 1], all_fields())
        assert set(matches) == {0}
        title_hit = [m for m in matches[0] if m.field is MatchField.TITLE][0]
        assert title_hit.strategy == FUZZY
        assert 0.7 <= title_hit.similarity < 1

    def test_strict_threshold_rejects_typo(self, small_index):
        assert FuzzyMatcher(0.1).match(["pyhton"], small_index, [0, 1], all_fields()) == {}

    def test_zero_fuzziness_matches_like_includes(self, sample_index):
        candidates = list(range(len(sample_index)))
        for text in ["oo", "work", "python docs", "exam", "xyz", "stack", "bookmarks bar", "c"]:
            terms = text.split()
            fuzzy = FuzzyMatcher(0).match(terms, sample_index, candidates, all_fields())
            precise = PreciseMatcher("includes").match(terms, sample_index, candidates, all_fields())
            assert hit_set(fuzzy) == hit_set(precise), text

    def test_term_longer_than_field(self, small_index):
        matches = FuzzyMatcher(0).match(["python docs and more"], small_index, [0], [MatchField.TITLE])
        assert matches == {}

    def test_invalid_fuzziness(self):
        with pytest.raises(ValueError):
            FuzzyMatcher(1.2)


class TestHybridMatcher:
    def test_precise_wins_per_field(self, small_index):
        matcher = HybridMatcher(PreciseMatcher("startsWith"), FuzzyMatcher(0.3))
        hits = matcher.match(["python"], small_index, [0, 1], all_fields())[0]
        title_hits = [h for h in hits if h.field is MatchField.TITLE]
        assert len(title_hits) == 1
        assert title_hits[0].strategy == PRECISE
        url_hits = [h for h in hits if h.field is MatchField.URL]
        assert url_hits[0].strategy == FUZZY


class TestGetMatcher:
    @pytest.mark.parametrize("strategy,cls", [
        ("precise", PreciseMatcher),
        ("fuzzy", FuzzyMatcher),
        ("hybrid", HybridMatcher),
    ])
    def test_dispatch(self, strategy, cls):
        assert isinstance(get_matcher(SearchOptions(search_strategy=strategy)), cls)

    def test_unknown_strategy(self, options):
        with pytest.raises(ValueError, match="semantic"):
            get_matcher(options, strategy="semantic")


class TestPreciseSearch:
    def test_finds_by_title(self, sample_index, options, now):
        results = search("jira", sample_index, options, now=now)
        assert results[0].entry.url == "https://jira.example.com/board"

    def test_empty_query_returns_empty(self, sample_index, options, now):
        assert search("", sample_index, options, now=now) == []
        assert search("   ", sample_index, options, now=now) == []

    def test_no_match_returns_only_engines(self, sample_index, options, now):
        results = search("xyznonexistent", sample_index, options, now=now)
        assert {r.entry.kind for r in results} == {EntryKind.SEARCH_ENGINE}

    def test_no_match_without_engines(self, sample_index, now):
        assert search("xyznonexistent", sample_index, NO_ENGINES, now=now) == []

    def test_search_engine_urls(self, sample_index, options, now):
        results = search("Jira Board", sample_index, options, now=now)
        engines = [r for r in results if r.entry.kind is EntryKind.SEARCH_ENGINE]
        assert engines[0].entry.url == "https://www.google.com/search?q=Jira Board"
        assert engines[0].breakdown["base"] == 30
        # the engine url echoes the query, so both terms hit it
        assert engines[0].breakdown["exact_includes"] == pytest.approx(2 * 5 * 0.6)

    def test_end_to_end_custom_bonus(self, options, now):
        index = build_index(options, bookmarks=[{"title": "GitHub +10", "url": "https://github.com"}])
        results = search("git", index, options, now=now)

        found = [r for r in results if r.entry.kind is EntryKind.BOOKMARK]
        assert len(found) == 1
        assert found[0].score == 100 + 1 + 5 + 10 + 10
        assert found[0].breakdown == {
            "base": 100, "title": 1, "exact_includes": 5, "exact_starts_with": 10, "custom": 10,
        }
        assert len(results) == 1 + len(options.search_engine_choices)

    def test_url_only_match_with_default_algorithm(self, now):
        index = build_index(NO_ENGINES, history=[{"title": "Sign in", "url": "https://github.com/login"}])
        results = search("github", index, NO_ENGINES, now=now)

        assert [r.entry.url for r in results] == ["https://github.com/login"]
        assert results[0].matched_fields == {MatchField.URL}
        assert results[0].score == pytest.approx(50 + 0.6 + 5 * 0.6 + 10 * 0.6)

    def test_title_beats_folder(self, now):
        index = build_index(
            NO_ENGINES,
            bookmarks=bookmarks(
                ("Notes", "https://b.example.com", ["Project"]),
                ("Project Alpha", "https://a.example.com"),
            ),
        )
        results = search("project", index, NO_ENGINES, now=now)
        assert [r.entry.title for r in results] == ["Project Alpha", "Notes"]
        assert results[0].score > results[1].score

    def test_ratio_one_requires_all_terms(self, now):
        data = bookmarks(("Python Docs", "https://docs.python.org"), ("Python Tutorial", "https://t.example.com"))
        strict = NO_ENGINES.replace(score_min_search_term_match_ratio=1)
        loose = NO_ENGINES.replace(score_min_search_term_match_ratio=0)

        strict_results = search("python docs", build_index(strict, bookmarks=data), strict, now=now)
        loose_results = search("python docs", build_index(loose, bookmarks=data), loose, now=now)
        assert [r.entry.title for r in strict_results] == ["Python Docs"]
        assert [r.entry.title for r in loose_results] == ["Python Docs", "Python Tutorial"]

    def test_deterministic(self, sample_index, options, now):
        first = [r.to_dict() for r in search("o", sample_index, options, now=now)]
        second = [r.to_dict() for r in search("o", sample_index, options, now=now)]
        assert first == second

    def test_min_score_monotonic(self, sample_index, now):
        counts = []
        for min_score in [0, 30, 60, 100, 110, 130]:
            options = NO_ENGINES.replace(search_precise_match_algorithm="includes", score_min_score=min_score)
            counts.append(len(search("o", sample_index, options, now=now)))
        assert counts == sorted(counts, reverse=True)
        assert counts[0] > counts[-1]

    def test_respects_max_results(self, now):
        options = NO_ENGINES.replace(search_max_results=3)
        index = build_index(options, bookmarks=bookmarks(*[(f"Item {i}", f"https://{i}.example.com") for i in range(10)]))
        results = search("item", index, options, now=now)
        assert [r.entry.title for r in results] == ["Item 0", "Item 1", "Item 2"]

    def test_negative_custom_bonus_filtered(self, now):
        index = build_index(NO_ENGINES, bookmarks=[{"title": "Spam +-200", "url": "https://spam.example.com"}])
        assert search("spam", index, NO_ENGINES, now=now) == []

        permissive = NO_ENGINES.replace(score_min_score=-1000)
        results = search("spam", index, permissive, now=now)
        assert results[0].score < 0

    def test_short_terms_ignored(self, sample_index, now):
        options = NO_ENGINES.replace(search_min_match_char_length=3)
        assert search("ji", sample_index, options, now=now) == []
        # "xx" neither matches nor counts against the ratio
        assert search("jira xx", sample_index, options, now=now)[0].entry.title == "Jira Board"


class TestSearchModes:
    def test_bookmarks_only(self, sample_index, options, now):
        results = search("b stack", sample_index, options, now=now)
        assert [r.entry.kind for r in results] == [EntryKind.BOOKMARK]

    def test_history_only(self, sample_index, options, now):
        results = search("h hacker", sample_index, options, now=now)
        assert [r.entry.title for r in results] == ["Hacker News"]

    def test_tabs_only(self, sample_index, options, now):
        results = search("t pull", sample_index, options, now=now)
        assert [r.entry.kind for r in results] == [EntryKind.TAB]

    def test_search_engines_only(self, sample_index, options, now):
        results = search("s Jira", sample_index, options, now=now)
        assert len(results) == 4
        assert results[0].entry.url == "https://www.google.com/search?q=Jira"

    def test_tag_browse_not_truncated(self, sample_index, now):
        options = SearchOptions(search_max_results=1)
        results = search("#work", sample_index, options, now=now)
        assert {r.entry.title for r in results} == {"Jira Board", "Pull requests"}
        assert all(r.matched_fields == {MatchField.TAG} for r in results)

    def test_folder_browse(self, sample_index, options, now):
        results = search("~work", sample_index, options, now=now)
        assert {r.entry.title for r in results} == {"Jira Board", "Confluence"}


class TestFuzzyAndHybridSearch:
    def test_fuzzy_finds_typo(self, small_index, now):
        options = NO_ENGINES.replace(search_strategy="fuzzy", search_fuzzyness=0.3)
        results = search("pyhton", small_index, options, now=now)
        assert [r.entry.title for r in results] == ["Python Docs"]
        assert results[0].strategy == FUZZY

    def test_fuzzy_exempt_from_ratio(self, small_index, now):
        options = NO_ENGINES.replace(
            search_strategy="fuzzy", search_fuzzyness=0.3, score_min_search_term_match_ratio=1
        )
        results = search("pyhton zzzz", small_index, options, now=now)
        assert [r.entry.title for r in results] == ["Python Docs"]

    def test_hybrid_bonuses(self, small_index, now):
        options = NO_ENGINES.replace(search_strategy="hybrid", search_fuzzyness=0.3)
        precise = search("python", small_index, options, now=now)[0]
        fuzzy = search("pyhton", small_index, options, now=now)[0]
        assert precise.strategy == PRECISE
        assert precise.breakdown["hybrid"] == 40
        assert fuzzy.strategy == FUZZY
        assert fuzzy.breakdown["hybrid"] == -10

    def test_hybrid_no_double_counted_field(self, small_index, now):
        options = NO_ENGINES.replace(search_strategy="hybrid", search_fuzzyness=0.3)
        result = search("python", small_index, options, now=now)[0]
        assert result.breakdown["title"] == 1
        assert len([m for m in result.matches if m.field is MatchField.TITLE]) == 1
