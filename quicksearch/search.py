"""Search strategies and the per-keystroke search entry point.

Three matchers share one contract: given the query terms, the index, the
candidate entry positions and the fields to look at, return every
(term, field) hit grouped by entry position.

* ``PreciseMatcher``: ``startsWith`` (a token of the field begins with the
  term) or ``includes`` (substring anywhere)
* ``FuzzyMatcher``: approximate substring matching with rapidfuzz
* ``HybridMatcher``: both, precise hits take precedence
"""
import re
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from rapidfuzz import fuzz

from quicksearch.config import SearchOptions
from quicksearch.index import EntryFields, SearchIndex
from quicksearch.models import FUZZY, PRECISE, EntryKind, MatchField, MatchResult, ScoredResult
from quicksearch.normalize import search_engine_entries
from quicksearch.query import (
    MODE_ALL,
    MODE_BOOKMARKS,
    MODE_FOLDERS,
    MODE_HISTORY,
    MODE_SEARCH,
    MODE_TABS,
    MODE_TAGS,
    Query,
    parse_query,
)
from quicksearch.ranking import rank_results
from quicksearch.scoring import calculate_score


Matches = Dict[int, List[MatchResult]]

_MODE_KINDS = {
    MODE_TABS: EntryKind.TAB,
    MODE_BOOKMARKS: EntryKind.BOOKMARK,
    MODE_HISTORY: EntryKind.HISTORY,
}

# Segments of a url between separators: host labels, path parts, query keys and values
_URL_TOKEN = re.compile(r"[^\s/.?=&#:_-]+")


def field_values(fields: EntryFields, field: MatchField) -> Tuple[str, ...]:
    """Lowercase values of one field; tags and folders can hold several."""
    if field is MatchField.TITLE:
        return (fields.title,)
    if field is MatchField.URL:
        return (fields.url,)
    if field is MatchField.TAG:
        return fields.tags
    return fields.folder


class Matcher(Protocol):
    """Protocol for search strategies."""

    def match(self, terms: Sequence[str], index: SearchIndex, candidates: Iterable[int],
              fields: Sequence[MatchField]) -> Matches:
        """Find all (term, field) hits.

        Args:
            terms: Lowercase query terms
            index: Index to search
            candidates: Entry positions to consider
            fields: Fields to search in

        Returns:
            Hits grouped by entry position; entries without hits are absent
        """
        ...


class PreciseMatcher:
    """Exact matching, no tolerance for misspellings.

    With ``startsWith`` the url is split into host and path segments (scheme
    and ``www.`` skipped) and only consulted for terms no other field matched,
    so a url never adds weight to an entry whose title already matched.
    """

    def __init__(self, algorithm: str = "startsWith"):
        if algorithm not in ("startsWith", "includes"):
            raise ValueError(f"Unknown precise match algorithm: {algorithm!r}")
        self.algorithm = algorithm

    def _find(self, term: str, value: str) -> Optional[Tuple[int, int]]:
        if self.algorithm == "includes":
            start = value.find(term)
            return (start, start + len(term)) if start >= 0 else None

        offset = 0
        for token in value.split():
            offset = value.find(token, offset)
            if token.startswith(term):
                return (offset, offset + len(term))
            offset += len(token)
        return None

    def _find_in_url(self, term: str, fields: EntryFields) -> Optional[Tuple[int, int]]:
        offset = len(fields.url) - len(fields.bare_url)
        for token in _URL_TOKEN.finditer(fields.bare_url):
            if token.group().startswith(term):
                start = offset + token.start()
                return (start, start + len(term))
        return None

    def match(self, terms: Sequence[str], index: SearchIndex, candidates: Iterable[int],
              fields: Sequence[MatchField]) -> Matches:
        results: Matches = {}
        entries = index.entries
        url_fallback = self.algorithm == "startsWith" and MatchField.URL in fields
        for pos in candidates:
            entry_fields = index.fields[pos]
            hits: List[MatchResult] = []
            for field in fields:
                if url_fallback and field is MatchField.URL:
                    continue
                for value in field_values(entry_fields, field):
                    for term in terms:
                        span = self._find(term, value)
                        if span is None:
                            continue
                        if any(h.field is field and h.term == term for h in hits):
                            continue
                        hits.append(MatchResult(entries[pos], field, term, PRECISE, 1.0, span))
            if url_fallback:
                matched = {h.term for h in hits}
                for term in terms:
                    if term in matched:
                        continue
                    span = self._find_in_url(term, entry_fields)
                    if span is not None:
                        hits.append(MatchResult(entries[pos], MatchField.URL, term, PRECISE, 1.0, span))
            if hits:
                results[pos] = hits
        return results


class FuzzyMatcher:
    """Approximate substring matching.

    A term matches a field value when its best partial alignment has a
    normalized similarity of at least ``1 - fuzziness``. With fuzziness 0 that
    is exactly substring containment.
    """

    def __init__(self, fuzziness: float = 0.6):
        if not 0 <= fuzziness <= 1:
            raise ValueError(f"Fuzziness must be between 0 and 1, got {fuzziness!r}")
        self.fuzziness = fuzziness
        self.cutoff = round((1 - fuzziness) * 100, 6)

    def _similarity(self, term: str, value: str) -> Optional[Tuple[float, Tuple[int, int]]]:
        if not value:
            return None
        if len(term) > len(value):
            # partial_ratio would look for the value inside the term
            score = fuzz.ratio(term, value)
            if score < self.cutoff:
                return None
            return score / 100, (0, len(value))

        alignment = fuzz.partial_ratio_alignment(term, value, score_cutoff=self.cutoff)
        if alignment is None or alignment.score < self.cutoff:
            return None
        return alignment.score / 100, (alignment.dest_start, alignment.dest_end)

    def match(self, terms: Sequence[str], index: SearchIndex, candidates: Iterable[int],
              fields: Sequence[MatchField]) -> Matches:
        results: Matches = {}
        entries = index.entries
        for pos in candidates:
            entry_fields = index.fields[pos]
            best: Dict[Tuple[MatchField, str], MatchResult] = {}
            for field in fields:
                for value in field_values(entry_fields, field):
                    for term in terms:
                        found = self._similarity(term, value)
                        if found is None:
                            continue
                        similarity, span = found
                        current = best.get((field, term))
                        if current is None or similarity > current.similarity:
                            best[(field, term)] = MatchResult(entries[pos], field, term, FUZZY, similarity, span)
            if best:
                results[pos] = list(best.values())
        return results


class HybridMatcher:
    """Run precise and fuzzy matching; a precise hit wins over a fuzzy one for the same field and term."""

    def __init__(self, precise: PreciseMatcher, fuzzy: FuzzyMatcher):
        self.precise = precise
        self.fuzzy = fuzzy

    def match(self, terms: Sequence[str], index: SearchIndex, candidates: Iterable[int],
              fields: Sequence[MatchField]) -> Matches:
        candidates = list(candidates)
        precise = self.precise.match(terms, index, candidates, fields)
        fuzzy = self.fuzzy.match(terms, index, candidates, fields)

        results: Matches = {}
        for pos in sorted(set(precise) | set(fuzzy)):
            hits = list(precise.get(pos, []))
            taken = {(h.field, h.term) for h in hits}
            hits.extend(h for h in fuzzy.get(pos, []) if (h.field, h.term) not in taken)
            results[pos] = hits
        return results


def get_matcher(options: SearchOptions, strategy: Optional[str] = None) -> Matcher:
    """Pick the matcher for a search strategy.

    Args:
        options: Resolved search options
        strategy: Override for ``options.search_strategy``

    Returns:
        Matcher instance

    Raises:
        ValueError: If the strategy is not one of precise, fuzzy or hybrid
    """
    strategy = strategy if strategy is not None else options.search_strategy
    if strategy == "precise":
        return PreciseMatcher(options.search_precise_match_algorithm)
    if strategy == "fuzzy":
        return FuzzyMatcher(options.search_fuzzyness)
    if strategy == "hybrid":
        return HybridMatcher(
            PreciseMatcher(options.search_precise_match_algorithm),
            FuzzyMatcher(options.search_fuzzyness),
        )
    raise ValueError(f"Unknown search strategy: {strategy!r}")


def _search_fields(query: Query, options: SearchOptions) -> List[MatchField]:
    if query.mode == MODE_TAGS:
        return [MatchField.TAG]
    if query.mode == MODE_FOLDERS:
        return [MatchField.FOLDER]
    fields = [MatchField.TITLE]
    if options.display_tags:
        fields.append(MatchField.TAG)
    fields.append(MatchField.URL)
    if options.display_folder_name:
        fields.append(MatchField.FOLDER)
    return fields


def _candidates(index: SearchIndex, query: Query) -> List[int]:
    kind = _MODE_KINDS.get(query.mode)
    if kind is None:
        return list(range(len(index)))
    return [e.position for e in index.entries if e.kind is kind]


def search(query_text: str, index: SearchIndex, options: SearchOptions,
           now: Optional[datetime] = None) -> List[ScoredResult]:
    """Search the index and return ranked results.

    Args:
        query_text: Query as typed, optionally with a mode prefix
            (``t ``, ``b ``, ``h ``, ``s ``, ``#tag``, ``~folder``)
        index: Index built for the current data
        options: Resolved search options
        now: Reference time for recency bonuses (defaults to now, UTC)

    Returns:
        Results sorted by score, highest first. Empty for an empty query.

    Raises:
        ValueError: If the configured search strategy is unknown
    """
    matcher = get_matcher(options)
    query = parse_query(query_text, options)
    if query.is_empty:
        return []

    results: List[ScoredResult] = []
    if query.mode != MODE_SEARCH:
        matches = matcher.match(query.terms, index, _candidates(index, query), _search_fields(query, options))
        for pos in sorted(matches):
            hits = matches[pos]
            strategy = PRECISE if any(h.strategy == PRECISE for h in hits) else FUZZY
            entry = index.entries[pos]
            score, breakdown = calculate_score(entry, hits, query, options, strategy=strategy, now=now)
            results.append(ScoredResult(entry, tuple(hits), score, breakdown, strategy))

    if options.enable_search_engines and query.mode in (MODE_ALL, MODE_SEARCH):
        for i, entry in enumerate(search_engine_entries(query.typed, options)):
            entry = replace(entry, position=len(index) + i)
            score, breakdown = calculate_score(entry, (), query, options, now=now)
            results.append(ScoredResult(entry, (), score, breakdown, PRECISE))

    return rank_results(results, query, options)
