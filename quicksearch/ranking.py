"""Threshold filtering, ordering and truncation of scored results."""
from typing import Iterable, List

from quicksearch.config import SearchOptions
from quicksearch.models import PRECISE, EntryKind, ScoredResult
from quicksearch.query import Query


def match_ratio(result: ScoredResult, query: Query) -> float:
    """Share of distinct query terms that matched somewhere in the entry."""
    if not query.terms:
        return 0.0
    matched = result.matched_terms & set(query.terms)
    return len(matched) / len(query.terms)


def rank_results(results: Iterable[ScoredResult], query: Query, options: SearchOptions) -> List[ScoredResult]:
    """Filter, sort and truncate scored results.

    Results below ``scoreMinScore`` are dropped. Precise results must also
    have matched at least ``scoreMinSearchTermMatchRatio`` of the query terms;
    fuzzy results and search engine entries are exempt. Ties on score keep
    index order. Tag and folder browsing is never truncated.

    Args:
        results: Scored results for one query
        query: The parsed query
        options: Resolved search options

    Returns:
        Ordered result list
    """
    kept = []
    for result in results:
        if result.score < options.score_min_score:
            continue
        if (
            result.strategy == PRECISE
            and result.entry.kind is not EntryKind.SEARCH_ENGINE
            and match_ratio(result, query) < options.score_min_search_term_match_ratio
        ):
            continue
        kept.append(result)

    kept.sort(key=lambda r: (-r.score, r.entry.position))

    if not query.is_browse:
        kept = kept[:options.search_max_results]
    return kept
