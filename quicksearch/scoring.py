"""Score calculation for matched entries.

The final score is the sum of:

1. a base score depending on the entry kind
2. the weight of every distinct field that matched
3. exact match bonuses (includes, starts with, equals, tag, folder)
4. visit count, recent visit and date added bonuses, each within [0, maximum]
5. the custom bonus written into the title
6. in hybrid mode, the precise or fuzzy strategy bonus

Custom and strategy bonuses are not clamped, so a score may end up negative.
"""
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

from quicksearch.config import SearchOptions
from quicksearch.index import strip_url
from quicksearch.models import FUZZY, PRECISE, EntryKind, IndexEntry, MatchField, MatchResult
from quicksearch.query import Query


def base_score(kind: EntryKind, options: SearchOptions) -> float:
    if kind is EntryKind.BOOKMARK:
        return options.score_bookmark_base_score
    if kind is EntryKind.TAB:
        return options.score_tab_base_score
    if kind is EntryKind.HISTORY:
        return options.score_history_base_score
    return options.score_search_engine_base_score


def field_weight(field: MatchField, options: SearchOptions) -> float:
    if field is MatchField.TITLE:
        return options.score_title_weight
    if field is MatchField.TAG:
        return options.score_tag_weight
    if field is MatchField.URL:
        return options.score_url_weight
    return options.score_folder_weight


def visited_bonus(visit_count: Optional[int], options: SearchOptions) -> float:
    if not visit_count or visit_count < 0:
        return 0.0
    bonus = visit_count * options.score_visited_bonus_score
    return min(bonus, options.score_visited_bonus_score_maximum)


def recent_bonus(last_visit: Optional[datetime], now: datetime, options: SearchOptions) -> float:
    if last_visit is None or not options.score_recent_bonus_score_maximum:
        return 0.0
    hours = max(0.0, (now - last_visit).total_seconds() / 3600)
    bonus = options.score_recent_bonus_score_maximum - hours * options.score_recent_bonus_score_per_hour
    return max(0.0, min(bonus, options.score_recent_bonus_score_maximum))


def date_added_bonus(date_added: Optional[datetime], now: datetime, options: SearchOptions) -> float:
    if date_added is None or not options.score_date_added_bonus_score_maximum:
        return 0.0
    days = max(0.0, (now - date_added).total_seconds() / 86400)
    bonus = options.score_date_added_bonus_score_maximum - days * options.score_date_added_bonus_score_per_day
    return max(0.0, min(bonus, options.score_date_added_bonus_score_maximum))


def _exact_bonuses(entry: IndexEntry, query: Query, options: SearchOptions) -> Dict[str, float]:
    bonuses: Dict[str, float] = {}
    title = entry.title.lower().strip()
    url = entry.url.lower()
    tags = {t.lower() for t in entry.tags}
    folders = {f.lower() for f in entry.folder}

    includes = 0.0
    tag_bonus = 0.0
    folder_bonus = 0.0
    for term in query.terms:
        if options.score_exact_includes_bonus and len(term) >= options.score_exact_includes_bonus_min_chars:
            if term in title:
                includes += options.score_exact_includes_bonus
            elif term in url:
                includes += options.score_exact_includes_bonus * options.score_url_weight
        if term in tags:
            tag_bonus += options.score_exact_tag_match_bonus
        if term in folders:
            folder_bonus += options.score_exact_folder_match_bonus

    if includes:
        bonuses["exact_includes"] = includes

    text = query.text
    if options.score_exact_starts_with_bonus and text:
        if title.startswith(text):
            bonuses["exact_starts_with"] = options.score_exact_starts_with_bonus
        elif strip_url(url).startswith("-".join(text.split())):
            bonuses["exact_starts_with"] = options.score_exact_starts_with_bonus * options.score_url_weight

    if options.score_exact_equals_bonus and text and title == text:
        bonuses["exact_equals"] = options.score_exact_equals_bonus
    if tag_bonus:
        bonuses["exact_tag"] = tag_bonus
    if folder_bonus:
        bonuses["exact_folder"] = folder_bonus
    return bonuses


def calculate_score(
    entry: IndexEntry,
    matches: Iterable[MatchResult],
    query: Query,
    options: SearchOptions,
    strategy: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[float, Dict[str, float]]:
    """Compute the final score of one entry.

    Args:
        entry: Entry to score
        matches: All (term, field) hits for the entry, any strategy
        query: Parsed query; an empty query only yields base and entry bonuses
        options: Resolved search options
        strategy: Strategy that produced the entry (``precise`` / ``fuzzy``),
            only used for the hybrid bonus
        now: Reference time for recency bonuses (defaults to now, UTC)

    Returns:
        Tuple of (score, breakdown of the components that contributed)
    """
    if now is None:
        now = datetime.now(timezone.utc)

    breakdown: Dict[str, float] = {"base": base_score(entry.kind, options)}

    matched_fields = {m.field for m in matches}
    for field in MatchField:
        if field in matched_fields:
            breakdown[field.value] = field_weight(field, options)

    if not query.is_empty:
        breakdown.update(_exact_bonuses(entry, query, options))

    for name, bonus in (
        ("visited", visited_bonus(entry.visit_count, options)),
        ("recent", recent_bonus(entry.last_visit, now, options)),
        ("date_added", date_added_bonus(entry.date_added, now, options)),
    ):
        if bonus:
            breakdown[name] = bonus

    if options.score_custom_bonus_score and entry.custom_bonus_score:
        breakdown["custom"] = float(entry.custom_bonus_score)

    if options.search_strategy == "hybrid" and strategy == PRECISE:
        breakdown["hybrid"] = options.score_hybrid_precise_bonus
    elif options.search_strategy == "hybrid" and strategy == FUZZY:
        breakdown["hybrid"] = options.score_hybrid_fuzzy_bonus

    return sum(breakdown.values()), breakdown
