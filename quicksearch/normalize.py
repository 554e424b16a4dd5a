"""Turn raw tab, bookmark, history and search engine records into IndexEntry objects.

Titles may carry metadata written by the user:

* ``#tag`` tokens become tags and are removed from the displayed title
* the first `` +N`` token becomes a custom bonus score, e.g. ``Docs +20 #work``

Parsing is fail-soft: anything that does not fit stays literal title text.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from quicksearch.config import SearchOptions
from quicksearch.models import EntryKind, IndexEntry


_BONUS_TOKEN = re.compile(r"\+(-?\d+)")


@dataclass(frozen=True)
class ParsedTitle:
    title: str
    tags: Tuple[str, ...] = ()
    custom_bonus_score: Optional[int] = None


def parse_title(title: str, extract_tags: bool = True, extract_bonus: bool = True) -> ParsedTitle:
    """Extract tags and the custom bonus score from a title.

    Args:
        title: Raw title as stored by the browser
        extract_tags: Whether ``#tag`` tokens are pulled out
        extract_bonus: Whether a `` +N`` token is pulled out

    Returns:
        ParsedTitle with the cleaned title, tags (first spelling wins) and bonus
    """
    kept: List[str] = []
    tags: List[str] = []
    seen_tags = set()
    bonus: Optional[int] = None

    for i, token in enumerate(title.split()):
        if extract_tags and len(token) > 1 and token.startswith("#"):
            tag = token[1:]
            if tag.casefold() not in seen_tags:
                seen_tags.add(tag.casefold())
                tags.append(tag)
            continue
        # Needs whitespace in front, so never the first token
        if extract_bonus and bonus is None and i > 0:
            match = _BONUS_TOKEN.fullmatch(token)
            if match:
                bonus = int(match.group(1))
                continue
        kept.append(token)

    return ParsedTitle(title=" ".join(kept), tags=tuple(tags), custom_bonus_score=bonus)


def _to_datetime(value: Any) -> Optional[datetime]:
    """Accept an aware/naive datetime or epoch milliseconds. Anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _folder_path(value: Any) -> Tuple[str, ...]:
    """Folder path from a list of names or a ``/``-separated string."""
    if not value:
        return ()
    if isinstance(value, str):
        parts: Sequence[Any] = value.split("/")
    elif isinstance(value, (list, tuple)):
        parts = value
    else:
        return ()
    return tuple(str(p).strip() for p in parts if str(p).strip())


def _titled_entry(kind: EntryKind, record: Mapping[str, Any], options: SearchOptions,
                  **extra: Any) -> IndexEntry:
    url = str(record.get("url") or "")
    raw_title = str(record.get("title") or "")
    parsed = parse_title(
        raw_title,
        extract_tags=options.display_tags,
        extract_bonus=options.score_custom_bonus_score,
    )
    title = parsed.title
    if not title and kind is not EntryKind.BOOKMARK:
        title = url

    return IndexEntry(
        kind=kind,
        title=title,
        url=url,
        tags=parsed.tags,
        custom_bonus_score=parsed.custom_bonus_score,
        original_title=raw_title,
        **extra,
    )


def normalize_tab(record: Mapping[str, Any], options: SearchOptions) -> IndexEntry:
    """Normalize an open tab as reported by the browser extension.

    Expected keys: ``url``, ``title``, optional ``windowId`` and
    ``lastAccessed`` (epoch milliseconds).
    """
    return _titled_entry(
        EntryKind.TAB,
        record,
        options,
        window_id=_to_int(record.get("windowId")),
        last_visit=_to_datetime(record.get("lastAccessed")),
    )


def normalize_bookmark(record: Mapping[str, Any], options: SearchOptions) -> IndexEntry:
    """Normalize a bookmark record from the bookmarks reader."""
    folder = _folder_path(record.get("folder")) if options.display_folder_name else ()
    return _titled_entry(
        EntryKind.BOOKMARK,
        record,
        options,
        folder=folder,
        date_added=_to_datetime(record.get("date_added")),
    )


def normalize_history(record: Mapping[str, Any], options: SearchOptions) -> IndexEntry:
    """Normalize a history record from the history reader."""
    return _titled_entry(
        EntryKind.HISTORY,
        record,
        options,
        visit_count=_to_int(record.get("visit_count")),
        last_visit=_to_datetime(record.get("last_visit")),
    )


def search_engine_entries(query: str, options: SearchOptions) -> List[IndexEntry]:
    """One entry per configured search engine, pointing at a search for ``query``.

    Args:
        query: Raw query text as typed (not lowercased)
        options: Search options holding the engine choices

    Returns:
        Entries in the configured order
    """
    return [
        IndexEntry(
            kind=EntryKind.SEARCH_ENGINE,
            title=engine.name,
            url=f"{engine.url_prefix}{query}",
            original_title=engine.name,
        )
        for engine in options.search_engine_choices
    ]
