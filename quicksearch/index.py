"""Index builder: normalize enabled sources into one ordered, immutable sequence."""
from collections import Counter
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from quicksearch.config import SearchOptions
from quicksearch.models import EntryKind, IndexEntry
from quicksearch.normalize import normalize_bookmark, normalize_history, normalize_tab


@dataclass(frozen=True)
class EntryFields:
    """Case-folded copies of the searchable attributes of one entry."""
    title: str
    url: str
    tags: Tuple[str, ...]
    folder: Tuple[str, ...]
    # scheme and "www." stripped, for starts-with checks on urls
    bare_url: str

    @classmethod
    def from_entry(cls, entry: IndexEntry) -> "EntryFields":
        url = entry.url.lower()
        return cls(
            title=entry.title.lower(),
            url=url,
            tags=tuple(t.lower() for t in entry.tags),
            folder=tuple(f.lower() for f in entry.folder),
            bare_url=strip_url(url),
        )


def strip_url(url: str) -> str:
    """Remove the scheme and a leading ``www.`` from a url."""
    _, sep, rest = url.partition("://")
    if sep:
        url = rest
    if url.startswith("www."):
        url = url[4:]
    return url


class SearchIndex:
    """Ordered entries plus precomputed lowercase fields.

    Entry ``position`` equals its index in ``entries`` and is the tie-breaker
    when ranking. The index is rebuilt wholesale, never updated in place.
    """

    def __init__(self, entries: Sequence[IndexEntry]):
        self._entries: Tuple[IndexEntry, ...] = tuple(
            replace(entry, position=i) for i, entry in enumerate(entries)
        )
        self._fields: Tuple[EntryFields, ...] = tuple(EntryFields.from_entry(e) for e in self._entries)

    @property
    def entries(self) -> Tuple[IndexEntry, ...]:
        return self._entries

    @property
    def fields(self) -> Tuple[EntryFields, ...]:
        return self._fields

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def count_by_kind(self) -> Dict[str, int]:
        counts = Counter(e.kind.value for e in self._entries)
        return {kind.value: counts.get(kind.value, 0) for kind in EntryKind if kind is not EntryKind.SEARCH_ENGINE}

    def tags(self) -> Dict[str, int]:
        """Tag overview: tag (lowercase) -> number of entries carrying it, sorted by name."""
        counts: Counter = Counter()
        for f in self._fields:
            counts.update(f.tags)
        return dict(sorted(counts.items()))

    def folders(self) -> Dict[str, int]:
        """Folder overview: folder name (lowercase) -> number of entries below it."""
        counts: Counter = Counter()
        for f in self._fields:
            counts.update(set(f.folder))
        return dict(sorted(counts.items()))


def _is_ignored(url: str, ignore_list: Iterable[str]) -> bool:
    return any(url.startswith(prefix) for prefix in ignore_list)


def build_index(
    options: SearchOptions,
    tabs: Iterable[Mapping[str, Any]] = (),
    bookmarks: Iterable[Mapping[str, Any]] = (),
    history: Iterable[Mapping[str, Any]] = (),
) -> SearchIndex:
    """Build a fresh search index from raw source records.

    Disabled sources are skipped. History items whose url starts with an
    entry of ``historyIgnoreList`` are dropped. A history item for a url that
    is also an open tab or a bookmark is not indexed separately; its visit
    count and last visit are carried over to those entries instead.

    Args:
        options: Resolved search options
        tabs: Raw tab records, in browser order
        bookmarks: Raw bookmark records, in tree order
        history: Raw history records, newest first

    Returns:
        SearchIndex with tabs first, then bookmarks, then history
    """
    tab_entries = [normalize_tab(r, options) for r in tabs] if options.enable_tabs else []
    bookmark_entries = [normalize_bookmark(r, options) for r in bookmarks] if options.enable_bookmarks else []

    history_entries: List[IndexEntry] = []
    if options.enable_history:
        history_entries = [
            normalize_history(r, options)
            for r in history
            if not _is_ignored(str(r.get("url") or ""), options.history_ignore_list)
        ]

    history_by_url: Dict[str, IndexEntry] = {}
    for entry in history_entries:
        history_by_url.setdefault(entry.url, entry)

    merged_urls = set()

    def with_history(entry: IndexEntry) -> IndexEntry:
        visited: Optional[IndexEntry] = history_by_url.get(entry.url)
        if visited is None:
            return entry
        merged_urls.add(entry.url)
        last_visit = entry.last_visit or visited.last_visit
        if entry.last_visit and visited.last_visit:
            last_visit = max(entry.last_visit, visited.last_visit)
        return replace(entry, visit_count=visited.visit_count, last_visit=last_visit)

    tab_entries = [with_history(e) for e in tab_entries]
    bookmark_entries = [with_history(e) for e in bookmark_entries]
    history_entries = [e for e in history_entries if e.url not in merged_urls]

    return SearchIndex(tab_entries + bookmark_entries + history_entries)
