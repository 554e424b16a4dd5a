"""Data model shared by the indexer, the matchers and the scorer."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


class EntryKind(str, Enum):
    """Where an index entry came from."""
    TAB = "tab"
    BOOKMARK = "bookmark"
    HISTORY = "history"
    SEARCH_ENGINE = "search"


class MatchField(str, Enum):
    """Entry attribute a search term was found in."""
    TITLE = "title"
    TAG = "tag"
    URL = "url"
    FOLDER = "folder"


PRECISE = "precise"
FUZZY = "fuzzy"


@dataclass(frozen=True)
class IndexEntry:
    """The unit of search. Created on every index rebuild, never mutated."""
    kind: EntryKind
    title: str
    url: str = ""
    tags: Tuple[str, ...] = ()
    folder: Tuple[str, ...] = ()
    custom_bonus_score: Optional[int] = None
    visit_count: Optional[int] = None
    last_visit: Optional[datetime] = None
    date_added: Optional[datetime] = None
    original_title: str = ""
    window_id: Optional[int] = None
    position: int = -1

    @property
    def folder_name(self) -> Optional[str]:
        """Ancestor folder path joined for display, or None."""
        if not self.folder:
            return None
        return " / ".join(self.folder)


@dataclass(frozen=True)
class MatchResult:
    """One (term, field) hit for an entry, produced per search."""
    entry: IndexEntry
    field: MatchField
    term: str
    strategy: str = PRECISE
    similarity: float = 1.0
    span: Optional[Tuple[int, int]] = None


@dataclass
class ScoredResult:
    """Matches for one entry plus the score computed from them."""
    entry: IndexEntry
    matches: Tuple[MatchResult, ...]
    score: float
    breakdown: Dict[str, float] = field(default_factory=dict)
    strategy: str = PRECISE

    @property
    def matched_terms(self) -> FrozenSet[str]:
        return frozenset(m.term for m in self.matches)

    @property
    def matched_fields(self) -> FrozenSet[MatchField]:
        return frozenset(m.field for m in self.matches)

    def to_dict(self) -> Dict[str, Any]:
        """Render-ready representation of the result.

        Returns:
            Dict with entry attributes, score, breakdown and matched field markers
        """
        entry = self.entry
        return {
            "type": entry.kind.value,
            "title": entry.title,
            "url": entry.url,
            "tags": list(entry.tags),
            "folder": entry.folder_name,
            "score": round(self.score, 2),
            "strategy": self.strategy,
            "matched_fields": sorted(f.value for f in self.matched_fields),
            "matches": [
                {"field": m.field.value, "term": m.term, "span": list(m.span) if m.span else None}
                for m in self.matches
            ],
            "breakdown": {k: round(v, 2) for k, v in self.breakdown.items()},
            "visit_count": entry.visit_count,
            "last_visit": entry.last_visit.isoformat() if entry.last_visit else None,
            "date_added": entry.date_added.isoformat() if entry.date_added else None,
        }
