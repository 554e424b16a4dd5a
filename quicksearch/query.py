"""Query parsing: search-mode prefixes and term splitting."""
from dataclasses import dataclass
from typing import Tuple

from quicksearch.config import SearchOptions


MODE_ALL = "all"
MODE_TABS = "tabs"
MODE_BOOKMARKS = "bookmarks"
MODE_HISTORY = "history"
MODE_SEARCH = "search"
MODE_TAGS = "tags"
MODE_FOLDERS = "folders"

# "t foo" searches only tabs, "b foo" only bookmarks, ...
_SOURCE_PREFIXES = {
    "t ": MODE_TABS,
    "b ": MODE_BOOKMARKS,
    "h ": MODE_HISTORY,
    "s ": MODE_SEARCH,
}


@dataclass(frozen=True)
class Query:
    raw: str
    text: str
    # text after the mode prefix, original case
    typed: str
    terms: Tuple[str, ...]
    mode: str = MODE_ALL

    @property
    def is_empty(self) -> bool:
        return not self.terms

    @property
    def is_browse(self) -> bool:
        """Tag and folder searches enumerate entries rather than rank them."""
        return self.mode in (MODE_TAGS, MODE_FOLDERS)


def parse_query(raw: str, options: SearchOptions) -> Query:
    """Parse what the user typed into a mode and lowercase search terms.

    Args:
        raw: Query text as typed
        options: Search options (minimum term length, tag/folder toggles)

    Returns:
        Query; terms shorter than ``searchMinMatchCharLength`` are dropped
    """
    typed = raw.strip()
    text = typed.lower()
    mode = MODE_ALL

    for prefix, prefix_mode in _SOURCE_PREFIXES.items():
        if text.startswith(prefix):
            mode = prefix_mode
            typed = typed[len(prefix):].strip()
            text = typed.lower()
            break
    else:
        if text.startswith("#") and options.display_tags:
            mode = MODE_TAGS
        elif text.startswith("~") and options.display_folder_name:
            mode = MODE_FOLDERS

    if mode == MODE_TAGS:
        parts = text.split("#")
    elif mode == MODE_FOLDERS:
        parts = text.split("~")
    else:
        parts = text.split()

    min_length = options.search_min_match_char_length
    terms = []
    for part in parts:
        term = part.strip()
        if len(term) >= min_length and term not in terms:
            terms.append(term)

    return Query(raw=raw, text=text, typed=typed, terms=tuple(terms), mode=mode)
