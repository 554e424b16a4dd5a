"""Configuration for quicksearch.

Two layers live here:

* ``SearchOptions``: the immutable, fully resolved option set the search core
  reads from. External option names are the camelCase keys users write in
  their options file (``searchStrategy``, ``scoreTitleWeight``, ...).
* ``Config``: runtime settings of the tool server (browser profile, bridge
  port, options file location), read from environment variables.
"""
import math
import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml


SEARCH_STRATEGIES = ("precise", "fuzzy", "hybrid")
PRECISE_MATCH_ALGORITHMS = ("startsWith", "includes")


class OptionsError(ValueError):
    """Raised when an option value has the wrong shape or is out of range."""

    def __init__(self, option: str, message: str):
        super().__init__(f"Invalid option '{option}': {message}")
        self.option = option


@dataclass(frozen=True)
class SearchEngineChoice:
    """A search engine shortcut; the query text is appended to ``url_prefix``."""
    name: str
    url_prefix: str


DEFAULT_SEARCH_ENGINES: Tuple[SearchEngineChoice, ...] = (
    SearchEngineChoice("Google", "https://www.google.com/search?q="),
    SearchEngineChoice("Bing", "https://www.bing.com/search?q="),
    SearchEngineChoice("DuckDuckGo", "https://duckduckgo.com/?q="),
    SearchEngineChoice("dict.cc", "https://www.dict.cc/?s="),
)


def _option(name: str, default: Any, kind: str, minimum: Optional[float] = None,
            maximum: Optional[float] = None, choices: Tuple[str, ...] = ()) -> Any:
    """Declare a dataclass field bound to an external option name."""
    metadata = {"option": name, "kind": kind, "min": minimum, "max": maximum, "choices": choices}
    return field(default=default, metadata=metadata)


def _check_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise OptionsError(name, f"expected a boolean, got {value!r}")
    return value


def _check_number(name: str, value: Any, kind: str, minimum: Optional[float],
                  maximum: Optional[float]) -> Any:
    # bool is an int subclass but never a valid number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise OptionsError(name, f"expected a number, got {value!r}")
    if not math.isfinite(value):
        raise OptionsError(name, f"expected a finite number, got {value!r}")
    if kind == "int":
        if isinstance(value, float):
            if not value.is_integer():
                raise OptionsError(name, f"expected a whole number, got {value!r}")
            value = int(value)
    else:
        value = float(value)
    if minimum is not None and value < minimum:
        raise OptionsError(name, f"must be >= {minimum}, got {value!r}")
    if maximum is not None and value > maximum:
        raise OptionsError(name, f"must be <= {maximum}, got {value!r}")
    return value


def _check_choice(name: str, value: Any, choices: Tuple[str, ...]) -> str:
    if value not in choices:
        raise OptionsError(name, f"must be one of {', '.join(choices)}, got {value!r}")
    return value


def _check_str_list(name: str, value: Any) -> Tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise OptionsError(name, f"expected a list of strings, got {value!r}")
    for item in value:
        if not isinstance(item, str):
            raise OptionsError(name, f"expected a list of strings, got item {item!r}")
    return tuple(value)


def _check_engines(name: str, value: Any) -> Tuple[SearchEngineChoice, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise OptionsError(name, f"expected a list of search engines, got {value!r}")
    engines = []
    for item in value:
        if isinstance(item, SearchEngineChoice):
            engines.append(item)
            continue
        if not isinstance(item, Mapping):
            raise OptionsError(name, f"each search engine must be an object, got {item!r}")
        engine_name = item.get("name")
        url_prefix = item.get("urlPrefix")
        if not isinstance(engine_name, str) or not isinstance(url_prefix, str):
            raise OptionsError(name, f"each search engine needs string 'name' and 'urlPrefix', got {item!r}")
        engines.append(SearchEngineChoice(engine_name, url_prefix))
    return tuple(engines)


def _check_value(meta: Mapping[str, Any], value: Any) -> Any:
    name = meta["option"]
    kind = meta["kind"]
    if kind == "bool":
        return _check_bool(name, value)
    if kind in ("int", "number"):
        return _check_number(name, value, kind, meta["min"], meta["max"])
    if kind == "choice":
        return _check_choice(name, value, meta["choices"])
    if kind == "str_list":
        return _check_str_list(name, value)
    if kind == "engines":
        return _check_engines(name, value)
    raise OptionsError(name, f"unknown option kind {kind!r}")


@dataclass(frozen=True)
class SearchOptions:
    """Resolved search options. Never mutated; use ``replace`` for a variant."""

    # Search
    search_strategy: str = _option("searchStrategy", "precise", "choice", choices=SEARCH_STRATEGIES)
    search_max_results: int = _option("searchMaxResults", 50, "int", minimum=1)
    search_min_match_char_length: int = _option("searchMinMatchCharLength", 1, "int", minimum=1)
    search_fuzzyness: float = _option("searchFuzzyness", 0.6, "number", minimum=0, maximum=1)
    search_precise_match_algorithm: str = _option(
        "searchPreciseMatchAlgorithm", "startsWith", "choice", choices=PRECISE_MATCH_ALGORITHMS
    )

    # Sources
    enable_tabs: bool = _option("enableTabs", True, "bool")
    enable_bookmarks: bool = _option("enableBookmarks", True, "bool")
    enable_history: bool = _option("enableHistory", True, "bool")
    enable_search_engines: bool = _option("enableSearchEngines", True, "bool")

    # Title metadata
    display_tags: bool = _option("displayTags", True, "bool")
    display_folder_name: bool = _option("displayFolderName", True, "bool")

    # Tabs / history retrieval
    tabs_only_current_window: bool = _option("tabsOnlyCurrentWindow", False, "bool")
    history_days_ago: int = _option("historyDaysAgo", 7, "int", minimum=0)
    history_max_items: int = _option("historyMaxItems", 512, "int", minimum=0)
    history_ignore_list: Tuple[str, ...] = _option("historyIgnoreList", (), "str_list")

    search_engine_choices: Tuple[SearchEngineChoice, ...] = _option(
        "searchEngineChoices", DEFAULT_SEARCH_ENGINES, "engines"
    )

    # Thresholds
    score_min_score: float = _option("scoreMinScore", 30, "number")
    score_min_search_term_match_ratio: float = _option(
        "scoreMinSearchTermMatchRatio", 0.6, "number", minimum=0, maximum=1
    )

    # Base scores per result kind
    score_bookmark_base_score: float = _option("scoreBookmarkBaseScore", 100, "number")
    score_tab_base_score: float = _option("scoreTabBaseScore", 70, "number")
    score_history_base_score: float = _option("scoreHistoryBaseScore", 50, "number")
    score_search_engine_base_score: float = _option("scoreSearchEngineBaseScore", 30, "number")

    # Hybrid strategy bonus / malus
    score_hybrid_precise_bonus: float = _option("scoreHybridPreciseBonus", 40, "number")
    score_hybrid_fuzzy_bonus: float = _option("scoreHybridFuzzyBonus", -10, "number")

    # Field weights
    score_title_weight: float = _option("scoreTitleWeight", 1, "number", minimum=0)
    score_tag_weight: float = _option("scoreTagWeight", 0.7, "number", minimum=0)
    score_url_weight: float = _option("scoreUrlWeight", 0.6, "number", minimum=0)
    score_folder_weight: float = _option("scoreFolderWeight", 0.5, "number", minimum=0)

    # Bonus scores
    score_custom_bonus_score: bool = _option("scoreCustomBonusScore", True, "bool")
    score_exact_includes_bonus: float = _option("scoreExactIncludesBonus", 5, "number", minimum=0)
    score_exact_includes_bonus_min_chars: int = _option(
        "scoreExactIncludesBonusMinChars", 3, "int", minimum=0
    )
    score_exact_starts_with_bonus: float = _option("scoreExactStartsWithBonus", 10, "number", minimum=0)
    score_exact_equals_bonus: float = _option("scoreExactEqualsBonus", 15, "number", minimum=0)
    score_exact_tag_match_bonus: float = _option("scoreExactTagMatchBonus", 10, "number", minimum=0)
    score_exact_folder_match_bonus: float = _option("scoreExactFolderMatchBonus", 5, "number", minimum=0)
    score_visited_bonus_score: float = _option("scoreVisitedBonusScore", 0.25, "number", minimum=0)
    score_visited_bonus_score_maximum: float = _option(
        "scoreVisitedBonusScoreMaximum", 10, "number", minimum=0
    )
    score_recent_bonus_score_per_hour: float = _option(
        "scoreRecentBonusScorePerHour", 0.5, "number", minimum=0
    )
    score_recent_bonus_score_maximum: float = _option(
        "scoreRecentBonusScoreMaximum", 20, "number", minimum=0
    )
    score_date_added_bonus_score_per_day: float = _option(
        "scoreDateAddedBonusScorePerDay", 0.1, "number", minimum=0
    )
    score_date_added_bonus_score_maximum: float = _option(
        "scoreDateAddedBonusScoreMaximum", 5, "number", minimum=0
    )

    def __post_init__(self) -> None:
        for f in fields(self):
            checked = _check_value(f.metadata, getattr(self, f.name))
            object.__setattr__(self, f.name, checked)

    @classmethod
    def from_mapping(cls, user_options: Optional[Mapping[str, Any]] = None) -> "SearchOptions":
        """Overlay user options (camelCase keys) onto the defaults.

        Args:
            user_options: Mapping of option name to value. Unknown keys are ignored.

        Returns:
            Validated SearchOptions

        Raises:
            OptionsError: If a value has the wrong shape for its option
        """
        if user_options is None:
            return cls()
        if not isinstance(user_options, Mapping):
            raise OptionsError("<root>", "user options must be a JSON object")

        values: Dict[str, Any] = {}
        for f in fields(cls):
            name = f.metadata["option"]
            if name in user_options:
                values[f.name] = user_options[name]
        return cls(**values)

    def replace(self, **changes: Any) -> "SearchOptions":
        """Return a validated copy with the given fields (snake_case) changed."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(changes)
        return type(self)(**values)

    def to_mapping(self) -> Dict[str, Any]:
        """Export options with their external camelCase names."""
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.metadata["kind"] == "engines":
                value = [{"name": e.name, "urlPrefix": e.url_prefix} for e in value]
            elif isinstance(value, tuple):
                value = list(value)
            result[f.metadata["option"]] = value
        return result


def load_user_options(path: Path) -> Dict[str, Any]:
    """Load user option overrides from a YAML or JSON file.

    Args:
        path: Path to the options file

    Returns:
        Parsed user options (empty dict for an empty file)

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is neither valid YAML nor JSON
        OptionsError: If the top level is not an object
    """
    if not path.exists():
        raise FileNotFoundError(f"Options file not found at {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise OptionsError("<root>", "user options must be a YAML / JSON object")
    return data


def get_effective_options(path: Optional[Path] = None) -> SearchOptions:
    """Resolve defaults + user overrides, falling back to defaults on any error.

    Args:
        path: Optional options file. None means "no user overrides".

    Returns:
        SearchOptions to use
    """
    if path is None:
        return SearchOptions()

    try:
        return SearchOptions.from_mapping(load_user_options(path))
    except FileNotFoundError:
        return SearchOptions()
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"[quicksearch] Could not use user options, falling back to defaults: {e}", file=sys.stderr)
        return SearchOptions()


@dataclass
class Config:
    """Runtime configuration for the quicksearch tool server."""
    options_path: Optional[Path] = None  # None = defaults only
    chrome_profile: str = "Default"  # Chrome profile name
    bridge_port: int = 8765  # WebSocket port for the tabs bridge extension

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        options_path_str = os.environ.get("QUICKSEARCH_OPTIONS_FILE")
        options_path = Path(options_path_str).expanduser() if options_path_str else None

        return cls(
            options_path=options_path,
            chrome_profile=os.environ.get("QUICKSEARCH_CHROME_PROFILE", "Default"),
            bridge_port=int(os.environ.get("QUICKSEARCH_BRIDGE_PORT", "8765")),
        )

    def load_options(self) -> SearchOptions:
        """Resolve the effective search options for this configuration."""
        return get_effective_options(self.options_path)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance.

    Returns:
        Config loaded from environment
    """
    global _config

    if _config is None:
        _config = Config.from_env()

    return _config
