"""Chrome bookmarks reader module."""
import json
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional


# Chrome stores times as microseconds since 1601-01-01 UTC
CHROME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


def chrome_time_to_datetime(value: Any) -> Optional[datetime]:
    """Convert a Chrome timestamp to an aware datetime.

    Args:
        value: Microseconds since 1601-01-01, as int or numeric string

    Returns:
        Datetime in UTC, or None for missing, zero or unparseable values
    """
    try:
        micros = int(value)
    except (TypeError, ValueError):
        return None
    if micros <= 0:
        return None
    try:
        return CHROME_EPOCH + timedelta(microseconds=micros)
    except OverflowError:
        return None


def get_chrome_profile_dir(profile: str = "Default") -> Path:
    """Get the Chrome profile directory.

    Args:
        profile: Chrome profile name (default: "Default")

    Returns:
        Path to the profile directory holding Bookmarks and History
    """
    home = Path.home()
    if os.name == "nt":  # Windows
        profile_dir = home / "AppData" / "Local" / "Google" / "Chrome" / "User Data" / profile
    elif sys.platform == "darwin":  # macOS
        profile_dir = home / "Library" / "Application Support" / "Google" / "Chrome" / profile
    elif os.name == "posix":  # Linux
        profile_dir = home / ".config" / "google-chrome" / profile
        # Also check for chromium
        if not profile_dir.exists():
            profile_dir = home / ".config" / "chromium" / profile
    else:
        raise OSError(f"Unsupported operating system: {os.name}")

    return profile_dir


def get_chrome_bookmarks_path(profile: str = "Default") -> Path:
    """Get the path to Chrome bookmarks file."""
    return get_chrome_profile_dir(profile) / "Bookmarks"


def load_bookmarks_file(bookmarks_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load Chrome bookmarks JSON file.

    Args:
        bookmarks_path: Optional path to bookmarks file. If None, uses default Chrome location.

    Returns:
        Parsed JSON bookmarks data

    Raises:
        FileNotFoundError: If bookmarks file doesn't exist
        json.JSONDecodeError: If bookmarks file is malformed
    """
    if bookmarks_path is None:
        bookmarks_path = get_chrome_bookmarks_path()

    if not bookmarks_path.exists():
        raise FileNotFoundError(f"Bookmarks file not found at {bookmarks_path}")

    with open(bookmarks_path, "r", encoding="utf-8") as f:
        return json.load(f)


def extract_bookmarks(node: Dict[str, Any], bookmarks: List[Dict[str, Any]], path: List[str]) -> None:
    """Recursively extract bookmarks from Chrome bookmarks structure.

    Args:
        node: Current node in the bookmarks tree
        bookmarks: List to accumulate bookmarks
        path: Names of the ancestor folders
    """
    if node.get("type") == "url":
        bookmarks.append({
            "id": node.get("id", ""),
            "url": node.get("url", ""),
            "title": node.get("name", ""),
            "folder": list(path),
            "date_added": chrome_time_to_datetime(node.get("date_added")),
        })
    elif node.get("type") == "folder":
        new_path = path + [node.get("name", "")]
        for child in node.get("children", []):
            extract_bookmarks(child, bookmarks, new_path)


def read_chrome_bookmarks(bookmarks_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    """Read all bookmarks from Chrome bookmarks file.

    Args:
        bookmarks_path: Optional path to bookmarks file. If None, uses default Chrome location.

    Returns:
        List of bookmarks in tree order, each with 'id', 'url', 'title',
        'folder' (list of ancestor folder names, starting with the root
        folder's display name, e.g. ['Bookmarks Bar', 'Work']) and 'date_added'.

    Raises:
        FileNotFoundError: If bookmarks file doesn't exist
        json.JSONDecodeError: If bookmarks file is malformed
    """
    bookmarks_data = load_bookmarks_file(bookmarks_path)

    all_bookmarks: List[Dict[str, Any]] = []

    # Chrome stores bookmarks in roots: bookmark_bar, other, synced
    roots = bookmarks_data.get("roots", {})

    for root_name in ["bookmark_bar", "other", "synced"]:
        if root_name in roots:
            extract_bookmarks(roots[root_name], all_bookmarks, [])

    return all_bookmarks
