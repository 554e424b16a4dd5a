"""Chrome browsing history reader.

Chrome keeps the History sqlite database locked while running, so the
reader works on a temporary copy.
"""
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from quicksearch.bookmarks_reader import CHROME_EPOCH, chrome_time_to_datetime, get_chrome_profile_dir


def get_chrome_history_path(profile: str = "Default") -> Path:
    """Get the path to the Chrome History database."""
    return get_chrome_profile_dir(profile) / "History"


def datetime_to_chrome_time(value: datetime) -> int:
    """Convert an aware datetime to microseconds since 1601-01-01 UTC."""
    return (value - CHROME_EPOCH) // timedelta(microseconds=1)


async def read_chrome_history(
    history_path: Optional[Path] = None,
    days_ago: int = 7,
    max_items: int = 512,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Read recently visited pages from the Chrome History database.

    Args:
        history_path: Optional path to the History file. If None, uses default Chrome location.
        days_ago: Only pages visited within this many days are returned
        max_items: Maximum number of pages to return
        now: Reference time (defaults to now, UTC)

    Returns:
        List of history items, newest first, each with 'url', 'title',
        'visit_count' and 'last_visit'

    Raises:
        FileNotFoundError: If the History file doesn't exist
        aiosqlite.Error: If the database can't be read
    """
    if history_path is None:
        history_path = get_chrome_history_path()

    if not history_path.exists():
        raise FileNotFoundError(f"History file not found at {history_path}")

    if max_items <= 0:
        return []

    if now is None:
        now = datetime.now(timezone.utc)
    since = datetime_to_chrome_time(now - timedelta(days=days_ago))

    with tempfile.TemporaryDirectory() as tmp_dir:
        snapshot = Path(tmp_dir) / "History"
        shutil.copy2(history_path, snapshot)

        async with aiosqlite.connect(snapshot) as connection:
            connection.row_factory = aiosqlite.Row
            cursor = await connection.execute(
                """
                SELECT url, title, visit_count, last_visit_time
                FROM urls
                WHERE hidden = 0 AND last_visit_time >= ?
                ORDER BY last_visit_time DESC
                LIMIT ?
                """,
                (since, max_items),
            )
            rows = await cursor.fetchall()

    return [
        {
            "url": row["url"],
            "title": row["title"] or "",
            "visit_count": row["visit_count"],
            "last_visit": chrome_time_to_datetime(row["last_visit_time"]),
        }
        for row in rows
    ]
