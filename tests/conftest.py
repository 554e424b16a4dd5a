"""Shared fixtures for tests."""
import json
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from quicksearch.bookmarks_reader import CHROME_EPOCH
from quicksearch.config import SearchOptions
from quicksearch.index import build_index


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def chrome_time(value: datetime) -> int:
    return (value - CHROME_EPOCH) // timedelta(microseconds=1)


def epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


SAMPLE_BOOKMARKS = {
    "checksum": "test",
    "roots": {
        "bookmark_bar": {
            "children": [
                {
                    "id": "1",
                    "name": "Python Docs +20 #python #docs",
                    "type": "url",
                    "url": "https://docs.python.org",
                    "date_added": str(chrome_time(NOW - timedelta(days=10))),
                },
                {
                    "id": "2",
                    "name": "Work",
                    "type": "folder",
                    "children": [
                        {
                            "id": "3",
                            "name": "Jira Board #work",
                            "type": "url",
                            "url": "https://jira.example.com/board"
                        },
                        {
                            "id": "4",
                            "name": "Confluence",
                            "type": "url",
                            "url": "https://confluence.example.com"
                        }
                    ]
                },
                {
                    "id": "5",
                    "name": "Tutorials",
                    "type": "folder",
                    "children": [
                        {
                            "id": "6",
                            "name": "SQLite Guide",
                            "type": "url",
                            "url": "https://sqlite.org/guide"
                        }
                    ]
                }
            ],
            "id": "0",
            "name": "Bookmarks Bar",
            "type": "folder"
        },
        "other": {
            "children": [
                {
                    "id": "7",
                    "name": "Stack Overflow",
                    "type": "url",
                    "url": "https://stackoverflow.com"
                }
            ],
            "id": "100",
            "name": "Other Bookmarks",
            "type": "folder"
        },
        "synced": {
            "children": [],
            "id": "200",
            "name": "Mobile Bookmarks",
            "type": "folder"
        }
    },
    "version": 1
}


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def options():
    return SearchOptions()


@pytest.fixture
def sample_bookmarks_path(tmp_path):
    """Create a temporary bookmarks file with sample data."""
    bookmarks_file = tmp_path / "Bookmarks"
    bookmarks_file.write_text(json.dumps(SAMPLE_BOOKMARKS, indent=3))
    return bookmarks_file


@pytest.fixture
def sample_tabs():
    """Tabs as reported by the browser extension."""
    return [
        {
            "url": "https://mail.example.com/inbox",
            "title": "Inbox - Mail",
            "windowId": 1,
            "lastAccessed": epoch_millis(NOW - timedelta(hours=1)),
        },
        {
            "url": "https://github.com/pulls",
            "title": "Pull requests #work",
            "windowId": 2,
        },
    ]


@pytest.fixture
def sample_bookmarks():
    """Bookmarks as read_chrome_bookmarks returns them."""
    return [
        {"id": "1", "url": "https://docs.python.org", "title": "Python Docs +20 #python #docs",
         "folder": ["Bookmarks Bar"], "date_added": NOW - timedelta(days=10)},
        {"id": "3", "url": "https://jira.example.com/board", "title": "Jira Board #work",
         "folder": ["Bookmarks Bar", "Work"], "date_added": None},
        {"id": "4", "url": "https://confluence.example.com", "title": "Confluence",
         "folder": ["Bookmarks Bar", "Work"], "date_added": None},
        {"id": "6", "url": "https://sqlite.org/guide", "title": "SQLite Guide",
         "folder": ["Bookmarks Bar", "Tutorials"], "date_added": None},
        {"id": "7", "url": "https://stackoverflow.com", "title": "Stack Overflow",
         "folder": ["Other Bookmarks"], "date_added": None},
    ]


@pytest.fixture
def sample_history():
    """History items as read_chrome_history returns them."""
    return [
        {"url": "http://localhost:8000/admin", "title": "Admin", "visit_count": 3,
         "last_visit": NOW - timedelta(hours=1)},
        {"url": "https://stackoverflow.com", "title": "Stack Overflow - Where Developers Learn",
         "visit_count": 40, "last_visit": NOW - timedelta(hours=2)},
        {"url": "https://news.ycombinator.com", "title": "Hacker News", "visit_count": 12,
         "last_visit": NOW - timedelta(hours=5)},
    ]


@pytest.fixture
def sample_index(options, sample_tabs, sample_bookmarks, sample_history):
    return build_index(options, tabs=sample_tabs, bookmarks=sample_bookmarks, history=sample_history)


@pytest.fixture
def history_db_path(tmp_path):
    """Create a minimal Chrome History database."""
    db_path = tmp_path / "History"
    connection = sqlite3.connect(db_path)
    connection.execute("""
        CREATE TABLE urls (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            url LONGVARCHAR,
            title LONGVARCHAR,
            visit_count INTEGER DEFAULT 0 NOT NULL,
            typed_count INTEGER DEFAULT 0 NOT NULL,
            last_visit_time INTEGER NOT NULL,
            hidden INTEGER DEFAULT 0 NOT NULL
        )
    """)
    rows = [
        ("https://news.ycombinator.com", "Hacker News", 12, chrome_time(NOW - timedelta(hours=5)), 0),
        ("https://stackoverflow.com", "Stack Overflow", 40, chrome_time(NOW - timedelta(hours=2)), 0),
        ("https://old.example.com", "Old Page", 1, chrome_time(NOW - timedelta(days=30)), 0),
        ("https://hidden.example.com", "Hidden", 5, chrome_time(NOW - timedelta(hours=1)), 1),
        ("https://untitled.example.com", None, 2, chrome_time(NOW - timedelta(hours=3)), 0),
    ]
    connection.executemany(
        "INSERT INTO urls (url, title, visit_count, last_visit_time, hidden) VALUES (?, ?, ?, ?, ?)",
        rows,
    )
    connection.commit()
    connection.close()
    return db_path
