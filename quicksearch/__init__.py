"""Ranked search over open tabs, bookmarks, browsing history and search engine shortcuts."""
