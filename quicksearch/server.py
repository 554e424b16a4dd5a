"""MCP server exposing tab, bookmark and history search."""
import json
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from quicksearch.bookmarks_reader import get_chrome_bookmarks_path, read_chrome_bookmarks
from quicksearch.chrome_bridge import get_bridge
from quicksearch.config import Config, SearchOptions, get_config
from quicksearch.history_reader import get_chrome_history_path, read_chrome_history
from quicksearch.index import SearchIndex, build_index
from quicksearch.search import search


@dataclass
class SearchContext:
    """Index and options a search runs against, plus the raw records it was built from.

    Replaced wholesale on reindex, and whenever the open tabs change.
    """
    index: SearchIndex
    options: SearchOptions
    built_at: datetime
    tabs: List[Dict[str, Any]] = field(default_factory=list)
    bookmarks: List[Dict[str, Any]] = field(default_factory=list)
    history: List[Dict[str, Any]] = field(default_factory=list)


# Cached context, rebuilt by reindex; tabs are refreshed on every tool call
_context: Optional[SearchContext] = None


async def load_tabs(options: SearchOptions) -> List[Dict[str, Any]]:
    """Ask the companion extension for open tabs; empty if it isn't connected."""
    bridge = get_bridge()
    if not options.enable_tabs or not bridge.is_connected:
        return []
    try:
        return await bridge.get_tabs(options.tabs_only_current_window)
    except (ConnectionError, TimeoutError, RuntimeError) as e:
        print(f"[quicksearch] Could not load tabs: {e}", file=sys.stderr)
        return []


def load_bookmarks(config: Config, options: SearchOptions) -> List[Dict[str, Any]]:
    """Read bookmarks; a missing or broken file yields no bookmarks."""
    if not options.enable_bookmarks:
        return []
    try:
        return read_chrome_bookmarks(get_chrome_bookmarks_path(config.chrome_profile))
    except FileNotFoundError as e:
        print(f"[quicksearch] Warning: Could not find bookmarks file: {e}", file=sys.stderr)
    except (OSError, ValueError) as e:
        print(f"[quicksearch] Error loading bookmarks: {e}", file=sys.stderr)
    return []


async def load_history(config: Config, options: SearchOptions) -> List[Dict[str, Any]]:
    """Read recent history; a missing or unreadable database yields no history."""
    if not options.enable_history:
        return []
    try:
        return await read_chrome_history(
            get_chrome_history_path(config.chrome_profile),
            days_ago=options.history_days_ago,
            max_items=options.history_max_items,
        )
    except FileNotFoundError as e:
        print(f"[quicksearch] Warning: Could not find history database: {e}", file=sys.stderr)
    except Exception as e:
        print(f"[quicksearch] Error loading history: {e}", file=sys.stderr)
    return []


async def build_context(config: Optional[Config] = None) -> SearchContext:
    """Load options and all sources, and build a fresh index.

    Args:
        config: Runtime config (defaults to the global one)

    Returns:
        New SearchContext
    """
    config = config or get_config()
    options = config.load_options()

    tabs = await load_tabs(options)
    bookmarks = load_bookmarks(config, options)
    history = await load_history(config, options)
    index = build_index(options, tabs=tabs, bookmarks=bookmarks, history=history)
    return SearchContext(
        index=index,
        options=options,
        built_at=datetime.now(timezone.utc),
        tabs=tabs,
        bookmarks=bookmarks,
        history=history,
    )


async def refresh_tabs(context: SearchContext) -> SearchContext:
    """Re-query the open tabs and rebuild the index if they changed.

    The extension often connects after the first search, and tabs come and
    go between searches; bookmarks and history are only reloaded by reindex.

    Args:
        context: Current search context

    Returns:
        The same context if the tabs are unchanged, otherwise a new one
    """
    tabs = await load_tabs(context.options)
    if tabs == context.tabs:
        return context

    index = build_index(context.options, tabs=tabs, bookmarks=context.bookmarks, history=context.history)
    return replace(context, index=index, tabs=tabs, built_at=datetime.now(timezone.utc))


async def get_context() -> SearchContext:
    """Get the cached search context, building it on first use and refreshing its tabs."""
    global _context

    if _context is None:
        _context = await build_context()
    else:
        _context = await refresh_tabs(_context)

    return _context


def _text(text: str) -> List[TextContent]:
    return [TextContent(type="text", text=text)]


async def search_tool(query: str) -> List[TextContent]:
    """Tool handler for search.

    Args:
        query: Search query, optionally with a mode prefix

    Returns:
        List of TextContent with JSON results
    """
    context = await get_context()
    results = search(query, context.index, context.options)

    if not results:
        return _text(f"No results found matching query: {query}")

    return _text(json.dumps([r.to_dict() for r in results], indent=2))


async def list_tags_tool() -> List[TextContent]:
    """Tool handler for list_tags."""
    context = await get_context()
    return _text(json.dumps(context.index.tags(), indent=2))


async def list_folders_tool() -> List[TextContent]:
    """Tool handler for list_folders."""
    context = await get_context()
    return _text(json.dumps(context.index.folders(), indent=2))


async def reindex_tool() -> List[TextContent]:
    """Tool handler for reindex: rebuild the index from all sources."""
    global _context

    _context = await build_context()
    summary = {
        "entries": len(_context.index),
        "by_type": _context.index.count_by_kind(),
        "strategy": _context.options.search_strategy,
        "built_at": _context.built_at.isoformat(),
    }
    return _text(json.dumps(summary, indent=2))


def create_server() -> Server:
    """Create and configure the MCP server.

    Returns:
        Configured Server instance
    """
    server = Server("quicksearch")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name="search",
                description=(
                    "Search open tabs, bookmarks and recent history. Prefix the query with "
                    "'t ', 'b ', 'h ' or 's ' to search only tabs, bookmarks, history or search "
                    "engines; start with '#' to search tags or '~' to search folders."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Search query",
                        }
                    },
                    "required": ["query"],
                },
            ),
            Tool(
                name="list_tags",
                description="List all tags used in titles, with the number of entries per tag.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="list_folders",
                description="List all bookmark folders, with the number of bookmarks below each.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="reindex",
                description="Reload tabs, bookmarks, history and options and rebuild the search index.",
                inputSchema={"type": "object", "properties": {}},
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle tool calls."""
        arguments = arguments or {}
        if name == "search":
            query = arguments.get("query", "")
            if not query.strip():
                return _text("Error: 'query' parameter is required")
            return await search_tool(query)
        elif name == "list_tags":
            return await list_tags_tool()
        elif name == "list_folders":
            return await list_folders_tool()
        elif name == "reindex":
            return await reindex_tool()
        else:
            raise ValueError(f"Unknown tool: {name}")

    return server


async def main():
    """Main entry point for the MCP server."""
    server = create_server()
    bridge = get_bridge()
    await bridge.start()

    try:
        async with stdio_server() as (read_stream, write_stream):
            initialization_options = server.create_initialization_options()
            await server.run(read_stream, write_stream, initialization_options)
    finally:
        await bridge.stop()
