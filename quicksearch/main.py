"""Main entry point for the quicksearch MCP server."""
import asyncio

from quicksearch.server import main as server_main


def main() -> None:
    asyncio.run(server_main())


if __name__ == "__main__":
    main()
