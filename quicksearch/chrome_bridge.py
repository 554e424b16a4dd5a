"""WebSocket bridge to the companion Chrome extension.

Open tabs are only visible from inside the browser, so the companion
extension connects to this server and answers tab queries on its behalf.

Protocol:
  Server -> Extension:  {"id": "<uuid>", "action": "queryTabs", "params": {"currentWindow": bool}}
  Extension -> Server:  {"id": "<uuid>", "status": "ok"|"error", "result"|"error": ...}
"""
import asyncio
import json
import sys
import uuid
from typing import Any, Dict, List, Optional

import websockets
from websockets.asyncio.server import serve as ws_serve

DEFAULT_PORT = 8765
RESPONSE_TIMEOUT = 15.0  # seconds to wait for extension response


class ChromeBridge:
    """WebSocket server the extension connects to; answers open tab queries."""

    def __init__(self, port: int = DEFAULT_PORT):
        self.port = port
        self._ws: Optional[Any] = None
        self._server: Optional[Any] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._running = False
        self._connected = False

    async def start(self) -> None:
        """Start the WebSocket server (non-blocking)."""
        try:
            self._server = await ws_serve(
                self._handler,
                "localhost",
                self.port,
            )
            self._running = True
            print(
                f"[ChromeBridge] WebSocket server listening on ws://localhost:{self.port}",
                file=sys.stderr,
            )
        except OSError as e:
            print(
                f"[ChromeBridge] Could not start WebSocket server on port {self.port}: {e}",
                file=sys.stderr,
            )

    async def stop(self) -> None:
        """Shut down the WebSocket server."""
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self._running = False
        self._connected = False
        self._ws = None

    @property
    def is_connected(self) -> bool:
        """True if the Chrome extension is currently connected."""
        return self._ws is not None and self._connected

    @property
    def is_running(self) -> bool:
        """True if the WebSocket server is up (even if no client connected)."""
        return self._running

    async def _handler(self, websocket: Any) -> None:
        """Handle a single extension connection."""
        self._ws = websocket
        self._connected = True
        print("[ChromeBridge] Chrome extension connected", file=sys.stderr)

        try:
            async for raw in websocket:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    continue

                if msg.get("type") in ("keepalive", "pong"):
                    continue

                msg_id = msg.get("id")
                if msg_id and msg_id in self._pending and not self._pending[msg_id].done():
                    self._pending[msg_id].set_result(msg)
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            print("[ChromeBridge] Chrome extension disconnected", file=sys.stderr)
            self._connected = False
            self._ws = None

    async def _query_tabs(self, current_window_only: bool) -> Any:
        """Send a queryTabs request and wait for the extension's answer.

        Raises:
            ConnectionError: Extension not connected.
            TimeoutError: Extension did not respond in time.
            RuntimeError: Extension returned an error.
        """
        if not self.is_connected:
            raise ConnectionError("Chrome extension is not connected")

        request_id = str(uuid.uuid4())
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self._ws.send(json.dumps({
                "id": request_id,
                "action": "queryTabs",
                "params": {"currentWindow": current_window_only},
            }))

            response = await asyncio.wait_for(future, timeout=RESPONSE_TIMEOUT)

            if response.get("status") == "error":
                raise RuntimeError(response.get("error", "Unknown extension error"))

            return response.get("result", [])
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"Chrome extension did not list tabs within {RESPONSE_TIMEOUT}s"
            )
        finally:
            self._pending.pop(request_id, None)

    async def get_tabs(self, current_window_only: bool = False) -> List[Dict[str, Any]]:
        """Get open tabs from Chrome.

        Args:
            current_window_only: Only return tabs of the focused window

        Returns:
            Tab records with 'url', 'title', 'windowId' and 'lastAccessed'
            (epoch milliseconds), in tab strip order
        """
        result = await self._query_tabs(current_window_only)
        if not isinstance(result, list):
            raise RuntimeError(f"Unexpected tab list from extension: {result!r}")
        return [
            tab for tab in result
            if isinstance(tab, dict) and tab.get("url")
        ]


_bridge: Optional[ChromeBridge] = None


def get_bridge() -> ChromeBridge:
    """Get or create the global bridge instance."""
    global _bridge
    if _bridge is None:
        from quicksearch.config import get_config
        port = get_config().bridge_port
        _bridge = ChromeBridge(port=port)
    return _bridge
