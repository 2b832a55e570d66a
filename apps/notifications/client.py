"""
Asyncio client for the live price feed.

Connects to ``ws/deals/`` or ``ws/deals/<uuid>/``, hands every decoded
message to a callback and reconnects after a fixed delay when the socket
drops. Messages older than the newest ``version`` already seen for a deal
are discarded, so a late event never overwrites a fresher snapshot.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import websockets
from django.conf import settings


logger = logging.getLogger(__name__)


class PriceFeedClient:
    """Price feed subscriber with naive reconnect."""

    def __init__(
        self,
        url: str,
        on_message: Callable[[Dict[str, Any]], Any],
        reconnect_delay: Optional[float] = None
    ):
        self.url = url
        self.on_message = on_message
        if reconnect_delay is None:
            reconnect_delay = settings.DEALRUSH_FEED_RECONNECT_DELAY
        self.reconnect_delay = reconnect_delay
        self.running = False
        self.versions: Dict[str, int] = {}
        self.websocket = None

    async def run(self):
        """Receive messages until stop() is called."""
        self.running = True

        while self.running:
            try:
                async with websockets.connect(self.url) as websocket:
                    self.websocket = websocket
                    logger.info("Connected to price feed %s", self.url)
                    async for raw in websocket:
                        await self.dispatch(raw)
            except (OSError, websockets.exceptions.WebSocketException) as e:
                logger.warning("Price feed connection lost: %s", e)
            finally:
                self.websocket = None

            if self.running:
                logger.info("Reconnecting in %ss", self.reconnect_delay)
                await asyncio.sleep(self.reconnect_delay)

    async def stop(self):
        self.running = False
        if self.websocket is not None:
            await self.websocket.close()

    async def send(self, message: Dict[str, Any]) -> bool:
        """Send a client message (ping, subscribe, unsubscribe)."""
        if self.websocket is None:
            return False
        await self.websocket.send(json.dumps(message))
        return True

    async def dispatch(self, raw):
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed feed message: %r", raw)
            return

        if not isinstance(message, dict) or not self.accept(message):
            return

        result = self.on_message(message)
        if asyncio.iscoroutine(result):
            await result

    def accept(self, message: Dict[str, Any]) -> bool:
        """Track the newest version per deal; False for stale messages."""
        deal_id = message.get('deal_id')
        version = message.get('version')
        if deal_id is None or version is None:
            return True

        last_seen = self.versions.get(deal_id)
        if last_seen is not None and version < last_seen:
            logger.debug(
                "Dropping stale %s for deal %s (v%s < v%s)",
                message.get('type'), deal_id, version, last_seen,
            )
            return False

        self.versions[deal_id] = version
        return True
