"""
Notifications App - Live Price Feed

Pushes deal events (joins, price updates, tier unlocks, closures) to
WebSocket clients through Django Channels.

Architecture:
- events: event builders and publishing onto the channel layer
- consumers: DealFeedConsumer serving ws/deals/ and ws/deals/<id>/
- client: reconnecting asyncio client for the feed
"""
