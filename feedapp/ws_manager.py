from typing import Set
from fastapi import WebSocket, Request
import asyncio
import json
import logging
from . import core

logger = logging.getLogger(__name__)

FEED_CHANNEL = 'feed_events'


class ConnectionManager:
    """Websocket clients listening to feed changes on this instance"""

    def __init__(self):
        self.connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        self.connections.add(websocket)
        await websocket.accept()
        logger.info({'msg': 'ws_connected', 'clients': len(self.connections)})

    def disconnect(self, websocket: WebSocket):
        self.connections.discard(websocket)

    async def broadcast(self, message: dict):
        for ws in list(self.connections):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.info({'msg': 'ws_dropped', 'error': str(e)})
                self.disconnect(ws)


class FeedPublisher:
    """Emits named events to every listener.

    With Redis available the event goes through the shared channel so that
    each instance's listener relays it; otherwise it is broadcast locally.
    While the listener is not subscribed (lost connection, retries used up)
    events fall back to the local broadcast.
    """

    def __init__(self, manager: ConnectionManager, retry_delay: float = 3.0, max_retries: int = 5):
        self.manager = manager
        self.listener_task = None
        self.relaying = False
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self.failures = 0

    async def emit(self, event: str, payload: dict):
        message = {'event': event, 'data': payload}
        core.POST_EVENTS.labels(action=payload.get('action', 'unknown')).inc()
        if core.REDIS is not None and self.relaying:
            try:
                await core.REDIS.publish(FEED_CHANNEL, json.dumps(message, default=str))
                return
            except Exception as e:
                logger.warning({'msg': 'feed_event_publish_failed', 'error': str(e)})
        await self.manager.broadcast(message)

    async def _relay(self):
        pubsub = core.REDIS.pubsub()
        try:
            await pubsub.subscribe(FEED_CHANNEL)
            self.relaying = True
            async for item in pubsub.listen():
                self.failures = 0
                if not item or item.get('type') != 'message':
                    continue
                try:
                    message = json.loads(item['data'])
                except (TypeError, ValueError):
                    logger.warning({'msg': 'feed_event_malformed'})
                    continue
                await self.manager.broadcast(message)
        finally:
            self.relaying = False
            try:
                await pubsub.aclose()
            except Exception as e:
                logger.warning({'msg': 'feed_pubsub_close_failed', 'error': str(e)})

    async def _listen(self):
        """Keep the Redis relay running, reconnecting with a growing delay"""
        while True:
            try:
                await self._relay()
                logger.warning({'msg': 'feed_listener_ended'})
            except Exception as e:
                logger.warning({'msg': 'feed_listener_failed', 'error': str(e), 'attempt': self.failures + 1})
            self.failures += 1
            if self.failures >= self.max_retries:
                logger.error({'msg': 'feed_listener_gave_up', 'attempts': self.failures})
                return
            await asyncio.sleep(self.retry_delay * self.failures)

    def start(self):
        if core.REDIS is not None and self.listener_task is None:
            self.listener_task = asyncio.create_task(self._listen())

    async def stop(self):
        if self.listener_task is not None:
            self.listener_task.cancel()
            try:
                await self.listener_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning({'msg': 'feed_listener_stopped_with_error', 'error': str(e)})
            self.listener_task = None
            self.relaying = False


def get_publisher(request: Request) -> FeedPublisher:
    return request.app.state.publisher
