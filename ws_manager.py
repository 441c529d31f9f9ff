"""
WebSocket connection manager.
Each authenticated user has a channel named user_<id>; one user may hold
several sockets (tabs, devices) on the same channel.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

log = logging.getLogger(__name__)


def channel_for(user_id: int) -> str:
    return f"user_{user_id}"


class ConnectionManager:
    def __init__(self):
        self.channels: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: int, accept: bool = True) -> None:
        if accept:
            await websocket.accept()
        async with self._lock:
            self.channels.setdefault(channel_for(user_id), set()).add(websocket)
        log.info(f"WebSocket connected on {channel_for(user_id)}")

    async def disconnect(self, websocket: WebSocket, user_id: int) -> None:
        async with self._lock:
            sockets = self.channels.get(channel_for(user_id))
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                del self.channels[channel_for(user_id)]
        log.info(f"WebSocket disconnected from {channel_for(user_id)}")

    def is_online(self, user_id: int) -> bool:
        return bool(self.channels.get(channel_for(user_id)))

    def connection_count(self, user_id: Optional[int] = None) -> int:
        if user_id is not None:
            return len(self.channels.get(channel_for(user_id), ()))
        return sum(len(sockets) for sockets in self.channels.values())

    async def send_to_user(self, user_id: int, event: str, data: Any) -> int:
        """
        Push an event to every socket on the user's channel.

        Returns how many sockets received it. Sockets that fail are dropped;
        nothing is raised to the caller.
        """
        sockets = list(self.channels.get(channel_for(user_id), ()))
        if not sockets:
            return 0

        payload = json.dumps({
            "event": event,
            "data": jsonable_encoder(data),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        delivered = 0
        for websocket in sockets:
            try:
                await websocket.send_text(payload)
                delivered += 1
            except Exception as e:
                log.warning(f"Dropping socket on {channel_for(user_id)} after send failure: {e}")
                await self.disconnect(websocket, user_id)
        return delivered


manager = ConnectionManager()
