"""Outbound delivery to a session's group of connections.

The game core only talks to a ``Broadcaster``; the Socket.IO implementation
maps a session onto the room ``session:<id>``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

NAMESPACE = '/ws'


def room_name(session_id: str) -> str:
    return f"session:{session_id}"


class Broadcaster(ABC):
    @abstractmethod
    def broadcast(self, session_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def send_to(self, sid: str, event: str, payload: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def add_to_group(self, sid: str, session_id: str) -> None:
        ...

    @abstractmethod
    def remove_from_group(self, sid: str, session_id: str) -> None:
        ...


class SocketIOBroadcaster(Broadcaster):
    def __init__(self, socketio, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def broadcast(self, session_id, event, payload):
        # socketio.emit works from handlers and from background tasks alike
        self.socketio.emit(event, payload, to=room_name(session_id), namespace=self.namespace)

    def send_to(self, sid, event, payload):
        self.socketio.emit(event, payload, to=sid, namespace=self.namespace)

    def add_to_group(self, sid, session_id):
        self.socketio.server.enter_room(sid, room_name(session_id), namespace=self.namespace)

    def remove_from_group(self, sid, session_id):
        self.socketio.server.leave_room(sid, room_name(session_id), namespace=self.namespace)
