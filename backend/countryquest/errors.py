"""Recoverable errors reported back to the connection that caused them."""

from typing import Any, Dict


class GameError(Exception):
    """Base class for errors that are sent to a client as ``error_notice``."""

    default_message = 'Request rejected'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def code(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.code, 'message': str(self)}


class RoomFull(GameError):
    default_message = 'Room is full!'


class NotHost(GameError):
    default_message = 'Only the host can do that.'


class ConfigRequired(GameError):
    default_message = 'Submit a game configuration first.'


class InvalidConfig(GameError):
    default_message = 'Invalid game configuration.'


class SessionNotFound(GameError):
    default_message = 'Session not found.'

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found.")


class BadRequest(GameError):
    default_message = 'Malformed request.'
