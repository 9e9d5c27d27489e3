from functools import wraps

from flask import current_app, request
from flask_socketio import emit

from countryquest import game, socketio
from countryquest.errors import BadRequest, GameError
from countryquest.transport import NAMESPACE


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _reported(handler):
    """Send GameErrors back to the acting connection as ``error_notice``."""
    @wraps(handler)
    def wrapper(*args):
        try:
            return handler(*args)
        except GameError as exc:
            current_app.logger.info(f"[error] sid={_get_sid()} event={handler.__name__} code={exc.code}")
            emit('error_notice', exc.to_dict())
    return wrapper


def _payload(data) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest('payload must be an object')
    return data


def handle_connect():
    current_app.logger.info(f"[connect] sid={_get_sid()}")
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    current_app.logger.info(f"[disconnect] sid={_get_sid()}")
    game.leave(_get_sid())


@_reported
def handle_join_session(data=None):
    # Older clients send the bare session id
    session_id = data if isinstance(data, str) else _payload(data).get('session_id')
    game.join(_get_sid(), session_id)


@_reported
def handle_leave_session(data=None):
    game.leave(_get_sid())


@_reported
def handle_submit_config(data=None):
    data = _payload(data)
    game.submit_config(_get_sid(), data.get('session_id'), data.get('config'))


@_reported
def handle_set_ready(data=None):
    data = _payload(data)
    game.set_ready(_get_sid(), data.get('session_id'), data.get('is_ready'))


@_reported
def handle_restart(data=None):
    session_id = data if isinstance(data, str) else _payload(data).get('session_id')
    game.restart(_get_sid(), session_id)


@_reported
def handle_submit_guess(data=None):
    data = _payload(data)
    game.submit_guess(_get_sid(), data.get('session_id'), data.get('slot'), data.get('guess'))


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the game namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('join_session', handle_join_session, namespace=NAMESPACE)
    socketio.on_event('leave_session', handle_leave_session, namespace=NAMESPACE)
    socketio.on_event('submit_config', handle_submit_config, namespace=NAMESPACE)
    socketio.on_event('set_ready', handle_set_ready, namespace=NAMESPACE)
    socketio.on_event('restart', handle_restart, namespace=NAMESPACE)
    socketio.on_event('submit_guess', handle_submit_guess, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
