from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from flask import current_app, request
from flask_socketio import disconnect, emit, join_room, leave_room

from lobby import socketio
from lobby.errors import GameError, error_payload, is_development
from lobby.services.auth import Credential, auth_gateway
from lobby.services.broadcast import NAMESPACE, broadcaster, room_for
from lobby.services.players import players
from lobby.services.registry import registry
from lobby.services.store import store


class ConnectionState(Enum):
    UNAUTHENTICATED = 'unauthenticated'
    AUTHENTICATED = 'authenticated'
    CLOSED = 'closed'


@dataclass
class ConnectionContext:
    """State owned by exactly one connection, dropped when it disconnects."""
    sid: str
    state: ConnectionState = ConnectionState.UNAUTHENTICATED
    game_code: Optional[int] = None
    name: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED

    def admit(self, game_code: int, name: str) -> None:
        if self.state is ConnectionState.CLOSED:
            raise RuntimeError(f'connection {self.sid} is closed')
        self.state = ConnectionState.AUTHENTICATED
        self.game_code = game_code
        self.name = name

    def rename(self, name: str) -> None:
        self.name = name

    def close(self) -> None:
        self.state = ConnectionState.CLOSED


_sid_to_ctx: Dict[str, ConnectionContext] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _current_ctx() -> Optional[ConnectionContext]:
    return _sid_to_ctx.get(_get_sid())


def speaks_for(sid: Optional[str], game_code: int, name: str) -> bool:
    """True while ``sid`` is connected and still authenticated as this player."""
    ctx = _sid_to_ctx.get(sid) if sid else None
    return (ctx is not None and ctx.authenticated
            and ctx.game_code == game_code and ctx.name == name)


def _emit_error(exc: Exception) -> None:
    if not isinstance(exc, GameError):
        store.rollback()
    emit('myError', error_payload(exc, debug=is_development(), logger=current_app.logger))


def handle_connect(auth=None):
    sid = _get_sid()
    _sid_to_ctx[sid] = ConnectionContext(sid=sid)


def handle_disconnect(reason=None):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    if ctx.game_code is not None:
        leave_room(room_for(ctx.game_code))
    ctx.close()


def handle_auth_request(data):
    ctx = _current_ctx()
    if ctx is None:
        return
    try:
        credential = Credential.from_payload(data)
        result = auth_gateway.authenticate(ctx.sid, credential)
    except Exception as exc:
        _emit_error(exc)
        return
    if ctx.game_code is not None and ctx.game_code != result.game_code:
        leave_room(room_for(ctx.game_code))
    ctx.admit(result.game_code, result.name)
    join_room(room_for(result.game_code))
    if speaks_for(result.previous_connection_id, result.game_code, result.name):
        # Same player reconnected elsewhere; the old socket keeps its credentials
        current_app.logger.info(
            f"[auth-rebind] code={result.game_code} name={result.name!r} "
            f"drop={result.previous_connection_id}"
        )
        disconnect(sid=result.previous_connection_id, namespace=NAMESPACE)
    broadcaster.broadcast_status(result.game_code)


def handle_change_name(data):
    ctx = _current_ctx()
    if ctx is None or not ctx.authenticated:
        return
    try:
        new_name = players.rename(ctx.game_code, ctx.name, (data or {}).get('newName'))
    except Exception as exc:
        _emit_error(exc)
        return
    ctx.rename(new_name)
    emit('nameChanged', {'newName': new_name})
    broadcaster.broadcast_status(ctx.game_code)


def handle_removal_request(data):
    ctx = _current_ctx()
    if ctx is None or not ctx.authenticated:
        return
    game_code = ctx.game_code
    try:
        result = players.remove(game_code, (data or {}).get('name'))
    except Exception as exc:
        _emit_error(exc)
        return
    if speaks_for(result.connection_id, game_code, result.name):
        socketio.emit('kicked', {}, to=result.connection_id, namespace=NAMESPACE)
        disconnect(sid=result.connection_id, namespace=NAMESPACE)
    socketio.emit('removedPlayer', {'name': result.name}, to=room_for(game_code), namespace=NAMESPACE)
    if not result.session_destroyed:
        broadcaster.broadcast_status(game_code)


def end_session_room(game_code: int) -> None:
    """Tell whoever is still in the room that the session is gone, then close it."""
    room = room_for(game_code)
    socketio.emit('sessionEnded', {'gameCode': game_code}, to=room, namespace=NAMESPACE)
    socketio.close_room(room, namespace=NAMESPACE)


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('authRequest', handle_auth_request, namespace=NAMESPACE)
    socketio.on_event('changeName', handle_change_name, namespace=NAMESPACE)
    socketio.on_event('removalRequest', handle_removal_request, namespace=NAMESPACE)

    if end_session_room not in registry.on_destroyed:
        registry.on_destroyed.append(end_session_room)
