from typing import Any, Dict, Optional

from flask import current_app

from lobby import socketio
from lobby.errors import MASKED_MESSAGE, NotFoundError
from lobby.services.store import SessionStore, session_locks, store as default_store

NAMESPACE = '/ws'


def room_for(code: int) -> str:
    return f"game:{code}"


class BroadcastCoordinator:
    """Pushes lobby snapshots to every connection in a session's room."""

    def __init__(self, store: SessionStore = default_store) -> None:
        self.store = store

    def snapshot(self, code: int) -> Optional[Dict[str, Any]]:
        """Lobby view of the session, or None while a round is being played.

        The in-progress view belongs to the rule engine, not to this layer.
        """
        with session_locks.hold(code):
            status = self.store.get_status(code)
            if status is None:
                raise NotFoundError(f'The game {code} does not exist.')
            if status.playing:
                return None
            roster = self.store.list_players(code)
            return {
                'playing': False,
                'players': [p.to_dict() for p in roster],
            }

    def broadcast_status(self, code: int) -> Optional[Dict[str, Any]]:
        try:
            payload = self.snapshot(code)
        except Exception:
            current_app.logger.exception(f"[broadcast-error] code={code}")
            payload = {'error': {'message': MASKED_MESSAGE, 'type': 'internal'}}
        if payload is None:
            return None
        socketio.emit('gameStatus', payload, to=room_for(code), namespace=NAMESPACE)
        return payload


broadcaster = BroadcastCoordinator()
