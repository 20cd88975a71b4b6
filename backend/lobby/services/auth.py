from dataclasses import dataclass
from typing import Any, Mapping, Optional

from flask import current_app

from lobby import bcrypt
from lobby.errors import AuthError, InvalidCodeError
from lobby.services.registry import parse_game_code
from lobby.services.store import SessionStore, session_locks, store as default_store


@dataclass
class Credential:
    game_code: int
    name: str
    key: str

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]) -> 'Credential':
        data = data or {}
        try:
            code = parse_game_code(data.get('gameCode'))
        except InvalidCodeError:
            code = None
        if code is None:
            raise AuthError('The game you are trying to enter does not exist')
        name = data.get('name')
        key = data.get('key')
        if not isinstance(name, str) or not isinstance(key, str):
            raise AuthError('You have not yet joined the game properly')
        return cls(game_code=code, name=name, key=key)


@dataclass
class AuthResult:
    name: str
    game_code: int
    # Connection that was bound to this player before, if it differs
    previous_connection_id: Optional[str] = None


class AuthGateway:

    def __init__(self, store: SessionStore = default_store) -> None:
        self.store = store

    def authenticate(self, connection_id: str, credential: Credential) -> AuthResult:
        code = credential.game_code
        with session_locks.hold(code):
            if not self.store.session_exists(code):
                raise AuthError('The game you are trying to enter does not exist')
            player = self.store.get_player(code, credential.name)
            if player is None:
                raise AuthError('You have not yet joined the game properly')
            # check_password_hash compares in constant time
            if not bcrypt.check_password_hash(player.hashed_key, credential.key):
                current_app.logger.info(f"[auth-reject] code={code} name={credential.name!r}")
                raise AuthError('Unauthorized')
            previous = player.connection_id
            self.store.bind_connection(player, connection_id)
        current_app.logger.info(f"[auth-ok] code={code} name={credential.name!r} sid={connection_id}")
        return AuthResult(
            name=credential.name,
            game_code=code,
            previous_connection_id=previous if previous != connection_id else None,
        )


auth_gateway = AuthGateway()
