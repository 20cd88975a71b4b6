"""Player lifecycle: join, rename and removal within one session.

Every operation runs inside the session's critical section so the
validation reads and the write that follows them cannot interleave with
another request for the same session.
"""
from dataclasses import dataclass
from typing import Optional
import secrets

from flask import current_app
from sqlalchemy.exc import IntegrityError

from lobby import bcrypt
from lobby.errors import (
    BlankNameError, CapacityError, InProgressError, NameTakenError,
    NameTooLongError, NotFoundError, PlayerMissingError, SameNameError,
)
from lobby.services.registry import SessionRegistry, registry as default_registry
from lobby.services.store import SessionStore, session_locks, store as default_store

KEY_BYTES = 32


@dataclass
class JoinResult:
    game_code: int
    name: str
    key: str

    def to_dict(self):
        return {'gameCode': self.game_code, 'name': self.name, 'key': self.key}


@dataclass
class RemovalResult:
    name: str
    connection_id: Optional[str]
    session_destroyed: bool


def validate_name(name) -> str:
    if name is None or name == '':
        raise BlankNameError('Must enter a name')
    if not isinstance(name, str):
        raise BlankNameError('Name must be text')
    max_len = int(current_app.config.get('MAX_NAME_LENGTH', 20))
    if len(name) > max_len:
        raise NameTooLongError(f'Max name length is {max_len} characters')
    return name


def hash_key(key: str) -> str:
    return bcrypt.generate_password_hash(key).decode('utf-8')


class PlayerService:

    def __init__(self, store: SessionStore = default_store,
                 registry: SessionRegistry = default_registry) -> None:
        self.store = store
        self.registry = registry

    def join(self, name: str, code: int) -> JoinResult:
        name = validate_name(name)
        max_players = int(current_app.config.get('MAX_PLAYERS', 10))
        with session_locks.hold(code):
            if not self.store.session_exists(code):
                raise NotFoundError(f'The game {code} does not exist.')
            status = self.store.get_status(code)
            if status is None or status.playing is not False:
                raise InProgressError('Cannot join game. It is currently in progress.')
            if self.store.get_player(code, name) is not None:
                raise NameTakenError('Your chosen name is in use by another player. Please use another name.')
            count = self.store.count_players(code)
            if count >= max_players:
                raise CapacityError(f'There are already {max_players} players in this game')

            key = secrets.token_hex(KEY_BYTES)
            try:
                self.store.insert_player(code, name, order=count + 1, hashed_key=hash_key(key))
            except IntegrityError:
                raise NameTakenError('Your chosen name is in use by another player. Please use another name.')
        current_app.logger.info(f"[player-join] code={code} name={name!r} order={count + 1}")
        return JoinResult(game_code=code, name=name, key=key)

    def rename(self, code: int, current_name: str, new_name: str) -> str:
        if current_name == new_name:
            raise SameNameError('You entered the same name as your current name')
        new_name = validate_name(new_name)
        with session_locks.hold(code):
            status = self.store.get_status(code)
            if status is None:
                raise NotFoundError(f'The game {code} does not exist.')
            if status.playing:
                raise InProgressError('Cannot change player name while game in progress')
            player = self.store.get_player(code, current_name)
            if player is None:
                raise PlayerMissingError('Your current player does not exist')
            if self.store.get_player(code, new_name) is not None:
                raise NameTakenError('Your chosen name is in use by another player. Please use another name.')
            try:
                self.store.rename_player(player, new_name)
            except IntegrityError:
                raise NameTakenError('Your chosen name is in use by another player. Please use another name.')
        current_app.logger.info(f"[player-rename] code={code} {current_name!r} -> {new_name!r}")
        return new_name

    def remove(self, code: int, name: str) -> RemovalResult:
        with session_locks.hold(code):
            status = self.store.get_status(code)
            if status is None:
                raise NotFoundError(f'The game {code} does not exist.')
            if status.playing:
                raise InProgressError('Cannot remove player while game in progress')
            player = self.store.get_player(code, name)
            if player is None:
                raise PlayerMissingError('The player you try to remove is not in game')
            connection_id = player.connection_id
            self.store.delete_player(player)
            remaining = self.store.count_players(code)
            current_app.logger.info(f"[player-remove] code={code} name={name!r} remaining={remaining}")
            destroyed = False
            if remaining == 0:
                destroyed = self.registry.destroy_session(code)
        return RemovalResult(name=name, connection_id=connection_id, session_destroyed=destroyed)


players = PlayerService()
