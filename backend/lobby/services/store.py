"""SessionStore: every read and write of session records goes through here.

The database is authoritative. Multi-step sequences that must look atomic
(count-then-insert, find-then-update) are run by callers inside
``session_locks.hold(code)`` so two requests for the same session never
interleave; unique constraints back this up at the store.
"""
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional
import threading
import time

from sqlalchemy.exc import IntegrityError

from lobby import db
from lobby.models import GameSession, SessionStatus, Player


class SessionLocks:
    """Per-session critical sections, keyed by session code.

    An entry exists only while some thread holds or waits on it, and is
    never replaced while it does.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # code -> [lock, number of threads holding or waiting]
        self._locks: Dict[int, list] = {}

    @contextmanager
    def hold(self, code: int) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(code)
            if entry is None:
                entry = self._locks[code] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[code]

    def __len__(self) -> int:
        return len(self._locks)


session_locks = SessionLocks()


class SessionStore:

    # ---- registry ----

    def count_sessions(self) -> int:
        return GameSession.query.count()

    def session_exists(self, code: int) -> bool:
        return db.session.get(GameSession, code) is not None

    def list_codes(self) -> List[int]:
        return [row.code for row in GameSession.query.order_by(GameSession.code).all()]

    def insert_session(self, code: int, now: Optional[float] = None) -> GameSession:
        """Insert registry entry and status together.

        Raises IntegrityError when ``code`` is already taken; the transaction
        is rolled back first so the caller can simply draw another code.
        """
        now = time.time() if now is None else now
        game_session = GameSession(code=code, created_at=now)
        game_session.status = SessionStatus(playing=False, last_significant_change=now)
        db.session.add(game_session)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise
        return game_session

    def delete_session(self, code: int) -> bool:
        """Drop the session and everything scoped to it. Returns False if nothing was there."""
        try:
            Player.query.filter_by(session_code=code).delete()
            SessionStatus.query.filter_by(session_code=code).delete()
            deleted = GameSession.query.filter_by(code=code).delete()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return bool(deleted)

    # ---- status ----

    def get_status(self, code: int, fresh: bool = False) -> Optional[SessionStatus]:
        query = SessionStatus.query.filter_by(session_code=code)
        if fresh:
            query = query.populate_existing()
        return query.first()

    def update_status(self, code: int, playing: Optional[bool] = None,
                      now: Optional[float] = None) -> Optional[SessionStatus]:
        status = self.get_status(code)
        if status is None:
            return None
        if playing is not None:
            status.playing = playing
        status.last_significant_change = time.time() if now is None else now
        db.session.add(status)
        db.session.commit()
        return status

    # ---- players ----

    def get_player(self, code: int, name: str) -> Optional[Player]:
        return Player.query.filter_by(session_code=code, name=name).first()

    def list_players(self, code: int) -> List[Player]:
        return Player.query.filter_by(session_code=code).order_by(Player.order).all()

    def count_players(self, code: int) -> int:
        return Player.query.filter_by(session_code=code).count()

    def insert_player(self, code: int, name: str, order: int, hashed_key: str) -> Player:
        player = Player(session_code=code, name=name, order=order, hashed_key=hashed_key)
        db.session.add(player)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise
        return player

    def rename_player(self, player: Player, new_name: str) -> Player:
        player.name = new_name
        db.session.add(player)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise
        return player

    def bind_connection(self, player: Player, connection_id: Optional[str]) -> Player:
        player.connection_id = connection_id
        db.session.add(player)
        db.session.commit()
        return player

    def delete_player(self, player: Player) -> None:
        db.session.delete(player)
        db.session.commit()

    def rollback(self) -> None:
        db.session.rollback()


store = SessionStore()
