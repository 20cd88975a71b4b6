import random
import time
from typing import Callable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from lobby.errors import CapacityError, InvalidCodeError, NotFoundError
from lobby.models import MIN_GAME_CODE, MAX_GAME_CODE
from lobby.services.store import SessionStore, session_locks, store as default_store


def parse_game_code(raw):
    """None means "create a new game"; anything else must be an in-range integer."""
    if raw is None or raw == '':
        return None
    if isinstance(raw, bool):
        raise InvalidCodeError(_code_range_message())
    if isinstance(raw, str) and raw.strip().isdigit():
        raw = int(raw.strip())
    if not isinstance(raw, int) or not (MIN_GAME_CODE <= raw < MAX_GAME_CODE):
        raise InvalidCodeError(_code_range_message())
    return raw


def _code_range_message():
    return (f'Game code must be integer between {MIN_GAME_CODE} (inclusive) '
            f'and {MAX_GAME_CODE} (exclusive).')


class SessionRegistry:
    """Allocates session codes and tears sessions down."""

    def __init__(self, store: SessionStore = default_store,
                 draw_code: Optional[Callable[[], int]] = None) -> None:
        self.store = store
        self._draw_code = draw_code or (lambda: random.randrange(MIN_GAME_CODE, MAX_GAME_CODE))
        # Called with the code after a session is destroyed (room cleanup)
        self.on_destroyed: List[Callable[[int], None]] = []

    def create_session(self, now: Optional[float] = None) -> int:
        max_sessions = int(current_app.config.get('MAX_SESSIONS', 100000))
        if self.store.count_sessions() > max_sessions:
            raise CapacityError('There are too many games in progress to start a new one.')
        while True:
            code = self._draw_code()
            if self.store.session_exists(code):
                continue
            try:
                self.store.insert_session(code, now=now)
            except IntegrityError:
                # Lost a race for this code to a concurrent creator
                current_app.logger.info(f"[session-create] code={code} collided on insert, redrawing")
                continue
            current_app.logger.info(f"[session-create] code={code}")
            return code

    def destroy_session(self, code: int) -> bool:
        with session_locks.hold(code):
            existed = self.store.delete_session(code)
        if existed:
            current_app.logger.info(f"[session-destroy] code={code}")
            for callback in list(self.on_destroyed):
                callback(code)
        return existed

    def mark_significant_change(self, code: int, playing: Optional[bool] = None,
                                now: Optional[float] = None):
        """Reset the idle clock; round start/end also flip ``playing``."""
        with session_locks.hold(code):
            status = self.store.update_status(code, playing=playing,
                                              now=time.time() if now is None else now)
        if status is None:
            raise NotFoundError(f'The game {code} does not exist.')
        return status


registry = SessionRegistry()
