import threading
import time
from typing import List, Optional

from lobby import socketio
from lobby.services.registry import SessionRegistry, registry as default_registry
from lobby.services.store import SessionStore, session_locks, store as default_store


class ExpiryReaper:
    """Periodic sweep that destroys sessions idle for longer than the TTL.

    - One coalesced sweep per period; the period equals the TTL
    - A session with no status row counts as expired
    - A failure on one session is logged and the sweep moves on
    """

    def __init__(self, store: SessionStore = default_store,
                 registry: SessionRegistry = default_registry) -> None:
        self.store = store
        self.registry = registry
        self._stop = threading.Event()
        self._running = False

    def sweep(self, app, now: Optional[float] = None) -> List[int]:
        """Run one sweep. Must be called inside an app context."""
        ttl = float(app.config.get('SESSION_TTL_SEC', 1800))
        reaped: List[int] = []
        now = time.time() if now is None else now
        try:
            codes = self.store.list_codes()
        except Exception:
            app.logger.exception('[reaper-sweep] could not list sessions')
            return reaped
        for code in codes:
            try:
                with session_locks.hold(code):
                    # Read and delete in one critical section so a concurrent
                    # significant change is never lost
                    status = self.store.get_status(code, fresh=True)
                    if status is not None and now - status.last_significant_change <= ttl:
                        continue
                    destroyed = self.registry.destroy_session(code)
                if destroyed:
                    reaped.append(code)
                    app.logger.info(f"[reaper-delete] code={code}")
            except Exception:
                app.logger.exception(f"[reaper-error] code={code}")
                self.store.rollback()
        app.logger.info(f"[reaper-sweep] checked={len(codes)} deleted={len(reaped)}")
        return reaped

    def start(self, app) -> bool:
        if self._running:
            return False
        if app.config.get('TESTING') or not app.config.get('REAPER_ENABLED', True):
            return False
        # A fresh event per run; a loop from an earlier run still sees its own
        # event set and exits
        self._stop = threading.Event()
        self._running = True
        period = float(app.config.get('SESSION_TTL_SEC', 1800))
        app.logger.info(f"[reaper-start] period={period}s")
        socketio.start_background_task(self._run, app, period, self._stop)
        return True

    def stop(self) -> None:
        self._stop.set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _run(self, app, period: float, stop: threading.Event) -> None:
        while not stop.wait(period):
            with app.app_context():
                self.sweep(app)
        app.logger.info('[reaper-stop]')


reaper = ExpiryReaper()
