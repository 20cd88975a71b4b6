import threading
import time

from lobby import db, socketio
from lobby.models import GameSession, SessionStatus
from lobby.services.reaper import ExpiryReaper, reaper
from lobby.services.registry import SessionRegistry, registry
from lobby.services.store import SessionStore, session_locks, store


def test_sweep_deletes_only_stale_sessions(flask_app):
    now = time.time()
    stale = registry.create_session(now=now - 61)
    fresh = registry.create_session(now=now - 30)
    assert reaper.sweep(flask_app, now=now) == [stale]
    assert store.list_codes() == [fresh]


def test_significant_change_keeps_session_alive(flask_app):
    now = time.time()
    code = registry.create_session(now=now - 600)
    registry.mark_significant_change(code, playing=True, now=now - 5)
    assert reaper.sweep(flask_app, now=now) == []
    assert store.session_exists(code)


def test_sweep_deletes_session_without_status(flask_app):
    code = registry.create_session()
    SessionStatus.query.filter_by(session_code=code).delete()
    assert reaper.sweep(flask_app) == [code]
    assert GameSession.query.count() == 0


class _FlakyRegistry(SessionRegistry):
    def __init__(self, broken_code):
        super().__init__()
        self.broken_code = broken_code

    def destroy_session(self, code):
        if code == self.broken_code:
            raise RuntimeError('store timeout')
        return super().destroy_session(code)


def test_sweep_isolates_per_session_failures(flask_app):
    now = time.time()
    codes = [registry.create_session(now=now - 3600) for _ in range(3)]
    flaky = ExpiryReaper(registry=_FlakyRegistry(broken_code=codes[1]))
    reaped = flaky.sweep(flask_app, now=now)
    assert sorted(reaped) == sorted([codes[0], codes[2]])
    assert store.list_codes() == [codes[1]]


def test_reaper_does_not_start_in_tests(flask_app):
    assert ExpiryReaper().start(flask_app) is False
    assert not reaper.running


def test_reap_sessions_command(flask_app):
    registry.create_session(now=time.time() - 3600)
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['reap-sessions'])
    assert 'Deleted 1 expired session(s).' in result.output
    assert GameSession.query.count() == 0


class _SignallingStore(SessionStore):
    def __init__(self, listed):
        self.listed = listed

    def list_codes(self):
        codes = super().list_codes()
        self.listed.set()
        return codes


def test_significant_change_during_sweep_wins(file_app):
    with file_app.app_context():
        code = registry.create_session(now=time.time() - 3600)
    listed = threading.Event()
    reaped = []

    def sweep():
        with file_app.app_context():
            reaped.extend(ExpiryReaper(store=_SignallingStore(listed)).sweep(file_app))
            db.session.remove()

    with file_app.app_context():
        with session_locks.hold(code):
            sweeper = threading.Thread(target=sweep)
            sweeper.start()
            # The sweep saw the session while it was still stale
            assert listed.wait(5)
            registry.mark_significant_change(code, playing=True)
        sweeper.join(10)
        assert reaped == []
        assert store.session_exists(code)


def test_restart_after_stop_runs_a_single_loop(flask_app, monkeypatch):
    started = []
    monkeypatch.setattr(socketio, 'start_background_task',
                        lambda target, *args: started.append((target, args)))
    flask_app.config['TESTING'] = False
    loop = ExpiryReaper()
    assert loop.start(flask_app) is True
    loop.stop()
    assert loop.start(flask_app) is True
    (first, first_args), (_, second_args) = started
    old_stop, new_stop = first_args[-1], second_args[-1]
    assert old_stop is not new_stop
    assert old_stop.is_set() and not new_stop.is_set()
    # The earlier loop exits on its own event without sweeping
    first(flask_app, 0, old_stop)
    loop.stop()
    assert new_stop.is_set()
