import logging
import threading
import time
from typing import Any, Optional

from countryquest.catalog import Catalog
from countryquest.errors import BadRequest, ConfigRequired, NotHost, RoomFull, SessionNotFound
from countryquest.models import CLUE_MASTER, MAX_CLUE_DURATION, Session, SessionConfig
from countryquest.registry import SessionRegistry
from countryquest.transport import Broadcaster, SocketIOBroadcaster
from .scheduler import RoundScheduler
from .scoring import submit_guess

logger = logging.getLogger(__name__)


class GameCoordinator:
    """Entry point for every inbound player action.

    Each public method takes the coordinator lock, validates, then mutates,
    so a GameError never leaves a session half-changed. Configure it either
    directly (tests) or through ``init_app`` like any Flask extension.
    """

    def __init__(self, catalog: Catalog = None, broadcaster: Broadcaster = None,
                 registry: SessionRegistry = None, scheduler: RoundScheduler = None,
                 default_clue_duration: float = 15, default_clue_count: int = len(CLUE_MASTER),
                 min_enabled_clues: int = 1, max_clue_duration: float = MAX_CLUE_DURATION):
        self.lock = threading.RLock()
        self.catalog = catalog
        self.broadcaster = broadcaster
        self.registry = registry or SessionRegistry()
        self.scheduler = scheduler
        if scheduler is None and catalog is not None and broadcaster is not None:
            self.scheduler = RoundScheduler(broadcaster, catalog, lock=self.lock)
        self.default_clue_duration = default_clue_duration
        self.default_clue_count = default_clue_count
        self.min_enabled_clues = min_enabled_clues
        self.max_clue_duration = max_clue_duration

    def init_app(self, app, socketio, namespace: str = '/ws') -> None:
        with self.lock:
            self.registry.clear()
        self.catalog = Catalog.load(app.config.get('CATALOG_PATH'))
        self.broadcaster = SocketIOBroadcaster(socketio, namespace)
        self.registry = SessionRegistry(retention_sec=app.config.get('SESSION_RETENTION_SEC', 1800))
        self.default_clue_duration = app.config.get('CLUE_DURATION_SEC', 15)
        self.default_clue_count = app.config.get('CLUE_COUNT', len(CLUE_MASTER))
        self.min_enabled_clues = app.config.get('MIN_ENABLED_CLUES', 1)
        self.max_clue_duration = app.config.get('MAX_CLUE_DURATION_SEC', MAX_CLUE_DURATION)

        # In tests timers are armed but only fire when the test says so
        testing = app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS')
        self.scheduler = RoundScheduler(
            self.broadcaster, self.catalog, lock=self.lock,
            start_task=None if testing else socketio.start_background_task,
            create_event=socketio.server.eio.create_event,
        )
        app.extensions['countryquest'] = self

        if not app.config.get('TESTING'):
            socketio.start_background_task(self._sweep_loop, app.config.get('SWEEP_INTERVAL_SEC', 300), socketio.sleep)

    # ---- lookup ----

    def _require(self, session_id: Any) -> Session:
        if not isinstance(session_id, str) or not session_id:
            raise BadRequest('session_id is required')
        session = self.registry.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    # ---- membership ----

    def join(self, sid: str, session_id: Any) -> Session:
        if not isinstance(session_id, str) or not session_id:
            raise BadRequest('session_id is required')
        with self.lock:
            existing = self.registry.get(session_id)
            if existing is not None and existing.slot_of(sid) is None and existing.is_full:
                raise RoomFull()

            current = self.registry.session_for(sid)
            if current is not None and current.session_id != session_id:
                self._leave(sid, current)

            session = self.registry.get_or_create(session_id)
            slot = session.slot_of(sid)
            newly_seated = slot is None
            if newly_seated:
                slot = session.join(sid)
                self.registry.bind(sid, session)
                self.broadcaster.add_to_group(sid, session_id)
                logger.info(f"[join] session={session_id} sid={sid} slot={slot} host={session.is_host(sid)}")

            self.broadcaster.send_to(sid, 'assigned', {
                'session_id': session_id,
                'slot': slot,
                'is_host': session.is_host(sid),
                'config': session.config.to_dict() if session.config else None,
                'scores': session.score_board(),
                'ready': session.ready_state(),
            })
            if newly_seated and session.is_full:
                self.broadcaster.broadcast(session_id, 'both_present', {'session_id': session_id})
            return session

    def leave(self, sid: str) -> Optional[Session]:
        """Release whatever seat ``sid`` holds. Used for disconnects and explicit leaves."""
        with self.lock:
            session = self.registry.session_for(sid)
            if session is None:
                return None
            self._leave(sid, session)
            return session

    def _leave(self, sid: str, session: Session) -> None:
        round_aborted = self.scheduler.stop(session)
        slot, host_changed = session.leave(sid)
        self.registry.unbind(sid)
        self.broadcaster.remove_from_group(sid, session.session_id)
        logger.info(f"[leave] session={session.session_id} sid={sid} slot={slot} round_aborted={round_aborted}")

        if session.is_empty:
            self.registry.remove(session.session_id)
            return

        self.broadcaster.broadcast(session.session_id, 'occupant_left', {
            'slot': slot,
            'host_slot': session.slot_of(session.host),
            'host_changed': host_changed,
            'round_aborted': round_aborted,
        })
        self.broadcaster.broadcast(session.session_id, 'ready_state_changed', session.ready_state())

    # ---- lobby ----

    def set_ready(self, sid: str, session_id: Any, is_ready: Any) -> None:
        if not isinstance(is_ready, bool):
            raise BadRequest('is_ready must be a boolean')
        with self.lock:
            session = self._require(session_id)
            if session.slot_of(sid) is None or session.active:
                return
            if is_ready and session.is_host(sid) and session.config is None:
                raise ConfigRequired()
            session.set_ready(sid, is_ready)
            self.broadcaster.broadcast(session_id, 'ready_state_changed', session.ready_state())
            if session.all_ready() and session.config is not None:
                self.scheduler.start(session)

    def submit_config(self, sid: str, session_id: Any, payload: Any) -> SessionConfig:
        with self.lock:
            session = self._require(session_id)
            if not session.is_host(sid):
                raise NotHost()
            config = SessionConfig.from_payload(
                payload,
                default_duration=self.default_clue_duration,
                default_count=self.default_clue_count,
                max_duration=self.max_clue_duration,
                min_enabled_clues=self.min_enabled_clues,
            )
            session.config = config
            logger.info(f"[config] session={session_id} clues={list(config.clues)} count={config.clue_count}")
            self.broadcaster.broadcast(session_id, 'config_changed', config.to_dict())
            return config

    def restart(self, sid: str, session_id: Any) -> None:
        """Host-only: start a round now, skipping the ready handshake."""
        with self.lock:
            session = self._require(session_id)
            if not session.is_host(sid):
                raise NotHost()
            if session.config is None:
                raise ConfigRequired()
            self.scheduler.start(session)

    # ---- play ----

    def submit_guess(self, sid: str, session_id: Any, slot: Any, guess: Any) -> Optional[bool]:
        if not isinstance(guess, str):
            raise BadRequest('guess must be a string')
        with self.lock:
            session = self._require(session_id)
            actual = session.slot_of(sid)
            if slot is not None and actual is not None and slot != actual:
                # The seat is authoritative; the client-claimed slot is advisory
                logger.warning(f"[guess] session={session_id} sid={sid} claimed slot={slot} holds slot={actual}")
            return submit_guess(self.scheduler, self.broadcaster, session, sid, guess)

    # ---- housekeeping ----

    def sweep(self, now: float = None) -> int:
        with self.lock:
            return self.registry.sweep(now)

    def _sweep_loop(self, interval: float, sleep) -> None:
        while True:
            sleep(interval)
            self.sweep(time.time())
