import logging
import random
import threading
import time
from typing import Callable, Optional

from countryquest.catalog import Catalog
from countryquest.models import DRAW, RoundState, Session, slot_key
from countryquest.transport import Broadcaster

logger = logging.getLogger(__name__)


class ClueTimer:
    """Handle for the single pending clue transition of a session.

    ``cancel`` is synchronous: once it returns, ``RoundScheduler.fire`` will
    ignore this handle even if its worker is already awake. It also sets the
    wake event, so a worker waiting on this handle returns right away.
    """

    def __init__(self, session: Session, round_no: int, clue_index: int, deadline: float, wake=None):
        self.session = session
        self.round_no = round_no
        self.clue_index = clue_index
        self.deadline = deadline
        self.cancelled = False
        self._wake = wake if wake is not None else threading.Event()

    def __repr__(self):
        return (f"<ClueTimer session={self.session.session_id} round={self.round_no} "
                f"clue={self.clue_index} cancelled={self.cancelled}>")

    def cancel(self) -> None:
        self.cancelled = True
        self._wake.set()

    def wait(self, timeout: float) -> bool:
        """Block until the deadline passes or the timer is cancelled. True if cancelled."""
        self._wake.wait(timeout)
        return self.cancelled


class RoundScheduler:
    """Drives a round: target draw, timed clue reveals, win/draw resolution.

    ``start_task(fn, *args)`` launches a background worker per armed timer
    (``socketio.start_background_task`` in the app). When it is None, timers
    are armed but never waited on; callers fire them with ``fire``.
    ``create_event`` builds the wake event for each timer and must match the
    async mode of ``start_task`` (``socketio.server.eio.create_event``).
    """

    def __init__(self, broadcaster: Broadcaster, catalog: Catalog, lock=None,
                 start_task: Optional[Callable] = None, create_event: Callable = threading.Event,
                 clock: Callable[[], float] = time.time, rng: random.Random = None):
        self.broadcaster = broadcaster
        self.catalog = catalog
        self.lock = lock or threading.RLock()
        self.start_task = start_task
        self.create_event = create_event
        self.clock = clock
        self.rng = rng or random.Random()

    def start(self, session: Session) -> None:
        """Begin a new round, discarding any round in progress."""
        self.stop(session)
        if session.match_over:
            session.new_match()

        config = session.config
        target = self.catalog.pick(config.regions, rng=self.rng)
        session.round = RoundState(
            target=target,
            schedule=config.schedule,
            clue_duration=config.clue_duration,
            clue_index=0,
        )
        session.ready.clear()
        session.active = True
        self._arm(session, self.clock())

        logger.info(
            f"[round-start] session={session.session_id} round={session.rounds_completed + 1} "
            f"target={target.iso_code} clues={len(session.round.schedule)}"
        )
        self.broadcaster.broadcast(session.session_id, 'round_started', {
            'round': session.rounds_completed + 1,
            'target': target.to_dict(),
            'clue_index': 0,
            'clue_duration': session.round.clue_duration,
            'clue_deadline': session.round.clue_deadline,
            'schedule': [d.to_dict() for d in session.round.schedule],
        })
        self.broadcaster.broadcast(session.session_id, 'ready_state_changed', session.ready_state())

    def stop(self, session: Session) -> bool:
        stopped = session.stop()
        if stopped:
            logger.info(f"[timer-stop] session={session.session_id} clue={session.round.clue_index}")
        return stopped

    def _arm(self, session: Session, base: float) -> ClueTimer:
        # Cancel before replacing so a stale worker can never match the new handle
        if session.timer is not None:
            session.timer.cancel()
        rnd = session.round
        deadline = base + rnd.clue_duration
        handle = ClueTimer(session, session.rounds_completed + 1, rnd.clue_index, deadline,
                           wake=self.create_event())
        session.timer = handle
        rnd.clue_deadline = deadline
        logger.info(
            f"[timer-set] session={session.session_id} clue={rnd.clue_index} "
            f"duration={rnd.clue_duration}s deadline={deadline}"
        )
        if self.start_task is not None:
            self.start_task(self._worker, handle)
        return handle

    def _worker(self, handle: ClueTimer) -> None:
        delay = max(0.0, handle.deadline - self.clock())
        if delay and handle.wait(delay):
            logger.info(f"[timer-release] {handle!r}")
            return
        with self.lock:
            self.fire(handle)

    def fire(self, handle: ClueTimer) -> None:
        """Run the clue transition ``handle`` was armed for, unless it went stale."""
        session = handle.session
        if handle.cancelled or session.timer is not handle or not session.active:
            logger.info(f"[timer-abort] {handle!r} active={session.active}")
            return
        logger.info(f"[timer-fire] session={session.session_id} clue={handle.clue_index}")
        session.timer = None
        self.advance(session)

    def advance(self, session: Session) -> None:
        rnd = session.round
        if rnd.clue_index + 1 < len(rnd.schedule):
            rnd.clue_index += 1
            # Chain from the previous deadline so reveal times do not drift
            self._arm(session, rnd.clue_deadline if rnd.clue_deadline is not None else self.clock())
            self.broadcaster.broadcast(session.session_id, 'clue_advanced', {
                'clue_index': rnd.clue_index,
                'clue_deadline': rnd.clue_deadline,
            })
            return
        self.finish(session, DRAW)

    def finish(self, session: Session, winner) -> bool:
        """Close the active round with ``winner`` (a slot number or DRAW).

        Only the first caller for a round does anything; a late guess or clue
        expiry finds the round inactive and returns False.
        """
        if not self.stop(session):
            return False
        session.rounds_completed += 1
        cap = session.config.max_rounds if session.config else None
        final = cap is not None and session.rounds_completed >= cap
        session.match_over = final
        logger.info(
            f"[round-over] session={session.session_id} winner={winner} "
            f"rounds={session.rounds_completed} final={final}"
        )
        self.broadcaster.broadcast(session.session_id, 'round_over', {
            'winner': winner,
            'winner_key': slot_key(winner) if winner != DRAW else DRAW,
            'target': session.round.target.to_dict(),
            'scores': session.score_board(),
            'rounds_completed': session.rounds_completed,
            'final': final,
        })
        return True
